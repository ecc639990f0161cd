"""Insurance Claim Input Models

Pydantic models for the read-only claim snapshot consumed by the pipeline.
The snapshot is strict: unknown or malformed fields are rejected, never
defaulted.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from claims_decisioning.exceptions import ValidationError

from .utils import ensure_utc

# Naive timestamps are read as UTC
UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class ClaimType(str, Enum):
    """Coverage line the claim was filed under."""

    COLLISION = "collision"
    COMPREHENSIVE = "comprehensive"
    LIABILITY = "liability"
    UNINSURED_MOTORIST = "uninsured_motorist"
    MEDICAL_PAYMENTS = "medical_payments"


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PolicyInfo(_SnapshotModel):
    """Policy the claim is filed against"""

    policy_number: str = Field(min_length=1)
    status: Literal["active", "cancelled", "expired", "suspended", "lapsed"] = "active"
    effective_date: UTCDateTime | None = None
    expiration_date: UTCDateTime | None = None
    deductible: float = Field(default=0.0, ge=0.0)


class Vehicle(_SnapshotModel):
    """Vehicle involved in the loss"""

    vin: str | None = None
    year: int | None = Field(default=None, ge=1900, le=2100)
    make: str | None = None
    model: str | None = None
    value: float = Field(default=0.0, ge=0.0, description="Pre-loss market value (USD)")
    mileage: int | None = Field(default=None, ge=0)
    title_status: Literal["clean", "salvage", "rebuilt"] = "clean"
    commercial_use: bool = False
    role: Literal["insured", "other"] = "insured"


class Participant(_SnapshotModel):
    """Person involved in or witnessing the loss"""

    name: str
    role: Literal["insured", "other_driver", "passenger", "witness", "claimant"]
    statement: str | None = None
    insurance_company: str | None = None
    cited: bool = False


class DamageItem(_SnapshotModel):
    """Damaged component with its estimated repair cost"""

    component: str = Field(description="e.g. rear bumper, hood, taillight")
    severity: Literal["minor", "moderate", "major", "severe", "total_loss"] = "moderate"
    estimated_cost: float | None = Field(default=None, ge=0.0)


class Telematics(_SnapshotModel):
    speed_at_impact: float | None = Field(default=None, ge=0.0, description="mph")
    harsh_braking: bool = False
    sudden_acceleration: bool = False


class PoliceReport(_SnapshotModel):
    report_number: str | None = None
    citation_party: Literal["insured", "other"] | None = None
    fault_determination: Literal["insured", "other", "shared"] | None = None


class DocumentMeta(_SnapshotModel):
    """Metadata for an uploaded document (content is never read)"""

    doc_type: Literal[
        "photo", "estimate", "police_report", "medical_bill", "statement", "telematics", "repair_invoice", "other"
    ]
    filename: str | None = None
    uploaded_at: UTCDateTime | None = None
    verified: bool = True


class MedicalBill(_SnapshotModel):
    """One billed line from a medical provider"""

    bill_id: str | None = None
    provider_name: str | None = None
    facility_name: str | None = None
    provider_state: str | None = Field(default=None, description="Two-letter state of the provider")
    cpt_code: str | None = None
    description: str | None = None
    complexity: Literal["low", "moderate", "high"] | None = Field(
        default=None, description="Documented medical decision complexity"
    )
    service_date: UTCDateTime | None = None
    amount: float | None = Field(default=None, ge=0.0)


class Communication(_SnapshotModel):
    """Prior communication sent to a party on the claim"""

    sent_at: UTCDateTime
    channel: Literal["email", "letter", "phone", "sms", "portal"] = "email"
    recipient: Literal["insured", "claimant", "other_party", "attorney", "regulator"] = "insured"
    subject: str | None = None
    delivered: bool = True


class ClaimActivity(_SnapshotModel):
    """Timestamps of handling milestones already reached"""

    acknowledged_at: UTCDateTime | None = None
    investigation_completed_at: UTCDateTime | None = None
    settlement_offered_at: UTCDateTime | None = None
    payment_issued_at: UTCDateTime | None = None
    reservation_of_rights_sent_at: UTCDateTime | None = None
    denial_issued_at: UTCDateTime | None = None
    appeal_rights_sent_at: UTCDateTime | None = None
    doi_notified_at: UTCDateTime | None = None


class PriorClaims(_SnapshotModel):
    total: int = Field(default=0, ge=0)
    last_12_months: int = Field(default=0, ge=0)
    denied_or_flagged: int = Field(default=0, ge=0)


class ClaimSnapshot(_SnapshotModel):
    """Immutable claim record the pipeline reads.

    Owned by the claim-record store; the pipeline never mutates it.
    """

    # Identity
    claim_id: str = Field(min_length=1)
    claim_number: str | None = None
    claim_type: ClaimType = ClaimType.COLLISION
    claim_status: str = "open"
    jurisdiction: str | None = Field(default=None, description="Two-letter loss state code")

    # Loss
    loss_date: UTCDateTime | None = None
    reported_date: UTCDateTime
    loss_description: str | None = None
    loss_location: str | None = None

    policy: PolicyInfo
    vehicles: list[Vehicle] = Field(default_factory=list)
    participants: list[Participant] = Field(default_factory=list)
    damage_items: list[DamageItem] = Field(default_factory=list)
    counterparty_damage_location: Literal["front", "rear", "side", "none"] | None = None

    # Injury
    injury_reported: bool = False
    injury_severity: Literal["minor", "moderate", "severe", "fatal"] | None = None
    passenger_count: int = Field(default=0, ge=0)

    # Loss characteristics
    total_loss_indicator: bool = False
    airbag_deployed: bool = False
    third_party_claimants: int = Field(default=0, ge=0)
    property_damage: bool = False
    is_third_party: bool = False
    litigation_indicators: list[str] = Field(default_factory=list)

    telematics: Telematics | None = None
    police_report: PoliceReport | None = None
    documents: list[DocumentMeta] = Field(default_factory=list)
    medical_bills: list[MedicalBill] = Field(default_factory=list)
    communications: list[Communication] = Field(default_factory=list)
    activity: ClaimActivity = Field(default_factory=ClaimActivity)
    prior_claims: PriorClaims = Field(default_factory=PriorClaims)

    # Amounts
    damage_estimate: float | None = Field(default=None, ge=0.0)
    settlement_amount: float | None = Field(default=None, description="Proposed settlement (may be invalid)")
    rental_needed: bool = False
    towing_required: bool = False

    @field_validator("jurisdiction")
    @classmethod
    def _normalize_jurisdiction(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().upper()
        return value or None

    # ------------------------------------------------------------------
    # Derived facts
    # ------------------------------------------------------------------

    @property
    def estimated_damage(self) -> float:
        """Damage estimate, falling back to the sum of itemized costs."""
        if self.damage_estimate is not None:
            return self.damage_estimate
        return float(sum(item.estimated_cost or 0.0 for item in self.damage_items))

    @property
    def insured_vehicle(self) -> Vehicle | None:
        for vehicle in self.vehicles:
            if vehicle.role == "insured":
                return vehicle
        return self.vehicles[0] if self.vehicles else None

    @property
    def vehicle_value(self) -> float:
        vehicle = self.insured_vehicle
        return vehicle.value if vehicle else 0.0

    def vehicle_age(self, as_of: datetime) -> int | None:
        """Model-year age of the insured vehicle at ``as_of``."""
        vehicle = self.insured_vehicle
        if vehicle is None or vehicle.year is None:
            return None
        return max(0, as_of.year - vehicle.year)

    @property
    def is_commercial(self) -> bool:
        return any(v.commercial_use for v in self.vehicles)

    def participants_with_role(self, role: str) -> list[Participant]:
        return [p for p in self.participants if p.role == role]

    def documents_of_type(self, doc_type: str) -> list[DocumentMeta]:
        return [d for d in self.documents if d.doc_type == doc_type]

    @property
    def has_police_report(self) -> bool:
        return self.police_report is not None and bool(self.police_report.report_number)

    # ------------------------------------------------------------------
    # Boundary conversion
    # ------------------------------------------------------------------

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> ClaimSnapshot:
        """Build a snapshot from a loosely-typed record.

        Raises:
            ValidationError: listing every offending field path.
        """
        if not isinstance(record, Mapping):
            raise ValidationError(f"Claim record must be a mapping, got {type(record).__name__}")
        record = dict(record)
        try:
            return cls.model_validate(record)
        except PydanticValidationError as e:
            fields = [".".join(str(part) for part in err["loc"]) or "<root>" for err in e.errors()]
            claim_id = record.get("claim_id") if isinstance(record.get("claim_id"), str) else None
            raise ValidationError(
                f"Invalid claim record ({e.error_count()} error(s))", fields=fields, claim_id=claim_id
            ) from e
