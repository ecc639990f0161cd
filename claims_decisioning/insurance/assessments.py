"""Stage Output Models

Pydantic models produced by the scoring stages and by the decision phase.
Every model is created once per run and superseded, never edited, by re-runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .jurisdiction import NegligenceRegime
from .utils import utc_now


class Severity(str, Enum):
    """Shared low..critical scale for triggers, violations and risk levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}


# ---------------------------------------------------------------------------
# Escalation
# ---------------------------------------------------------------------------


class TriggerType(str, Enum):
    """Reasons that force human (or specialist) review."""

    VALIDATION_FAILURE = "validation_failure"
    LIABILITY_DISPUTE = "liability_dispute"
    HIGH_LIABILITY = "high_liability"
    SEVERITY_ESCALATION = "severity_escalation"
    BODILY_INJURY = "bodily_injury"
    TOTAL_LOSS = "total_loss"
    SENSOR_CALIBRATION = "sensor_calibration"
    HIGH_RESERVE = "high_reserve"
    COMPLIANCE_ISSUE = "compliance_issue"
    FRAUD_DETECTED = "fraud_detected"
    QA_FAILURE = "qa_failure"
    FINAL_VALIDATION_FAILURE = "final_validation_failure"
    COVERAGE_DISPUTE = "coverage_dispute"
    SYSTEM_ERROR = "system_error"
    CANCELLED = "cancelled"


FRAUD_TRIGGER_TYPES = frozenset({TriggerType.FRAUD_DETECTED})


class EscalationTrigger(BaseModel):
    """A recorded reason forcing review. Never removed once added."""

    model_config = ConfigDict(frozen=True)

    type: TriggerType
    reason: str
    severity: Severity
    stage: str | None = Field(default=None, description="Stage that raised the trigger")
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_fraud(self) -> bool:
        return self.type in FRAUD_TRIGGER_TYPES


# ---------------------------------------------------------------------------
# Phase 1 / 2
# ---------------------------------------------------------------------------


class IntakeResult(BaseModel):
    """Required-field and policy-window checks at intake"""

    claim_id: str
    valid: bool
    missing_fields: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    policy_valid: bool = True
    confidence: float = Field(ge=0.0, le=1.0)


class FavoredParty(str, Enum):
    INSURED = "insured"
    OTHER_PARTY = "other_party"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class FaultIndicator:
    """Evidence pointing at one side. Ephemeral within one assessment."""

    factor: str
    weight: float  # 0.0 to 1.0
    favored_party: FavoredParty
    source: str


class LiabilityType(str, Enum):
    CLEAR = "clear"
    SHARED = "shared"
    DISPUTED = "disputed"
    UNDETERMINED = "undetermined"


class LiabilityAssessment(BaseModel):
    """Fault split between insured and counterparties"""

    claim_id: str
    insured_liability: int = Field(ge=0, le=100, description="Insured fault percentage")
    other_party_liability: int = Field(ge=0, le=100, description="Counterparty fault percentage")
    liability_type: LiabilityType
    fault_indicators: list[FaultIndicator] = Field(default_factory=list)
    contributing_factors: list[str] = Field(default_factory=list)
    comparative_negligence_applicable: bool
    state_rule: NegligenceRegime
    jurisdiction_default_applied: bool = False
    recovery_potential: float = Field(ge=0.0, description="Recoverable amount (USD)")
    subrogation_recommended: bool
    recommendations: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _split_sums_to_100(self) -> LiabilityAssessment:
        if self.insured_liability + self.other_party_liability != 100:
            raise ValueError(
                f"Liability split must sum to 100 (got {self.insured_liability} + {self.other_party_liability})"
            )
        return self


class EvidencePackage(BaseModel):
    """Document completeness for the claim type"""

    claim_id: str
    required_documents: list[str]
    present_documents: list[str] = Field(default_factory=list)
    missing_documents: list[str] = Field(default_factory=list)
    quality_issues: list[str] = Field(default_factory=list)
    photo_count: int = 0
    completeness: float = Field(ge=0.0, le=100.0)
    confidence: float = Field(ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Phase 3
# ---------------------------------------------------------------------------


class ComplexityLevel(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    CRITICAL = "critical"


class RoutingDestination(str, Enum):
    AUTO_APPROVAL = "auto_approval"
    STANDARD_ADJUSTER = "standard_adjuster"
    SENIOR_ADJUSTER = "senior_adjuster"
    SPECIALIST = "specialist"
    LEGAL_REVIEW = "legal_review"


class FlagLevel(str, Enum):
    WARNING = "warning"
    ALERT = "alert"
    CRITICAL = "critical"


class SeverityFlag(BaseModel):
    type: str = Field(description="total_loss, bodily_injury, multi_vehicle, commercial, litigation, sensor_zone")
    level: FlagLevel
    message: str


class RiskFactor(BaseModel):
    factor: str
    severity: Severity
    description: str


class RoutingRecommendation(BaseModel):
    destination: RoutingDestination
    reason: str
    priority: Severity


class SeverityScore(BaseModel):
    """Severity/complexity score. Deterministic for identical input."""

    claim_id: str
    overall_score: int = Field(ge=0, le=100)
    damage_score: int = Field(ge=0, le=100)
    injury_score: int = Field(ge=0, le=100)
    complexity_score: int = Field(ge=0, le=100)
    risk_score: int = Field(ge=0, le=100)
    litigation_score: int = Field(ge=0, le=100)
    complexity_level: ComplexityLevel
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    flags: list[SeverityFlag] = Field(default_factory=list)
    routing: RoutingRecommendation
    escalation_required: bool
    escalation_reasons: list[str] = Field(default_factory=list)
    estimated_cycle_time_hours: int
    required_reviews: list[str] = Field(default_factory=list)
    priority_level: Severity
    confidence: int = Field(ge=0, le=100, description="Input completeness (0-100)")


class ValuationResult(BaseModel):
    """Actual cash value and total-loss determination"""

    claim_id: str
    actual_cash_value: float = Field(ge=0.0)
    repair_cost: float = Field(ge=0.0)
    total_loss_threshold: float = Field(ge=0.0, le=1.0)
    total_loss: bool
    total_loss_reason: str | None = None
    salvage_value: float = Field(ge=0.0)
    deductible: float = Field(ge=0.0)
    net_settlement: float = Field(ge=0.0)
    adjustments: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


class ReserveLine(BaseModel):
    category: Literal["damage", "injury", "rental", "towing", "legal"]
    minimum: float = Field(ge=0.0)
    maximum: float = Field(ge=0.0)
    recommended: float = Field(ge=0.0)
    confidence: float = Field(ge=0.0, le=1.0)
    basis: str


class ReserveAnalysis(BaseModel):
    claim_id: str
    lines: list[ReserveLine]
    state_factor: float
    total_minimum: float
    total_maximum: float
    total_recommended: float
    authority_level: Literal["adjuster", "supervisor", "manager"]
    recommendations: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Phase 4
# ---------------------------------------------------------------------------


class RequirementCategory(str, Enum):
    ACKNOWLEDGMENT = "acknowledgment"
    INVESTIGATION = "investigation"
    PAYMENT = "payment"
    RESERVATION_OF_RIGHTS = "reservation_of_rights"
    DENIAL_NOTICE = "denial_notice"
    APPEAL_RIGHTS = "appeal_rights"
    DOI_NOTICE = "doi_notice"
    STATUS_UPDATE = "status_update"
    UNFAIR_DELAY = "unfair_delay"
    FAIR_VALUATION = "fair_valuation"
    THOROUGH_INVESTIGATION = "thorough_investigation"


class RequirementStatus(str, Enum):
    MET = "met"
    PENDING = "pending"
    OVERDUE = "overdue"
    NOT_APPLICABLE = "not_applicable"


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    AT_RISK = "at_risk"
    NON_COMPLIANT = "non_compliant"


class ComplianceRequirement(BaseModel):
    category: RequirementCategory
    description: str
    statute: str
    deadline: datetime | None = None
    completed_at: datetime | None = None
    status: RequirementStatus
    days_late: int | None = Field(default=None, description="Positive when past the deadline")


class ComplianceViolation(BaseModel):
    category: RequirementCategory
    severity: Severity
    description: str
    days_late: int
    remediation: str


class ComplianceWarning(BaseModel):
    category: RequirementCategory
    message: str
    deadline: datetime
    days_remaining: float


class ComplianceDeadline(BaseModel):
    category: RequirementCategory
    deadline: datetime
    days_remaining: float
    priority: Severity


class ComplianceReport(BaseModel):
    """Regulatory deadlines, violations and score for one claim"""

    claim_id: str
    jurisdiction: str
    jurisdiction_default_applied: bool = False
    as_of: datetime
    requirements: list[ComplianceRequirement] = Field(default_factory=list)
    violations: list[ComplianceViolation] = Field(default_factory=list)
    warnings: list[ComplianceWarning] = Field(default_factory=list)
    deadlines: list[ComplianceDeadline] = Field(default_factory=list)
    score: int = Field(ge=0, le=100)
    status: ComplianceStatus
    recommendations: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


class PlannedNotice(BaseModel):
    notice_type: Literal["acknowledgment", "status_update", "payment", "reservation_of_rights"]
    recipient: str
    due_by: datetime
    overdue: bool
    reason: str


class CommunicationPlan(BaseModel):
    """Notices due to parties. Text is generated outside the pipeline."""

    claim_id: str
    notices: list[PlannedNotice] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Phase 5 / 6
# ---------------------------------------------------------------------------


class FraudAssessment(BaseModel):
    """Pattern-based fraud score"""

    claim_id: str
    fraud_score: float = Field(ge=0.0, le=100.0)
    risk_level: Severity
    indicators: list[str] = Field(default_factory=list)
    siu_referral: bool
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)


class QACheck(BaseModel):
    name: str
    category: Literal["documentation", "processing", "timeliness", "data_quality"]
    result: Literal["pass", "warning", "fail"]
    severity: Severity
    detail: str


class QAReview(BaseModel):
    claim_id: str
    checks: list[QACheck]
    score: float = Field(ge=0.0, le=100.0)
    status: Literal["approved", "needs_review", "rejected"]
    confidence: float = Field(ge=0.0, le=1.0)


class ValidationCheck(BaseModel):
    name: Literal["data_completeness", "policy_validity", "amount_sanity", "fraud_clear", "compliance_clear"]
    passed: bool
    detail: str


class FinalValidation(BaseModel):
    """Last-mile gate before automated approval"""

    claim_id: str
    approved: bool
    checks: list[ValidationCheck] = Field(default_factory=list)
    rejection_reason: str | None = None
    confidence: int = Field(ge=0, le=100)


# ---------------------------------------------------------------------------
# Phase 7
# ---------------------------------------------------------------------------


class DecisionType(str, Enum):
    AUTO_APPROVE = "auto_approve"
    ESCALATE_HUMAN = "escalate_human"
    SIU_REVIEW = "siu_review"
    DRAFT_HOLD = "draft_hold"


class ClaimDecision(BaseModel):
    """Terminal output of a run. Immutable once emitted."""

    model_config = ConfigDict(frozen=True)

    claim_id: str
    decision: DecisionType
    reason: str
    confidence: float = Field(ge=0.0, le=1.0)
    estimated_value: float | None = None
    trigger_types: tuple[TriggerType, ...] = ()
    audit_error: str | None = Field(
        default=None, description="Set when the decision could not be written to the audit trail"
    )
    decided_at: datetime = Field(default_factory=utc_now)


class AuditEntry(BaseModel):
    """Audit trail entry for regulatory review"""

    claim_id: str
    stage: str
    event_type: str = Field(description="STAGE_COMPLETED, STAGE_FAILED, DECISION_EMITTED, etc.")

    inputs_summary: dict[str, Any] | None = None
    outputs: dict[str, Any] | None = None

    # Actor
    actor_type: str = Field(default="SYSTEM", description="SYSTEM, HUMAN")
    actor_id: str = Field(default="claims_decisioning", description="Component or reviewer ID")

    timestamp: datetime = Field(default_factory=utc_now)
    explanation: str
