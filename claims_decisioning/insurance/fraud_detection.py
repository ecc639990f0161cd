"""Fraud Pattern Detection for Insurance Claims.

Rule-based fraud scoring against known claim patterns, with a statistical
outlier check on the claimed amount.

Features:
- Prior-claim frequency and previous fraud flags
- Timing patterns (new policy, late reporting)
- Suspicious loss locations
- Vehicle title and age versus claimed amount
- Claim amount z-score against book statistics
- Medical screening: injury out of proportion to damage, watchlisted or
  scattered providers, upcoding, unbundling, duplicate bills, long treatment
- Explainable scoring with one indicator per contributing rule

References:
- National Insurance Crime Bureau (NICB) fraud patterns
- Coalition Against Insurance Fraud (CAIF) guidelines
"""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, replace

import numpy as np

from claims_decisioning.config import FraudConfig

from .assessments import EscalationTrigger, FraudAssessment, Severity, TriggerType
from .schema import ClaimSnapshot, MedicalBill
from .utils import contains_any, days_between, format_currency

logger = logging.getLogger(__name__)

STAGE_NAME = "fraud_detection"

# Codes commonly billed above the service delivered, with the description
# that gives the mismatch away
UPCODING_RISK_CODES: dict[str, str] = {
    "99215": "routine visit",  # office visit, highest level
    "99223": "straightforward admission",  # hospital admit, highest level
    "99285": "non-emergent",  # emergency visit, highest level
    "97140": "basic therapy",  # manual therapy
}
# Highest-level visit codes need documented high complexity
TOP_LEVEL_VISIT_CODES = frozenset({"99215", "99223", "99285"})
SIMPLE_SERVICE_WORDS = ("routine", "simple", "basic")

# Codes normally billed as one service
UNBUNDLING_PATTERNS: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({"97110", "97140", "97530"}), "therapy evaluation components billed separately"),
    (frozenset({"99213", "36415", "85025"}), "lab draw billed separately from visit"),
    (frozenset({"29880", "29881"}), "knee arthroscopy components billed separately"),
)


@dataclass
class FraudIndicator:
    """Individual fraud indicator with its score contribution."""

    type: str  # e.g., "claim_frequency", "new_policy"
    description: str
    points: float = 0.0  # contribution to the 0-100 score


class FraudDetector:
    """Pattern-based fraud detector.

    Every rule adds a fixed number of points; the total is capped at 100.

    Typical usage:
        >>> detector = FraudDetector()
        >>> assessment = detector.detect(snapshot)
        >>> if assessment.siu_referral:
        ...     print("Refer to Special Investigations Unit")
    """

    def __init__(self, config: FraudConfig | None = None):
        self.config = config or FraudConfig()

    def detect(self, snapshot: ClaimSnapshot) -> FraudAssessment:
        """Score ``snapshot`` for fraud risk.

        Args:
            snapshot: Claim to analyse.

        Returns:
            FraudAssessment with score, risk level, indicators and SIU flag.
        """
        indicators: list[FraudIndicator] = []

        # 1. Prior claims
        indicators.extend(self._check_claim_history(snapshot))

        # 2. Policy / reporting timing
        indicators.extend(self._check_timing(snapshot))

        # 3. Loss location
        indicators.extend(self._check_location(snapshot))

        # 4. Vehicle
        indicators.extend(self._check_vehicle(snapshot))

        # 5. Claimed amount
        indicators.extend(self._check_claim_amount_anomaly(snapshot))

        # 6. Injury facts and medical bills
        indicators.extend(self._check_medical(snapshot))

        score = float(np.clip(sum(ind.points for ind in indicators), 0.0, 100.0))
        risk_level = self.risk_level(score)
        siu = score >= self.config.siu_threshold

        known_dates = snapshot.loss_date is not None and snapshot.policy.effective_date is not None
        assessment = FraudAssessment(
            claim_id=snapshot.claim_id,
            fraud_score=score,
            risk_level=risk_level,
            indicators=[ind.description for ind in indicators],
            siu_referral=siu,
            reasoning=self._generate_reasoning(score, risk_level, indicators),
            confidence=0.85 if known_dates else 0.7,
        )
        logger.info(
            "Fraud score for %s: %.0f (%s, %d indicators)",
            snapshot.claim_id,
            score,
            risk_level.value,
            len(indicators),
        )
        return assessment

    def risk_level(self, score: float) -> Severity:
        cfg = self.config
        if score >= cfg.critical_risk_threshold:
            return Severity.CRITICAL
        if score >= cfg.high_risk_threshold:
            return Severity.HIGH
        if score >= cfg.medium_risk_threshold:
            return Severity.MEDIUM
        return Severity.LOW

    def _check_claim_history(self, snapshot: ClaimSnapshot) -> list[FraudIndicator]:
        """Frequent claimants and previously flagged claims."""
        history = snapshot.prior_claims
        indicators = []

        if history.total >= 5:
            points = 30.0
        elif history.total >= 3:
            points = 20.0
        elif history.total >= 1:
            points = 10.0
        else:
            points = 0.0
        if points:
            indicators.append(
                FraudIndicator(
                    type="claim_frequency",
                    description=f"{history.total} prior claim(s) on record",
                    points=points,
                )
            )

        if history.last_12_months >= 2:
            indicators.append(
                FraudIndicator(
                    type="claim_clustering",
                    description=f"{history.last_12_months} claims in the past 12 months",
                    points=15.0,
                )
            )

        if history.denied_or_flagged > 0:
            indicators.append(
                FraudIndicator(
                    type="fraud_history",
                    description=f"{history.denied_or_flagged} prior claim(s) denied or flagged",
                    points=25.0,
                )
            )
        return indicators

    def _check_timing(self, snapshot: ClaimSnapshot) -> list[FraudIndicator]:
        """Losses shortly after policy inception and late reporting."""
        cfg = self.config
        indicators = []
        effective = snapshot.policy.effective_date

        if snapshot.loss_date is not None and effective is not None:
            days_in_force = math.floor(days_between(effective, snapshot.loss_date))
            if 0 <= days_in_force <= cfg.recent_policy_days:
                indicators.append(
                    FraudIndicator(
                        type="new_policy",
                        description=f"Loss occurred {days_in_force} day(s) after policy start",
                        points=20.0,
                    )
                )
                if days_in_force <= cfg.very_recent_policy_days:
                    indicators.append(
                        FraudIndicator(
                            type="new_policy",
                            description="Loss within the first week of coverage",
                            points=15.0,
                        )
                    )

        if snapshot.loss_date is not None:
            delay = math.floor(days_between(snapshot.loss_date, snapshot.reported_date))
            if delay > cfg.late_report_days:
                indicators.append(
                    FraudIndicator(
                        type="timing_anomaly",
                        description=f"Claim reported {delay} days after loss (unusually delayed)",
                        points=15.0,
                    )
                )
        return indicators

    def _check_location(self, snapshot: ClaimSnapshot) -> list[FraudIndicator]:
        location = (snapshot.loss_location or "").lower()
        return [
            FraudIndicator(
                type="suspicious_location",
                description=f"Loss location matches pattern '{keyword}'",
                points=10.0,
            )
            for keyword in self.config.suspicious_locations
            if keyword in location
        ]

    def _check_vehicle(self, snapshot: ClaimSnapshot) -> list[FraudIndicator]:
        cfg = self.config
        indicators = []
        vehicle = snapshot.insured_vehicle
        if vehicle is None:
            return indicators

        if vehicle.title_status in ("salvage", "rebuilt"):
            indicators.append(
                FraudIndicator(
                    type="branded_title",
                    description=f"Vehicle has a {vehicle.title_status} title",
                    points=15.0,
                )
            )

        age = snapshot.vehicle_age(snapshot.loss_date or snapshot.reported_date)
        amount = self._claimed_amount(snapshot)
        if age is not None and age > cfg.old_vehicle_age and amount > cfg.old_vehicle_claim_amount:
            indicators.append(
                FraudIndicator(
                    type="old_vehicle_high_claim",
                    description=f"{age}-year-old vehicle with {format_currency(amount)} claimed",
                    points=20.0,
                )
            )
        return indicators

    def _check_claim_amount_anomaly(self, snapshot: ClaimSnapshot) -> list[FraudIndicator]:
        """Flag claims far above the book average (z-score)."""
        cfg = self.config
        amount = self._claimed_amount(snapshot)
        z_score = (amount - cfg.claim_amount_mean) / cfg.claim_amount_std if cfg.claim_amount_std > 0 else 0.0
        if z_score <= cfg.claim_amount_outlier_threshold:
            return []
        return [
            FraudIndicator(
                type="claim_amount_anomaly",
                description=(
                    f"Claimed amount {format_currency(amount)} is {z_score:.1f} "
                    f"standard deviations above average ({format_currency(cfg.claim_amount_mean)})"
                ),
                points=15.0,
            )
        ]

    # ------------------------------------------------------------------
    # Medical screening
    # ------------------------------------------------------------------

    def _check_medical(self, snapshot: ClaimSnapshot) -> list[FraudIndicator]:
        cfg = self.config
        indicators = self._check_injury_damage_mismatch(snapshot)
        bills = snapshot.medical_bills
        if not snapshot.injury_reported and (bills or snapshot.documents_of_type("medical_bill")):
            indicators.append(
                FraudIndicator(
                    type="medical_without_injury",
                    description="Medical bills submitted on a claim with no reported injury",
                    points=15.0,
                )
            )
        if bills:
            indicators.extend(_capped(self._check_providers(snapshot), cfg.provider_points_cap))
            indicators.extend(_capped(self._check_billing(bills), cfg.billing_points_cap))
            indicators.extend(self._check_treatment(bills))
        return indicators

    @staticmethod
    def _check_injury_damage_mismatch(snapshot: ClaimSnapshot) -> list[FraudIndicator]:
        """Serious injuries claimed from a collision that barely marked the car."""
        if not snapshot.injury_reported or not snapshot.damage_items:
            return []
        minor_damage = (
            all(item.severity == "minor" for item in snapshot.damage_items)
            and not snapshot.airbag_deployed
            and not snapshot.total_loss_indicator
        )
        if not minor_damage:
            return []
        if snapshot.injury_severity in ("severe", "fatal"):
            points = 30.0
        elif snapshot.injury_severity == "moderate":
            points = 15.0
        else:
            return []
        return [
            FraudIndicator(
                type="injury_damage_mismatch",
                description=f"{snapshot.injury_severity.capitalize()} injury claimed with only minor vehicle damage",
                points=points,
            )
        ]

    def _check_providers(self, snapshot: ClaimSnapshot) -> list[FraudIndicator]:
        """Watchlisted providers, many providers, providers out of state."""
        cfg = self.config
        bills = snapshot.medical_bills
        providers = sorted(
            {name.strip().lower() for bill in bills for name in (bill.provider_name, bill.facility_name) if name}
        )
        indicators = []

        for provider in providers:
            pattern = next((p for p in cfg.watchlist_provider_patterns if p in provider), None)
            if pattern is not None:
                indicators.append(
                    FraudIndicator(
                        type="watchlist_provider",
                        description=f"Provider '{provider}' matches watchlist pattern '{pattern}'",
                        points=15.0,
                    )
                )

        if len(providers) > 3:
            indicators.append(
                FraudIndicator(
                    type="provider_shopping",
                    description=f"{len(providers)} different medical providers billed",
                    points=20.0 if len(providers) > 5 else 10.0,
                )
            )

        home = snapshot.jurisdiction
        if home:
            away = sorted(
                {b.provider_state.strip().upper() for b in bills if b.provider_state} - {home}
            )
            if away:
                indicators.append(
                    FraudIndicator(
                        type="out_of_state_provider",
                        description=f"Medical providers outside {home}: {', '.join(away)}",
                        points=10.0,
                    )
                )
        return indicators

    def _check_billing(self, bills: Sequence[MedicalBill]) -> list[FraudIndicator]:
        """Upcoding, unbundling and duplicate lines."""
        indicators = []
        for bill in bills:
            reason = self._upcoding_reason(bill)
            if reason is not None:
                indicators.append(
                    FraudIndicator(type="upcoding", description=f"Bill {_bill_label(bill)}: {reason}", points=20.0)
                )

        codes_by_date: dict[str, set[str]] = defaultdict(set)
        for bill in bills:
            if bill.cpt_code and bill.service_date is not None:
                codes_by_date[bill.service_date.date().isoformat()].add(bill.cpt_code)
        for day, codes in sorted(codes_by_date.items()):
            reason = _unbundling_reason(codes)
            if reason is not None:
                indicators.append(
                    FraudIndicator(type="unbundling", description=f"Services on {day}: {reason}", points=15.0)
                )

        lines = Counter(_bill_key(bill) for bill in bills if bill.cpt_code)
        for bill in bills:
            if bill.cpt_code and lines[_bill_key(bill)] > 1:
                indicators.append(
                    FraudIndicator(
                        type="duplicate_billing",
                        description=f"Bill {_bill_label(bill)}: same code, date and amount billed more than once",
                        points=25.0,
                    )
                )
        return indicators

    def _upcoding_reason(self, bill: MedicalBill) -> str | None:
        cfg = self.config
        code = bill.cpt_code
        if not code:
            return None

        if code in UPCODING_RISK_CODES:
            if contains_any(bill.description, (UPCODING_RISK_CODES[code], *SIMPLE_SERVICE_WORDS)):
                return f"code {code} billed for a service described as '{bill.description}'"
            if code in TOP_LEVEL_VISIT_CODES and bill.complexity != "high":
                return f"highest-level code {code} without documented high complexity"

        if bill.amount is not None:
            if code.startswith("992") and bill.amount > cfg.max_visit_amount:
                return f"visit code {code} billed at {format_currency(bill.amount)}"
            if code.startswith("971") and bill.amount > cfg.max_therapy_amount:
                return f"therapy code {code} billed at {format_currency(bill.amount)}"
        return None

    def _check_treatment(self, bills: Sequence[MedicalBill]) -> list[FraudIndicator]:
        cfg = self.config
        indicators = []

        dates = [bill.service_date for bill in bills if bill.service_date is not None]
        if dates:
            span = math.floor(days_between(min(dates), max(dates)))
            if span > cfg.extended_treatment_days:
                indicators.append(
                    FraudIndicator(
                        type="extended_treatment",
                        description=f"Treatment billed over {span} days",
                        points=15.0,
                    )
                )

        sessions = sum(1 for bill in bills if bill.cpt_code and bill.cpt_code.startswith("971"))
        if sessions > cfg.excessive_therapy_sessions:
            indicators.append(
                FraudIndicator(
                    type="excessive_therapy",
                    description=f"{sessions} therapy sessions billed",
                    points=10.0,
                )
            )
        return indicators

    @staticmethod
    def _claimed_amount(snapshot: ClaimSnapshot) -> float:
        if snapshot.settlement_amount is not None and snapshot.settlement_amount > 0:
            return snapshot.settlement_amount
        return snapshot.estimated_damage

    def _generate_reasoning(self, score: float, risk_level: Severity, indicators: list[FraudIndicator]) -> str:
        """Generate human-readable reasoning for the fraud assessment."""
        if score >= self.config.siu_threshold:
            recommendation = "Refer to Special Investigations Unit."
        elif risk_level is Severity.MEDIUM:
            recommendation = "Recommend manual review and verification."
        else:
            recommendation = "No immediate fraud concerns detected."

        top_indicators = sorted(indicators, key=lambda x: x.points, reverse=True)[:3]
        label = f"{risk_level.value.upper()} FRAUD RISK (score={score:.0f})"
        if top_indicators:
            summary = " ".join(f"({i + 1}) {ind.description}." for i, ind in enumerate(top_indicators))
            return f"{label}. Key indicators: {summary} {recommendation}"
        return f"{label}. No significant fraud indicators detected. {recommendation}"

    def escalation_triggers(self, assessment: FraudAssessment) -> list[EscalationTrigger]:
        if not assessment.siu_referral:
            return []
        return [
            EscalationTrigger(
                type=TriggerType.FRAUD_DETECTED,
                reason=f"Fraud score {assessment.fraud_score:.0f} meets SIU referral threshold",
                severity=Severity.CRITICAL,
                stage=STAGE_NAME,
                details={"fraud_score": assessment.fraud_score, "indicators": assessment.indicators},
            )
        ]


def _capped(indicators: list[FraudIndicator], cap: float) -> list[FraudIndicator]:
    """Trim points, in order, so the group contributes at most ``cap``.

    Indicators left with no points are dropped.
    """
    remaining = cap
    kept = []
    for indicator in indicators:
        points = min(indicator.points, remaining)
        remaining -= points
        if points > 0:
            kept.append(replace(indicator, points=points))
    return kept


def _unbundling_reason(codes: set[str]) -> str | None:
    for bundle, description in UNBUNDLING_PATTERNS:
        if len(bundle & codes) >= 2:
            return description
    if len(codes) > 3:
        visits = [c for c in codes if c.startswith("992")]
        labs = [c for c in codes if c.startswith("8")]
        procedures = [c for c in codes if c.startswith("9") and not c.startswith("99")]
        if len(visits) > 1 or (visits and len(labs) >= 2 and procedures):
            return "visit, lab and procedure codes split across one date"
    return None


def _bill_key(bill: MedicalBill) -> tuple:
    return (bill.cpt_code, bill.service_date, bill.amount)


def _bill_label(bill: MedicalBill) -> str:
    return bill.bill_id or bill.cpt_code or "unlabelled"
