"""Severity Scoring for Insurance Claims.

Computes a 0-100 severity/complexity score and a routing recommendation from
damage, injury, complexity, risk and litigation inputs. Scoring is a pure
function of the snapshot: identical input yields an identical score.

Sub-score weights:
- Damage      0.25
- Injury      0.35
- Complexity  0.20
- Risk        0.15
- Litigation  0.05
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from claims_decisioning.config import SeverityConfig

from .assessments import (
    ComplexityLevel,
    EscalationTrigger,
    FlagLevel,
    RiskFactor,
    RoutingDestination,
    RoutingRecommendation,
    Severity,
    SeverityFlag,
    SeverityScore,
    TriggerType,
)
from .schema import ClaimSnapshot, ClaimType, Telematics
from .utils import clamp_score

logger = logging.getLogger(__name__)

STAGE_NAME = "severity_scoring"


@dataclass
class SeverityInput:
    """Facts the scorer reads, extracted once from the snapshot."""

    claim_id: str
    claim_type: ClaimType
    estimated_damage: float
    vehicle_count: int
    injury_reported: bool = False
    injury_severity: str | None = None
    total_loss_indicator: bool = False
    airbag_deployed: bool = False
    vehicle_age: int | None = None
    vehicle_value: float = 0.0
    prior_claims: int = 0
    commercial: bool = False
    litigation_indicators: list[str] = field(default_factory=list)
    passenger_count: int = 0
    property_damage: bool = False
    third_party_claimants: int = 0
    telematics: Telematics | None = None

    @classmethod
    def from_snapshot(cls, snapshot: ClaimSnapshot) -> SeverityInput:
        # Vehicle age is taken at the loss date so rescoring is reproducible
        reference = snapshot.loss_date or snapshot.reported_date
        return cls(
            claim_id=snapshot.claim_id,
            claim_type=snapshot.claim_type,
            estimated_damage=snapshot.estimated_damage,
            vehicle_count=max(len(snapshot.vehicles), 1),
            injury_reported=snapshot.injury_reported,
            injury_severity=snapshot.injury_severity,
            total_loss_indicator=snapshot.total_loss_indicator,
            airbag_deployed=snapshot.airbag_deployed,
            vehicle_age=snapshot.vehicle_age(reference),
            vehicle_value=snapshot.vehicle_value,
            prior_claims=snapshot.prior_claims.total,
            commercial=snapshot.is_commercial,
            litigation_indicators=list(snapshot.litigation_indicators),
            passenger_count=snapshot.passenger_count,
            property_damage=snapshot.property_damage,
            third_party_claimants=snapshot.third_party_claimants,
            telematics=snapshot.telematics,
        )


class SeverityScorer:
    """Weighted five-factor severity scorer.

    Typical usage:
        >>> scorer = SeverityScorer()
        >>> score = scorer.score(snapshot)
        >>> score.routing.destination
        <RoutingDestination.AUTO_APPROVAL: 'auto_approval'>
    """

    def __init__(self, config: SeverityConfig | None = None):
        self.config = config or SeverityConfig()

    def score(self, snapshot: ClaimSnapshot) -> SeverityScore:
        return self.score_input(SeverityInput.from_snapshot(snapshot))

    def score_input(self, inp: SeverityInput) -> SeverityScore:
        cfg = self.config
        damage = self.damage_score(inp)
        injury = self.injury_score(inp)
        complexity = self.complexity_score(inp)
        risk = self.risk_score(inp)
        litigation = self.litigation_score(inp)

        overall = clamp_score(
            damage * cfg.weight_damage
            + injury * cfg.weight_injury
            + complexity * cfg.weight_complexity
            + risk * cfg.weight_risk
            + litigation * cfg.weight_litigation
        )

        risk_factors = self._identify_risk_factors(inp)
        level = self._complexity_level(overall, risk_factors)
        flags = self._generate_flags(inp)
        reasons = self._escalation_reasons(inp, overall, flags)
        escalated = bool(reasons)
        routing = self._routing(inp, overall, level, escalated)

        result = SeverityScore(
            claim_id=inp.claim_id,
            overall_score=overall,
            damage_score=damage,
            injury_score=injury,
            complexity_score=complexity,
            risk_score=risk,
            litigation_score=litigation,
            complexity_level=level,
            risk_factors=risk_factors,
            flags=flags,
            routing=routing,
            escalation_required=escalated,
            escalation_reasons=reasons,
            estimated_cycle_time_hours=self._cycle_time(level, escalated),
            required_reviews=self._required_reviews(inp, flags),
            priority_level=self._priority(overall, escalated, flags),
            confidence=self._confidence(inp),
        )

        logger.info(
            "Severity for %s: score=%d level=%s route=%s escalate=%s",
            inp.claim_id,
            overall,
            level.value,
            routing.destination.value,
            escalated,
        )
        return result

    # ------------------------------------------------------------------
    # Sub-scores
    # ------------------------------------------------------------------

    @staticmethod
    def damage_score(inp: SeverityInput) -> int:
        amount = inp.estimated_damage
        if amount <= 1000:
            score = 10
        elif amount <= 2500:
            score = 25
        elif amount <= 5000:
            score = 40
        elif amount <= 10000:
            score = 60
        elif amount <= 25000:
            score = 80
        else:
            score = 95

        if inp.total_loss_indicator:
            score = max(score, 85)
        if inp.airbag_deployed:
            score += 15

        if inp.vehicle_value > 0:
            ratio = amount / inp.vehicle_value
            if ratio > 0.75:
                score += 20
            elif ratio > 0.50:
                score += 15
            elif ratio > 0.25:
                score += 10

        return min(score, 100)

    @staticmethod
    def injury_score(inp: SeverityInput) -> int:
        if not inp.injury_reported:
            return 0

        if inp.injury_severity == "fatal":
            score = 100
        else:
            score = 30 + {"minor": 20, "moderate": 50, "severe": 80}.get(inp.injury_severity, 30)

        score += min(inp.passenger_count * 10, 30)
        if inp.airbag_deployed:
            score += 10
        return min(score, 100)

    @staticmethod
    def complexity_score(inp: SeverityInput) -> int:
        score = 0
        if inp.vehicle_count > 1:
            score += 20
        if inp.vehicle_count > 2:
            score += 30
        if inp.vehicle_count > 4:
            score += 50
        if inp.commercial:
            score += 25
        score += min(inp.third_party_claimants * 15, 45)
        if inp.property_damage:
            score += 15
        if inp.prior_claims > 2:
            score += 10
        if inp.prior_claims > 4:
            score += 20
        return min(score, 100)

    @staticmethod
    def risk_score(inp: SeverityInput) -> int:
        score = 0
        if inp.telematics is not None:
            speed = inp.telematics.speed_at_impact or 0.0
            if speed > 50:
                score += 30
            elif speed > 35:
                score += 20
            if inp.telematics.harsh_braking:
                score += 15
            if inp.telematics.sudden_acceleration:
                score += 10

        if inp.vehicle_value > 75000:
            score += 20
        elif inp.vehicle_value > 50000:
            score += 15
        elif inp.vehicle_value > 35000:
            score += 10

        if inp.vehicle_age is not None and inp.vehicle_age <= 3 and inp.estimated_damage > 1000:
            score += 25
        if inp.claim_type is ClaimType.LIABILITY:
            score += 15
        return min(score, 100)

    @staticmethod
    def litigation_score(inp: SeverityInput) -> int:
        score = len(inp.litigation_indicators) * 30
        if any("attorney" in indicator.lower() for indicator in inp.litigation_indicators):
            score = 100
        if inp.injury_severity in ("severe", "fatal"):
            score += 40
        return min(score, 100)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @staticmethod
    def _identify_risk_factors(inp: SeverityInput) -> list[RiskFactor]:
        factors = []
        if inp.injury_reported:
            severity = {"fatal": Severity.CRITICAL, "severe": Severity.HIGH}.get(inp.injury_severity, Severity.MEDIUM)
            factors.append(
                RiskFactor(
                    factor="Bodily Injury",
                    severity=severity,
                    description=f"{inp.injury_severity or 'unspecified'} injury reported with "
                    f"{inp.passenger_count} passengers",
                )
            )
        if inp.total_loss_indicator:
            factors.append(
                RiskFactor(factor="Total Loss", severity=Severity.HIGH, description="Vehicle identified as likely total loss")
            )
        if inp.vehicle_count > 1:
            factors.append(
                RiskFactor(
                    factor="Multi-Vehicle Incident",
                    severity=Severity.HIGH if inp.vehicle_count > 3 else Severity.MEDIUM,
                    description=f"{inp.vehicle_count} vehicles involved",
                )
            )
        if inp.commercial:
            factors.append(
                RiskFactor(
                    factor="Commercial Auto",
                    severity=Severity.HIGH,
                    description="Commercial vehicle claim with additional requirements",
                )
            )
        if inp.litigation_indicators:
            factors.append(
                RiskFactor(
                    factor="Litigation Risk",
                    severity=Severity.CRITICAL,
                    description=f"{len(inp.litigation_indicators)} litigation indicators identified",
                )
            )
        return factors

    def _complexity_level(self, score: int, risk_factors: list[RiskFactor]) -> ComplexityLevel:
        cfg = self.config
        if any(f.severity is Severity.CRITICAL for f in risk_factors) or score >= cfg.critical_score_threshold:
            return ComplexityLevel.CRITICAL
        if score >= cfg.complex_score_threshold:
            return ComplexityLevel.COMPLEX
        if score >= cfg.moderate_score_threshold:
            return ComplexityLevel.MODERATE
        return ComplexityLevel.SIMPLE

    def _generate_flags(self, inp: SeverityInput) -> list[SeverityFlag]:
        flags = []
        if inp.total_loss_indicator:
            flags.append(SeverityFlag(type="total_loss", level=FlagLevel.ALERT, message="Vehicle identified as total loss"))
        if inp.injury_reported:
            level = {"fatal": FlagLevel.CRITICAL, "severe": FlagLevel.ALERT}.get(inp.injury_severity, FlagLevel.WARNING)
            flags.append(
                SeverityFlag(
                    type="bodily_injury",
                    level=level,
                    message=f"{(inp.injury_severity or 'unspecified').capitalize()} bodily injury reported",
                )
            )
        if inp.vehicle_count > 1:
            flags.append(
                SeverityFlag(
                    type="multi_vehicle",
                    level=FlagLevel.ALERT if inp.vehicle_count > 3 else FlagLevel.WARNING,
                    message=f"{inp.vehicle_count} vehicles involved",
                )
            )
        if inp.commercial:
            flags.append(
                SeverityFlag(
                    type="commercial",
                    level=FlagLevel.ALERT,
                    message="Commercial auto claim requires specialized handling",
                )
            )
        if inp.litigation_indicators:
            flags.append(
                SeverityFlag(type="litigation", level=FlagLevel.CRITICAL, message="Litigation indicators present")
            )
        if (
            inp.vehicle_age is not None
            and inp.vehicle_age <= self.config.sensor_zone_max_vehicle_age
            and inp.estimated_damage > self.config.sensor_zone_min_damage
        ):
            flags.append(
                SeverityFlag(type="sensor_zone", level=FlagLevel.WARNING, message="Modern vehicle may have ADAS damage")
            )
        return flags

    def _escalation_reasons(self, inp: SeverityInput, score: int, flags: list[SeverityFlag]) -> list[str]:
        cfg = self.config
        reasons = []
        if score >= cfg.critical_score_threshold:
            reasons.append("Overall severity score exceeds critical threshold")
        if inp.injury_severity == "fatal":
            reasons.append("Fatality involved")
        if inp.litigation_indicators:
            reasons.append("Litigation indicators present")
        if inp.estimated_damage > cfg.auto_approval_ceiling * cfg.escalation_value_multiplier:
            reasons.append("Claim value significantly exceeds limits")
        if sum(1 for f in flags if f.level is FlagLevel.CRITICAL) >= cfg.critical_flag_escalation_count:
            reasons.append("Multiple critical risk factors")
        return reasons

    def _routing(
        self, inp: SeverityInput, score: int, level: ComplexityLevel, escalated: bool
    ) -> RoutingRecommendation:
        if escalated:
            return RoutingRecommendation(
                destination=RoutingDestination.LEGAL_REVIEW
                if inp.litigation_indicators
                else RoutingDestination.SENIOR_ADJUSTER,
                reason="Critical severity requires senior review",
                priority=Severity.CRITICAL,
            )
        if inp.total_loss_indicator:
            return RoutingRecommendation(
                destination=RoutingDestination.SPECIALIST,
                reason="Total loss requires salvage specialist",
                priority=Severity.HIGH,
            )
        if inp.injury_reported:
            return RoutingRecommendation(
                destination=RoutingDestination.SENIOR_ADJUSTER
                if inp.injury_severity == "severe"
                else RoutingDestination.STANDARD_ADJUSTER,
                reason="Bodily injury requires human assessment",
                priority=Severity.HIGH,
            )
        if (
            score <= self.config.moderate_score_threshold
            and level is ComplexityLevel.SIMPLE
            and inp.estimated_damage <= self.config.auto_approval_ceiling
            and inp.vehicle_count == 1
            and not inp.commercial
        ):
            return RoutingRecommendation(
                destination=RoutingDestination.AUTO_APPROVAL,
                reason="Low complexity eligible for automation",
                priority=Severity.LOW,
            )
        return RoutingRecommendation(
            destination=RoutingDestination.STANDARD_ADJUSTER,
            reason="Standard complexity requires review",
            priority=Severity.MEDIUM,
        )

    @staticmethod
    def _cycle_time(level: ComplexityLevel, escalated: bool) -> int:
        if escalated:
            return 72
        return {
            ComplexityLevel.SIMPLE: 4,
            ComplexityLevel.MODERATE: 24,
            ComplexityLevel.COMPLEX: 48,
            ComplexityLevel.CRITICAL: 72,
        }[level]

    @staticmethod
    def _required_reviews(inp: SeverityInput, flags: list[SeverityFlag]) -> list[str]:
        reviews = []
        if inp.injury_reported:
            reviews.append("Medical Review")
        if inp.total_loss_indicator:
            reviews.append("Total Loss Valuation")
        if inp.litigation_indicators:
            reviews.append("Legal Review")
        if inp.commercial:
            reviews.append("Commercial Lines Review")
        if any(f.type == "sensor_zone" for f in flags):
            reviews.append("ADAS Calibration Review")
        if inp.third_party_claimants > 0:
            reviews.append("Liability Assessment")
        return reviews

    def _priority(self, score: int, escalated: bool, flags: list[SeverityFlag]) -> Severity:
        if escalated or any(f.level is FlagLevel.CRITICAL for f in flags):
            return Severity.CRITICAL
        if score >= self.config.critical_score_threshold:
            return Severity.CRITICAL
        if score >= self.config.complex_score_threshold:
            return Severity.HIGH
        if score >= self.config.moderate_score_threshold:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def _confidence(inp: SeverityInput) -> int:
        confidence = 100
        if inp.injury_reported and not inp.injury_severity:
            confidence -= 15
        if inp.telematics is None:
            confidence -= 10
        if inp.estimated_damage == 0:
            confidence -= 20
        if inp.vehicle_value == 0:
            confidence -= 10
        if inp.telematics is not None:
            confidence += 5
        return clamp_score(confidence)

    # ------------------------------------------------------------------
    # Escalation
    # ------------------------------------------------------------------

    def escalation_triggers(self, score: SeverityScore, snapshot: ClaimSnapshot) -> list[EscalationTrigger]:
        triggers = []
        if score.escalation_required:
            triggers.append(
                EscalationTrigger(
                    type=TriggerType.SEVERITY_ESCALATION,
                    reason="; ".join(score.escalation_reasons),
                    severity=Severity.CRITICAL if score.priority_level is Severity.CRITICAL else Severity.HIGH,
                    stage=STAGE_NAME,
                    details={"overall_score": score.overall_score, "routing": score.routing.destination.value},
                )
            )
        if snapshot.injury_reported:
            triggers.append(
                EscalationTrigger(
                    type=TriggerType.BODILY_INJURY,
                    reason=f"{snapshot.injury_severity or 'Unspecified'} bodily injury reported",
                    severity=Severity.CRITICAL if snapshot.injury_severity == "fatal" else Severity.MEDIUM,
                    stage=STAGE_NAME,
                )
            )
        if any(f.type == "sensor_zone" for f in score.flags):
            triggers.append(
                EscalationTrigger(
                    type=TriggerType.SENSOR_CALIBRATION,
                    reason="Modern vehicle may need ADAS sensor calibration",
                    severity=Severity.LOW,
                    stage=STAGE_NAME,
                )
            )
        return triggers
