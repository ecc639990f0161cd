"""Liability Assessment for Insurance Claims.

Derives the fault split between the insured and counterparties from weighted
evidentiary indicators, then applies the jurisdiction's comparative
negligence regime to compute recovery and subrogation potential.

Indicator sources:
- Police report (citation, fault determination)
- Damage geometry (rear-end / front-end patterns)
- Other-driver statements (admissions, blame)
- Traffic-violation keywords in the loss description
- Witness statement tally
"""

from __future__ import annotations

import logging

import numpy as np

from claims_decisioning.config import LiabilityConfig

from .assessments import (
    EscalationTrigger,
    FaultIndicator,
    FavoredParty,
    LiabilityAssessment,
    LiabilityType,
    Severity,
    TriggerType,
)
from .jurisdiction import JurisdictionLookup, lookup_jurisdiction
from .schema import ClaimSnapshot, Participant
from .utils import contains_any, round_half_up

logger = logging.getLogger(__name__)

STAGE_NAME = "liability_assessment"

_REAR_KEYWORDS = ("rear", "taillight", "trunk")
_FRONT_KEYWORDS = ("front", "hood", "headlight")
_ADMISSION_KEYWORDS = ("my fault", "i caused", "i hit")
_BLAME_KEYWORDS = ("their fault", "they hit", "they caused")

# (factor, keywords, weight)
_VIOLATIONS = (
    ("Red light violation", ("ran red light", "red light violation"), 0.85),
    ("Stop sign violation", ("ran stop sign", "stop sign violation"), 0.8),
    ("Speeding violation", ("speeding", "excessive speed"), 0.6),
    ("Driving under influence", ("dui", "intoxicated", "drunk"), 0.95),
    ("Distracted driving", ("phone", "texting", "distracted"), 0.7),
)

_CONTRIBUTING_FACTORS = (
    (("weather", "rain", "snow"), "Adverse weather conditions"),
    (("night", "dark", "visibility"), "Low visibility conditions"),
    (("construction", "road work"), "Road construction zone"),
    (("intersection",), "Intersection collision"),
    (("parking lot",), "Parking lot incident"),
    (("highway", "freeway"), "Highway/freeway collision"),
)


class LiabilityAssessor:
    """Weighted-indicator liability engine.

    Typical usage:
        >>> assessor = LiabilityAssessor()
        >>> assessment = assessor.assess(snapshot)
        >>> assessment.insured_liability + assessment.other_party_liability
        100
    """

    def __init__(self, config: LiabilityConfig | None = None):
        self.config = config or LiabilityConfig()

    def assess(self, snapshot: ClaimSnapshot, jurisdiction: JurisdictionLookup | None = None) -> LiabilityAssessment:
        """Assess the liability split for ``snapshot``.

        Args:
            snapshot: Claim snapshot.
            jurisdiction: Pre-resolved jurisdiction lookup (resolved from the
                snapshot when omitted).

        Returns:
            LiabilityAssessment whose two percentages sum to 100.
        """
        jurisdiction = jurisdiction or lookup_jurisdiction(snapshot.jurisdiction)
        regime = jurisdiction.rule.negligence_regime

        indicators = self.gather_fault_indicators(snapshot)
        insured, other = self.calculate_split(indicators)
        liability_type = self.classify(insured, other)

        amount = snapshot.estimated_damage
        applicable = regime.allows_recovery(insured)
        recovery = float(round_half_up(amount * other / 100.0)) if applicable else 0.0
        subrogation = self._evaluate_subrogation(other, amount, snapshot)

        assessment = LiabilityAssessment(
            claim_id=snapshot.claim_id,
            insured_liability=insured,
            other_party_liability=other,
            liability_type=liability_type,
            fault_indicators=indicators,
            contributing_factors=self._contributing_factors(snapshot),
            comparative_negligence_applicable=applicable,
            state_rule=regime,
            jurisdiction_default_applied=jurisdiction.default_applied,
            recovery_potential=recovery,
            subrogation_recommended=subrogation,
            recommendations=self._recommendations(insured, other, liability_type, subrogation),
            confidence=self._confidence(indicators, snapshot),
        )

        logger.info(
            "Liability for %s: insured=%d%% other=%d%% type=%s regime=%s",
            snapshot.claim_id,
            insured,
            other,
            liability_type.value,
            regime.value,
        )
        return assessment

    # ------------------------------------------------------------------
    # Indicators
    # ------------------------------------------------------------------

    def gather_fault_indicators(self, snapshot: ClaimSnapshot) -> list[FaultIndicator]:
        indicators: list[FaultIndicator] = []
        indicators.extend(self._check_police_report(snapshot))
        indicators.extend(self._check_damage_geometry(snapshot))
        indicators.extend(self._check_statements(snapshot.participants_with_role("other_driver")))
        indicators.extend(self._check_violations(snapshot.loss_description))
        indicators.extend(self._check_witnesses(snapshot.participants_with_role("witness")))
        return indicators

    def _check_police_report(self, snapshot: ClaimSnapshot) -> list[FaultIndicator]:
        if not snapshot.has_police_report:
            return []
        report = snapshot.police_report
        indicators = []

        if report.citation_party == "other":
            indicators.append(
                FaultIndicator("Citation issued to other party", 0.8, FavoredParty.INSURED, "Police Report")
            )
        elif report.citation_party == "insured":
            indicators.append(
                FaultIndicator("Citation issued to insured", 0.8, FavoredParty.OTHER_PARTY, "Police Report")
            )

        if report.fault_determination is not None:
            favored = {
                "other": FavoredParty.INSURED,
                "insured": FavoredParty.OTHER_PARTY,
                "shared": FavoredParty.NEUTRAL,
            }[report.fault_determination]
            indicators.append(
                FaultIndicator(
                    f"Police determined fault: {report.fault_determination}", 0.7, favored, "Police Report"
                )
            )
        return indicators

    def _check_damage_geometry(self, snapshot: ClaimSnapshot) -> list[FaultIndicator]:
        components = [item.component for item in snapshot.damage_items]
        has_rear = any(contains_any(c, _REAR_KEYWORDS) for c in components)
        has_front = any(contains_any(c, _FRONT_KEYWORDS) for c in components)

        if has_rear and not has_front:
            return [
                FaultIndicator(
                    "Rear-end damage pattern suggests insured was struck from behind",
                    0.7,
                    FavoredParty.INSURED,
                    "Damage Analysis",
                )
            ]
        if has_front and snapshot.counterparty_damage_location == "rear":
            return [
                FaultIndicator(
                    "Front-end damage with other vehicle rear damage suggests insured at fault",
                    0.7,
                    FavoredParty.OTHER_PARTY,
                    "Damage Analysis",
                )
            ]
        return []

    def _check_statements(self, other_drivers: list[Participant]) -> list[FaultIndicator]:
        indicators = []
        for participant in other_drivers:
            if not participant.statement:
                continue
            if contains_any(participant.statement, _ADMISSION_KEYWORDS):
                indicators.append(
                    FaultIndicator(
                        "Other party admission of fault in statement", 0.9, FavoredParty.INSURED, "Participant Statement"
                    )
                )
            if contains_any(participant.statement, _BLAME_KEYWORDS):
                indicators.append(
                    FaultIndicator("Other party blames insured", 0.3, FavoredParty.OTHER_PARTY, "Participant Statement")
                )
        return indicators

    def _check_violations(self, description: str | None) -> list[FaultIndicator]:
        if not description:
            return []
        # A violation attributed to the "other" driver favors the insured
        favored = FavoredParty.INSURED if "other" in description.lower() else FavoredParty.OTHER_PARTY
        return [
            FaultIndicator(factor, weight, favored, "Loss Description")
            for factor, keywords, weight in _VIOLATIONS
            if contains_any(description, keywords)
        ]

    def _check_witnesses(self, witnesses: list[Participant]) -> list[FaultIndicator]:
        def blames(statement: str | None, party: str) -> bool:
            return contains_any(statement, (party,)) and contains_any(statement, ("fault", "caused"))

        favor_insured = sum(1 for w in witnesses if blames(w.statement, "other driver"))
        favor_other = sum(1 for w in witnesses if blames(w.statement, "insured"))

        if favor_insured > favor_other:
            return [
                FaultIndicator(
                    f"{favor_insured} witness(es) support insured's account",
                    0.5 + favor_insured * 0.1,
                    FavoredParty.INSURED,
                    "Witness Statements",
                )
            ]
        if favor_other > favor_insured:
            return [
                FaultIndicator(
                    f"{favor_other} witness(es) support other party's account",
                    0.5 + favor_other * 0.1,
                    FavoredParty.OTHER_PARTY,
                    "Witness Statements",
                )
            ]
        return []

    # ------------------------------------------------------------------
    # Split and classification
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_split(indicators: list[FaultIndicator]) -> tuple[int, int]:
        """Return ``(insured, other)`` percentages summing to 100.

        Weight favoring the other party is evidence against the insured, so
        the insured's share is the other-party-favoring weight over the total.
        Neutral weight is split evenly. No indicators means 50/50.
        """
        total_weight = sum(ind.weight for ind in indicators)
        if not indicators or total_weight == 0:
            return 50, 50

        against_insured = 0.0
        for ind in indicators:
            if ind.favored_party is FavoredParty.OTHER_PARTY:
                against_insured += ind.weight
            elif ind.favored_party is FavoredParty.NEUTRAL:
                against_insured += ind.weight / 2

        insured = int(np.clip(round_half_up(against_insured / total_weight * 100.0), 0, 100))
        return insured, 100 - insured

    def classify(self, insured: int, other: int) -> LiabilityType:
        if insured == 0 or other == 0:
            return LiabilityType.CLEAR
        if abs(insured - other) < self.config.disputed_margin:
            return LiabilityType.DISPUTED
        return LiabilityType.SHARED

    def _evaluate_subrogation(self, other: int, amount: float, snapshot: ClaimSnapshot) -> bool:
        if other < self.config.subrogation_min_other_fault:
            return False
        if amount < self.config.subrogation_min_amount:
            return False
        if any(p.insurance_company for p in snapshot.participants_with_role("other_driver")):
            return True
        return other >= self.config.subrogation_fault_without_insurer

    @staticmethod
    def _contributing_factors(snapshot: ClaimSnapshot) -> list[str]:
        return [label for keywords, label in _CONTRIBUTING_FACTORS if contains_any(snapshot.loss_description, keywords)]

    def _confidence(self, indicators: list[FaultIndicator], snapshot: ClaimSnapshot) -> float:
        confidence = 0.5
        confidence += min(len(indicators) * 0.05, 0.2)
        confidence += 0.05 * sum(1 for ind in indicators if ind.weight > 0.7)
        if snapshot.has_police_report:
            confidence += 0.1
        if snapshot.participants_with_role("witness"):
            confidence += 0.05
        return round(min(confidence, self.config.max_confidence), 4)

    @staticmethod
    def _recommendations(insured: int, other: int, liability_type: LiabilityType, subrogation: bool) -> list[str]:
        recommendations = []
        if liability_type is LiabilityType.CLEAR and other == 100:
            recommendations.append("Clear liability on other party - proceed with claim payment")
            if subrogation:
                recommendations.append("Initiate subrogation against other party insurer")
        elif liability_type is LiabilityType.CLEAR and insured == 100:
            recommendations.append("Insured appears at fault - review for collision coverage")
        elif liability_type is LiabilityType.SHARED:
            recommendations.append(f"Shared liability ({insured}/{other}) - apply comparative negligence")
        elif liability_type is LiabilityType.DISPUTED:
            recommendations.append("Liability is disputed - gather additional evidence")
            recommendations.append("Consider independent investigation")

        if subrogation:
            recommendations.append("Subrogation recovery potential exists")
        return recommendations

    # ------------------------------------------------------------------
    # Escalation
    # ------------------------------------------------------------------

    def escalation_triggers(self, assessment: LiabilityAssessment, snapshot: ClaimSnapshot) -> list[EscalationTrigger]:
        triggers = []
        if assessment.liability_type is LiabilityType.DISPUTED:
            triggers.append(
                EscalationTrigger(
                    type=TriggerType.LIABILITY_DISPUTE,
                    reason="Liability determination is disputed",
                    severity=Severity.MEDIUM,
                    stage=STAGE_NAME,
                    details={"insured": assessment.insured_liability, "other": assessment.other_party_liability},
                )
            )
        if assessment.insured_liability > self.config.high_liability_threshold and snapshot.is_third_party:
            triggers.append(
                EscalationTrigger(
                    type=TriggerType.HIGH_LIABILITY,
                    reason=f"Insured may be {assessment.insured_liability}% at fault",
                    severity=Severity.HIGH,
                    stage=STAGE_NAME,
                )
            )
        return triggers
