"""Reserve analysis (phase 3).

Estimates the money to set aside for the claim as min / max / recommended
ranges per cost line, scaled by a state cost-of-claims factor.
"""

from __future__ import annotations

import logging

import numpy as np

from claims_decisioning.config import EvaluationConfig

from .assessments import EscalationTrigger, ReserveAnalysis, ReserveLine, Severity, TriggerType
from .schema import ClaimSnapshot, ClaimType, DamageItem
from .utils import format_currency, round_half_up

logger = logging.getLogger(__name__)

STAGE_NAME = "reserve_analysis"

STATE_COST_FACTORS = {
    # High-cost states
    "CA": 1.25, "NY": 1.20, "FL": 1.15, "TX": 1.10, "IL": 1.10, "NJ": 1.15, "MA": 1.12, "PA": 1.08,
    # Low-cost states
    "WV": 0.85, "MS": 0.88, "AR": 0.90, "AL": 0.92, "OK": 0.93,
}

# (min, max) multiples of the base injury cost
INJURY_SEVERITY_FACTORS = {
    "minor": (1.0, 1.5),
    "moderate": (1.5, 3.0),
    "severe": (7.0, 15.0),
    "fatal": (15.0, 30.0),
}
BASE_INJURY_COST = 5000.0


def _severity_multiplier(items: list[DamageItem]) -> float:
    severities = {item.severity for item in items}
    if "total_loss" in severities:
        return 1.0
    if "severe" in severities:
        return 1.3
    if "major" in severities:
        return 1.2
    if "moderate" in severities:
        return 1.15
    return 1.1


def _estimate_repair_days(items: list[DamageItem]) -> int:
    if not items:
        return 5
    days = len(items) * 2
    if any(item.severity in ("severe", "major", "total_loss") for item in items):
        days *= 2
    return min(max(days, 3), 30)


class ReserveAnalyst:
    def __init__(self, config: EvaluationConfig | None = None):
        self.config = config or EvaluationConfig()

    def analyze(self, snapshot: ClaimSnapshot) -> ReserveAnalysis:
        lines = [self._damage_line(snapshot)]
        if snapshot.injury_reported:
            lines.append(self._injury_line(snapshot))
        lines.extend(self._additional_lines(snapshot))

        factor = STATE_COST_FACTORS.get(snapshot.jurisdiction or "", 1.0)
        total_min = float(round_half_up(sum(line.minimum for line in lines) * factor))
        total_max = float(round_half_up(sum(line.maximum for line in lines) * factor))
        total_recommended = float(round_half_up(sum(line.recommended for line in lines) * factor))
        confidence = float(np.mean([line.confidence for line in lines]))

        if total_recommended <= self.config.adjuster_authority:
            authority = "adjuster"
        elif total_recommended <= self.config.supervisor_authority:
            authority = "supervisor"
        else:
            authority = "manager"

        analysis = ReserveAnalysis(
            claim_id=snapshot.claim_id,
            lines=lines,
            state_factor=factor,
            total_minimum=total_min,
            total_maximum=total_max,
            total_recommended=total_recommended,
            authority_level=authority,
            recommendations=self._recommendations(snapshot, total_recommended, confidence),
            confidence=round(confidence, 4),
        )
        logger.debug(
            "Reserve for %s: recommended=%s authority=%s",
            snapshot.claim_id,
            format_currency(total_recommended),
            authority,
        )
        return analysis

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    @staticmethod
    def _damage_line(snapshot: ClaimSnapshot) -> ReserveLine:
        items = snapshot.damage_items
        total = snapshot.estimated_damage
        if not items and total <= 0:
            return ReserveLine(
                category="damage",
                minimum=0.0,
                maximum=5000.0,
                recommended=2500.0,
                confidence=0.5,
                basis="No damage assessment available; using average collision damage",
            )

        multiplier = _severity_multiplier(items)
        if items:
            with_cost = sum(1 for item in items if item.estimated_cost)
            confidence = 0.5 + min(len(items) * 0.05, 0.2) + with_cost / len(items) * 0.2 + 0.1
        else:
            confidence = 0.6
        return ReserveLine(
            category="damage",
            minimum=float(round_half_up(total * 0.9)),
            maximum=float(round_half_up(total * multiplier)),
            recommended=float(round_half_up(total * (0.9 + multiplier) / 2)),
            confidence=round(min(confidence, 0.95), 4),
            basis=f"{len(items)} damaged components; base estimate {format_currency(total)}",
        )

    @staticmethod
    def _injury_line(snapshot: ClaimSnapshot) -> ReserveLine:
        low, high = INJURY_SEVERITY_FACTORS.get(snapshot.injury_severity or "moderate", INJURY_SEVERITY_FACTORS["moderate"])
        minimum = BASE_INJURY_COST * low
        maximum = BASE_INJURY_COST * high
        return ReserveLine(
            category="injury",
            minimum=minimum,
            maximum=maximum,
            recommended=float(round_half_up((minimum + maximum) / 2)),
            confidence=0.7,
            basis=f"{snapshot.injury_severity or 'unspecified'} bodily injury",
        )

    def _additional_lines(self, snapshot: ClaimSnapshot) -> list[ReserveLine]:
        lines = []
        if snapshot.rental_needed:
            days = _estimate_repair_days(snapshot.damage_items)
            rate = self.config.rental_daily_rate
            lines.append(
                ReserveLine(
                    category="rental",
                    minimum=days * rate * 0.8,
                    maximum=days * 1.5 * rate,
                    recommended=days * rate,
                    confidence=0.75,
                    basis=f"Estimated {days} days for repairs",
                )
            )
        if snapshot.towing_required:
            lines.append(
                ReserveLine(
                    category="towing",
                    minimum=150.0,
                    maximum=500.0,
                    recommended=300.0,
                    confidence=0.8,
                    basis="Standard towing and initial storage",
                )
            )
        if snapshot.claim_type is ClaimType.LIABILITY and snapshot.injury_reported:
            lines.append(
                ReserveLine(
                    category="legal",
                    minimum=5000.0,
                    maximum=25000.0,
                    recommended=10000.0,
                    confidence=0.6,
                    basis="Potential litigation defense costs",
                )
            )
        return lines

    def _recommendations(self, snapshot: ClaimSnapshot, recommended: float, confidence: float) -> list[str]:
        recommendations = []
        if confidence < 0.7:
            recommendations.append("Request additional documentation to improve reserve accuracy")
        if recommended > self.config.high_value_reserve:
            recommendations.append("Consider independent adjuster review for high-value claim")
        if snapshot.injury_reported:
            recommendations.append("Monitor medical treatment progress for reserve adjustments")
        if not snapshot.damage_items:
            recommendations.append("Obtain detailed damage estimate from body shop")
        recommendations.append("Schedule 30-day reserve review")
        return recommendations

    def escalation_triggers(self, analysis: ReserveAnalysis) -> list[EscalationTrigger]:
        if analysis.total_recommended <= self.config.adjuster_authority:
            return []
        return [
            EscalationTrigger(
                type=TriggerType.HIGH_RESERVE,
                reason=f"Reserve of {format_currency(analysis.total_recommended)} exceeds adjuster authority",
                severity=Severity.HIGH
                if analysis.total_recommended > self.config.supervisor_authority
                else Severity.MEDIUM,
                stage=STAGE_NAME,
            )
        ]
