"""Valuation and total-loss determination (phase 3).

Actual cash value (ACV) starts from the insured vehicle's pre-loss value and
is adjusted for mileage and branded titles. A vehicle is a total loss when
the repair cost reaches the jurisdiction's share of ACV, or when the claim
arrives already flagged as one.
"""

from __future__ import annotations

import logging

import numpy as np

from claims_decisioning.config import EvaluationConfig

from .assessments import EscalationTrigger, Severity, TriggerType, ValuationResult
from .jurisdiction import JurisdictionLookup, lookup_jurisdiction
from .schema import ClaimSnapshot
from .utils import format_currency

logger = logging.getLogger(__name__)

STAGE_NAME = "valuation"


class ValuationSpecialist:
    def __init__(self, config: EvaluationConfig | None = None):
        self.config = config or EvaluationConfig()

    def value(self, snapshot: ClaimSnapshot, jurisdiction: JurisdictionLookup | None = None) -> ValuationResult:
        """Compute ACV, total-loss status and the net settlement for ``snapshot``."""
        jurisdiction = jurisdiction or lookup_jurisdiction(snapshot.jurisdiction)
        threshold = jurisdiction.rule.total_loss_threshold

        acv, adjustments = self._actual_cash_value(snapshot)
        repair_cost = snapshot.estimated_damage

        reason = None
        if snapshot.total_loss_indicator:
            reason = "Claim reported as total loss"
        elif acv > 0 and repair_cost >= acv * threshold:
            reason = (
                f"Repair cost {format_currency(repair_cost)} reaches {threshold:.0%} of ACV "
                f"{format_currency(acv)}"
            )
        total_loss = reason is not None

        deductible = snapshot.policy.deductible
        salvage = round(acv * self.config.salvage_ratio, 2) if total_loss else 0.0
        # Carrier retains salvage; the owner receives ACV less deductible
        gross = acv if total_loss else repair_cost
        net = max(0.0, round(gross - deductible, 2))

        confidence = 0.85 if repair_cost > 0 and acv > 0 else 0.65

        if total_loss:
            logger.info("Total loss for %s: %s", snapshot.claim_id, reason)
        return ValuationResult(
            claim_id=snapshot.claim_id,
            actual_cash_value=acv,
            repair_cost=repair_cost,
            total_loss_threshold=threshold,
            total_loss=total_loss,
            total_loss_reason=reason,
            salvage_value=salvage,
            deductible=deductible,
            net_settlement=net,
            adjustments=adjustments,
            confidence=confidence,
        )

    def _actual_cash_value(self, snapshot: ClaimSnapshot) -> tuple[float, list[str]]:
        vehicle = snapshot.insured_vehicle
        if vehicle is None or vehicle.value <= 0:
            return 0.0, ["No vehicle value on file"]

        cfg = self.config
        base = vehicle.value
        adjustments = []
        acv = base

        reference = snapshot.loss_date or snapshot.reported_date
        age = snapshot.vehicle_age(reference)
        if vehicle.mileage is not None and age is not None:
            expected = max(age, 1) * cfg.mileage_per_year
            raw = (expected - vehicle.mileage) * cfg.mileage_adjustment_per_mile
            limit = base * cfg.max_mileage_adjustment_ratio
            mileage_adj = float(np.clip(raw, -limit, limit))
            if mileage_adj:
                acv += mileage_adj
                adjustments.append(
                    f"Mileage {vehicle.mileage:,} vs expected {expected:,}: {format_currency(mileage_adj)}"
                )

        if vehicle.title_status != "clean":
            discount = base * cfg.branded_title_discount
            acv -= discount
            adjustments.append(f"{vehicle.title_status.capitalize()} title: -{format_currency(discount)}")

        return round(max(acv, 0.0), 2), adjustments

    def escalation_triggers(self, result: ValuationResult) -> list[EscalationTrigger]:
        if not result.total_loss:
            return []
        return [
            EscalationTrigger(
                type=TriggerType.TOTAL_LOSS,
                reason=result.total_loss_reason or "Total loss",
                severity=Severity.HIGH,
                stage=STAGE_NAME,
                details={"acv": result.actual_cash_value, "repair_cost": result.repair_cost},
            )
        ]
