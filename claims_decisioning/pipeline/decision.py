"""Decision policy and confidence aggregation (phase 7).

Precedence, first match wins:

1. run error or cancellation        -> escalate_human
2. fraud trigger or fraud >= SIU    -> siu_review
3. coverage failure                 -> draft_hold (denial recommended, never finalized)
4. any other trigger                -> escalate_human
5. auto-approval gate passes        -> auto_approve
6. otherwise                        -> escalate_human

The pipeline never denies a claim on its own. ``finalize_denial`` exists so
that callers who try get a ``PolicyViolation`` rather than a silent denial.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import numpy as np

from claims_decisioning.config import DecisionConfig
from claims_decisioning.exceptions import PolicyViolation
from claims_decisioning.insurance import fraud_detection, intake, severity, validator, valuation
from claims_decisioning.insurance.assessments import (
    ClaimDecision,
    DecisionType,
    EscalationTrigger,
    FinalValidation,
    FraudAssessment,
    IntakeResult,
    RoutingDestination,
    Severity,
    SeverityScore,
    TriggerType,
    ValuationResult,
)
from claims_decisioning.insurance.schema import ClaimSnapshot

from .protocols import StageOutcome
from .state import OrchestratorState

logger = logging.getLogger(__name__)

STAGE_NAME = "decision"


def aggregate_confidence(ledger: Mapping[str, StageOutcome]) -> float | None:
    """Mean of the recorded stage confidences; stages without one are skipped."""
    values = [outcome.confidence for outcome in ledger.values() if outcome.confidence is not None]
    if not values:
        return None
    return float(np.mean(values))


def _summarize_triggers(triggers: tuple[EscalationTrigger, ...], limit: int = 3) -> str:
    ranked = sorted(triggers, key=lambda t: t.severity.rank, reverse=True)
    reasons = [f"{t.type.value}: {t.reason}" for t in ranked[:limit]]
    if len(ranked) > limit:
        reasons.append(f"+{len(ranked) - limit} more")
    return "; ".join(reasons)


class DecisionPolicy:
    """Maps a completed ``OrchestratorState`` to a ``ClaimDecision``.

    Typical usage:
        >>> policy = DecisionPolicy()
        >>> state = state.add_triggers(*policy.additional_triggers(state))
        >>> decision = policy.decide(state, snapshot)
        >>> policy.enforce(decision, state)
    """

    def __init__(self, config: DecisionConfig | None = None):
        self.config = config or DecisionConfig()

    # ------------------------------------------------------------------
    # Ledger readers
    # ------------------------------------------------------------------

    @staticmethod
    def fraud_score(state: OrchestratorState) -> float | None:
        result = state.result(fraud_detection.STAGE_NAME)
        return result.fraud_score if isinstance(result, FraudAssessment) else None

    @staticmethod
    def coverage_failed(state: OrchestratorState) -> bool:
        """True when intake or final validation found the policy invalid for the loss."""
        intake_result = state.result(intake.STAGE_NAME)
        if isinstance(intake_result, IntakeResult) and not intake_result.policy_valid:
            return True
        final = state.result(validator.STAGE_NAME)
        if isinstance(final, FinalValidation):
            return any(c.name == "policy_validity" and not c.passed for c in final.checks)
        return False

    @staticmethod
    def estimated_value(state: OrchestratorState, snapshot: ClaimSnapshot | None) -> float | None:
        if snapshot is None:
            return None
        if snapshot.settlement_amount is not None:
            return snapshot.settlement_amount
        result = state.result(valuation.STAGE_NAME)
        if isinstance(result, ValuationResult):
            return result.net_settlement
        return snapshot.estimated_damage or None

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def additional_triggers(self, state: OrchestratorState) -> list[EscalationTrigger]:
        """Triggers raised by the decision phase itself."""
        if not self.coverage_failed(state):
            return []
        if any(t.type is TriggerType.COVERAGE_DISPUTE for t in state.triggers):
            return []
        return [
            EscalationTrigger(
                type=TriggerType.COVERAGE_DISPUTE,
                reason="Policy not in force for the loss; denial recommended",
                severity=Severity.HIGH,
                stage=STAGE_NAME,
            )
        ]

    def decide(self, state: OrchestratorState, snapshot: ClaimSnapshot | None = None) -> ClaimDecision:
        """Apply the precedence rules; ``snapshot`` is None when the record never parsed."""
        cfg = self.config
        confidence = aggregate_confidence(state.ledger)
        value = self.estimated_value(state, snapshot)

        def make(decision: DecisionType, reason: str) -> ClaimDecision:
            return ClaimDecision(
                claim_id=state.claim_id,
                decision=decision,
                reason=reason,
                confidence=round(float(np.clip(confidence or 0.0, 0.0, 1.0)), 4),
                estimated_value=value,
                trigger_types=tuple(dict.fromkeys(t.type for t in state.triggers)),
            )

        if state.cancelled:
            return make(DecisionType.ESCALATE_HUMAN, "Run cancelled before completion; manual handling required")
        if state.error is not None:
            return make(DecisionType.ESCALATE_HUMAN, f"Processing error: {state.error}")

        fraud = self.fraud_score(state)
        if state.has_fraud_trigger or (fraud is not None and fraud >= cfg.siu_threshold):
            return make(
                DecisionType.SIU_REVIEW,
                f"Referred to Special Investigations Unit (fraud score {fraud or 0:.0f})",
            )

        if self.coverage_failed(state):
            return make(DecisionType.DRAFT_HOLD, "Coverage denial recommended; held in draft for adjuster review")

        if state.triggers:
            return make(DecisionType.ESCALATE_HUMAN, f"Escalation required - {_summarize_triggers(state.triggers)}")

        blockers = self.auto_approval_blockers(state, confidence, fraud, value)
        if blockers:
            return make(DecisionType.ESCALATE_HUMAN, "Not eligible for auto-approval: " + "; ".join(blockers))
        return make(
            DecisionType.AUTO_APPROVE,
            f"All checks passed (confidence {confidence:.0%}, value {value or 0:,.2f})",
        )

    def auto_approval_blockers(
        self,
        state: OrchestratorState,
        confidence: float | None,
        fraud: float | None,
        value: float | None,
    ) -> list[str]:
        """Reasons the auto-approval gate is closed (empty when it is open)."""
        cfg = self.config
        blockers = []
        if value is None or value > cfg.auto_approval_ceiling:
            blockers.append(f"estimated value exceeds {cfg.auto_approval_ceiling:,.0f}")
        if confidence is None or confidence < cfg.min_confidence:
            blockers.append(f"confidence {confidence or 0:.0%} below {cfg.min_confidence:.0%}")
        if fraud is None or fraud >= cfg.fraud_pass_threshold:
            blockers.append("fraud screening not passed")

        final = state.result(validator.STAGE_NAME)
        if not isinstance(final, FinalValidation) or not final.approved:
            blockers.append("final validation not approved")

        if cfg.require_auto_routing:
            score = state.result(severity.STAGE_NAME)
            if not isinstance(score, SeverityScore) or score.routing.destination is not RoutingDestination.AUTO_APPROVAL:
                blockers.append("severity routing is not auto-approval")
        return blockers

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def enforce(self, decision: ClaimDecision, state: OrchestratorState) -> None:
        """Raise ``PolicyViolation`` if an auto-approval contradicts the ledger."""
        if decision.decision is not DecisionType.AUTO_APPROVE:
            return
        if state.triggers:
            raise PolicyViolation("no_skip_escalation", f"auto-approval of {state.claim_id} with open triggers")
        final = state.result(validator.STAGE_NAME)
        if not isinstance(final, FinalValidation) or not final.approved:
            raise PolicyViolation("validated_approval", f"auto-approval of {state.claim_id} without final validation")
        fraud = self.fraud_score(state)
        if fraud is None or fraud >= self.config.fraud_pass_threshold:
            raise PolicyViolation("fraud_clearance", f"auto-approval of {state.claim_id} without fraud clearance")

    @staticmethod
    def finalize_denial(claim_id: str) -> None:
        """Denials are always left to a human."""
        raise PolicyViolation("no_auto_denial", f"automated denial of claim {claim_id} is not permitted")
