"""Tests for the decision policy (phase 7).

Covers:
- Confidence aggregation over the ledger
- Decision precedence (error / cancel, SIU, draft hold, triggers, auto gate)
- Auto-approval blockers
- Coverage-dispute trigger
- ``enforce`` and ``finalize_denial`` guards
"""

import pytest

from claims_decisioning.config import DecisionConfig
from claims_decisioning.exceptions import PolicyViolation
from claims_decisioning.insurance.assessments import (
    ClaimDecision,
    DecisionType,
    EscalationTrigger,
    Severity,
    TriggerType,
)
from claims_decisioning.insurance.fraud_detection import FraudDetector
from claims_decisioning.insurance.intake import IntakeValidator
from claims_decisioning.insurance.severity import SeverityScorer
from claims_decisioning.insurance.validator import FinalValidator
from claims_decisioning.insurance.valuation import ValuationSpecialist
from claims_decisioning.pipeline.decision import DecisionPolicy, aggregate_confidence
from claims_decisioning.pipeline.protocols import StageOutcome
from claims_decisioning.pipeline.state import OrchestratorState
from claims_decisioning.tests.conftest import make_snapshot


def _trigger(trigger_type=TriggerType.BODILY_INJURY, severity=Severity.MEDIUM, reason="test"):
    return EscalationTrigger(type=trigger_type, reason=reason, severity=severity)


def _approvable_state(snapshot, *, fraud=True, final=True, extra_confidence=None):
    """Ledger with the stages the auto-approval gate reads, scored on ``snapshot``."""
    state = OrchestratorState(snapshot.claim_id)
    state = state.record(StageOutcome("intake_validation", IntakeValidator().validate(snapshot), 1.0))
    score = SeverityScorer().score(snapshot)
    state = state.record(StageOutcome("severity_scoring", score, score.confidence / 100))
    valuation = ValuationSpecialist().value(snapshot)
    state = state.record(StageOutcome("valuation", valuation, valuation.confidence))
    if fraud:
        assessment = FraudDetector().detect(snapshot)
        state = state.record(StageOutcome("fraud_detection", assessment, assessment.confidence))
    if final:
        result = FinalValidator().validate(snapshot, fraud_score=0.0)
        state = state.record(StageOutcome("final_validation", result, result.confidence / 100))
    if extra_confidence is not None:
        state = state.record(StageOutcome("extra", None, extra_confidence))
    return state


# ============================================================================
# TestAggregateConfidence
# ============================================================================


class TestAggregateConfidence:
    def test_empty_ledger(self):
        assert aggregate_confidence({}) is None

    def test_mean_skips_missing_confidences(self):
        ledger = {
            "a": StageOutcome("a", None, 1.0),
            "b": StageOutcome("b", None, 0.5),
            "c": StageOutcome("c", None),
        }
        assert aggregate_confidence(ledger) == pytest.approx(0.75)


# ============================================================================
# TestDecide
# ============================================================================


class TestDecide:
    def test_clean_ledger_auto_approves(self):
        snapshot = make_snapshot()
        state = _approvable_state(snapshot)
        decision = DecisionPolicy().decide(state, snapshot)

        assert decision.decision is DecisionType.AUTO_APPROVE
        assert decision.estimated_value == 300.0
        # intake 1.0, severity 0.9, valuation 0.85, fraud 0.85, final 1.0
        assert decision.confidence == pytest.approx(0.92)
        assert decision.trigger_types == ()
        assert decision.reason.startswith("All checks passed")

    def test_cancelled_run(self):
        decision = DecisionPolicy().decide(OrchestratorState("CLM-1").cancel())
        assert decision.decision is DecisionType.ESCALATE_HUMAN
        assert "cancelled" in decision.reason
        assert decision.confidence == 0.0
        assert decision.estimated_value is None

    def test_error_wins_over_everything(self):
        state = OrchestratorState("CLM-1").add_triggers(_trigger(TriggerType.FRAUD_DETECTED, Severity.CRITICAL))
        decision = DecisionPolicy().decide(state.short_circuit("severity_scoring: boom"))
        assert decision.decision is DecisionType.ESCALATE_HUMAN
        assert decision.reason == "Processing error: severity_scoring: boom"

    def test_fraud_trigger_routes_to_siu(self):
        snapshot = make_snapshot()
        state = _approvable_state(snapshot).add_triggers(_trigger(TriggerType.FRAUD_DETECTED, Severity.CRITICAL))
        decision = DecisionPolicy().decide(state, snapshot)
        assert decision.decision is DecisionType.SIU_REVIEW
        assert decision.trigger_types == (TriggerType.FRAUD_DETECTED,)

    def test_fraud_score_alone_routes_to_siu(self):
        snapshot = make_snapshot("fraud")
        state = _approvable_state(snapshot)
        decision = DecisionPolicy().decide(state, snapshot)
        assert decision.decision is DecisionType.SIU_REVIEW
        assert decision.reason == "Referred to Special Investigations Unit (fraud score 100)"

    def test_coverage_failure_is_draft_hold(self):
        """Even with triggers present, a policy problem holds a draft denial."""
        snapshot = make_snapshot("cancelled")
        state = _approvable_state(snapshot).add_triggers(_trigger(TriggerType.VALIDATION_FAILURE, Severity.HIGH))
        decision = DecisionPolicy().decide(state, snapshot)
        assert decision.decision is DecisionType.DRAFT_HOLD

    def test_triggers_escalate(self):
        snapshot = make_snapshot()
        state = _approvable_state(snapshot).add_triggers(
            _trigger(reason="Moderate injury"),
            _trigger(TriggerType.TOTAL_LOSS, Severity.HIGH, reason="Totaled"),
        )
        decision = DecisionPolicy().decide(state, snapshot)
        assert decision.decision is DecisionType.ESCALATE_HUMAN
        # Highest severity first
        assert decision.reason == (
            "Escalation required - total_loss: Totaled; bodily_injury: Moderate injury"
        )

    def test_trigger_summary_is_truncated(self):
        snapshot = make_snapshot()
        state = _approvable_state(snapshot).add_triggers(*[_trigger() for _ in range(5)])
        decision = DecisionPolicy().decide(state, snapshot)
        assert decision.reason.endswith("+2 more")
        assert decision.trigger_types == (TriggerType.BODILY_INJURY,)


# ============================================================================
# TestAutoApprovalGate
# ============================================================================


class TestAutoApprovalGate:
    def test_value_above_ceiling(self):
        snapshot = make_snapshot(settlement_amount=3000.0)
        decision = DecisionPolicy().decide(_approvable_state(snapshot), snapshot)
        assert decision.decision is DecisionType.ESCALATE_HUMAN
        assert decision.estimated_value == 3000.0
        assert "estimated value exceeds 2,500" in decision.reason

    def test_low_confidence(self):
        snapshot = make_snapshot()
        decision = DecisionPolicy().decide(_approvable_state(snapshot, extra_confidence=0.0), snapshot)
        assert decision.decision is DecisionType.ESCALATE_HUMAN
        assert "below 80%" in decision.reason

    def test_missing_fraud_score_blocks(self):
        snapshot = make_snapshot()
        decision = DecisionPolicy().decide(_approvable_state(snapshot, fraud=False), snapshot)
        assert decision.decision is DecisionType.ESCALATE_HUMAN
        assert "fraud screening not passed" in decision.reason

    def test_missing_final_validation_blocks(self):
        snapshot = make_snapshot()
        decision = DecisionPolicy().decide(_approvable_state(snapshot, final=False), snapshot)
        assert "final validation not approved" in decision.reason

    def test_routing_requirement_is_configurable(self):
        snapshot = make_snapshot(vehicles=[dict(year=2015, value=20000.0), dict(year=2018, value=9000.0, role="other")])
        state = _approvable_state(snapshot)
        assert DecisionPolicy().decide(state, snapshot).decision is DecisionType.ESCALATE_HUMAN

        relaxed = DecisionPolicy(DecisionConfig(require_auto_routing=False))
        assert relaxed.decide(state, snapshot).decision is DecisionType.AUTO_APPROVE

    def test_estimated_value_falls_back_to_damage(self):
        snapshot = make_snapshot()
        assert DecisionPolicy.estimated_value(OrchestratorState("CLM-1"), snapshot) == 800.0
        assert DecisionPolicy.estimated_value(OrchestratorState("CLM-1"), None) is None


# ============================================================================
# TestAdditionalTriggers
# ============================================================================


class TestAdditionalTriggers:
    def test_coverage_dispute_added_once(self):
        snapshot = make_snapshot("cancelled")
        policy = DecisionPolicy()
        state = _approvable_state(snapshot)

        added = policy.additional_triggers(state)
        assert [t.type for t in added] == [TriggerType.COVERAGE_DISPUTE]
        assert added[0].stage == "decision"
        assert policy.additional_triggers(state.add_triggers(*added)) == []

    def test_valid_policy_adds_nothing(self):
        snapshot = make_snapshot()
        assert DecisionPolicy().additional_triggers(_approvable_state(snapshot)) == []


# ============================================================================
# TestGuards
# ============================================================================


class TestGuards:
    def _auto(self, claim_id):
        return ClaimDecision(claim_id=claim_id, decision=DecisionType.AUTO_APPROVE, reason="test", confidence=0.9)

    def test_valid_auto_approval_passes(self):
        snapshot = make_snapshot()
        DecisionPolicy().enforce(self._auto(snapshot.claim_id), _approvable_state(snapshot))

    def test_non_approval_is_not_checked(self):
        decision = ClaimDecision(claim_id="CLM-1", decision=DecisionType.ESCALATE_HUMAN, reason="x", confidence=0.1)
        DecisionPolicy().enforce(decision, OrchestratorState("CLM-1").add_triggers(_trigger()))

    def test_auto_approval_with_triggers(self):
        snapshot = make_snapshot()
        state = _approvable_state(snapshot).add_triggers(_trigger())
        with pytest.raises(PolicyViolation) as exc_info:
            DecisionPolicy().enforce(self._auto(snapshot.claim_id), state)
        assert exc_info.value.rule == "no_skip_escalation"

    def test_auto_approval_without_final_validation(self):
        snapshot = make_snapshot()
        with pytest.raises(PolicyViolation) as exc_info:
            DecisionPolicy().enforce(self._auto(snapshot.claim_id), _approvable_state(snapshot, final=False))
        assert exc_info.value.rule == "validated_approval"

    def test_auto_approval_without_fraud_clearance(self):
        snapshot = make_snapshot()
        with pytest.raises(PolicyViolation) as exc_info:
            DecisionPolicy().enforce(self._auto(snapshot.claim_id), _approvable_state(snapshot, fraud=False))
        assert exc_info.value.rule == "fraud_clearance"

    def test_denials_are_never_finalized(self):
        with pytest.raises(PolicyViolation, match="no_auto_denial"):
            DecisionPolicy.finalize_denial("CLM-1")
