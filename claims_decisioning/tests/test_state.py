"""Tests for the orchestrator state machine and pipeline protocols."""

import dataclasses

import pytest

from claims_decisioning.insurance.assessments import EscalationTrigger, Severity, TriggerType
from claims_decisioning.pipeline.audit import InMemoryAuditSink, JsonlAuditSink
from claims_decisioning.pipeline.protocols import AuditSink, ClaimSource, StageOutcome
from claims_decisioning.pipeline.sources import InMemoryClaimSource
from claims_decisioning.pipeline.state import PHASE_COUNT, OrchestratorState, Phase


def _trigger(trigger_type=TriggerType.BODILY_INJURY, severity=Severity.MEDIUM):
    return EscalationTrigger(type=trigger_type, reason="test", severity=severity)


# ============================================================================
# TestStageOutcome
# ============================================================================


class TestStageOutcome:
    def test_confidence_bounds(self):
        StageOutcome("s", None, confidence=0.0)
        StageOutcome("s", None, confidence=1.0)
        with pytest.raises(ValueError, match="confidence"):
            StageOutcome("s", None, confidence=1.2)
        with pytest.raises(ValueError):
            StageOutcome("s", None, confidence=-0.1)

    def test_confidence_is_optional(self):
        assert StageOutcome("communication_plan", object()).confidence is None

    def test_outcome_is_frozen(self):
        outcome = StageOutcome("s", None, confidence=0.5)
        with pytest.raises(dataclasses.FrozenInstanceError):
            outcome.confidence = 0.9


class TestProtocols:
    def test_sources_satisfy_claim_source(self):
        assert isinstance(InMemoryClaimSource(), ClaimSource)

    def test_sinks_satisfy_audit_sink(self, tmp_output_dir):
        assert isinstance(InMemoryAuditSink(), AuditSink)
        assert isinstance(JsonlAuditSink(tmp_output_dir / "audit.jsonl"), AuditSink)

    def test_unrelated_object_is_not_a_sink(self):
        assert not isinstance(object(), AuditSink)


# ============================================================================
# TestOrchestratorState
# ============================================================================


class TestOrchestratorState:
    def test_initial_state(self):
        state = OrchestratorState("CLM-1")
        assert state.current_phase is Phase.INTAKE
        assert state.phase_completion == (False,) * PHASE_COUNT
        assert len(state.ledger) == 0
        assert state.triggers == ()
        assert not state.cancelled
        assert state.error is None

    def test_record_returns_new_state(self):
        state = OrchestratorState("CLM-1")
        trigger = _trigger()
        updated = state.record(StageOutcome("severity_scoring", "score", 0.9, triggers=(trigger,)))

        assert len(state.ledger) == 0
        assert updated.result("severity_scoring") == "score"
        assert updated.triggers == (trigger,)
        assert updated.results() == {"severity_scoring": "score"}
        assert updated.result("fraud_detection") is None

    def test_ledger_is_read_only(self):
        state = OrchestratorState("CLM-1").record(StageOutcome("a", 1))
        with pytest.raises(TypeError):
            state.ledger["b"] = StageOutcome("b", 2)

    def test_stage_recorded_once(self):
        state = OrchestratorState("CLM-1").record(StageOutcome("a", 1))
        with pytest.raises(ValueError, match="already recorded"):
            state.record(StageOutcome("a", 2))

    def test_triggers_accumulate(self):
        first, second = _trigger(), _trigger(TriggerType.TOTAL_LOSS, Severity.HIGH)
        state = OrchestratorState("CLM-1").record(StageOutcome("a", 1, triggers=(first,)))
        state = state.add_triggers(second)
        assert state.triggers == (first, second)
        assert state.add_triggers() is state

    def test_phases_complete_in_order(self):
        state = OrchestratorState("CLM-1")
        state = state.complete_phase(Phase.INTAKE)
        assert state.current_phase is Phase.INVESTIGATION
        assert state.completed_phases == [Phase.INTAKE]

        with pytest.raises(ValueError, match="Cannot complete"):
            state.complete_phase(Phase.EVALUATION)

    def test_decision_is_terminal(self):
        state = OrchestratorState("CLM-1")
        for phase in Phase:
            state = state.complete_phase(phase)
        assert state.current_phase is Phase.DECISION
        assert all(state.phase_completion)
        with pytest.raises(ValueError, match="already complete"):
            state.complete_phase(Phase.DECISION)

    def test_short_circuit_jumps_to_decision(self):
        state = OrchestratorState("CLM-1").complete_phase(Phase.INTAKE).short_circuit("boom")
        assert state.current_phase is Phase.DECISION
        assert state.error == "boom"
        assert state.completed_phases == [Phase.INTAKE]

    def test_cancel(self):
        state = OrchestratorState("CLM-1").cancel()
        assert state.cancelled
        assert state.current_phase is Phase.DECISION

    def test_fraud_trigger_detection(self):
        state = OrchestratorState("CLM-1").add_triggers(_trigger())
        assert not state.has_fraud_trigger
        state = state.add_triggers(_trigger(TriggerType.FRAUD_DETECTED, Severity.CRITICAL))
        assert state.has_fraud_trigger

    def test_phase_labels(self):
        assert Phase.QUALITY_ASSURANCE.label == "quality_assurance"
        assert [p.value for p in Phase] == list(range(1, 8))
