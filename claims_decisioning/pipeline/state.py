"""Orchestrator state machine.

``OrchestratorState`` is an immutable value: every transition returns a new
state. The ledger is a read-only mapping of stage name to ``StageOutcome``
and only ever grows; triggers only ever accumulate.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import IntEnum
from types import MappingProxyType
from typing import Any, Mapping

from claims_decisioning.insurance.assessments import EscalationTrigger
from claims_decisioning.insurance.utils import utc_now

from .protocols import StageOutcome


class Phase(IntEnum):
    """The seven phases, in execution order."""

    INTAKE = 1
    INVESTIGATION = 2
    EVALUATION = 3
    COMMUNICATIONS = 4
    QUALITY_ASSURANCE = 5
    FINAL_VALIDATION = 6
    DECISION = 7

    @property
    def label(self) -> str:
        return self.name.lower()


PHASE_COUNT = len(Phase)


def _empty_ledger() -> Mapping[str, StageOutcome]:
    return MappingProxyType({})


@dataclass(frozen=True)
class OrchestratorState:
    """Progress of one claim through the pipeline.

    Attributes:
        claim_id: Claim being processed.
        current_phase: Next phase to run (``Phase.DECISION`` once reached).
        phase_completion: One flag per phase, in order.
        ledger: Stage name -> outcome, read-only.
        triggers: All escalation triggers recorded so far.
        started_at: When the run began.
        cancelled: Set when a cancellation request was honoured.
        error: Failure reason when the run short-circuited.
    """

    claim_id: str
    current_phase: Phase = Phase.INTAKE
    phase_completion: tuple[bool, ...] = (False,) * PHASE_COUNT
    ledger: Mapping[str, StageOutcome] = field(default_factory=_empty_ledger)
    triggers: tuple[EscalationTrigger, ...] = ()
    started_at: datetime = field(default_factory=utc_now)
    cancelled: bool = False
    error: str | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_complete(self, phase: Phase) -> bool:
        return self.phase_completion[phase - 1]

    @property
    def completed_phases(self) -> list[Phase]:
        return [phase for phase in Phase if self.is_complete(phase)]

    def result(self, stage: str) -> Any | None:
        """Output model recorded for ``stage``, if any."""
        outcome = self.ledger.get(stage)
        return outcome.result if outcome is not None else None

    def results(self) -> dict[str, Any]:
        return {name: outcome.result for name, outcome in self.ledger.items()}

    @property
    def has_fraud_trigger(self) -> bool:
        return any(trigger.is_fraud for trigger in self.triggers)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def record(self, outcome: StageOutcome) -> OrchestratorState:
        """Append a stage outcome and its triggers."""
        if outcome.stage in self.ledger:
            raise ValueError(f"Stage '{outcome.stage}' already recorded for claim {self.claim_id}")
        ledger = dict(self.ledger)
        ledger[outcome.stage] = outcome
        return replace(
            self,
            ledger=MappingProxyType(ledger),
            triggers=self.triggers + tuple(outcome.triggers),
        )

    def add_triggers(self, *triggers: EscalationTrigger) -> OrchestratorState:
        if not triggers:
            return self
        return replace(self, triggers=self.triggers + triggers)

    def complete_phase(self, phase: Phase) -> OrchestratorState:
        """Mark ``phase`` complete and advance. Phases complete strictly in order."""
        if phase != self.current_phase:
            raise ValueError(f"Cannot complete {phase.name} while at {self.current_phase.name}")
        if self.is_complete(phase):
            raise ValueError(f"{phase.name} already complete")
        completion = list(self.phase_completion)
        completion[phase - 1] = True
        next_phase = Phase(phase + 1) if phase < Phase.DECISION else Phase.DECISION
        return replace(self, phase_completion=tuple(completion), current_phase=next_phase)

    def short_circuit(self, error: str) -> OrchestratorState:
        """Jump straight to the decision phase after a failure."""
        return replace(self, current_phase=Phase.DECISION, error=error)

    def cancel(self) -> OrchestratorState:
        return replace(self, current_phase=Phase.DECISION, cancelled=True)
