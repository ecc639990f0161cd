"""Audit trail sinks and recorder.

Stages never write audit entries themselves: they return them inside their
``StageOutcome`` and the ``AuditRecorder`` appends them to the configured
sink, one entry per stage invocation plus one terminal entry per decision.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from claims_decisioning.insurance.assessments import AuditEntry, ClaimDecision
from claims_decisioning.serialization import summarize, to_serializable

from .protocols import AuditSink, StageOutcome
from .state import OrchestratorState

logger = logging.getLogger(__name__)

STAGE_COMPLETED = "STAGE_COMPLETED"
STAGE_FAILED = "STAGE_FAILED"
RUN_CANCELLED = "RUN_CANCELLED"
DECISION_EMITTED = "DECISION_EMITTED"


def stage_event(
    claim_id: str,
    stage: str,
    result: Any,
    explanation: str,
    inputs_summary: dict[str, Any] | None = None,
) -> AuditEntry:
    """Audit entry describing one completed stage."""
    return AuditEntry(
        claim_id=claim_id,
        stage=stage,
        event_type=STAGE_COMPLETED,
        inputs_summary=inputs_summary,
        outputs=summarize(result),
        actor_id=f"claims_decisioning.{stage}",
        explanation=explanation,
    )


class InMemoryAuditSink:
    """Thread-safe list of audit entries. Used by tests and single-process runs."""

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self, claim_id: str | None = None) -> list[AuditEntry]:
        with self._lock:
            if claim_id is None:
                return list(self._entries)
            return [e for e in self._entries if e.claim_id == claim_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class JsonlAuditSink:
    """Append audit entries as JSON lines to a file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        line = json.dumps(to_serializable(entry), ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read(self) -> list[AuditEntry]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [AuditEntry.model_validate_json(line) for line in f if line.strip()]


class AuditRecorder:
    """The single writer of audit entries for a run."""

    def __init__(self, sink: AuditSink | None = None):
        self.sink: AuditSink = sink if sink is not None else InMemoryAuditSink()

    def record_stage(self, outcome: StageOutcome) -> None:
        for entry in outcome.audit_events:
            self.sink.append(entry)

    def record_failure(self, claim_id: str, stage: str, error: str) -> None:
        self.sink.append(
            AuditEntry(
                claim_id=claim_id,
                stage=stage,
                event_type=STAGE_FAILED,
                outputs={"error": error},
                explanation=f"Stage {stage} failed: {error}",
            )
        )

    def record_cancellation(self, claim_id: str, before_phase: str) -> None:
        self.sink.append(
            AuditEntry(
                claim_id=claim_id,
                stage="orchestrator",
                event_type=RUN_CANCELLED,
                outputs={"before_phase": before_phase},
                explanation=f"Run cancelled before {before_phase}",
            )
        )

    def record_decision(self, decision: ClaimDecision, state: OrchestratorState) -> None:
        self.sink.append(
            AuditEntry(
                claim_id=decision.claim_id,
                stage="decision",
                event_type=DECISION_EMITTED,
                inputs_summary={
                    "stages": list(state.ledger),
                    "triggers": [t.type.value for t in state.triggers],
                    "completed_phases": [p.label for p in state.completed_phases],
                },
                outputs=to_serializable(decision),
                explanation=decision.reason,
            )
        )
        logger.debug("Audit: decision %s recorded for %s", decision.decision.value, decision.claim_id)
