"""Pipeline Protocol Definitions.

Structural contracts (typing.Protocol) for the collaborators the
orchestrator talks to, and the value type each stage contributes to the
result ledger.

Design principles:
    1. Structural subtyping only -- no ABC inheritance required.
    2. Value objects are frozen dataclasses.
    3. Stages return audit events; only the recorder writes them.

References:
    - PEP 544  (typing.Protocol)
    - PEP 557  (dataclasses)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from claims_decisioning.insurance.assessments import AuditEntry, EscalationTrigger
from claims_decisioning.insurance.schema import ClaimSnapshot

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StageOutcome:
    """Result of one stage invocation, as appended to the ledger.

    Attributes:
        stage:        Stage name (the ledger key).
        result:       The stage's output model.
        confidence:   Stage confidence in [0, 1], or None when the stage
                      does not report one.
        triggers:     Escalation triggers raised by the stage.
        audit_events: Audit entries to be written by the recorder.
        duration_sec: Wall-clock execution time.
    """

    stage: str
    result: Any
    confidence: float | None = None
    triggers: tuple[EscalationTrigger, ...] = ()
    audit_events: tuple[AuditEntry, ...] = field(default=())
    duration_sec: float = 0.0

    def __post_init__(self) -> None:
        if self.confidence is not None and not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1] (got {self.confidence})")


# ---------------------------------------------------------------------------
# Protocol definitions (structural subtyping)
# ---------------------------------------------------------------------------


@runtime_checkable
class ClaimSource(Protocol):
    """Supplies claim snapshots by identifier.

    Implementors: InMemoryClaimSource, JsonDirectoryClaimSource.
    """

    def fetch(self, claim_id: str) -> ClaimSnapshot: ...


@runtime_checkable
class AuditSink(Protocol):
    """Append-only destination for audit entries.

    Implementors: InMemoryAuditSink, JsonlAuditSink.
    """

    def append(self, entry: AuditEntry) -> None: ...
