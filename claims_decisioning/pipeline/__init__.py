"""Claims Decisioning Pipeline Package.

Re-exports the orchestration surface:
  from claims_decisioning.pipeline import ClaimsOrchestrator, RunResult, ...
"""

from claims_decisioning.pipeline.audit import AuditRecorder, InMemoryAuditSink, JsonlAuditSink
from claims_decisioning.pipeline.decision import DecisionPolicy, aggregate_confidence
from claims_decisioning.pipeline.orchestrator import (
    BatchMetrics,
    CancellationToken,
    ClaimsOrchestrator,
    RunResult,
)
from claims_decisioning.pipeline.protocols import AuditSink, ClaimSource, StageOutcome
from claims_decisioning.pipeline.sources import InMemoryClaimSource, JsonDirectoryClaimSource
from claims_decisioning.pipeline.state import OrchestratorState, Phase

__all__ = [
    "ClaimsOrchestrator",
    "RunResult",
    "BatchMetrics",
    "CancellationToken",
    "DecisionPolicy",
    "aggregate_confidence",
    "OrchestratorState",
    "Phase",
    "StageOutcome",
    "ClaimSource",
    "AuditSink",
    "InMemoryClaimSource",
    "JsonDirectoryClaimSource",
    "AuditRecorder",
    "InMemoryAuditSink",
    "JsonlAuditSink",
]
