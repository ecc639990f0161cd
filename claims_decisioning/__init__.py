"""Claims Decisioning - automated triage for insurance claims

Seven-phase pipeline that turns a normalized claim record into one of
auto-approve, escalate-to-human, refer-to-SIU or hold-for-review. The
pipeline never denies a claim and never skips an escalation.

Main Components:
- Insurance: scoring and assessment stages (insurance/)
- Pipeline: orchestration, decision policy, audit trail (pipeline/)
- Config / logging / metrics: config.py, logging_config.py, metrics.py
"""

__version__ = "0.1.0"

# Export main components
from claims_decisioning.config import (
    DecisionConfig,
    PipelineConfig,
    load_config,
    save_config,
)
from claims_decisioning.exceptions import (
    ClaimsPipelineError,
    ConfigurationError,
    JurisdictionLookupError,
    PolicyViolation,
    RunCancelled,
    StageError,
    ValidationError,
)
from claims_decisioning.insurance.assessments import (
    ClaimDecision,
    DecisionType,
    EscalationTrigger,
    TriggerType,
)
from claims_decisioning.insurance.schema import ClaimSnapshot
from claims_decisioning.pipeline import (
    CancellationToken,
    ClaimsOrchestrator,
    RunResult,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "PipelineConfig",
    "DecisionConfig",
    "load_config",
    "save_config",
    # Errors
    "ClaimsPipelineError",
    "ValidationError",
    "JurisdictionLookupError",
    "StageError",
    "PolicyViolation",
    "ConfigurationError",
    "RunCancelled",
    # Domain
    "ClaimSnapshot",
    "ClaimDecision",
    "DecisionType",
    "EscalationTrigger",
    "TriggerType",
    # Pipeline
    "ClaimsOrchestrator",
    "RunResult",
    "CancellationToken",
]
