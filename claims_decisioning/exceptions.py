"""Exception hierarchy for the claims decisioning pipeline.

All custom exceptions inherit from ``ClaimsPipelineError`` so callers can
catch the whole family with a single ``except ClaimsPipelineError``.

None of these escape ``ClaimsOrchestrator.process_*``: the orchestrator
converts every one of them into a ``ClaimDecision`` that routes the claim to
a human.
"""

from __future__ import annotations


class ClaimsPipelineError(Exception):
    """Base exception for all claims pipeline errors."""


class ValidationError(ClaimsPipelineError):
    """A claim record is malformed or missing required fields.

    Attributes:
        claim_id: Identifier of the offending record, when it could be read.
        fields: Dotted field paths that failed validation.
    """

    def __init__(self, message: str, fields: list[str] | None = None, claim_id: str | None = None):
        self.fields = list(fields or [])
        self.claim_id = claim_id
        if self.fields:
            message = f"{message} (fields: {', '.join(self.fields)})"
        super().__init__(message)


class JurisdictionLookupError(ClaimsPipelineError, LookupError):
    """A jurisdiction code is not present in the rule table."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"No jurisdiction rule for code '{code}'")


class StageError(ClaimsPipelineError):
    """A named pipeline stage failed.

    Attributes:
        stage: Stage name as recorded in the result ledger (e.g. "severity_scoring").
        detail: Short explanation of what went wrong.
        cause: The original exception, if any.
    """

    def __init__(self, stage: str, detail: str, cause: Exception | None = None):
        self.stage = stage
        self.detail = detail
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {detail}")


class PolicyViolation(ClaimsPipelineError):
    """A hard business rule was breached (e.g. finalizing a denial).

    Attributes:
        rule: Short identifier of the rule that was breached.
        detail: What was attempted.
    """

    def __init__(self, rule: str, detail: str):
        self.rule = rule
        self.detail = detail
        super().__init__(f"Policy violation [{rule}]: {detail}")


class ConfigurationError(ClaimsPipelineError):
    """Invalid or missing configuration."""


class RunCancelled(ClaimsPipelineError):
    """An orchestration run was cancelled between phases."""

    def __init__(self, claim_id: str, before_phase: str):
        self.claim_id = claim_id
        self.before_phase = before_phase
        super().__init__(f"Run for claim '{claim_id}' cancelled before phase {before_phase}")
