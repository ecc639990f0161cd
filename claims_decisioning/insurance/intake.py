"""Intake validation (phase 1).

Required-field and policy-window checks on the claim snapshot. Failures never
stop the run; they become a ``validation_failure`` escalation trigger.
"""

from __future__ import annotations

import logging

import numpy as np

from .assessments import EscalationTrigger, IntakeResult, Severity, TriggerType
from .schema import ClaimSnapshot, ClaimType

logger = logging.getLogger(__name__)

STAGE_NAME = "intake_validation"

_VEHICLE_CLAIM_TYPES = (ClaimType.COLLISION, ClaimType.COMPREHENSIVE, ClaimType.UNINSURED_MOTORIST)


def check_policy_window(snapshot: ClaimSnapshot) -> list[str]:
    """Policy status and effective-window issues (empty when the policy is valid)."""
    issues = []
    policy = snapshot.policy
    if policy.status != "active":
        issues.append(f"Policy {policy.policy_number} is {policy.status}")
    if snapshot.loss_date is not None:
        if policy.effective_date is not None and snapshot.loss_date < policy.effective_date:
            issues.append("Loss date precedes policy effective date")
        if policy.expiration_date is not None and snapshot.loss_date > policy.expiration_date:
            issues.append("Loss date is after policy expiration date")
    return issues


class IntakeValidator:
    """Checks that a claim carries what downstream stages need."""

    def __init__(self, missing_field_penalty: float = 0.1, invalid_policy_penalty: float = 0.3):
        self.missing_field_penalty = missing_field_penalty
        self.invalid_policy_penalty = invalid_policy_penalty

    def validate(self, snapshot: ClaimSnapshot) -> IntakeResult:
        missing = []
        if not snapshot.claim_number:
            missing.append("claim_number")
        if snapshot.loss_date is None:
            missing.append("loss_date")
        if not snapshot.loss_description:
            missing.append("loss_description")
        if not snapshot.jurisdiction:
            missing.append("jurisdiction")
        if snapshot.policy.effective_date is None:
            missing.append("policy.effective_date")
        if snapshot.claim_type in _VEHICLE_CLAIM_TYPES and not snapshot.vehicles:
            missing.append("vehicles")

        issues = []
        if snapshot.injury_reported and snapshot.injury_severity is None:
            issues.append("Injury reported without severity")
        if snapshot.loss_date is not None and snapshot.loss_date > snapshot.reported_date:
            issues.append("Loss date is after the reported date")

        policy_issues = check_policy_window(snapshot)
        issues.extend(policy_issues)

        confidence = 1.0 - self.missing_field_penalty * len(missing)
        if policy_issues:
            confidence -= self.invalid_policy_penalty

        result = IntakeResult(
            claim_id=snapshot.claim_id,
            valid=not missing and not policy_issues,
            missing_fields=missing,
            issues=issues,
            policy_valid=not policy_issues,
            confidence=float(np.clip(confidence, 0.0, 1.0)),
        )
        if not result.valid:
            logger.info("Intake validation failed for %s: missing=%s issues=%s", snapshot.claim_id, missing, issues)
        return result

    def escalation_triggers(self, result: IntakeResult) -> list[EscalationTrigger]:
        if result.valid:
            return []
        reasons = [f"missing {name}" for name in result.missing_fields] + [
            issue for issue in result.issues if not result.policy_valid
        ]
        return [
            EscalationTrigger(
                type=TriggerType.VALIDATION_FAILURE,
                reason="Intake validation failed: " + "; ".join(reasons),
                severity=Severity.MEDIUM if result.policy_valid else Severity.HIGH,
                stage=STAGE_NAME,
                details={"missing_fields": result.missing_fields, "policy_valid": result.policy_valid},
            )
        ]
