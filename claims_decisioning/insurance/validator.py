"""Final validation (phase 6).

Last-mile gate before any automated approval. Five checks: data
completeness, policy validity, amount sanity, fraud clearance and
compliance clearance. Any upstream fraud trigger fails the gate outright.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from claims_decisioning.config import ValidatorConfig

from .assessments import (
    ComplianceStatus,
    EscalationTrigger,
    FinalValidation,
    Severity,
    TriggerType,
    ValidationCheck,
)
from .intake import check_policy_window
from .schema import ClaimSnapshot
from .utils import format_currency

logger = logging.getLogger(__name__)

STAGE_NAME = "final_validation"

FRAUD_REJECTION = "Fraud indicators present - requires human review"

# Rejection reason precedence
_PRECEDENCE = ("fraud_clear", "policy_validity", "data_completeness", "amount_sanity", "compliance_clear")


class FinalValidator:
    def __init__(self, config: ValidatorConfig | None = None):
        self.config = config or ValidatorConfig()

    def validate(
        self,
        snapshot: ClaimSnapshot,
        fraud_score: float | None = None,
        compliance_status: ComplianceStatus | None = None,
        triggers: Sequence[EscalationTrigger] = (),
    ) -> FinalValidation:
        """Run the five checks.

        Args:
            snapshot: Claim under review.
            fraud_score: Score from the fraud stage (0-100), if it ran.
            compliance_status: Overall compliance status, if it ran.
            triggers: Escalation triggers accumulated so far.

        Returns:
            FinalValidation; ``confidence`` is 0-100.
        """
        fraud_triggers = [t for t in triggers if t.is_fraud]
        if fraud_triggers:
            logger.info("Final validation for %s failed on fraud trigger", snapshot.claim_id)
            return FinalValidation(
                claim_id=snapshot.claim_id,
                approved=False,
                checks=[ValidationCheck(name="fraud_clear", passed=False, detail=fraud_triggers[0].reason)],
                rejection_reason=FRAUD_REJECTION,
                confidence=0,
            )

        cfg = self.config
        checks = {
            "data_completeness": self._data_check(snapshot),
            "policy_validity": self._policy_check(snapshot),
            "amount_sanity": self._amount_check(snapshot),
            "fraud_clear": self._fraud_check(fraud_score),
            "compliance_clear": self._compliance_check(compliance_status),
        }
        penalties = {
            "data_completeness": cfg.penalty_data,
            "policy_validity": cfg.penalty_policy,
            "amount_sanity": cfg.penalty_amount,
            "fraud_clear": cfg.penalty_fraud,
            "compliance_clear": cfg.penalty_compliance,
        }
        confidence = 100 - sum(penalties[name] for name, check in checks.items() if not check.passed)

        failed = [name for name in _PRECEDENCE if not checks[name].passed]
        rejection_reason = checks[failed[0]].detail if failed else None

        result = FinalValidation(
            claim_id=snapshot.claim_id,
            approved=not failed,
            checks=list(checks.values()),
            rejection_reason=rejection_reason,
            confidence=max(0, confidence),
        )
        logger.info(
            "Final validation for %s: approved=%s confidence=%d",
            snapshot.claim_id,
            result.approved,
            result.confidence,
        )
        return result

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _data_check(snapshot: ClaimSnapshot) -> ValidationCheck:
        missing = []
        if not (snapshot.claim_number or snapshot.claim_id):
            missing.append("claim number")
        if snapshot.loss_date is None:
            missing.append("loss date")
        if not snapshot.loss_description:
            missing.append("loss description")
        return ValidationCheck(
            name="data_completeness",
            passed=not missing,
            detail=f"Missing required data: {', '.join(missing)}" if missing else "Required data present",
        )

    @staticmethod
    def _policy_check(snapshot: ClaimSnapshot) -> ValidationCheck:
        issues = check_policy_window(snapshot)
        return ValidationCheck(
            name="policy_validity",
            passed=not issues,
            detail="; ".join(issues) if issues else "Policy active and loss within coverage period",
        )

    def _amount_check(self, snapshot: ClaimSnapshot) -> ValidationCheck:
        amount = snapshot.settlement_amount
        if amount is None:
            return ValidationCheck(name="amount_sanity", passed=True, detail="No settlement amount proposed")
        if amount < 0:
            return ValidationCheck(name="amount_sanity", passed=False, detail="Settlement amount is negative")
        if amount > self.config.max_settlement_amount:
            return ValidationCheck(
                name="amount_sanity",
                passed=False,
                detail=(
                    f"Settlement {format_currency(amount)} exceeds maximum "
                    f"{format_currency(self.config.max_settlement_amount)}"
                ),
            )
        return ValidationCheck(name="amount_sanity", passed=True, detail=f"Settlement {format_currency(amount)}")

    def _fraud_check(self, fraud_score: float | None) -> ValidationCheck:
        if fraud_score is None:
            return ValidationCheck(name="fraud_clear", passed=True, detail="No fraud score recorded")
        passed = fraud_score < self.config.fraud_threshold
        return ValidationCheck(
            name="fraud_clear",
            passed=passed,
            detail=f"Fraud score {fraud_score:.0f}"
            + ("" if passed else f" at or above threshold {self.config.fraud_threshold:.0f}"),
        )

    @staticmethod
    def _compliance_check(status: ComplianceStatus | None) -> ValidationCheck:
        passed = status is not ComplianceStatus.NON_COMPLIANT
        return ValidationCheck(
            name="compliance_clear",
            passed=passed,
            detail="Claim is non-compliant with regulatory deadlines"
            if not passed
            else f"Compliance status {status.value if status else 'not assessed'}",
        )

    def escalation_triggers(self, result: FinalValidation) -> list[EscalationTrigger]:
        # Fraud rejections are already represented by the fraud trigger
        if result.approved or result.rejection_reason == FRAUD_REJECTION:
            return []
        return [
            EscalationTrigger(
                type=TriggerType.FINAL_VALIDATION_FAILURE,
                reason=result.rejection_reason or "Final validation failed",
                severity=Severity.HIGH,
                stage=STAGE_NAME,
                details={"failed_checks": [c.name for c in result.checks if not c.passed]},
            )
        ]
