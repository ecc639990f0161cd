"""Quality assurance review (phase 5).

Audits the work of phases 1-4 before final validation: documentation on
file, stages recorded in the ledger, regulatory timeliness and data quality.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .assessments import (
    ComplianceReport,
    ComplianceStatus,
    EscalationTrigger,
    IntakeResult,
    QACheck,
    QAReview,
    Severity,
    TriggerType,
)
from .schema import ClaimSnapshot, ClaimType
from .utils import round_half_up

logger = logging.getLogger(__name__)

STAGE_NAME = "qa_review"

DEFAULT_EXPECTED_STAGES = (
    "intake_validation",
    "liability_assessment",
    "evidence_collection",
    "severity_scoring",
    "compliance_monitoring",
)


def _check(name: str, category: str, ok: bool, severity: Severity, detail: str, soft: bool = False) -> QACheck:
    """Build a check; ``soft`` downgrades a failure to a warning."""
    if ok:
        result = "pass"
    else:
        result = "warning" if soft else "fail"
    return QACheck(name=name, category=category, result=result, severity=severity, detail=detail)


class QAReviewer:
    """Second-line review over the snapshot and the ledger of earlier phases.

    ``ledger`` maps stage names to stage results; it is only read.
    """

    def __init__(
        self,
        expected_stages: Iterable[str] = DEFAULT_EXPECTED_STAGES,
        variance_warning: float = 0.2,
        variance_fail: float = 0.5,
    ):
        self.expected_stages = tuple(expected_stages)
        self.variance_warning = variance_warning
        self.variance_fail = variance_fail

    def review(self, snapshot: ClaimSnapshot, ledger: Mapping[str, Any]) -> QAReview:
        checks = []
        checks.extend(self._documentation_checks(snapshot))
        checks.extend(self._processing_checks(snapshot, ledger))
        checks.extend(self._timeliness_checks(snapshot, ledger))
        checks.extend(self._data_quality_checks(snapshot, ledger))

        passed = sum(1 for c in checks if c.result == "pass")
        failed = [c for c in checks if c.result == "fail"]
        score = round_half_up(passed / len(checks) * 100) if checks else 100

        if any(c.severity is Severity.CRITICAL for c in failed):
            status = "rejected"
        elif any(c.severity is Severity.HIGH for c in failed) or len(failed) > 2:
            status = "needs_review"
        else:
            status = "approved"

        logger.info("QA review for %s: %s (score=%d, %d failed)", snapshot.claim_id, status, score, len(failed))
        return QAReview(
            claim_id=snapshot.claim_id,
            checks=checks,
            score=float(score),
            status=status,
            confidence=score / 100,
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _documentation_checks(snapshot: ClaimSnapshot) -> list[QACheck]:
        checks = [
            _check(
                "documents_on_file",
                "documentation",
                bool(snapshot.documents),
                Severity.MEDIUM,
                f"{len(snapshot.documents)} document(s) on file",
                soft=True,
            ),
            _check(
                "photos_on_file",
                "documentation",
                bool(snapshot.documents_of_type("photo")),
                Severity.MEDIUM,
                f"{len(snapshot.documents_of_type('photo'))} photo(s)",
                soft=True,
            ),
            _check(
                "damage_estimate",
                "documentation",
                bool(snapshot.documents_of_type("estimate")) or bool(snapshot.damage_items),
                Severity.MEDIUM,
                "Estimate or itemized damage on file",
                soft=True,
            ),
        ]
        needs_report = snapshot.claim_type in (ClaimType.COLLISION, ClaimType.LIABILITY) and (
            snapshot.injury_reported or snapshot.third_party_claimants > 0
        )
        if needs_report:
            checks.append(
                _check(
                    "police_report",
                    "documentation",
                    snapshot.has_police_report,
                    Severity.HIGH,
                    "Police report required for injury or third-party collision claims",
                )
            )
        return checks

    def _processing_checks(self, snapshot: ClaimSnapshot, ledger: Mapping[str, Any]) -> list[QACheck]:
        missing = [stage for stage in self.expected_stages if stage not in ledger]
        checks = [
            _check(
                "stages_recorded",
                "processing",
                not missing,
                Severity.HIGH,
                f"Missing stage results: {', '.join(missing)}" if missing else "All expected stages recorded",
            )
        ]
        intake = ledger.get("intake_validation")
        if isinstance(intake, IntakeResult):
            checks.append(
                _check(
                    "coverage_confirmed",
                    "processing",
                    intake.policy_valid,
                    Severity.CRITICAL,
                    "Policy active for the loss date" if intake.policy_valid else "; ".join(intake.issues),
                )
            )
        if snapshot.settlement_amount is not None:
            checks.append(
                _check(
                    "settlement_amount",
                    "processing",
                    snapshot.settlement_amount > 0,
                    Severity.HIGH,
                    f"Settlement amount {snapshot.settlement_amount:,.2f}",
                )
            )
        return checks

    @staticmethod
    def _timeliness_checks(snapshot: ClaimSnapshot, ledger: Mapping[str, Any]) -> list[QACheck]:
        checks = [
            _check(
                "acknowledgment_recorded",
                "timeliness",
                snapshot.activity.acknowledged_at is not None,
                Severity.MEDIUM,
                "Acknowledgment sent" if snapshot.activity.acknowledged_at else "No acknowledgment recorded",
                soft=True,
            )
        ]
        report = ledger.get("compliance_monitoring")
        if isinstance(report, ComplianceReport):
            if report.status is ComplianceStatus.COMPLIANT:
                result = "pass"
            elif report.status is ComplianceStatus.AT_RISK:
                result = "warning"
            else:
                result = "fail"
            checks.append(
                QACheck(
                    name="regulatory_deadlines",
                    category="timeliness",
                    result=result,
                    severity=Severity.HIGH,
                    detail=f"Compliance {report.status.value} (score {report.score})",
                )
            )
        return checks

    def _data_quality_checks(self, snapshot: ClaimSnapshot, ledger: Mapping[str, Any]) -> list[QACheck]:
        checks = []
        intake = ledger.get("intake_validation")
        if isinstance(intake, IntakeResult):
            checks.append(
                _check(
                    "required_fields",
                    "data_quality",
                    not intake.missing_fields,
                    Severity.MEDIUM,
                    f"Missing: {', '.join(intake.missing_fields)}" if intake.missing_fields else "All required fields present",
                )
            )

        estimate = snapshot.estimated_damage
        if snapshot.settlement_amount is not None and snapshot.settlement_amount > 0 and estimate > 0:
            variance = abs(snapshot.settlement_amount - estimate) / estimate
            if variance <= self.variance_warning:
                result = "pass"
            elif variance <= self.variance_fail:
                result = "warning"
            else:
                result = "fail"
            checks.append(
                QACheck(
                    name="settlement_variance",
                    category="data_quality",
                    result=result,
                    severity=Severity.HIGH if variance > self.variance_fail else Severity.MEDIUM,
                    detail=f"Settlement differs from estimate by {variance:.0%}",
                )
            )
        return checks

    def escalation_triggers(self, review: QAReview) -> list[EscalationTrigger]:
        if review.status != "rejected":
            return []
        critical = [c.name for c in review.checks if c.result == "fail" and c.severity is Severity.CRITICAL]
        return [
            EscalationTrigger(
                type=TriggerType.QA_FAILURE,
                reason=f"QA review rejected: {', '.join(critical)}",
                severity=Severity.HIGH,
                stage=STAGE_NAME,
                details={"score": review.score},
            )
        ]
