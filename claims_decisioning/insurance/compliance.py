"""Regulatory Compliance Monitoring for Insurance Claims.

Computes regulatory deadlines from the jurisdiction rule set, classifies each
requirement (met / pending / overdue / not applicable), derives violations
and warnings, and scores the claim 0-100.

"Now" is always the explicit ``as_of`` argument so that a replayed run
produces the same report.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from claims_decisioning.config import ComplianceConfig

from .assessments import (
    ComplianceDeadline,
    ComplianceReport,
    ComplianceRequirement,
    ComplianceStatus,
    ComplianceViolation,
    ComplianceWarning,
    EscalationTrigger,
    RequirementCategory,
    RequirementStatus,
    Severity,
    TriggerType,
)
from .jurisdiction import JurisdictionLookup, JurisdictionRule, lookup_jurisdiction
from .schema import ClaimSnapshot
from .utils import days_between, ensure_utc, whole_days_between

logger = logging.getLogger(__name__)

STAGE_NAME = "compliance_monitoring"

REMEDIATION = {
    RequirementCategory.ACKNOWLEDGMENT: "Send acknowledgment immediately with explanation for delay",
    RequirementCategory.INVESTIGATION: "Complete investigation urgently or provide status update with timeline",
    RequirementCategory.PAYMENT: "Issue payment immediately and include interest for delay",
    RequirementCategory.STATUS_UPDATE: "Send status update today and schedule regular updates",
    RequirementCategory.DENIAL_NOTICE: (
        "Ensure denial letter includes all required elements and reissue if necessary"
    ),
}
DEFAULT_REMEDIATION = "Take corrective action immediately and document"

_CLOSED_STATUSES = ("closed", "paid", "denied", "withdrawn")


def _requirement(
    category: RequirementCategory,
    description: str,
    statute: str,
    deadline: datetime | None,
    completed_at: datetime | None,
    as_of: datetime,
) -> ComplianceRequirement:
    """Classify one deadline-bound requirement.

    Met when completed on or before the deadline; overdue when completed
    after it or still open past it; pending otherwise.
    """
    if deadline is None:
        status = RequirementStatus.MET if completed_at is not None else RequirementStatus.PENDING
        return ComplianceRequirement(
            category=category, description=description, statute=statute, completed_at=completed_at, status=status
        )

    if completed_at is not None:
        status = RequirementStatus.MET if completed_at <= deadline else RequirementStatus.OVERDUE
        days_late = whole_days_between(deadline, completed_at)
    elif as_of > deadline:
        status = RequirementStatus.OVERDUE
        days_late = whole_days_between(deadline, as_of)
    else:
        status = RequirementStatus.PENDING
        days_late = whole_days_between(deadline, as_of)

    return ComplianceRequirement(
        category=category,
        description=description,
        statute=statute,
        deadline=deadline,
        completed_at=completed_at,
        status=status,
        days_late=days_late,
    )


def _not_applicable(category: RequirementCategory, description: str, statute: str) -> ComplianceRequirement:
    return ComplianceRequirement(
        category=category, description=description, statute=statute, status=RequirementStatus.NOT_APPLICABLE
    )


class ComplianceMonitor:
    """Deadline and unfair-practice compliance checks.

    Typical usage:
        >>> monitor = ComplianceMonitor()
        >>> report = monitor.check(snapshot, as_of=datetime(2024, 3, 1, tzinfo=timezone.utc))
        >>> report.status
        <ComplianceStatus.COMPLIANT: 'compliant'>
    """

    def __init__(self, config: ComplianceConfig | None = None):
        self.config = config or ComplianceConfig()

    def check(
        self,
        snapshot: ClaimSnapshot,
        as_of: datetime,
        jurisdiction: JurisdictionLookup | None = None,
    ) -> ComplianceReport:
        as_of = ensure_utc(as_of)
        jurisdiction = jurisdiction or lookup_jurisdiction(snapshot.jurisdiction)
        rule = jurisdiction.rule

        requirements = self.build_requirements(snapshot, rule, as_of)
        violations = self._violations(requirements)
        warnings = self._warnings(requirements, as_of)
        deadlines = self._deadlines(requirements, as_of)
        score = self.score(requirements, violations)
        status = self._overall_status(violations, deadlines, score)

        report = ComplianceReport(
            claim_id=snapshot.claim_id,
            jurisdiction=rule.code,
            jurisdiction_default_applied=jurisdiction.default_applied,
            as_of=as_of,
            requirements=requirements,
            violations=violations,
            warnings=warnings,
            deadlines=deadlines,
            score=score,
            status=status,
            recommendations=self._recommendations(violations, warnings),
            confidence=0.8 if jurisdiction.default_applied else 1.0,
        )
        logger.info(
            "Compliance for %s (%s): status=%s score=%d violations=%d",
            snapshot.claim_id,
            rule.code,
            status.value,
            score,
            len(violations),
        )
        return report

    # ------------------------------------------------------------------
    # Requirements
    # ------------------------------------------------------------------

    def build_requirements(
        self, snapshot: ClaimSnapshot, rule: JurisdictionRule, as_of: datetime
    ) -> list[ComplianceRequirement]:
        reported = snapshot.reported_date
        activity = snapshot.activity
        statute = rule.statute
        reqs = [
            _requirement(
                RequirementCategory.ACKNOWLEDGMENT,
                f"Acknowledge claim within {rule.acknowledgment_days} days of notice",
                statute,
                reported + timedelta(days=rule.acknowledgment_days),
                activity.acknowledged_at,
                as_of,
            ),
            _requirement(
                RequirementCategory.INVESTIGATION,
                f"Complete investigation within {rule.investigation_days} days of notice",
                statute,
                reported + timedelta(days=rule.investigation_days),
                activity.investigation_completed_at,
                as_of,
            ),
        ]

        payment_desc = f"Pay within {rule.decision_days} days of settlement agreement"
        if activity.settlement_offered_at is not None:
            reqs.append(
                _requirement(
                    RequirementCategory.PAYMENT,
                    payment_desc,
                    statute,
                    activity.settlement_offered_at + timedelta(days=rule.decision_days),
                    activity.payment_issued_at,
                    as_of,
                )
            )
        else:
            reqs.append(_not_applicable(RequirementCategory.PAYMENT, payment_desc, statute))

        ror_desc = f"Send reservation of rights within {rule.reservation_of_rights_days} days of notice"
        if activity.reservation_of_rights_sent_at is not None:
            reqs.append(
                _requirement(
                    RequirementCategory.RESERVATION_OF_RIGHTS,
                    ror_desc,
                    statute,
                    reported + timedelta(days=rule.reservation_of_rights_days),
                    activity.reservation_of_rights_sent_at,
                    as_of,
                )
            )
        else:
            reqs.append(_not_applicable(RequirementCategory.RESERVATION_OF_RIGHTS, ror_desc, statute))

        reqs.extend(self._denial_requirements(snapshot, rule, as_of))
        reqs.append(self._status_update_requirement(snapshot, rule, as_of))
        reqs.extend(self._unfair_practice_requirements(snapshot, rule, as_of))
        return reqs

    @staticmethod
    def _denial_requirements(
        snapshot: ClaimSnapshot, rule: JurisdictionRule, as_of: datetime
    ) -> list[ComplianceRequirement]:
        activity = snapshot.activity
        statute = rule.statute
        denial_desc = "Issue written denial with specific reasons"
        appeal_desc = "Inform claimant of appeal rights with the denial"
        doi_desc = "Notify the Department of Insurance of the denial where required"
        if activity.denial_issued_at is None:
            return [
                _not_applicable(RequirementCategory.DENIAL_NOTICE, denial_desc, statute),
                _not_applicable(RequirementCategory.APPEAL_RIGHTS, appeal_desc, statute),
                _not_applicable(RequirementCategory.DOI_NOTICE, doi_desc, statute),
            ]

        denied = activity.denial_issued_at
        decision_deadline = snapshot.reported_date + timedelta(days=rule.investigation_days + rule.decision_days)
        return [
            _requirement(RequirementCategory.DENIAL_NOTICE, denial_desc, statute, decision_deadline, denied, as_of),
            _requirement(
                RequirementCategory.APPEAL_RIGHTS, appeal_desc, statute, denied, activity.appeal_rights_sent_at, as_of
            ),
            _requirement(
                RequirementCategory.DOI_NOTICE,
                doi_desc,
                statute,
                denied + timedelta(days=rule.status_update_days),
                activity.doi_notified_at,
                as_of,
            ),
        ]

    @staticmethod
    def _status_update_requirement(
        snapshot: ClaimSnapshot, rule: JurisdictionRule, as_of: datetime
    ) -> ComplianceRequirement:
        description = f"Provide status updates at least every {rule.status_update_days} days"
        if snapshot.claim_status.lower() in _CLOSED_STATUSES:
            return _not_applicable(RequirementCategory.STATUS_UPDATE, description, rule.statute)

        # Cadence runs from the last communication, or from notice when none has been sent
        sent = [c.sent_at for c in snapshot.communications if c.sent_at <= as_of]
        last_contact = max(sent) if sent else snapshot.reported_date
        deadline = last_contact + timedelta(days=rule.status_update_days)
        # The next update is always still owed
        return _requirement(RequirementCategory.STATUS_UPDATE, description, rule.statute, deadline, None, as_of)

    def _unfair_practice_requirements(
        self, snapshot: ClaimSnapshot, rule: JurisdictionRule, as_of: datetime
    ) -> list[ComplianceRequirement]:
        activity = snapshot.activity
        statute = rule.statute
        reqs = []

        delay_deadline = snapshot.reported_date + timedelta(days=self.config.unfair_delay_days)
        resolved = activity.payment_issued_at or activity.denial_issued_at
        pending = snapshot.claim_status.lower() not in _CLOSED_STATUSES
        delay_desc = f"Avoid unreasonable delay (resolution within {self.config.unfair_delay_days} days)"
        if resolved is None and pending:
            reqs.append(
                _requirement(RequirementCategory.UNFAIR_DELAY, delay_desc, statute, delay_deadline, None, as_of)
            )
        else:
            reqs.append(
                _requirement(
                    RequirementCategory.UNFAIR_DELAY, delay_desc, statute, delay_deadline, resolved or as_of, as_of
                )
            )

        valuation_desc = "Offer settlement based on documented valuation"
        if activity.settlement_offered_at is None:
            reqs.append(_not_applicable(RequirementCategory.FAIR_VALUATION, valuation_desc, statute))
        else:
            reqs.append(
                ComplianceRequirement(
                    category=RequirementCategory.FAIR_VALUATION,
                    description=valuation_desc,
                    statute=statute,
                    completed_at=activity.settlement_offered_at,
                    status=RequirementStatus.MET
                    if snapshot.estimated_damage > 0
                    else RequirementStatus.PENDING,
                )
            )

        reqs.append(
            _requirement(
                RequirementCategory.THOROUGH_INVESTIGATION,
                "Conduct a reasonable investigation before deciding",
                statute,
                None,
                activity.investigation_completed_at,
                as_of,
            )
        )
        return reqs

    # ------------------------------------------------------------------
    # Violations, warnings, deadlines
    # ------------------------------------------------------------------

    def _violations(self, requirements: list[ComplianceRequirement]) -> list[ComplianceViolation]:
        violations = []
        for req in requirements:
            if req.status is not RequirementStatus.OVERDUE:
                continue
            days_late = max(req.days_late or 0, 0)
            violations.append(
                ComplianceViolation(
                    category=req.category,
                    severity=self.violation_severity(req.category, days_late),
                    description=f"{req.description}: {days_late} day(s) late",
                    days_late=days_late,
                    remediation=REMEDIATION.get(req.category, DEFAULT_REMEDIATION),
                )
            )
        return violations

    @staticmethod
    def violation_severity(category: RequirementCategory, days_late: int) -> Severity:
        if category is RequirementCategory.PAYMENT and days_late > 30:
            return Severity.CRITICAL
        if category is RequirementCategory.DENIAL_NOTICE:
            return Severity.CRITICAL
        if category is RequirementCategory.ACKNOWLEDGMENT and days_late > 10:
            return Severity.HIGH
        if category is RequirementCategory.INVESTIGATION and days_late > 30:
            return Severity.HIGH
        if days_late > 7:
            return Severity.MEDIUM
        return Severity.LOW

    def _warnings(self, requirements: list[ComplianceRequirement], as_of: datetime) -> list[ComplianceWarning]:
        warnings = []
        for req in requirements:
            if req.status is not RequirementStatus.PENDING or req.deadline is None:
                continue
            remaining = days_between(as_of, req.deadline)
            if 0 < remaining <= self.config.warning_window_days:
                warnings.append(
                    ComplianceWarning(
                        category=req.category,
                        message=f"{req.description} - due soon",
                        deadline=req.deadline,
                        days_remaining=round(remaining, 2),
                    )
                )
        return sorted(warnings, key=lambda w: w.days_remaining)

    def _deadlines(self, requirements: list[ComplianceRequirement], as_of: datetime) -> list[ComplianceDeadline]:
        deadlines = []
        for req in requirements:
            if req.status is not RequirementStatus.PENDING or req.deadline is None:
                continue
            remaining = days_between(as_of, req.deadline)
            if remaining <= self.config.at_risk_window_days:
                priority = Severity.CRITICAL
            elif remaining <= self.config.warning_window_days:
                priority = Severity.HIGH
            else:
                priority = Severity.MEDIUM
            deadlines.append(
                ComplianceDeadline(
                    category=req.category,
                    deadline=req.deadline,
                    days_remaining=round(remaining, 2),
                    priority=priority,
                )
            )
        return sorted(deadlines, key=lambda d: d.days_remaining)

    # ------------------------------------------------------------------
    # Score and status
    # ------------------------------------------------------------------

    def score(self, requirements: list[ComplianceRequirement], violations: list[ComplianceViolation]) -> int:
        """100 minus per-violation penalties and a flat penalty per uncounted overdue requirement."""
        cfg = self.config
        penalties = {
            Severity.CRITICAL: cfg.penalty_critical,
            Severity.HIGH: cfg.penalty_high,
            Severity.MEDIUM: cfg.penalty_medium,
            Severity.LOW: cfg.penalty_low,
        }
        score = 100 - sum(penalties[v.severity] for v in violations)

        counted = {v.category for v in violations}
        uncounted = [
            r for r in requirements if r.status is RequirementStatus.OVERDUE and r.category not in counted
        ]
        score -= cfg.penalty_overdue * len(uncounted)
        return max(0, min(100, score))

    def _overall_status(
        self, violations: list[ComplianceViolation], deadlines: list[ComplianceDeadline], score: int
    ) -> ComplianceStatus:
        if any(v.severity is Severity.CRITICAL for v in violations) or score < self.config.non_compliant_score:
            return ComplianceStatus.NON_COMPLIANT
        if violations or any(d.days_remaining <= self.config.at_risk_window_days for d in deadlines):
            return ComplianceStatus.AT_RISK
        return ComplianceStatus.COMPLIANT

    def _recommendations(
        self, violations: list[ComplianceViolation], warnings: list[ComplianceWarning]
    ) -> list[str]:
        recommendations = []
        critical = [v for v in violations if v.severity is Severity.CRITICAL]
        if critical:
            recommendations.append(f"URGENT: {len(critical)} critical violation(s) require immediate attention")
            recommendations.extend(v.remediation for v in critical)
        high = [v for v in violations if v.severity is Severity.HIGH]
        if high:
            recommendations.append(f"{len(high)} high-severity violation(s) need prompt resolution")
        urgent = [w for w in warnings if w.days_remaining <= self.config.at_risk_window_days]
        if urgent:
            recommendations.append(f"{len(urgent)} deadline(s) within 3 days - prioritize completion")

        if not violations and not warnings:
            recommendations.append("Claim is in compliance - continue standard processing")
        else:
            recommendations.append("Document all corrective actions taken")
        return recommendations

    # ------------------------------------------------------------------
    # Escalation
    # ------------------------------------------------------------------

    def escalation_triggers(self, report: ComplianceReport) -> list[EscalationTrigger]:
        if not report.violations:
            return []
        worst = max((v.severity for v in report.violations), key=lambda s: s.rank)
        if report.status is ComplianceStatus.NON_COMPLIANT:
            severity = Severity.CRITICAL if worst is Severity.CRITICAL else Severity.HIGH
        else:
            severity = Severity.MEDIUM
        return [
            EscalationTrigger(
                type=TriggerType.COMPLIANCE_ISSUE,
                reason=f"{len(report.violations)} compliance violation(s); status {report.status.value}",
                severity=severity,
                stage=STAGE_NAME,
                details={"score": report.score, "categories": [v.category.value for v in report.violations]},
            )
        ]
