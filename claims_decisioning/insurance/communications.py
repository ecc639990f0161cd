"""Communication planning (phase 4).

Lists the notices owed to the parties of a claim and when each is due.
Letter text is produced elsewhere; this stage only schedules.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .assessments import CommunicationPlan, PlannedNotice
from .intake import check_policy_window
from .jurisdiction import JurisdictionLookup, lookup_jurisdiction
from .schema import ClaimSnapshot
from .utils import ensure_utc

logger = logging.getLogger(__name__)

STAGE_NAME = "communication_plan"

_CLOSED_STATUSES = ("closed", "paid", "denied", "withdrawn")


class CommunicationPlanner:
    def plan(
        self,
        snapshot: ClaimSnapshot,
        as_of: datetime,
        jurisdiction: JurisdictionLookup | None = None,
    ) -> CommunicationPlan:
        as_of = ensure_utc(as_of)
        rule = (jurisdiction or lookup_jurisdiction(snapshot.jurisdiction)).rule
        activity = snapshot.activity
        recipient = "claimant" if snapshot.is_third_party else "insured"
        notices = []

        def add(notice_type: str, due_by: datetime, reason: str) -> None:
            notices.append(
                PlannedNotice(
                    notice_type=notice_type,
                    recipient=recipient,
                    due_by=due_by,
                    overdue=as_of > due_by,
                    reason=reason,
                )
            )

        if activity.acknowledged_at is None:
            add(
                "acknowledgment",
                snapshot.reported_date + timedelta(days=rule.acknowledgment_days),
                f"Claim not yet acknowledged ({rule.acknowledgment_days}-day requirement)",
            )

        if activity.reservation_of_rights_sent_at is None and check_policy_window(snapshot):
            add(
                "reservation_of_rights",
                snapshot.reported_date + timedelta(days=rule.reservation_of_rights_days),
                "Coverage question on the policy; reserve rights while investigating",
            )

        if activity.settlement_offered_at is not None and activity.payment_issued_at is None:
            add(
                "payment",
                activity.settlement_offered_at + timedelta(days=rule.decision_days),
                "Settlement offered; payment outstanding",
            )

        if snapshot.claim_status.lower() not in _CLOSED_STATUSES:
            sent = [c.sent_at for c in snapshot.communications if c.sent_at <= as_of]
            last_contact = max(sent) if sent else snapshot.reported_date
            add(
                "status_update",
                last_contact + timedelta(days=rule.status_update_days),
                f"Status updates due every {rule.status_update_days} days while the claim is open",
            )

        notices.sort(key=lambda n: n.due_by)
        overdue = sum(1 for n in notices if n.overdue)
        if overdue:
            logger.info("%d overdue notice(s) for %s", overdue, snapshot.claim_id)
        return CommunicationPlan(claim_id=snapshot.claim_id, notices=notices)
