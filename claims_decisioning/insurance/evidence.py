"""Evidence collection (phase 2).

Scores how complete the claim's document set is for its coverage line. Works
on document metadata only; document content is never read.
"""

from __future__ import annotations

import logging

from .assessments import EvidencePackage
from .schema import ClaimSnapshot, ClaimType

logger = logging.getLogger(__name__)

STAGE_NAME = "evidence_collection"

REQUIRED_DOCUMENTS: dict[ClaimType, tuple[str, ...]] = {
    ClaimType.COLLISION: ("photo", "estimate", "police_report"),
    ClaimType.COMPREHENSIVE: ("photo", "estimate"),
    ClaimType.LIABILITY: ("photo", "statement", "police_report"),
    ClaimType.MEDICAL_PAYMENTS: ("medical_bill", "statement"),
}
DEFAULT_REQUIRED_DOCUMENTS = ("photo", "estimate")

PHOTO_BONUS_COUNT = 4
PHOTO_BONUS_CREDIT = 0.5

UNVERIFIED_DOCUMENT_PENALTY = 0.05
MIN_CONFIDENCE = 0.8


class EvidenceCollector:
    def collect(self, snapshot: ClaimSnapshot) -> EvidencePackage:
        """Build the evidence package for ``snapshot``.

        Completeness is the share of required document types present, with
        half a type of extra credit when at least four photos were uploaded,
        capped at 100. Confidence reflects the metadata read, not the
        completeness: only unverified documents lower it.
        """
        required = REQUIRED_DOCUMENTS.get(snapshot.claim_type, DEFAULT_REQUIRED_DOCUMENTS)
        present_types = {doc.doc_type for doc in snapshot.documents}
        # A police report number on file counts even without an uploaded copy
        if snapshot.has_police_report:
            present_types.add("police_report")

        present = [doc_type for doc_type in required if doc_type in present_types]
        missing = [doc_type for doc_type in required if doc_type not in present_types]

        photo_count = len(snapshot.documents_of_type("photo"))
        credit = float(len(present))
        if photo_count >= PHOTO_BONUS_COUNT:
            credit += PHOTO_BONUS_CREDIT
        completeness = min(100.0, round(credit / len(required) * 100.0, 1))

        quality_issues = [
            f"Unverified {doc.doc_type}" + (f" ({doc.filename})" if doc.filename else "")
            for doc in snapshot.documents
            if not doc.verified
        ]

        logger.debug(
            "Evidence for %s: completeness=%.1f missing=%s", snapshot.claim_id, completeness, missing
        )
        return EvidencePackage(
            claim_id=snapshot.claim_id,
            required_documents=list(required),
            present_documents=present,
            missing_documents=missing,
            quality_issues=quality_issues,
            photo_count=photo_count,
            completeness=completeness,
            confidence=max(MIN_CONFIDENCE, round(1.0 - UNVERIFIED_DOCUMENT_PENALTY * len(quality_issues), 2)),
        )
