"""Insurance Domain Logic Module.

Claim scoring and assessment stages:
- Intake validation and evidence collection
- Liability (fault split, comparative negligence, subrogation)
- Severity scoring, valuation / total loss, reserve analysis
- Regulatory compliance monitoring and communication planning
- Fraud pattern detection and QA review
- Final validation gate

Example usage:

    from datetime import datetime, timezone

    from claims_decisioning.insurance import (
        ClaimSnapshot,
        ComplianceMonitor,
        LiabilityAssessor,
        SeverityScorer,
        lookup_jurisdiction,
    )

    snapshot = ClaimSnapshot.from_record(record)
    jurisdiction = lookup_jurisdiction(snapshot.jurisdiction)

    # Liability
    liability = LiabilityAssessor().assess(snapshot, jurisdiction)
    print(f"Insured fault: {liability.insured_liability}%")

    # Severity
    score = SeverityScorer().score(snapshot)
    print(f"Severity: {score.overall_score} -> {score.routing.destination.value}")

    # Compliance
    report = ComplianceMonitor().check(snapshot, as_of=datetime.now(timezone.utc), jurisdiction=jurisdiction)
    print(f"Compliance: {report.status.value} ({report.score})")
"""

from .assessments import (
    AuditEntry,
    ClaimDecision,
    CommunicationPlan,
    ComplianceReport,
    ComplianceStatus,
    DecisionType,
    EscalationTrigger,
    EvidencePackage,
    FaultIndicator,
    FavoredParty,
    FinalValidation,
    FraudAssessment,
    IntakeResult,
    LiabilityAssessment,
    LiabilityType,
    QAReview,
    ReserveAnalysis,
    RoutingDestination,
    Severity,
    SeverityScore,
    TriggerType,
    ValuationResult,
)
from .communications import CommunicationPlanner
from .compliance import ComplianceMonitor
from .evidence import EvidenceCollector
from .fraud_detection import FraudDetector, FraudIndicator
from .intake import IntakeValidator, check_policy_window
from .jurisdiction import (
    JURISDICTIONS,
    DefaultApplied,
    Found,
    JurisdictionRule,
    JurisdictionTable,
    NegligenceRegime,
    lookup_jurisdiction,
)
from .liability import LiabilityAssessor
from .qa_review import QAReviewer
from .reserves import ReserveAnalyst
from .schema import ClaimSnapshot, ClaimType, MedicalBill
from .severity import SeverityInput, SeverityScorer
from .validator import FinalValidator
from .valuation import ValuationSpecialist

__all__ = [
    # Schema
    "ClaimSnapshot",
    "ClaimType",
    "MedicalBill",
    # Assessments
    "AuditEntry",
    "ClaimDecision",
    "CommunicationPlan",
    "ComplianceReport",
    "ComplianceStatus",
    "DecisionType",
    "EscalationTrigger",
    "EvidencePackage",
    "FaultIndicator",
    "FavoredParty",
    "FinalValidation",
    "FraudAssessment",
    "IntakeResult",
    "LiabilityAssessment",
    "LiabilityType",
    "QAReview",
    "ReserveAnalysis",
    "RoutingDestination",
    "Severity",
    "SeverityScore",
    "TriggerType",
    "ValuationResult",
    # Jurisdiction
    "JURISDICTIONS",
    "JurisdictionRule",
    "JurisdictionTable",
    "NegligenceRegime",
    "Found",
    "DefaultApplied",
    "lookup_jurisdiction",
    # Stages
    "IntakeValidator",
    "check_policy_window",
    "EvidenceCollector",
    "LiabilityAssessor",
    "SeverityScorer",
    "SeverityInput",
    "ValuationSpecialist",
    "ReserveAnalyst",
    "ComplianceMonitor",
    "CommunicationPlanner",
    "FraudDetector",
    "FraudIndicator",
    "QAReviewer",
    "FinalValidator",
]
