"""Tests for intake validation and evidence collection (phases 1-2)."""

from datetime import timedelta

from claims_decisioning.insurance.assessments import Severity, TriggerType
from claims_decisioning.insurance.evidence import EvidenceCollector
from claims_decisioning.insurance.intake import IntakeValidator, check_policy_window
from claims_decisioning.tests.conftest import LOSS, iso, make_snapshot


# ============================================================================
# TestIntakeValidator
# ============================================================================


class TestIntakeValidator:
    def test_clean_claim_is_valid(self):
        validator = IntakeValidator()
        result = validator.validate(make_snapshot())
        assert result.valid
        assert result.policy_valid
        assert result.missing_fields == []
        assert result.confidence == 1.0
        assert validator.escalation_triggers(result) == []

    def test_missing_fields_lower_confidence(self):
        """Each missing field costs 0.1 confidence and raises a medium trigger."""
        validator = IntakeValidator()
        result = validator.validate(make_snapshot(claim_number=None, loss_description=None))
        assert not result.valid
        assert result.missing_fields == ["claim_number", "loss_description"]
        assert result.confidence == 0.8

        triggers = validator.escalation_triggers(result)
        assert len(triggers) == 1
        assert triggers[0].type is TriggerType.VALIDATION_FAILURE
        assert triggers[0].severity is Severity.MEDIUM
        assert "missing claim_number" in triggers[0].reason

    def test_vehicle_claim_without_vehicles(self):
        result = IntakeValidator().validate(make_snapshot(vehicles=[]))
        assert "vehicles" in result.missing_fields

    def test_cancelled_policy_is_high_severity(self):
        validator = IntakeValidator()
        result = validator.validate(make_snapshot("cancelled"))
        assert not result.valid
        assert not result.policy_valid
        assert result.confidence == 0.7
        triggers = validator.escalation_triggers(result)
        assert triggers[0].severity is Severity.HIGH
        assert "cancelled" in triggers[0].reason

    def test_injury_without_severity_is_noted(self):
        """Data issues that are not policy problems do not invalidate intake."""
        result = IntakeValidator().validate(make_snapshot(injury_reported=True))
        assert result.valid
        assert "Injury reported without severity" in result.issues


class TestCheckPolicyWindow:
    def test_active_policy_in_window(self):
        assert check_policy_window(make_snapshot()) == []

    def test_loss_before_effective_date(self):
        snapshot = make_snapshot()
        policy = dict(snapshot.policy.model_dump(), effective_date=iso(LOSS + timedelta(days=1)))
        issues = check_policy_window(make_snapshot(policy=policy))
        assert issues == ["Loss date precedes policy effective date"]

    def test_loss_after_expiration(self):
        policy = dict(policy_number="POL-1", expiration_date=iso(LOSS - timedelta(days=1)))
        issues = check_policy_window(make_snapshot(policy=policy))
        assert issues == ["Loss date is after policy expiration date"]

    def test_inactive_status(self):
        issues = check_policy_window(make_snapshot("cancelled"))
        assert issues == ["Policy POL-5501 is cancelled"]


# ============================================================================
# TestEvidenceCollector
# ============================================================================


class TestEvidenceCollector:
    def test_complete_collision_file(self):
        """All required documents plus four photos caps at 100."""
        package = EvidenceCollector().collect(make_snapshot())
        assert package.required_documents == ["photo", "estimate", "police_report"]
        assert package.missing_documents == []
        assert package.photo_count == 4
        assert package.completeness == 100.0
        assert package.confidence == 1.0

    def test_no_documents(self):
        package = EvidenceCollector().collect(make_snapshot(documents=[], police_report=None))
        assert package.missing_documents == ["photo", "estimate", "police_report"]
        assert package.completeness == 0.0
        # Missing documents are a completeness gap, not doubt about the read
        assert package.confidence == 1.0

    def test_police_report_number_counts_without_upload(self):
        snapshot = make_snapshot(documents=[dict(doc_type="photo"), dict(doc_type="estimate")])
        package = EvidenceCollector().collect(snapshot)
        assert "police_report" in package.present_documents
        assert package.completeness == 100.0

    def test_comprehensive_partial(self):
        snapshot = make_snapshot(claim_type="comprehensive", documents=[dict(doc_type="photo")])
        package = EvidenceCollector().collect(snapshot)
        assert package.required_documents == ["photo", "estimate"]
        assert package.completeness == 50.0
        assert package.confidence == 1.0

    def test_photo_bonus(self):
        """Four photos add half a document type of credit."""
        snapshot = make_snapshot(claim_type="comprehensive", documents=[dict(doc_type="photo")] * 4)
        assert EvidenceCollector().collect(snapshot).completeness == 75.0

    def test_unverified_documents_are_quality_issues(self):
        snapshot = make_snapshot(
            documents=[dict(doc_type="estimate", filename="quote.pdf", verified=False), dict(doc_type="photo")]
        )
        package = EvidenceCollector().collect(snapshot)
        assert package.quality_issues == ["Unverified estimate (quote.pdf)"]
        assert package.confidence == 0.95

    def test_confidence_floor(self):
        snapshot = make_snapshot(documents=[dict(doc_type="photo", verified=False)] * 6)
        package = EvidenceCollector().collect(snapshot)
        assert len(package.quality_issues) == 6
        assert package.confidence == 0.8

