"""Tests for the claim snapshot input contract.

Covers:
- Boundary conversion via ClaimSnapshot.from_record
- Rejection of malformed / unknown fields with field paths
- Immutability
- UTC normalization and jurisdiction normalization
- Derived facts (estimated damage, insured vehicle, police report)
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from claims_decisioning.exceptions import ValidationError
from claims_decisioning.insurance.schema import ClaimSnapshot, ClaimType
from claims_decisioning.tests.conftest import LOSS, make_record, make_snapshot


# ============================================================================
# TestFromRecord
# ============================================================================


class TestFromRecord:
    """Boundary conversion of raw records."""

    def test_clean_record_parses(self):
        """A well-formed record becomes a snapshot."""
        snapshot = ClaimSnapshot.from_record(make_record())
        assert snapshot.claim_id == "CLM-1001"
        assert snapshot.claim_type is ClaimType.COLLISION
        assert snapshot.loss_date == LOSS

    def test_missing_required_field_lists_path(self):
        """A missing reported_date is reported with its field path and claim id."""
        record = make_record()
        del record["reported_date"]
        with pytest.raises(ValidationError) as exc_info:
            ClaimSnapshot.from_record(record)
        assert "reported_date" in exc_info.value.fields
        assert exc_info.value.claim_id == "CLM-1001"
        assert "reported_date" in str(exc_info.value)

    def test_malformed_nested_field_lists_dotted_path(self):
        """Errors inside nested models use dotted paths."""
        record = make_record()
        record["policy"]["deductible"] = -100
        with pytest.raises(ValidationError) as exc_info:
            ClaimSnapshot.from_record(record)
        assert "policy.deductible" in exc_info.value.fields

    def test_unknown_field_is_rejected(self):
        """Unknown fields are never silently accepted."""
        record = make_record(favorite_color="blue")
        with pytest.raises(ValidationError) as exc_info:
            ClaimSnapshot.from_record(record)
        assert "favorite_color" in exc_info.value.fields

    def test_unparseable_timestamp_is_rejected(self):
        record = make_record(reported_date="last tuesday")
        with pytest.raises(ValidationError) as exc_info:
            ClaimSnapshot.from_record(record)
        assert exc_info.value.fields == ["reported_date"]

    def test_non_mapping_is_rejected(self):
        with pytest.raises(ValidationError, match="must be a mapping"):
            ClaimSnapshot.from_record(["not", "a", "record"])


# ============================================================================
# TestSnapshotValues
# ============================================================================


class TestSnapshotValues:
    """Normalization, immutability and derived facts."""

    def test_snapshot_is_frozen(self):
        """The pipeline cannot mutate a snapshot."""
        snapshot = make_snapshot()
        with pytest.raises(PydanticValidationError):
            snapshot.claim_status = "closed"

    def test_naive_timestamps_read_as_utc(self):
        snapshot = make_snapshot(reported_date="2024-06-10T12:00:00")
        assert snapshot.reported_date == datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)

    def test_jurisdiction_normalized(self):
        assert make_snapshot(jurisdiction=" oh ").jurisdiction == "OH"
        assert make_snapshot(jurisdiction="  ").jurisdiction is None

    def test_estimated_damage_falls_back_to_items(self):
        """Without an estimate, itemized costs are summed."""
        snapshot = make_snapshot(
            damage_estimate=None,
            damage_items=[
                dict(component="hood", estimated_cost=1200.0),
                dict(component="headlight", estimated_cost=300.0),
                dict(component="grille"),
            ],
        )
        assert snapshot.estimated_damage == 1500.0

    def test_insured_vehicle_preferred_over_others(self):
        snapshot = make_snapshot(
            vehicles=[
                dict(year=2020, value=30000.0, role="other"),
                dict(year=2015, value=20000.0, role="insured"),
            ]
        )
        assert snapshot.insured_vehicle.value == 20000.0
        assert snapshot.vehicle_value == 20000.0

    def test_vehicle_age_at_date(self):
        snapshot = make_snapshot()
        assert snapshot.vehicle_age(LOSS) == 9

    def test_police_report_requires_number(self):
        """A report without a number does not count as on file."""
        assert make_snapshot().has_police_report
        assert not make_snapshot(police_report=dict(fault_determination="other")).has_police_report
        assert not make_snapshot(police_report=None).has_police_report

    def test_commercial_use(self):
        snapshot = make_snapshot(vehicles=[dict(year=2019, value=40000.0, commercial_use=True)])
        assert snapshot.is_commercial
