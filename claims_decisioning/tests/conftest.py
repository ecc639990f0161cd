"""Shared test fixtures for claims decisioning tests.

Provides factory functions and fixtures used across all test modules.
All claim timestamps are fixed relative to ``AS_OF`` so that deadline
checks are reproducible.
"""

import copy
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from claims_decisioning.config import PipelineConfig
from claims_decisioning.insurance.schema import ClaimSnapshot
from claims_decisioning.metrics import METRICS

AS_OF = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
REPORTED = AS_OF - timedelta(days=5)
LOSS = REPORTED - timedelta(days=1)


def iso(value: datetime) -> str:
    return value.isoformat()


# ---------------------------------------------------------------------------
# Factory helpers (importable, not fixtures)
# ---------------------------------------------------------------------------

def make_test_config(**overrides) -> PipelineConfig:
    """Create a PipelineConfig suitable for testing.

    Uses a temp output dir and does not persist results by default.
    """
    defaults = dict(
        output_dir=tempfile.mkdtemp(prefix="claims_test_"),
        save_results=False,
        log_level="WARNING",
        parallel_workers=1,
        continue_on_error=True,
    )
    defaults.update(overrides)
    return PipelineConfig(**defaults)


_CLEAN = dict(
    claim_id="CLM-1001",
    claim_number="2024-1001",
    claim_type="collision",
    claim_status="open",
    jurisdiction="OH",
    loss_date=iso(LOSS),
    reported_date=iso(REPORTED),
    loss_description="Insured vehicle was struck from behind while stopped at a traffic signal",
    loss_location="Main St and 5th Ave, Columbus",
    policy=dict(
        policy_number="POL-5501",
        status="active",
        effective_date="2024-01-01T00:00:00+00:00",
        expiration_date="2025-01-01T00:00:00+00:00",
        deductible=500.0,
    ),
    vehicles=[
        dict(
            vin="1HGCM82633A004352",
            year=2015,
            make="Honda",
            model="Accord",
            value=20000.0,
            title_status="clean",
            role="insured",
        )
    ],
    participants=[
        dict(name="Pat Insured", role="insured", statement="I was stopped at the light when the car behind hit me"),
    ],
    damage_items=[dict(component="rear bumper", severity="moderate", estimated_cost=800.0)],
    counterparty_damage_location="front",
    police_report=dict(report_number="CPD-24-0611", fault_determination="other"),
    documents=[
        dict(doc_type="photo", filename="rear_1.jpg"),
        dict(doc_type="photo", filename="rear_2.jpg"),
        dict(doc_type="photo", filename="rear_3.jpg"),
        dict(doc_type="photo", filename="rear_4.jpg"),
        dict(doc_type="estimate", filename="estimate.pdf"),
        dict(doc_type="police_report", filename="report.pdf"),
    ],
    communications=[
        dict(sent_at=iso(AS_OF - timedelta(days=1)), channel="email", recipient="insured", subject="Claim update"),
    ],
    activity=dict(acknowledged_at=iso(REPORTED + timedelta(days=1))),
    damage_estimate=800.0,
)


def make_record(preset: str = "clean", **overrides) -> dict:
    """Create a raw claim record (JSON-compatible dict) with preset profiles.

    Presets:
        clean     - low-value rear-end collision, eligible for auto-approval
        fraud     - frequent claimant, brand-new policy, suspicious location
        injury    - clean claim with a moderate bodily injury
        late_ack  - acknowledgment sent 20 days past the deadline
        cancelled - policy cancelled before the loss
    """
    base = copy.deepcopy(_CLEAN)
    if preset == "fraud":
        base.update(
            claim_id="CLM-2002",
            claim_number="2024-2002",
            loss_location="Parking lot behind the mall",
            prior_claims=dict(total=5, last_12_months=2, denied_or_flagged=1),
        )
        base["policy"]["effective_date"] = iso(LOSS - timedelta(days=3))
    elif preset == "injury":
        base.update(
            claim_id="CLM-3003",
            claim_number="2024-3003",
            injury_reported=True,
            injury_severity="moderate",
            passenger_count=1,
        )
    elif preset == "late_ack":
        reported = AS_OF - timedelta(days=40)
        base.update(
            claim_id="CLM-4004",
            claim_number="2024-4004",
            reported_date=iso(reported),
            loss_date=iso(reported - timedelta(days=1)),
            activity=dict(
                acknowledged_at=iso(reported + timedelta(days=35)),
                investigation_completed_at=iso(reported + timedelta(days=20)),
            ),
        )
    elif preset == "cancelled":
        base.update(claim_id="CLM-5005", claim_number="2024-5005")
        base["policy"]["status"] = "cancelled"
    elif preset != "clean":
        raise ValueError(f"Unknown preset: {preset}")
    base.update(overrides)
    return base


def make_snapshot(preset: str = "clean", **overrides) -> ClaimSnapshot:
    """Create a validated ClaimSnapshot (see ``make_record`` for presets)."""
    return ClaimSnapshot.from_record(make_record(preset, **overrides))


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_output_dir():
    """Temporary output directory, cleaned up after test."""
    tmp_dir = Path(tempfile.mkdtemp(prefix="claims_test_"))
    yield tmp_dir
    shutil.rmtree(tmp_dir, ignore_errors=True)


@pytest.fixture
def clean_snapshot():
    return make_snapshot("clean")


@pytest.fixture(autouse=True)
def reset_metrics():
    """Process-wide metrics start empty for every test."""
    METRICS.reset()
    yield
    METRICS.reset()
