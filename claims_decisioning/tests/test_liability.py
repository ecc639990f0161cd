"""Tests for the liability assessor.

Covers:
- Fault split from weighted indicators (sums to 100, half-up rounding)
- Clear / shared / disputed classification
- Comparative negligence regimes and recovery potential
- Police report, damage geometry, statement, violation and witness indicators
- Escalation triggers
"""

import pytest

from claims_decisioning.config import LiabilityConfig
from claims_decisioning.insurance.assessments import (
    FaultIndicator,
    FavoredParty,
    LiabilityType,
    Severity,
    TriggerType,
)
from claims_decisioning.insurance.jurisdiction import NegligenceRegime
from claims_decisioning.insurance.liability import LiabilityAssessor
from claims_decisioning.tests.conftest import make_snapshot


def _indicator(weight, favored, factor="test"):
    return FaultIndicator(factor, weight, favored, "Test")


# ============================================================================
# TestCalculateSplit
# ============================================================================


class TestCalculateSplit:
    def test_no_indicators_is_even(self):
        assert LiabilityAssessor.calculate_split([]) == (50, 50)

    def test_weight_against_insured(self):
        indicators = [_indicator(0.8, FavoredParty.INSURED), _indicator(0.2, FavoredParty.OTHER_PARTY)]
        assert LiabilityAssessor.calculate_split(indicators) == (20, 80)

    def test_neutral_weight_split_evenly(self):
        assert LiabilityAssessor.calculate_split([_indicator(0.7, FavoredParty.NEUTRAL)]) == (50, 50)

    def test_half_rounds_up(self):
        """12.5% against the insured rounds to 13, not banker's 12."""
        indicators = [_indicator(1.0, FavoredParty.OTHER_PARTY), _indicator(7.0, FavoredParty.INSURED)]
        assert LiabilityAssessor.calculate_split(indicators) == (13, 87)

    @pytest.mark.parametrize("weights", [(0.3, 0.9, 0.1), (0.45, 0.45, 0.2), (0.85, 0.6, 0.7)])
    def test_split_sums_to_100(self, weights):
        indicators = [
            _indicator(weights[0], FavoredParty.INSURED),
            _indicator(weights[1], FavoredParty.OTHER_PARTY),
            _indicator(weights[2], FavoredParty.NEUTRAL),
        ]
        insured, other = LiabilityAssessor.calculate_split(indicators)
        assert insured + other == 100
        assert 0 <= insured <= 100


class TestClassify:
    @pytest.mark.parametrize(
        "insured, other, expected",
        [
            (0, 100, LiabilityType.CLEAR),
            (100, 0, LiabilityType.CLEAR),
            (45, 55, LiabilityType.DISPUTED),
            (40, 60, LiabilityType.SHARED),
            (30, 70, LiabilityType.SHARED),
        ],
    )
    def test_classify(self, insured, other, expected):
        assert LiabilityAssessor().classify(insured, other) is expected

    def test_margin_is_configurable(self):
        assessor = LiabilityAssessor(LiabilityConfig(disputed_margin=50))
        assert assessor.classify(30, 70) is LiabilityType.DISPUTED


# ============================================================================
# TestAssess
# ============================================================================


class TestAssess:
    def test_rear_end_with_police_support(self):
        """Police fault on the other driver plus rear damage: clear, other 100%."""
        assessor = LiabilityAssessor()
        snapshot = make_snapshot()
        assessment = assessor.assess(snapshot)

        assert assessment.insured_liability == 0
        assert assessment.other_party_liability == 100
        assert assessment.liability_type is LiabilityType.CLEAR
        assert assessment.state_rule is NegligenceRegime.MODIFIED_COMPARATIVE_51
        assert assessment.comparative_negligence_applicable
        assert assessment.recovery_potential == 800.0
        assert not assessment.jurisdiction_default_applied
        assert assessment.confidence == pytest.approx(0.7)
        assert assessor.escalation_triggers(assessment, snapshot) == []

    def test_shared_fault_in_contributory_state(self):
        """Contributory negligence bars recovery once the insured shares fault."""
        assessor = LiabilityAssessor()
        snapshot = make_snapshot(
            jurisdiction="VA",
            damage_items=[dict(component="front bumper", estimated_cost=800.0)],
            police_report=dict(report_number="VA-1", fault_determination="shared"),
        )
        assessment = assessor.assess(snapshot)

        assert (assessment.insured_liability, assessment.other_party_liability) == (50, 50)
        assert assessment.liability_type is LiabilityType.DISPUTED
        assert assessment.state_rule is NegligenceRegime.CONTRIBUTORY
        assert not assessment.comparative_negligence_applicable
        assert assessment.recovery_potential == 0.0

        triggers = assessor.escalation_triggers(assessment, snapshot)
        assert [t.type for t in triggers] == [TriggerType.LIABILITY_DISPUTE]
        assert triggers[0].severity is Severity.MEDIUM

    def test_insured_at_fault_on_third_party_claim(self):
        assessor = LiabilityAssessor()
        snapshot = make_snapshot(
            is_third_party=True,
            damage_items=[dict(component="front bumper", estimated_cost=800.0)],
            police_report=dict(report_number="R-2", citation_party="insured", fault_determination="insured"),
        )
        assessment = assessor.assess(snapshot)
        assert assessment.insured_liability == 100
        triggers = assessor.escalation_triggers(assessment, snapshot)
        assert [t.type for t in triggers] == [TriggerType.HIGH_LIABILITY]
        assert triggers[0].severity is Severity.HIGH

    def test_front_end_into_rear_of_other(self):
        snapshot = make_snapshot(
            damage_items=[dict(component="hood", estimated_cost=800.0)],
            counterparty_damage_location="rear",
            police_report=None,
        )
        indicators = LiabilityAssessor().gather_fault_indicators(snapshot)
        assert [i.favored_party for i in indicators] == [FavoredParty.OTHER_PARTY]
        assert indicators[0].source == "Damage Analysis"

    def test_other_driver_admission(self):
        snapshot = make_snapshot(
            police_report=None,
            damage_items=[dict(component="door", estimated_cost=800.0)],
            participants=[dict(name="Sam Other", role="other_driver", statement="Honestly it was my fault")],
        )
        indicators = LiabilityAssessor().gather_fault_indicators(snapshot)
        assert len(indicators) == 1
        assert indicators[0].weight == 0.9
        assert indicators[0].favored_party is FavoredParty.INSURED

    def test_violation_attributed_to_other_driver(self):
        snapshot = make_snapshot(
            police_report=None,
            damage_items=[dict(component="door", estimated_cost=800.0)],
            loss_description="The other driver ran red light at the intersection",
        )
        assessment = LiabilityAssessor().assess(snapshot)
        factors = [i.factor for i in assessment.fault_indicators]
        assert factors == ["Red light violation"]
        assert assessment.fault_indicators[0].favored_party is FavoredParty.INSURED
        assert "Intersection collision" in assessment.contributing_factors

    def test_witnesses_tallied(self):
        snapshot = make_snapshot(
            police_report=None,
            damage_items=[dict(component="door", estimated_cost=800.0)],
            participants=[
                dict(name="W1", role="witness", statement="The other driver caused it"),
                dict(name="W2", role="witness", statement="Clearly the other driver was at fault"),
            ],
        )
        indicators = LiabilityAssessor().gather_fault_indicators(snapshot)
        assert len(indicators) == 1
        assert indicators[0].weight == pytest.approx(0.7)
        assert indicators[0].favored_party is FavoredParty.INSURED

    def test_subrogation_with_known_insurer(self):
        snapshot = make_snapshot(
            damage_estimate=4000.0,
            damage_items=[dict(component="rear bumper", estimated_cost=4000.0)],
            participants=[dict(name="Sam Other", role="other_driver", insurance_company="Acme Mutual")],
        )
        assessment = LiabilityAssessor().assess(snapshot)
        assert assessment.subrogation_recommended
        assert "Initiate subrogation against other party insurer" in assessment.recommendations

    def test_unknown_jurisdiction_flags_default(self):
        assessment = LiabilityAssessor().assess(make_snapshot(jurisdiction="ZZ"))
        assert assessment.jurisdiction_default_applied
        assert assessment.state_rule is NegligenceRegime.PURE_COMPARATIVE

    def test_assessment_is_deterministic(self):
        snapshot = make_snapshot()
        assessor = LiabilityAssessor()
        assert assessor.assess(snapshot) == assessor.assess(snapshot)
