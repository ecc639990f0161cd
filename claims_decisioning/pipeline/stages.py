"""Stage adapters.

Thin wrappers that call the scoring engines in ``claims_decisioning.insurance``
and package their output as a ``StageOutcome``: the result, a confidence on
the 0-1 scale, escalation triggers and the audit event for the ledger.

Engines stay pure; timing, trigger collection and audit events live here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from claims_decisioning.config import PipelineConfig
from claims_decisioning.exceptions import StageError
from claims_decisioning.insurance import (
    communications,
    compliance,
    evidence,
    fraud_detection,
    intake,
    liability,
    qa_review,
    reserves,
    severity,
    validator,
    valuation,
)
from claims_decisioning.insurance.assessments import ComplianceReport, FraudAssessment
from claims_decisioning.insurance.communications import CommunicationPlanner
from claims_decisioning.insurance.compliance import ComplianceMonitor
from claims_decisioning.insurance.evidence import EvidenceCollector
from claims_decisioning.insurance.fraud_detection import FraudDetector
from claims_decisioning.insurance.intake import IntakeValidator
from claims_decisioning.insurance.jurisdiction import JurisdictionLookup
from claims_decisioning.insurance.liability import LiabilityAssessor
from claims_decisioning.insurance.qa_review import QAReviewer
from claims_decisioning.insurance.reserves import ReserveAnalyst
from claims_decisioning.insurance.schema import ClaimSnapshot
from claims_decisioning.insurance.severity import SeverityScorer
from claims_decisioning.insurance.validator import FinalValidator
from claims_decisioning.insurance.valuation import ValuationSpecialist

from .audit import stage_event
from .protocols import StageOutcome
from .state import OrchestratorState, Phase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageContext:
    """Read-only inputs shared by every stage of one run."""

    snapshot: ClaimSnapshot
    as_of: datetime
    jurisdiction: JurisdictionLookup
    state: OrchestratorState


StageFn = Callable[[StageContext], StageOutcome]


def _timed(stage: str, fn: StageFn) -> StageFn:
    """Wrap ``fn`` with timing and ``StageError`` translation."""

    def run(ctx: StageContext) -> StageOutcome:
        start = time.perf_counter()
        try:
            outcome = fn(ctx)
        except StageError:
            raise
        except Exception as e:
            raise StageError(stage, str(e) or type(e).__name__, cause=e) from e
        elapsed = time.perf_counter() - start
        logger.debug(
            "Stage %s finished in %.4fs",
            stage,
            elapsed,
            extra={"claim_id": ctx.snapshot.claim_id, "stage": stage, "duration_sec": round(elapsed, 6)},
        )
        return StageOutcome(
            stage=outcome.stage,
            result=outcome.result,
            confidence=outcome.confidence,
            triggers=outcome.triggers,
            audit_events=outcome.audit_events,
            duration_sec=elapsed,
        )

    return run


class StageRunner:
    """Builds the stage engines from a ``PipelineConfig`` and runs them."""

    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or PipelineConfig()
        cfg = self.config
        self.intake_validator = IntakeValidator()
        self.evidence_collector = EvidenceCollector()
        self.liability_assessor = LiabilityAssessor(cfg.liability)
        self.severity_scorer = SeverityScorer(cfg.severity)
        self.valuation_specialist = ValuationSpecialist(cfg.evaluation)
        self.reserve_analyst = ReserveAnalyst(cfg.evaluation)
        self.compliance_monitor = ComplianceMonitor(cfg.compliance)
        self.communication_planner = CommunicationPlanner()
        self.fraud_detector = FraudDetector(cfg.fraud)
        self.final_validator = FinalValidator(cfg.validator)

        self._stages: dict[str, StageFn] = {
            intake.STAGE_NAME: self.run_intake,
            evidence.STAGE_NAME: self.run_evidence,
            liability.STAGE_NAME: self.run_liability,
            severity.STAGE_NAME: self.run_severity,
            valuation.STAGE_NAME: self.run_valuation,
            reserves.STAGE_NAME: self.run_reserves,
            compliance.STAGE_NAME: self.run_compliance,
            communications.STAGE_NAME: self.run_communications,
            fraud_detection.STAGE_NAME: self.run_fraud,
            qa_review.STAGE_NAME: self.run_qa,
            validator.STAGE_NAME: self.run_final_validation,
        }
        self.phase_plan = self._build_phase_plan()
        # QA expects every enabled stage of phases 1-4
        upstream = (Phase.INTAKE, Phase.INVESTIGATION, Phase.EVALUATION, Phase.COMMUNICATIONS)
        self.qa_reviewer = QAReviewer(expected_stages=[s for phase in upstream for s in self.phase_plan[phase]])

    def _build_phase_plan(self) -> dict[Phase, list[str]]:
        cfg = self.config
        plan = {
            Phase.INTAKE: [intake.STAGE_NAME],
            Phase.INVESTIGATION: [liability.STAGE_NAME],
            Phase.EVALUATION: [severity.STAGE_NAME],
            Phase.COMMUNICATIONS: [compliance.STAGE_NAME],
            Phase.QUALITY_ASSURANCE: [fraud_detection.STAGE_NAME],
            Phase.FINAL_VALIDATION: [validator.STAGE_NAME],
            Phase.DECISION: [],
        }
        if cfg.enable_evidence_collection:
            plan[Phase.INVESTIGATION].append(evidence.STAGE_NAME)
        if cfg.enable_valuation:
            plan[Phase.EVALUATION].append(valuation.STAGE_NAME)
        if cfg.enable_reserve_analysis:
            plan[Phase.EVALUATION].append(reserves.STAGE_NAME)
        if cfg.enable_communication_plan:
            plan[Phase.COMMUNICATIONS].append(communications.STAGE_NAME)
        if cfg.enable_qa_review:
            plan[Phase.QUALITY_ASSURANCE].append(qa_review.STAGE_NAME)
        return plan

    def stage(self, name: str) -> StageFn:
        """Timed callable for stage ``name``."""
        try:
            fn = self._stages[name]
        except KeyError:
            raise KeyError(f"Unknown stage: {name}") from None
        return _timed(name, fn)

    # ------------------------------------------------------------------
    # Phase 1 / 2
    # ------------------------------------------------------------------

    def run_intake(self, ctx: StageContext) -> StageOutcome:
        result = self.intake_validator.validate(ctx.snapshot)
        explanation = "Intake valid" if result.valid else f"Intake issues: {result.missing_fields + result.issues}"
        return StageOutcome(
            stage=intake.STAGE_NAME,
            result=result,
            confidence=result.confidence,
            triggers=tuple(self.intake_validator.escalation_triggers(result)),
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    intake.STAGE_NAME,
                    result,
                    explanation,
                    {"claim_type": ctx.snapshot.claim_type.value, "jurisdiction": ctx.snapshot.jurisdiction},
                ),
            ),
        )

    def run_evidence(self, ctx: StageContext) -> StageOutcome:
        result = self.evidence_collector.collect(ctx.snapshot)
        return StageOutcome(
            stage=evidence.STAGE_NAME,
            result=result,
            confidence=result.confidence,
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    evidence.STAGE_NAME,
                    result,
                    f"Evidence {result.completeness:.0f}% complete",
                    {"documents": len(ctx.snapshot.documents)},
                ),
            ),
        )

    def run_liability(self, ctx: StageContext) -> StageOutcome:
        result = self.liability_assessor.assess(ctx.snapshot, ctx.jurisdiction)
        return StageOutcome(
            stage=liability.STAGE_NAME,
            result=result,
            confidence=result.confidence,
            triggers=tuple(self.liability_assessor.escalation_triggers(result, ctx.snapshot)),
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    liability.STAGE_NAME,
                    result,
                    f"Insured {result.insured_liability}% / other {result.other_party_liability}% "
                    f"({result.liability_type.value})",
                    {"jurisdiction": ctx.jurisdiction.rule.code, "default_applied": ctx.jurisdiction.default_applied},
                ),
            ),
        )

    # ------------------------------------------------------------------
    # Phase 3
    # ------------------------------------------------------------------

    def run_severity(self, ctx: StageContext) -> StageOutcome:
        result = self.severity_scorer.score(ctx.snapshot)
        return StageOutcome(
            stage=severity.STAGE_NAME,
            result=result,
            confidence=result.confidence / 100,
            triggers=tuple(self.severity_scorer.escalation_triggers(result, ctx.snapshot)),
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    severity.STAGE_NAME,
                    result,
                    f"Severity {result.overall_score} ({result.complexity_level.value}); "
                    f"route to {result.routing.destination.value}",
                ),
            ),
        )

    def run_valuation(self, ctx: StageContext) -> StageOutcome:
        result = self.valuation_specialist.value(ctx.snapshot, ctx.jurisdiction)
        return StageOutcome(
            stage=valuation.STAGE_NAME,
            result=result,
            confidence=result.confidence,
            triggers=tuple(self.valuation_specialist.escalation_triggers(result)),
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    valuation.STAGE_NAME,
                    result,
                    f"ACV {result.actual_cash_value:,.2f}; total loss={result.total_loss}",
                ),
            ),
        )

    def run_reserves(self, ctx: StageContext) -> StageOutcome:
        result = self.reserve_analyst.analyze(ctx.snapshot)
        return StageOutcome(
            stage=reserves.STAGE_NAME,
            result=result,
            confidence=result.confidence,
            triggers=tuple(self.reserve_analyst.escalation_triggers(result)),
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    reserves.STAGE_NAME,
                    result,
                    f"Recommended reserve {result.total_recommended:,.2f} ({result.authority_level} authority)",
                ),
            ),
        )

    # ------------------------------------------------------------------
    # Phase 4
    # ------------------------------------------------------------------

    def run_compliance(self, ctx: StageContext) -> StageOutcome:
        result = self.compliance_monitor.check(ctx.snapshot, ctx.as_of, ctx.jurisdiction)
        return StageOutcome(
            stage=compliance.STAGE_NAME,
            result=result,
            confidence=result.confidence,
            triggers=tuple(self.compliance_monitor.escalation_triggers(result)),
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    compliance.STAGE_NAME,
                    result,
                    f"Compliance {result.status.value} (score {result.score}, {len(result.violations)} violations)",
                    {"as_of": ctx.as_of.isoformat(), "jurisdiction": result.jurisdiction},
                ),
            ),
        )

    def run_communications(self, ctx: StageContext) -> StageOutcome:
        result = self.communication_planner.plan(ctx.snapshot, ctx.as_of, ctx.jurisdiction)
        return StageOutcome(
            stage=communications.STAGE_NAME,
            result=result,
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    communications.STAGE_NAME,
                    result,
                    f"{len(result.notices)} notice(s) planned",
                ),
            ),
        )

    # ------------------------------------------------------------------
    # Phase 5 / 6
    # ------------------------------------------------------------------

    def run_fraud(self, ctx: StageContext) -> StageOutcome:
        result = self.fraud_detector.detect(ctx.snapshot)
        return StageOutcome(
            stage=fraud_detection.STAGE_NAME,
            result=result,
            confidence=result.confidence,
            triggers=tuple(self.fraud_detector.escalation_triggers(result)),
            audit_events=(stage_event(ctx.snapshot.claim_id, fraud_detection.STAGE_NAME, result, result.reasoning),),
        )

    def run_qa(self, ctx: StageContext) -> StageOutcome:
        result = self.qa_reviewer.review(ctx.snapshot, ctx.state.results())
        return StageOutcome(
            stage=qa_review.STAGE_NAME,
            result=result,
            confidence=result.confidence,
            triggers=tuple(self.qa_reviewer.escalation_triggers(result)),
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    qa_review.STAGE_NAME,
                    result,
                    f"QA {result.status} (score {result.score:.0f})",
                    {"stages_reviewed": list(ctx.state.ledger)},
                ),
            ),
        )

    def run_final_validation(self, ctx: StageContext) -> StageOutcome:
        fraud = ctx.state.result(fraud_detection.STAGE_NAME)
        report = ctx.state.result(compliance.STAGE_NAME)
        result = self.final_validator.validate(
            ctx.snapshot,
            fraud_score=fraud.fraud_score if isinstance(fraud, FraudAssessment) else None,
            compliance_status=report.status if isinstance(report, ComplianceReport) else None,
            triggers=ctx.state.triggers,
        )
        return StageOutcome(
            stage=validator.STAGE_NAME,
            result=result,
            confidence=result.confidence / 100,
            triggers=tuple(self.final_validator.escalation_triggers(result)),
            audit_events=(
                stage_event(
                    ctx.snapshot.claim_id,
                    validator.STAGE_NAME,
                    result,
                    "Final validation passed" if result.approved else f"Rejected: {result.rejection_reason}",
                    {"triggers": [t.type.value for t in ctx.state.triggers]},
                ),
            ),
        )
