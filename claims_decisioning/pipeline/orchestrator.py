"""Claims Decisioning - Pipeline Orchestrator.

Seven strictly sequential phases; stages inside a phase run concurrently:
  1 intake               -- intake_validation
  2 investigation        -- liability_assessment, evidence_collection
  3 evaluation           -- severity_scoring, valuation, reserve_analysis
  4 communications       -- compliance_monitoring, communication_plan
  5 quality assurance    -- fraud_detection, qa_review
  6 final validation     -- final_validation
  7 decision             -- decision.py

Any failure short-circuits to the decision phase, which escalates to a
human. Every run ends in exactly one ``ClaimDecision``.
"""

from __future__ import annotations

import logging
import threading
import time
import traceback
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Union

from tqdm import tqdm

from claims_decisioning.config import PipelineConfig
from claims_decisioning.exceptions import (
    ClaimsPipelineError,
    PolicyViolation,
    RunCancelled,
    StageError,
    ValidationError,
)
from claims_decisioning.insurance import intake
from claims_decisioning.insurance.assessments import (
    ClaimDecision,
    DecisionType,
    EscalationTrigger,
    Severity,
    TriggerType,
)
from claims_decisioning.insurance.jurisdiction import JurisdictionLookup, lookup_jurisdiction
from claims_decisioning.insurance.schema import ClaimSnapshot
from claims_decisioning.insurance.utils import ensure_utc, utc_now
from claims_decisioning.logging_config import correlation_scope
from claims_decisioning.metrics import METRICS

from .audit import AuditRecorder, InMemoryAuditSink, JsonlAuditSink
from .decision import STAGE_NAME as DECISION_STAGE
from .decision import DecisionPolicy
from .protocols import AuditSink, ClaimSource, StageOutcome
from .results import save_batch_summary, save_run_result
from .sources import load_record
from .stages import StageContext, StageRunner
from .state import OrchestratorState, Phase

logger = logging.getLogger(__name__)

BatchItem = Union[ClaimSnapshot, Mapping[str, Any], str, Path]

# --- Data Classes ---


class CancellationToken:
    """Cooperative cancellation, checked between phases."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class RunResult:
    """Outcome of one claim run: the decision plus the evidence behind it."""

    decision: ClaimDecision
    state: OrchestratorState
    processing_time_sec: float = 0.0
    output_path: str | None = None

    @property
    def claim_id(self) -> str:
        return self.decision.claim_id

    @property
    def triggers(self) -> tuple[EscalationTrigger, ...]:
        return self.state.triggers

    @property
    def ledger(self) -> Mapping[str, StageOutcome]:
        return self.state.ledger


@dataclass
class BatchMetrics:
    """Batch performance metrics."""

    total_claims: int = 0
    completed_runs: int = 0
    failed_runs: int = 0
    cancelled_runs: int = 0
    decisions: dict[str, int] = field(default_factory=dict)

    total_processing_time_sec: float = 0.0
    avg_processing_time_per_claim: float = 0.0


# --- Orchestrator ---


class ClaimsOrchestrator:
    """Runs claims through the seven-phase pipeline.

    Typical usage:
        >>> orchestrator = ClaimsOrchestrator(load_config())
        >>> result = orchestrator.process_claim(snapshot)
        >>> result.decision.decision
        <DecisionType.AUTO_APPROVE: 'auto_approve'>
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        audit_sink: AuditSink | None = None,
        claim_source: ClaimSource | None = None,
    ):
        self.config = config or PipelineConfig()
        if audit_sink is None:
            audit_sink = JsonlAuditSink(self.config.audit_log_path) if self.config.audit_log_path else InMemoryAuditSink()
        self.recorder = AuditRecorder(audit_sink)
        self.claim_source = claim_source
        self.runner = StageRunner(self.config)
        self.policy = DecisionPolicy(self.config.decision)
        self.metrics = BatchMetrics()

    @property
    def audit_sink(self) -> AuditSink:
        return self.recorder.sink

    # ------------------------------------------------------------------
    # Core: process_claim
    # ------------------------------------------------------------------

    def process_claim(
        self,
        snapshot: ClaimSnapshot,
        as_of: datetime | None = None,
        cancel: CancellationToken | None = None,
    ) -> RunResult:
        """Run all phases for ``snapshot`` and return its decision.

        Args:
            snapshot: Validated claim.
            as_of: Evaluation time for deadline checks; defaults to now.
                Replaying with the same snapshot and ``as_of`` yields the
                same decision.
            cancel: Optional token, checked before each phase.
        """
        with correlation_scope(claim_id=snapshot.claim_id):
            return self._run_claim(snapshot, as_of, cancel)

    def _run_claim(
        self, snapshot: ClaimSnapshot, as_of: datetime | None, cancel: CancellationToken | None
    ) -> RunResult:
        as_of = ensure_utc(as_of) if as_of is not None else utc_now()
        claim_id = snapshot.claim_id
        self._run_started()
        start_time = time.perf_counter()
        logger.info("Processing claim %s (as of %s)", claim_id, as_of.isoformat(), extra={"claim_id": claim_id})

        state = OrchestratorState(claim_id=claim_id)
        try:
            jurisdiction = lookup_jurisdiction(snapshot.jurisdiction)
            for phase in Phase:
                if phase is Phase.DECISION:
                    break
                if cancel is not None and cancel.cancelled:
                    raise RunCancelled(claim_id, phase.label)
                state = self._run_phase(phase, state, snapshot, as_of, jurisdiction)

        except RunCancelled as e:
            logger.warning("[%s] %s", claim_id, e, extra={"claim_id": claim_id})
            self._audit(claim_id, self.recorder.record_cancellation, claim_id, e.before_phase)
            state = state.cancel().add_triggers(
                EscalationTrigger(
                    type=TriggerType.CANCELLED,
                    reason=str(e),
                    severity=Severity.MEDIUM,
                    stage="orchestrator",
                )
            )
        except StageError as e:
            state = self._fail(state, e.stage, e.detail)
        except Exception as e:
            state = self._fail(state, "orchestrator", f"{type(e).__name__}: {e}")

        decision, state = self._decide(state, snapshot)
        return self._finish(decision, state, start_time)

    def _run_phase(
        self,
        phase: Phase,
        state: OrchestratorState,
        snapshot: ClaimSnapshot,
        as_of: datetime,
        jurisdiction: JurisdictionLookup,
    ) -> OrchestratorState:
        stages = self.runner.phase_plan[phase]
        ctx = StageContext(snapshot=snapshot, as_of=as_of, jurisdiction=jurisdiction, state=state)
        logger.debug("[%s] Phase %d (%s): %s", snapshot.claim_id, phase, phase.label, stages)

        if len(stages) <= 1 or self.config.stage_workers <= 1:
            outcomes = [self.runner.stage(name)(ctx) for name in stages]
        else:
            by_name: dict[str, StageOutcome] = {}
            with ThreadPoolExecutor(max_workers=min(self.config.stage_workers, len(stages))) as executor:
                futures = {executor.submit(self.runner.stage(name), ctx): name for name in stages}
                for future in as_completed(futures):
                    by_name[futures[future]] = future.result()
            # Ledger order follows the phase plan, not completion order
            outcomes = [by_name[name] for name in stages]

        for outcome in outcomes:
            state = state.record(outcome)
            self.recorder.record_stage(outcome)
            if self.config.enable_metrics:
                METRICS.observe("stage_duration_seconds", outcome.duration_sec, labels={"stage": outcome.stage})
        return state.complete_phase(phase)

    def _fail(self, state: OrchestratorState, stage: str, detail: str) -> OrchestratorState:
        claim_id = state.claim_id
        logger.error("[%s] Stage %s failed: %s", claim_id, stage, detail, extra={"claim_id": claim_id, "stage": stage})
        logger.debug(traceback.format_exc())
        self._audit(claim_id, self.recorder.record_failure, claim_id, stage, detail)
        return state.short_circuit(f"{stage}: {detail}").add_triggers(
            EscalationTrigger(
                type=TriggerType.SYSTEM_ERROR,
                reason=f"Stage {stage} failed: {detail}",
                severity=Severity.HIGH,
                stage=stage,
            )
        )

    def _decide(
        self, state: OrchestratorState, snapshot: ClaimSnapshot | None
    ) -> tuple[ClaimDecision, OrchestratorState]:
        state = state.add_triggers(*self.policy.additional_triggers(state))
        decision = self.policy.decide(state, snapshot)
        try:
            self.policy.enforce(decision, state)
        except PolicyViolation as e:
            logger.error("[%s] %s; escalating instead", state.claim_id, e)
            state = state.add_triggers(
                EscalationTrigger(
                    type=TriggerType.SYSTEM_ERROR,
                    reason=str(e),
                    severity=Severity.HIGH,
                    stage=DECISION_STAGE,
                )
            )
            decision = decision.model_copy(
                update={
                    "decision": DecisionType.ESCALATE_HUMAN,
                    "reason": f"Auto-approval blocked: {e.detail}",
                    "trigger_types": tuple(dict.fromkeys(t.type for t in state.triggers)),
                }
            )
        state = state.complete_phase(Phase.DECISION)
        audit_error = self._audit(state.claim_id, self.recorder.record_decision, decision, state)
        if audit_error is not None:
            decision = decision.model_copy(update={"audit_error": audit_error})
        return decision, state

    def _audit(self, claim_id: str, write: Callable[..., None], *args: Any) -> str | None:
        """Append to the audit trail. A failed write is logged and returned, never raised."""
        try:
            write(*args)
        except Exception as e:
            logger.error("[%s] Audit write failed: %s", claim_id, e, extra={"claim_id": claim_id})
            return f"{type(e).__name__}: {e}"
        return None

    def _finish(self, decision: ClaimDecision, state: OrchestratorState, start_time: float) -> RunResult:
        try:
            elapsed = time.perf_counter() - start_time
            claim_id = decision.claim_id
            if state.cancelled:
                status = "cancelled"
            elif state.error is not None:
                status = "failed"
            else:
                status = "completed"
            if self.config.enable_metrics:
                METRICS.inc("claims_total", labels={"status": status})
                METRICS.inc("decisions_total", labels={"decision": decision.decision.value})
                METRICS.observe("stage_duration_seconds", elapsed, labels={"stage": "total"})

            logger.info(
                "[%s] Decision %s in %.3fs: %s",
                claim_id,
                decision.decision.value,
                elapsed,
                decision.reason,
                extra={"claim_id": claim_id, "decision": decision.decision.value, "duration_sec": round(elapsed, 6)},
            )
            result = RunResult(decision=decision, state=state, processing_time_sec=elapsed)
            if self.config.save_results:
                try:
                    output_path = save_run_result(self.config.output_dir, result)
                except OSError as e:
                    logger.error("[%s] Could not save result: %s", claim_id, e, extra={"claim_id": claim_id})
                else:
                    result = RunResult(
                        decision=decision, state=state, processing_time_sec=elapsed, output_path=output_path
                    )
            return result
        finally:
            self._run_finished()

    def _run_started(self) -> None:
        if self.config.enable_metrics:
            METRICS.inc_gauge("active_runs")

    def _run_finished(self) -> None:
        if self.config.enable_metrics:
            METRICS.dec_gauge("active_runs")

    # ------------------------------------------------------------------
    # Boundary entry points
    # ------------------------------------------------------------------

    def process_record(
        self,
        record: Mapping[str, Any],
        as_of: datetime | None = None,
        cancel: CancellationToken | None = None,
    ) -> RunResult:
        """Validate a raw record, then process it. Invalid records are escalated."""
        try:
            snapshot = ClaimSnapshot.from_record(record)
        except ValidationError as e:
            raw_id = record.get("claim_id") if isinstance(record, Mapping) else None
            claim_id = e.claim_id or str(raw_id or "unknown")
            return self._reject_at_boundary(claim_id, e)
        return self.process_claim(snapshot, as_of=as_of, cancel=cancel)

    def process_claim_id(
        self,
        claim_id: str,
        as_of: datetime | None = None,
        cancel: CancellationToken | None = None,
    ) -> RunResult:
        """Fetch ``claim_id`` from the configured ``ClaimSource`` and process it."""
        if self.claim_source is None:
            raise ValueError("No claim source configured")
        try:
            snapshot = self.claim_source.fetch(claim_id)
        except KeyError as e:
            return self._reject_at_boundary(claim_id, ValidationError(str(e.args[0]) if e.args else "Claim not found"))
        except ValidationError as e:
            return self._reject_at_boundary(claim_id, e)
        return self.process_claim(snapshot, as_of=as_of, cancel=cancel)

    def process_file(
        self,
        path: str | Path,
        as_of: datetime | None = None,
        cancel: CancellationToken | None = None,
    ) -> RunResult:
        """Process one JSON claim file."""
        path = Path(path)
        try:
            record = load_record(path)
        except (OSError, ValidationError) as e:
            error = e if isinstance(e, ValidationError) else ValidationError(f"Cannot read {path.name}: {e}")
            return self._reject_at_boundary(path.stem, error)
        return self.process_record(record, as_of=as_of, cancel=cancel)

    def _reject_at_boundary(self, claim_id: str, error: ClaimsPipelineError) -> RunResult:
        """Escalate a claim that never became a valid snapshot."""
        with correlation_scope(claim_id=claim_id):
            return self._reject(claim_id, error)

    def _reject(self, claim_id: str, error: ClaimsPipelineError) -> RunResult:
        self._run_started()
        start_time = time.perf_counter()
        logger.warning("[%s] Rejected at intake boundary: %s", claim_id, error, extra={"claim_id": claim_id})
        self._audit(claim_id, self.recorder.record_failure, claim_id, intake.STAGE_NAME, str(error))
        fields = getattr(error, "fields", [])
        state = OrchestratorState(claim_id=claim_id).short_circuit(f"Invalid claim record: {error}")
        state = state.add_triggers(
            EscalationTrigger(
                type=TriggerType.VALIDATION_FAILURE,
                reason=str(error),
                severity=Severity.HIGH,
                stage=intake.STAGE_NAME,
                details={"fields": fields},
            )
        )
        decision, state = self._decide(state, None)
        return self._finish(decision, state, start_time)

    # ------------------------------------------------------------------
    # Batch processing
    # ------------------------------------------------------------------

    def _process_item(self, item: BatchItem, as_of: datetime | None, cancel: CancellationToken | None) -> RunResult:
        if isinstance(item, ClaimSnapshot):
            return self.process_claim(item, as_of=as_of, cancel=cancel)
        if isinstance(item, (str, Path)):
            return self.process_file(item, as_of=as_of, cancel=cancel)
        return self.process_record(item, as_of=as_of, cancel=cancel)

    def process_batch(
        self,
        items: Sequence[BatchItem],
        as_of: datetime | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[RunResult]:
        """Process many claims; results come back in input order.

        Items may be snapshots, raw records or paths to JSON claim files.
        With ``continue_on_error`` off, the first failed run cancels the rest.
        """
        logger.info("Processing batch of %d claims...", len(items))
        self.metrics = BatchMetrics(total_claims=len(items))
        cancel = cancel or CancellationToken()
        start_time = time.time()
        results: list[RunResult | None] = [None] * len(items)

        if self.config.parallel_workers == 1:
            for i, item in enumerate(tqdm(items, desc="Processing claims", unit="claim")):
                results[i] = self._process_item(item, as_of, cancel)
                self._update_metrics(results[i], cancel)
        else:
            with ThreadPoolExecutor(max_workers=self.config.parallel_workers) as executor:
                futures = {executor.submit(self._process_item, item, as_of, cancel): i for i, item in enumerate(items)}
                for future in tqdm(as_completed(futures), total=len(futures), desc="Processing claims", unit="claim"):
                    i = futures[future]
                    results[i] = future.result()
                    self._update_metrics(results[i], cancel)

        done = [r for r in results if r is not None]
        self.metrics.total_processing_time_sec = time.time() - start_time
        if items:
            self.metrics.avg_processing_time_per_claim = self.metrics.total_processing_time_sec / len(items)
        if self.config.save_results:
            save_batch_summary(self.config.output_dir, done, self.metrics)
        self._print_summary()
        return done

    def _update_metrics(self, result: RunResult, cancel: CancellationToken) -> None:
        m = self.metrics
        if result.state.cancelled:
            m.cancelled_runs += 1
        elif result.state.error is not None:
            m.failed_runs += 1
            if not self.config.continue_on_error and not cancel.cancelled:
                logger.warning("Stopping batch after failure of %s", result.claim_id)
                cancel.cancel()
        else:
            m.completed_runs += 1
        key = result.decision.decision.value
        m.decisions[key] = m.decisions.get(key, 0) + 1

    def _print_summary(self) -> None:
        m = self.metrics
        logger.info("=" * 60)
        logger.info("BATCH SUMMARY")
        logger.info("=" * 60)
        logger.info("Total claims: %d", m.total_claims)
        logger.info("Completed: %d", m.completed_runs)
        logger.info("Failed: %d", m.failed_runs)
        logger.info("Cancelled: %d", m.cancelled_runs)
        for decision, count in sorted(m.decisions.items()):
            logger.info("  %s: %d", decision, count)
        logger.info("Total processing time: %.2fs", m.total_processing_time_sec)
        logger.info("Avg time per claim: %.3fs", m.avg_processing_time_per_claim)
        logger.info("=" * 60)
