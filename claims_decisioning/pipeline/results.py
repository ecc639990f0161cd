"""Pipeline result persistence - JSON run results and batch summaries."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

from claims_decisioning.insurance.utils import utc_now
from claims_decisioning.serialization import to_serializable

if TYPE_CHECKING:
    from .orchestrator import BatchMetrics, RunResult

logger = logging.getLogger(__name__)


def run_result_to_dict(result: RunResult) -> dict[str, Any]:
    state = result.state
    return {
        "claim_id": result.claim_id,
        "decision": to_serializable(result.decision),
        "triggers": to_serializable(state.triggers),
        "completed_phases": [p.label for p in state.completed_phases],
        "cancelled": state.cancelled,
        "error": state.error,
        "ledger": {
            name: {
                "confidence": outcome.confidence,
                "duration_sec": round(outcome.duration_sec, 6),
                "result": to_serializable(outcome.result),
            }
            for name, outcome in state.ledger.items()
        },
        "processing_time_sec": round(result.processing_time_sec, 6),
    }


def save_run_result(output_dir: str | Path, result: RunResult) -> str:
    """Write ``<output_dir>/<claim_id>/result.json`` and return its path."""
    out = Path(output_dir) / result.claim_id
    out.mkdir(parents=True, exist_ok=True)
    path = out / "result.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(run_result_to_dict(result), f, indent=2, default=str, ensure_ascii=False)
    logger.info("Saved run result: %s", path)
    return str(path)


def generate_summary(results: list[RunResult]) -> dict[str, Any]:
    """Decision and trigger counts over a batch."""
    if not results:
        return {"total_claims": 0, "decisions": {}, "triggers": {}}
    decisions = Counter(r.decision.decision.value for r in results)
    triggers = Counter(t.type.value for r in results for t in r.state.triggers)
    return {
        "total_claims": len(results),
        "decisions": dict(sorted(decisions.items())),
        "triggers": dict(sorted(triggers.items())),
        "auto_approval_rate": round(decisions.get("auto_approve", 0) / len(results), 4),
    }


def save_batch_summary(output_dir: str | Path, results: list[RunResult], metrics: BatchMetrics) -> str:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    summary_path = output_dir / "batch_summary.json"
    summary = {
        "timestamp": utc_now().isoformat(),
        "metrics": asdict(metrics),
        "summary": generate_summary(results),
        "results": [
            {
                "claim_id": r.claim_id,
                "decision": r.decision.decision.value,
                "reason": r.decision.reason,
                "confidence": r.decision.confidence,
                "error": r.state.error,
                "output_path": r.output_path,
            }
            for r in results
        ],
    }
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, default=str)
    logger.info("Saved batch summary: %s", summary_path)
    return str(summary_path)
