"""Claim sources.

Both implementations satisfy the ``ClaimSource`` protocol. Records are
converted at this boundary; a malformed record raises ``ValidationError``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from claims_decisioning.exceptions import ValidationError
from claims_decisioning.insurance.schema import ClaimSnapshot

logger = logging.getLogger(__name__)


class InMemoryClaimSource:
    def __init__(self, snapshots: Iterable[ClaimSnapshot] = ()):
        self._snapshots = {s.claim_id: s for s in snapshots}

    def add(self, snapshot: ClaimSnapshot) -> None:
        self._snapshots[snapshot.claim_id] = snapshot

    def fetch(self, claim_id: str) -> ClaimSnapshot:
        try:
            return self._snapshots[claim_id]
        except KeyError:
            raise KeyError(f"Unknown claim: {claim_id}") from None

    def claim_ids(self) -> list[str]:
        return sorted(self._snapshots)


def load_record(path: str | Path) -> dict[str, Any]:
    """Read one JSON claim record."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            record = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {path.name}: {e}") from e
    if not isinstance(record, dict):
        raise ValidationError(f"Claim file {path.name} must contain a JSON object")
    return record


class JsonDirectoryClaimSource:
    """Claims stored one per file as ``<directory>/<claim_id>.json``."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Claims directory not found: {self.directory}")

    def fetch(self, claim_id: str) -> ClaimSnapshot:
        path = self.directory / f"{claim_id}.json"
        if not path.exists():
            raise KeyError(f"Unknown claim: {claim_id}")
        logger.debug("Loading claim %s from %s", claim_id, path)
        return ClaimSnapshot.from_record(load_record(path))

    def claim_ids(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))

