"""Jurisdiction Rule Table.

Static, read-only lookup from a two-letter loss-state code to regulatory
deadlines, comparative negligence regime and total-loss threshold. Shared by
all runs.

``lookup_jurisdiction()`` returns a tagged result so callers can tell a known
rule (``Found``) from the safe fallback (``DefaultApplied``) when auditing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from claims_decisioning.exceptions import JurisdictionLookupError

logger = logging.getLogger(__name__)

DEFAULT_STATUTE = "NAIC Unfair Claims Settlement Practices Model Act"


class NegligenceRegime(str, Enum):
    """Comparative/contributory negligence rule for apportioning recovery."""

    PURE_COMPARATIVE = "pure_comparative"
    MODIFIED_COMPARATIVE_50 = "modified_comparative_50"
    MODIFIED_COMPARATIVE_51 = "modified_comparative_51"
    CONTRIBUTORY = "contributory"

    def allows_recovery(self, insured_fault: int) -> bool:
        """Whether the insured may recover anything at ``insured_fault`` percent.

        Contributory bars recovery at any fault; modified-50 at 50% or more;
        modified-51 above 50%; pure comparative only at 100%.
        """
        if self is NegligenceRegime.CONTRIBUTORY:
            return insured_fault == 0
        if self is NegligenceRegime.MODIFIED_COMPARATIVE_50:
            return insured_fault < 50
        if self is NegligenceRegime.MODIFIED_COMPARATIVE_51:
            return insured_fault <= 50
        return insured_fault < 100


@dataclass(frozen=True, slots=True)
class JurisdictionRule:
    """Regulatory rule set for one jurisdiction (days are calendar days)."""

    code: str
    acknowledgment_days: int = 15
    investigation_days: int = 30
    decision_days: int = 30  # payment after settlement offer
    reservation_of_rights_days: int = 30
    status_update_days: int = 30
    negligence_regime: NegligenceRegime = NegligenceRegime.PURE_COMPARATIVE
    total_loss_threshold: float = 0.75  # repair cost / ACV
    statute: str = DEFAULT_STATUTE


@dataclass(frozen=True, slots=True)
class Found:
    rule: JurisdictionRule
    default_applied: bool = False


@dataclass(frozen=True, slots=True)
class DefaultApplied:
    rule: JurisdictionRule
    requested_code: str | None
    default_applied: bool = True


JurisdictionLookup = Found | DefaultApplied

DEFAULT_CODE = "DEFAULT"

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

_CONTRIBUTORY = ("AL", "DC", "MD", "NC", "VA")
_MODIFIED_50 = ("AR", "CO", "GA", "ID", "KS", "ME", "NE", "ND", "OK", "TN", "UT", "WV")
_MODIFIED_51 = (
    "CT", "DE", "HI", "IL", "IN", "IA", "MA", "MI", "MN", "MT", "NV",
    "NH", "NJ", "OH", "OR", "PA", "SC", "TX", "VT", "WI", "WY",
)

_TOTAL_LOSS_THRESHOLDS = {
    "AL": 0.75, "AK": 1.00, "AZ": 1.00, "AR": 0.70, "CA": 1.00, "CO": 1.00, "CT": 1.00,
    "DE": 1.00, "FL": 0.80, "GA": 1.00, "HI": 1.00, "ID": 1.00, "IL": 1.00, "IN": 0.70,
    "IA": 0.70, "KS": 1.00, "KY": 0.75, "LA": 0.75, "ME": 1.00, "MD": 0.75, "MA": 1.00,
    "MI": 0.75, "MN": 0.70, "MS": 1.00, "MO": 0.80, "MT": 1.00, "NE": 0.75, "NV": 0.65,
    "NH": 0.75, "NJ": 1.00, "NM": 1.00, "NY": 0.75, "NC": 0.75, "ND": 1.00, "OH": 1.00,
    "OK": 0.60, "OR": 0.80, "PA": 1.00, "RI": 1.00, "SC": 0.75, "SD": 1.00, "TN": 0.75,
    "TX": 1.00, "UT": 1.00, "VT": 1.00, "VA": 0.75, "WA": 1.00, "WV": 0.75, "WI": 0.70,
    "WY": 0.75, "DC": 0.75,
}

_ACKNOWLEDGMENT_DAYS = {
    "AK": 10, "AZ": 10, "CT": 10, "MA": 10, "MN": 10, "NJ": 10, "PA": 10,
    "FL": 14,
    "LA": 30,
}

# (investigation_days, decision_days)
_HANDLING_DAYS = {
    "CA": (40, 30),
    "FL": (90, 20),
    "TX": (15, 5),
    "IL": (45, 30),
}

_STATUTES = {
    "CA": "Cal. Code Regs. tit. 10, § 2695.5-2695.7",
    "FL": "Fla. Stat. § 627.70131",
    "TX": "Tex. Ins. Code §§ 542.055-542.057",
    "NY": "N.Y. Comp. Codes R. & Regs. tit. 11, § 216",
    "IL": "Ill. Admin. Code tit. 50, § 919",
}


def _regime_for(code: str) -> NegligenceRegime:
    if code in _CONTRIBUTORY:
        return NegligenceRegime.CONTRIBUTORY
    if code in _MODIFIED_50:
        return NegligenceRegime.MODIFIED_COMPARATIVE_50
    if code in _MODIFIED_51:
        return NegligenceRegime.MODIFIED_COMPARATIVE_51
    return NegligenceRegime.PURE_COMPARATIVE


def _build_rules() -> dict[str, JurisdictionRule]:
    rules = {}
    for code, threshold in _TOTAL_LOSS_THRESHOLDS.items():
        investigation_days, decision_days = _HANDLING_DAYS.get(code, (30, 30))
        rules[code] = JurisdictionRule(
            code=code,
            acknowledgment_days=_ACKNOWLEDGMENT_DAYS.get(code, 15),
            investigation_days=investigation_days,
            decision_days=decision_days,
            negligence_regime=_regime_for(code),
            total_loss_threshold=threshold,
            statute=_STATUTES.get(code, DEFAULT_STATUTE),
        )
    return rules


class JurisdictionTable:
    """Read-only jurisdiction rule table.

    Example:
        >>> table = JurisdictionTable()
        >>> table.lookup("tx").rule.decision_days
        5
        >>> isinstance(table.lookup("ZZ"), DefaultApplied)
        True
    """

    def __init__(
        self,
        rules: Mapping[str, JurisdictionRule] | None = None,
        default: JurisdictionRule | None = None,
    ):
        self._rules: Mapping[str, JurisdictionRule] = MappingProxyType(dict(rules or _build_rules()))
        self.default = default or JurisdictionRule(code=DEFAULT_CODE)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.strip().upper() in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def codes(self) -> list[str]:
        return sorted(self._rules)

    def lookup(self, code: str | None) -> JurisdictionLookup:
        """Look up ``code``; unknown or empty codes fall back to the default rule."""
        normalized = (code or "").strip().upper()
        rule = self._rules.get(normalized)
        if rule is not None:
            return Found(rule=rule)
        logger.warning("Unknown jurisdiction %r; applying default rule set", code)
        return DefaultApplied(rule=self.default, requested_code=code)

    def require(self, code: str) -> JurisdictionRule:
        """Strict lookup.

        Raises:
            JurisdictionLookupError: ``code`` is not in the table.
        """
        normalized = (code or "").strip().upper()
        try:
            return self._rules[normalized]
        except KeyError:
            raise JurisdictionLookupError(code) from None


JURISDICTIONS = JurisdictionTable()


def lookup_jurisdiction(code: str | None) -> JurisdictionLookup:
    """Look up ``code`` in the shared table."""
    return JURISDICTIONS.lookup(code)
