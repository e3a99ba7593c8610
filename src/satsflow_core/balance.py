"""Balance normalisation for remote wallet providers and local mints.

Wallet providers answer ``get_balance()`` in one of three shapes:

- a bare number of sats
- ``{"balance": n, "unit": "sat" | "msat" | ...}``
- ``{"balanceMsats": n}``

The shapes are parsed into a small tagged union here so call sites only
ever see whole sats.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from .constants import Limits


@dataclass(frozen=True)
class SatBalance:
    sats: int


@dataclass(frozen=True)
class UnitBalance:
    amount: int
    unit: str


@dataclass(frozen=True)
class MsatBalance:
    msats: int


ProviderBalance = Union[SatBalance, UnitBalance, MsatBalance]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(name)
    return getattr(raw, name, None)


def parse_provider_balance(raw: Any) -> Optional[ProviderBalance]:
    """Parse a provider response into a ``ProviderBalance``, or None."""
    if _is_number(raw):
        return SatBalance(int(raw))
    if raw is None:
        return None

    balance = _field(raw, "balance")
    if _is_number(balance):
        unit = str(_field(raw, "unit") or "sat")
        return UnitBalance(amount=int(balance), unit=unit)

    balance_msats = _field(raw, "balanceMsats")
    if _is_number(balance_msats):
        return MsatBalance(int(balance_msats))

    return None


def to_sats(balance: ProviderBalance) -> int:
    """Convert a parsed balance to whole sats (milli-sats are floored)."""
    if isinstance(balance, SatBalance):
        return balance.sats
    if isinstance(balance, MsatBalance):
        return balance.msats // Limits.MSATS_PER_SAT
    if "msat" in balance.unit.lower():
        return balance.amount // Limits.MSATS_PER_SAT
    return balance.amount


def normalize_balance(raw: Any) -> Optional[int]:
    parsed = parse_provider_balance(raw)
    if parsed is None:
        return None
    return to_sats(parsed)


def compute_total_balance_sats(
    mint_balances: Optional[Mapping[str, int]],
    mint_units: Optional[Mapping[str, str]] = None,
) -> int:
    """Total balance across mints in sats, converting msat mints."""
    if not mint_balances:
        return 0
    units = mint_units or {}
    total = 0
    for mint_id, amount in mint_balances.items():
        amount = amount or 0
        if units.get(mint_id, "sat") == "msat":
            total += amount // Limits.MSATS_PER_SAT
        else:
            total += amount
    return total


def current_mint_balance(
    active_mint_id: Optional[str],
    mint_balances: Optional[Mapping[str, int]],
) -> int:
    if not active_mint_id or not mint_balances:
        return 0
    return mint_balances.get(active_mint_id) or 0
