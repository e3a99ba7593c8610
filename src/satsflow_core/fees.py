"""Mint input fee accounting.

The fee rule must match the mint exactly: per-proof ``input_fee_ppk``
values are summed and the total is rounded *up* to a whole sat.
"""
from __future__ import annotations

from typing import Iterable, Mapping, Sequence, Union

from .constants import Limits
from .models import MintKeyset, Proof

KeysetSource = Union[Sequence[MintKeyset], Mapping[str, MintKeyset]]


def _index_keysets(active_keysets: KeysetSource) -> Mapping[str, MintKeyset]:
    if isinstance(active_keysets, Mapping):
        return active_keysets
    return {k.id: k for k in active_keysets}


def calculate_fees(proofs: Iterable[Proof], active_keysets: KeysetSource) -> int:
    """Return the fee in sats owed for spending ``proofs``.

    Proofs whose keyset is not in ``active_keysets`` are treated as
    legacy and contribute nothing.
    """
    keysets = _index_keysets(active_keysets)
    sum_fees = 0
    for proof in proofs:
        keyset = keysets.get(proof.id)
        if keyset is not None and keyset.input_fee_ppk is not None:
            sum_fees += keyset.input_fee_ppk

    divisor = Limits.FEE_PPK_DIVISOR
    return (sum_fees + divisor - 1) // divisor


def calculate_average_fee_per_proof(
    proofs: Sequence[Proof],
    active_keysets: KeysetSource,
) -> float:
    """Average fee per proof, for display only."""
    if not proofs:
        return 0
    return calculate_fees(proofs, active_keysets) / len(proofs)
