"""
Tests for satsflow_core.fees.

Tests cover:
- Ceiling rounding of per-mille fee totals
- Unknown (legacy) keysets
- Average fee display helper
"""
from __future__ import annotations

import pytest

from satsflow_core.fees import calculate_average_fee_per_proof, calculate_fees
from satsflow_core.models import MintKeyset, Proof


def _proof(keyset_id: str, amount: int = 8) -> Proof:
    return Proof(id=keyset_id, amount=amount, secret="x", C="y")


class TestCalculateFees:
    """Tests for calculate_fees."""

    def test_no_proofs_costs_nothing(self):
        assert calculate_fees([], [MintKeyset(id="ks1", input_fee_ppk=100)]) == 0

    def test_unknown_keysets_cost_nothing(self):
        proofs = [_proof("legacy1"), _proof("legacy2")]
        assert calculate_fees(proofs, [MintKeyset(id="ks1", input_fee_ppk=1000)]) == 0

    def test_full_unit_rate(self):
        assert calculate_fees([_proof("ks1")], [MintKeyset(id="ks1", input_fee_ppk=1000)]) == 1

    def test_tiny_rates_round_up(self):
        keysets = [MintKeyset(id="ks1", input_fee_ppk=1)]
        assert calculate_fees([_proof("ks1"), _proof("ks1")], keysets) == 1

    def test_exact_multiple_does_not_round_up(self):
        keysets = [MintKeyset(id="ks1", input_fee_ppk=500)]
        assert calculate_fees([_proof("ks1")] * 4, keysets) == 2

    def test_just_over_boundary(self):
        keysets = [MintKeyset(id="ks1", input_fee_ppk=1001)]
        assert calculate_fees([_proof("ks1")], keysets) == 2

    def test_keyset_without_fee_rate(self):
        keysets = [MintKeyset(id="ks1", input_fee_ppk=None)]
        assert calculate_fees([_proof("ks1")], keysets) == 0

    def test_mixed_keysets(self):
        keysets = [
            MintKeyset(id="ks1", input_fee_ppk=100),
            MintKeyset(id="ks2", input_fee_ppk=250),
        ]
        proofs = [_proof("ks1"), _proof("ks2"), _proof("ks2"), _proof("other")]
        # 100 + 250 + 250 = 600 ppk -> 1 sat
        assert calculate_fees(proofs, keysets) == 1

    def test_accepts_mapping_of_keysets(self):
        keysets = {"ks1": MintKeyset(id="ks1", input_fee_ppk=1500)}
        assert calculate_fees([_proof("ks1")], keysets) == 2


class TestAverageFeePerProof:
    """Tests for calculate_average_fee_per_proof."""

    def test_empty_list_is_zero(self):
        assert calculate_average_fee_per_proof([], []) == 0

    def test_average(self):
        keysets = [MintKeyset(id="ks1", input_fee_ppk=1000)]
        proofs = [_proof("ks1")] * 4
        assert calculate_average_fee_per_proof(proofs, keysets) == pytest.approx(1.0)

    def test_average_uses_rounded_total(self):
        keysets = [MintKeyset(id="ks1", input_fee_ppk=1)]
        proofs = [_proof("ks1")] * 4
        assert calculate_average_fee_per_proof(proofs, keysets) == pytest.approx(0.25)
