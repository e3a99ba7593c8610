"""
Tests for satsflow_core.nwc_payment.

Tests cover:
- Precondition failure without side effects
- Immediate settlement via preimage
- Settled-but-slow mint (success with no proofs)
- Bounded polling and timeout
- Callback isolation
- attempt_mint_from_quote error swallowing
"""
from __future__ import annotations

import pytest

from conftest import MINT_URL, not_paid
from satsflow_core.exceptions import MintError
from satsflow_core.models import Proof
from satsflow_core.nwc_payment import NWCPaymentCallbacks, NWCPaymentExecutor


@pytest.mark.asyncio
async def test_not_connected_fails_without_creating_invoice(executor, connector, mint_client):
    connector.connected = False

    result = await executor.pay_with_nwc(1000, MINT_URL)

    assert result.success is False
    assert result.error == "wallet not connected"
    assert mint_client.invoices == []
    assert connector.provider.paid == []


@pytest.mark.asyncio
async def test_preimage_mints_immediately(executor, mint_client, provider, sleeper):
    received = []
    callbacks = NWCPaymentCallbacks(
        on_invoice_created=lambda invoice, quote: received.append(("invoice", invoice, quote)),
        on_payment_success=lambda proofs, amount: received.append(("success", len(proofs), amount)),
    )

    result = await executor.pay_with_nwc(1000, MINT_URL, callbacks)

    assert result.success is True
    assert len(result.proofs) == 1
    assert provider.paid == ["lnbc1000n1p1"]
    assert mint_client.mint_calls == ["quote_1"]
    assert received == [("invoice", "lnbc1000n1p1", "quote_1"), ("success", 1, 1000)]
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_payment_preimage_key_is_accepted(executor, provider, mint_client):
    provider.response = {"payment_preimage": "ff" * 32}

    result = await executor.pay_with_nwc(10, MINT_URL)

    assert result.success is True
    assert mint_client.mint_calls == ["quote_1"]


@pytest.mark.asyncio
async def test_settled_but_no_proofs_is_still_success(executor, mint_client):
    mint_client.mint_script = [[]]
    successes = []

    result = await executor.pay_with_nwc(
        500,
        MINT_URL,
        NWCPaymentCallbacks(on_payment_success=lambda p, a: successes.append(a)),
    )

    assert result.success is True
    assert result.proofs == []
    assert successes == []
    assert len(mint_client.mint_calls) == 1


@pytest.mark.asyncio
async def test_missing_preimage_polls_until_proofs(executor, provider, mint_client, sleeper):
    provider.response = {"preimage": ""}
    mint_client.mint_script = [not_paid(), not_paid(), []]

    result = await executor.pay_with_nwc(1000, MINT_URL)

    assert result.success is True
    assert len(result.proofs) == 1
    assert len(mint_client.mint_calls) == 4
    assert sleeper.delays == [2.0, 2.0, 2.0, 2.0]


@pytest.mark.asyncio
async def test_poll_budget_exhausted_is_timeout(executor, provider, mint_client, sleeper):
    provider.response = {}
    mint_client.mint_script = [[] for _ in range(15)]
    mint_client.default_mint = []
    errors = []

    result = await executor.pay_with_nwc(
        1000,
        MINT_URL,
        NWCPaymentCallbacks(on_payment_error=errors.append),
    )

    assert result.success is False
    assert "did not complete within timeout" in result.error
    assert len(mint_client.mint_calls) == 15
    assert len(sleeper.delays) == 15
    assert 28.0 <= sleeper.total <= 32.0
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_unsettled_quote_errors_never_surface(executor, provider, mint_client):
    provider.response = None
    mint_client.mint_script = [not_paid() for _ in range(15)]
    errors = []

    result = await executor.pay_with_nwc(
        1000,
        MINT_URL,
        NWCPaymentCallbacks(on_payment_error=errors.append),
    )

    assert result.success is False
    assert "quote" not in result.error
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_custom_poll_budget(connector, mint_client, sleeper):
    executor = NWCPaymentExecutor(connector, mint_client, poll_attempts=3, poll_interval=0.5, sleep=sleeper)
    connector.provider.response = {}
    mint_client.default_mint = []

    result = await executor.pay_with_nwc(1, MINT_URL)

    assert result.success is False
    assert sleeper.delays == [0.5, 0.5, 0.5]


@pytest.mark.asyncio
async def test_invoice_error_is_reported(executor, mint_client):
    mint_client.invoice_error = MintError("mint offline", mint_id=MINT_URL)
    errors = []

    result = await executor.pay_with_nwc(
        1000,
        MINT_URL,
        NWCPaymentCallbacks(on_payment_error=errors.append),
    )

    assert result.success is False
    assert result.error == "mint offline"
    assert isinstance(errors[0], MintError)


@pytest.mark.asyncio
async def test_failing_callbacks_do_not_abort(executor):
    def boom(*args):
        raise RuntimeError("observer broke")

    async def async_boom(*args):
        raise RuntimeError("async observer broke")

    result = await executor.pay_with_nwc(
        1000,
        MINT_URL,
        NWCPaymentCallbacks(on_invoice_created=boom, on_payment_success=async_boom),
    )

    assert result.success is True
    assert len(result.proofs) == 1


@pytest.mark.asyncio
async def test_attempt_mint_from_quote_swallows_errors(executor, mint_client):
    mint_client.mint_script = [not_paid("q9")]
    assert await executor.attempt_mint_from_quote(MINT_URL, "q9", 100) == []

    mint_client.mint_script = [[Proof(id="ks", amount=100)]]
    proofs = await executor.attempt_mint_from_quote(MINT_URL, "q9", 100)
    assert [p.amount for p in proofs] == [100]


@pytest.mark.asyncio
async def test_get_balance_normalizes(executor, provider):
    provider.balance = {"balance": 21_000, "unit": "msat"}
    assert await executor.get_balance() == 21

    provider.balance = "garbage"
    assert await executor.get_balance() is None


def test_rejects_empty_poll_budget(connector, mint_client):
    with pytest.raises(ValueError):
        NWCPaymentExecutor(connector, mint_client, poll_attempts=0)
