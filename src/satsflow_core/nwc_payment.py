"""
NWC payment executor.

Funds the local e-cash wallet from a remote wallet connected over NWC:

1. Check that a remote wallet is connected
2. Ask the mint for a Lightning invoice (mint quote)
3. Ask the remote wallet to pay it
4. Mint proofs for the quote, either straight away (preimage returned)
   or by polling the mint for a bounded number of attempts

The executor never raises past ``pay_with_nwc``; every failure is
reported through ``PaymentResult`` and the ``on_payment_error`` callback.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

from .balance import normalize_balance
from .constants import Intervals, Limits
from .exceptions import PaymentTimeoutError, WalletNotConnectedError, error_message
from .interfaces import MintClient, WalletConnector
from .models import PaymentResult, Proof

logger = logging.getLogger(__name__)

MaybeAwaitable = Union[None, Awaitable[None]]
SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class NWCPaymentCallbacks:
    """Observability hooks; none of them can abort the payment flow."""
    on_invoice_created: Optional[Callable[[str, str], MaybeAwaitable]] = None
    on_payment_success: Optional[Callable[[List[Proof], int], MaybeAwaitable]] = None
    on_payment_error: Optional[Callable[[BaseException], MaybeAwaitable]] = None


def _extract_preimage(response: Any) -> Optional[str]:
    if response is None:
        return None
    if isinstance(response, dict):
        preimage = response.get("preimage") or response.get("payment_preimage")
    else:
        preimage = getattr(response, "preimage", None) or getattr(response, "payment_preimage", None)
    return preimage or None


class NWCPaymentExecutor:
    """Pays mint invoices from a connected NWC wallet and collects the proofs."""

    def __init__(
        self,
        connector: WalletConnector,
        mint_client: MintClient,
        poll_attempts: int = Limits.NWC_MAX_POLLS,
        poll_interval: float = Intervals.NWC_POLL,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if poll_attempts < 1:
            raise ValueError("poll_attempts must be at least 1")
        self._connector = connector
        self._mint_client = mint_client
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, connector: WalletConnector, mint_client: MintClient) -> "NWCPaymentExecutor":
        return cls(
            connector,
            mint_client,
            poll_attempts=settings.nwc_poll_attempts,
            poll_interval=settings.nwc_poll_interval_seconds,
        )

    async def is_connected(self) -> bool:
        try:
            return bool(await self._connector.is_connected())
        except Exception as e:
            logger.debug("NWC connection check failed: %s", e)
            return False

    async def get_balance(self) -> Optional[int]:
        """Remote wallet balance in whole sats, or None if unavailable."""
        try:
            provider = await self._connector.request_provider()
            raw = await provider.get_balance()
        except Exception as e:
            logger.debug("NWC balance unavailable: %s", e)
            return None
        return normalize_balance(raw)

    async def _notify(self, name: str, callback: Optional[Callable[..., MaybeAwaitable]], *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("NWC %s callback failed", name)

    async def pay_with_nwc(
        self,
        amount: int,
        mint_id: str,
        callbacks: Optional[NWCPaymentCallbacks] = None,
    ) -> PaymentResult:
        """
        Fund ``amount`` sats at ``mint_id`` from the connected NWC wallet.

        Returns:
            PaymentResult. ``success`` with an empty proof list means the
            invoice was paid but the mint has not released proofs yet; the
            payment must not be retried.
        """
        callbacks = callbacks or NWCPaymentCallbacks()
        try:
            if not await self.is_connected():
                raise WalletNotConnectedError()

            logger.info("Creating invoice for %s sats at mint %s", amount, mint_id)
            quote = await self._mint_client.create_invoice(mint_id, amount)
            logger.info("Invoice created, quote_id=%s", quote.quote_id)
            await self._notify("invoice_created", callbacks.on_invoice_created, quote.payment_request, quote.quote_id)

            provider = await self._connector.request_provider()
            logger.info("Sending payment via NWC")
            response = await provider.send_payment(quote.payment_request)
            preimage = _extract_preimage(response)

            if preimage:
                proofs = await self._mint_client.mint_from_paid_invoice(mint_id, quote.quote_id, amount)
                if proofs:
                    logger.info("Payment settled, minted %d proofs", len(proofs))
                    await self._notify("payment_success", callbacks.on_payment_success, proofs, amount)
                    return PaymentResult.ok(proofs, quote.quote_id)
                logger.warning(
                    "Payment settled but mint returned no proofs yet (quote_id=%s)",
                    quote.quote_id,
                )
                return PaymentResult.ok([], quote.quote_id)

            logger.info("No preimage returned, polling mint for settlement")
            proofs = await self._poll_for_proofs(mint_id, quote.quote_id, amount)
            if proofs:
                await self._notify("payment_success", callbacks.on_payment_success, proofs, amount)
                return PaymentResult.ok(proofs, quote.quote_id)
            raise PaymentTimeoutError(attempts=self.poll_attempts)

        except Exception as e:
            message = error_message(e)
            logger.error("NWC payment failed: %s", message)
            await self._notify("payment_error", callbacks.on_payment_error, e)
            return PaymentResult.failed(message)

    async def _poll_for_proofs(self, mint_id: str, quote_id: str, amount: int) -> List[Proof]:
        for attempt in range(1, self.poll_attempts + 1):
            await self._sleep(self.poll_interval)
            try:
                proofs = await self._mint_client.mint_from_paid_invoice(mint_id, quote_id, amount)
            except Exception as e:
                logger.debug("Poll %d/%d: quote not paid yet (%s)", attempt, self.poll_attempts, e)
                continue
            if proofs:
                logger.info("Payment confirmed after %d polls, minted %d proofs", attempt, len(proofs))
                return list(proofs)
            logger.debug("Poll %d/%d: no proofs yet", attempt, self.poll_attempts)
        return []

    async def attempt_mint_from_quote(self, mint_id: str, quote_id: str, amount: int) -> List[Proof]:
        """Single mint attempt for an already-paid quote; errors become []."""
        try:
            return list(await self._mint_client.mint_from_paid_invoice(mint_id, quote_id, amount))
        except Exception as e:
            logger.debug("Mint attempt for quote %s failed: %s", quote_id, e)
            return []
