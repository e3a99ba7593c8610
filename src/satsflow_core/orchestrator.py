"""
Balance-triggered auto-refill orchestrator.

Two independent channels are watched:

- NWC refill: when the local e-cash balance drops below the configured
  threshold, pull ``amount_sats`` from the connected NWC wallet.
- API top-up: when a metered API key's balance (milli-sats) drops below
  its threshold, spend ``amount_sats`` from the local wallet into it.

Each channel moves through ``Idle -> Checking -> (NoAction | Executing) ->
Idle``. Evaluations are throttled to one per ``check_interval``; a channel
never runs two executions at once and never re-triggers within
``cooldown`` of its last successful execution.

Usage:
    orchestrator = AutoRefillOrchestrator(
        wallet=wallet,
        executor=NWCPaymentExecutor(connector, mint_client),
        mint_client=mint_client,
        topup_client=HttpTopupClient(),
        policies=PolicyRepository(store),
        credentials=credential_directory,
    )
    await orchestrator.on_balance_change(new_balance)
    orchestrator.start()   # optional periodic re-check
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

from .constants import Intervals
from .exceptions import (
    CredentialNotConfiguredError,
    NoActiveMintError,
    SatsflowException,
    TokenGenerationError,
    error_message,
)
from .interfaces import CashuWallet, CredentialDirectory, LoggingNotifier, MintClient, Notifier
from .logging_config import LogContext
from .models import AutoRefillStatus, PaymentResult, Proof, SyncedCredential
from .nwc_payment import NWCPaymentExecutor
from .settings_store import PolicyRepository, RefillPolicy, TopupPolicy
from .topup import HttpTopupClient

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
UnstoredProofsHandler = Callable[[str, Sequence[Proof]], Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Channel(str, Enum):
    """Refill channel."""
    NWC = "nwc"
    API = "api"


class ChannelAction(str, Enum):
    """What a channel did during one evaluation."""
    THROTTLED = "throttled"
    DISABLED = "disabled"
    IN_FLIGHT = "in_flight"
    COOLDOWN = "cooldown"
    ABOVE_THRESHOLD = "above_threshold"
    NO_CREDENTIAL = "no_credential"
    CREDENTIAL_NOT_FOUND = "credential_not_found"
    CREDENTIAL_INVALID = "credential_invalid"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NO_ACTIVE_MINT = "no_active_mint"
    NOT_CONNECTED = "not_connected"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def executed(self) -> bool:
        return self in (ChannelAction.SUCCEEDED, ChannelAction.FAILED)


@dataclass(frozen=True)
class CheckOutcome:
    """Result of one ``check_and_refill`` call."""
    nwc: ChannelAction
    api: ChannelAction

    @property
    def throttled(self) -> bool:
        return self.nwc == ChannelAction.THROTTLED and self.api == ChannelAction.THROTTLED


class AutoRefillOrchestrator:
    """Decides when to refill the wallet or top up an API key, and does it."""

    def __init__(
        self,
        *,
        wallet: CashuWallet,
        executor: NWCPaymentExecutor,
        mint_client: MintClient,
        topup_client: HttpTopupClient,
        policies: PolicyRepository,
        credentials: CredentialDirectory,
        notifier: Optional[Notifier] = None,
        clock: Clock = _utcnow,
        cooldown: float = Intervals.AUTO_REFILL_COOLDOWN,
        check_interval: float = Intervals.BALANCE_CHECK,
        on_unstored_proofs: Optional[UnstoredProofsHandler] = None,
    ) -> None:
        self._wallet = wallet
        self._executor = executor
        self._mint_client = mint_client
        self._topup_client = topup_client
        self._policies = policies
        self._credentials = credentials
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._clock = clock
        self.cooldown = timedelta(seconds=cooldown)
        self.check_interval = timedelta(seconds=check_interval)
        self._on_unstored_proofs = on_unstored_proofs

        self._processing: Dict[Channel, bool] = {Channel.NWC: False, Channel.API: False}
        # Last success seen by this process; survives a failed stamp write
        self._last_success: Dict[Channel, Optional[datetime]] = {Channel.NWC: None, Channel.API: None}
        self._last_check_at: Optional[datetime] = None
        self._ticker: Optional[asyncio.Task[None]] = None

        self._refill_policy: RefillPolicy = policies.load_refill_policy()
        self._topup_policy: TopupPolicy = policies.load_topup_policy()

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "AutoRefillOrchestrator":
        kwargs.setdefault("cooldown", settings.refill_cooldown_seconds)
        kwargs.setdefault("check_interval", settings.balance_check_interval_seconds)
        return cls(**kwargs)

    # ------------------------------------------------------------------
    # Event hooks
    # ------------------------------------------------------------------

    async def on_balance_change(self, balance: int) -> CheckOutcome:
        return await self.check_and_refill(balance)

    async def on_credentials_changed(self) -> CheckOutcome:
        return await self.check_and_refill()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def is_processing(self, channel: Channel) -> bool:
        return self._processing[channel]

    def is_in_cooldown(self, last_success_at: Optional[datetime]) -> bool:
        if last_success_at is None:
            return False
        return self._clock() - _as_utc(last_success_at) < self.cooldown

    def last_success_at(self, channel: Channel) -> Optional[datetime]:
        """Later of the in-process success time and the stored stamp."""
        if channel == Channel.NWC:
            stored = self._refill_policy.last_refill_at
        else:
            stored = self._topup_policy.last_topup_at
        candidates = [_as_utc(t) for t in (self._last_success[channel], stored) if t is not None]
        return max(candidates) if candidates else None

    def _record_success(self, channel: Channel) -> None:
        now = self._clock()
        self._last_success[channel] = now
        try:
            if channel == Channel.NWC:
                self._refill_policy = self._policies.mark_refill_success(now)
            else:
                self._topup_policy = self._policies.mark_topup_success(now)
        except Exception:
            logger.exception(
                "Failed to persist %s success time, cooldown held in memory only",
                channel.value,
            )

    def _throttled(self, now: datetime) -> bool:
        if self._last_check_at is None:
            return False
        return now - self._last_check_at < self.check_interval

    async def check_and_refill(self, balance: Optional[int] = None) -> CheckOutcome:
        """
        Evaluate both channels once and execute where needed.

        Args:
            balance: Observed local wallet balance in sats. Read from the
                wallet when omitted.

        Returns:
            CheckOutcome describing what each channel did.
        """
        now = self._clock()
        if self._throttled(now):
            logger.debug(
                "Balance check throttled (%.1fs since last check)",
                (now - self._last_check_at).total_seconds(),  # type: ignore[operator]
            )
            return CheckOutcome(nwc=ChannelAction.THROTTLED, api=ChannelAction.THROTTLED)
        self._last_check_at = now

        # Policies are reloaded every cycle so settings edits apply immediately
        self._refill_policy = self._policies.load_refill_policy()
        self._topup_policy = self._policies.load_topup_policy()

        try:
            nwc_action = await self._evaluate_nwc(self._refill_policy, balance)
        except Exception:
            logger.exception("NWC refill evaluation failed")
            nwc_action = ChannelAction.FAILED

        try:
            api_action = await self._evaluate_api(self._topup_policy)
        except Exception:
            logger.exception("API top-up evaluation failed")
            api_action = ChannelAction.FAILED

        logger.debug("Balance check done nwc=%s api=%s", nwc_action.value, api_action.value)
        return CheckOutcome(nwc=nwc_action, api=api_action)

    async def _evaluate_nwc(self, policy: RefillPolicy, balance: Optional[int]) -> ChannelAction:
        if not policy.enabled:
            return ChannelAction.DISABLED
        if self._processing[Channel.NWC]:
            return ChannelAction.IN_FLIGHT
        if self.is_in_cooldown(self.last_success_at(Channel.NWC)):
            logger.debug("NWC refill in cooldown, skipping")
            return ChannelAction.COOLDOWN

        if balance is None:
            balance = await self._wallet.get_balance()
        if balance >= policy.threshold_sats:
            return ChannelAction.ABOVE_THRESHOLD

        logger.info(
            "Balance %s below threshold %s, triggering NWC refill",
            balance,
            policy.threshold_sats,
        )
        return await self.execute_nwc_refill(policy)

    def _find_credential(self, key_id: str) -> Optional[SyncedCredential]:
        for credential in self._credentials.list_credentials():
            if credential.id == key_id:
                return credential
        return None

    async def _evaluate_api(self, policy: TopupPolicy) -> ChannelAction:
        if not policy.enabled:
            return ChannelAction.DISABLED
        if not policy.api_key_id:
            return ChannelAction.NO_CREDENTIAL
        if self._processing[Channel.API]:
            return ChannelAction.IN_FLIGHT
        if self.is_in_cooldown(self.last_success_at(Channel.API)):
            logger.debug("API top-up in cooldown, skipping")
            return ChannelAction.COOLDOWN

        credential = self._find_credential(policy.api_key_id)
        if credential is None:
            logger.info("Configured API key not found in synced keys")
            return ChannelAction.CREDENTIAL_NOT_FOUND
        if credential.invalid:
            logger.info("Configured API key is marked invalid, skipping top-up")
            return ChannelAction.CREDENTIAL_INVALID
        if credential.balance_msats >= policy.threshold_msats:
            return ChannelAction.ABOVE_THRESHOLD

        # Fresh read: an NWC refill in this same cycle may have changed it
        source_balance = await self._wallet.get_balance()
        if source_balance < policy.amount_sats:
            logger.info(
                "API key needs top-up but wallet balance %s < top-up amount %s",
                source_balance,
                policy.amount_sats,
            )
            return ChannelAction.INSUFFICIENT_FUNDS

        logger.info(
            "API key balance %s msats below threshold %s msats, triggering top-up",
            credential.balance_msats,
            policy.threshold_msats,
        )
        return await self.execute_api_topup(policy, credential)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _emit(self, level: str, message: str) -> None:
        try:
            result = getattr(self._notifier, level)(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Notifier failed for %s message", level)

    async def _handle_unstored_proofs(
        self,
        mint_id: str,
        result: PaymentResult,
        amount: int,
        error: Exception,
    ) -> None:
        # Invoice already paid; these proofs exist nowhere else
        logger.error(
            "Paid %s sats but could not store %d minted proofs worth %s sats (quote_id=%s): %s",
            amount,
            len(result.proofs),
            result.amount,
            result.quote_id,
            error_message(error),
            exc_info=error,
        )
        if self._on_unstored_proofs is not None:
            try:
                handled = self._on_unstored_proofs(mint_id, list(result.proofs))
                if inspect.isawaitable(handled):
                    await handled
            except Exception:
                logger.exception("Unstored proofs handler failed (quote_id=%s)", result.quote_id)
        await self._emit(
            "error",
            f"Paid {amount} sats from NWC wallet but the minted tokens could not be saved: "
            f"{error_message(error)}",
        )

    async def execute_nwc_refill(self, policy: RefillPolicy) -> ChannelAction:
        """Pull ``policy.amount_sats`` from the NWC wallet into the active mint."""
        if self._processing[Channel.NWC]:
            return ChannelAction.IN_FLIGHT
        mint_id = self._wallet.active_mint_id
        if not mint_id:
            logger.info("No active mint, skipping NWC refill")
            return ChannelAction.NO_ACTIVE_MINT

        self._processing[Channel.NWC] = True
        try:
            with LogContext(channel=Channel.NWC.value, mint_id=mint_id):
                # Connection may have dropped since the decision was made
                if not await self._executor.is_connected():
                    logger.info("NWC not connected, skipping auto-refill")
                    return ChannelAction.NOT_CONNECTED

                amount = policy.amount_sats
                await self._emit("info", f"Auto-refilling {amount} sats from NWC wallet...")
                result = await self._executor.pay_with_nwc(amount, mint_id)

                if not result.success:
                    await self._emit("error", f"Auto-refill failed: {result.error}")
                    return ChannelAction.FAILED

                # A settled payment is never retried, even if proofs lag
                self._record_success(Channel.NWC)

                if not result.proofs:
                    await self._emit(
                        "info",
                        f"Paid {amount} sats from NWC wallet; tokens are still being minted",
                    )
                    return ChannelAction.SUCCEEDED

                try:
                    await self._wallet.update_proofs(mint_id, result.proofs, [])
                except Exception as e:
                    await self._handle_unstored_proofs(mint_id, result, amount, e)
                    return ChannelAction.SUCCEEDED

                await self._emit("success", f"Auto-refilled {amount} sats from NWC wallet!")
                return ChannelAction.SUCCEEDED
        except Exception as e:
            logger.exception("Auto-refill error")
            await self._emit("error", f"Auto-refill failed: {error_message(e)}")
            return ChannelAction.FAILED
        finally:
            self._processing[Channel.NWC] = False

    async def execute_api_topup(
        self,
        policy: TopupPolicy,
        credential: SyncedCredential,
    ) -> ChannelAction:
        """Spend ``policy.amount_sats`` from the local wallet into ``credential``."""
        if self._processing[Channel.API]:
            return ChannelAction.IN_FLIGHT

        self._processing[Channel.API] = True
        try:
            mint_id = self._wallet.active_mint_id
            with LogContext(channel=Channel.API.value, mint_id=mint_id):
                if not policy.api_key_id:
                    raise CredentialNotConfiguredError()
                if not mint_id:
                    raise NoActiveMintError()

                amount = policy.amount_sats
                await self._emit("info", f"Auto-topping up API key with {amount} sats...")

                token = await self._mint_client.send_token(mint_id, amount)
                if not token:
                    raise TokenGenerationError()

                await self._topup_client.topup(credential.base_url, policy.api_key_id, token)

                # The credential is funded from here on; only the stamp can fail
                self._record_success(Channel.API)
                await self._emit("success", f"Auto-topped up API key with {amount} sats!")
                return ChannelAction.SUCCEEDED
        except CredentialNotConfiguredError:
            logger.info("No API key configured, skipping top-up")
            return ChannelAction.NO_CREDENTIAL
        except NoActiveMintError:
            logger.info("No active mint, skipping API top-up")
            return ChannelAction.NO_ACTIVE_MINT
        except Exception as e:
            if isinstance(e, SatsflowException):
                logger.error("API top-up failed: %s", e.message)
            else:
                logger.exception("API top-up error")
            await self._emit("error", f"API auto-topup failed: {error_message(e)}")
            return ChannelAction.FAILED
        finally:
            self._processing[Channel.API] = False

    # ------------------------------------------------------------------
    # Status & ticker
    # ------------------------------------------------------------------

    def status(self) -> AutoRefillStatus:
        return AutoRefillStatus(
            nwc_auto_refill_enabled=self._refill_policy.enabled,
            api_auto_topup_enabled=self._topup_policy.enabled,
            is_processing_nwc_refill=self._processing[Channel.NWC],
            is_processing_api_topup=self._processing[Channel.API],
            last_nwc_refill_at=self.last_success_at(Channel.NWC),
            last_api_topup_at=self.last_success_at(Channel.API),
        )

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def start(self, interval: Optional[float] = None) -> None:
        """Re-check balances every ``interval`` seconds on the running loop."""
        if self.is_running:
            return
        seconds = interval if interval is not None else self.check_interval.total_seconds()
        if seconds <= 0:
            raise ValueError("ticker interval must be greater than zero")

        async def _runner() -> None:
            while True:
                await asyncio.sleep(seconds)
                try:
                    await self.check_and_refill()
                except Exception:
                    logger.exception("Periodic balance check failed")

        self._ticker = asyncio.create_task(_runner())
        logger.info("Auto-refill ticker started (every %ss)", seconds)

    async def stop(self) -> None:
        if self._ticker is None:
            return
        self._ticker.cancel()
        try:
            await self._ticker
        except asyncio.CancelledError:
            pass
        self._ticker = None
        logger.info("Auto-refill ticker stopped")
