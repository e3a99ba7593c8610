"""Collaborator contracts used by the refill core.

Wallet-connect transport, mint HTTP clients and the local e-cash wallet
live outside this package; the core only talks to them through the
protocols below.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, List, Optional, Protocol, Sequence, Tuple, Union

from .models import InvoiceQuote, Proof, SyncedCredential


class PaymentProvider(Protocol):
    """A connected remote wallet able to pay Lightning invoices."""

    async def get_balance(self) -> Any:
        """Return a bare number, ``{balance, unit}`` or ``{balanceMsats}``."""
        ...

    async def send_payment(self, invoice: str) -> Any:
        """Pay ``invoice``; the response may carry ``preimage``."""
        ...


class WalletConnector(Protocol):
    """Remote-signing wallet connection (NWC)."""

    async def is_connected(self) -> bool: ...

    async def request_provider(self) -> PaymentProvider: ...


class MintClient(Protocol):
    """Mint HTTP client."""

    async def create_invoice(self, mint_id: str, amount: int) -> InvoiceQuote: ...

    async def mint_from_paid_invoice(
        self, mint_id: str, quote_id: str, amount: int
    ) -> List[Proof]:
        """Mint proofs for a quote; raises if the quote is not settled yet."""
        ...

    async def send_token(self, mint_id: str, amount: int) -> Optional[str]:
        """Produce an encoded spend token worth ``amount`` sats."""
        ...


class CashuWallet(Protocol):
    """The local proof store."""

    @property
    def active_mint_id(self) -> Optional[str]: ...

    async def get_balance(self) -> int: ...

    async def update_proofs(
        self,
        mint_id: str,
        proofs_to_add: Sequence[Proof],
        proofs_to_remove: Sequence[Proof],
    ) -> None: ...


class CredentialDirectory(Protocol):
    """Live list of synchronized API credentials."""

    def list_credentials(self) -> Sequence[SyncedCredential]: ...


class Notifier(Protocol):
    """User-facing notifications (observability only)."""

    def info(self, message: str) -> Union[None, Awaitable[None]]: ...

    def success(self, message: str) -> Union[None, Awaitable[None]]: ...

    def error(self, message: str) -> Union[None, Awaitable[None]]: ...


class LoggingNotifier:
    """Notifier that writes user-facing messages to the log."""

    def __init__(self, name: str = "satsflow.notifications") -> None:
        self._logger = logging.getLogger(name)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def success(self, message: str) -> None:
        self._logger.info(message)

    def error(self, message: str) -> None:
        self._logger.warning(message)


class RecordingNotifier:
    """Notifier that keeps every message, e.g. for a status panel."""

    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def of_level(self, level: str) -> List[str]:
        return [m for lvl, m in self.messages if lvl == level]


class StaticCredentialDirectory:
    """CredentialDirectory backed by a replaceable in-memory list."""

    def __init__(self, credentials: Optional[Sequence[SyncedCredential]] = None) -> None:
        self._credentials: List[SyncedCredential] = list(credentials or [])

    def list_credentials(self) -> Sequence[SyncedCredential]:
        return list(self._credentials)

    def replace(self, credentials: Sequence[SyncedCredential]) -> None:
        self._credentials = list(credentials)
