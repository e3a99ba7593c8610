"""
Pytest configuration and shared fakes for satsflow-core tests.
"""
from __future__ import annotations

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List, Optional, Sequence

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Set test environment
os.environ.setdefault("SATSFLOW_ENVIRONMENT", "dev")

from satsflow_core.exceptions import QuoteNotPaidError
from satsflow_core.interfaces import RecordingNotifier, StaticCredentialDirectory
from satsflow_core.models import InvoiceQuote, Proof
from satsflow_core.nwc_payment import NWCPaymentExecutor
from satsflow_core.orchestrator import AutoRefillOrchestrator
from satsflow_core.settings_store import InMemorySettingsStore, PolicyRepository
from satsflow_core.topup import HttpTopupClient

MINT_URL = "https://mint.example.com"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> None:
        self.now = self.now + timedelta(seconds=seconds, minutes=minutes)


class FakeProvider:
    """Remote NWC wallet."""

    def __init__(self, response: Any = None, balance: Any = 0) -> None:
        self.response = response if response is not None else {"preimage": "ab" * 32}
        self.balance = balance
        self.paid: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    async def get_balance(self) -> Any:
        return self.balance

    async def send_payment(self, invoice: str) -> Any:
        self.paid.append(invoice)
        if self.gate is not None:
            await self.gate.wait()
        return self.response


class FakeConnector:
    def __init__(self, provider: FakeProvider, connected: bool = True) -> None:
        self.provider = provider
        self.connected = connected

    async def is_connected(self) -> bool:
        return self.connected

    async def request_provider(self) -> FakeProvider:
        return self.provider


class FakeMintClient:
    """Mint whose mint responses are scripted.

    Each entry in ``mint_script`` is either a list of proofs or an
    exception to raise; once exhausted ``default_mint`` is used.
    """

    def __init__(self) -> None:
        self.invoices: List[int] = []
        self.mint_calls: List[str] = []
        self.mint_script: List[Any] = []
        self.default_mint: Any = [Proof(id="00ad268c4d1f5826", amount=1000, secret="s", C="c")]
        self.tokens_sent: List[int] = []
        self.token: Optional[str] = "cashuAeyJ0b2tlbiI6W119"
        self.invoice_error: Optional[Exception] = None

    async def create_invoice(self, mint_id: str, amount: int) -> InvoiceQuote:
        if self.invoice_error is not None:
            raise self.invoice_error
        self.invoices.append(amount)
        n = len(self.invoices)
        return InvoiceQuote(payment_request=f"lnbc{amount}n1p{n}", quote_id=f"quote_{n}")

    async def mint_from_paid_invoice(self, mint_id: str, quote_id: str, amount: int) -> List[Proof]:
        self.mint_calls.append(quote_id)
        step = self.mint_script.pop(0) if self.mint_script else self.default_mint
        if isinstance(step, BaseException):
            raise step
        return list(step)

    async def send_token(self, mint_id: str, amount: int) -> Optional[str]:
        self.tokens_sent.append(amount)
        return self.token


class FakeWallet:
    def __init__(self, balance: int = 0, active_mint_id: Optional[str] = MINT_URL) -> None:
        self.balance = balance
        self._active_mint_id = active_mint_id
        self.added: List[Proof] = []

    @property
    def active_mint_id(self) -> Optional[str]:
        return self._active_mint_id

    async def get_balance(self) -> int:
        return self.balance

    async def update_proofs(
        self,
        mint_id: str,
        proofs_to_add: Sequence[Proof],
        proofs_to_remove: Sequence[Proof],
    ) -> None:
        self.added.extend(proofs_to_add)
        self.balance += sum(p.amount for p in proofs_to_add)


class FakeTopupClient(HttpTopupClient):
    def __init__(self, error: Optional[Exception] = None) -> None:
        super().__init__()
        self.error = error
        self.calls: List[dict] = []

    async def topup(self, base_url: str, api_key: str, token: str) -> dict:
        self.calls.append({"base_url": base_url, "api_key": api_key, "token": token})
        if self.error is not None:
            raise self.error
        return {"msats": 100_000}


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.delays)


def not_paid(quote_id: str = "quote_1") -> QuoteNotPaidError:
    return QuoteNotPaidError(quote_id)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def connector(provider: FakeProvider) -> FakeConnector:
    return FakeConnector(provider)


@pytest.fixture
def mint_client() -> FakeMintClient:
    return FakeMintClient()


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet(balance=50)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def executor(connector, mint_client, sleeper) -> NWCPaymentExecutor:
    return NWCPaymentExecutor(connector, mint_client, sleep=sleeper)


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
def policies(settings_store) -> PolicyRepository:
    return PolicyRepository(settings_store)


@pytest.fixture
def credentials() -> StaticCredentialDirectory:
    return StaticCredentialDirectory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def topup_client() -> FakeTopupClient:
    return FakeTopupClient()


@pytest.fixture
def orchestrator(
    wallet, executor, mint_client, topup_client, policies, credentials, notifier, clock
) -> AutoRefillOrchestrator:
    return AutoRefillOrchestrator(
        wallet=wallet,
        executor=executor,
        mint_client=mint_client,
        topup_client=topup_client,
        policies=policies,
        credentials=credentials,
        notifier=notifier,
        clock=clock,
    )
