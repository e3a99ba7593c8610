"""
satsflow-core - balance replenishment and payment reconciliation.

This package keeps an e-cash chat wallet funded without duplicating or
losing value:

- Mint fee accounting that matches the mint's rounding rule
- NWC-funded minting with bounded settlement polling
- Threshold-triggered auto-refill and API-key auto-top-up with
  single-flight guards and cooldowns
- Debounced, coalescing persistence of the conversation list
"""

from satsflow_core.balance import (
    MsatBalance,
    SatBalance,
    UnitBalance,
    compute_total_balance_sats,
    current_mint_balance,
    normalize_balance,
    parse_provider_balance,
)
from satsflow_core.config import SatsflowSettings, load_settings
from satsflow_core.conversation_store import (
    InMemoryConversationStore,
    JsonFileConversationStore,
)
from satsflow_core.exceptions import (
    CredentialNotConfiguredError,
    MintError,
    NoActiveMintError,
    PaymentTimeoutError,
    PersistenceError,
    PreconditionError,
    QuoteNotPaidError,
    RemoteRejectionError,
    SatsflowException,
    TokenGenerationError,
    TopupRejectedError,
    WalletNotConnectedError,
)
from satsflow_core.fees import calculate_average_fee_per_proof, calculate_fees
from satsflow_core.interfaces import (
    LoggingNotifier,
    RecordingNotifier,
    StaticCredentialDirectory,
)
from satsflow_core.logging_config import LogContext, setup_logging
from satsflow_core.models import (
    AutoRefillStatus,
    Conversation,
    InvoiceQuote,
    Message,
    MintKeyset,
    PaymentResult,
    Proof,
    SyncedCredential,
)
from satsflow_core.nwc_payment import NWCPaymentCallbacks, NWCPaymentExecutor
from satsflow_core.orchestrator import (
    AutoRefillOrchestrator,
    Channel,
    ChannelAction,
    CheckOutcome,
)
from satsflow_core.runtime import SatsflowRuntime, create_runtime
from satsflow_core.settings_store import (
    InMemorySettingsStore,
    JsonFileSettingsStore,
    PolicyRepository,
    RefillPolicy,
    TopupPolicy,
)
from satsflow_core.storage_batcher import (
    StorageBatchManager,
    get_storage_manager,
    reset_storage_manager,
)
from satsflow_core.topup import HttpTopupClient

__all__ = [
    # Fees
    "calculate_fees",
    "calculate_average_fee_per_proof",
    # Balance
    "SatBalance",
    "UnitBalance",
    "MsatBalance",
    "parse_provider_balance",
    "normalize_balance",
    "compute_total_balance_sats",
    "current_mint_balance",
    # Models
    "Proof",
    "MintKeyset",
    "InvoiceQuote",
    "PaymentResult",
    "SyncedCredential",
    "Conversation",
    "Message",
    "AutoRefillStatus",
    # Payment executor
    "NWCPaymentExecutor",
    "NWCPaymentCallbacks",
    "HttpTopupClient",
    # Orchestrator
    "AutoRefillOrchestrator",
    "Channel",
    "ChannelAction",
    "CheckOutcome",
    "LoggingNotifier",
    "RecordingNotifier",
    "StaticCredentialDirectory",
    # Policies
    "RefillPolicy",
    "TopupPolicy",
    "PolicyRepository",
    "InMemorySettingsStore",
    "JsonFileSettingsStore",
    # Persistence
    "StorageBatchManager",
    "get_storage_manager",
    "reset_storage_manager",
    "InMemoryConversationStore",
    "JsonFileConversationStore",
    # Config & logging
    "SatsflowSettings",
    "load_settings",
    "create_runtime",
    "SatsflowRuntime",
    "setup_logging",
    "LogContext",
    # Exceptions
    "SatsflowException",
    "PreconditionError",
    "WalletNotConnectedError",
    "CredentialNotConfiguredError",
    "NoActiveMintError",
    "RemoteRejectionError",
    "MintError",
    "TokenGenerationError",
    "TopupRejectedError",
    "PaymentTimeoutError",
    "QuoteNotPaidError",
    "PersistenceError",
]

__version__ = "0.1.0"
