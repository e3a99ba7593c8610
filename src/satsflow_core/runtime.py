"""
Process wiring from settings.

``create_runtime`` configures logging, opens the durable stores under
``data_dir`` and restores the conversation snapshot. The host supplies the
wallet-side collaborators to ``SatsflowRuntime.create_orchestrator``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import SatsflowSettings, load_settings
from .conversation_store import JsonFileConversationStore
from .interfaces import CashuWallet, CredentialDirectory, MintClient, Notifier, WalletConnector
from .logging_config import setup_logging
from .nwc_payment import NWCPaymentExecutor
from .orchestrator import AutoRefillOrchestrator, UnstoredProofsHandler
from .settings_store import JsonFileSettingsStore, PolicyRepository
from .storage_batcher import StorageBatchManager
from .topup import HttpTopupClient

logger = logging.getLogger(__name__)


@dataclass
class SatsflowRuntime:
    settings: SatsflowSettings
    policies: PolicyRepository
    conversations: JsonFileConversationStore
    batcher: StorageBatchManager

    def create_orchestrator(
        self,
        *,
        wallet: CashuWallet,
        connector: WalletConnector,
        mint_client: MintClient,
        credentials: CredentialDirectory,
        notifier: Optional[Notifier] = None,
        topup_client: Optional[HttpTopupClient] = None,
        on_unstored_proofs: Optional[UnstoredProofsHandler] = None,
    ) -> AutoRefillOrchestrator:
        return AutoRefillOrchestrator.from_settings(
            self.settings,
            wallet=wallet,
            executor=NWCPaymentExecutor.from_settings(self.settings, connector, mint_client),
            mint_client=mint_client,
            topup_client=topup_client or HttpTopupClient.from_settings(self.settings),
            policies=self.policies,
            credentials=credentials,
            notifier=notifier,
            on_unstored_proofs=on_unstored_proofs,
        )


def create_runtime(
    settings: Optional[SatsflowSettings] = None,
    configure_logging: bool = True,
) -> SatsflowRuntime:
    settings = settings or load_settings()
    if configure_logging:
        setup_logging(settings.log_level, json_format=settings.log_json, log_file=settings.log_file)

    policies = PolicyRepository(JsonFileSettingsStore(settings.settings_dir))
    conversations = JsonFileConversationStore(settings.conversations_path)
    batcher = StorageBatchManager.from_settings(settings, conversations)
    batcher.restore(conversations)

    logger.info(
        "satsflow runtime ready (environment=%s, data_dir=%s)",
        settings.environment,
        settings.data_dir,
    )
    return SatsflowRuntime(
        settings=settings,
        policies=policies,
        conversations=conversations,
        batcher=batcher,
    )
