"""
Centralized constants and configuration values for satsflow-core.

This module provides a single source of truth for the timing windows,
attempt budgets and storage keys used by the refill orchestrator, the
NWC payment executor and the persistence batcher.

Usage:
    from satsflow_core.constants import Intervals, Limits, StorageKeys

All values are organized into logical namespaces using classes.
"""
from __future__ import annotations

from typing import Final


# =============================================================================
# Interval Constants (in seconds unless specified)
# =============================================================================

class Intervals:
    """Scheduling intervals for background work.

    All values are in seconds.
    """

    # Minimum time between two successful refills/top-ups on one channel
    AUTO_REFILL_COOLDOWN: Final[float] = 5 * 60.0

    # Minimum wall time between two balance evaluations
    BALANCE_CHECK: Final[float] = 5.0

    # Delay between NWC settlement polls
    NWC_POLL: Final[float] = 2.0

    # Quiet period before pending conversation writes are flushed
    PERSIST_DEBOUNCE: Final[float] = 0.5


# =============================================================================
# Timeout Constants
# =============================================================================

class Timeouts:
    """Network timeout configuration (seconds)."""

    TOPUP_HTTP: Final[float] = 30.0


# =============================================================================
# Limits
# =============================================================================

class Limits:
    """Attempt budgets and unit conversions."""

    # 15 polls * 2s keeps a stuck wallet bounded to ~30s
    NWC_MAX_POLLS: Final[int] = 15

    MSATS_PER_SAT: Final[int] = 1000

    # input_fee_ppk is expressed per thousand proofs
    FEE_PPK_DIVISOR: Final[int] = 1000


# =============================================================================
# Policy Defaults
# =============================================================================

class PolicyDefaults:
    """Defaults used when no stored policy exists yet."""

    NWC_THRESHOLD_SATS: Final[int] = 100
    NWC_AMOUNT_SATS: Final[int] = 1000

    API_THRESHOLD_MSATS: Final[int] = 10_000
    API_AMOUNT_SATS: Final[int] = 100


# =============================================================================
# Storage Keys
# =============================================================================

class StorageKeys:
    """Fixed keys in the external key-value settings store."""

    AUTO_REFILL_NWC: Final[str] = "auto_refill_nwc"
    AUTO_TOPUP_API: Final[str] = "auto_topup_api"
    CONVERSATIONS: Final[str] = "conversations"
    CONVERSATIONS_UPDATED_AT: Final[str] = "conversations_updated_at"
