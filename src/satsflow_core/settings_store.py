"""Refill/top-up policy persistence.

Policies are stored as whole structures under a fixed key per channel;
there is no partial-field update. The orchestrator reloads them on every
evaluation so edits made elsewhere take effect without a restart.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .constants import PolicyDefaults, StorageKeys
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


class PolicyModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        validate_assignment=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class RefillPolicy(PolicyModel):
    """NWC auto-refill: pull sats from the remote wallet into the local wallet."""

    enabled: bool = False
    threshold_sats: int = Field(default=PolicyDefaults.NWC_THRESHOLD_SATS, ge=0)
    amount_sats: int = Field(default=PolicyDefaults.NWC_AMOUNT_SATS, ge=1)
    last_refill_at: Optional[datetime] = None


class TopupPolicy(PolicyModel):
    """API auto-top-up: push sats from the local wallet into a metered key.

    Threshold and the credential balance are in milli-sats; the amount is
    in sats.
    """

    enabled: bool = False
    api_key_id: Optional[str] = None
    threshold_msats: int = Field(default=PolicyDefaults.API_THRESHOLD_MSATS, ge=0)
    amount_sats: int = Field(default=PolicyDefaults.API_AMOUNT_SATS, ge=1)
    last_topup_at: Optional[datetime] = None


class SettingsStore(Protocol):
    """External key-value store holding whole JSON-compatible structures."""

    def read(self, key: str) -> Optional[Any]: ...

    def write(self, key: str, value: Any) -> None: ...


class InMemorySettingsStore:
    """In-memory settings store (swap for a file or browser store in production)."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.write(key, value)

    def read(self, key: str) -> Optional[Any]:
        raw = self._values.get(key)
        return json.loads(raw) if raw is not None else None

    def write(self, key: str, value: Any) -> None:
        # Round-trip through JSON so callers never share mutable state
        self._values[key] = json.dumps(value)


class JsonFileSettingsStore:
    """Settings store keeping one JSON document per key in a directory."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable settings file %s: %s", path, e)
            return None

    def write(self, key: str, value: Any) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh)
            os.replace(tmp_name, path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise PersistenceError(f"failed to write settings '{key}': {e}") from e


class PolicyRepository:
    """Typed access to the two channel policies."""

    def __init__(self, store: SettingsStore) -> None:
        self._store = store

    def _load(self, key: str, model: type[PolicyModel]) -> PolicyModel:
        raw = self._store.read(key)
        if raw is None:
            return model()
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            logger.warning("Invalid stored policy '%s', using defaults: %s", key, e)
            return model()

    def load_refill_policy(self) -> RefillPolicy:
        return self._load(StorageKeys.AUTO_REFILL_NWC, RefillPolicy)  # type: ignore[return-value]

    def load_topup_policy(self) -> TopupPolicy:
        return self._load(StorageKeys.AUTO_TOPUP_API, TopupPolicy)  # type: ignore[return-value]

    def save_refill_policy(self, policy: RefillPolicy) -> None:
        self._store.write(StorageKeys.AUTO_REFILL_NWC, policy.to_dict())

    def save_topup_policy(self, policy: TopupPolicy) -> None:
        self._store.write(StorageKeys.AUTO_TOPUP_API, policy.to_dict())

    def mark_refill_success(self, at: Optional[datetime] = None) -> RefillPolicy:
        """Stamp ``last_refill_at`` on the freshly loaded policy."""
        policy = self.load_refill_policy()
        policy.last_refill_at = at or datetime.now(timezone.utc)
        self.save_refill_policy(policy)
        return policy

    def mark_topup_success(self, at: Optional[datetime] = None) -> TopupPolicy:
        """Stamp ``last_topup_at`` on the freshly loaded policy."""
        policy = self.load_topup_policy()
        policy.last_topup_at = at or datetime.now(timezone.utc)
        self.save_topup_policy(policy)
        return policy
