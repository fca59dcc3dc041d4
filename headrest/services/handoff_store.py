"""Deferred provisioning store.

A PaymentHandoff survives between "payment completed" and "account created"
in a small key-value store. Every read checks the record's age and purges it
once it is past the TTL, so callers never see stale payment metadata.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from headrest.core import encryption
from headrest.core.exceptions import DecryptionError
from headrest.models import StoredValue
from headrest.schemas.handoff import PaymentHandoff, now_ms

logger = logging.getLogger(__name__)

PAYMENT_DATA_KEY = "suede_payment_data"
DEFAULT_TTL_HOURS = 24


class KeyValueBackend(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryBackend:
    """Per-process storage, the equivalent of one browser tab's storage."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileBackend:
    """Key-value pairs in a single JSON document on disk.

    With ``encrypt_values`` set, values are written as AES-GCM tokens and
    decrypted on read using ENCRYPTION_KEY.
    """

    def __init__(self, path: str | Path, encrypt_values: bool = False, master_key: str | None = None):
        self.path = Path(path)
        self.encrypt_values = encrypt_values
        self.master_key = master_key

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable key-value file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    def get_item(self, key: str) -> str | None:
        value = self._load().get(key)
        if value is None or not self.encrypt_values:
            return value
        return encryption.decrypt(value, self.master_key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = encryption.encrypt(value, self.master_key) if self.encrypt_values else value
        self._dump(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class SqlBackend:
    """Key-value pairs stored in the ``stored_values`` table."""

    def __init__(self, db: Session):
        self.db = db

    def get_item(self, key: str) -> str | None:
        row = self.db.get(StoredValue, key)
        return row.value if row is not None else None

    def set_item(self, key: str, value: str) -> None:
        self.db.merge(StoredValue(key=key, value=value))
        self.db.commit()

    def remove_item(self, key: str) -> None:
        row = self.db.get(StoredValue, key)
        if row is not None:
            self.db.delete(row)
            self.db.commit()


def session_handoff_key(session_id: str) -> str:
    """Key for the webhook-derived handoff of one checkout session."""
    return f"payment_handoff:{session_id}"


class PaymentHandoffStore:
    """Typed get/set/clear over a KeyValueBackend with expiry on every read."""

    def __init__(
        self,
        backend: KeyValueBackend,
        key: str = PAYMENT_DATA_KEY,
        ttl_hours: int = DEFAULT_TTL_HOURS,
        clock: Callable[[], int] = now_ms,
    ):
        self.backend = backend
        self.key = key
        self.ttl_hours = ttl_hours
        self.clock = clock
        self.last_read_expired = False

    def get(self) -> PaymentHandoff | None:
        self.last_read_expired = False
        try:
            raw = self.backend.get_item(self.key)
        except DecryptionError as exc:
            logger.error("Failed to decrypt stored payment data under %s; removing it: %s", self.key, exc)
            self.backend.remove_item(self.key)
            return None
        if raw is None:
            return None

        try:
            handoff = PaymentHandoff.model_validate_json(raw)
        except PydanticValidationError:
            logger.error("Failed to parse stored payment data under %s; removing it", self.key)
            self.backend.remove_item(self.key)
            return None

        if handoff.is_expired(self.clock(), self.ttl_hours):
            logger.info("Stored payment data under %s expired; removing it", self.key)
            self.backend.remove_item(self.key)
            self.last_read_expired = True
            return None
        return handoff

    def set(self, handoff: PaymentHandoff) -> None:
        self.backend.set_item(self.key, handoff.to_json())

    def clear(self) -> None:
        self.backend.remove_item(self.key)

    def has(self) -> bool:
        return self.get() is not None


__all__ = [
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "PAYMENT_DATA_KEY",
    "PaymentHandoffStore",
    "SqlBackend",
    "session_handoff_key",
]
