"""Keyed persistence for vault records."""

from pathlib import Path
from typing import Dict, Optional, Protocol
import json
import logging
import os
import tempfile
import threading

from core.models import Vault, VaultKey

logger = logging.getLogger(__name__)


class VaultNotFoundError(KeyError):
    """Raised when deleting a vault key that holds no record."""


class VaultStore(Protocol):
    def get(self, key: VaultKey) -> Optional[Vault]:
        ...

    def put(self, key: VaultKey, vault: Vault) -> None:
        ...

    def delete(self, key: VaultKey) -> None:
        ...


class InMemoryVaultStore:
    """Holds encoded records in a dict, as the ledger would hold raw bytes."""

    def __init__(self) -> None:
        self._records: Dict[bytes, bytes] = {}

    def get(self, key: VaultKey) -> Optional[Vault]:
        record = self._records.get(key.to_bytes())
        return Vault.from_bytes(record) if record is not None else None

    def put(self, key: VaultKey, vault: Vault) -> None:
        self._records[key.to_bytes()] = vault.to_bytes()

    def delete(self, key: VaultKey) -> None:
        try:
            del self._records[key.to_bytes()]
        except KeyError:
            raise VaultNotFoundError(f"Unknown vault key: {key.to_hex()}") from None

    def raw(self, key: VaultKey) -> Optional[bytes]:
        return self._records.get(key.to_bytes())


class FileVaultStore:
    """JSON file mapping hex vault keys to hex-encoded 16-byte records.

    Every call rewrites the whole file, so all calls on one instance are
    serialized and each rewrite lands through a temp file and ``os.replace``.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def get(self, key: VaultKey) -> Optional[Vault]:
        with self._lock:
            record = self._read_all().get(key.to_hex())
        return Vault.from_bytes(bytes.fromhex(record)) if record is not None else None

    def put(self, key: VaultKey, vault: Vault) -> None:
        with self._lock:
            records = self._read_all()
            records[key.to_hex()] = vault.to_bytes().hex().upper()
            self._write_all(records)
        logger.debug("Stored vault %s", key.to_hex())

    def delete(self, key: VaultKey) -> None:
        with self._lock:
            records = self._read_all()
            if records.pop(key.to_hex(), None) is None:
                raise VaultNotFoundError(f"Unknown vault key: {key.to_hex()}")
            self._write_all(records)
        logger.debug("Deleted vault %s", key.to_hex())

    def _read_all(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        return json.loads(self._path.read_text())

    def _write_all(self, records: Dict[str, str]) -> None:
        fd, temp_name = tempfile.mkstemp(prefix=self._path.name + ".", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w") as handle:
                json.dump(records, handle, indent=2, sort_keys=True)
            os.replace(temp_name, self._path)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise
