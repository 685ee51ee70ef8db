"""
storage.py
Key-value persistence for the storefront (the browser's localStorage role).

Values are always strings. Only this module touches the underlying store;
everything else receives a Storage instance.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

import structlog

logger = structlog.get_logger(__name__)

# -------------------------
# Keys
# -------------------------
TOKEN_KEY = "auth_token"
LEGACY_TOKEN_KEY = "token"
USER_KEY = "user"
GUEST_CART_KEY = "cart_guest"
LAST_ORDER_STATUS_KEY = "lastOrderStatus"
CART_KEY_PREFIX = "cart_"


class StorageUnavailable(Exception):
    """Write could not be completed (quota, read-only disk, private mode)."""


class Storage:
    """Interface: string keys to string values."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(Storage):
    """
    Dict-backed storage. Lives as long as the process.
    `fail_writes` emulates a full or disabled store.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None, fail_writes: bool = False):
        self._data: Dict[str, str] = dict(initial or {})
        self.fail_writes = fail_writes

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageUnavailable(f"write to {key!r} refused")
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        if self.fail_writes:
            raise StorageUnavailable(f"remove of {key!r} refused")
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class JsonFileStorage(Storage):
    """
    Storage persisted as one JSON object on disk.

    Every read goes to the file, so writes from another process sharing the
    same path are seen on the next get(). Last writer wins.
    """

    def __init__(self, path):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Unreadable storage file, treating as empty", path=str(self.path), error=str(e))
            return {}

        if not isinstance(data, dict):
            logger.warning("Storage file is not a JSON object, treating as empty", path=str(self.path))
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageUnavailable(str(e)) from e

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = str(value)
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key not in data:
            return
        del data[key]
        self._write_all(data)
