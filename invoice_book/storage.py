"""Key/value storage backends used by the invoice store.

Keys have the form ``"<namespace>/<name>"``; values are JSON-compatible
objects. The store only sees :class:`Storage`; filesystem failure modes,
retries and encoding of names stay inside the backends.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from urllib.parse import quote, unquote

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings
from .errors import PersistenceFailure, StorageCorruption

logger = logging.getLogger(__name__)

T = TypeVar("T")


def split_key(key: str) -> Tuple[str, str]:
    namespace, sep, name = key.partition("/")
    if not sep or not namespace or not name:
        raise ValueError(f"Storage key must look like 'namespace/name': {key!r}")
    return namespace, name


class Storage(ABC):
    """Minimal get/put/list capability the invoice store is written against."""

    durable = False

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when the key does not exist."""

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def keys(self, namespace: str) -> List[str]:
        """Return every key in ``namespace``, sorted."""


class MemoryStorage(Storage):
    """Non-durable backend; values are copied through JSON like on disk."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        split_key(key)
        with self._lock:
            raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StorageCorruption(key, exc) from exc

    def put(self, key: str, value: Any) -> None:
        split_key(key)
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = raw

    def keys(self, namespace: str) -> List[str]:
        prefix = f"{namespace}/"
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))


class FileStorage(Storage):
    """One JSON file per key under ``root/<namespace>/``.

    Writes go to a temporary file that is then moved into place, so a reader
    never sees a half written value. Transient ``OSError``s are retried with
    exponential backoff (``backoff``, ``2 * backoff``, ...) up to ``retries``
    extra attempts, then surface as :class:`PersistenceFailure`.
    """

    durable = True
    suffix = ".json"

    def __init__(
        self,
        root: str | Path,
        retries: int = 3,
        backoff: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.root = Path(root)
        self.retries = max(0, retries)
        self.backoff = backoff
        self._sleep = sleep

    # Public API
    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            text = self._with_retry("read", key, lambda: self._read_text(path))
        except PersistenceFailure as exc:
            if isinstance(exc.cause, FileNotFoundError):
                return None
            raise
        try:
            return json.loads(text)
        except ValueError as exc:
            raise StorageCorruption(key, exc) from exc

    def put(self, key: str, value: Any) -> None:
        path = self._path(key)
        text = json.dumps(value, indent=2, ensure_ascii=False)
        self._with_retry("write", key, lambda: self._write_text(path, text))

    def keys(self, namespace: str) -> List[str]:
        directory = self.root / quote(namespace, safe="")
        if not directory.is_dir():
            return []
        names = self._with_retry("list", namespace, lambda: self._list_names(directory))
        return sorted(f"{namespace}/{name}" for name in names)

    # Internals
    def _path(self, key: str) -> Path:
        namespace, name = split_key(key)
        return self.root / quote(namespace, safe="") / (quote(name, safe="") + self.suffix)

    def _read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def _write_text(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _list_names(self, directory: Path) -> List[str]:
        return [
            unquote(entry.name[: -len(self.suffix)])
            for entry in directory.iterdir()
            if entry.is_file() and entry.name.endswith(self.suffix) and not entry.name.startswith(".")
        ]

    def _with_retry(self, operation: str, key: str, action: Callable[[], T]) -> T:
        retryable = retry_if_exception_type(OSError)
        if operation == "read":
            # a vanished file is an answer, not a transient failure
            retryable = retryable & retry_if_not_exception_type(FileNotFoundError)

        def _log_retry(state: RetryCallState) -> None:
            logger.warning(
                "Storage %s of %s failed (%s), retrying in %.2fs",
                operation, key, state.outcome.exception(), state.next_action.sleep,
            )

        retrying = Retrying(
            reraise=True,
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.backoff),
            retry=retryable,
            sleep=self._sleep,
            before_sleep=_log_retry,
        )
        try:
            return retrying(action)
        except OSError as exc:
            if operation != "read" or not isinstance(exc, FileNotFoundError):
                logger.error("Storage %s of %s failed: %s", operation, key, exc)
            raise PersistenceFailure(operation, key, exc) from exc


def build_storage(settings: Settings) -> Storage:
    """Pick the backend named by ``settings.storage_backend``."""
    backend = settings.storage_backend.lower()
    if backend == "file":
        return FileStorage(settings.data_dir, retries=settings.storage_retries, backoff=settings.storage_backoff)
    if backend == "memory":
        logger.warning("Using in-memory storage; invoices will not survive a restart")
        return MemoryStorage()
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
