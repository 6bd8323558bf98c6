"""Key-value backends used to persist document contexts and chat sessions."""
from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import Dict, Final, List, Optional, Protocol
from urllib.parse import quote, unquote

_DATA_DIR: Final[Path] = Path("data")
_FILE_SUFFIX: Final[str] = ".json"
_UNSAFE_KEY_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._%-]")


class KeyValueStore(Protocol):
    """Minimal byte-oriented key-value contract."""

    def get(self, key: str) -> Optional[bytes]:
        """Return the stored value or ``None`` when the key is absent."""

    def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is a no-op."""

    def keys(self, prefix: str = "") -> List[str]:
        """Return every stored key starting with ``prefix``."""


class InMemoryKeyValueStore:
    """Process-local store backed by a dictionary."""

    def __init__(self) -> None:
        self._values: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._values[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(key for key in self._values if key.startswith(prefix))


def _encode_key(key: str) -> str:
    """Return a filesystem-safe, reversible file name for ``key``."""
    if not key:
        raise ValueError("key must not be empty")
    encoded = quote(key, safe="")
    return _UNSAFE_KEY_CHARS_RE.sub(lambda match: f"%{ord(match.group()):02X}", encoded)


class FileKeyValueStore:
    """Persist each key as a single file inside ``directory``."""

    def __init__(self, directory: str | Path | None = None) -> None:
        self.directory = Path(directory or _DATA_DIR).resolve()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{_encode_key(key)}{_FILE_SUFFIX}"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        temporary = path.with_suffix(path.suffix + ".tmp")
        temporary.write_bytes(value)
        temporary.replace(path)

    def delete(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)

    def keys(self, prefix: str = "") -> List[str]:
        found: List[str] = []
        for path in self.directory.glob(f"*{_FILE_SUFFIX}"):
            key = unquote(path.name[: -len(_FILE_SUFFIX)])
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)


__all__ = ["FileKeyValueStore", "InMemoryKeyValueStore", "KeyValueStore"]
