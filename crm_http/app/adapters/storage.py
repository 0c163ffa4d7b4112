"""
Key/value storage scopes holding credentials and the cached session record.
"""

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from crm_common.logging import get_logger


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Process-local store; the default session scope."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class JsonFileKeyValueStore:
    """Durable store persisted as a flat JSON object on disk.

    Every mutation rewrites the file through a temp file and ``os.replace``
    so a crash never leaves a half-written file behind.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger("crm_http.storage")
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self.logger.warning("Unreadable credential store, starting empty", path=str(self.path), error=str(exc))
            return {}
        if not isinstance(raw, dict):
            self.logger.warning("Credential store is not an object, starting empty", path=str(self.path))
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".kv-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._data, handle)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._persist()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._persist()


@dataclass
class CredentialStorage:
    """The two persistence scopes, checked durable first."""
    durable: KeyValueStore = field(default_factory=MemoryKeyValueStore)
    session: KeyValueStore = field(default_factory=MemoryKeyValueStore)

    @property
    def scopes(self):
        return (self.durable, self.session)
