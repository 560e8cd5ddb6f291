"""Small persistent key/value stores for connection bookkeeping."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional


logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract store of JSON-serializable values keyed by string."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under key, or default."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""
        pass


class MemoryStore(KeyValueStore):
    """In-process store; nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return json.loads(self._data[key])

    def set(self, key: str, value: Any) -> None:
        # Serialize on write so callers can't mutate stored state by reference
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore(KeyValueStore):
    """Store backed by a single JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("State file %s is not valid JSON, starting empty", self.path)
            return {}

        if not isinstance(data, dict):
            logger.warning("State file %s does not hold an object, starting empty", self.path)
            return {}
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        tmp_path.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
