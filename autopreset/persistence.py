import json
import logging
import os
from typing import Any, Dict

logger = logging.getLogger(__name__)


class MemoryStore:
    """Key-value store kept in process memory (tests, dry runs)."""

    def __init__(self, initial: Dict[str, Any] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return json.loads(json.dumps(self._data[key])) if key in self._data else default

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.loads(json.dumps(value))


class JsonFileStore(MemoryStore):
    """
    Single JSON document on disk. Every set() rewrites the whole file through
    a temp file + os.replace so a crash never leaves a half-written document.
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(self._load())

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.exception("[state] could not read %s; starting empty", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("[state] %s does not hold a JSON object; starting empty", self.path)
            return {}
        return data

    def set(self, key: str, value: Any) -> None:
        """Write the document to disk first; memory only changes once the file is replaced."""
        data = dict(self._data)
        data[key] = json.loads(json.dumps(value))
        tmp = self.path + ".tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError):
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        self._data = data
        logger.debug("[state] wrote %s (%s)", self.path, key)
