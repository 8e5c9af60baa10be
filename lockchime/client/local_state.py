from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any, Dict

logger = logging.getLogger("lockchime.recorder")

MY_STATS_KEY = "tesla-my-stats"
STATS_MODE_KEY = "tesla-stats-mode"


class LocalState:
    """Small JSON file standing in for the browser's local storage.

    With ``path=None`` values only live in memory.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path or not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("event=local_state_unreadable path=%s error=%s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("event=local_state_unreadable path=%s error=not_an_object", self.path)
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            if self.path:
                tmp_path = f"{self.path}.tmp"
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f)
                os.replace(tmp_path, self.path)
