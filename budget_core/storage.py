"""File-backed document collections for transactions and budget items."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


class JSONStorage:
    """Stores each collection as a JSON list, replaced atomically on every save."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Unable to create data directory {self._base_path}") from exc

    def load(self, collection: str) -> List[Dict[str, Any]]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

        if not isinstance(payload, list):
            raise PersistenceError(f"Expected list payload in {path}")
        return payload

    def save(self, collection: str, records: Iterable[Dict[str, Any]]) -> None:
        path = self._path(collection)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        documents = list(records)
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(documents, handle, indent=2)
                handle.flush()
            temp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {path}") from exc
        logger.debug("Saved %d documents to %s", len(documents), path)

    def _path(self, collection: str) -> Path:
        return self._base_path / f"{collection}.json"
