# src/store/json_store.py - v1
"""JSON file-backed entity store (ENTITY_STORE_BACKEND=json).

Keeps all tables in one JSON document under DATA_PATH and rewrites it
after every mutation. Intended for the CLI's local mode.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from schedulebud.core.errors import StoreError
from schedulebud.store.memory_store import InMemoryEntityStore

logger = logging.getLogger(__name__)


class JsonEntityStore(InMemoryEntityStore):
    """Entity store persisted to a single JSON file."""

    def __init__(self, data_path: Path | str) -> None:
        super().__init__()
        self._path = Path(data_path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if self._path.exists():
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise StoreError(
                    f"Corrupt data file {self._path}: {e}", code="corrupt"
                ) from e
            self.load(data)
            logger.debug("Loaded entity store from %s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    def _after_write(self) -> None:
        try:
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(
                json.dumps(self.snapshot(), indent=2, default=str),
                encoding="utf-8",
            )
            tmp.replace(self._path)
        except OSError as e:
            raise StoreError(f"Failed to persist {self._path}: {e}") from e
