# src/store/base_entity_store.py - v1
"""Abstract entity store interface.

The hosted backend (tables with row-level access control) is consumed only
through this contract. Failures surface as StoreError with an optional code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Row = dict[str, Any]


class BaseEntityStore(ABC):
    """Unified interface for entity storage backends."""

    @abstractmethod
    async def get(self, kind: str, filters: Row | None = None) -> list[Row]:
        """Return rows of ``kind`` matching every filter (list values mean IN)."""

    @abstractmethod
    async def insert(self, kind: str, row: Row) -> Row:
        """Insert a row and return it as stored (with generated id)."""

    @abstractmethod
    async def update(self, kind: str, row_id: str, patch: Row) -> Row:
        """Apply a partial update and return the updated row."""

    @abstractmethod
    async def delete(self, kind: str, row_id: str) -> bool:
        """Delete a row; returns False when it did not exist."""
