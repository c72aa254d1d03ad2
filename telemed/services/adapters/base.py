"""
Base Store Adapter.
Source: https://cloud.google.com/python/docs/reference/firestore/latest/document
Verified: 2026-10-19

Abstract base class for local store adapters supporting demo/live modes.
Demo mode keeps deep copies in memory; live mode reads and writes Cloud
Firestore documents keyed by each model's natural id.
"""

import asyncio
import logging
from abc import ABC
from enum import Enum
from typing import Any, ClassVar, Generic, Optional, TypeVar

from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import BaseModel

from telemed.gateways.base import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class AdapterMode(str, Enum):
    """Adapter operating mode."""

    DEMO = "demo"
    LIVE = "live"


class StoreUnavailableError(UpstreamUnavailableError):
    """Raised when the local store cannot be reached in time."""

    pass


_TRANSIENT_STORE_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    google_exceptions.TooManyRequests,
)


T = TypeVar("T", bound=BaseModel)


class BaseAdapter(ABC, Generic[T]):
    """
    Abstract base class for store adapters.

    Subclasses declare the Firestore collection, the pydantic model stored in
    it and the model field used as document id.
    """

    collection_name: ClassVar[str]
    model: ClassVar[type[BaseModel]]
    key_field: ClassVar[str]

    def __init__(
        self,
        mode: AdapterMode = AdapterMode.DEMO,
        client: Any = None,
        timeout_seconds: float = 15.0,
    ):
        """
        Initialize adapter.

        Args:
            mode: Operating mode (demo or live)
            client: Firestore client, required in live mode
            timeout_seconds: Bound on every live store call
        """
        if mode == AdapterMode.LIVE and client is None:
            raise ValueError(f"{type(self).__name__} needs a Firestore client in live mode")
        self._mode = mode
        self._client = client
        self._timeout = timeout_seconds
        self._demo_data: dict[str, T] = {}
        self.write_count = 0

    @property
    def mode(self) -> AdapterMode:
        """Get current operating mode."""
        return self._mode

    def is_demo_mode(self) -> bool:
        """Check if running in demo mode."""
        return self._mode == AdapterMode.DEMO

    def _key(self, entity: T) -> str:
        return str(getattr(entity, self.key_field))

    def _collection(self):  # type: ignore[no-untyped-def]
        return self._client.collection(self.collection_name)

    async def _run(self, func, *args, **kwargs):  # type: ignore[no-untyped-def]
        """Run a blocking Firestore call off the event loop."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs), timeout=self._timeout
            )
        except asyncio.TimeoutError as e:
            raise StoreUnavailableError(
                f"Store timed out on {self.collection_name}", provider="firestore", original_error=e
            ) from e
        except _TRANSIENT_STORE_ERRORS as e:
            raise StoreUnavailableError(
                f"Store unavailable on {self.collection_name}: {e}",
                provider="firestore",
                original_error=e,
            ) from e

    def _from_document(self, data: Optional[dict[str, Any]]) -> Optional[T]:
        if data is None:
            return None
        return self.model.model_validate(data)  # type: ignore[return-value]

    async def get_by_id(self, entity_id: str) -> Optional[T]:
        """Get entity by ID."""
        if self.is_demo_mode():
            entity = self._demo_data.get(entity_id)
            return entity.model_copy(deep=True) if entity else None

        snapshot = await self._run(self._collection().document(entity_id).get)
        return self._from_document(snapshot.to_dict()) if snapshot.exists else None

    async def save(self, entity: T) -> T:
        """Write the full entity under its natural key."""
        self.write_count += 1
        key = self._key(entity)
        if self.is_demo_mode():
            self._demo_data[key] = entity.model_copy(deep=True)
            return entity

        await self._run(
            self._collection().document(key).set, entity.model_dump(mode="json")
        )
        return entity

    async def find_by(self, field: str, value: Any) -> list[T]:
        """Return every entity whose ``field`` equals ``value``."""
        if isinstance(value, Enum):
            value = value.value
        if self.is_demo_mode():
            matches = []
            for entity in self._demo_data.values():
                current = getattr(entity, field, None)
                if isinstance(current, Enum):
                    current = current.value
                if current == value:
                    matches.append(entity.model_copy(deep=True))
            return matches

        query = self._collection().where(filter=FieldFilter(field, "==", value))
        snapshots = await self._run(lambda: list(query.stream()))
        return [self._from_document(s.to_dict()) for s in snapshots]  # type: ignore[misc]

    async def list_all(self, offset: int = 0, limit: int = 100) -> list[T]:
        """List entities with pagination."""
        if self.is_demo_mode():
            entities = list(self._demo_data.values())[offset:offset + limit]
            return [e.model_copy(deep=True) for e in entities]

        query = self._collection().offset(offset).limit(limit)
        snapshots = await self._run(lambda: list(query.stream()))
        return [self._from_document(s.to_dict()) for s in snapshots]  # type: ignore[misc]

    def clear_demo_data(self) -> None:
        """Clear all demo data."""
        self._demo_data.clear()
        self.write_count = 0

    def seed_demo_data(self, entities: list[T]) -> None:
        """Seed demo data without counting writes."""
        for entity in entities:
            self._demo_data[self._key(entity)] = entity.model_copy(deep=True)

    def get_demo_count(self) -> int:
        """Get count of demo data entries."""
        return len(self._demo_data)
