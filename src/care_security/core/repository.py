"""Repository boundary between the services and persistence.

Persistence proper lives outside this service. The services only depend on
the :class:`Repository` protocol; :class:`InMemoryRepository` is the bundled
implementation used by the application factory and the tests.
"""

from collections.abc import Callable
from typing import Generic, Protocol, TypeVar, runtime_checkable
from uuid import UUID

from beartype import beartype
from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


@runtime_checkable
class Repository(Protocol[ModelT]):
    """Async storage keyed by entity id."""

    async def get(self, entity_id: UUID) -> ModelT | None: ...

    async def add(self, entity: ModelT) -> ModelT: ...

    async def update(self, entity: ModelT) -> ModelT: ...

    async def delete(self, entity_id: UUID) -> bool: ...

    async def list(
        self, predicate: Callable[[ModelT], bool] | None = None
    ) -> list[ModelT]: ...


class InMemoryRepository(Generic[ModelT]):
    """Dictionary-backed repository.

    Entities are stored as deep copies so callers never share mutable state
    with the store; the caller persists changes explicitly through
    :meth:`update`.
    """

    def __init__(self, id_attribute: str = "id") -> None:
        """Initialize an empty store."""
        self._entries: dict[UUID, ModelT] = {}
        self._id_attribute = id_attribute

    def _key(self, entity: ModelT) -> UUID:
        return getattr(entity, self._id_attribute)

    @beartype
    async def get(self, entity_id: UUID) -> ModelT | None:
        """Return a copy of the stored entity, if any."""
        entity = self._entries.get(entity_id)
        return entity.model_copy(deep=True) if entity is not None else None

    @beartype
    async def add(self, entity: ModelT) -> ModelT:
        """Store a new entity."""
        key = self._key(entity)
        if key in self._entries:
            raise KeyError(f"Entity {key} already exists")
        self._entries[key] = entity.model_copy(deep=True)
        return entity

    @beartype
    async def update(self, entity: ModelT) -> ModelT:
        """Replace an existing entity."""
        key = self._key(entity)
        if key not in self._entries:
            raise KeyError(f"Entity {key} does not exist")
        self._entries[key] = entity.model_copy(deep=True)
        return entity

    @beartype
    async def delete(self, entity_id: UUID) -> bool:
        """Remove an entity; returns whether it existed."""
        return self._entries.pop(entity_id, None) is not None

    async def list(
        self, predicate: Callable[[ModelT], bool] | None = None
    ) -> list[ModelT]:
        """Return copies of all entities matching ``predicate``."""
        return [
            entity.model_copy(deep=True)
            for entity in self._entries.values()
            if predicate is None or predicate(entity)
        ]

    def __len__(self) -> int:
        return len(self._entries)
