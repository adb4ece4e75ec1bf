"""
Base Entity Classes

Identity, timestamps and an optimistic version counter shared by the
domain aggregates. Subclasses declare `@dataclass(eq=False)` so equality
stays identity-based.
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generic, TypeVar

TId = TypeVar("TId")


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False)
class Entity(ABC, Generic[TId]):
    """An object tracked by id; `id` stays None until the store assigns one."""

    id: TId | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return self.id is not None and type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id)) if self.id is not None else id(self)

    def is_new(self) -> bool:
        return self.id is None

    def touch(self) -> None:
        self.updated_at = utc_now()


@dataclass(eq=False)
class AggregateRoot(Entity[TId], Generic[TId]):
    """
    Consistency boundary. `version` mirrors the row's version column and is
    bumped only after a conditional write succeeds.
    """

    version: int = 0

    def increment_version(self) -> None:
        self.version += 1
