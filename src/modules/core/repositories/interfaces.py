"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that domain-specific
repository interfaces extend.  Service-layer code depends on these
abstractions, never on the Django ORM directly, so the same service can run
against the ORM adapter in production and an in-memory adapter in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` is the domain entity managed by the repository.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key, ``None`` when absent."""
