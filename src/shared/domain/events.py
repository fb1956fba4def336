"""Domain event primitives for the modular monolith."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable).

    ``event_name`` is derived from the concrete class so handlers and logs
    can refer to events without importing them.
    """

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def to_log_context(self) -> Dict[str, Any]:
        return {
            key: str(value) if isinstance(value, (UUID, datetime)) else value
            for key, value in asdict(self).items()
        }
