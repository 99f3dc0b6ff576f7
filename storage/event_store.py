"""Event store contract consumed by the sync engine."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from processor.models import CanonicalEvent, User


class EventStoreError(Exception):
    """Raised when a store read or write fails."""


class EventStore(ABC):
    """
    Minimal read/write surface the sync engine needs from the event store.

    The store is the single writer and enforces slug uniqueness.
    """

    @abstractmethod
    def find_by_slug(self, slug: str) -> Optional[CanonicalEvent]:
        """Return the event with this slug, or None."""

    @abstractmethod
    def create(self, event: CanonicalEvent) -> str:
        """Persist a new event and return its id."""

    @abstractmethod
    def update_fields(self, event_id: str, fields: Dict[str, Any]) -> None:
        """Overwrite the given fields on an existing event."""

    @abstractmethod
    def assign_organizers(self, event_id: str, user_ids: List[int]) -> None:
        """Append users to an event's organizer list."""

    @abstractmethod
    def find_users_by_ids(self, user_ids: List[int]) -> List[User]:
        """Return the users that exist among ``user_ids``."""
