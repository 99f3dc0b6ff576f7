"""Shared fixtures for the event sync tests."""
import dataclasses
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from processor.models import CanonicalEvent, User
from storage.event_store import EventStore, EventStoreError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def fixed_now():
    """Clock pinned to 1 March 2026, noon UTC."""
    return lambda: NOW


class InMemoryEventStore(EventStore):
    """Event store double that records every write."""

    def __init__(self, users: Optional[List[User]] = None):
        self.events: Dict[str, CanonicalEvent] = {}
        self.users = {user.user_id: user for user in users or []}
        self.created: List[str] = []
        self.updates: List[Dict[str, Any]] = []
        self.fail_on_create = set()

    def find_by_slug(self, slug):
        event = self.events.get(slug)
        return dataclasses.replace(event) if event else None

    def create(self, event):
        if event.slug in self.fail_on_create:
            raise EventStoreError(f"creating event {event.slug}: boom")
        if event.slug in self.events:
            raise EventStoreError(f"event {event.slug} already exists")
        self.events[event.slug] = dataclasses.replace(event, event_id=event.slug)
        self.created.append(event.slug)
        return event.slug

    def update_fields(self, event_id, fields):
        self.updates.append({'event_id': event_id, **fields})
        event = self.events[event_id]
        for name, value in fields.items():
            setattr(event, name, value)

    def assign_organizers(self, event_id, user_ids):
        self.events[event_id].organizer_ids.extend(user_ids)

    def find_users_by_ids(self, user_ids):
        return [self.users[i] for i in user_ids if i in self.users]


@pytest.fixture
def memory_store():
    return InMemoryEventStore(users=[User(user_id=1), User(user_id=2)])
