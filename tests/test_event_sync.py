"""Tests for EventSynchronizer."""
import threading
from datetime import datetime, timezone

import boto3
import pytest
import responses
from moto import mock_aws

from conftest import InMemoryEventStore
from processor.event_sync import CREATED, SKIPPED, UPDATED, EventSynchronizer
from processor.models import CanonicalEvent, User
from sources.conf42_client import Conf42Client
from sources.family_client import FamilySourceClient
from storage.dynamodb_store import DynamoDBEventStore
from storage.event_store import EventStoreError
from test_dynamodb_store import create_tables

SREDAY = "https://sreday.com"
LLMDAY = "https://llmday.com"
CONF42_URL = "https://conf42.test/metadata.yml"

SREDAY_HOME = """
mailto: "mailto:hello@sreday.com"
events:
  - name: "GopherCon 2026"
    location: "Denver, CO, US"
    url: "./2026-denver/"
events_past:
  - name: "SREday Paris 2025 Q4"
    location: "Paris, France"
    url: "./2025-paris-q4/"
"""

CONF42_CATALOG = """
events:
  - name: "Golang"
    date: "2026-09-03"
    location: "Online"
    description: "Go conference"
    short_url: "golang2026"
  - name: "Broken"
    date: "soon"
    location: "Online"
    description: ""
    short_url: "broken2026"
  - name: "Bad Slug"
    date: "2026-10-01"
    location: "Online"
    description: ""
    short_url: "bad-slug"
"""


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def register_sources(sreday_home=SREDAY_HOME, conf42_catalog="events: []\n", mock=responses):
    """Register catalog responses; detail documents are all missing."""
    mock.add(responses.GET, f"{SREDAY}/metadata.yml", body=sreday_home, status=200)
    mock.add(responses.GET, f"{SREDAY}/2026-denver/metadata.yml", status=404)
    mock.add(responses.GET, f"{SREDAY}/2025-paris-q4/metadata.yml", status=404)
    mock.add(responses.GET, CONF42_URL, body=conf42_catalog, status=200)


def make_synchronizer(store, fixed_now, sources=(SREDAY,), organizer_ids=(1, 2)):
    return EventSynchronizer(
        store=store,
        organizer_ids=organizer_ids,
        family_sources=sources,
        family_client_factory=lambda url: FamilySourceClient(url, max_retries=1),
        conf42_client=Conf42Client(metadata_url=CONF42_URL, max_retries=1),
        now=fixed_now,
    )


class TestSyncAllSources:
    """End-to-end runs over mocked sources."""

    @responses.activate
    def test_first_run_creates_events(self, memory_store, fixed_now):
        register_sources()
        synchronizer = make_synchronizer(memory_store, fixed_now)

        result = synchronizer.sync_all_sources()

        assert (result.created, result.updated, result.skipped, result.failed) == (2, 0, 0, 0)
        event = memory_store.events["sreday-2026-denver"]
        assert event.country == "USA"
        assert event.location == "Denver, CO"
        assert event.cfp_status == "open"
        assert event.is_paid is True
        assert event.contact_email == "hello@sreday.com"
        assert event.created_by_id == 1
        assert event.organizer_ids == [1, 2]
        assert event.cfp_open_at == utc(2026, 3, 1)
        # start 1 Jan 2026 is already past, so the close date is clamped to today
        assert event.cfp_close_at == utc(2026, 3, 1)

        past = memory_store.events["sreday-2025-paris-q4"]
        assert past.cfp_status == "closed"
        assert past.start_date == utc(2025, 10, 1)
        assert past.cfp_close_at == utc(2025, 9, 17)

    @responses.activate
    def test_second_run_is_idempotent(self, memory_store, fixed_now):
        register_sources()
        synchronizer = make_synchronizer(memory_store, fixed_now)

        synchronizer.sync_all_sources()
        result = synchronizer.sync_all_sources()

        assert (result.created, result.updated, result.skipped) == (0, 0, 2)
        assert memory_store.updates == []
        assert len(memory_store.created) == 2

    @responses.activate
    def test_changed_source_updates_only_managed_fields(self, memory_store, fixed_now):
        register_sources()
        synchronizer = make_synchronizer(memory_store, fixed_now)
        synchronizer.sync_all_sources()

        stored = memory_store.events["sreday-2026-denver"]
        stored.cfp_status = "reviewing"
        stored.tags = "go,community"
        stored.organizer_ids = [5]

        responses.replace(
            responses.GET,
            f"{SREDAY}/metadata.yml",
            body=SREDAY_HOME.replace("GopherCon 2026", "GopherCon 2026 Q3"),
            status=200
        )
        result = synchronizer.sync_all_sources()

        assert (result.created, result.updated, result.skipped) == (0, 1, 1)
        event = memory_store.events["sreday-2026-denver"]
        assert event.name == "GopherCon 2026 Q3"
        assert event.start_date == utc(2026, 7, 1)
        assert event.cfp_status == "reviewing"
        assert event.tags == "go,community"
        assert event.organizer_ids == [5]
        assert set(memory_store.updates[0]) == {
            'event_id', 'name', 'start_date', 'end_date', 'description',
            'is_paid', 'logo_url', 'contact_email',
        }

    @responses.activate
    def test_failed_source_does_not_block_others(self, memory_store, fixed_now):
        register_sources()
        responses.add(responses.GET, f"{LLMDAY}/metadata.yml", status=500)
        synchronizer = make_synchronizer(memory_store, fixed_now, sources=(LLMDAY, SREDAY))

        result = synchronizer.sync_all_sources()

        assert result.created == 2
        assert any(LLMDAY in error for error in result.errors)

    @responses.activate
    def test_missing_root_document_skips_source(self, memory_store, fixed_now):
        register_sources()
        responses.add(responses.GET, f"{LLMDAY}/metadata.yml", status=404)
        synchronizer = make_synchronizer(memory_store, fixed_now, sources=(LLMDAY,))

        result = synchronizer.sync_all_sources()

        assert result.created == 0
        assert len(result.errors) == 1

    @responses.activate
    def test_detail_error_skips_only_that_event(self, memory_store, fixed_now):
        register_sources()
        responses.replace(
            responses.GET, f"{SREDAY}/2026-denver/metadata.yml", body="days: [", status=200
        )
        synchronizer = make_synchronizer(memory_store, fixed_now)

        result = synchronizer.sync_all_sources()

        assert (result.created, result.failed) == (1, 1)
        assert "sreday-2026-denver" not in memory_store.events
        assert "sreday-2025-paris-q4" in memory_store.events

    @responses.activate
    def test_store_error_skips_only_that_event(self, memory_store, fixed_now):
        register_sources()
        memory_store.fail_on_create.add("sreday-2026-denver")
        synchronizer = make_synchronizer(memory_store, fixed_now)

        result = synchronizer.sync_all_sources()

        assert (result.created, result.failed) == (1, 1)
        assert any("boom" in error for error in result.errors)

    @responses.activate
    def test_conf42_entries(self, memory_store, fixed_now):
        register_sources(conf42_catalog=CONF42_CATALOG)
        synchronizer = make_synchronizer(memory_store, fixed_now, sources=())

        result = synchronizer.sync_all_sources()

        assert (result.created, result.failed) == (1, 0)
        event = memory_store.events["conf42-golang-2026"]
        assert event.is_online is True
        assert event.tags == "conf42,go,golang"
        assert event.cfp_status == "open"
        assert event.cfp_close_at == utc(2026, 8, 20)

    @responses.activate
    def test_conf42_failure_keeps_family_results(self, memory_store, fixed_now):
        register_sources()
        responses.replace(responses.GET, CONF42_URL, status=503)
        synchronizer = make_synchronizer(memory_store, fixed_now)

        result = synchronizer.sync_all_sources()

        assert result.created == 2
        assert any(error.startswith("conf42") for error in result.errors)

    @responses.activate
    def test_no_organizers_configured(self, memory_store, fixed_now):
        register_sources()
        synchronizer = make_synchronizer(memory_store, fixed_now, organizer_ids=())

        synchronizer.sync_all_sources()

        event = memory_store.events["sreday-2026-denver"]
        assert event.created_by_id is None
        assert event.organizer_ids == []

    def test_cancelled_before_start(self, memory_store, fixed_now):
        synchronizer = make_synchronizer(memory_store, fixed_now)
        cancel = threading.Event()
        cancel.set()

        result = synchronizer.sync_all_sources(cancel)

        assert (result.created, result.updated, result.skipped) == (0, 0, 0)

    @responses.activate
    def test_cancelled_between_events(self, memory_store, fixed_now):
        register_sources()
        cancel = threading.Event()
        synchronizer = make_synchronizer(memory_store, fixed_now)
        original_create = memory_store.create

        def create_then_cancel(event):
            event_id = original_create(event)
            cancel.set()
            return event_id

        memory_store.create = create_then_cancel

        result = synchronizer.sync_all_sources(cancel)

        assert result.created == 1
        assert list(memory_store.events) == ["sreday-2026-denver"]
        assert not any(call.request.url == CONF42_URL for call in responses.calls)


class TestReconcile:
    """Test cases for the per-event state machine."""

    def candidate(self, **overrides):
        values = {
            'slug': "sreday-2026-london",
            'name': "SREday London 2026",
            'start_date': utc(2026, 9, 1),
            'end_date': utc(2026, 9, 2),
            'logo_url': "/img/stickers/sreday.png",
            'is_paid': True,
        }
        values.update(overrides)
        return CanonicalEvent(**values)

    def test_not_found_creates(self, memory_store, fixed_now):
        synchronizer = make_synchronizer(memory_store, fixed_now)

        assert synchronizer.reconcile(self.candidate(), is_past=False) == CREATED
        assert memory_store.events["sreday-2026-london"].cfp_close_at == utc(2026, 8, 18)

    def test_found_without_diff_skips(self, memory_store, fixed_now):
        synchronizer = make_synchronizer(memory_store, fixed_now)
        synchronizer.reconcile(self.candidate(), is_past=False)

        assert synchronizer.reconcile(self.candidate(), is_past=False) == SKIPPED

    def test_found_with_diff_updates(self, memory_store, fixed_now, caplog):
        synchronizer = make_synchronizer(memory_store, fixed_now)
        synchronizer.reconcile(self.candidate(), is_past=False)

        with caplog.at_level('INFO', logger='processor.event_sync'):
            outcome = synchronizer.reconcile(
                self.candidate(description="New", contact_email="a@b.c"), is_past=False
            )

        assert outcome == UPDATED
        record = next(r for r in caplog.records if r.message.startswith("Updated event"))
        assert record.changed == "description,contact_email"

    def test_event_starting_within_two_weeks_gets_zero_length_window(self, memory_store, fixed_now):
        synchronizer = make_synchronizer(memory_store, fixed_now)

        synchronizer.reconcile(
            self.candidate(start_date=utc(2026, 3, 10), end_date=utc(2026, 3, 10)),
            is_past=False
        )

        event = memory_store.events["sreday-2026-london"]
        assert event.cfp_open_at == event.cfp_close_at == utc(2026, 3, 1)

    def test_unknown_organizer_ids_not_assigned(self, fixed_now):
        store = InMemoryEventStore(users=[User(user_id=2)])
        synchronizer = make_synchronizer(store, fixed_now, organizer_ids=(9, 2))

        synchronizer.reconcile(self.candidate(), is_past=False)

        event = store.events["sreday-2026-london"]
        assert event.created_by_id == 9
        assert event.organizer_ids == [2]

    def test_organizer_failure_keeps_created_event(self, memory_store, fixed_now):
        def broken(event_id, user_ids):
            raise EventStoreError("assign failed")

        memory_store.assign_organizers = broken
        synchronizer = make_synchronizer(memory_store, fixed_now)

        assert synchronizer.reconcile(self.candidate(), is_past=False) == CREATED
        assert "sreday-2026-london" in memory_store.events

    def test_store_lookup_error_propagates(self, memory_store, fixed_now):
        def broken(slug):
            raise EventStoreError("read failed")

        memory_store.find_by_slug = broken
        synchronizer = make_synchronizer(memory_store, fixed_now)

        with pytest.raises(EventStoreError):
            synchronizer.reconcile(self.candidate(), is_past=False)


def test_end_to_end_with_dynamodb(fixed_now):
    """Two runs against DynamoDB: create, then skip."""
    with mock_aws(), responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        register_sources(mock=rsps)
        create_tables(boto3.resource('dynamodb', region_name='us-east-1'))
        store = DynamoDBEventStore('test-cfp-events', 'test-cfp-users', region_name='us-east-1')
        synchronizer = make_synchronizer(store, fixed_now)

        first = synchronizer.sync_all_sources()
        second = synchronizer.sync_all_sources()

        assert (first.created, first.updated, first.skipped) == (2, 0, 0)
        assert (second.created, second.updated, second.skipped) == (0, 0, 2)

        event = store.find_by_slug("sreday-2026-denver")
        assert event.country == "USA"
        assert event.location == "Denver, CO"
        assert event.cfp_status == "open"
        assert event.organizer_ids == [1, 2]
