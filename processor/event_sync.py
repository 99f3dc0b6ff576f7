"""Synchronization of external event catalogs into the event store."""
import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from processor.change_detector import changed_fields, sync_managed_values
from processor.event_processor import EventProcessor
from processor.models import CanonicalEvent, SyncResult
from processor.normalizers import compute_cfp_window
from sources.conf42_client import Conf42Client
from sources.family_client import FAMILY_SOURCES, FamilySourceClient
from storage.event_store import EventStore, EventStoreError

logger = logging.getLogger(__name__)

CREATED = 'created'
UPDATED = 'updated'
SKIPPED = 'skipped'


class EventSynchronizer:
    """
    Reconciles every configured source against the event store.

    Sources and their events are processed one at a time. Each event is
    looked up by slug and then created, updated or skipped with at most one
    write. A failure on one event or one source is logged and the run moves
    on; the next scheduled run retries whatever was left unsynced.
    """

    def __init__(
        self,
        store: EventStore,
        organizer_ids: Sequence[int] = (),
        family_sources: Sequence[str] = FAMILY_SOURCES,
        family_client_factory: Optional[Callable[[str], FamilySourceClient]] = None,
        conf42_client: Optional[Conf42Client] = None,
        processor: Optional[EventProcessor] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the synchronizer.

        Args:
            store: Event store
            organizer_ids: User ids assigned to created events; the first
                one becomes the creator. Empty disables assignment.
            family_sources: Base URLs of the family sources, in sync order
            family_client_factory: Builds a client for a base URL
            conf42_client: Conf42 catalog client
            processor: Candidate builder
            now: Clock returning a timezone-aware datetime
        """
        self.store = store
        self.organizer_ids: List[int] = list(organizer_ids)
        self.family_sources = tuple(family_sources)
        self.family_client_factory = family_client_factory or FamilySourceClient
        self.conf42_client = conf42_client or Conf42Client()
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.processor = processor or EventProcessor(now=self._now)

    def sync_all_sources(
        self,
        cancel_event: Optional[threading.Event] = None
    ) -> SyncResult:
        """
        Run one sync pass over all family sources, then conf42.

        Args:
            cancel_event: Set to stop the pass before the next source or event

        Returns:
            Combined SyncResult for the pass
        """
        result = SyncResult()

        for base_url in self.family_sources:
            if _cancelled(cancel_event):
                logger.info("Event sync cancelled")
                return result
            try:
                result.merge(self.sync_family_source(base_url, cancel_event))
            except Exception as e:
                logger.error(
                    f"Failed to sync source: {e}",
                    extra={'source_url': base_url, 'error_type': type(e).__name__},
                    exc_info=True
                )
                result.errors.append(f"{base_url}: {e}")

        if _cancelled(cancel_event):
            logger.info("Event sync cancelled")
            return result
        try:
            result.merge(self.sync_conf42(cancel_event))
        except Exception as e:
            logger.error(
                f"Failed to sync conf42: {e}",
                extra={
                    'source_url': self.conf42_client.metadata_url,
                    'error_type': type(e).__name__
                },
                exc_info=True
            )
            result.errors.append(f"conf42: {e}")

        logger.info(
            f"Event sync completed: {result.created} created, "
            f"{result.updated} updated, {result.skipped} skipped",
            extra={
                'events_created': result.created,
                'events_updated': result.updated,
                'events_skipped': result.skipped,
                'events_failed': result.failed
            }
        )
        return result

    def sync_family_source(
        self,
        base_url: str,
        cancel_event: Optional[threading.Event] = None
    ) -> SyncResult:
        """
        Sync the upcoming then past events of one family source.

        Raises:
            SourceError: If the root catalog cannot be fetched or parsed
        """
        client = self.family_client_factory(base_url)
        home = client.fetch_home_metadata()
        contact_email = home.mailto.removeprefix('mailto:')
        result = SyncResult()

        for is_past, references in ((False, home.events), (True, home.events_past)):
            for ref in references:
                if _cancelled(cancel_event):
                    return result
                try:
                    meta = client.fetch_event_metadata(ref.url)
                    candidate = self.processor.build_family_event(
                        ref,
                        base_url,
                        meta,
                        description_template=home.description_template,
                        contact_email=contact_email
                    )
                    self._count(result, self.reconcile(candidate, is_past))
                except Exception as e:
                    logger.error(
                        f"Failed to sync event '{ref.name}': {e}",
                        extra={
                            'source_url': base_url,
                            'event_url': ref.url,
                            'error_type': type(e).__name__
                        }
                    )
                    result.failed += 1
                    result.errors.append(f"{base_url} {ref.url}: {e}")

        logger.info(
            f"Synced source: {result.created} created, {result.updated} "
            f"updated, {result.skipped} skipped, {result.failed} failed",
            extra={'source_url': base_url}
        )
        return result

    def sync_conf42(
        self,
        cancel_event: Optional[threading.Event] = None
    ) -> SyncResult:
        """
        Sync upcoming conf42 events.

        Raises:
            SourceError: If the catalog cannot be fetched or parsed
        """
        metadata = self.conf42_client.fetch_metadata()
        result = SyncResult()

        for entry in metadata.events:
            if _cancelled(cancel_event):
                return result
            try:
                candidate = self.processor.build_conf42_event(
                    entry, metadata.description_template
                )
            except ValueError as e:
                logger.error(
                    f"Failed to parse conf42 event date for '{entry.name}': {e}",
                    extra={'date': entry.date}
                )
                continue
            if candidate is None:
                continue

            try:
                self._count(result, self.reconcile(candidate, is_past=False))
            except Exception as e:
                logger.error(
                    f"Failed to sync conf42 event: {e}",
                    extra={'slug': candidate.slug, 'error_type': type(e).__name__}
                )
                result.failed += 1
                result.errors.append(f"{candidate.slug}: {e}")

        return result

    def reconcile(self, candidate: CanonicalEvent, is_past: bool) -> str:
        """
        Create, update or skip one event.

        Args:
            candidate: Event built from the source
            is_past: Whether the source lists the event as past

        Returns:
            CREATED, UPDATED or SKIPPED

        Raises:
            EventStoreError: If the lookup or the write fails
        """
        existing = self.store.find_by_slug(candidate.slug)
        if existing is None:
            self._create(candidate, is_past)
            return CREATED

        diff = changed_fields(existing, candidate)
        if not diff:
            return SKIPPED

        self.store.update_fields(
            existing.event_id or existing.slug,
            sync_managed_values(candidate)
        )
        logger.info(
            f"Updated event {candidate.slug}",
            extra={'slug': candidate.slug, 'event_name': candidate.name, 'changed': diff}
        )
        return UPDATED

    def _create(self, candidate: CanonicalEvent, is_past: bool) -> None:
        status, open_at, close_at = compute_cfp_window(
            candidate.start_date, is_past, self._now()
        )
        event = dataclasses.replace(
            candidate,
            cfp_status=status,
            cfp_open_at=open_at,
            cfp_close_at=close_at,
            is_paid=True,
            created_by_id=self.organizer_ids[0] if self.organizer_ids else None,
            organizer_ids=[],
        )
        event_id = self.store.create(event)

        if self.organizer_ids:
            self._assign_organizers(event_id, event.slug)

        logger.info(
            f"Created event {event.slug}",
            extra={'slug': event.slug, 'event_name': event.name}
        )

    def _assign_organizers(self, event_id: str, slug: str) -> None:
        try:
            users = self.store.find_users_by_ids(self.organizer_ids)
        except EventStoreError as e:
            logger.warning(
                f"Failed to find organiser users: {e}", extra={'slug': slug}
            )
            return

        if not users:
            return
        try:
            self.store.assign_organizers(event_id, [user.user_id for user in users])
        except EventStoreError as e:
            logger.warning(
                f"Failed to assign organisers: {e}", extra={'slug': slug}
            )

    @staticmethod
    def _count(result: SyncResult, outcome: str) -> None:
        if outcome == CREATED:
            result.created += 1
        elif outcome == UPDATED:
            result.updated += 1
        else:
            result.skipped += 1


def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()
