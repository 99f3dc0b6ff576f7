"""Client for the family of catalog sites sharing one metadata layout."""
import logging
from datetime import date, datetime, timezone
from typing import Any, List, Optional

import requests

from processor.models import EventDetailMetadata, EventReference, HomeMetadata
from processor.normalizers import resolve_url
from sources.errors import SourceFetchError, SourceParseError
from sources.http import as_text, fetch_document, load_yaml_mapping

logger = logging.getLogger(__name__)

FAMILY_SOURCES = (
    'https://sreday.com',
    'https://llmday.com',
    'https://devopsnotdead.com',
)


class FamilySourceClient:
    """Reads a site's root catalog and per-event detail documents."""

    METADATA_FILE = 'metadata.yml'

    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        max_retries: int = 3,
        base_delay: float = 1,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Site root, e.g. "https://sreday.com"
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts per fetch (default: 3)
            base_delay: Initial retry backoff in seconds (default: 1)
            session: Optional requests session
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()

    def fetch_home_metadata(self) -> HomeMetadata:
        """
        Fetch and parse the root catalog.

        Returns:
            HomeMetadata with upcoming and past references

        Raises:
            SourceFetchError: On transport errors or if the catalog is missing
            SourceParseError: If the catalog is not valid YAML
        """
        url = f"{self.base_url}/{self.METADATA_FILE}"
        body = self._fetch(url)
        if body is None:
            raise SourceFetchError(f"home metadata not found at {url}")

        data = load_yaml_mapping(body, 'home metadata')
        home = HomeMetadata(
            events=self._parse_references(data.get('events')),
            events_past=self._parse_references(data.get('events_past')),
            mailto=as_text(data.get('mailto')),
            description_template=as_text(data.get('description_template')),
        )
        logger.info(
            f"Fetched {len(home.events)} upcoming and {len(home.events_past)} "
            f"past events",
            extra={'source_url': self.base_url}
        )
        return home

    def fetch_event_metadata(self, event_url: str) -> Optional[EventDetailMetadata]:
        """
        Fetch the detail document for one event.

        Args:
            event_url: Reference URL, e.g. "./2026-london-q1/"

        Returns:
            EventDetailMetadata, or None if the event has no detail document

        Raises:
            SourceFetchError: On transport errors
            SourceParseError: If the document is not valid YAML
        """
        url = self.event_metadata_url(event_url)
        body = self._fetch(url)
        if body is None:
            return None

        data = load_yaml_mapping(body, 'event metadata')
        return EventDetailMetadata(
            start_time=self._parse_timestamp(data.get('start_time')),
            days=self._parse_days(data.get('days')),
            luma_evt=as_text(data.get('luma_evt')),
        )

    def event_metadata_url(self, event_url: str) -> str:
        """Detail document URL: "./2026-london-q1" -> "<base>/2026-london-q1/metadata.yml"."""
        path = resolve_url(self.base_url + '/', event_url)
        if not path.endswith('/'):
            path += '/'
        return path + self.METADATA_FILE

    def _fetch(self, url: str) -> Optional[bytes]:
        return fetch_document(
            url,
            timeout=self.timeout,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            session=self.session
        )

    def _parse_references(self, items: Any) -> List[EventReference]:
        if items is None:
            return []
        if not isinstance(items, list):
            raise SourceParseError(
                f"parsing home metadata: expected a list of events, "
                f"got {type(items).__name__}"
            )

        references = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning(
                    f"Skipping malformed event reference: {item!r}",
                    extra={'source_url': self.base_url}
                )
                continue
            references.append(EventReference(
                name=as_text(item.get('name')),
                location=as_text(item.get('location')),
                url=as_text(item.get('url')),
                cfp_link=as_text(item.get('cfp_link')),
            ))
        return references

    @staticmethod
    def _parse_timestamp(value: Any) -> Optional[datetime]:
        """
        Parse start_time, which YAML may already have turned into a datetime.

        Naive values are taken as UTC.
        """
        if value is None or value == '':
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        else:
            try:
                parsed = datetime.fromisoformat(str(value).strip())
            except ValueError as e:
                raise SourceParseError(
                    f"parsing event metadata: invalid start_time {value!r}"
                ) from e

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def _parse_days(value: Any) -> int:
        if value is None or value == '':
            return 0
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise SourceParseError(
                f"parsing event metadata: invalid days {value!r}"
            ) from e
