"""Client for the conf42 event catalog."""
import logging
from typing import Any, List, Optional

import requests

from processor.models import Conf42CatalogEntry, Conf42Metadata
from sources.errors import SourceFetchError, SourceParseError
from sources.http import as_text, fetch_document, load_yaml_mapping

logger = logging.getLogger(__name__)


class Conf42Client:
    """Reads the flat conf42 metadata document."""

    DEFAULT_METADATA_URL = (
        'https://raw.githubusercontent.com/conf42/src/refs/heads/main/metadata.yml'
    )

    def __init__(
        self,
        metadata_url: str = DEFAULT_METADATA_URL,
        timeout: int = 30,
        max_retries: int = 3,
        base_delay: float = 1,
        session: Optional[requests.Session] = None
    ):
        self.metadata_url = metadata_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()

    def fetch_metadata(self) -> Conf42Metadata:
        """
        Fetch and parse the conf42 catalog.

        Returns:
            Conf42Metadata with all catalog entries

        Raises:
            SourceFetchError: On transport errors or a missing catalog
            SourceParseError: If the catalog is not valid YAML
        """
        body = fetch_document(
            self.metadata_url,
            timeout=self.timeout,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            session=self.session
        )
        if body is None:
            raise SourceFetchError(f"conf42 metadata not found at {self.metadata_url}")

        data = load_yaml_mapping(body, 'conf42 metadata')
        metadata = Conf42Metadata(
            events=self._parse_entries(data.get('events')),
            description_template=as_text(data.get('description_template')),
        )
        logger.info(
            f"Fetched {len(metadata.events)} conf42 events",
            extra={'source_url': self.metadata_url}
        )
        return metadata

    def _parse_entries(self, items: Any) -> List[Conf42CatalogEntry]:
        if items is None:
            return []
        if not isinstance(items, list):
            raise SourceParseError(
                f"parsing conf42 metadata: expected a list of events, "
                f"got {type(items).__name__}"
            )

        entries = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning(f"Skipping malformed conf42 entry: {item!r}")
                continue
            entries.append(Conf42CatalogEntry(
                name=as_text(item.get('name')),
                date=as_text(item.get('date')),
                location=as_text(item.get('location')),
                description=as_text(item.get('description')),
                short_url=as_text(item.get('short_url')),
            ))
        return entries
