"""Event processor building candidate events from source data."""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from processor.description import render_description
from processor.models import (
    CanonicalEvent,
    Conf42CatalogEntry,
    EventDetailMetadata,
    EventReference,
)
from processor.normalizers import (
    CFP_LINK_PREFIX,
    conf42_slug,
    conf42_tags,
    extract_country,
    extract_location_without_country,
    get_site_prefix,
    infer_event_dates,
    logo_for_source,
    parse_iso_date,
    resolve_slug,
    resolve_url,
    terms_url_for_source,
    utc_midnight,
)

logger = logging.getLogger(__name__)


class EventProcessor:
    """
    Turns source references into candidate CanonicalEvents.

    Candidates carry every sync-managed field plus the fields only written
    on creation. CFP status and window are left for the synchronizer.
    """

    CONF42_SOURCE_URL = 'https://www.conf42.com'
    CONF42_CONTACT_EMAIL = 'hello@conf42.com'
    CONF42_LOCATION = 'Online'

    def __init__(
        self,
        cfp_link_prefix: str = CFP_LINK_PREFIX,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.cfp_link_prefix = cfp_link_prefix
        self._now = now or (lambda: datetime.now(timezone.utc))

    def build_family_event(
        self,
        ref: EventReference,
        base_url: str,
        meta: Optional[EventDetailMetadata],
        description_template: str = '',
        contact_email: str = ''
    ) -> CanonicalEvent:
        """
        Build the candidate for one family source reference.

        Args:
            ref: Reference from the root catalog
            base_url: Source site root
            meta: Detail document, or None to infer dates from the name
            description_template: Template from the root catalog
            contact_email: Contact address with any "mailto:" already stripped

        Returns:
            Candidate CanonicalEvent
        """
        slug = resolve_slug(
            ref.cfp_link,
            get_site_prefix(base_url),
            ref.url,
            self.cfp_link_prefix
        )
        start_date, end_date = infer_event_dates(ref.name, meta, self._now())

        candidate = CanonicalEvent(
            slug=slug,
            name=ref.name,
            start_date=start_date,
            end_date=end_date,
            location=extract_location_without_country(ref.location),
            country=extract_country(ref.location),
            website=resolve_url(base_url, ref.url),
            logo_url=logo_for_source(base_url),
            terms_url=terms_url_for_source(base_url),
            contact_email=contact_email,
            is_paid=True,
        )
        candidate.description = render_description(description_template, candidate)
        return candidate

    def build_conf42_event(
        self,
        entry: Conf42CatalogEntry,
        description_template: str = ''
    ) -> Optional[CanonicalEvent]:
        """
        Build the candidate for one conf42 catalog entry.

        Args:
            entry: Catalog entry
            description_template: Template from the catalog

        Returns:
            Candidate CanonicalEvent, or None if the entry is dated today or
            earlier, or its short identifier is not of the "topic2026" form

        Raises:
            ValueError: If the entry date is not "YYYY-MM-DD"
        """
        event_date = parse_iso_date(entry.date)
        if event_date <= utc_midnight(self._now()):
            return None

        slug = conf42_slug(entry.short_url)
        if not slug:
            logger.error(
                f"Failed to generate conf42 slug for '{entry.name}'",
                extra={'short_url': entry.short_url}
            )
            return None

        candidate = CanonicalEvent(
            slug=slug,
            name=f"Conf42 {entry.name} {event_date.year}",
            start_date=event_date,
            end_date=event_date,
            location=self.CONF42_LOCATION,
            country='',
            is_online=True,
            website=f"{self.CONF42_SOURCE_URL}/{entry.short_url}",
            logo_url=logo_for_source(self.CONF42_SOURCE_URL),
            terms_url=terms_url_for_source(self.CONF42_SOURCE_URL),
            contact_email=self.CONF42_CONTACT_EMAIL,
            tags=conf42_tags(entry.name),
            is_paid=True,
        )
        candidate.description = (
            render_description(description_template, candidate)
            or entry.description
        )
        return candidate
