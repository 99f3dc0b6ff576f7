"""Data models for event synchronization."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


class CFPStatus:
    """CFP status values stored on an event."""
    DRAFT = 'draft'
    OPEN = 'open'
    CLOSED = 'closed'
    REVIEWING = 'reviewing'
    COMPLETE = 'complete'


@dataclass
class EventReference:
    """Event reference as listed in a family source's root catalog."""
    name: str
    location: str
    url: str
    cfp_link: str = ''


@dataclass
class HomeMetadata:
    """Root catalog document of a family source."""
    events: List[EventReference] = field(default_factory=list)
    events_past: List[EventReference] = field(default_factory=list)
    mailto: str = ''
    description_template: str = ''


@dataclass
class EventDetailMetadata:
    """Per-event detail document of a family source."""
    start_time: Optional[datetime] = None
    days: int = 0
    luma_evt: str = ''


@dataclass
class Conf42CatalogEntry:
    """Single entry of the conf42 catalog."""
    name: str
    date: str
    location: str
    description: str
    short_url: str


@dataclass
class Conf42Metadata:
    """Conf42 catalog document."""
    events: List[Conf42CatalogEntry] = field(default_factory=list)
    description_template: str = ''


@dataclass
class CanonicalEvent:
    """Event record as persisted in the event store."""
    slug: str
    name: str
    start_date: datetime
    end_date: datetime
    description: str = ''
    location: str = ''
    country: str = ''
    is_online: bool = False
    website: str = ''
    logo_url: str = ''
    terms_url: str = ''
    contact_email: str = ''
    tags: str = ''
    cfp_status: str = CFPStatus.DRAFT
    cfp_open_at: Optional[datetime] = None
    cfp_close_at: Optional[datetime] = None
    is_paid: bool = False
    created_by_id: Optional[int] = None
    organizer_ids: List[int] = field(default_factory=list)
    event_id: Optional[str] = None


@dataclass
class User:
    """Platform user, as far as organizer assignment needs it."""
    user_id: int
    email: str = ''
    name: str = ''


@dataclass
class SyncResult:
    """Result of a sync run."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: 'SyncResult') -> None:
        """Add the counts and errors of another result to this one."""
        self.created += other.created
        self.updated += other.updated
        self.skipped += other.skipped
        self.failed += other.failed
        self.errors.extend(other.errors)
