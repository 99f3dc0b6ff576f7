"""Normalization helpers for locations, slugs, dates and tags.

All functions here are pure. Lookup tables are built once at import time as
read-only mappings and can be swapped out per call for testing.
"""
import re
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

from processor.models import CFPStatus, EventDetailMetadata


CFP_LINK_PREFIX = 'https://cfp.ninja/e/'
CFP_CLOSE_LEAD_DAYS = 14

# Lowercase country names, codes and common variations mapped to a canonical
# short form. A few US states show up in place of the country.
COUNTRY_ALIASES: Mapping[str, str] = MappingProxyType({
    'us': 'USA', 'usa': 'USA', 'united states': 'USA',
    'united states of america': 'USA',
    'ny': 'USA', 'texas': 'USA', 'california': 'USA',
    'uk': 'UK', 'united kingdom': 'UK', 'england': 'UK',
    'great britain': 'UK', 'gb': 'UK',
    'nl': 'Netherlands', 'netherlands': 'Netherlands',
    'the netherlands': 'Netherlands',
    'de': 'Germany', 'germany': 'Germany', 'deutschland': 'Germany',
    'fr': 'France', 'france': 'France',
    'in': 'India', 'india': 'India',
    'br': 'Brazil', 'brazil': 'Brazil', 'brasil': 'Brazil',
    'pt': 'Portugal', 'portugal': 'Portugal',
    'es': 'Spain', 'spain': 'Spain',
    'it': 'Italy', 'italy': 'Italy',
    'jp': 'Japan', 'japan': 'Japan',
    'au': 'Australia', 'australia': 'Australia',
    'ca': 'Canada', 'canada': 'Canada',
    'ie': 'Ireland', 'ireland': 'Ireland',
    'se': 'Sweden', 'sweden': 'Sweden',
    'ch': 'Switzerland', 'switzerland': 'Switzerland',
    'be': 'Belgium', 'belgium': 'Belgium',
    'at': 'Austria', 'austria': 'Austria',
    'pl': 'Poland', 'poland': 'Poland',
    'cz': 'Czechia', 'czechia': 'Czechia', 'czech republic': 'Czechia',
    'sg': 'Singapore', 'singapore': 'Singapore',
    'il': 'Israel', 'israel': 'Israel',
})

# Conf42 topic keyword -> comma-joined tags. Longest contained keyword wins.
CONF42_TOPIC_TAGS: Tuple[Tuple[str, str], ...] = (
    ('machine learning', 'conf42,ml,ai'),
    ('sre', 'conf42,sre,reliability'),
    ('cloud native', 'conf42,cloud,cloud-native'),
    ('golang', 'conf42,go,golang'),
    ('database & data', 'conf42,database,data'),
    ('large language models', 'conf42,llm,ai'),
    ('observability', 'conf42,observability,monitoring'),
    ('autonomous agents', 'conf42,agents,ai'),
    ('devsecops', 'conf42,devsecops,security'),
    ('prompt engineering', 'conf42,prompt-engineering,ai'),
    ('platform engineering', 'conf42,platform-engineering,devops'),
    ('mlops', 'conf42,mlops,ml'),
    ('chaos engineering', 'conf42,chaos-engineering,sre'),
    ('devops', 'conf42,devops'),
    ('javascript', 'conf42,javascript,js'),
    ('python', 'conf42,python'),
    ('rust', 'conf42,rust'),
    ('quantum computing', 'conf42,quantum'),
    ('kubernetes', 'conf42,kubernetes,cloud'),
    ('artificial intelligence', 'conf42,ai'),
    ('incident management', 'conf42,incident-management,sre'),
)
CONF42_FALLBACK_TAGS = 'conf42'

# Host fragment -> (logo path, terms URL)
SOURCE_ASSETS: Mapping[str, Tuple[str, str]] = MappingProxyType({
    'sreday.com': ('/img/stickers/sreday.png',
                   'https://sreday.com/assets/tnc.pdf'),
    'llmday.com': ('/img/stickers/llmday.png',
                   'https://llmday.com/assets/tnc.pdf'),
    'devopsnotdead.com': ('/img/stickers/devopsnotdead.png',
                          'https://devopsnotdead.com/assets/tnc.pdf'),
    'conf42.com': ('/img/stickers/conf42.png',
                   'https://www.conf42.com/terms-and-conditions.pdf'),
})

QUARTER_MONTHS = MappingProxyType({1: 1, 2: 4, 3: 7, 4: 10})

_YEAR_RE = re.compile(r'\b(20\d{2})\b')
_QUARTER_RE = re.compile(r'\bQ([1-4])\b')
_CONF42_SHORT_URL_RE = re.compile(r'^([a-zA-Z]+)(\d{4})$')


# Location

def normalize_country(raw: str,
                      aliases: Mapping[str, str] = COUNTRY_ALIASES) -> str:
    """Map a country name, code or variation to its canonical short form.

    Unknown values are returned trimmed (e.g. "France." -> "France").
    """
    cleaned = raw.rstrip('.').strip()
    return aliases.get(cleaned.lower(), cleaned)


def extract_country(location: str,
                    aliases: Mapping[str, str] = COUNTRY_ALIASES) -> str:
    """
    Extract the canonical country from a free-text location.

    Args:
        location: Location such as "Harness, New York, US"
        aliases: Country alias table

    Returns:
        Canonical country ("USA"), or the trimmed raw value if unknown
    """
    parts = location.split(',')
    if len(parts) >= 2:
        return normalize_country(parts[-1].strip(), aliases)
    return normalize_country(location, aliases)


def extract_location_without_country(location: str) -> str:
    """Drop the last comma segment: "London, UK" -> "London"."""
    parts = location.split(',')
    if len(parts) >= 2:
        return ','.join(parts[:-1]).strip()
    return location.strip()


# Slugs

def slug_from_cfp_link(cfp_link: str, prefix: str = CFP_LINK_PREFIX) -> str:
    """
    Extract a slug from a link back to the platform's own event page.

    Args:
        cfp_link: Link such as "https://cfp.ninja/e/my-slug/"
        prefix: Platform event page prefix

    Returns:
        The slug, or empty string if the link does not point at the platform
    """
    if not cfp_link or not cfp_link.startswith(prefix):
        return ''
    return cfp_link[len(prefix):].strip('/')


def make_slug(site_prefix: str, event_url: str) -> str:
    """Build a slug from a source prefix and the event's relative path."""
    slug = event_url.strip('./')
    if site_prefix:
        slug = f"{site_prefix}-{slug}"
    return slug


def resolve_slug(cfp_link: str, site_prefix: str, event_url: str,
                 prefix: str = CFP_LINK_PREFIX) -> str:
    """Slug for a family reference; a platform link-back always wins."""
    return slug_from_cfp_link(cfp_link, prefix) or make_slug(site_prefix, event_url)


def get_site_prefix(source_url: str) -> str:
    """First label of the source hostname: "https://sreday.com" -> "sreday"."""
    host = urlparse(source_url).hostname
    if not host:
        return ''
    return host.split('.')[0]


def conf42_slug(short_url: str) -> str:
    """
    Convert a conf42 short identifier into a slug.

    Args:
        short_url: Identifier such as "golang2026"

    Returns:
        Slug such as "conf42-golang-2026", or empty string if the identifier
        is not letters followed by a four digit year
    """
    match = _CONF42_SHORT_URL_RE.match(short_url)
    if not match:
        return ''
    topic, year = match.groups()
    return f"conf42-{topic.lower()}-{year}"


# Dates

def utc_midnight(moment: datetime) -> datetime:
    """Midnight UTC on the calendar day of ``moment``."""
    return datetime(moment.year, moment.month, moment.day, tzinfo=timezone.utc)


def parse_date_from_name(name: str, now: Optional[datetime] = None) -> datetime:
    """
    Guess an event start date from its display name.

    A "20xx" token gives the year (current year otherwise) and a "Q1".."Q4"
    token gives the first month of that quarter (January otherwise).

    Args:
        name: Event display name, e.g. "SRE Day Q3 2026"
        now: Reference time for the current-year fallback

    Returns:
        First day of the inferred month, midnight UTC
    """
    now = now or datetime.now(timezone.utc)
    year = now.year
    month = 1

    year_match = _YEAR_RE.search(name)
    if year_match:
        year = int(year_match.group(1))

    quarter_match = _QUARTER_RE.search(name)
    if quarter_match:
        month = QUARTER_MONTHS[int(quarter_match.group(1))]

    return datetime(year, month, 1, tzinfo=timezone.utc)


def infer_event_dates(name: str, meta: Optional[EventDetailMetadata],
                      now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Start and end date from detail metadata, falling back to the name."""
    start_date = parse_date_from_name(name, now)
    days = 1
    if meta is not None:
        if meta.start_time is not None:
            start_date = meta.start_time
        if meta.days > 0:
            days = meta.days
    return start_date, start_date + timedelta(days=days - 1)


def parse_iso_date(value: str) -> datetime:
    """Parse "YYYY-MM-DD" as midnight UTC. Raises ValueError."""
    parsed = datetime.strptime(value.strip(), '%Y-%m-%d')
    return parsed.replace(tzinfo=timezone.utc)


def compute_cfp_window(start_date: datetime, is_past: bool,
                       now: datetime) -> Tuple[str, datetime, datetime]:
    """
    Compute the CFP status and window for a newly created event.

    The window opens today (UTC) and closes two weeks before the event. For
    upcoming events a close date already in the past is clamped to today,
    which yields a zero-length window for events starting within two weeks.

    Args:
        start_date: Event start date
        is_past: Whether the source lists the event as past
        now: Current time, timezone-aware

    Returns:
        Tuple of (cfp_status, cfp_open_at, cfp_close_at)
    """
    today = utc_midnight(now)
    close_at = start_date - timedelta(days=CFP_CLOSE_LEAD_DAYS)
    if not is_past and close_at < now:
        close_at = today

    status = CFPStatus.CLOSED if is_past else CFPStatus.OPEN
    return status, today, close_at


def format_long_date(value: datetime) -> str:
    """Format as "15 March 2026"."""
    return f"{value.day} {value.strftime('%B')} {value.year}"


# Tags and per-source assets

def conf42_tags(topic: str,
                table: Sequence[Tuple[str, str]] = CONF42_TOPIC_TAGS) -> str:
    """Map a conf42 topic name to comma-joined tags."""
    lower = topic.lower()
    matches = [(keyword, tags) for keyword, tags in table if keyword in lower]
    if not matches:
        return CONF42_FALLBACK_TAGS
    return max(matches, key=lambda match: len(match[0]))[1]


def _source_assets(source_url: str) -> Tuple[str, str]:
    host = (urlparse(source_url).hostname or '').lower()
    for fragment, assets in SOURCE_ASSETS.items():
        if fragment in host:
            return assets
    return '', ''


def logo_for_source(source_url: str) -> str:
    """Sticker image path for a known source, empty otherwise."""
    return _source_assets(source_url)[0]


def terms_url_for_source(source_url: str) -> str:
    """Terms and conditions URL for a known source, empty otherwise."""
    return _source_assets(source_url)[1]


def resolve_url(base_url: str, relative_url: str) -> str:
    """Resolve an event path against its source: ("https://a.com", "./x/") -> "https://a.com/x/"."""
    if relative_url.startswith('./'):
        relative_url = relative_url[2:]
    return urljoin(base_url, relative_url)
