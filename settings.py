"""Runtime settings for the event sync, read from environment variables."""
import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from processor.normalizers import CFP_LINK_PREFIX

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = 3600.0

_DURATION_RE = re.compile(r'(\d+(?:\.\d+)?)(ms|h|m|s)')
_UNIT_SECONDS = {'h': 3600, 'm': 60, 's': 1, 'ms': 0.001}


def parse_duration(value: str) -> float:
    """
    Parse a duration such as "90s", "30m", "2h" or "1h30m" into seconds.

    A bare number is taken as seconds.

    Raises:
        ValueError: If the value is not a positive duration
    """
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        seconds = 0.0
        position = 0
        for match in _DURATION_RE.finditer(text):
            if match.start() != position:
                break
            seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
            position = match.end()
        if position != len(text) or not text:
            raise ValueError(f"invalid duration {value!r}")

    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


def parse_organizer_ids(value: str) -> List[int]:
    """
    Parse a comma-separated list of user ids, ignoring blanks.

    Raises:
        ValueError: If an entry is not a non-negative integer
    """
    ids = []
    for part in value.split(','):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit():
            raise ValueError(f"invalid AUTO_ORGANISERS_IDS value {part!r}")
        ids.append(int(part))
    return ids


@dataclass
class SyncSettings:
    """Settings consumed by the scheduler and the Lambda handler."""
    sync_interval: float = DEFAULT_SYNC_INTERVAL
    organizer_ids: List[int] = field(default_factory=list)
    table_name: str = 'cfp-events'
    users_table_name: str = 'cfp-users'
    region_name: Optional[str] = None
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    fetch_max_retries: int = 3
    cfp_link_prefix: str = CFP_LINK_PREFIX

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SyncSettings':
        """
        Build settings from environment variables.

        An unparsable SYNC_INTERVAL keeps the default and logs a warning.

        Raises:
            ValueError: If AUTO_ORGANISERS_IDS or a numeric setting is invalid
        """
        env = os.environ if environ is None else environ

        sync_interval = DEFAULT_SYNC_INTERVAL
        raw_interval = env.get('SYNC_INTERVAL', '')
        if raw_interval:
            try:
                sync_interval = parse_duration(raw_interval)
            except ValueError as e:
                logger.warning(f"Ignoring SYNC_INTERVAL: {e}")

        organizer_ids = parse_organizer_ids(env.get('AUTO_ORGANISERS_IDS', ''))
        if not organizer_ids:
            logger.warning("AUTO_ORGANISERS_IDS not set - event sync disabled")

        return cls(
            sync_interval=sync_interval,
            organizer_ids=organizer_ids,
            table_name=env.get('TABLE_NAME', 'cfp-events'),
            users_table_name=env.get('USERS_TABLE_NAME', 'cfp-users'),
            region_name=env.get('AWS_REGION') or None,
            log_level=env.get('LOG_LEVEL', 'INFO'),
            timeout_seconds=int(env.get('TIMEOUT_SECONDS', '30')),
            fetch_max_retries=int(env.get('FETCH_MAX_RETRIES', '3')),
            cfp_link_prefix=env.get('CFP_LINK_PREFIX', CFP_LINK_PREFIX),
        )
