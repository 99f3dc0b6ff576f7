"""Field-level comparison of a candidate event against the stored record."""
from typing import Any, Dict

from processor.models import CanonicalEvent

# Fields the sync engine owns once an event exists, in comparison order.
# CFP status, tags and organizers belong to the organizers.
SYNC_MANAGED_FIELDS = (
    'name',
    'start_date',
    'end_date',
    'description',
    'is_paid',
    'logo_url',
    'contact_email',
)


def changed_fields(existing: CanonicalEvent, candidate: CanonicalEvent) -> str:
    """
    Compare the sync-managed fields of two events.

    Timezone-aware datetimes compare by instant, so a date read back from
    the store with a different UTC offset is not reported as a change.

    Args:
        existing: Event currently in the store
        candidate: Event built from the latest source data

    Returns:
        Comma-joined names of the differing fields, empty string if none
    """
    changed = [
        field_name for field_name in SYNC_MANAGED_FIELDS
        if getattr(existing, field_name) != getattr(candidate, field_name)
    ]
    return ','.join(changed)


def sync_managed_values(candidate: CanonicalEvent) -> Dict[str, Any]:
    """Field map written on update."""
    return {name: getattr(candidate, name) for name in SYNC_MANAGED_FIELDS}
