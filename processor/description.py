"""Organizer-supplied description templates.

Templates use ``{{ name }}`` style placeholders over a closed set of event
fields. Anything else between braces is a template error.
"""
import logging
import re
from typing import Callable, Dict

from processor.models import CanonicalEvent
from processor.normalizers import format_long_date

logger = logging.getLogger(__name__)


class TemplateError(ValueError):
    """Raised for unknown or unterminated placeholders."""


PLACEHOLDERS: Dict[str, Callable[[CanonicalEvent], str]] = {
    'name': lambda event: event.name,
    'location': lambda event: event.location,
    'country': lambda event: event.country,
    'start_date': lambda event: format_long_date(event.start_date),
    'end_date': lambda event: format_long_date(event.end_date),
    'website': lambda event: event.website,
    'slug': lambda event: event.slug,
}

_PLACEHOLDER_RE = re.compile(r'^\s*([a-z_]+)\s*$')


def substitute(template: str, event: CanonicalEvent) -> str:
    """
    Substitute placeholders in a template.

    Args:
        template: Template text
        event: Event supplying the field values

    Returns:
        Rendered text

    Raises:
        TemplateError: If a placeholder is unknown or not closed
    """
    output = []
    position = 0
    while True:
        start = template.find('{{', position)
        if start == -1:
            output.append(template[position:])
            break
        end = template.find('}}', start + 2)
        if end == -1:
            raise TemplateError(f"unclosed placeholder at offset {start}")

        match = _PLACEHOLDER_RE.match(template[start + 2:end])
        if not match or match.group(1) not in PLACEHOLDERS:
            raise TemplateError(
                f"unknown placeholder {template[start:end + 2]!r}"
            )

        output.append(template[position:start])
        output.append(PLACEHOLDERS[match.group(1)](event))
        position = end + 2

    return ''.join(output)


def render_description(template: str, event: CanonicalEvent) -> str:
    """Render a description template, returning "" on empty or bad templates."""
    if not template:
        return ''
    try:
        return substitute(template, event)
    except TemplateError as e:
        logger.error(
            f"Failed to parse description template: {e}",
            extra={'slug': event.slug}
        )
    except Exception as e:
        logger.error(
            f"Failed to render description template: {e}",
            extra={'slug': event.slug, 'error_type': type(e).__name__}
        )
    return ''
