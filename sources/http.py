"""HTTP fetching shared by the source clients."""
import logging
import time
from typing import Any, Optional

import requests
import yaml

from sources.errors import SourceFetchError, SourceParseError

logger = logging.getLogger(__name__)


def fetch_document(
    url: str,
    timeout: int = 30,
    max_retries: int = 3,
    base_delay: float = 1,
    session: Optional[requests.Session] = None
) -> Optional[bytes]:
    """
    Fetch a document with retry logic.

    Args:
        url: Absolute URL to fetch
        timeout: HTTP request timeout in seconds
        max_retries: Number of attempts before giving up
        base_delay: Backoff delay in seconds, doubled after each attempt
        session: Optional requests session

    Returns:
        Response body, or None if the server answered 404

    Raises:
        SourceFetchError: If all retry attempts fail
    """
    http = session or requests

    for attempt in range(max_retries):
        try:
            logger.debug(f"Fetching {url} (attempt {attempt + 1}/{max_retries})")
            response = http.get(url, timeout=timeout)
            if response.status_code == 404:
                return None
            if response.status_code != 200:
                raise requests.HTTPError(
                    f"HTTP {response.status_code} fetching {url}",
                    response=response
                )
            return response.content

        except requests.RequestException as e:
            if attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt)
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{max_retries}): {e}. "
                    f"Retrying in {delay} seconds...",
                    extra={'source_url': url}
                )
                time.sleep(delay)
            else:
                logger.error(
                    f"All {max_retries} retry attempts failed. Last error: {e}",
                    extra={'source_url': url}
                )
                raise SourceFetchError(f"fetching {url}: {e}") from e

    raise SourceFetchError(f"fetching {url}: no attempts made")


def load_yaml_mapping(body: bytes, what: str) -> dict:
    """
    Parse a YAML document whose top level must be a mapping.

    An empty document parses as an empty mapping.

    Raises:
        SourceParseError: If the YAML is malformed or not a mapping
    """
    try:
        data: Any = yaml.safe_load(body)
    except yaml.YAMLError as e:
        raise SourceParseError(f"parsing {what}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SourceParseError(
            f"parsing {what}: expected a mapping, got {type(data).__name__}"
        )
    return data


def as_text(value: Any) -> str:
    """YAML scalar as a string; missing values become ""."""
    if value is None:
        return ''
    return str(value)
