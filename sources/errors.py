"""Errors raised by source clients."""


class SourceError(Exception):
    """Base class for source client failures."""


class SourceFetchError(SourceError):
    """Transport failure or unexpected HTTP status."""


class SourceParseError(SourceError):
    """Malformed YAML or unexpected document shape."""
