"""
Error kinds raised by the statistics core and its collaborators.

The API layer maps them to HTTP status codes:
  - InvalidQueryError        -> 400
  - UpstreamUnavailableError -> 502
  - InsufficientDataError    -> never surfaced as an HTTP error; the stats
                                result carries an `insufficient_data` flag
"""


class RentsWatchError(Exception):
    """Base class for all domain errors."""


class InvalidQueryError(RentsWatchError, ValueError):
    """Malformed or out-of-range query parameters."""


class InsufficientDataError(RentsWatchError, ValueError):
    """Selection too small or degenerate to fit a regression."""


class UpstreamUnavailableError(RentsWatchError):
    """Geocoding or ingestion source failed."""
