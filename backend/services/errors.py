"""Error types raised by the snapshot store and the analytics services.

Each error carries a message that is safe to show to API callers. The
underlying driver or query error, when there is one, is chained as
``__cause__`` and only ever logged.
"""


class AnalyticsError(Exception):
    """Base class for errors with a user-safe message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.safe_message = message


class NotFound(AnalyticsError):
    """No snapshot, unknown release name, or a date absent from the store."""

    status_code = 404


class InvalidRange(AnalyticsError):
    """A resolved end date falls before the resolved start date."""

    status_code = 422


class ConfigError(AnalyticsError):
    """Malformed input or configuration (bad date, empty target list...)."""

    status_code = 400


class StoreFailure(AnalyticsError):
    """The relational store failed to run a query."""

    status_code = 500


class TrackerError(Exception):
    """The external issue tracker could not be queried."""
