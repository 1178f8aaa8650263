"""
Error taxonomy for blog analytics.

Read paths (queries) let these propagate so a dashboard can show
"unavailable" instead of a wrong zero. The write path (ingestion)
catches and logs them at the tracker boundary.
"""


class AnalyticsError(Exception):
    """Base class for all analytics errors."""
    pass


class InvalidInput(AnalyticsError, ValueError):
    """Raised when a page view is missing a required field."""
    pass


class StoreUnavailable(AnalyticsError):
    """Raised when the event store cannot be reached or rejects a query."""
    pass


class QueryTimeout(StoreUnavailable):
    """Raised when a store call exceeds its time bound."""
    pass
