"""
Configuration for blog analytics.
"""
import logging
from dataclasses import dataclass
from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TOP_PAGES_LIMIT = 5


class ConfigError(ValueError):
    """Raised when an AnalyticsConfig value is unusable."""
    pass


def resolve_timezone(name: str) -> tzinfo:
    """Resolve an IANA zone name. "UTC" maps to datetime.timezone.utc.

    Raises:
        ConfigError: If the zone name is unknown
    """
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown time zone: {name!r}") from None


@dataclass
class AnalyticsConfig:
    """Configuration for a single analytics instance."""

    site_name: str  # Site identifier (e.g., "myblog.dev")

    # "today" is midnight in this zone. Keep it explicit: host-local time
    # makes the metric differ between deployments.
    timezone: str = "UTC"

    # Windows and ranking
    top_pages_limit: int = DEFAULT_TOP_PAGES_LIMIT
    weekly_days: int = 7
    monthly_days: int = 30

    # Time bounds
    query_timeout_seconds: float = 10.0
    ingest_timeout_seconds: float = 5.0

    # Performance
    cache_ttl_seconds: int = 60  # Cache-Control max-age on metric responses

    # Optional Cloudflare D1 backend
    d1_database_id: str | None = None
    cf_account_id: str | None = None
    cf_api_token: str | None = None

    @property
    def has_d1(self) -> bool:
        """Check if D1 credentials are configured."""
        return bool(self.d1_database_id and self.cf_account_id and self.cf_api_token)

    @property
    def tzinfo(self) -> tzinfo:
        return resolve_timezone(self.timezone)

    def __post_init__(self):
        """Validate configuration after initialization."""
        # Fail early on a bad zone rather than on the first "today" query
        resolve_timezone(self.timezone)

        if self.weekly_days <= 0 or self.monthly_days <= 0:
            raise ConfigError(
                f"Window spans must be positive, got weekly_days={self.weekly_days} "
                f"monthly_days={self.monthly_days}"
            )
        if self.query_timeout_seconds <= 0 or self.ingest_timeout_seconds <= 0:
            raise ConfigError("Timeouts must be positive")
        if self.cache_ttl_seconds < 0:
            raise ConfigError("cache_ttl_seconds cannot be negative")

        if self.top_pages_limit <= 0:
            logger.warning(
                f"Site {self.site_name}: top_pages_limit={self.top_pages_limit}, "
                f"top pages will always be empty"
            )

        if any((self.d1_database_id, self.cf_account_id, self.cf_api_token)) and not self.has_d1:
            logger.warning(
                f"Site {self.site_name}: D1 credentials are incomplete, "
                f"falling back to the in-memory store"
            )
        logger.debug(f"Site {self.site_name}: analytics time zone is {self.timezone}")
