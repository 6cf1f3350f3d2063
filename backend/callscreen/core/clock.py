import logging
from datetime import datetime, timezone

from dateutil import tz

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def resolve_timezone(name: str):
    zone = tz.gettz(name) if name else None
    if zone is None:
        logger.warning("Unknown timezone %r; using UTC", name)
        return tz.UTC
    return zone


class Clock:
    """Source of "now" for services; all persisted timestamps are naive UTC."""

    def now(self) -> datetime:
        return utcnow()

    def today(self, zone_name: str = "UTC") -> datetime:
        """Start of the current day in ``zone_name``, as naive UTC."""
        zone = resolve_timezone(zone_name)
        local_now = self.now().replace(tzinfo=tz.UTC).astimezone(zone)
        midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight.astimezone(tz.UTC).replace(tzinfo=None)


system_clock = Clock()
