from __future__ import annotations

from datetime import datetime, timezone as dt_timezone


class TimezoneUtils:
    """UTC helpers shared by models and services."""

    @staticmethod
    def utc_now() -> datetime:
        return datetime.now(dt_timezone.utc)

    @staticmethod
    def ensure_timezone_aware(dt: datetime | None, assume_utc: bool = True) -> datetime | None:
        """Guarantee that a datetime carries timezone information."""
        if dt is None:
            return None
        if dt.tzinfo is None:
            if not assume_utc:
                raise ValueError("Naive datetime provided without explicit timezone handling.")
            return dt.replace(tzinfo=dt_timezone.utc)
        return dt

    @staticmethod
    def format_datetime_for_api(dt: datetime | None) -> str | None:
        aware = TimezoneUtils.ensure_timezone_aware(dt)
        return aware.isoformat() if aware else None
