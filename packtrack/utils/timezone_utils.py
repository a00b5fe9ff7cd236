from __future__ import annotations

from datetime import date, datetime, timedelta, timezone as dt_timezone

import pytz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "America/Sao_Paulo"


class TimezoneUtils:
    """Timezone helpers. Storage is naive UTC; business dates use the plant's zone."""

    @staticmethod
    def utc_now() -> datetime:
        return datetime.now(dt_timezone.utc).replace(tzinfo=None)

    @staticmethod
    def get_business_timezone():
        name = DEFAULT_TIMEZONE
        if has_app_context():
            name = current_app.config.get("BUSINESS_TIMEZONE") or DEFAULT_TIMEZONE
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            return pytz.timezone(DEFAULT_TIMEZONE)

    @staticmethod
    def to_business_time(dt: datetime) -> datetime:
        if dt.tzinfo is None:
            dt = pytz.utc.localize(dt)
        return dt.astimezone(TimezoneUtils.get_business_timezone())

    @staticmethod
    def business_today() -> date:
        return TimezoneUtils.to_business_time(TimezoneUtils.utc_now()).date()

    @staticmethod
    def add_days(start: date, days: int) -> date:
        return start + timedelta(days=int(days))
