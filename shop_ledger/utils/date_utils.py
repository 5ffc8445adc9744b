# shop_ledger/utils/date_utils.py
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo
import calendar

from shop_ledger.exceptions import ValidationError

PERIODS = ('all', 'today', 'yesterday', 'week', 'month')


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def resolve_timezone(tz: Union[str, tzinfo, None]) -> tzinfo:
    """Turn a timezone name or object into a tzinfo.

    Args:
        tz: IANA name ('Africa/Lagos'), tzinfo, or None for UTC

    Returns:
        tzinfo object
    """
    if tz is None:
        return timezone.utc
    if isinstance(tz, tzinfo):
        return tz
    if tz.upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(tz)
    except (KeyError, ValueError) as e:
        raise ValidationError(f"Unknown timezone: {tz}", details={'timezone': tz}) from e


def parse_timestamp(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime.

    Stores hand back ISO strings (hosted REST), naive datetimes (SQLite) or
    aware datetimes. Naive values are read as UTC.

    Args:
        value: Timestamp in any of those forms

    Returns:
        Aware datetime in UTC, or None
    """
    if value is None:
        return None

    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        value = datetime.fromisoformat(text)
    elif not isinstance(value, datetime):
        value = datetime.combine(value, time.min)

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Midnight at the start of ``day`` in ``tz``."""
    return datetime.combine(day, time.min, tzinfo=tz)


def day_window(as_of: datetime, tz: Union[str, tzinfo, None] = None,
               days_back: int = 0) -> Tuple[datetime, datetime]:
    """Get the [start, end) bounds of a calendar day.

    Args:
        as_of: Reference instant
        tz: Timezone that defines midnight
        days_back: 0 for the day containing as_of, 1 for the day before, ...

    Returns:
        Tuple with start and end instants (aware)
    """
    zone = resolve_timezone(tz)
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=zone)

    local_day = as_of.astimezone(zone).date() - timedelta(days=days_back)
    # Built from dates, not by adding 24h, so DST days keep their real length
    return local_midnight(local_day, zone), local_midnight(local_day + timedelta(days=1), zone)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Move a datetime back by whole months, clamping the day of month.

    Args:
        moment: Start datetime
        months: Number of months to go back

    Returns:
        Shifted datetime
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_bounds(period: str, as_of: datetime,
                  tz: Union[str, tzinfo, None] = None) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Get the [start, end) bounds of a named reporting period.

    Args:
        period: One of 'all', 'today', 'yesterday', 'week', 'month'
        as_of: Reference instant
        tz: Timezone that defines midnight

    Returns:
        Tuple with start and end instants; None means unbounded
    """
    if period not in PERIODS:
        raise ValidationError(
            f"Invalid period: {period}. Valid values are: {', '.join(PERIODS)}",
            details={'period': period}
        )

    if period == 'all':
        return None, None

    if period == 'today':
        start, _ = day_window(as_of, tz)
        return start, None

    if period == 'yesterday':
        return day_window(as_of, tz, days_back=1)

    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=resolve_timezone(tz))

    if period == 'week':
        return as_of - timedelta(days=7), None

    return subtract_months(as_of, 1), None
