# ABOUTME: Daylight predicates deciding whether a forecast slot is usable at a site
# ABOUTME: Uses sun times when coordinates exist and fixed local-hour bands otherwise

from datetime import datetime
from typing import Iterable, Union
from zoneinfo import ZoneInfo

from waterman.astro.sun import get_sun_times
from waterman.config import Config
from waterman.forecast.models import Site, datetime_to_ms, ms_to_datetime

Timestamp = Union[int, datetime]

HOUR_MS = 60 * 60 * 1000

# Fallback band when a site has no coordinates: 08:00 to 17:00 local, end
# exclusive. Narrower than the 09-18 ingestion band on purpose.
FALLBACK_DAYLIGHT_START_HOUR = 8
FALLBACK_DAYLIGHT_END_HOUR = 17
FALLBACK_SUNSET_HOUR = 18
FALLBACK_LATE_SLOT_HOUR = 15


def _to_ms(timestamp: Timestamp) -> int:
    if isinstance(timestamp, datetime):
        return datetime_to_ms(timestamp)
    return int(timestamp)


def local_hour(timestamp: Timestamp, site: Site) -> int:
    """Wall-clock hour of a timestamp in the site's (or default) timezone."""
    tz = ZoneInfo(site.timezone or Config.DEFAULT_TIMEZONE)
    return ms_to_datetime(_to_ms(timestamp)).astimezone(tz).hour


def _sun_ms(timestamp_ms: int, site: Site) -> tuple[int, int]:
    times = get_sun_times(site.latitude, site.longitude, timestamp_ms)
    return datetime_to_ms(times.sunrise), datetime_to_ms(times.sunset)


def is_daylight(timestamp: Timestamp, site: Site) -> bool:
    """True if the timestamp lies in [sunrise, sunset] for the site."""
    if not site.has_coordinates:
        hour = local_hour(timestamp, site)
        return FALLBACK_DAYLIGHT_START_HOUR <= hour < FALLBACK_DAYLIGHT_END_HOUR

    ts = _to_ms(timestamp)
    sunrise_ms, sunset_ms = _sun_ms(ts, site)
    return sunrise_ms <= ts <= sunset_ms


def is_after_sunset(timestamp: Timestamp, site: Site) -> bool:
    """True if the timestamp is strictly after sunset."""
    if not site.has_coordinates:
        return local_hour(timestamp, site) >= FALLBACK_SUNSET_HOUR

    ts = _to_ms(timestamp)
    _, sunset_ms = _sun_ms(ts, site)
    return ts > sunset_ms


def sunset_occurs_during_slot(timestamp: Timestamp, site: Site, duration_hours: float = 3) -> bool:
    """
    Check if sunset falls strictly inside [start, start + duration).

    Sunset exactly at the slot start means the slot starts in daylight;
    sunset exactly at the end is not during the slot.
    """
    if not site.has_coordinates:
        return local_hour(timestamp, site) >= FALLBACK_LATE_SLOT_HOUR

    start = _to_ms(timestamp)
    end = start + int(duration_hours * HOUR_MS)
    _, sunset_ms = _sun_ms(start, site)
    return start < sunset_ms < end


def sunset_occurs_in_first_half(timestamp: Timestamp, site: Site, duration_hours: float = 3) -> bool:
    """
    Check if sunset falls strictly between the slot start and its midpoint.

    A slot whose sunset lands at or after the midpoint keeps at least half
    of its duration in daylight and can still be treated as fully valid.
    """
    if not site.has_coordinates:
        return local_hour(timestamp, site) >= FALLBACK_LATE_SLOT_HOUR

    start = _to_ms(timestamp)
    midpoint = start + int(duration_hours * HOUR_MS) // 2
    _, sunset_ms = _sun_ms(start, site)
    return start < sunset_ms < midpoint


def is_contextual_slot(timestamp: Timestamp, site: Site, sport: str, slot_timestamps: Iterable[Timestamp]) -> bool:
    """
    Check if a slot is the one shown for context at the edge of daylight.

    Surfing shows the latest slot before sunrise; wind sports show the
    earliest slot after sunset. Sites without coordinates have none.
    """
    if not site.has_coordinates:
        return False

    ts = _to_ms(timestamp)
    sunrise_ms, sunset_ms = _sun_ms(ts, site)
    candidates = [_to_ms(t) for t in slot_timestamps]

    if sport == "surfing":
        before = [t for t in candidates if t < sunrise_ms]
        return bool(before) and max(before) == ts

    after = [t for t in candidates if t > sunset_ms]
    return bool(after) and min(after) == ts
