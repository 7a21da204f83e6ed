# ABOUTME: Sunrise, golden hour, sunset and dusk instants for a location and date
# ABOUTME: Wraps astral's solar elevation formulas and never raises for valid coordinates

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Union

from astral import Observer
from astral.sun import SunDirection, dusk, elevation, golden_hour, noon, sunrise, sunset

from waterman.forecast.models import ms_to_datetime

When = Union[date, datetime, int, float]


@dataclass(frozen=True)
class SunTimes:
    """Absolute UTC instants for one local solar day"""
    sunrise: datetime
    golden_hour: datetime   # start of the evening golden hour
    sunset: datetime
    dusk: datetime          # civil dusk


def solar_timezone(lng: float) -> timezone:
    """Fixed offset approximating local mean solar time at a longitude."""
    return timezone(timedelta(minutes=round(lng * 4)))


def solar_date(lng: float, when: When) -> date:
    """
    Resolve the local solar calendar date for an instant.

    Plain dates are taken as-is. Datetimes (naive ones are read as UTC) and
    epoch milliseconds are shifted by lng/15 hours so a site's afternoon
    never resolves to the next UTC day's sun.
    """
    if isinstance(when, (int, float)):
        when = ms_to_datetime(int(when))
    if isinstance(when, datetime):
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return when.astimezone(solar_timezone(lng)).date()
    return when


def get_sun_times(lat: float, lng: float, when: When) -> SunTimes:
    """
    Calculate sun times for a location on the solar day containing `when`.

    Polar day gives the whole local solar day (sunrise at its start, sunset
    at its end); polar night gives an empty window at solar noon. Golden hour
    and dusk fall back to sunset where the sun never reaches their elevation.

    Args:
        lat: Latitude in [-90, 90]
        lng: Longitude in [-180, 180]
        when: date, datetime or epoch milliseconds

    Returns:
        SunTimes with aware UTC datetimes
    """
    observer = Observer(latitude=lat, longitude=lng)
    tz = solar_timezone(lng)
    day = solar_date(lng, when)

    try:
        rise = sunrise(observer, day, tzinfo=tz)
        set_ = sunset(observer, day, tzinfo=tz)
    except ValueError:
        solar_noon = noon(observer, day, tzinfo=tz)
        if elevation(observer, solar_noon) > 0:
            rise = datetime.combine(day, time.min, tzinfo=tz)
            set_ = datetime.combine(day, time.max, tzinfo=tz)
        else:
            rise = set_ = solar_noon

    try:
        golden = golden_hour(observer, day, direction=SunDirection.SETTING, tzinfo=tz)[0]
    except ValueError:
        golden = set_

    try:
        civil_dusk = dusk(observer, day, tzinfo=tz)
    except ValueError:
        civil_dusk = set_

    return SunTimes(
        sunrise=rise.astimezone(timezone.utc),
        golden_hour=golden.astimezone(timezone.utc),
        sunset=set_.astimezone(timezone.utc),
        dusk=civil_dusk.astimezone(timezone.utc),
    )
