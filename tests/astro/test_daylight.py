# ABOUTME: Tests for daylight predicates used to filter forecast slots
# ABOUTME: Covers exact sunrise/sunset boundaries, slot overlap and no-coordinate fallbacks

from datetime import date, datetime, timezone

from waterman.astro.daylight import (
    is_after_sunset,
    is_contextual_slot,
    is_daylight,
    local_hour,
    sunset_occurs_during_slot,
    sunset_occurs_in_first_half,
)
from waterman.astro.sun import get_sun_times
from waterman.forecast.models import Site, datetime_to_ms

HOUR_MS = 60 * 60 * 1000

SITE = Site(id="caparica", name="Costa da Caparica", latitude=38.64, longitude=-9.24, timezone="Europe/Lisbon")
NO_COORDS = Site(id="lagoon", name="Lagoon", timezone="UTC")


def at(hour, minute=0, day=15):
    return datetime_to_ms(datetime(2026, 6, day, hour, minute, tzinfo=timezone.utc))


def sun_ms():
    times = get_sun_times(SITE.latitude, SITE.longitude, date(2026, 6, 15))
    return datetime_to_ms(times.sunrise), datetime_to_ms(times.sunset)


class TestIsDaylight:
    """Tests for is_daylight()"""

    def test_midday_and_midnight(self):
        assert is_daylight(at(12), SITE)
        assert not is_daylight(at(23, 30), SITE)
        assert not is_daylight(at(2), SITE)

    def test_exact_sunset_is_daylight(self):
        _, sunset = sun_ms()
        assert is_daylight(sunset, SITE)
        assert not is_daylight(sunset + 1, SITE)

    def test_exact_sunrise_is_daylight(self):
        sunrise, _ = sun_ms()
        assert is_daylight(sunrise, SITE)
        assert not is_daylight(sunrise - 1, SITE)

    def test_accepts_datetime(self):
        assert is_daylight(datetime(2026, 6, 15, 12, tzinfo=timezone.utc), SITE)

    def test_fallback_band_without_coordinates(self):
        """08:00 to 17:00 local, end exclusive"""
        assert not is_daylight(at(7, 59), NO_COORDS)
        assert is_daylight(at(8), NO_COORDS)
        assert is_daylight(at(16, 59), NO_COORDS)
        assert not is_daylight(at(17), NO_COORDS)

    def test_fallback_uses_site_timezone(self):
        lisbon_no_coords = Site(id="x", name="X", timezone="Europe/Lisbon")
        # 07:30Z is 08:30 in Lisbon summer time
        assert is_daylight(at(7, 30), lisbon_no_coords)
        assert local_hour(at(7, 30), lisbon_no_coords) == 8


class TestIsAfterSunset:

    def test_boundary(self):
        _, sunset = sun_ms()
        assert not is_after_sunset(sunset, SITE)
        assert is_after_sunset(sunset + 1, SITE)

    def test_fallback(self):
        assert not is_after_sunset(at(17, 59), NO_COORDS)
        assert is_after_sunset(at(18), NO_COORDS)


class TestSunsetDuringSlot:
    """Tests for sunset overlap with a 3-hour slot"""

    def test_sunset_inside_slot(self):
        _, sunset = sun_ms()
        assert sunset_occurs_during_slot(sunset - HOUR_MS, SITE)

    def test_sunset_at_slot_start_is_not_during(self):
        _, sunset = sun_ms()
        assert not sunset_occurs_during_slot(sunset, SITE)

    def test_sunset_at_slot_end_is_not_during(self):
        _, sunset = sun_ms()
        assert not sunset_occurs_during_slot(sunset - 3 * HOUR_MS, SITE)

    def test_custom_duration(self):
        _, sunset = sun_ms()
        assert not sunset_occurs_during_slot(sunset - 2 * HOUR_MS, SITE, duration_hours=1)
        assert sunset_occurs_during_slot(sunset - 2 * HOUR_MS, SITE, duration_hours=3)

    def test_fallback(self):
        assert sunset_occurs_during_slot(at(15), NO_COORDS)
        assert not sunset_occurs_during_slot(at(14), NO_COORDS)


class TestSunsetInFirstHalf:

    def test_before_midpoint(self):
        _, sunset = sun_ms()
        assert sunset_occurs_in_first_half(sunset - HOUR_MS, SITE)

    def test_at_midpoint_is_not_first_half(self):
        _, sunset = sun_ms()
        assert not sunset_occurs_in_first_half(sunset - int(1.5 * HOUR_MS), SITE)

    def test_second_half(self):
        _, sunset = sun_ms()
        assert not sunset_occurs_in_first_half(sunset - 2 * HOUR_MS, SITE)

    def test_fallback(self):
        assert sunset_occurs_in_first_half(at(16), NO_COORDS)
        assert not sunset_occurs_in_first_half(at(10), NO_COORDS)


class TestContextualSlot:
    """Edge-of-daylight slots shown for context"""

    def test_wind_sports_first_slot_after_sunset(self):
        slots = [at(18), at(19), at(21), at(22)]
        assert is_contextual_slot(at(21), SITE, "wingfoil", slots)
        assert not is_contextual_slot(at(22), SITE, "wingfoil", slots)
        assert not is_contextual_slot(at(19), SITE, "wingfoil", slots)

    def test_surfing_last_slot_before_sunrise(self):
        slots = [at(3), at(4), at(6), at(7)]
        assert is_contextual_slot(at(4), SITE, "surfing", slots)
        assert not is_contextual_slot(at(3), SITE, "surfing", slots)
        assert not is_contextual_slot(at(6), SITE, "surfing", slots)

    def test_never_without_coordinates(self):
        assert not is_contextual_slot(at(21), NO_COORDS, "wingfoil", [at(21)])
