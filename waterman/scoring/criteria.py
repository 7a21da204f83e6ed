# ABOUTME: Sport-specific criteria matching for forecast slots against site scoring configs
# ABOUTME: Direction windows wrap through north when from > to (e.g. 315 -> 135)

from typing import Optional

from waterman.config import is_wind_sport
from waterman.forecast.models import ForecastSlot, SiteScoringConfig

EPIC_MIN_SPEED = 20.0
EPIC_MAX_GUST_SPREAD = 10.0


def is_direction_in_range(direction: float, direction_from: Optional[int], direction_to: Optional[int]) -> bool:
    """
    Check if a bearing falls inside a [from, to] window.

    Both bounds are inclusive. A window with from > to wraps through zero,
    so 315 -> 135 accepts 350, 0 and 135 and rejects 136 and 314. A window
    with either bound missing accepts everything.
    """
    if direction_from is None or direction_to is None:
        return True

    if direction_from <= direction_to:
        return direction_from <= direction <= direction_to
    return direction >= direction_from or direction <= direction_to


def matches_wind_criteria(slot: ForecastSlot, config: SiteScoringConfig) -> bool:
    """Wind sports: sustained speed, gust and direction window."""
    is_speed = slot.speed >= (config.min_speed or 0)
    is_gust = slot.gust >= (config.min_gust or 0)
    is_dir = is_direction_in_range(slot.direction, config.direction_from, config.direction_to)
    return is_speed and is_gust and is_dir


def matches_tide(slot: ForecastSlot, config: SiteScoringConfig) -> bool:
    """Optimal tide check; slots without tide data and "both" always pass."""
    if not config.optimal_tide or not slot.tide_type or config.optimal_tide == "both":
        return True
    return slot.tide_type == config.optimal_tide


def matches_surfing_criteria(slot: ForecastSlot, config: SiteScoringConfig) -> bool:
    """Surfing: swell height band, period, swell direction window and tide."""
    height = slot.wave_height or 0
    period = slot.wave_period or 0

    has_swell = height >= (config.min_swell_height or 0)
    under_max = height <= config.max_swell_height if config.max_swell_height else True
    has_period = period >= (config.min_period or 0)
    is_dir = is_direction_in_range(
        slot.wave_direction or 0, config.swell_direction_from, config.swell_direction_to
    )
    return has_swell and under_max and has_period and is_dir and matches_tide(slot, config)


def matches_criteria(slot: ForecastSlot, config: SiteScoringConfig, sport: str) -> bool:
    if is_wind_sport(sport):
        return matches_wind_criteria(slot, config)
    return matches_surfing_criteria(slot, config)


def is_epic_conditions(slot: ForecastSlot) -> bool:
    """Strong (>= 20kt) and steady (gust spread <= 10kt) wind."""
    return slot.speed >= EPIC_MIN_SPEED and (slot.gust - slot.speed) <= EPIC_MAX_GUST_SPREAD
