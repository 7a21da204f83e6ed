# ABOUTME: Data models for sites, scoring configs, forecast slots and tide events
# ABOUTME: Provides structured representation of the normalized forecast time series

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def datetime_to_ms(value: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(round(value.timestamp() * 1000))


@dataclass
class Site:
    """A named water sports location from the site directory"""
    id: str
    name: str
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    sports: list[str] = field(default_factory=list)
    url: Optional[str] = None
    live_station_id: Optional[str] = None
    timezone: Optional[str] = None  # IANA name, only used by fallback hour bands

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def supports(self, sport: str) -> bool:
        return sport in self.sports

    def __str__(self) -> str:
        if self.country:
            return f"{self.name}, {self.country}"
        return self.name


def _check_bearing(name: str, value: Optional[int]) -> None:
    if value is not None and not 0 <= value < 360:
        raise ValueError(f"{name} must be in [0, 360), got {value}")


@dataclass
class SiteScoringConfig:
    """
    Per site+sport thresholds.

    Direction windows are [from, to] in degrees and wrap through zero
    when from > to (315 -> 135 covers 315..359 and 0..135).
    """
    site_id: str
    sport: str
    # Wind sports
    min_speed: Optional[float] = None
    min_gust: Optional[float] = None
    direction_from: Optional[int] = None
    direction_to: Optional[int] = None
    # Surfing
    min_swell_height: Optional[float] = None
    max_swell_height: Optional[float] = None
    swell_direction_from: Optional[int] = None
    swell_direction_to: Optional[int] = None
    min_period: Optional[float] = None
    optimal_tide: Optional[str] = None  # "high" | "low" | "both"

    def __post_init__(self):
        _check_bearing("direction_from", self.direction_from)
        _check_bearing("direction_to", self.direction_to)
        _check_bearing("swell_direction_from", self.swell_direction_from)
        _check_bearing("swell_direction_to", self.swell_direction_to)


@dataclass(frozen=True)
class ForecastSlot:
    """One normalized forecast timestep for a site"""
    site_id: str
    timestamp: int           # epoch ms
    speed: float             # knots
    gust: float              # knots
    direction: int           # degrees, meteorological "from"
    wave_height: Optional[float] = None   # meters
    wave_period: Optional[float] = None   # seconds
    wave_direction: Optional[int] = None
    tide_height: Optional[float] = None
    tide_type: Optional[str] = None       # "high" | "low"
    tide_time: Optional[int] = None       # epoch ms
    scrape_timestamp: Optional[int] = None
    id: Optional[str] = None

    @property
    def slot_id(self) -> str:
        if self.id:
            return self.id
        return f"{self.site_id}:{self.timestamp}:{self.scrape_timestamp or 0}"

    @property
    def start(self) -> datetime:
        return ms_to_datetime(self.timestamp)

    @property
    def has_tide(self) -> bool:
        return self.tide_time is not None

    def __str__(self) -> str:
        return (
            f"{self.start:%Y-%m-%d %H:%M}Z "
            f"Wind: {self.speed}kts ({self.gust} gusts) from {self.direction}°"
        )


@dataclass(frozen=True)
class TideEvent:
    """A high or low tide, stored independently of forecast slots"""
    site_id: str
    time: int                # epoch ms
    type: str                # "high" | "low"
    height: float
    # True when type came from the height-sign heuristic rather than the source
    type_is_derived: bool = False


@dataclass
class ScrapeRecord:
    """Bookkeeping for one ingestion batch of a site"""
    site_id: str
    scrape_timestamp: int
    is_successful: bool
    slot_count: int
    error_message: Optional[str] = None
