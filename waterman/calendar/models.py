# ABOUTME: Data models for calendar subscriptions, feed events and feed results
# ABOUTME: CalendarEvent is derived per request and never persisted

from dataclasses import dataclass, field
from typing import Optional

from waterman.forecast.models import ForecastSlot


@dataclass
class Subscription:
    """A user's calendar feed subscription for one sport"""
    user_id: str
    sport: str
    token: str
    is_active: bool = True
    access_count: int = 0
    last_accessed_at: Optional[int] = None  # epoch ms
    created_at: Optional[int] = None        # epoch ms


@dataclass(frozen=True)
class EventConditions:
    """Condition snapshot needed to render an event summary and description"""
    speed: float
    gust: float
    direction: int
    wave_height: Optional[float] = None
    wave_period: Optional[float] = None
    wave_direction: Optional[int] = None
    tide_height: Optional[float] = None
    tide_type: Optional[str] = None
    tide_time: Optional[int] = None

    @classmethod
    def from_slot(cls, slot: ForecastSlot) -> "EventConditions":
        return cls(
            speed=slot.speed,
            gust=slot.gust,
            direction=slot.direction,
            wave_height=slot.wave_height,
            wave_period=slot.wave_period,
            wave_direction=slot.wave_direction,
            tide_height=slot.tide_height,
            tide_type=slot.tide_type,
            tide_time=slot.tide_time,
        )


@dataclass(frozen=True)
class CalendarEvent:
    """One best-session moment as a calendar client sees it"""
    site_id: str
    site_name: str
    sport: str
    timestamp: int       # epoch ms
    score: int
    reasoning: str
    conditions: EventConditions
    country: Optional[str] = None
    slot_id: Optional[str] = None


@dataclass
class FeedMetadata:
    sport: str
    site_count: int
    is_personalized: bool = False


@dataclass
class SportFeed:
    """Selected events plus the metadata the boundary needs to title the calendar"""
    events: list[CalendarEvent] = field(default_factory=list)
    metadata: Optional[FeedMetadata] = None
