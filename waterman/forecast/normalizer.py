# ABOUTME: Converts raw upstream forecast payloads into canonical ForecastSlot records
# ABOUTME: Handles m/s to knots conversion, past/night exclusion and nearest-tide correlation

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from waterman.config import Config
from waterman.forecast.models import ForecastSlot, Site, TideEvent, datetime_to_ms, ms_to_datetime

log = logging.getLogger(__name__)

MS_TO_KNOTS = 1.94384

# Coarse ingestion band, local hours, both ends inclusive
INGEST_START_HOUR = 9
INGEST_END_HOUR = 18

TIDE_MATCH_WINDOW_MS = 3 * 60 * 60 * 1000

# Heuristic: when the source omits the tide type, a positive height is read
# as high water and anything else as low water. Depends on the tide datum;
# consumers see it through TideEvent.type_is_derived.
TIDE_TYPE_HEIGHT_THRESHOLD = 0.0

EXCERPT_LENGTH = 200

RawPayload = Union[str, bytes, dict]


class SourceFormatError(Exception):
    """Upstream payload could not be parsed into a forecast"""

    def __init__(self, message: str, raw_length: int = 0, excerpt: str = ""):
        super().__init__(message)
        self.raw_length = raw_length
        self.excerpt = excerpt

    def __str__(self) -> str:
        return f"{self.args[0]} (response length {self.raw_length}: {self.excerpt!r})"


@dataclass
class NormalizedForecast:
    """Slots and tide events produced from one payload"""
    slots: list[ForecastSlot] = field(default_factory=list)
    tides: list[TideEvent] = field(default_factory=list)


def knots_from_ms(value: float) -> float:
    """Convert m/s to knots, rounded half-up to one decimal."""
    return math.floor(value * MS_TO_KNOTS * 10 + 0.5) / 10


def derive_tide_type(height: float) -> str:
    return "high" if height > TIDE_TYPE_HEIGHT_THRESHOLD else "low"


def _raw_text(payload: RawPayload) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, default=str)
    except (TypeError, ValueError):
        return repr(payload)


def _format_error(message: str, payload: RawPayload) -> SourceFormatError:
    text = _raw_text(payload)
    return SourceFormatError(message, raw_length=len(text), excerpt=text[:EXCERPT_LENGTH])


def _decode(payload: RawPayload) -> dict:
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise _format_error(f"Payload is not valid JSON: {e}", payload) from e
    else:
        data = payload

    if not isinstance(data, dict):
        raise _format_error("Payload is not a JSON object", payload)
    return data


def _series(data: dict, group: Optional[str], key: str, payload: RawPayload, required: bool = False) -> list:
    container = data.get(group) if group else data
    if container is None:
        container = {}
    if not isinstance(container, dict):
        raise _format_error(f"'{group}' must be an object", payload)

    values = container.get(key)
    if values is None:
        if required:
            name = f"{group}.{key}" if group else key
            raise _format_error(f"Missing required series '{name}'", payload)
        return []
    if not isinstance(values, list):
        name = f"{group}.{key}" if group else key
        raise _format_error(f"Series '{name}' must be a list", payload)
    return values


def _number(values: list, index: int) -> Optional[float]:
    """Read a numeric cell; missing, null or junk cells become None."""
    if index >= len(values):
        return None
    value = values[index]
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _bearing(values: list, index: int) -> Optional[int]:
    number = _number(values, index)
    if number is None:
        return None
    return int(round(number)) % 360


def _timezone(data: dict, site: Site, tz: Optional[str], payload: RawPayload) -> ZoneInfo:
    name = tz or data.get("timezone") or site.timezone or Config.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise _format_error(f"Unknown timezone '{name}'", payload) from e


def _parse_tides(site: Site, data: dict, payload: RawPayload) -> list[TideEvent]:
    raw = data.get("tides")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise _format_error("'tides' must be a list", payload)

    tides = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise _format_error("Tide entries must be objects", payload)
        time_ms = _number([entry.get("time")], 0)
        height = _number([entry.get("height")], 0)
        if time_ms is None or height is None:
            continue

        tide_type = entry.get("type")
        derived = tide_type not in ("high", "low")
        if derived:
            tide_type = derive_tide_type(height)

        tides.append(TideEvent(
            site_id=site.id,
            time=int(time_ms),
            type=tide_type,
            height=height,
            type_is_derived=derived,
        ))

    tides.sort(key=lambda t: t.time)
    return tides


def find_nearest_tide(timestamp: int, tides: list[TideEvent]) -> Optional[TideEvent]:
    """
    Find the tide closest in time to a timestamp.

    Returns None when the closest tide is more than 3 hours away. Ties go
    to the earlier tide.
    """
    best = None
    best_diff = None
    for tide in tides:
        diff = abs(tide.time - timestamp)
        if best_diff is None or diff < best_diff:
            best, best_diff = tide, diff

    if best is None or best_diff > TIDE_MATCH_WINDOW_MS:
        return None
    return best


def normalize_payload(
    site: Site,
    payload: RawPayload,
    now: Optional[datetime] = None,
    tz: Optional[str] = None,
    scrape_timestamp: Optional[int] = None,
) -> NormalizedForecast:
    """
    Normalize one upstream payload for a site.

    Args:
        site: Site the payload belongs to
        payload: JSON text, bytes or an already decoded dict
        now: Reference instant; timesteps strictly before it are dropped
        tz: Timezone for the coarse local-hour band (payload, then site, then default)
        scrape_timestamp: Ingestion batch stamped on every slot

    Returns:
        NormalizedForecast with slots ordered by timestamp

    Raises:
        SourceFormatError: when the payload structure is unusable
    """
    now = now or datetime.now(timezone.utc)
    now_ms = datetime_to_ms(now)

    data = _decode(payload)
    timestamps = _series(data, None, "ts", payload, required=True)
    speeds = _series(data, "wind", "speed", payload, required=True)
    gusts = _series(data, "wind", "gust", payload)
    directions = _series(data, "wind", "direction", payload)
    wave_heights = _series(data, "waves", "height", payload)
    wave_periods = _series(data, "waves", "period", payload)
    wave_directions = _series(data, "waves", "direction", payload)

    if len(speeds) < len(timestamps):
        raise _format_error(
            f"Wind series shorter than timestamps ({len(speeds)} < {len(timestamps)})",
            payload,
        )

    local_tz = _timezone(data, site, tz, payload)
    tides = _parse_tides(site, data, payload)

    slots = []
    for i in range(len(timestamps)):
        ts = _number(timestamps, i)
        if ts is None:
            raise _format_error(f"Timestamp at index {i} is not a number", payload)
        ts = int(ts)

        if ts < now_ms:
            continue

        hour = ms_to_datetime(ts).astimezone(local_tz).hour
        if not INGEST_START_HOUR <= hour <= INGEST_END_HOUR:
            continue

        direction = _bearing(directions, i)
        if direction is None:
            continue

        tide = find_nearest_tide(ts, tides)

        slots.append(ForecastSlot(
            site_id=site.id,
            timestamp=ts,
            speed=knots_from_ms(_number(speeds, i) or 0.0),
            gust=knots_from_ms(_number(gusts, i) or 0.0),
            direction=direction,
            wave_height=_number(wave_heights, i),
            wave_period=_number(wave_periods, i),
            wave_direction=_bearing(wave_directions, i),
            tide_height=tide.height if tide else None,
            tide_type=tide.type if tide else None,
            tide_time=tide.time if tide else None,
            scrape_timestamp=scrape_timestamp,
        ))

    slots.sort(key=lambda s: s.timestamp)
    log.info(f"Normalized {len(slots)} of {len(timestamps)} timesteps for {site.name}")
    return NormalizedForecast(slots=slots, tides=tides)
