# ABOUTME: RFC 5545 iCalendar serialization of selected best-session events
# ABOUTME: Handles text escaping, 75-char line folding, UTC dates and deep links

import math
import time
from typing import Optional
from urllib.parse import quote

from waterman.calendar.directions import degrees_to_cardinal, display_wind_cardinal
from waterman.calendar.models import CalendarEvent
from waterman.config import Config, is_wind_sport, sport_display_name
from waterman.forecast.models import ms_to_datetime

MAX_LINE_LENGTH = 75
UID_DOMAIN = "waterman.app"

SPORT_PATHS = {
    "wingfoil": "wing",
    "kitesurfing": "kite",
    "surfing": "surf",
}


# ==================== Text Primitives ====================

def escape_text(text: str) -> str:
    """
    Escape a TEXT property value.

    Backslash goes first so the escapes added for the other characters
    are not themselves doubled.
    """
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def unescape_text(text: str) -> str:
    """Inverse of escape_text."""
    result = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            if nxt in "nN":
                result.append("\n")
            else:
                result.append(nxt)
            i += 2
            continue
        result.append(char)
        i += 1
    return "".join(result)


def fold_line(field: str, value: str) -> list[str]:
    """
    Split FIELD:value into physical lines of at most 75 characters.

    The first line carries the prefix; every continuation line starts
    with a single space followed by up to 74 characters of value.
    """
    prefix = f"{field}:"
    available = MAX_LINE_LENGTH - len(prefix)

    if len(value) <= available:
        return [f"{prefix}{value}"]

    lines = [f"{prefix}{value[:available]}"]
    remaining = value[available:]
    while remaining:
        lines.append(" " + remaining[:MAX_LINE_LENGTH - 1])
        remaining = remaining[MAX_LINE_LENGTH - 1:]
    return lines


def unfold_lines(text: str) -> list[str]:
    """Join folded physical lines back into logical content lines."""
    logical = []
    for line in text.replace("\r\n", "\n").split("\n"):
        if line.startswith(" ") and logical:
            logical[-1] += line[1:]
        elif line:
            logical.append(line)
    return logical


def format_ics_date(timestamp_ms: int) -> str:
    """Epoch ms -> YYYYMMDDTHHMMSSZ (UTC)."""
    return ms_to_datetime(timestamp_ms).strftime("%Y%m%dT%H%M%SZ")


# ==================== Event Formatting ====================

def format_day_param(timestamp_ms: int) -> str:
    """Short day label used by the app's best-session page, e.g. "Mon, Jan 1"."""
    dt = ms_to_datetime(timestamp_ms)
    return f"{dt:%a, %b} {dt.day}"


def event_url(event: CalendarEvent, app_url: Optional[str] = None) -> str:
    base = (app_url or Config.APP_URL).rstrip("/")
    path = SPORT_PATHS.get(event.sport, "wing")
    day = quote(format_day_param(event.timestamp), safe="")
    slot = event.slot_id or event.timestamp
    return f"{base}/{path}/best?day={day}&slot={slot}"


def round_half_up(value: float) -> int:
    """Whole-number display rounding; 12.5 -> 13, unlike round()."""
    return int(math.floor(value + 0.5))


def format_conditions(event: CalendarEvent) -> str:
    conditions = event.conditions
    if is_wind_sport(event.sport):
        # Stored "from" bearing, shown as where the wind blows to
        return f"{round_half_up(conditions.speed)}kt {display_wind_cardinal(conditions.direction)}"

    # Zero height, period or wave bearing count as missing
    parts = []
    if conditions.wave_height:
        parts.append(f"{conditions.wave_height:.1f}m")
    if conditions.wave_period:
        parts.append(f"{round_half_up(conditions.wave_period)}s")
    if conditions.wave_direction:
        parts.append(degrees_to_cardinal(conditions.wave_direction))
    else:
        parts.append(display_wind_cardinal(conditions.direction))
    return " ".join(parts)


def format_summary(event: CalendarEvent) -> str:
    """
    Event title, e.g.:
    - "Costa da Caparica - 21kt ESE [epic]"
    - "Carcavelos - 1.2m 12s SW [ideal]"
    """
    quality = "epic" if event.score >= Config.FEED_EPIC_SCORE else "ideal"
    return f"{event.site_name} - {format_conditions(event)} [{quality}]"


def format_description(event: CalendarEvent, app_url: Optional[str] = None) -> str:
    """Multi-line detail block; newlines are escaped later."""
    conditions = event.conditions
    lines = [
        f"Score: {event.score}/100",
        "",
        "Conditions:",
        f"• Wind: {round_half_up(conditions.speed)} knots",
        f"• Gusts: {round_half_up(conditions.gust)} knots",
        f"• Direction: {conditions.direction}° ({degrees_to_cardinal(conditions.direction)})",
    ]
    if conditions.wave_height:
        lines.append(f"• Waves: {conditions.wave_height:.1f}m")
    if conditions.wave_period:
        lines.append(f"• Period: {round_half_up(conditions.wave_period)}s")
    if conditions.wave_direction:
        lines.append(
            f"• Wave Direction: {conditions.wave_direction}° ({degrees_to_cardinal(conditions.wave_direction)})"
        )
    if conditions.tide_type:
        tide = f"• Tide: {conditions.tide_type}"
        if conditions.tide_height is not None:
            tide += f" {conditions.tide_height:.1f}m"
        if conditions.tide_time is not None:
            tide += f" at {ms_to_datetime(conditions.tide_time):%H:%M} UTC"
        lines.append(tide)

    lines.append("")
    lines.append(event.reasoning)
    lines.append("")
    lines.append(f"View forecast: {event_url(event, app_url)}")
    return "\n".join(lines)


def format_location(event: CalendarEvent) -> str:
    if event.country:
        return f"{event.site_name}, {event.country}"
    return event.site_name


# ==================== Document ====================

def generate_event(event: CalendarEvent, dtstamp: str, app_url: Optional[str] = None) -> list[str]:
    """Content lines for one VEVENT block."""
    end_ms = event.timestamp + Config.EVENT_DURATION_MINUTES * 60 * 1000

    lines = [
        "BEGIN:VEVENT",
        f"UID:{event.site_id}-{event.timestamp}-{event.sport}@{UID_DOMAIN}",
        f"DTSTAMP:{dtstamp}",
        f"DTSTART:{format_ics_date(event.timestamp)}",
        f"DTEND:{format_ics_date(end_ms)}",
    ]
    lines.extend(fold_line("SUMMARY", escape_text(format_summary(event))))
    lines.extend(fold_line("DESCRIPTION", escape_text(format_description(event, app_url))))
    lines.extend(fold_line("LOCATION", escape_text(format_location(event))))
    lines.extend(fold_line("URL", event_url(event, app_url)))
    lines.append("STATUS:CONFIRMED")
    lines.append("TRANSP:TRANSPARENT")
    lines.append(f"CATEGORIES:{sport_display_name(event.sport)}")
    lines.append("END:VEVENT")
    return lines


def generate_ics(
    events: list[CalendarEvent],
    calendar_name: str,
    calendar_description: str,
    now: Optional[int] = None,
    app_url: Optional[str] = None
) -> str:
    """
    Serialize events into an iCalendar document.

    Args:
        events: Events in the order they should appear
        calendar_name: X-WR-CALNAME display name
        calendar_description: X-WR-CALDESC text
        now: Serialization time in epoch ms, used for DTSTAMP (default: current time)
        app_url: Base URL for deep links (default: Config.APP_URL)

    Returns:
        CRLF-joined document text without a trailing line break
    """
    now_ms = now if now is not None else int(time.time() * 1000)
    dtstamp = format_ics_date(now_ms)

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Waterman//Forecast Calendar//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
    ]
    lines.extend(fold_line("X-WR-CALNAME", escape_text(calendar_name)))
    lines.extend(fold_line("X-WR-CALDESC", escape_text(calendar_description)))
    lines.append("X-WR-TIMEZONE:UTC")
    lines.append("REFRESH-INTERVAL;VALUE=DURATION:PT1H")
    lines.append("X-PUBLISHED-TTL:PT1H")

    for event in events:
        lines.extend(generate_event(event, dtstamp, app_url))

    lines.append("END:VCALENDAR")
    return "\r\n".join(lines)
