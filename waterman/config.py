# ABOUTME: Application configuration for ingestion, feed selection and calendar output
# ABOUTME: Centralized config read from the environment (and .env) at import time

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration"""

    # Public base URL used for deep links inside calendar events
    APP_URL = os.getenv("APP_URL", "https://waterman.radx.dev")

    # Sports
    SPORTS = ["wingfoil", "kitesurfing", "surfing"]
    WIND_SPORTS = ["wingfoil", "kitesurfing"]
    DEFAULT_SPORT = os.getenv("DEFAULT_SPORT", "wingfoil")

    # Timezone used for the fallback hour bands when a site has no coordinates
    # and carries no timezone of its own
    DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")

    # Forecast source
    # Formatted with site_id, lat and lon when a site has no url of its own
    FORECAST_SOURCE_URL = os.getenv(
        "FORECAST_SOURCE_URL",
        "https://forecast.waterman.radx.dev/v1/point?lat={lat}&lon={lon}"
    )
    SOURCE_TIMEOUT_SECONDS = float(os.getenv("SOURCE_TIMEOUT_SECONDS", "30"))
    INGEST_WORKERS = int(os.getenv("INGEST_WORKERS", "4"))

    # Feed selection
    FEED_MIN_SCORE = 75          # "ideal or better"
    FEED_EPIC_SCORE = 90
    FEED_WINDOW_DAYS = 7
    FEED_MAX_EVENTS_PER_DAY = 2
    EVENT_DURATION_MINUTES = 90

    # HTTP caching of the feed document
    FEED_CACHE_SECONDS = int(os.getenv("FEED_CACHE_SECONDS", "3600"))

    # Site directory, scoring configs and subscriptions
    SITES_FILE = os.getenv("SITES_FILE", "data/sites.json")

    # API Keys
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    SCRAPE_SECRET_TOKEN = os.getenv("SCRAPE_SECRET_TOKEN", "")

    # Debug mode
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"


def normalize_sport(sport) -> str:
    """Return a known sport tag, falling back to the default for anything else."""
    if isinstance(sport, str) and sport.lower() in Config.SPORTS:
        return sport.lower()
    return Config.DEFAULT_SPORT


def is_wind_sport(sport: str) -> bool:
    return sport in Config.WIND_SPORTS


def sport_display_name(sport: str) -> str:
    return {
        "wingfoil": "Wingfoiling",
        "kitesurfing": "Kitesurfing",
        "surfing": "Surfing",
    }.get(sport, "Wingfoiling")
