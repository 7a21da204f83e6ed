# ABOUTME: In-memory data-access context for sites, forecasts, scores and subscriptions
# ABOUTME: Built once per process and passed explicitly to ingestion, scoring and feed selection

import json
import logging
import secrets
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from waterman.calendar.models import Subscription
from waterman.forecast.models import (
    ForecastSlot,
    ScrapeRecord,
    Site,
    SiteScoringConfig,
    TideEvent,
    datetime_to_ms,
)
from waterman.scoring.models import ConditionScore

log = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits


def generate_token() -> str:
    """Unguessable subscription token from the OS CSPRNG."""
    return secrets.token_urlsafe(TOKEN_BYTES)


class DataStore:
    """
    Append-only store for forecast data plus read access to the site
    directory, scores and subscriptions.

    Forecast slots are kept per site and scrape batch; reads return the
    most recent successful batch.
    """

    def __init__(self):
        self._lock = threading.Lock()

        self._sites: dict[str, Site] = {}
        self._configs: dict[tuple[str, str], SiteScoringConfig] = {}

        self._slots: dict[str, list[ForecastSlot]] = {}
        self._slots_by_id: dict[str, ForecastSlot] = {}
        self._tides: dict[str, list[TideEvent]] = {}
        self._scrapes: dict[str, list[ScrapeRecord]] = {}

        self._scores: list[ConditionScore] = []

        self._subscriptions: dict[str, Subscription] = {}  # token -> subscription
        self._favorites: dict[str, list[str]] = {}

    # ==================== Site Directory ====================

    def add_site(self, site: Site) -> None:
        self._sites[site.id] = site

    def get_site(self, site_id: str) -> Optional[Site]:
        return self._sites.get(site_id)

    def list_sites(self, sport: Optional[str] = None) -> list[Site]:
        """List sites, optionally only those supporting a sport."""
        sites = list(self._sites.values())
        if sport is None:
            return sites
        return [s for s in sites if s.supports(sport)]

    def set_scoring_config(self, config: SiteScoringConfig) -> None:
        self._configs[(config.site_id, config.sport)] = config

    def get_scoring_config(self, site_id: str, sport: str) -> Optional[SiteScoringConfig]:
        return self._configs.get((site_id, sport))

    # ==================== Forecast Data ====================

    def save_forecast(
        self,
        site_id: str,
        slots: list[ForecastSlot],
        tides: list[TideEvent],
        scrape_timestamp: int,
        is_successful: bool = True,
        error_message: Optional[str] = None
    ) -> ScrapeRecord:
        """
        Append one scrape batch for a site.

        Args:
            site_id: Site the batch belongs to
            slots: Normalized slots, restamped with scrape_timestamp when they differ
            tides: Tide events parsed from the same payload
            scrape_timestamp: Batch key (epoch ms)
            is_successful: Whether the batch passed validation
            error_message: Validation failure reason

        Returns:
            The ScrapeRecord written for this batch
        """
        record = ScrapeRecord(
            site_id=site_id,
            scrape_timestamp=scrape_timestamp,
            is_successful=is_successful,
            slot_count=len(slots),
            error_message=error_message,
        )
        with self._lock:
            self._scrapes.setdefault(site_id, []).append(record)
            site_slots = self._slots.setdefault(site_id, [])
            for slot in slots:
                if slot.scrape_timestamp != scrape_timestamp:
                    slot = replace(slot, scrape_timestamp=scrape_timestamp)
                site_slots.append(slot)
                self._slots_by_id[slot.slot_id] = slot
            self._tides.setdefault(site_id, []).extend(tides)
        return record

    def get_scrapes(self, site_id: str) -> list[ScrapeRecord]:
        return list(self._scrapes.get(site_id, []))

    def latest_scrape_timestamp(self, site_id: str) -> Optional[int]:
        """Most recent successful batch, else the most recent batch of any kind."""
        scrapes = self._scrapes.get(site_id, [])
        successful = [s.scrape_timestamp for s in scrapes if s.is_successful]
        if successful:
            return max(successful)
        if scrapes:
            return max(s.scrape_timestamp for s in scrapes)
        return None

    def get_forecast_slots(self, site_id: str, start_ms: Optional[int] = None, end_ms: Optional[int] = None) -> list[ForecastSlot]:
        """Slots of the site's current batch, optionally limited to a time range."""
        batch = self.latest_scrape_timestamp(site_id)
        slots = [s for s in self._slots.get(site_id, []) if s.scrape_timestamp == batch]
        if start_ms is not None:
            slots = [s for s in slots if s.timestamp >= start_ms]
        if end_ms is not None:
            slots = [s for s in slots if s.timestamp <= end_ms]
        return sorted(slots, key=lambda s: s.timestamp)

    def get_slot(self, slot_id: str) -> Optional[ForecastSlot]:
        return self._slots_by_id.get(slot_id)

    def find_slot(self, site_id: str, timestamp: int) -> Optional[ForecastSlot]:
        """Slot at an exact timestamp in the site's current batch."""
        for slot in self.get_forecast_slots(site_id):
            if slot.timestamp == timestamp:
                return slot
        return None

    def get_tides(self, site_id: str) -> list[TideEvent]:
        return sorted(self._tides.get(site_id, []), key=lambda t: t.time)

    # ==================== Scores ====================

    def save_scores(self, scores: list[ConditionScore]) -> None:
        """Upsert scores keyed by (site, sport, timestamp, user)."""
        with self._lock:
            keys = {(s.site_id, s.sport, s.timestamp, s.user_id) for s in scores}
            self._scores = [
                s for s in self._scores
                if (s.site_id, s.sport, s.timestamp, s.user_id) not in keys
            ]
            self._scores.extend(scores)

    def get_scores(
        self,
        site_id: str,
        sport: str,
        start_ms: int,
        end_ms: int,
        user_id: Optional[str] = None
    ) -> list[ConditionScore]:
        """Scores for a site+sport in [start_ms, end_ms] for one user (None = system)."""
        return [
            s for s in self._scores
            if s.site_id == site_id
            and s.sport == sport
            and s.user_id == user_id
            and start_ms <= s.timestamp <= end_ms
        ]

    # ==================== Subscriptions ====================

    def set_favorite_sites(self, user_id: str, site_ids: list[str]) -> None:
        self._favorites[user_id] = list(site_ids)

    def get_favorite_site_ids(self, user_id: str) -> list[str]:
        return list(self._favorites.get(user_id, []))

    def get_subscription(self, user_id: str, sport: str) -> Optional[Subscription]:
        for sub in self._subscriptions.values():
            if sub.user_id == user_id and sub.sport == sport:
                return sub
        return None

    def issue_subscription(self, user_id: str, sport: str, now: Optional[datetime] = None) -> Subscription:
        """Return the user's subscription for a sport, creating it with a fresh token."""
        existing = self.get_subscription(user_id, sport)
        if existing is not None:
            return existing

        now = now or datetime.now(timezone.utc)
        sub = Subscription(
            user_id=user_id,
            sport=sport,
            token=generate_token(),
            created_at=datetime_to_ms(now),
        )
        with self._lock:
            self._subscriptions[sub.token] = sub
        return sub

    def rotate_token(self, user_id: str, sport: str) -> Optional[Subscription]:
        """Replace a subscription's token; the old one stops resolving."""
        sub = self.get_subscription(user_id, sport)
        if sub is None:
            return None
        with self._lock:
            del self._subscriptions[sub.token]
            sub.token = generate_token()
            self._subscriptions[sub.token] = sub
        return sub

    def add_subscription(self, sub: Subscription) -> None:
        self._subscriptions[sub.token] = sub

    def find_subscription_by_token(self, token: str) -> Optional[Subscription]:
        if not token:
            return None
        return self._subscriptions.get(token)

    def record_subscription_access(self, sub: Subscription, now: Optional[datetime] = None) -> None:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            sub.access_count += 1
            sub.last_accessed_at = datetime_to_ms(now)

    # ==================== Loading ====================

    def load(self, data: dict) -> None:
        """
        Load the site directory from a decoded JSON document.

        Expected keys: "sites", "configs", "favorites" ({user: [site ids]})
        and "subscriptions". All are optional.
        """
        for entry in data.get("sites", []):
            self.add_site(Site(**entry))
        for entry in data.get("configs", []):
            self.set_scoring_config(SiteScoringConfig(**entry))
        for user_id, site_ids in data.get("favorites", {}).items():
            self.set_favorite_sites(user_id, site_ids)
        for entry in data.get("subscriptions", []):
            self.add_subscription(Subscription(**entry))

        log.info(f"Loaded {len(self._sites)} sites, {len(self._configs)} scoring configs")

    @classmethod
    def from_json(cls, path) -> "DataStore":
        """Build a store from a JSON file; a missing file gives an empty store."""
        store = cls()
        path = Path(path)
        if not path.exists():
            log.warning(f"Sites file not found: {path}")
            return store
        with open(path, "r") as f:
            store.load(json.load(f))
        return store
