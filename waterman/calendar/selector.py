# ABOUTME: Picks the best upcoming sessions per day for a sport's calendar feed
# ABOUTME: Resolves the site set from explicit ids, a subscription token or the full directory

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Optional

from waterman.astro.daylight import is_daylight
from waterman.calendar.models import CalendarEvent, EventConditions, FeedMetadata, SportFeed
from waterman.config import Config
from waterman.forecast.models import ForecastSlot, Site, datetime_to_ms, ms_to_datetime
from waterman.scoring.models import ConditionScore
from waterman.scoring.scorer import Scorer
from waterman.store.memory import DataStore

log = logging.getLogger(__name__)


class FeedSelector:
    """
    Selects up to two best sessions per UTC day across a set of sites.

    Only system scores at or above Config.FEED_MIN_SCORE inside the next
    Config.FEED_WINDOW_DAYS count. Each site contributes at most one
    candidate per day (its best); the top candidates by score fill the day.
    """

    def __init__(self, store: DataStore, scorer: Scorer, max_workers: Optional[int] = None):
        self.store = store
        self.scorer = scorer
        self.max_workers = max_workers or Config.INGEST_WORKERS

    def resolve_sites(
        self,
        sport: str,
        site_ids: Optional[list[str]] = None,
        token: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> tuple[list[Site], bool]:
        """
        Work out which sites a feed covers.

        Returns:
            (sites, is_personalized)
        """
        if site_ids:
            sites = []
            for site_id in site_ids:
                site = self.store.get_site(site_id)
                if site is None:
                    log.debug(f"Unknown site id in feed request: {site_id}")
                    continue
                sites.append(site)
            return sites, False

        if token:
            sub = self.store.find_subscription_by_token(token)
            if sub is not None and sub.is_active:
                self.store.record_subscription_access(sub, now=now)
                favorites = set(self.store.get_favorite_site_ids(sub.user_id))
                sites = [s for s in self.store.list_sites(sport) if s.id in favorites]
                return sites, True
            log.debug("Feed token did not resolve to an active subscription")

        return self.store.list_sites(sport), False

    def _site_candidates(
        self,
        site: Site,
        sport: str,
        start_ms: int,
        end_ms: int,
        require_daylight: bool
    ) -> list[tuple[ConditionScore, ForecastSlot]]:
        """Eligible (score, slot) pairs for one site; runs on a worker thread."""
        candidates = []
        for score in self.scorer.get_scores(site, sport, (start_ms, end_ms), user_id=None):
            if score.user_id is not None or score.score < Config.FEED_MIN_SCORE:
                continue
            if not start_ms <= score.timestamp <= end_ms:
                continue

            slot = self._resolve_slot(score)
            if slot is None:
                log.debug(f"Dropping score without slot: {score.site_id} @ {score.timestamp}")
                continue
            if require_daylight and not is_daylight(slot.timestamp, site):
                continue

            candidates.append((score, slot))
        return candidates

    def _resolve_slot(self, score: ConditionScore) -> Optional[ForecastSlot]:
        if score.slot_id:
            slot = self.store.get_slot(score.slot_id)
            if slot is not None:
                return slot
        return self.store.find_slot(score.site_id, score.timestamp)

    def get_sport_feed(
        self,
        sport: str,
        site_ids: Optional[list[str]] = None,
        token: Optional[str] = None,
        now: Optional[datetime] = None,
        require_daylight: bool = True
    ) -> SportFeed:
        """
        Build the event list for a sport feed.

        Args:
            sport: Sport tag
            site_ids: Explicit site ids, used verbatim when given
            token: Subscription token selecting the owner's favorite sites
            now: Reference instant (defaults to current UTC time)
            require_daylight: Drop events whose slot falls outside daylight

        Returns:
            SportFeed with events sorted by timestamp ascending
        """
        now = now or datetime.now(timezone.utc)
        sites, is_personalized = self.resolve_sites(sport, site_ids, token, now)
        metadata = FeedMetadata(sport=sport, site_count=len(sites), is_personalized=is_personalized)

        if not sites:
            return SportFeed(events=[], metadata=metadata)

        start_ms = datetime_to_ms(now)
        end_ms = datetime_to_ms(now + timedelta(days=Config.FEED_WINDOW_DAYS))
        workers = max(1, min(self.max_workers, len(sites)))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            per_site = list(pool.map(
                lambda site: self._site_candidates(site, sport, start_ms, end_ms, require_daylight),
                sites
            ))

        # day -> site id -> best candidate; first encountered wins ties
        by_day: dict[str, dict[str, tuple[ConditionScore, ForecastSlot, Site]]] = {}
        for site, candidates in zip(sites, per_site):
            for score, slot in candidates:
                day = ms_to_datetime(score.timestamp).date().isoformat()
                best = by_day.setdefault(day, {})
                current = best.get(site.id)
                if current is None or score.score > current[0].score:
                    best[site.id] = (score, slot, site)

        events = []
        for day in sorted(by_day):
            ranked = sorted(by_day[day].values(), key=lambda c: c[0].score, reverse=True)
            for score, slot, site in ranked[:Config.FEED_MAX_EVENTS_PER_DAY]:
                events.append(_to_event(score, slot, site, sport))

        events.sort(key=lambda e: e.timestamp)
        log.debug(f"{sport} feed: {len(events)} events from {len(sites)} sites")
        return SportFeed(events=events, metadata=metadata)


def _to_event(score: ConditionScore, slot: ForecastSlot, site: Site, sport: str) -> CalendarEvent:
    return CalendarEvent(
        site_id=site.id,
        site_name=site.name,
        sport=sport,
        timestamp=score.timestamp,
        score=score.score,
        reasoning=score.reasoning,
        conditions=EventConditions.from_slot(slot),
        country=site.country,
        slot_id=slot.slot_id,
    )
