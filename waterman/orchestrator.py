# ABOUTME: Application orchestrator wiring ingestion, scoring, feed selection and ICS output
# ABOUTME: Built once at process start and shared by the HTTP routes and operator scripts

import logging
from datetime import datetime, timezone
from typing import Optional

from waterman.ai.llm_client import LLMScorer
from waterman.calendar.ics import generate_ics
from waterman.calendar.models import SportFeed
from waterman.calendar.selector import FeedSelector
from waterman.config import Config, normalize_sport, sport_display_name
from waterman.debug import debug_log
from waterman.forecast.ingest import IngestionResult, ingest_sites
from waterman.forecast.models import Site, datetime_to_ms
from waterman.forecast.source import ForecastSourceClient
from waterman.scoring.calculator import ScoreCalculator
from waterman.scoring.models import ConditionScore
from waterman.scoring.scorer import SlotScorer, StoredScoreScorer
from waterman.store.memory import DataStore

log = logging.getLogger(__name__)

ICS_CONTENT_TYPE = "text/calendar; charset=utf-8"
FEED_ERROR_MESSAGE = "Error generating calendar feed"


class WatermanOrchestrator:
    """Orchestrates ingestion, scoring and calendar feed generation"""

    def __init__(
        self,
        store: DataStore,
        source_client: ForecastSourceClient,
        slot_scorer: SlotScorer,
        selector: Optional[FeedSelector] = None
    ):
        self.store = store
        self.source_client = source_client
        self.slot_scorer = slot_scorer
        self.selector = selector or FeedSelector(store, StoredScoreScorer(store))

    @classmethod
    def from_config(cls) -> "WatermanOrchestrator":
        """Build the process-wide orchestrator from Config."""
        store = DataStore.from_json(Config.SITES_FILE)
        if Config.GEMINI_API_KEY:
            slot_scorer = LLMScorer(api_key=Config.GEMINI_API_KEY)
        else:
            log.warning("GEMINI_API_KEY not set, scoring with the heuristic calculator")
            slot_scorer = ScoreCalculator()
        return cls(store, ForecastSourceClient(), slot_scorer)

    # ==================== Ingestion & Scoring ====================

    def run_ingestion(
        self,
        site_ids: Optional[list[str]] = None,
        now: Optional[datetime] = None
    ) -> list[IngestionResult]:
        """
        Ingest all sites (or the given ones), then score every site that stored a batch.

        Returns:
            One IngestionResult per site, in directory order
        """
        now = now or datetime.now(timezone.utc)
        sites = self.store.list_sites()
        if site_ids:
            sites = [s for s in sites if s.id in site_ids]

        results = ingest_sites(sites, self.source_client, self.store, now=now)

        for site, result in zip(sites, results):
            if result.success:
                self.score_site_slots(site, now=now)

        return results

    def score_site_slots(self, site: Site, now: Optional[datetime] = None) -> list[ConditionScore]:
        """
        Score a site's upcoming slots for each sport it supports and store them.

        Returns:
            The system scores written
        """
        now = now or datetime.now(timezone.utc)
        slots = self.store.get_forecast_slots(site.id, start_ms=datetime_to_ms(now))

        scores = []
        for sport in site.sports:
            config = self.store.get_scoring_config(site.id, sport)
            for slot in slots:
                scores.append(self.slot_scorer.score_slot(slot, site, sport, config))

        self.store.save_scores(scores)
        print(f"[SCORE] {site.name}: {len(scores)} scores for {len(site.sports)} sports", flush=True)
        return scores

    def score_all(self, now: Optional[datetime] = None) -> int:
        """Score every site's current batch. Returns the number of scores written."""
        total = 0
        for site in self.store.list_sites():
            total += len(self.score_site_slots(site, now=now))
        return total

    # ==================== Calendar Feed ====================

    def build_feed(
        self,
        sport: str,
        token: Optional[str] = None,
        site_ids: Optional[list[str]] = None,
        now: Optional[datetime] = None
    ) -> tuple[SportFeed, str]:
        """
        Select events and serialize them for a sport.

        Returns:
            (feed, ics_text)
        """
        sport = normalize_sport(sport)
        now = now or datetime.now(timezone.utc)
        feed = self.selector.get_sport_feed(sport, site_ids=site_ids, token=token, now=now)

        sport_name = sport_display_name(sport)
        if feed.metadata.is_personalized:
            calendar_name = f"Waterman {sport_name} - Your Spots"
            calendar_description = f"Best {sport_name.lower()} sessions at your favorite spots"
        else:
            calendar_name = f"Waterman {sport_name}"
            calendar_description = f"Best {sport_name.lower()} sessions"

        ics = generate_ics(
            feed.events,
            calendar_name,
            calendar_description,
            now=datetime_to_ms(now),
            app_url=Config.APP_URL,
        )
        debug_log(f"Built {sport} feed with {len(feed.events)} events", "ORCHESTRATOR")
        return feed, ics

    def feed_response(
        self,
        sport: str,
        token: Optional[str] = None,
        site_ids: Optional[list[str]] = None,
        now: Optional[datetime] = None
    ) -> tuple[str, int, dict]:
        """
        HTTP-ready feed document.

        Any failure becomes a plain 500 response so calendar clients never
        receive a partial document.

        Returns:
            (body, status_code, headers)
        """
        sport = normalize_sport(sport)
        try:
            _, ics = self.build_feed(sport, token=token, site_ids=site_ids, now=now)
        except Exception as e:
            log.exception(f"Error generating calendar feed for {sport}: {e}")
            return FEED_ERROR_MESSAGE, 500, {"Content-Type": "text/plain; charset=utf-8"}

        headers = {
            "Content-Type": ICS_CONTENT_TYPE,
            "Content-Disposition": f"inline; filename=waterman-{sport}.ics",
            "Cache-Control": f"public, max-age={Config.FEED_CACHE_SECONDS}",
        }
        return ics, 200, headers
