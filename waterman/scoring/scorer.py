# ABOUTME: Scorer interfaces for reading stored scores and scoring individual slots
# ABOUTME: StoredScoreScorer serves scores previously written to the data store

from typing import Optional, Protocol

from waterman.forecast.models import ForecastSlot, Site, SiteScoringConfig
from waterman.scoring.models import ConditionScore
from waterman.store.memory import DataStore

TimeRange = tuple[int, int]  # epoch ms, both ends inclusive


class Scorer(Protocol):
    """Source of ConditionScores for a site, sport, time range and user (None = system)"""

    def get_scores(
        self,
        site: Site,
        sport: str,
        time_range: TimeRange,
        user_id: Optional[str] = None
    ) -> list[ConditionScore]:
        ...


class SlotScorer(Protocol):
    """Produces a system score for one forecast slot (heuristic or LLM)"""

    def score_slot(
        self,
        slot: ForecastSlot,
        site: Site,
        sport: str,
        config: Optional[SiteScoringConfig] = None
    ) -> ConditionScore:
        ...


class StoredScoreScorer:
    """Reads scores that an earlier scoring run saved to the store"""

    def __init__(self, store: DataStore):
        self.store = store

    def get_scores(
        self,
        site: Site,
        sport: str,
        time_range: TimeRange,
        user_id: Optional[str] = None
    ) -> list[ConditionScore]:
        start_ms, end_ms = time_range
        return self.store.get_scores(site.id, sport, start_ms, end_ms, user_id=user_id)
