# ABOUTME: Heuristic 0-100 scoring of forecast slots for wind sports and surfing
# ABOUTME: Used as the default scorer and as the fallback when the LLM scorer fails

import logging
from typing import Optional

from waterman.calendar.directions import degrees_to_cardinal
from waterman.config import is_wind_sport
from waterman.forecast.models import ForecastSlot, Site, SiteScoringConfig
from waterman.scoring.criteria import is_direction_in_range, is_epic_conditions, matches_criteria, matches_tide
from waterman.scoring.models import ConditionScore

log = logging.getLogger(__name__)

# A slot outside the site's criteria can't reach the feed threshold
CRITERIA_MISS_CAP = 40


class ScoreCalculator:
    """Calculates 0-100 condition scores from slot data and site config"""

    def calculate_wind_score(self, slot: ForecastSlot, config: Optional[SiteScoringConfig] = None) -> tuple[int, dict]:
        """
        Score a slot for wingfoiling or kitesurfing.

        Wind speed is the dominant factor; direction and gust spread adjust it.

        Target scores:
        - 12 kts on-direction, steady: ~60
        - 16 kts on-direction, steady: ~80
        - 20-25 kts on-direction, steady: 90+
        - any speed off-direction: drops by 25

        Returns:
            (score, factors)
        """
        wind = slot.speed

        # Wind speed (dominant factor)
        if wind < 10:
            score = 10.0     # Too light
        elif wind < 12:
            score = 25.0     # Light
        elif wind < 15:
            score = 45.0     # Marginal
        elif wind < 18:
            score = 65.0     # Good
        elif wind <= 25:
            score = 78.0     # Optimal
        elif wind <= 30:
            score = 70.0     # Strong
        else:
            score = 50.0     # Getting scary
        wind_quality = score

        # Direction
        direction_quality = 50.0
        if config is not None and config.direction_from is not None and config.direction_to is not None:
            if is_direction_in_range(slot.direction, config.direction_from, config.direction_to):
                score += 10
                direction_quality = 100.0
            else:
                score -= 25
                direction_quality = 0.0

        # Gust spread - clean wind beats strong gusts
        spread = slot.gust - slot.speed
        if spread <= 5:
            score += 8
        elif spread <= 10:
            score += 3
        else:
            score -= 10

        if is_epic_conditions(slot) and direction_quality > 0:
            score += 5

        factors = {
            "windQuality": wind_quality,
            "directionQuality": direction_quality,
            "overallConditions": score,
        }
        return max(0, min(100, int(round(score)))), factors

    def calculate_surf_score(self, slot: ForecastSlot, config: Optional[SiteScoringConfig] = None) -> tuple[int, dict]:
        """
        Score a slot for surfing from swell height, period, direction and tide.

        Returns:
            (score, factors)
        """
        height = slot.wave_height or 0
        period = slot.wave_period or 0

        if height < 0.5:
            score = 10.0     # Flat
        elif height < 1.0:
            score = 40.0     # Small
        elif height < 2.0:
            score = 65.0     # Fun
        elif height <= 3.0:
            score = 72.0     # Solid
        else:
            score = 55.0     # Big
        wave_quality = score

        # Longer periods mean cleaner, more powerful waves
        if period >= 12:
            score += 15
        elif period >= 9:
            score += 8
        elif period < 7:
            score -= 10

        if config is not None:
            if config.max_swell_height and height > config.max_swell_height:
                score -= 20
            if (config.swell_direction_from is not None and config.swell_direction_to is not None):
                if is_direction_in_range(slot.wave_direction or 0, config.swell_direction_from, config.swell_direction_to):
                    score += 5
                else:
                    score -= 20

        tide_quality = 50.0
        if config is not None and config.optimal_tide and slot.tide_type:
            if matches_tide(slot, config):
                score += 5
                tide_quality = 100.0
            else:
                score -= 10
                tide_quality = 0.0

        factors = {
            "waveQuality": wave_quality,
            "tideQuality": tide_quality,
            "overallConditions": score,
        }
        return max(0, min(100, int(round(score)))), factors

    def describe(self, slot: ForecastSlot, sport: str, score: int) -> str:
        """Short human-readable reasoning for a heuristic score."""
        if is_wind_sport(sport):
            cardinal = degrees_to_cardinal(slot.direction)
            text = f"{round(slot.speed)}kt {cardinal} gusting {round(slot.gust)}kt."
            if slot.gust - slot.speed > 10:
                text += " Gusty, expect an uneven session."
        else:
            height = f"{slot.wave_height:.1f}m" if slot.wave_height else "flat"
            period = f" at {round(slot.wave_period)}s" if slot.wave_period else ""
            text = f"{height}{period} swell."
            if slot.tide_type:
                text += f" {slot.tide_type.capitalize()} tide nearby."

        if score >= 90:
            return text + " Rare day, don't miss it."
        if score >= 75:
            return text + " Well worth a session."
        if score >= 60:
            return text + " Decent, enjoyable session."
        return text + " Best to skip."

    def score_slot(
        self,
        slot: ForecastSlot,
        site: Optional[Site],
        sport: str,
        config: Optional[SiteScoringConfig] = None
    ) -> ConditionScore:
        """
        Produce a system ConditionScore for one slot; the site is not needed by the heuristic.

        With a site config, slots that miss its criteria (minimums, direction
        windows, period, tide) are capped below the feed threshold.
        """
        if is_wind_sport(sport):
            score, factors = self.calculate_wind_score(slot, config)
        else:
            score, factors = self.calculate_surf_score(slot, config)

        if config is not None:
            matches = matches_criteria(slot, config, sport)
            factors["matchesCriteria"] = matches
            if not matches:
                score = min(score, CRITERIA_MISS_CAP)

        if score >= 90:
            log.info(f"Epic {sport} conditions at {slot.site_id} {slot.start:%Y-%m-%d %H:%M}Z: {score}/100")

        return ConditionScore(
            site_id=slot.site_id,
            sport=sport,
            timestamp=slot.timestamp,
            score=score,
            reasoning=self.describe(slot, sport, score),
            factors=factors,
            user_id=None,
            slot_id=slot.slot_id,
        )
