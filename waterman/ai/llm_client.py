# ABOUTME: LLM scorer producing 0-100 condition scores with reasoning via Google Gemini
# ABOUTME: Falls back to the heuristic calculator whenever the API call or parsing fails

import google.generativeai as genai
import json
import re
from datetime import datetime
from typing import Optional

from waterman.astro.daylight import is_after_sunset, is_daylight
from waterman.calendar.directions import degrees_to_cardinal, display_wind_cardinal
from waterman.config import is_wind_sport
from waterman.debug import debug_log
from waterman.forecast.models import ForecastSlot, Site, SiteScoringConfig
from waterman.scoring.calculator import ScoreCalculator
from waterman.scoring.models import ConditionScore

MAX_REASONING_LENGTH = 200

SYSTEM_SPORT_PROMPTS = {
    "wingfoil": """You are an expert wingfoiler evaluating conditions. Consider:
- Wind speed: 15-25 knots is ideal, but steady wind beats strong gusts
- Gust factor: Clean, consistent wind is much better than gusty conditions
- Wind direction: Cross-onshore or side-shore is ideal for most spots
- Overall: Safety, ride quality, and session enjoyment""",

    "kitesurfing": """You are an expert kitesurfer evaluating conditions. Consider:
- Wind speed: 14-28 knots is rideable, steady wind matters more than raw strength
- Gust factor: Big gust spreads make kite control hard and unsafe
- Wind direction: Side-shore or side-onshore; offshore is dangerous
- Overall: Safety, ride quality, and session enjoyment""",

    "surfing": """You are an experienced surfer evaluating conditions. Consider:
- Wave height: Right size for the spot - not too small, not too big
- Wave period: Longer periods (12+ sec) mean cleaner, more powerful waves
- Wave direction: Offshore or light onshore keeps things clean
- Tide: Depends on the spot - some work on low, others need high
- Overall: Wave quality, consistency, and session enjoyment""",
}

SCORE_SCALE = """Score 0-100:
- 90-100: Excellent conditions, rare day
- 75-89: Very good conditions, well worth it
- 60-74: Decent conditions, enjoyable session
- 40-59: Mediocre, rideable but nothing special
- 0-39: Poor conditions, best to skip

Write concise reasoning in a casual but informative tone. Be direct and practical. Avoid excessive slang or hype."""

SCORE_SCHEMA = {
    "type": "object",
    "properties": {
        "score": {"type": "integer"},
        "reasoning": {"type": "string"},
        "factors": {
            "type": "object",
            "properties": {
                "windQuality": {"type": "number"},
                "waveQuality": {"type": "number"},
                "tideQuality": {"type": "number"},
                "overallConditions": {"type": "number"},
            },
        },
    },
    "required": ["score", "reasoning"],
}


def _log_llm_response(response_text: str, site_id: str, sport: str, log_type: str = "score") -> None:
    """Log raw LLM responses to stdout so hosted logs capture them."""
    timestamp = datetime.now().isoformat()
    separator = "=" * 40
    print(f"\n[LLM-RAW] {separator}", flush=True)
    print(f"[LLM-RAW] Timestamp: {timestamp}", flush=True)
    print(f"[LLM-RAW] Site: {site_id} | Sport: {sport} | Type: {log_type}", flush=True)
    print(f"[LLM-RAW] Response length: {len(response_text)} chars", flush=True)
    print(f"[LLM-RAW] {response_text}", flush=True)
    print(f"[LLM-RAW] {separator}\n", flush=True)


def parse_score_response(response_text: str) -> Optional[dict]:
    """
    Parse an LLM scoring response into {"score", "reasoning", "factors"}.

    Structured output normally gives clean JSON; models sometimes wrap it
    in a markdown fence or prose, so the first {...} block is tried next.

    Returns:
        Parsed dict with an int score clamped to 0-100, or None
    """
    candidates = [response_text]
    braced = re.search(r'\{.*\}', response_text, re.DOTALL)
    if braced:
        candidates.append(braced.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if not isinstance(data, dict) or "score" not in data:
            continue
        try:
            score = int(round(float(data["score"])))
        except (TypeError, ValueError):
            continue

        reasoning = str(data.get("reasoning") or "").strip()
        factors = data.get("factors") if isinstance(data.get("factors"), dict) else None
        return {
            "score": max(0, min(100, score)),
            "reasoning": reasoning[:MAX_REASONING_LENGTH],
            "factors": factors,
        }

    debug_log(f"Score parsing failed. Response preview: {response_text[:500]}", "LLM")
    return None


class LLMScorer:
    """Scores forecast slots with Gemini, falling back to the heuristic calculator"""

    def __init__(self, api_key: str, fallback: Optional[ScoreCalculator] = None):
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel("gemini-2.5-flash-lite")
        self.fallback = fallback or ScoreCalculator()

    def build_prompt(self, slot: ForecastSlot, site: Site, sport: str, config: Optional[SiteScoringConfig] = None) -> str:
        """Build the scoring prompt for one slot."""
        system_prompt = SYSTEM_SPORT_PROMPTS.get(sport, SYSTEM_SPORT_PROMPTS["wingfoil"])

        lines = [
            f"Spot: {site}",
            f"Time (UTC): {slot.start:%a %Y-%m-%d %H:%M}",
            f"Wind: {slot.speed}kt gusting {slot.gust}kt, from {slot.direction}° "
            f"({degrees_to_cardinal(slot.direction)}, blowing towards {display_wind_cardinal(slot.direction)})",
        ]
        if slot.wave_height is not None:
            lines.append(f"Waves: {slot.wave_height}m")
        if slot.wave_period is not None:
            lines.append(f"Period: {slot.wave_period}s")
        if slot.wave_direction is not None:
            lines.append(f"Wave direction: {slot.wave_direction}° ({degrees_to_cardinal(slot.wave_direction)})")
        if slot.tide_type:
            lines.append(f"Tide: {slot.tide_type} ({slot.tide_height}m) near this time")

        if config is not None:
            if is_wind_sport(sport):
                lines.append(
                    f"Spot criteria: min {config.min_speed}kt, min gust {config.min_gust}kt, "
                    f"direction {config.direction_from}°-{config.direction_to}°"
                )
            else:
                lines.append(
                    f"Spot criteria: swell {config.min_swell_height}-{config.max_swell_height}m, "
                    f"min period {config.min_period}s, swell direction "
                    f"{config.swell_direction_from}°-{config.swell_direction_to}°, "
                    f"optimal tide {config.optimal_tide}"
                )

        if not is_daylight(slot.timestamp, site):
            when = "AFTER sunset" if is_after_sunset(slot.timestamp, site) else "BEFORE sunrise"
            lines.append(
                f"\nIMPORTANT: This time slot is {when}. Conditions are in darkness and not "
                "suitable for watersports. Lower the score accordingly."
            )

        conditions = "\n".join(lines)
        return f"""{system_prompt}

{SCORE_SCALE}

CONDITIONS:
{conditions}

Provide a JSON response with:
- score: integer 0-100
- reasoning: brief, practical explanation (1-2 sentences, max {MAX_REASONING_LENGTH} chars)
- factors: optional object with windQuality, waveQuality, tideQuality, overallConditions (each 0-100 number)"""

    def score_slot(self, slot: ForecastSlot, site: Site, sport: str, config: Optional[SiteScoringConfig] = None) -> ConditionScore:
        """
        Score one slot as a system score.

        Args:
            slot: Forecast slot to score
            site: Site the slot belongs to
            sport: Sport tag
            config: Site scoring config for the sport, if any

        Returns:
            ConditionScore from the LLM, or from the heuristic calculator on failure
        """
        prompt = self.build_prompt(slot, site, sport, config)
        debug_log(f"Score prompt length: {len(prompt)} chars", "LLM")

        try:
            response = self.model.generate_content(
                prompt,
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    response_schema=SCORE_SCHEMA,
                )
            )
            debug_log(f"Score response length: {len(response.text)} chars", "LLM")
            parsed = parse_score_response(response.text)
        except Exception as e:
            debug_log(f"Score API error: {e}", "LLM")
            print(f"LLM score API error: {e}", flush=True)
            parsed = None
        else:
            if parsed is None:
                _log_llm_response(response.text, slot.site_id, sport, log_type="failure")

        if parsed is None:
            return self.fallback.score_slot(slot, site, sport, config)

        return ConditionScore(
            site_id=slot.site_id,
            sport=sport,
            timestamp=slot.timestamp,
            score=parsed["score"],
            reasoning=parsed["reasoning"] or self.fallback.describe(slot, sport, parsed["score"]),
            factors=parsed["factors"],
            user_id=None,
            slot_id=slot.slot_id,
        )
