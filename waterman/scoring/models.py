# ABOUTME: Data models for condition scores produced by scorers
# ABOUTME: Provides structured representation of 0-100 scores with reasoning

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ConditionScore:
    """Score for a site+sport at a timestamp; user_id None is the system score"""
    site_id: str
    sport: str
    timestamp: int       # epoch ms
    score: int           # 0-100
    reasoning: str
    factors: Optional[dict] = None
    user_id: Optional[str] = None
    slot_id: Optional[str] = None

    def __post_init__(self):
        if not 0 <= self.score <= 100:
            raise ValueError(f"Score must be 0-100, got {self.score}")

    @property
    def is_system(self) -> bool:
        return self.user_id is None
