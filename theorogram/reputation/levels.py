"""
Reputation points and the level table.

A level is the 1-based position of the highest threshold at or below the
score. Scores below the first threshold stay at level 1. The top tier is
open-ended: progress there is measured against a synthetic +1000 target.
"""

import math
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel


class LevelThreshold(NamedTuple):
    min_rep: int
    title: str


LEVEL_THRESHOLDS: tuple[LevelThreshold, ...] = (
    LevelThreshold(0, "INITIATE"),
    LevelThreshold(100, "THEORIST"),
    LevelThreshold(400, "SCHOLAR"),
    LevelThreshold(900, "ORACLE"),
    LevelThreshold(1600, "SAGE"),
    LevelThreshold(2500, "ARCHITECT"),
    LevelThreshold(4000, "LUMINARY"),
    LevelThreshold(6000, "SOVEREIGN"),
)

TOP_TIER_SPAN = 1000


class RepAction(str, Enum):
    CREATE_THEORY = "create_theory"
    RECEIVE_UPVOTE = "receive_upvote"
    RECEIVE_DOWNVOTE = "receive_downvote"
    RECEIVE_FOR_STANCE = "receive_for_stance"
    RECEIVE_AGAINST_STANCE = "receive_against_stance"
    TAKE_STANCE = "take_stance"
    POST_COMMENT = "post_comment"

    @property
    def points(self) -> int:
        return REP_POINTS[self]


REP_POINTS: dict[RepAction, int] = {
    RepAction.CREATE_THEORY: 50,
    RepAction.RECEIVE_UPVOTE: 10,
    RepAction.RECEIVE_DOWNVOTE: -5,
    RepAction.RECEIVE_FOR_STANCE: 15,
    RepAction.RECEIVE_AGAINST_STANCE: 5,
    RepAction.TAKE_STANCE: 5,
    RepAction.POST_COMMENT: 3,
}


class LevelInfo(BaseModel):
    level: int
    title: str
    current_rep: int
    rep_for_next_level: int
    progress: int  # 0-100

    model_config = {"frozen": True}


def level_for(score: int) -> int:
    reached = sum(1 for t in LEVEL_THRESHOLDS if t.min_rep <= score)
    return max(1, reached)


def get_level_info(score: int) -> LevelInfo:
    level = level_for(score)
    current = LEVEL_THRESHOLDS[level - 1]
    if level < len(LEVEL_THRESHOLDS):
        next_threshold = LEVEL_THRESHOLDS[level].min_rep
    else:
        next_threshold = current.min_rep + TOP_TIER_SPAN

    progress = math.floor(100 * (score - current.min_rep) / (next_threshold - current.min_rep))
    return LevelInfo(
        level=level,
        title=current.title,
        current_rep=score,
        rep_for_next_level=next_threshold,
        progress=max(0, min(100, progress)),
    )


def format_reputation(score: int) -> str:
    """12400 -> '12.4k'."""
    if score >= 1000:
        return f"{score / 1000:.1f}k"
    return str(score)
