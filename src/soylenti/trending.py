"""
Trending players: half-life decay scoring of rumour mentions.

Every mention contributes a weight that halves every half_life_days, so
old rumours cool off smoothly instead of dropping out of a fixed window.

Formula (per day with mentions):
    contribution = count * exp(-age_days * ln(2) / half_life) * recency_bonus

Where recency_bonus is recency_bonus_multiplier for mentions at most
recency_bonus_days old, 1.0 otherwise.
"""

import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Literal, Optional

from sqlalchemy.orm import Session

from soylenti.config import settings
from soylenti.db.models import NewsPlayer, Player, Rumor

MomentumPhase = Literal["hot", "rising", "stable", "cooling", "dormant"]

DECAY_ALGORITHM = {
    # A mention this many days old is worth half of one from today
    "half_life_days": 3.0,
    "recency_bonus_days": 3,
    "recency_bonus_multiplier": 1.5,
    "min_active_score": 0.5,
    "hot_score_threshold": 3.0,
    "hot_velocity_threshold": 30,
    "rising_velocity_threshold": 15,
    "cooling_velocity_threshold": -20,
    "cold_threshold_days": 10,
    "cold_score_threshold": 0.2,
}


@dataclass
class TrendingPlayer:
    player_id: int
    name: str
    display_name: Optional[str]
    normalized_name: str
    rumor_count: int
    last_seen_at: Optional[datetime]
    trend_score: float
    velocity: int
    phase: MomentumPhase
    days_since_last_mention: int
    timeline: list[int]


def calculate_decay_weight(age_days: float, half_life_days: Optional[float] = None) -> float:
    """
    Weight of a mention that is age_days old.

    With a 3 day half-life: 0 days -> 1.0, 3 days -> 0.5, 7 days -> ~0.2.
    Negative ages (future dates) weigh nothing.
    """
    if half_life_days is None:
        half_life_days = DECAY_ALGORITHM["half_life_days"]
    if age_days < 0:
        return 0.0
    return math.exp(-age_days * math.log(2) / half_life_days)


def calculate_trend_score(timeline: dict[date, int], today: date) -> float:
    """
    Sum of decayed, recency-boosted mention counts.

    Args:
        timeline: Mention count per day (only days with mentions are needed)
        today: Reference day for ages
    """
    score = 0.0
    for day, count in timeline.items():
        age_days = (today - day).days
        bonus = (
            DECAY_ALGORITHM["recency_bonus_multiplier"]
            if age_days <= DECAY_ALGORITHM["recency_bonus_days"]
            else 1.0
        )
        score += count * calculate_decay_weight(age_days) * bonus
    return score


def calculate_velocity(filled_timeline: list[int]) -> int:
    """
    Percentage change of decayed mentions: last 3 days vs the 4 days before.

    filled_timeline holds one count per day, oldest first, ending today.
    Fewer than 7 days of data gives 0; activity after a silent period gives 100.
    """
    if len(filled_timeline) < 7:
        return 0

    recent = filled_timeline[-3:]
    previous = filled_timeline[-7:-3]

    recent_score = sum(
        count * calculate_decay_weight(2 - idx) for idx, count in enumerate(recent)
    )
    previous_score = sum(
        count * calculate_decay_weight(6 - idx) for idx, count in enumerate(previous)
    )

    if previous_score == 0:
        return 100 if recent_score > 0 else 0

    # Round half up, not to even
    return math.floor((recent_score - previous_score) / previous_score * 100 + 0.5)


def determine_momentum_phase(
    trend_score: float,
    velocity: float,
    days_since_last_mention: int,
) -> MomentumPhase:
    """Classify a player's buzz. Checked in order: dormant, hot, rising, cooling, stable."""
    cfg = DECAY_ALGORITHM

    if (
        days_since_last_mention >= cfg["cold_threshold_days"]
        and trend_score < cfg["cold_score_threshold"]
    ):
        return "dormant"

    if (
        trend_score >= cfg["hot_score_threshold"]
        and velocity >= cfg["hot_velocity_threshold"]
        and days_since_last_mention <= cfg["recency_bonus_days"]
    ):
        return "hot"

    if velocity >= cfg["rising_velocity_threshold"] and trend_score >= cfg["min_active_score"]:
        return "rising"

    if velocity <= cfg["cooling_velocity_threshold"] or (
        days_since_last_mention > 3 and trend_score < cfg["min_active_score"]
    ):
        return "cooling"

    return "stable"


def _fill_timeline(timeline: dict[date, int], today: date, days: int) -> list[int]:
    return [timeline.get(today - timedelta(days=offset), 0) for offset in range(days - 1, -1, -1)]


def trending_players(
    session: Session,
    limit: Optional[int] = None,
    today: Optional[date] = None,
    window_days: Optional[int] = None,
) -> list[TrendingPlayer]:
    """
    Rank active players with at least one rumour by trend score.

    Candidates are the most recently seen players (then most mentioned);
    each gets a daily mention timeline over the last window_days days,
    built from its rumour associations.

    Returns:
        Players sorted by trend score (desc), then days since last mention (asc).
    """
    if limit is None:
        limit = settings.trending_limit
    if window_days is None:
        window_days = settings.trending_window_days
    if today is None:
        today = datetime.now(timezone.utc).date()

    players = (
        session.query(Player)
        .filter(Player.merged_into_id.is_(None), Player.rumor_count >= 1)
        .order_by(Player.last_seen_at.desc(), Player.rumor_count.desc(), Player.id)
        .limit(limit)
        .all()
    )
    if not players:
        return []

    window_start = datetime.combine(today - timedelta(days=window_days - 1), datetime.min.time())
    rows = (
        session.query(NewsPlayer.player_id, Rumor.pub_date)
        .join(Rumor, Rumor.id == NewsPlayer.news_id)
        .filter(
            NewsPlayer.player_id.in_([p.id for p in players]),
            Rumor.pub_date >= window_start,
        )
        .all()
    )
    timelines: dict[int, Counter] = {}
    for player_id, pub_date in rows:
        timelines.setdefault(player_id, Counter())[pub_date.date()] += 1

    ranked: list[TrendingPlayer] = []
    for player in players:
        timeline = dict(timelines.get(player.id, {}))
        filled = _fill_timeline(timeline, today, window_days)
        score = calculate_trend_score(timeline, today)
        velocity = calculate_velocity(filled)
        if player.last_seen_at is not None:
            days_since = max((today - player.last_seen_at.date()).days, 0)
        else:
            days_since = window_days
        ranked.append(
            TrendingPlayer(
                player_id=player.id,
                name=player.name,
                display_name=player.display_name,
                normalized_name=player.normalized_name,
                rumor_count=player.rumor_count,
                last_seen_at=player.last_seen_at,
                trend_score=score,
                velocity=velocity,
                phase=determine_momentum_phase(score, velocity, days_since),
                days_since_last_mention=days_since,
                timeline=filled,
            )
        )

    ranked.sort(key=lambda p: (-p.trend_score, p.days_since_last_mention))
    return ranked
