"""
Momentum scoring of the 38 candidates.

score = frequency factor + hot-streak factor + debt factor + rotation factor

The rotation factor is the only time-dependent term and is bucketed to
10-minute windows, so identical history inside one window always yields
identical scores.
"""
from __future__ import annotations
import uuid
from datetime import datetime
from typing import Sequence
from animalitos.config import setup_logging
from animalitos.core.registry import ANIMALS, ALL_CODES, RED, BLACK, GREEN
from animalitos.core.types import Candidate, ColorPrediction, DrawRecord, PredictionBatch, TemperatureBuckets
from animalitos.core.errors import DataInsufficientError
from animalitos.analytics.stats import appearance_stats, last_appearance, require_history
from animalitos.analytics.colors import predict_color, INSUFFICIENT_DATA
from animalitos.analytics.temperature import classify

logger = setup_logging(__name__)

RECENT_WINDOW = 100
MIN_HISTORY = 10
BATCH_SIZE = 10

STRONG_REPEATERS = frozenset({1, 2, 3, 4, 28, 31})
MODERATE_REPEATERS = frozenset({22, 32, 35})

# score by appearances in the recent window: 0, 1, 2, >=3
FREQUENCY_LADDERS = {
    'strong': (-10, 40, 80, 120),
    'moderate': (-15, 15, 40, 70),
    'ordinary': (-20, 10, 30, 60),
}

HOT_STREAK_WINDOW = 20
# (max index of last appearance, bonus)
HOT_STREAK_LADDER = ((2, 60), (5, 45), (10, 30), (15, 15))
HOT_STREAK_TAIL = 5

DEBT_NEVER_SEEN = 150
# (min draws since last appearance, bonus)
DEBT_LADDER = ((80, 120), (60, 100), (40, 80), (25, 60), (15, 40), (8, 20))

ROTATION_BUCKET_SECONDS = 600
# (upper bound of hash value, bonus)
ROTATION_LADDER = ((20, 50), (40, 25), (60, 0), (80, -15), (100, -30))

# per predicted color: how many of each color make up the batch
COLOR_SPLITS = {
    GREEN: {GREEN: 2, BLACK: 4, RED: 4},
    BLACK: {BLACK: 6, RED: 4},
    RED: {RED: 6, BLACK: 4},
}


def tier_of(code: int) -> str:
    if code in STRONG_REPEATERS:
        return 'strong'
    if code in MODERATE_REPEATERS:
        return 'moderate'
    return 'ordinary'


def frequency_factor(code: int, frequency: int) -> int:
    ladder = FREQUENCY_LADDERS[tier_of(code)]
    return ladder[min(frequency, 3)]


def hot_streak_factor(code: int, recent: Sequence[DrawRecord]) -> int:
    idx = last_appearance(recent[:HOT_STREAK_WINDOW], code)
    if idx is None:
        return 0
    for max_idx, bonus in HOT_STREAK_LADDER:
        if idx <= max_idx:
            return bonus
    return HOT_STREAK_TAIL


def debt_for_gap(gap: int | None) -> int:
    """Debt bonus for a candidate last seen ``gap`` draws ago (None = never)."""
    if gap is None:
        return DEBT_NEVER_SEEN
    for min_gap, bonus in DEBT_LADDER:
        if gap >= min_gap:
            return bonus
    return 0


def debt_factor(code: int, history: Sequence[DrawRecord]) -> int:
    return debt_for_gap(last_appearance(history, code))


def time_bucket(now: datetime) -> int:
    return int(now.timestamp() // ROTATION_BUCKET_SECONDS)


def rotation_factor(code: int, now: datetime) -> int:
    value = (code * 17 + time_bucket(now) * 23) % 100
    for bound, bonus in ROTATION_LADDER:
        if value < bound:
            return bonus
    return ROTATION_LADDER[-1][1]


def score_candidates(recent: Sequence[DrawRecord], history: Sequence[DrawRecord],
                     now: datetime) -> dict[int, Candidate]:
    stats = appearance_stats(recent)
    scores = {}
    for code in ALL_CODES:
        s = stats[code]
        score = (
            frequency_factor(code, s.frequency)
            + hot_streak_factor(code, recent)
            + debt_factor(code, history)
            + rotation_factor(code, now)
        )
        animal = ANIMALS[code]
        scores[code] = Candidate(
            numeric_code=code,
            display_name=animal.name,
            color_category=animal.color,
            score=score,
            frequency=s.frequency,
            last_seen=s.last_seen,
            percentage=round(s.percentage, 1),
        )
    return scores


def _rank(candidates):
    return sorted(candidates, key=lambda c: (-c.score, c.numeric_code))


def balance_by_color(candidates: Sequence[Candidate], color: str, size: int = BATCH_SIZE) -> list[Candidate]:
    groups = {RED: [], BLACK: [], GREEN: []}
    for c in candidates:
        groups[c.color_category].append(c)

    picked = []
    for group_color, n in COLOR_SPLITS[color].items():
        picked.extend(_rank(groups[group_color])[:n])
    return _rank(picked)[:size]


def empty_batch(history: Sequence[DrawRecord], now: datetime) -> PredictionBatch:
    return PredictionBatch(
        batch_id=uuid.uuid4().hex,
        issued_at=now,
        candidate_set=[],
        predicted_color=ColorPrediction(BLACK, 50, INSUFFICIENT_DATA),
        source_result_count=len(history),
        based_on=history[0] if history else None,
    )


def generate_prediction(history: Sequence[DrawRecord], now: datetime,
                        recent_window: int = RECENT_WINDOW) -> tuple[PredictionBatch, TemperatureBuckets]:
    """
    Build the next batch from newest-first ``history``.

    Returns the batch and the temperature buckets of the same recent window.
    With fewer than MIN_HISTORY draws the batch is empty and the color is
    the black/50 default.
    """
    recent = list(history[:recent_window])
    temperature = classify(appearance_stats(recent), len(history))

    try:
        require_history(history, MIN_HISTORY)
    except DataInsufficientError:
        return empty_batch(history, now), temperature

    scored = score_candidates(recent, history, now)
    last_code = recent[0].numeric_code
    pool = [c for code, c in scored.items() if code != last_code]

    color = predict_color(recent)
    final = balance_by_color(pool, color.color_category)

    logger.debug(
        "color %s (%s%%): %s",
        color.color_category, color.probability_percent,
        {k: sum(1 for c in final if c.color_category == k) for k in (RED, BLACK, GREEN)},
    )

    batch = PredictionBatch(
        batch_id=uuid.uuid4().hex,
        issued_at=now,
        candidate_set=final,
        predicted_color=color,
        source_result_count=len(history),
        based_on=history[0],
    )
    return batch, temperature
