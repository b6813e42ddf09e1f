import hashlib
from typing import Sequence
from animalitos.core.registry import RED, BLACK, GREEN, opposite_color
from animalitos.core.types import ColorPrediction, DrawRecord
from animalitos.core.errors import DataInsufficientError
from animalitos.analytics.patterns import head_run, alternation_rate
from animalitos.analytics.stats import require_history

COLOR_WINDOW = 10

STREAK_LONG_PROB = 85
STREAK_SHORT_PROB = 70
ALTERNATION_PROB = 60
DEFAULT_PROB = 50

INSUFFICIENT_DATA = "insufficient data"


def green_tiebreak(draw: DrawRecord) -> str:
    """
    Red or black after a green draw.

    Seeded from the draw identity and its 10-minute epoch so the same
    history always yields the same color.
    """
    epoch = int(draw.occurred_at.timestamp() // 600) if draw.occurred_at else 0
    seed = f"{draw.numeric_code}|{draw.time_label}|{epoch}".encode()
    return RED if hashlib.sha256(seed).digest()[0] % 2 == 0 else BLACK


def predict_color(recent: Sequence[DrawRecord], window: int = COLOR_WINDOW) -> ColorPrediction:
    """Bet against the current color streak, or alternate when there is none."""
    try:
        require_history(recent, window)
    except DataInsufficientError:
        return ColorPrediction(BLACK, DEFAULT_PROB, INSUFFICIENT_DATA)

    last = [d.color_category for d in recent[:window]]
    color, streak = head_run(last)
    rate = round(alternation_rate(last), 3)
    target = opposite_color(color) or green_tiebreak(recent[0])

    if color != GREEN and streak >= 3:
        return ColorPrediction(target, STREAK_LONG_PROB,
                               f"streak of {streak} {color} -> {target}", streak, rate)
    if color != GREEN and streak == 2:
        return ColorPrediction(target, STREAK_SHORT_PROB,
                               f"streak of {streak} {color} -> {target}", streak, rate)
    return ColorPrediction(target, ALTERNATION_PROB,
                           f"alternation: last {color} -> {target}", streak, rate)
