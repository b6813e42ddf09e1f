from dataclasses import dataclass
from typing import Sequence
from animalitos.core.errors import DataInsufficientError
from animalitos.core.registry import ALL_CODES
from animalitos.core.types import DrawRecord


@dataclass(frozen=True)
class AppearanceStats:
    frequency: int
    # index of the most recent appearance, len(window) when absent
    last_seen: int
    percentage: float


def last_appearance(draws: Sequence[DrawRecord], code: int) -> int | None:
    """Index of the newest draw with ``code`` (draws are newest-first), None if absent."""
    for i, d in enumerate(draws):
        if d.numeric_code == code:
            return i
    return None


def appearance_stats(window: Sequence[DrawRecord]) -> dict[int, AppearanceStats]:
    n = len(window)
    counts = {code: 0 for code in ALL_CODES}
    first_seen: dict[int, int] = {}
    for i, d in enumerate(window):
        counts[d.numeric_code] += 1
        first_seen.setdefault(d.numeric_code, i)
    return {
        code: AppearanceStats(
            frequency=counts[code],
            last_seen=first_seen.get(code, n),
            percentage=(counts[code] / n * 100) if n else 0.0,
        )
        for code in ALL_CODES
    }


def require_history(draws: Sequence[DrawRecord], minimum: int):
    if len(draws) < minimum:
        raise DataInsufficientError(f"need {minimum} draws, have {len(draws)}")
