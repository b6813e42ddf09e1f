from typing import Mapping
from animalitos.core.registry import ANIMALS, ALL_CODES
from animalitos.core.types import TemperatureBuckets, TemperatureEntry
from animalitos.analytics.stats import AppearanceStats

HOT_PERCENT = 4.0
WARM_PERCENT = 1.5

# below this many stored draws percentages are too coarse; count appearances instead
SMALL_SAMPLE = 50
HOT_MIN_COUNT = 2
WARM_MIN_COUNT = 1


def classify(stats: Mapping[int, AppearanceStats], total_history: int) -> TemperatureBuckets:
    scaled = total_history < SMALL_SAMPLE
    hot, warm, cold = [], [], []

    for code in ALL_CODES:
        s = stats.get(code) or AppearanceStats(0, 0, 0.0)
        animal = ANIMALS[code]
        entry = TemperatureEntry(code, animal.name, animal.color, s.frequency, s.percentage, s.last_seen)
        if scaled:
            is_hot, is_warm = s.frequency >= HOT_MIN_COUNT, s.frequency >= WARM_MIN_COUNT
        else:
            is_hot, is_warm = s.percentage > HOT_PERCENT, s.percentage > WARM_PERCENT

        if is_hot:
            hot.append(entry)
        elif is_warm:
            warm.append(entry)
        else:
            cold.append(entry)

    if scaled:
        return TemperatureBuckets(hot, warm, cold, HOT_MIN_COUNT, WARM_MIN_COUNT, True)
    return TemperatureBuckets(hot, warm, cold, HOT_PERCENT, WARM_PERCENT, False)
