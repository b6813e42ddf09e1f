from animalitos.analytics.stats import appearance_stats
from animalitos.analytics.temperature import classify
from conftest import make_history


def test_small_history_uses_counts():
    codes = [1, 1, 1, 2] + [11, 13, 15, 17, 20, 22, 24, 26, 28, 29, 31, 33, 35, 6, 8, 10]
    window = make_history(codes)
    temp = classify(appearance_stats(window), total_history=len(window))

    assert temp.scaled
    assert len(temp) == 38
    assert temp.bucket_of(1) == 'hot'
    assert temp.bucket_of(2) == 'warm'
    assert temp.bucket_of(0) == 'cold'
    assert temp.bucket_of(37) == 'cold'


def test_percent_thresholds():
    codes = [1] * 5 + [2] * 2 + [3] + [11] * 92
    window = make_history(codes)
    temp = classify(appearance_stats(window), total_history=100)

    assert not temp.scaled
    assert (temp.hot_threshold, temp.warm_threshold) == (4.0, 1.5)
    assert temp.bucket_of(1) == 'hot'
    assert temp.bucket_of(2) == 'warm'
    assert temp.bucket_of(3) == 'cold'
    assert sum(len(b) for b in (temp.hot, temp.warm, temp.cold)) == 38
