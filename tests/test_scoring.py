from datetime import timedelta
from animalitos.analytics.scoring import (
    frequency_factor, hot_streak_factor, debt_for_gap, rotation_factor, time_bucket,
    score_candidates, balance_by_color, generate_prediction, BATCH_SIZE,
)
from animalitos.analytics.colors import INSUFFICIENT_DATA
from conftest import make_history


def test_frequency_ladders():
    assert [frequency_factor(1, f) for f in range(5)] == [-10, 40, 80, 120, 120]
    assert [frequency_factor(22, f) for f in range(4)] == [-15, 15, 40, 70]
    assert [frequency_factor(7, f) for f in range(4)] == [-20, 10, 30, 60]


def test_hot_streak():
    # code 9 placed at a given index of a 25-draw window
    def at(idx):
        codes = [11] * 25
        codes[idx] = 9
        return hot_streak_factor(9, make_history(codes))

    assert [at(0), at(2), at(3), at(5), at(6), at(12), at(16), at(19)] == [60, 60, 45, 45, 30, 15, 5, 5]
    assert at(22) == 0
    assert hot_streak_factor(9, make_history([11] * 10)) == 0


def test_debt_is_monotonic():
    assert debt_for_gap(None) == 150
    assert debt_for_gap(80) == 120 and debt_for_gap(79) == 100
    assert debt_for_gap(8) == 20 and debt_for_gap(7) == 0
    values = [debt_for_gap(g) for g in range(200)]
    assert values == sorted(values)
    assert max(values) < debt_for_gap(None)


def test_rotation_is_bucketed(now):
    start = now.replace(minute=0)
    same = start + timedelta(minutes=9, seconds=59)
    assert time_bucket(start) == time_bucket(same)
    assert all(rotation_factor(c, start) == rotation_factor(c, same) for c in range(38))
    assert {rotation_factor(c, start) for c in range(38)} <= {50, 25, 0, -15, -30}


def test_never_seen_candidate_gets_full_debt(now):
    hist = make_history([1, 2, 3, 4, 5, 6] * 3)
    scores = score_candidates(hist, hist, now)
    assert len(scores) == 38
    assert scores[7].score == -20 + 0 + 150 + rotation_factor(7, now)
    assert scores[7].frequency == 0 and scores[7].last_seen == len(hist)


def test_too_little_history(now):
    batch, temp = generate_prediction(make_history([1, 2, 3]), now)
    assert batch.is_empty
    assert batch.predicted_color.color_category == 'black'
    assert batch.predicted_color.probability_percent == 50
    assert batch.predicted_color.rationale == INSUFFICIENT_DATA
    assert len(temp) == 38


def test_batch_shape(now):
    hist = make_history(list(range(1, 31)))
    batch, _ = generate_prediction(hist, now)

    codes = batch.candidate_codes
    assert len(codes) == BATCH_SIZE == len(set(codes))
    assert 1 not in codes
    assert batch.based_on == hist[0]
    assert batch.source_result_count == 30

    # newest color is red with no streak, so black is predicted: 6 black + 4 red
    assert batch.predicted_color.color_category == 'black'
    colors = [c.color_category for c in batch.candidate_set]
    assert colors.count('black') == 6 and colors.count('red') == 4

    scores = [c.score for c in batch.candidate_set]
    assert scores == sorted(scores, reverse=True)


def test_same_window_same_candidates(now):
    hist = make_history([5, 9, 12, 5, 30, 2, 2, 17, 0, 33, 21, 8])
    a, _ = generate_prediction(hist, now)
    b, _ = generate_prediction(hist, now + timedelta(seconds=30))
    assert a.candidate_codes == b.candidate_codes
    assert a.batch_id != b.batch_id


def test_require_history():
    from animalitos.analytics.stats import require_history
    from animalitos.core.errors import DataInsufficientError
    import pytest

    require_history(make_history([1] * 10), 10)
    with pytest.raises(DataInsufficientError):
        require_history(make_history([1] * 9), 10)


def test_green_balance(now):
    hist = make_history([0, 5, 2, 9, 4, 11, 13, 1, 3, 6] * 2)
    scored = score_candidates(hist, hist, now)
    picked = balance_by_color(list(scored.values()), 'green')
    colors = [c.color_category for c in picked]
    assert len(picked) == BATCH_SIZE
    assert (colors.count('green'), colors.count('red'), colors.count('black')) == (2, 4, 4)
    assert [c.score for c in picked] == sorted((c.score for c in picked), reverse=True)

    # newest draw is Delfín, so it leaves the pool and only Ballena is left
    pool = [c for code, c in scored.items() if code != hist[0].numeric_code]
    picked = balance_by_color(pool, 'green')
    assert [c.numeric_code for c in picked if c.color_category == 'green'] == [37]
    assert len(picked) == BATCH_SIZE - 1
