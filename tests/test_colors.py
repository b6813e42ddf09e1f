from animalitos.analytics.colors import predict_color, INSUFFICIENT_DATA
from conftest import make_history


def test_long_streak_flips():
    # red red red, then mixed
    pred = predict_color(make_history([1, 3, 5, 2, 7, 4, 9, 6, 12, 8]))
    assert pred.color_category == 'black'
    assert pred.probability_percent == 85
    assert pred.streak_length == 3
    assert pred.rationale == 'streak of 3 red -> black'


def test_black_streak():
    pred = predict_color(make_history([2, 4, 6, 8, 10, 1, 3, 5, 7, 9]))
    assert (pred.color_category, pred.probability_percent, pred.streak_length) == ('red', 85, 5)


def test_short_streak():
    pred = predict_color(make_history([1, 3, 2, 5, 4, 7, 6, 9, 8, 12]))
    assert (pred.color_category, pred.probability_percent) == ('black', 70)


def test_alternation():
    pred = predict_color(make_history([2, 1, 4, 3, 6, 5, 8, 7, 10, 9]))
    assert pred.color_category == 'red'
    assert pred.probability_percent == 60
    assert pred.alternation_rate == 1.0
    assert pred.rationale.startswith('alternation')


def test_green_head_is_deterministic():
    hist = make_history([0, 0, 0, 1, 2, 3, 4, 5, 6, 7])
    a, b = predict_color(hist), predict_color(hist)
    assert a.color_category in ('red', 'black')
    assert a == b
    assert a.probability_percent == 60


def test_not_enough_draws():
    pred = predict_color(make_history([1, 3, 5]))
    assert (pred.color_category, pred.probability_percent, pred.rationale) == ('black', 50, INSUFFICIENT_DATA)
