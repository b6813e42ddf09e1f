from datetime import timedelta
import pytest
from animalitos.core.errors import InvariantViolation
from animalitos.core.types import DrawRecord, PredictionContext
from animalitos.core.validation import format_time_label
from animalitos.tracking.accuracy import (
    advance, resolve, summarize, dedupe_resolved, period_stats, top_predicted,
)
from conftest import make_history, make_batch, make_resolved


def _next_draw(ctx, code, minutes=5):
    at = ctx.draws[0].occurred_at + timedelta(minutes=minutes)
    return DrawRecord.build(code, format_time_label(at), at)


@pytest.fixture
def ctx(now):
    c = PredictionContext(draws=make_history(list(range(1, 21)), start=now - timedelta(minutes=10)))
    advance(c, [], now)
    return c


def test_first_advance_issues_batch(ctx):
    assert ctx.current is not None and not ctx.current.is_empty
    assert ctx.current.based_on == ctx.draws[0]
    assert ctx.resolved == []


def test_next_draw_resolves_hit(ctx, now):
    batch = ctx.current
    winner = batch.candidate_set[0]
    draw = _next_draw(ctx, winner.numeric_code)

    fresh, resolved, new_batch = advance(ctx, [draw], now + timedelta(minutes=5))

    assert fresh == [draw]
    assert resolved.batch.batch_id == batch.batch_id
    assert resolved.number_hit
    assert resolved.color_hit == (batch.predicted_color.color_category == winner.color_category)
    assert resolved.winning_candidate == winner
    assert new_batch is ctx.current and new_batch.batch_id != batch.batch_id
    assert ctx.draws[0] == draw


def test_miss(ctx, now):
    batch = ctx.current
    code = ctx.draws[0].numeric_code  # excluded from the batch
    resolved = advance(ctx, [_next_draw(ctx, code)], now)[1]
    assert code not in batch.candidate_codes
    assert not resolved.number_hit


def test_same_draw_is_not_resolved_twice(ctx, now):
    draw = _next_draw(ctx, 7)
    advance(ctx, [draw], now)
    fresh, resolved, batch = advance(ctx, [draw], now + timedelta(seconds=2))
    assert fresh == [] and resolved is None and batch is None
    assert len(ctx.resolved) == 1


def test_backfilled_draw_does_not_resolve(ctx, now):
    before = ctx.current
    old_at = ctx.draws[-1].occurred_at - timedelta(minutes=5)
    old = DrawRecord.build(9, format_time_label(old_at), old_at)

    fresh, resolved, batch = advance(ctx, [old], now)

    assert fresh == [old]
    assert resolved is None
    assert batch.batch_id != before.batch_id
    assert ctx.draws[-1] == old


def test_only_oldest_new_draw_resolves(ctx, now):
    first = _next_draw(ctx, 12, minutes=5)
    second = _next_draw(ctx, 14, minutes=10)
    fresh, resolved, _ = advance(ctx, [second, first], now)
    assert len(fresh) == 2
    assert resolved.actual_result == first
    assert len(ctx.resolved) == 1


def test_resolving_a_resolved_batch_is_an_error(ctx, now):
    batch = ctx.current
    advance(ctx, [_next_draw(ctx, 7)], now)
    ctx.current = batch
    with pytest.raises(InvariantViolation):
        resolve(ctx, _next_draw(ctx, 8), now)


def test_empty_batch_never_resolves(now):
    c = PredictionContext(draws=make_history([1, 2, 3], start=now - timedelta(minutes=10)))
    advance(c, [], now)
    assert c.current.is_empty
    _, resolved, batch = advance(c, [_next_draw(c, 4)], now)
    assert resolved is None
    assert batch.is_empty
    assert c.resolved == []


def test_summary_counts_unmatched_as_misses():
    draws = make_history([5, 2, 9, 36])  # red black red red
    resolved = [
        make_resolved(make_batch([5, 7], color='black'), draws[0]),   # number hit, color miss
        make_resolved(make_batch([1, 3], color='black'), draws[1]),   # number miss, color hit
        make_resolved(make_batch([9], color='red'), draws[2]),        # both hit
    ]
    s = summarize(draws, resolved, window=4)
    assert s.sample_size == 4
    assert (s.number_hits, s.color_hits) == (2, 2)
    assert s.number_accuracy_percent == 50.0
    assert s.color_accuracy_percent == 50.0
    assert s.combined_accuracy_percent == 50.0
    assert s.details[3].predicted_codes == [] and not s.details[3].number_hit


def test_summary_combined_average():
    draws = make_history([5, 2])
    resolved = [make_resolved(make_batch([5], color='red'), draws[0])]
    s = summarize(draws, resolved, window=10)
    assert s.sample_size == 2
    assert (s.number_accuracy_percent, s.color_accuracy_percent) == (50.0, 50.0)
    assert s.combined_accuracy_percent == 50.0

    s = summarize(draws[:1], resolved, window=10)
    assert s.combined_accuracy_percent == 100.0


def test_summary_without_draws():
    s = summarize([], [], window=10)
    assert s.insufficient
    assert s.sample_size == 0 and s.combined_accuracy_percent == 0.0


def test_dedupe_keeps_first():
    draw = make_history([5])[0]
    a = make_resolved(make_batch([5], batch_id='a'), draw)
    b = make_resolved(make_batch([1], batch_id='b'), draw)
    assert [r.batch.batch_id for r in dedupe_resolved([a, b])] == ['a']


def test_period_stats_and_top(now):
    draws = make_history([5, 2, 9], start=now)
    old = make_history([7], start=now - timedelta(days=10))[0]
    resolved = [
        make_resolved(make_batch([7, 5]), old),
        make_resolved(make_batch([5, 9]), draws[2]),
        make_resolved(make_batch([5, 1]), draws[1]),
    ]
    assert period_stats(resolved, now, days=7) == {'total': 2, 'number_accuracy': 50.0, 'color_accuracy': 50.0}
    assert period_stats(resolved, now, days=30)['total'] == 3
    assert period_stats(resolved, last=1)['total'] == 1
    assert period_stats([], now, days=7)['total'] == 0

    top = top_predicted(resolved, limit=2)
    assert top[0] == {'numeric_code': 5, 'display_name': 'León', 'count': 3, 'hits': 0}
    assert top[1]['numeric_code'] == 1
