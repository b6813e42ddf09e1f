from datetime import datetime, timedelta, timezone
from animalitos.db.crud import (
    upsert_draw_records, get_draw_records, count_draw_records,
    upsert_prediction_history, get_prediction_history,
    save_current_prediction, get_current_prediction,
)
from conftest import make_history, make_batch, make_resolved


def test_upsert_is_idempotent(session):
    draws = make_history([5, 12, 37])
    counts = upsert_draw_records(session, draws)
    assert (counts.inserted, counts.updated) == (3, 0)

    counts = upsert_draw_records(session, draws)
    assert (counts.inserted, counts.updated) == (0, 0)
    assert count_draw_records(session) == 3


def test_upsert_updates_occurred_at(session):
    draw = make_history([5])[0]
    upsert_draw_records(session, [draw])
    moved = draw.__class__(draw.numeric_code, draw.display_name, draw.color_category,
                           draw.time_label, draw.occurred_at - timedelta(days=1))
    counts = upsert_draw_records(session, [moved])
    assert (counts.inserted, counts.updated) == (0, 1)
    assert get_draw_records(session)[0].occurred_at == moved.occurred_at


def test_draws_come_back_newest_first(session):
    draws = make_history([5, 12, 37, 1])
    upsert_draw_records(session, reversed(draws))
    stored = get_draw_records(session)
    assert stored == draws
    assert stored[0].occurred_at.tzinfo is not None
    assert get_draw_records(session, limit=2, skip=1) == draws[1:3]


def test_prediction_history(session, now):
    draws = make_history([5, 12])
    first = make_resolved(make_batch([5, 7], issued_at=now - timedelta(minutes=10)), draws[1])
    second = make_resolved(make_batch([1, 12], issued_at=now - timedelta(minutes=5)), draws[0])

    assert upsert_prediction_history(session, first)
    assert upsert_prediction_history(session, second)
    # same (number, time label) again under another batch
    dup = make_resolved(make_batch([12], batch_id='other'), draws[1])
    assert not upsert_prediction_history(session, dup)

    stored = get_prediction_history(session)
    assert [r.batch.batch_id for r in stored] == [second.batch.batch_id, first.batch.batch_id]
    assert stored[1] == first
    assert len(get_prediction_history(session, limit=1)) == 1


def test_current_prediction_replaced(session, now):
    assert get_current_prediction(session) is None
    draws = make_history([5])
    save_current_prediction(session, make_batch([1, 2], batch_id='one', based_on=draws[0]))
    save_current_prediction(session, make_batch([3, 4], batch_id='two'))
    current = get_current_prediction(session)
    assert current.batch_id == 'two'
    assert current.candidate_codes == [3, 4]


def test_timestamps_come_back_as_utc(session):
    caracas = timezone(timedelta(hours=-4))
    draw = make_history([5], start=datetime(2026, 10, 19, 11, 0, tzinfo=caracas))[0]
    upsert_draw_records(session, [draw])

    stored = get_draw_records(session)[0]
    assert stored.occurred_at == datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)
    assert stored.occurred_at.utcoffset() == timedelta(0)
    # same instant in another zone is not an update
    assert upsert_draw_records(session, [draw]).updated == 0
