from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine
from animalitos.core.types import (
    Candidate, ColorPrediction, DrawRecord, PredictionBatch, ResolvedPrediction,
)
from animalitos.core.registry import ANIMALS
from animalitos.core.validation import format_time_label
from animalitos.db.base import init_db

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def make_history(codes, start=NOW, step_minutes=5):
    """Draws for ``codes`` given newest-first, spaced ``step_minutes`` apart."""
    out = []
    for i, code in enumerate(codes):
        at = start - timedelta(minutes=step_minutes * i)
        out.append(DrawRecord.build(code, format_time_label(at), at))
    return out


def make_batch(codes, color="red", based_on=None, batch_id=None, issued_at=NOW):
    return PredictionBatch(
        batch_id=batch_id or f"b-{'-'.join(map(str, codes))}-{color}",
        issued_at=issued_at,
        candidate_set=[
            Candidate(c, ANIMALS[c].name, ANIMALS[c].color, score=100 - i)
            for i, c in enumerate(codes)
        ],
        predicted_color=ColorPrediction(color, 60, "alternation: last black -> red"),
        source_result_count=10,
        based_on=based_on,
    )


def make_resolved(batch, draw, resolved_at=NOW):
    return ResolvedPrediction(
        batch=batch,
        actual_result=draw,
        number_hit=draw.numeric_code in batch.candidate_codes,
        color_hit=batch.predicted_color.color_category == draw.color_category,
        resolved_at=resolved_at,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def history():
    return make_history


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=eng)
    return eng


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s
