from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, func
from animalitos.config import setup_logging
from animalitos.core.errors import IdentityConflictError
from animalitos.core.types import DrawRecord, PredictionBatch, ResolvedPrediction
from animalitos.db.models import DrawRow, PredictionEntry, CurrentPrediction

logger = setup_logging(__name__)


@dataclass(frozen=True)
class UpsertCounts:
    inserted: int = 0
    updated: int = 0


# Stored as aware UTC; SQLite hands it back naive, _from_db restores the zone


def _to_db(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _from_db(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _draw_from_row(row: DrawRow) -> DrawRecord:
    return DrawRecord(row.number, row.animal, row.color, row.time_label, _from_db(row.occurred_at))


# Draw records


def upsert_draw_records(session: Session, records: Iterable[DrawRecord]) -> UpsertCounts:
    inserted = updated = 0
    for r in records:
        occurred_at = _to_db(r.occurred_at)
        row = session.exec(
            select(DrawRow)
            .where(DrawRow.time_label == r.time_label)
            .where(DrawRow.number == r.numeric_code)
            .where(DrawRow.animal == r.display_name)
        ).first()
        if row is None:
            session.add(DrawRow(number=r.numeric_code, animal=r.display_name, color=r.color_category,
                                time_label=r.time_label, occurred_at=occurred_at))
            inserted += 1
        elif _from_db(row.occurred_at) != occurred_at or row.color != r.color_category:
            row.occurred_at = occurred_at
            row.color = r.color_category
            session.add(row)
            updated += 1
    try:
        session.commit()
    except IntegrityError:
        # a concurrent writer stored the same identity first
        session.rollback()
        logger.warning("Draw upsert hit an identity conflict, treated as no-op")
        return UpsertCounts()
    if inserted or updated:
        logger.info(f"Stored {inserted} new draws, {updated} updated")
    return UpsertCounts(inserted, updated)


def get_draw_records(session: Session, limit: Optional[int] = None, skip: int = 0) -> list[DrawRecord]:
    q = select(DrawRow).order_by(DrawRow.occurred_at.desc(), DrawRow.id.desc()).offset(skip)
    if limit is not None and limit > 0:
        q = q.limit(limit)
    return [_draw_from_row(row) for row in session.exec(q).all()]


def count_draw_records(session: Session) -> int:
    return session.exec(select(func.count()).select_from(DrawRow)).one()


# Prediction history


def _insert_prediction(session: Session, resolved: ResolvedPrediction):
    entry = PredictionEntry(
        batch_id=resolved.batch.batch_id,
        issued_at=_to_db(resolved.batch.issued_at),
        payload=resolved.to_dict(),
        actual_number=resolved.actual_result.numeric_code,
        actual_time_label=resolved.actual_result.time_label,
        number_hit=resolved.number_hit,
        color_hit=resolved.color_hit,
        resolved_at=_to_db(resolved.resolved_at),
    )
    session.add(entry)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise IdentityConflictError(str(e.orig)) from e


def upsert_prediction_history(session: Session, resolved: ResolvedPrediction) -> bool:
    """Append a resolved prediction; False when its identity is already stored."""
    try:
        _insert_prediction(session, resolved)
    except IdentityConflictError:
        logger.info(f"Duplicate resolution for {resolved.match_key} ignored")
        return False
    return True


def get_prediction_history(session: Session, limit: Optional[int] = None) -> list[ResolvedPrediction]:
    q = select(PredictionEntry).order_by(PredictionEntry.issued_at.desc(), PredictionEntry.id.desc())
    if limit is not None and limit > 0:
        q = q.limit(limit)
    return [ResolvedPrediction.from_dict(row.payload) for row in session.exec(q).all()]


# Current prediction


def save_current_prediction(session: Session, batch: PredictionBatch) -> CurrentPrediction:
    for row in session.exec(select(CurrentPrediction)).all():
        session.delete(row)
    row = CurrentPrediction(batch_id=batch.batch_id, payload=batch.to_dict())
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def get_current_prediction(session: Session) -> Optional[PredictionBatch]:
    row = session.exec(select(CurrentPrediction).order_by(CurrentPrediction.saved_at.desc()).limit(1)).first()
    if not row:
        return None
    return PredictionBatch.from_dict(row.payload)
