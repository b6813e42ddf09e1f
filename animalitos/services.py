from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence
from sqlmodel import Session
from animalitos.config import settings, setup_logging
from animalitos.core.registry import get_animal
from animalitos.core.types import DrawRecord, PredictionBatch, PredictionContext, ResolvedPrediction
from animalitos.core.validation import parse_time_label, infer_occurred_at
from animalitos.db.crud import (
    upsert_draw_records, get_draw_records, upsert_prediction_history,
    get_prediction_history, save_current_prediction, get_current_prediction,
)
from animalitos.tracking.accuracy import advance, summarize, dedupe_resolved, period_stats, top_predicted
from animalitos.analytics.scoring import generate_prediction
from animalitos.analytics.stats import appearance_stats
from animalitos.analytics.temperature import classify

logger = setup_logging(__name__)


@dataclass(frozen=True)
class IngestOutcome:
    inserted: int
    updated: int
    fresh: list[DrawRecord]
    resolved: Optional[ResolvedPrediction]
    batch: Optional[PredictionBatch]


def load_context(session: Session) -> PredictionContext:
    draws = get_draw_records(session)
    resolved = dedupe_resolved(reversed(get_prediction_history(session)))
    current = get_current_prediction(session)
    recent = draws[:settings.recent_window]
    ctx = PredictionContext(
        draws=draws,
        current=current,
        resolved=resolved,
        temperature=classify(appearance_stats(recent), len(draws)),
    )
    logger.info(f"Context loaded: {len(draws)} draws, {len(resolved)} resolved predictions, "
                f"live batch: {'yes' if current else 'no'}")
    return ctx


def issue_prediction(session: Session, ctx: PredictionContext, now: datetime) -> PredictionBatch:
    batch, ctx.temperature = generate_prediction(ctx.draws, now, settings.recent_window)
    ctx.current = batch
    save_current_prediction(session, batch)
    return batch


def ingest_draws(session: Session, ctx: PredictionContext, records: Iterable[DrawRecord],
                 now: datetime) -> IngestOutcome:
    records = list(records)
    counts = upsert_draw_records(session, records)
    fresh, resolved, batch = advance(ctx, records, now, settings.recent_window)

    if resolved is not None:
        upsert_prediction_history(session, resolved)
    if batch is not None:
        save_current_prediction(session, batch)
        if batch.is_empty:
            logger.warning(f"Only {len(ctx.draws)} draws stored, prediction is empty (insufficient data)")
    return IngestOutcome(counts.inserted, counts.updated, fresh, resolved, batch)


# Read views


def current_prediction_view(ctx: PredictionContext) -> Optional[dict]:
    batch = ctx.current
    if batch is None or batch.is_empty:
        return None
    return {
        'batch_id': batch.batch_id,
        'issued_at': batch.issued_at.isoformat(),
        'candidate_set': [
            dict(c.to_dict(), probability=round(c.probability, 1), confidence=round(c.confidence, 1))
            for c in batch.candidate_set
        ],
        'predicted_color': batch.predicted_color.to_dict(),
        'source_result_count': batch.source_result_count,
    }


def last_results_view(ctx: PredictionContext, recent: Sequence[DrawRecord], n: int = 10) -> list[dict]:
    index = {r.match_key: r for r in ctx.resolved}
    out = []
    for d in recent[:n]:
        r = index.get(d.match_key)
        out.append(dict(
            d.to_dict(),
            number_hit=r.number_hit if r else None,
            color_hit=r.color_hit if r else None,
        ))
    return out


def accuracy_view(ctx: PredictionContext, recent: Sequence[DrawRecord], window: int) -> dict:
    summary = summarize(recent, ctx.resolved, window)
    return {
        'status': 'insufficient data' if summary.insufficient else 'ok',
        'number_accuracy_percent': summary.number_accuracy_percent,
        'color_accuracy_percent': summary.color_accuracy_percent,
        'combined_accuracy_percent': summary.combined_accuracy_percent,
        'sample_size': summary.sample_size,
        'number_hits': summary.number_hits,
        'color_hits': summary.color_hits,
        'total_predictions': len(ctx.resolved),
        'details': [
            {
                'draw': det.draw.to_dict(),
                'predicted_codes': det.predicted_codes,
                'predicted_color': det.predicted_color,
                'number_hit': det.number_hit,
                'color_hit': det.color_hit,
            }
            for det in summary.details
        ],
    }


def prediction_history_view(ctx: PredictionContext, limit: Optional[int] = None) -> list[dict]:
    rows = sorted(ctx.resolved, key=lambda r: r.batch.issued_at, reverse=True)
    if limit:
        rows = rows[:limit]
    out = []
    for r in rows:
        winner = r.winning_candidate
        out.append({
            'batch_id': r.batch.batch_id,
            'issued_at': r.batch.issued_at.isoformat(),
            'candidate_codes': r.batch.candidate_codes,
            'predicted_color': r.batch.predicted_color.color_category,
            'actual_result': r.actual_result.to_dict(),
            'number_hit': r.number_hit,
            'color_hit': r.color_hit,
            'winning_candidate': winner.to_dict() if winner else None,
        })
    return out


def animal_history_view(ctx: PredictionContext, number: int, now: datetime) -> dict:
    animal = get_animal(number)
    appearances = [d for d in ctx.draws if d.numeric_code == number]

    recent = []
    for d in appearances:
        seen_at = infer_occurred_at(d.time_label, now, settings.site_timezone)
        minutes = int((now - seen_at).total_seconds() // 60)
        if 0 <= minutes <= 24 * 60:
            recent.append({'time_label': d.time_label, 'gap_minutes': minutes})
    recent.sort(key=lambda a: a['gap_minutes'])

    last100 = ctx.draws[:100]
    hour_pattern = [0] * 24
    for d in last100:
        if d.numeric_code == number:
            hour_pattern[parse_time_label(d.time_label)[0]] += 1

    return {
        'numeric_code': number,
        'display_name': animal.name,
        'color_category': animal.color,
        'all_appearances': [d.to_dict() for d in appearances],
        'recent_appearances': recent[:5],
        'last100_appearances': sum(1 for d in last100 if d.numeric_code == number),
        'hour_pattern': hour_pattern,
    }


def temperature_view(ctx: PredictionContext) -> dict:
    temp = ctx.temperature or classify(appearance_stats(ctx.draws[:settings.recent_window]), len(ctx.draws))

    def entries(bucket):
        return [
            {'numeric_code': e.numeric_code, 'display_name': e.display_name, 'color_category': e.color_category,
             'frequency': e.frequency, 'percentage': round(e.percentage, 1), 'last_seen': e.last_seen}
            for e in bucket
        ]

    return {
        'hot': entries(temp.hot),
        'warm': entries(temp.warm),
        'cold': entries(temp.cold),
        'hot_threshold': temp.hot_threshold,
        'warm_threshold': temp.warm_threshold,
        'scaled': temp.scaled,
    }


def comprehensive_stats(ctx: PredictionContext, recent: Sequence[DrawRecord], now: datetime) -> dict:
    summary = summarize(recent, ctx.resolved, settings.accuracy_window)
    return {
        'total_predictions': len(ctx.resolved),
        'number_accuracy_percent': summary.number_accuracy_percent,
        'color_accuracy_percent': summary.color_accuracy_percent,
        'combined_accuracy_percent': summary.combined_accuracy_percent,
        'last_7_days': period_stats(ctx.resolved, now, days=7),
        'last_30_days': period_stats(ctx.resolved, now, days=30),
        'last_100': period_stats(ctx.resolved, last=100),
        'top_predicted': top_predicted(ctx.resolved),
    }


def since_last_new_draw(ctx: PredictionContext, now: datetime) -> Optional[timedelta]:
    if ctx.last_new_draw_at is None:
        return None
    return now - ctx.last_new_draw_at
