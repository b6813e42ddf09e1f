"""
Closed-loop accuracy tracking.

A batch is Issued until the chronologically next draw arrives, which
resolves it exactly once. A batch replaced before that draw arrives is
never paired and never counted.
"""
from __future__ import annotations
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, Sequence
from animalitos.config import setup_logging
from animalitos.core.errors import InvariantViolation
from animalitos.core.types import (
    AccuracyDetail, AccuracySummary, DrawRecord, PredictionBatch,
    PredictionContext, ResolvedPrediction,
)
from animalitos.analytics.scoring import generate_prediction, RECENT_WINDOW

logger = setup_logging(__name__)

ACCURACY_WINDOW = 10


def pair(batch: PredictionBatch, draw: DrawRecord, now: datetime) -> ResolvedPrediction:
    return ResolvedPrediction(
        batch=batch,
        actual_result=draw,
        number_hit=draw.numeric_code in batch.candidate_codes,
        color_hit=batch.predicted_color.color_category == draw.color_category,
        resolved_at=now,
    )


def is_after_basis(batch: PredictionBatch, draw: DrawRecord) -> bool:
    if batch.based_on is None:
        return True
    if draw.identity == batch.based_on.identity:
        return False
    return draw.occurred_at > batch.based_on.occurred_at


def resolve(ctx: PredictionContext, draw: DrawRecord, now: datetime) -> ResolvedPrediction | None:
    """
    Pair the live batch with ``draw`` and append the result to ``ctx.resolved``.

    Returns None when there is nothing to resolve: no live batch, an empty
    (insufficient data) batch, a draw older than the batch's basis, or a
    draw that already resolved a batch.
    """
    batch = ctx.current
    if batch is None or batch.is_empty:
        return None
    if not is_after_basis(batch, draw):
        logger.debug(f"Draw {draw.numeric_code} {draw.time_label} predates batch {batch.batch_id}")
        return None
    if draw.match_key in ctx.resolved_keys():
        logger.info(f"Draw {draw.numeric_code} ({draw.time_label}) already resolved, skipping")
        return None
    if batch.batch_id in ctx.resolved_batch_ids():
        raise InvariantViolation(f"batch {batch.batch_id} already resolved")

    resolved = pair(batch, draw, now)
    ctx.resolved.append(resolved)
    logger.info(
        f"Resolved batch {batch.batch_id} with {draw.numeric_code} {draw.display_name} "
        f"({draw.time_label}): number {'hit' if resolved.number_hit else 'miss'}, "
        f"color {'hit' if resolved.color_hit else 'miss'}"
    )
    return resolved


def merge_draws(ctx: PredictionContext, records: Iterable[DrawRecord]) -> list[DrawRecord]:
    """Add unseen records to the history (kept newest-first); return the new ones."""
    known = ctx.known_identities()
    fresh = []
    for r in records:
        if r.identity not in known:
            known.add(r.identity)
            fresh.append(r)
    if fresh:
        ctx.draws = sorted(ctx.draws + fresh, key=lambda d: d.occurred_at, reverse=True)
    return fresh


def advance(ctx: PredictionContext, records: Iterable[DrawRecord], now: datetime,
            recent_window: int = RECENT_WINDOW) -> tuple[list[DrawRecord], ResolvedPrediction | None, PredictionBatch | None]:
    """
    Feed scraped records through the loop: merge, resolve, reissue.

    Only the oldest new draw that is newer than the batch's basis may
    resolve it. A new batch is issued whenever history changed or no
    batch is live yet.
    """
    fresh = merge_draws(ctx, records)

    resolved = None
    for draw in sorted(fresh, key=lambda d: d.occurred_at):
        resolved = resolve(ctx, draw, now)
        if resolved is not None:
            break

    batch = None
    if fresh or ctx.current is None:
        batch, ctx.temperature = generate_prediction(ctx.draws, now, recent_window)
        ctx.current = batch
    if fresh:
        ctx.last_new_draw_at = now
    return fresh, resolved, batch


def summarize(recent_draws: Sequence[DrawRecord], resolved: Iterable[ResolvedPrediction],
              window: int = ACCURACY_WINDOW) -> AccuracySummary:
    """Accuracy over the newest ``window`` real draws; unmatched draws count as misses."""
    index = {}
    for r in resolved:
        index.setdefault(r.match_key, r)

    details = []
    number_hits = color_hits = 0
    for draw in recent_draws[:window]:
        r = index.get(draw.match_key)
        if r is not None:
            number_hits += r.number_hit
            color_hits += r.color_hit
            details.append(AccuracyDetail(
                draw, r.batch.candidate_codes, r.batch.predicted_color.color_category,
                r.number_hit, r.color_hit))
        else:
            details.append(AccuracyDetail(draw, [], None, False, False))

    compared = len(details)
    if not compared:
        return AccuracySummary(0.0, 0.0, 0.0, 0)
    return AccuracySummary(
        number_accuracy_percent=round(number_hits / compared * 100, 1),
        color_accuracy_percent=round(color_hits / compared * 100, 1),
        combined_accuracy_percent=round((number_hits + color_hits) / (2 * compared) * 100, 1),
        sample_size=compared,
        number_hits=number_hits,
        color_hits=color_hits,
        details=details,
    )


def dedupe_resolved(resolved: Iterable[ResolvedPrediction]) -> list[ResolvedPrediction]:
    seen = set()
    out = []
    for r in resolved:
        if r.match_key in seen:
            continue
        seen.add(r.match_key)
        out.append(r)
    return out


def period_stats(resolved: Sequence[ResolvedPrediction], now: datetime | None = None,
                 days: int | None = None, last: int | None = None) -> dict:
    rows = list(resolved)
    if days is not None and now is not None:
        cutoff = now - timedelta(days=days)
        rows = [r for r in rows if r.actual_result.occurred_at >= cutoff]
    if last is not None:
        rows = rows[-last:]
    if not rows:
        return {'total': 0, 'number_accuracy': 0.0, 'color_accuracy': 0.0}
    return {
        'total': len(rows),
        'number_accuracy': round(sum(r.number_hit for r in rows) / len(rows) * 100, 1),
        'color_accuracy': round(sum(r.color_hit for r in rows) / len(rows) * 100, 1),
    }


def top_predicted(resolved: Iterable[ResolvedPrediction], limit: int = 15) -> list[dict]:
    counts, hits = Counter(), Counter()
    names = {}
    for r in resolved:
        for c in r.batch.candidate_set:
            counts[c.numeric_code] += 1
            names[c.numeric_code] = c.display_name
        if r.number_hit:
            hits[r.actual_result.numeric_code] += 1
    return [
        {'numeric_code': code, 'display_name': names[code], 'count': n, 'hits': hits[code]}
        for code, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
    ]
