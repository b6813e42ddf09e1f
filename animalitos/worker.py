"""
Background poller.

One thread scrapes the results page every few seconds, pushes new draws
through the predict/resolve loop and hands the outcome to the notifier.
All mutation of the shared context happens under ``Poller.lock``.
"""
import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from animalitos.config import settings, setup_logging
from animalitos.core.errors import InvariantViolation, SourceUnavailableError
from animalitos.core.types import DrawRecord, PredictionContext
from animalitos.db.base import engine
from animalitos.scraper import scrape_latest
from animalitos.services import IngestOutcome, ingest_draws, issue_prediction, since_last_new_draw

logger = setup_logging(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Poller:
    def __init__(self, ctx: PredictionContext,
                 session_factory: Callable[[], Session] = lambda: Session(engine),
                 fetch: Callable[[datetime], list[DrawRecord]] = scrape_latest,
                 clock: Callable[[], datetime] = utcnow,
                 notifier=None):
        self.ctx = ctx
        self.session_factory = session_factory
        self.fetch = fetch
        self.clock = clock
        self.notifier = notifier
        self.lock = threading.RLock()
        self.last_error: Optional[str] = None
        self.last_tick_at: Optional[datetime] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> Optional[IngestOutcome]:
        """One scrape + ingest cycle. Returns None when the source or the store failed."""
        now = self.clock()
        try:
            records = self.fetch(now)
        except SourceUnavailableError as e:
            self.last_error = str(e)
            logger.warning(f"Scrape failed, keeping previous state: {e}")
            return None

        with self.lock:
            with self.session_factory() as session:
                try:
                    outcome = ingest_draws(session, self.ctx, records, now)
                except SQLAlchemyError as e:
                    session.rollback()
                    self.last_error = f"store write failed: {e}"
                    logger.error(f"Store write failed, continuing on resident history: {e}")
                    return None
            self.last_error = None
            self.last_tick_at = now

        if outcome.fresh:
            logger.info(f"{len(outcome.fresh)} new draws, latest "
                        f"{self.ctx.draws[0].numeric_code} {self.ctx.draws[0].display_name} "
                        f"({self.ctx.draws[0].time_label})")
        if self.notifier is not None and (outcome.fresh or outcome.resolved):
            try:
                self.notifier.check_and_notify(outcome)
            except Exception as e:  # notification failures never stop polling
                logger.error(f"Notifier failed: {e}")
        return outcome

    def force_update(self) -> Optional[IngestOutcome]:
        """Scrape now and reissue the batch even when nothing new arrived."""
        outcome = self.tick()
        if outcome is None or outcome.batch is not None:
            return outcome
        with self.lock:
            with self.session_factory() as session:
                try:
                    batch = issue_prediction(session, self.ctx, self.clock())
                except SQLAlchemyError as e:
                    session.rollback()
                    self.last_error = f"store write failed: {e}"
                    logger.error(f"Could not store the reissued batch: {e}")
                    return outcome
        return IngestOutcome(outcome.inserted, outcome.updated, outcome.fresh, outcome.resolved, batch)

    def is_stale(self) -> bool:
        # never having seen a new draw counts as stale
        gap = since_last_new_draw(self.ctx, self.clock())
        return gap is None or gap.total_seconds() > settings.stale_after_seconds

    def health_check(self) -> bool:
        if not self.is_stale():
            return True
        logger.warning(f"No new draws for over {settings.stale_after_seconds / 60:.0f} minutes, forcing a refresh")
        self.tick()
        return not self.is_stale()

    def live_recent_draws(self, n: int) -> Sequence[DrawRecord]:
        """Freshly scraped draws, or the stored history when the page is unreachable."""
        try:
            records = self.fetch(self.clock())
        except SourceUnavailableError as e:
            logger.warning(f"Live scrape failed, using stored history: {e}")
            records = []
        if records:
            return sorted(records, key=lambda d: d.occurred_at, reverse=True)[:n]
        with self.lock:
            return list(self.ctx.draws[:n])

    def run_forever(self):
        last_health = self.clock()
        while not self._stop.is_set():
            try:
                self.tick()
                now = self.clock()
                if (now - last_health).total_seconds() >= settings.health_check_seconds:
                    self.health_check()
                    last_health = now
            except InvariantViolation:
                logger.critical("Invariant violated, stopping the poller", exc_info=True)
                raise
            except Exception as e:
                self.last_error = str(e)
                logger.exception(f"Poll cycle failed, retrying: {e}")
            self._stop.wait(settings.refresh_seconds)

    def start(self) -> threading.Thread:
        if self._thread is None or not self._thread.is_alive():
            self._stop.clear()
            self._thread = threading.Thread(target=self.run_forever, name="animalitos-poller", daemon=True)
            self._thread.start()
            logger.info(f"Poller started, refreshing every {settings.refresh_seconds}s")
        return self._thread

    def stop(self, timeout: float = 5):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
