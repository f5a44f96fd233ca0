"""
Rescan of already-published theories.

Catches content that was misclassified at submission time or that fails a
newer classifier. Items are processed one at a time with a pause in between
to stay under the LLM provider's rate limits. One bad item never aborts the
batch, and a failed run never raises.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, Field

from theorogram.config.settings import settings
from theorogram.db.connection import Database, get_database
from theorogram.db.models import TheoryRecord
from theorogram.db.repository import TheoryRepository
from theorogram.moderation.engine import ModerationEngine
from theorogram.moderation.models import PublicationState, RescanOutcome
from theorogram.logger import get_logger

logger = get_logger(__name__)


class RescanRun(BaseModel):
    started_at: datetime
    skipped: bool = False  # another run was still in flight
    failed: bool = False  # batch could not be fetched
    outcomes: list[RescanOutcome] = Field(default_factory=list)

    @property
    def demoted(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == "demoted")

    @property
    def errors(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == "error")


class Rescanner:
    def __init__(
        self,
        engine: ModerationEngine | None = None,
        database: Database | None = None,
        batch_size: int | None = None,
        item_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = database or (engine.db if engine else get_database())
        self.engine = engine or ModerationEngine(self.db)
        self.batch_size = batch_size or settings.rescan_batch_size
        self.item_delay = settings.rescan_item_delay_seconds if item_delay is None else item_delay
        self._sleep = sleep
        self._running = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._running.locked()

    def fetch_batch(self) -> list[TheoryRecord]:
        with self.db.session() as session:
            return TheoryRepository(session).fetch_rescan_batch(
                PublicationState.SAFE.value, limit=self.batch_size
            )

    def rescan_batch(self, items: list[TheoryRecord]) -> list[RescanOutcome]:
        outcomes: list[RescanOutcome] = []
        for index, theory in enumerate(items):
            try:
                outcome = self.engine.rescan_item(theory)
                if outcome.outcome == "demoted":
                    logger.info(
                        "rescan_reclassified",
                        theory_id=theory.id,
                        classification=outcome.classification.value,
                    )
            except Exception as e:
                logger.error("rescan_item_failed", theory_id=theory.id, error=str(e))
                outcome = RescanOutcome(theory_id=theory.id, outcome="error", error=str(e))
            outcomes.append(outcome)

            if self.item_delay > 0 and index < len(items) - 1:
                self._sleep(self.item_delay)
        return outcomes

    def run_once(self) -> RescanRun:
        """One scheduled run. Skips instead of queueing if a run is active."""
        run = RescanRun(started_at=datetime.now(timezone.utc))
        if not self._running.acquire(blocking=False):
            logger.warning("rescan_skipped_in_progress")
            run.skipped = True
            return run

        try:
            logger.info("rescan_started")
            try:
                items = self.fetch_batch()
            except Exception as e:
                logger.error("rescan_fetch_failed", error=str(e))
                run.failed = True
                return run

            logger.info("rescan_batch_fetched", count=len(items))
            run.outcomes = self.rescan_batch(items)
            logger.info(
                "rescan_complete",
                scanned=len(run.outcomes),
                demoted=run.demoted,
                errors=run.errors,
            )
            return run
        finally:
            self._running.release()
