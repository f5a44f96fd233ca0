"""
Audit trail: every trust-affecting decision, recorded once and never changed.

Two sources write here:
    - the classifier pipeline (system actor) -> moderation_logs
    - admin moderation actions (human actor) -> audit_logs
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from theorogram.db.connection import Database, get_database
from theorogram.db.models import AuditLogCreate, AuditLogEntry, ModerationLogCreate, ModerationLogEntry
from theorogram.db.repository import AuditLogRepository, ModerationLogRepository
from theorogram.moderation.models import ActionTaken, ModerationResult
from theorogram.logger import get_logger

logger = get_logger(__name__)

NO_REASON = "No reason provided"


class AuditTrail:
    def __init__(self, database: Database | None = None):
        self.db = database or get_database()

    @contextmanager
    def _session(self, session: Session | None) -> Generator[Session, None, None]:
        # Join the caller's transaction when one is given.
        if session is not None:
            yield session
        else:
            with self.db.session() as own:
                yield own

    def record_classification(
        self,
        theory_id: str | None,
        result: ModerationResult,
        action: ActionTaken,
        session: Session | None = None,
    ) -> ModerationLogEntry:
        """Append one classifier decision. *theory_id* is None for blocked content."""
        with self._session(session) as s:
            entry = ModerationLogRepository(s).append(
                ModerationLogCreate(
                    theory_id=theory_id,
                    classification=result.classification.value,
                    confidence=result.confidence,
                    action_taken=action.value,
                    reasoning=result.reasoning,
                )
            )
        logger.info(
            "moderation_logged",
            theory_id=theory_id,
            action=action.value,
            classification=result.classification.value,
        )
        return entry

    def record_admin_action(
        self,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        reason: str | None = None,
        session: Session | None = None,
    ) -> AuditLogEntry:
        with self._session(session) as s:
            entry = AuditLogRepository(s).append(
                AuditLogCreate(
                    admin_id=actor_id,
                    action=action,
                    target_type=target_type,
                    target_id=target_id,
                    reason=reason or NO_REASON,
                )
            )
        logger.info("admin_action_logged", actor=actor_id, action=action, target_id=target_id)
        return entry

    def classification_history(
        self, theory_id: str | None = None, limit: int = 200
    ) -> list[ModerationLogEntry]:
        with self.db.session() as session:
            return ModerationLogRepository(session).fetch(theory_id, limit=limit)

    def admin_history(self, target_id: str | None = None, limit: int = 50) -> list[AuditLogEntry]:
        with self.db.session() as session:
            return AuditLogRepository(session).fetch(target_id, limit=limit)
