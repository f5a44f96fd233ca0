"""
Admin moderation actions.

Each successful action changes state and appends one audit entry in the same
transaction, so an action is never visible without its audit record.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from theorogram.db.connection import Database, get_database
from theorogram.db.models import UserRecord
from theorogram.db.repository import TheoryRepository, UserRepository
from theorogram.moderation.audit import AuditTrail
from theorogram.moderation.models import PublicationState
from theorogram.services.cache import MemoryCache


class AdminActionError(ValueError):
    """The requested admin action is not allowed or its target does not exist."""


class AdminActions:
    def __init__(
        self,
        actor_id: str,
        database: Database | None = None,
        audit: AuditTrail | None = None,
        cache: MemoryCache | None = None,
    ):
        self.actor_id = actor_id
        self.db = database or get_database()
        self.audit = audit or AuditTrail(self.db)
        self.cache = cache

    # Theories

    def delete_theory(self, theory_id: str, reason: str | None = None) -> None:
        with self.db.session() as session:
            if not TheoryRepository(session).delete(theory_id):
                raise AdminActionError(f"Theory not found: {theory_id}")
            self._audit(session, "delete_theory", "theory", theory_id, reason)
        self._invalidate(theory_id)

    def set_theory_status(
        self, theory_id: str, status: PublicationState, reason: str | None = None
    ) -> None:
        """Restore a theory to safe or hide it as shadowbanned."""
        if status == PublicationState.UNSAFE:
            raise AdminActionError("Use delete_theory to remove content")
        with self.db.session() as session:
            if not TheoryRepository(session).update_status(theory_id, status.value):
                raise AdminActionError(f"Theory not found: {theory_id}")
            action = "restore_theory" if status == PublicationState.SAFE else "shadowban_theory"
            self._audit(session, action, "theory", theory_id, reason)
        self._invalidate(theory_id)

    def flag_mature(self, theory_id: str, is_mature: bool = True, reason: str | None = None) -> None:
        with self.db.session() as session:
            if not TheoryRepository(session).set_mature(theory_id, is_mature):
                raise AdminActionError(f"Theory not found: {theory_id}")
            action = "flag_mature" if is_mature else "unflag_mature"
            self._audit(session, action, "theory", theory_id, reason)
        self._invalidate(theory_id)

    # Users

    def ban_user(self, user_id: str, reason: str | None = None) -> None:
        with self.db.session() as session:
            target = self._target_user(session, user_id)
            if target.is_admin:
                raise AdminActionError("Cannot ban other administrators")
            UserRepository(session).set_flags(user_id, banned_status=True)
            self._audit(session, "ban_user", "user", user_id, reason)

    def unban_user(self, user_id: str, reason: str | None = None) -> None:
        self._set_user_flags("unban_user", user_id, reason, banned_status=False)

    def suspend_user(self, user_id: str, duration_hours: int, reason: str | None = None) -> datetime:
        if not duration_hours or duration_hours < 1:
            raise AdminActionError("Duration must be at least 1 hour")
        until = datetime.now(timezone.utc) + timedelta(hours=duration_hours)
        self._set_user_flags(
            "suspend", user_id, reason or f"Suspended for {duration_hours}h", suspended_until=until
        )
        return until

    def unsuspend_user(self, user_id: str) -> None:
        self._set_user_flags("unsuspend", user_id, "Suspension lifted", suspended_until=None)

    def shadowban_user(self, user_id: str, reason: str | None = None) -> None:
        self._set_user_flags("shadowban", user_id, reason, shadowbanned=True)

    def unshadowban_user(self, user_id: str) -> None:
        self._set_user_flags("unshadowban", user_id, "Shadowban lifted", shadowbanned=False)

    # Helpers

    def _set_user_flags(self, action: str, user_id: str, reason: str | None, **flags) -> None:
        with self.db.session() as session:
            self._target_user(session, user_id)
            UserRepository(session).set_flags(user_id, **flags)
            self._audit(session, action, "user", user_id, reason)

    def _target_user(self, session: Session, user_id: str) -> UserRecord:
        if user_id == self.actor_id:
            raise AdminActionError("Cannot moderate yourself")
        user = UserRepository(session).get(user_id)
        if user is None:
            raise AdminActionError(f"User not found: {user_id}")
        return user

    def _audit(
        self, session: Session, action: str, target_type: str, target_id: str, reason: str | None
    ) -> None:
        self.audit.record_admin_action(
            self.actor_id, action, target_type, target_id, reason, session=session
        )

    def _invalidate(self, theory_id: str) -> None:
        if self.cache is not None:
            self.cache.invalidate_theory(theory_id)
