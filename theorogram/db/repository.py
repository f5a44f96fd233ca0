"""Repository layer: all SQL operations isolated here"""

import json
import uuid
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import text
from sqlalchemy.orm import Session

from theorogram.db.models import (
    AuditLogCreate,
    AuditLogEntry,
    ModerationLogCreate,
    ModerationLogEntry,
    TheoryCreate,
    TheoryRecord,
    UserCreate,
    UserRecord,
)
from theorogram.logger import get_logger

logger = get_logger(__name__)

_USER_COLUMNS = (
    "id, username, role, reputation_score, level, banned_status, "
    "shadowbanned, suspended_until, created_at"
)
_THEORY_COLUMNS = (
    "id, user_id, title, body, refs, moderation_status, complexity_score, "
    "is_mature, last_rescanned_at, created_at"
)


def _new_id() -> str:
    return str(uuid.uuid4())


class UserRepository:
    """
    Repository for user accounts and their reputation columns.
    """

    def __init__(self, session: Session):
        self.session = session

    def insert(self, user: UserCreate) -> str:
        user_id = _new_id()
        self.session.execute(
            text(
                "INSERT INTO users (id, username, role, reputation_score, level) "
                "VALUES (:id, :username, :role, 0, 1)"
            ),
            {"id": user_id, **user.model_dump()},
        )
        return user_id

    def get(self, user_id: str) -> UserRecord | None:
        row = self.session.execute(
            text(f"SELECT {_USER_COLUMNS} FROM users WHERE id = :id"),
            {"id": user_id},
        ).mappings().first()
        return UserRecord(**row) if row else None

    def increment_reputation(
        self, user_id: str, amount: int, thresholds: Sequence[int]
    ) -> tuple[int, int] | None:
        """
        Add *amount* to the score and recompute the level in one statement.

        Both SET expressions read the pre-update score, so score and level
        always move together and concurrent increments never overwrite each
        other. Returns the new (score, level), or None for an unknown user.
        """
        new_score = "reputation_score + :amount"
        params: dict = {"id": user_id, "amount": amount}
        whens = []
        for index in reversed(range(len(thresholds))):
            params[f"t{index}"] = thresholds[index]
            whens.append(f"WHEN {new_score} >= :t{index} THEN {index + 1}")

        row = self.session.execute(
            text(
                f"UPDATE users SET reputation_score = {new_score}, "
                f"level = CASE {' '.join(whens)} ELSE 1 END "
                "WHERE id = :id RETURNING reputation_score, level"
            ),
            params,
        ).first()
        if row is None:
            return None
        return row.reputation_score, row.level

    def set_flags(self, user_id: str, **flags) -> bool:
        """Update moderation flags (banned_status, shadowbanned, suspended_until)."""
        allowed = {"banned_status", "shadowbanned", "suspended_until"}
        unknown = set(flags) - allowed
        if unknown:
            raise ValueError(f"Unknown user flags: {sorted(unknown)}")

        params = {"id": user_id}
        assignments = []
        for name, value in flags.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            params[name] = value
            assignments.append(f"{name} = :{name}")

        result = self.session.execute(
            text(f"UPDATE users SET {', '.join(assignments)} WHERE id = :id"),
            params,
        )
        return result.rowcount > 0


class TheoryRepository:
    def __init__(self, session: Session):
        self.session = session

    def insert(self, theory: TheoryCreate) -> TheoryRecord:
        theory_id = _new_id()
        self.session.execute(
            text(
                "INSERT INTO theories "
                "(id, user_id, title, body, refs, moderation_status, complexity_score) "
                "VALUES (:id, :user_id, :title, :body, :refs, :moderation_status, :complexity_score)"
            ),
            {
                **theory.model_dump(),
                "id": theory_id,
                "refs": json.dumps(theory.refs) if theory.refs else None,
            },
        )
        self.session.flush()
        record = self.get(theory_id)
        logger.debug("theory_inserted", theory_id=theory_id, status=theory.moderation_status)
        return record

    def get(self, theory_id: str) -> TheoryRecord | None:
        row = self.session.execute(
            text(f"SELECT {_THEORY_COLUMNS} FROM theories WHERE id = :id"),
            {"id": theory_id},
        ).mappings().first()
        return TheoryRecord(**row) if row else None

    def fetch_by_status(
        self, status: str, limit: int, offset: int = 0, newest_first: bool = False
    ) -> list[TheoryRecord]:
        order = "DESC" if newest_first else "ASC"
        result = self.session.execute(
            text(
                f"SELECT {_THEORY_COLUMNS} FROM theories "
                "WHERE moderation_status = :status "
                f"ORDER BY created_at {order} LIMIT :limit OFFSET :offset"
            ),
            {"status": status, "limit": limit, "offset": offset},
        )
        return [TheoryRecord(**r) for r in result.mappings().fetchall()]

    def fetch_rescan_batch(self, status: str, limit: int) -> list[TheoryRecord]:
        """Never-rescanned theories first, then the least recently rescanned."""
        result = self.session.execute(
            text(
                f"SELECT {_THEORY_COLUMNS} FROM theories "
                "WHERE moderation_status = :status "
                "ORDER BY CASE WHEN last_rescanned_at IS NULL THEN 0 ELSE 1 END, "
                "last_rescanned_at ASC, created_at ASC, id ASC LIMIT :limit"
            ),
            {"status": status, "limit": limit},
        )
        return [TheoryRecord(**r) for r in result.mappings().fetchall()]

    def mark_rescanned(self, theory_id: str) -> bool:
        # Fixed-width UTC text so SQLite orders it correctly.
        now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")
        result = self.session.execute(
            text("UPDATE theories SET last_rescanned_at = :now WHERE id = :id"),
            {"id": theory_id, "now": now},
        )
        return result.rowcount > 0

    def update_status(
        self, theory_id: str, new_status: str, expected_status: str | None = None
    ) -> bool:
        """Set moderation_status; with *expected_status* only if it still holds."""
        sql = "UPDATE theories SET moderation_status = :new_status WHERE id = :id"
        params = {"id": theory_id, "new_status": new_status}
        if expected_status is not None:
            sql += " AND moderation_status = :expected_status"
            params["expected_status"] = expected_status
        return self.session.execute(text(sql), params).rowcount > 0

    def set_mature(self, theory_id: str, is_mature: bool) -> bool:
        result = self.session.execute(
            text("UPDATE theories SET is_mature = :is_mature WHERE id = :id"),
            {"id": theory_id, "is_mature": is_mature},
        )
        return result.rowcount > 0

    def delete(self, theory_id: str) -> bool:
        result = self.session.execute(
            text("DELETE FROM theories WHERE id = :id"), {"id": theory_id}
        )
        return result.rowcount > 0


class ModerationLogRepository:
    """Append-only access to moderation_logs."""

    def __init__(self, session: Session):
        self.session = session

    def append(self, entry: ModerationLogCreate) -> ModerationLogEntry:
        entry_id = _new_id()
        self.session.execute(
            text(
                "INSERT INTO moderation_logs "
                "(id, theory_id, classification, confidence, action_taken, reasoning) "
                "VALUES (:id, :theory_id, :classification, :confidence, :action_taken, :reasoning)"
            ),
            {"id": entry_id, **entry.model_dump()},
        )
        self.session.flush()
        return self._fetch_one(entry_id)

    def fetch(self, theory_id: str | None = None, limit: int = 200) -> list[ModerationLogEntry]:
        """Entries for one theory (or all entries), most recent first."""
        sql = (
            "SELECT id, theory_id, classification, confidence, action_taken, "
            "reasoning, created_at FROM moderation_logs"
        )
        params: dict = {"limit": limit}
        if theory_id is not None:
            sql += " WHERE theory_id = :theory_id"
            params["theory_id"] = theory_id
        sql += " ORDER BY created_at DESC LIMIT :limit"
        result = self.session.execute(text(sql), params)
        return [self._to_entry(r) for r in result.mappings().fetchall()]

    def _fetch_one(self, entry_id: str) -> ModerationLogEntry:
        row = self.session.execute(
            text(
                "SELECT id, theory_id, classification, confidence, action_taken, "
                "reasoning, created_at FROM moderation_logs WHERE id = :id"
            ),
            {"id": entry_id},
        ).mappings().one()
        return self._to_entry(row)

    @staticmethod
    def _to_entry(row) -> ModerationLogEntry:
        return ModerationLogEntry(**{**row, "reasoning": row["reasoning"] or ""})


class AuditLogRepository:
    """Append-only access to audit_logs."""

    def __init__(self, session: Session):
        self.session = session

    def append(self, entry: AuditLogCreate) -> AuditLogEntry:
        entry_id = _new_id()
        self.session.execute(
            text(
                "INSERT INTO audit_logs (id, admin_id, action, target_type, target_id, reason) "
                "VALUES (:id, :admin_id, :action, :target_type, :target_id, :reason)"
            ),
            {"id": entry_id, **entry.model_dump()},
        )
        self.session.flush()
        row = self.session.execute(
            text(
                "SELECT id, admin_id, action, target_type, target_id, reason, created_at "
                "FROM audit_logs WHERE id = :id"
            ),
            {"id": entry_id},
        ).mappings().one()
        return AuditLogEntry(**row)

    def fetch(self, target_id: str | None = None, limit: int = 50) -> list[AuditLogEntry]:
        sql = (
            "SELECT id, admin_id, action, target_type, target_id, reason, created_at "
            "FROM audit_logs"
        )
        params: dict = {"limit": limit}
        if target_id is not None:
            sql += " WHERE target_id = :target_id"
            params["target_id"] = target_id
        sql += " ORDER BY created_at DESC LIMIT :limit"
        result = self.session.execute(text(sql), params)
        return [AuditLogEntry(**{**r, "reason": r["reason"] or ""}) for r in result.mappings().fetchall()]
