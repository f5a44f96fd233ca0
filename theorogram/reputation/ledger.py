"""
Reputation ledger.

Reputation changes are side effects of other actions (posting, voting,
taking stances). They are best effort: failures are logged and never
propagate to the caller.
"""

from pydantic import BaseModel

from theorogram.db.connection import Database, get_database
from theorogram.db.models import UserCreate
from theorogram.db.repository import UserRepository
from theorogram.reputation.levels import LEVEL_THRESHOLDS, RepAction
from theorogram.logger import get_logger

logger = get_logger(__name__)


class ReputationAccount(BaseModel):
    user_id: str
    reputation_score: int
    level: int

    model_config = {"frozen": True}


class ReputationLedger:
    def __init__(self, database: Database | None = None):
        self.db = database or get_database()
        self._thresholds = [t.min_rep for t in LEVEL_THRESHOLDS]

    def open_account(self, username: str, role: str = "user") -> ReputationAccount:
        """Create the user row for an identity-provider account. Starts at 0 / level 1."""
        with self.db.session() as session:
            user_id = UserRepository(session).insert(UserCreate(username=username, role=role))
        logger.info("account_opened", user_id=user_id, username=username)
        return ReputationAccount(user_id=user_id, reputation_score=0, level=1)

    def get_account(self, user_id: str) -> ReputationAccount | None:
        with self.db.session() as session:
            user = UserRepository(session).get(user_id)
        if user is None:
            return None
        return ReputationAccount(
            user_id=user.id, reputation_score=user.reputation_score, level=user.level
        )

    def apply_delta(self, user_id: str, amount: int) -> ReputationAccount | None:
        """Atomically add *amount* to a user's score and re-derive the level."""
        if amount == 0:
            return None

        try:
            with self.db.session() as session:
                updated = UserRepository(session).increment_reputation(
                    user_id, amount, self._thresholds
                )
        except Exception as e:
            logger.error("reputation_update_failed", user_id=user_id, amount=amount, error=str(e))
            return None

        if updated is None:
            logger.error("reputation_user_not_found", user_id=user_id, amount=amount)
            return None

        score, level = updated
        logger.info("reputation_updated", user_id=user_id, amount=amount, score=score, level=level)
        return ReputationAccount(user_id=user_id, reputation_score=score, level=level)

    def award(self, user_id: str, action: RepAction) -> ReputationAccount | None:
        return self.apply_delta(user_id, action.points)
