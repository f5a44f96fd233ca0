"""
Read path for theories.

Visibility:
    safe         -> everyone
    shadowbanned -> only the author
"""

from theorogram.db.connection import Database, get_database
from theorogram.db.models import TheoryRecord
from theorogram.db.repository import TheoryRepository
from theorogram.moderation.models import PublicationState
from theorogram.services.cache import THEORIES_LIST_PREFIX, MemoryCache, theory_key
from theorogram.logger import get_logger

logger = get_logger(__name__)


def is_visible(theory: TheoryRecord, viewer_id: str | None) -> bool:
    if theory.moderation_status == PublicationState.SAFE.value:
        return True
    if theory.moderation_status == PublicationState.SHADOWBANNED.value:
        return viewer_id is not None and viewer_id == theory.user_id
    return False


class TheoryFeed:
    def __init__(self, database: Database | None = None, cache: MemoryCache | None = None):
        self.db = database or get_database()
        self.cache = cache or MemoryCache()

    def get(self, theory_id: str, viewer_id: str | None = None) -> TheoryRecord | None:
        key = theory_key(theory_id)
        theory = self.cache.get(key)
        if theory is None:
            with self.db.session() as session:
                theory = TheoryRepository(session).get(theory_id)
            if theory is None:
                return None
            self.cache.set(key, theory)

        return theory if is_visible(theory, viewer_id) else None

    def list_public(self, limit: int = 20, offset: int = 0) -> list[TheoryRecord]:
        """Safe theories, newest first."""
        key = f"{THEORIES_LIST_PREFIX}:{limit}:{offset}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        with self.db.session() as session:
            theories = TheoryRepository(session).fetch_by_status(
                PublicationState.SAFE.value, limit=limit, offset=offset, newest_first=True
            )
        self.cache.set(key, theories)
        logger.debug("theories_listed", count=len(theories), offset=offset)
        return theories
