"""
Moderation decision engine.

Submission:
    1. Validate title/body lengths (no classifier call on bad input)
    2. Classify via the LLM adapter (fail-open fallback on errors)
    3. unsafe -> log with no theory reference, reject
       nsfw   -> store as shadowbanned, log, award reputation
       safe   -> store as safe, log, award reputation

Rescan (safe theories only, least recently rescanned first):
    nsfw/unsafe -> demote to shadowbanned, log as shadowbanned_rescan
    safe        -> only last_rescanned_at is stamped
    fallback    -> nothing is written, reported as an error
"""

from theorogram.config.settings import settings
from theorogram.db.connection import Database, get_database
from theorogram.db.models import ModerationLogEntry, TheoryCreate, TheoryRecord
from theorogram.db.repository import TheoryRepository
from theorogram.moderation.audit import AuditTrail
from theorogram.moderation.classifier import ContentClassifier
from theorogram.moderation.complexity import calculate_complexity_score
from theorogram.moderation.models import (
    ActionTaken,
    Classification,
    ContentValidationError,
    ModerationResult,
    PublicationState,
    RescanOutcome,
    SubmissionOutcome,
)
from theorogram.reputation.ledger import ReputationLedger
from theorogram.reputation.levels import RepAction
from theorogram.services.cache import MemoryCache
from theorogram.logger import get_logger

logger = get_logger(__name__)

MESSAGES = {
    ActionTaken.PUBLISHED: "Theory published successfully",
    ActionTaken.SHADOWBANNED: "Theory submitted but flagged for review",
    ActionTaken.BLOCKED: "Theory submission blocked due to content policy violation",
}


def decide(classification: Classification) -> tuple[PublicationState, ActionTaken]:
    """Submission-time mapping from classification to state and action."""
    if classification == Classification.UNSAFE:
        return PublicationState.UNSAFE, ActionTaken.BLOCKED
    if classification == Classification.NSFW:
        return PublicationState.SHADOWBANNED, ActionTaken.SHADOWBANNED
    return PublicationState.SAFE, ActionTaken.PUBLISHED


def decide_rescan(
    classification: Classification,
) -> tuple[PublicationState | None, ActionTaken | None]:
    """Rescan mapping. Published content is demoted, never removed."""
    if classification in (Classification.NSFW, Classification.UNSAFE):
        return PublicationState.SHADOWBANNED, ActionTaken.SHADOWBANNED_RESCAN
    return None, None


def validate_submission(title: str, body: str) -> None:
    if not title or not body:
        raise ContentValidationError("title" if not title else "body", "Title and body are required")
    if not settings.title_min_length <= len(title) <= settings.title_max_length:
        raise ContentValidationError(
            "title",
            f"Title must be between {settings.title_min_length} and "
            f"{settings.title_max_length} characters",
        )
    if len(body) < settings.body_min_length:
        raise ContentValidationError(
            "body", f"Body must be at least {settings.body_min_length} characters"
        )


class ModerationEngine:
    def __init__(
        self,
        database: Database | None = None,
        classifier: ContentClassifier | None = None,
        audit: AuditTrail | None = None,
        ledger: ReputationLedger | None = None,
        cache: MemoryCache | None = None,
        award_shadowbanned: bool | None = None,
    ):
        self.db = database or get_database()
        self.classifier = classifier or ContentClassifier()
        self.audit = audit or AuditTrail(self.db)
        self.ledger = ledger or ReputationLedger(self.db)
        self.cache = cache
        self.award_shadowbanned = (
            settings.award_shadowbanned_submissions
            if award_shadowbanned is None
            else award_shadowbanned
        )

    def submit(
        self,
        author_id: str,
        title: str,
        body: str,
        refs: list[str] | None = None,
    ) -> SubmissionOutcome:
        """
        Moderate and store a new theory.

        Raises ContentValidationError for bad input and lets storage errors
        on the theory insert propagate. Log and reputation failures are
        logged only.
        """
        validate_submission(title, body)

        moderation = self.classifier.classify(title, body)
        complexity = calculate_complexity_score(body)
        state, action = decide(moderation.classification)

        if action == ActionTaken.BLOCKED:
            log_entry = self._log(None, moderation, action)
            logger.warning("submission_blocked", author_id=author_id, reasoning=moderation.reasoning)
            return self._outcome(state, action, moderation, complexity, log_entry=log_entry)

        with self.db.session() as session:
            theory = TheoryRepository(session).insert(
                TheoryCreate(
                    user_id=author_id,
                    title=title,
                    body=body,
                    refs=refs or [],
                    moderation_status=state.value,
                    complexity_score=complexity,
                )
            )

        log_entry = self._log(theory.id, moderation, action)

        if state == PublicationState.SAFE or self.award_shadowbanned:
            self.ledger.award(author_id, RepAction.CREATE_THEORY)

        if self.cache is not None:
            self.cache.invalidate_theory(theory.id)

        logger.info(
            "submission_processed",
            theory_id=theory.id,
            state=state.value,
            fallback=moderation.is_fallback,
        )
        return self._outcome(state, action, moderation, complexity, theory=theory, log_entry=log_entry)

    def rescan_item(self, theory: TheoryRecord) -> RescanOutcome:
        """Re-classify one published theory and demote it if it no longer passes."""
        if theory.moderation_status != PublicationState.SAFE.value:
            return RescanOutcome(theory_id=theory.id, outcome="skipped")

        moderation = self.classifier.classify(theory.title, theory.body)
        if moderation.is_fallback:
            # No decision reached. Nothing is written; the theory stays first in rotation.
            logger.warning("rescan_classifier_unavailable", theory_id=theory.id)
            return RescanOutcome(
                theory_id=theory.id, outcome="error", error="classifier unavailable"
            )

        new_state, action = decide_rescan(moderation.classification)
        if new_state is None:
            with self.db.session() as session:
                TheoryRepository(session).mark_rescanned(theory.id)
            return RescanOutcome(
                theory_id=theory.id,
                outcome="unchanged",
                classification=moderation.classification,
            )

        with self.db.session() as session:
            repo = TheoryRepository(session)
            demoted = repo.update_status(
                theory.id, new_state.value, expected_status=PublicationState.SAFE.value
            )
            if not demoted:
                # Changed or deleted by someone else since it was fetched.
                return RescanOutcome(
                    theory_id=theory.id,
                    outcome="skipped",
                    classification=moderation.classification,
                )
            repo.mark_rescanned(theory.id)
            log_entry = self.audit.record_classification(
                theory.id, moderation, action, session=session
            )

        if self.cache is not None:
            self.cache.invalidate_theory(theory.id)

        logger.info(
            "theory_demoted",
            theory_id=theory.id,
            classification=moderation.classification.value,
        )
        return RescanOutcome(
            theory_id=theory.id,
            outcome="demoted",
            classification=moderation.classification,
            new_state=new_state,
            action=action,
            log_entry=log_entry,
        )

    def _log(
        self, theory_id: str | None, moderation: ModerationResult, action: ActionTaken
    ) -> ModerationLogEntry | None:
        try:
            return self.audit.record_classification(theory_id, moderation, action)
        except Exception as e:
            logger.error("moderation_log_failed", theory_id=theory_id, action=action.value, error=str(e))
            return None

    @staticmethod
    def _outcome(
        state: PublicationState,
        action: ActionTaken,
        moderation: ModerationResult,
        complexity: int,
        theory: TheoryRecord | None = None,
        log_entry: ModerationLogEntry | None = None,
    ) -> SubmissionOutcome:
        return SubmissionOutcome(
            state=state,
            action=action,
            classification=moderation.classification,
            confidence=moderation.confidence,
            reasoning=moderation.reasoning,
            complexity_score=complexity,
            message=MESSAGES[action],
            theory=theory,
            log_entry=log_entry,
        )
