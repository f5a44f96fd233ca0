"""Moderation domain models."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from theorogram.db.models import ModerationLogEntry, TheoryRecord


class Classification(str, Enum):
    SAFE = "safe"
    NSFW = "nsfw"
    UNSAFE = "unsafe"


class PublicationState(str, Enum):
    SAFE = "safe"  # visible to everyone
    SHADOWBANNED = "shadowbanned"  # visible only to the author
    UNSAFE = "unsafe"  # rejected, never stored as content


class ActionTaken(str, Enum):
    BLOCKED = "blocked"
    SHADOWBANNED = "shadowbanned"
    PUBLISHED = "published"
    SHADOWBANNED_RESCAN = "shadowbanned_rescan"


class ContentValidationError(ValueError):
    """Submission failed length checks. Raised before the classifier is called."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class ClassifierResponse(BaseModel):
    """LLM classifier output, validated as an untrusted payload."""

    classification: Classification
    confidence: float
    reasoning: str = ""

    @field_validator("classification", mode="before")
    @classmethod
    def _normalize_classification(cls, value):
        if not isinstance(value, str):
            raise ValueError("classification must be a string")
        return value.strip().lower()

    @field_validator("confidence", mode="before")
    @classmethod
    def _reject_non_numeric(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("confidence must be a number")
        return value

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        if value != value:  # NaN
            raise ValueError("confidence must be a number")
        return min(1.0, max(0.0, value))

    @field_validator("reasoning", mode="before")
    @classmethod
    def _default_reasoning(cls, value):
        return "" if value is None else value


class ModerationResult(BaseModel):
    """One classification of one piece of content. Logged, never stored as-is."""

    classification: Classification
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    is_fallback: bool = False

    model_config = {"frozen": True}


class SubmissionOutcome(BaseModel):
    """What happened to a submitted theory."""

    state: PublicationState
    action: ActionTaken
    classification: Classification
    confidence: float
    reasoning: str
    complexity_score: int
    message: str
    theory: TheoryRecord | None = None
    log_entry: ModerationLogEntry | None = None

    @property
    def rejected(self) -> bool:
        return self.action == ActionTaken.BLOCKED


class RescanOutcome(BaseModel):
    """Result of re-evaluating one published theory."""

    theory_id: str
    outcome: str  # "unchanged" | "demoted" | "skipped" | "error"
    classification: Classification | None = None
    new_state: PublicationState | None = None
    action: ActionTaken | None = None
    log_entry: ModerationLogEntry | None = None
    error: str | None = None
