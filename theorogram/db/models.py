"""Database domain models."""

import json
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class UserCreate(BaseModel):
    """Payload for inserting a new user account."""

    username: str = Field(..., min_length=1)
    role: str = "user"


class UserRecord(BaseModel):
    """A user row returned from the database."""

    id: str
    username: str
    role: str = "user"
    reputation_score: int = 0
    level: int = 1
    banned_status: bool = False
    shadowbanned: bool = False
    suspended_until: datetime | None = None
    created_at: datetime | None = None

    model_config = {"frozen": True}

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class TheoryCreate(BaseModel):
    """Payload for inserting a theory that passed moderation."""

    user_id: str
    title: str
    body: str
    refs: list[str] = Field(default_factory=list)
    moderation_status: str
    complexity_score: int = Field(0, ge=0, le=100)


class TheoryRecord(BaseModel):
    """A theory row returned from the database."""

    id: str
    user_id: str
    title: str
    body: str
    refs: list[str] = Field(default_factory=list)
    moderation_status: str
    complexity_score: int = 0
    is_mature: bool = False
    last_rescanned_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"frozen": True}

    @field_validator("refs", mode="before")
    @classmethod
    def _decode_refs(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return json.loads(value)
        return value


class ModerationLogCreate(BaseModel):
    """Payload for appending one classification decision."""

    theory_id: str | None = None
    classification: str
    confidence: float = Field(ge=0.0, le=1.0)
    action_taken: str
    reasoning: str = ""


class ModerationLogEntry(BaseModel):
    """A moderation_logs row. Never updated or deleted."""

    id: str
    theory_id: str | None = None
    classification: str
    confidence: float
    action_taken: str
    reasoning: str = ""
    created_at: datetime | None = None

    model_config = {"frozen": True}


class AuditLogCreate(BaseModel):
    """Payload for appending one admin action."""

    admin_id: str
    action: str
    target_type: str
    target_id: str
    reason: str = "No reason provided"


class AuditLogEntry(BaseModel):
    """An audit_logs row. Never updated or deleted."""

    id: str
    admin_id: str
    action: str
    target_type: str
    target_id: str
    reason: str = ""
    created_at: datetime | None = None

    model_config = {"frozen": True}
