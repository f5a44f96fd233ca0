"""Shared fixtures: a throwaway SQLite database and a scripted LLM."""

import json

import pytest

from theorogram.db.connection import Database
from theorogram.moderation.classifier import ContentClassifier
from theorogram.moderation.engine import ModerationEngine
from theorogram.reputation.ledger import ReputationLedger

VALID_TITLE = "Cities are older than agriculture"
VALID_BODY = (
    "Monumental sites such as Gobekli Tepe predate farming. Perhaps settlement "
    "and ritual came first, and agriculture followed to feed the gatherings."
)


def verdict(classification: str, confidence: float = 0.9, reasoning: str = "looks fine") -> str:
    return json.dumps(
        {"classification": classification, "confidence": confidence, "reasoning": reasoning}
    )


class FakeLLM:
    """Returns (or raises) whatever ``response`` currently holds."""

    def __init__(self, response=""):
        self.response = response
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def call(self, prompt: str, system: str | None = None) -> str:
        self.prompts.append(prompt)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'theorogram.db'}")
    db.init_schema()
    yield db
    db.engine.dispose()


@pytest.fixture
def llm():
    return FakeLLM(verdict("safe"))


@pytest.fixture
def ledger(database):
    return ReputationLedger(database)


@pytest.fixture
def author(ledger):
    return ledger.open_account("ada").user_id


@pytest.fixture
def engine(database, llm, ledger):
    return ModerationEngine(
        database=database,
        classifier=ContentClassifier(llm, fail_open=True),
        ledger=ledger,
        award_shadowbanned=True,
    )
