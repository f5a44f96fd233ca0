"""Tests for the read path and database wiring."""

from conftest import VALID_BODY, VALID_TITLE, verdict
from theorogram.content.feed import TheoryFeed, is_visible
from theorogram.db.connection import Database
from theorogram.db.models import TheoryRecord
from theorogram.services.cache import MemoryCache


def record(status, user_id="ada"):
    return TheoryRecord(
        id="t1", user_id=user_id, title=VALID_TITLE, body=VALID_BODY, moderation_status=status
    )


def test_visibility_rules():
    assert is_visible(record("safe"), None)
    assert is_visible(record("safe"), "grace")
    assert is_visible(record("shadowbanned"), "ada")
    assert not is_visible(record("shadowbanned"), "grace")
    assert not is_visible(record("shadowbanned"), None)
    assert not is_visible(record("unsafe"), "ada")


def test_public_list_holds_only_safe_theories(engine, llm, database, author):
    safe = engine.submit(author, VALID_TITLE, VALID_BODY).theory
    llm.response = verdict("nsfw")
    engine.submit(author, f"{VALID_TITLE} again", VALID_BODY)

    listed = TheoryFeed(database).list_public()

    assert [t.id for t in listed] == [safe.id]


def test_public_list_is_cached_until_invalidated(engine, database, author):
    cache = MemoryCache()
    feed = TheoryFeed(database, cache=cache)
    assert feed.list_public() == []

    first = engine.submit(author, VALID_TITLE, VALID_BODY).theory
    assert feed.list_public() == []  # served from cache

    cache.invalidate_theory(first.id)
    assert [t.id for t in feed.list_public()] == [first.id]


def test_list_pagination(engine, database, author):
    for i in range(3):
        engine.submit(author, f"{VALID_TITLE} #{i}", VALID_BODY)
    feed = TheoryFeed(database)

    assert len(feed.list_public(limit=2)) == 2
    assert len(feed.list_public(limit=2, offset=2)) == 1


def test_missing_theory_reads_as_none(database):
    assert TheoryFeed(database).get("missing") is None


def test_check_connection(database, tmp_path):
    assert database.check_connection()

    broken = Database(f"sqlite:///{tmp_path}/missing/dir/db.sqlite")
    assert not broken.check_connection()
    broken.engine.dispose()


def test_init_schema_is_idempotent(database):
    database.init_schema()
    assert database.check_connection()
