"""Tests for rescanning published theories."""

from sqlalchemy import text

from conftest import VALID_BODY, VALID_TITLE, verdict
from theorogram.content.feed import TheoryFeed
from theorogram.db.repository import TheoryRepository
from theorogram.moderation.audit import AuditTrail
from theorogram.moderation.classifier import ContentClassifier
from theorogram.moderation.engine import ModerationEngine
from theorogram.moderation.models import RescanOutcome
from theorogram.moderation.rescan import Rescanner
from theorogram.services.cache import MemoryCache


def publish(engine, author, n=1):
    return [engine.submit(author, f"{VALID_TITLE} #{i}", VALID_BODY).theory for i in range(n)]


def rescan_entries(database):
    return [
        e for e in AuditTrail(database).classification_history() if e.action_taken == "shadowbanned_rescan"
    ]


def stored(database, theory_id):
    with database.session() as session:
        return TheoryRepository(session).get(theory_id)


def test_reclassified_theory_is_demoted_once(engine, llm, database, author):
    (theory,) = publish(engine, author)
    llm.response = verdict("nsfw", 0.7, "newer policy")
    sleeps = []
    rescanner = Rescanner(engine, sleep=sleeps.append)

    first = rescanner.run_once()

    assert [o.outcome for o in first.outcomes] == ["demoted"]
    assert stored(database, theory.id).moderation_status == "shadowbanned"
    entries = rescan_entries(database)
    assert len(entries) == 1
    assert entries[0].theory_id == theory.id
    assert entries[0].reasoning == "newer policy"

    second = rescanner.run_once()

    assert second.outcomes == []
    assert len(rescan_entries(database)) == 1


def test_unsafe_on_rescan_only_shadowbans(engine, llm, database, author):
    (theory,) = publish(engine, author)
    llm.response = verdict("unsafe")

    outcomes = Rescanner(engine, sleep=lambda _: None).rescan_batch([theory])

    assert outcomes[0].outcome == "demoted"
    assert stored(database, theory.id).moderation_status == "shadowbanned"


def test_still_safe_theory_writes_nothing(engine, database, author):
    (theory,) = publish(engine, author)
    before = AuditTrail(database).classification_history()

    outcomes = Rescanner(engine, sleep=lambda _: None).rescan_batch([theory])

    assert outcomes[0].outcome == "unchanged"
    assert stored(database, theory.id).moderation_status == "safe"
    assert len(AuditTrail(database).classification_history()) == len(before)


def test_non_safe_items_are_skipped(engine, llm, database, author):
    llm.response = verdict("nsfw")
    (theory,) = publish(engine, author)

    outcomes = Rescanner(engine, sleep=lambda _: None).rescan_batch([theory])

    assert outcomes[0].outcome == "skipped"
    assert llm.calls == 1  # submission only


def test_batch_respects_size_and_delay(engine, database, author):
    publish(engine, author, n=3)
    sleeps = []

    run = Rescanner(engine, batch_size=2, item_delay=0.5, sleep=sleeps.append).run_once()

    assert len(run.outcomes) == 2
    assert sleeps == [0.5]


class FlakyEngine(ModerationEngine):
    def __init__(self, *args, bad_ids=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.bad_ids = set(bad_ids)

    def rescan_item(self, theory):
        if theory.id in self.bad_ids:
            raise RuntimeError("row vanished")
        return super().rescan_item(theory)


def test_item_failure_does_not_abort_batch(database, ledger, llm, author):
    engine = FlakyEngine(database=database, classifier=ContentClassifier(llm), ledger=ledger)
    bad, good = publish(engine, author, n=2)
    engine.bad_ids = {bad.id}
    llm.response = verdict("nsfw")

    outcomes = Rescanner(engine, sleep=lambda _: None).rescan_batch([bad, good])

    assert [o.outcome for o in outcomes] == ["error", "demoted"]
    assert outcomes[0].error == "row vanished"
    assert stored(database, good.id).moderation_status == "shadowbanned"


def test_overlapping_run_is_skipped(database, ledger, llm, author):
    nested = []

    class ReentrantEngine(ModerationEngine):
        def rescan_item(self, theory):
            nested.append(rescanner.run_once())
            return RescanOutcome(theory_id=theory.id, outcome="unchanged")

    engine = ReentrantEngine(database=database, classifier=ContentClassifier(llm), ledger=ledger)
    publish(engine, author)
    rescanner = Rescanner(engine, sleep=lambda _: None)

    run = rescanner.run_once()

    assert not run.skipped
    assert len(nested) == 1 and nested[0].skipped
    assert not rescanner.in_progress


def test_fetch_failure_is_contained(engine, database):
    with database.session() as session:
        session.execute(text("DROP TABLE theories"))

    rescanner = Rescanner(engine, sleep=lambda _: None)
    run = rescanner.run_once()

    assert run.failed
    assert run.outcomes == []
    assert not rescanner.in_progress


def test_demotion_invalidates_cached_reads(database, ledger, llm, author):
    cache = MemoryCache()
    engine = ModerationEngine(
        database=database, classifier=ContentClassifier(llm), ledger=ledger, cache=cache
    )
    feed = TheoryFeed(database, cache=cache)
    (theory,) = publish(engine, author)
    stranger = ledger.open_account("grace").user_id
    assert feed.get(theory.id, viewer_id=stranger) is not None

    llm.response = verdict("nsfw")
    Rescanner(engine, sleep=lambda _: None).run_once()

    assert feed.get(theory.id, viewer_id=stranger) is None
    assert feed.get(theory.id, viewer_id=author) is not None


def test_classifier_outage_never_demotes(database, ledger, llm, author):
    engine = ModerationEngine(
        database=database, classifier=ContentClassifier(llm, fail_open=False), ledger=ledger
    )
    (theory,) = publish(engine, author)
    before = AuditTrail(database).classification_history()
    llm.response = ConnectionError("provider down")

    run = Rescanner(engine, sleep=lambda _: None).run_once()

    assert [o.outcome for o in run.outcomes] == ["error"]
    assert run.outcomes[0].error == "classifier unavailable"
    assert run.demoted == 0
    assert stored(database, theory.id).moderation_status == "safe"
    assert stored(database, theory.id).last_rescanned_at is None
    assert rescan_entries(database) == []
    assert len(AuditTrail(database).classification_history()) == len(before)


def test_runs_rotate_through_all_safe_theories(engine, database, author):
    theories = publish(engine, author, n=3)
    rescanner = Rescanner(engine, batch_size=2, sleep=lambda _: None)

    first = rescanner.run_once()
    second = rescanner.run_once()

    scanned = {o.theory_id for o in first.outcomes + second.outcomes}
    assert scanned == {t.id for t in theories}
    assert all(o.outcome == "unchanged" for o in first.outcomes + second.outcomes)


def test_unchanged_theory_moves_to_back_of_rotation(engine, database, author):
    old, new = publish(engine, author, n=2)
    rescanner = Rescanner(engine, batch_size=1, sleep=lambda _: None)

    first = rescanner.run_once().outcomes[0].theory_id
    second = rescanner.run_once().outcomes[0].theory_id

    assert {first, second} == {old.id, new.id}
    assert stored(database, first).last_rescanned_at is not None
    assert stored(database, second).last_rescanned_at is not None
