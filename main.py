"""
Theorogram moderation pipeline.

Usage:
    python main.py init-db                                                  # Create tables
    python main.py open-account --username alice                           # Create a user row
    python main.py submit --author <user-id> --title "..." --body "..."     # Moderate and store a theory
    python main.py rescan                                                   # One rescan run
    python main.py schedule                                                 # Rescan every RESCAN_INTERVAL_HOURS
    python main.py level --score 250                                        # Level lookup
    python main.py report                                                   # Moderation log breakdown
"""

import argparse
import json
import sys
from collections import Counter
from pathlib import Path

from theorogram.config.settings import settings
from theorogram.logger import setup_logging, get_logger
from theorogram.db.connection import get_database
from theorogram.moderation.audit import AuditTrail
from theorogram.moderation.classifier import FALLBACK_REASONING
from theorogram.moderation.engine import ModerationEngine
from theorogram.moderation.models import ContentValidationError
from theorogram.moderation.rescan import Rescanner
from theorogram.moderation.scheduler import RescanScheduler
from theorogram.reputation.ledger import ReputationLedger
from theorogram.reputation.levels import format_reputation, get_level_info

setup_logging(settings.log_level, json_logs=settings.log_json)
logger = get_logger("main")


def run_submit(author: str, title: str, body: str) -> int:
    engine = ModerationEngine()
    try:
        outcome = engine.submit(author, title, body)
    except ContentValidationError as e:
        print(f"\n  Invalid {e.field}: {e.message}\n")
        return 2

    print(f"\n  [{outcome.action.value}] {outcome.message}")
    print(f"     Classification: {outcome.classification.value} (confidence: {outcome.confidence:.2f})")
    print(f"     Reasoning: {outcome.reasoning}")
    print(f"     Complexity: {outcome.complexity_score}")
    if outcome.theory:
        print(f"     Theory id: {outcome.theory.id}")
    print()
    return 1 if outcome.rejected else 0


def run_rescan() -> None:
    run = Rescanner().run_once()
    if run.skipped:
        print("\n  Rescan already in progress, skipped.\n")
        return
    if run.failed:
        print("\n  Rescan could not fetch its batch, see logs.\n")
        return

    print(f"\n{'='*70}")
    print(f" Rescan: {len(run.outcomes)} theories")
    print(f"{'='*70}\n")
    for o in run.outcomes:
        if o.outcome != "unchanged":
            print(f"  [{o.outcome}] {o.theory_id} {o.classification.value if o.classification else ''} {o.error or ''}")
    print(f"\n  Summary: {run.demoted} demoted, {run.errors} errors\n")


def run_schedule() -> None:
    scheduler = RescanScheduler(Rescanner(), run_immediately=True)
    logger.info("scheduler_starting", interval_hours=settings.rescan_interval_hours)
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        logger.info("scheduler_stopped", runs=scheduler.runs)


def run_level(score: int) -> None:
    info = get_level_info(score)
    print(f"\n  {format_reputation(score)} rep -> level {info.level} {info.title}")
    print(f"     Next level at {info.rep_for_next_level} ({info.progress}% there)\n")


# Reads the moderation log and produces a breakdown + stats.
def run_report() -> list:
    records = AuditTrail().classification_history(limit=10_000)

    if not records:
        print("\n  No moderation decisions recorded yet.\n")
        return []

    counts = Counter(r.action_taken for r in records)
    classes = Counter(r.classification for r in records)
    confidences = [r.confidence for r in records]
    avg_conf = sum(confidences) / len(confidences)
    fallbacks = sum(1 for r in records if r.reasoning == FALLBACK_REASONING)

    print(f"\n{'='*70}")
    print(f" Moderation report ({len(records)} decisions)")
    print(f"{'='*70}\n")
    print(f"  Actions:         {dict(counts)}")
    print(f"  Classifications: {dict(classes)}")
    print(f"  Confidence:      avg {avg_conf:.2f}, min {min(confidences):.2f}, max {max(confidences):.2f}")
    print(f"  Needs review:    {fallbacks} classifier fallbacks\n")

    report = {
        "total_decisions": len(records),
        "actions": dict(counts),
        "classifications": dict(classes),
        "confidence": {
            "avg": round(avg_conf, 3),
            "min": round(min(confidences), 3),
            "max": round(max(confidences), 3),
        },
        "classifier_fallbacks": fallbacks,
        "decisions": [r.model_dump() for r in records],
    }

    output_path = Path(settings.output_dir) / "moderation_report.json"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
    logger.info("report_saved", path=str(output_path))

    return records


# CLI
def main():
    parser = argparse.ArgumentParser(description="Theorogram moderation pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db")

    account = sub.add_parser("open-account")
    account.add_argument("--username", required=True)
    account.add_argument("--role", default="user", choices=["user", "admin"])

    submit = sub.add_parser("submit")
    submit.add_argument("--author", required=True)
    submit.add_argument("--title", required=True)
    submit.add_argument("--body", required=True)

    sub.add_parser("rescan")
    sub.add_parser("schedule")

    level = sub.add_parser("level")
    level.add_argument("--score", type=int, required=True)

    sub.add_parser("report")
    args = parser.parse_args()

    if args.command == "level":
        run_level(args.score)
        return

    database = get_database()
    if not database.check_connection():
        logger.error("Database unavailable")
        sys.exit(1)

    if args.command == "init-db":
        database.init_schema()
    elif args.command == "open-account":
        account = ReputationLedger(database).open_account(args.username, role=args.role)
        print(account.user_id)
    elif args.command == "submit":
        sys.exit(run_submit(args.author, args.title, args.body))
    elif args.command == "rescan":
        run_rescan()
    elif args.command == "schedule":
        run_schedule()
    elif args.command == "report":
        run_report()


if __name__ == "__main__":
    main()
