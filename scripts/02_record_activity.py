#!/usr/bin/env python3
"""
02_record_activity.py - Record learner activity against module items.

Registers learners and writes completion facts (views, submissions,
contributions, mark-done, scores). Optionally re-evaluates the affected module.

Usage:
  python scripts/02_record_activity.py --add-learner student-1 --name "Ada"
  python scripts/02_record_activity.py --learner student-1 --item welcome-page --type must_view
  python scripts/02_record_activity.py --learner student-1 --item syllabus-quiz --type min_score --score 82 --module orientation
  python scripts/02_record_activity.py --learner student-1 --item welcome-page --type must_view --clear
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from modulegate.classroom import ProgressionEvaluator, SQLiteProgressionStore
from modulegate.exceptions import NotFound
from modulegate.schemas import RequirementType
from modulegate.utils import load_settings, setup_logging

logger = logging.getLogger(__name__)


def main():
    settings = load_settings()
    setup_logging(settings.log_level)

    parser = argparse.ArgumentParser(
        description="Record learner activity and optionally re-evaluate a module.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", type=Path, default=settings.db_path,
                        help=f"Progress database (default: {settings.db_path})")
    parser.add_argument("--add-learner", metavar="LEARNER_ID", help="Register a learner and exit")
    parser.add_argument("--name", default="", help="Display name for --add-learner")
    parser.add_argument("--learner", help="Learner id")
    parser.add_argument("--item", help="Module item id")
    parser.add_argument(
        "--type",
        choices=[t.value for t in RequirementType],
        help="Kind of activity to record",
    )
    parser.add_argument("--score", type=float, default=None, help="Score (required for min_score)")
    parser.add_argument("--clear", action="store_true", help="Delete the fact instead of recording it")
    parser.add_argument("--module", help="Re-evaluate this module afterwards")
    args = parser.parse_args()

    store = SQLiteProgressionStore(args.db)

    if args.add_learner:
        store.add_learner(args.add_learner, args.name)
        print(f"Learner registered: {args.add_learner}")
        return

    if not (args.learner and args.item and args.type):
        parser.error("--learner, --item and --type are required")
    if not store.has_learner(args.learner):
        print(f"ERROR: learner not found: {args.learner}")
        sys.exit(1)

    requirement_type = RequirementType(args.type)
    if args.clear:
        removed = store.clear_completion(args.learner, args.item, requirement_type)
        logger.info(f"Removed {removed} fact(s) for {args.learner} on {args.item}")
    else:
        if requirement_type == RequirementType.MIN_SCORE and args.score is None:
            parser.error("--score is required for min_score")
        store.record_completion(args.learner, args.item, requirement_type, score=args.score)
        logger.info(f"Recorded {requirement_type.value} for {args.learner} on {args.item}")

    if args.module:
        evaluator = ProgressionEvaluator.from_settings(store, settings)
        try:
            progression = evaluator.evaluate(args.learner, args.module)
        except NotFound as e:
            print(f"ERROR: {e}")
            sys.exit(1)
        print(f"{args.module}: {progression.workflow_state.value}")


if __name__ == "__main__":
    main()
