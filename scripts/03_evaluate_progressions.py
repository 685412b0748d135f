#!/usr/bin/env python3
"""
03_evaluate_progressions.py - Evaluate module progressions for a learner.

Usage:
  python scripts/03_evaluate_progressions.py --learner student-1
  python scripts/03_evaluate_progressions.py --learner student-1 --module cells --module genetics
  python scripts/03_evaluate_progressions.py --learner student-1 --json
  python scripts/03_evaluate_progressions.py --learner student-1 --module cells --item cells-lab --why
"""

import argparse
import json
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from modulegate.classroom import Navigator, ProgressionEvaluator, SQLiteProgressionStore
from modulegate.exceptions import NotFound
from modulegate.utils import load_settings, setup_logging

logger = logging.getLogger(__name__)


def print_tree(navigator: Navigator, learner_id: str):
    for nav_module in navigator.get_navigation_tree(learner_id):
        progression = nav_module.progression
        met = len(progression.requirements_met)
        total = met + len(progression.incomplete_requirements)
        print(f"{nav_module.status_indicator} {nav_module.module.id:<24} "
              f"{progression.workflow_state.value:<10} {met}/{total} requirements")
        for item in nav_module.items:
            print(f"    {item.position:>3}  {item.item_id:<28} {item.availability.value}")


def print_gate(navigator: Navigator, learner_id: str, module_id: str, item_id: str | None):
    report = navigator.requirements_needing_finishing(learner_id, module_id, item_id)
    if not report.locked:
        print("Not locked.")
        return
    print("Locked. Still to finish:")
    for pending_module in report.modules:
        suffix = " (locked)" if pending_module.locked else ""
        print(f"  {pending_module.module_id}{suffix}")
        for pending in pending_module.requirements:
            marker = "" if pending.available else " [not yet reachable]"
            print(f"    - {pending.title or pending.item_id}: {pending.description}{marker}")


def main():
    settings = load_settings()
    setup_logging(settings.log_level)

    parser = argparse.ArgumentParser(
        description="Evaluate module progressions for a learner.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", type=Path, default=settings.db_path,
                        help=f"Progress database (default: {settings.db_path})")
    parser.add_argument("--learner", required=True, help="Learner id")
    parser.add_argument("--module", action="append", default=None,
                        help="Module id; may be repeated (default: all modules)")
    parser.add_argument("--item", default=None, help="Item id for --why")
    parser.add_argument("--why", action="store_true",
                        help="Explain what blocks --module (and --item)")
    parser.add_argument("--json", action="store_true", help="Print progressions as JSON")
    args = parser.parse_args()

    if not args.db.exists():
        print(f"ERROR: Progress database not found: {args.db}")
        print("Run scripts/01_import_course.py first")
        sys.exit(1)

    store = SQLiteProgressionStore(args.db)
    evaluator = ProgressionEvaluator.from_settings(store, settings)
    navigator = Navigator(store, evaluator)

    try:
        if args.why:
            if not args.module or len(args.module) != 1:
                parser.error("--why needs exactly one --module")
            print_gate(navigator, args.learner, args.module[0], args.item)
        elif args.json:
            progressions = evaluator.evaluate_all(args.learner, args.module)
            payload = {module_id: p.model_dump(mode="json") for module_id, p in progressions.items()}
            print(json.dumps(payload, indent=2, ensure_ascii=False))
        else:
            if args.module:
                for module_id, p in evaluator.evaluate_all(args.learner, args.module).items():
                    print(f"{navigator.get_status_indicator(p)} {module_id}: {p.workflow_state.value}")
            else:
                print_tree(navigator, args.learner)
    except NotFound as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    for issue in evaluator.issues:
        logger.info(f"Data issue: {issue}")


if __name__ == "__main__":
    main()
