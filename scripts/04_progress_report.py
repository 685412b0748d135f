#!/usr/bin/env python3
"""
04_progress_report.py - Evaluate every learner and write a progress report.

Outputs:
  <output-dir>/progressions.csv   one row per learner x module
  <output-dir>/module_summary.csv state counts per module
  <output-dir>/progress_report.md readable summary

Usage:
  python scripts/04_progress_report.py
  python scripts/04_progress_report.py --course intro-biology --output-dir data/reports
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from modulegate.classroom import (
    ProgressionEvaluator,
    SQLiteProgressionStore,
    completion_summary,
    progressions_frame,
    render_markdown_report,
)
from modulegate.utils import load_settings, setup_logging

logger = logging.getLogger(__name__)


def build_report(db_path: Path, output_dir: Path, course_id: str | None, max_workers: int, max_depth: int | None):
    store = SQLiteProgressionStore(db_path)
    evaluator = ProgressionEvaluator(store, max_workers=max_workers, max_depth=max_depth)
    module_ids = store.list_module_ids(course_id)
    learner_ids = store.list_learner_ids()
    logger.info(f"Evaluating {len(module_ids)} modules for {len(learner_ids)} learners...")

    progressions = {}
    for i, learner_id in enumerate(learner_ids):
        progressions[learner_id] = evaluator.evaluate_all(learner_id, module_ids)
        if (i + 1) % 100 == 0:
            logger.info(f"Progress: {i + 1}/{len(learner_ids)} learners")

    df = progressions_frame(progressions)
    summary = completion_summary(df)

    output_dir.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_dir / "progressions.csv", index=False)
    summary.to_csv(output_dir / "module_summary.csv", index=False)
    with open(output_dir / "progress_report.md", "w", encoding="utf-8") as f:
        f.write(render_markdown_report(df, summary))

    if evaluator.issues:
        logger.warning(f"{len(evaluator.issues)} data issue(s) found while evaluating")
    return df, summary


def main():
    settings = load_settings()
    setup_logging(settings.log_level)

    parser = argparse.ArgumentParser(
        description="Evaluate all learners and write progress reports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", type=Path, default=settings.db_path,
                        help=f"Progress database (default: {settings.db_path})")
    parser.add_argument("--course", default=None, help="Only modules of this course")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=PROJECT_ROOT / "data" / "reports",
        help="Output directory (default: data/reports)",
    )
    parser.add_argument("--workers", type=int, default=settings.max_workers,
                        help=f"Threads per learner evaluation (default: {settings.max_workers})")
    args = parser.parse_args()

    if not args.db.exists():
        print(f"ERROR: Progress database not found: {args.db}")
        sys.exit(1)

    df, summary = build_report(args.db, args.output_dir, args.course, args.workers, settings.max_depth)

    print(f"\nReport written to {args.output_dir}/")
    print(f"  - Rows: {len(df)}")
    print(f"  - Modules: {len(summary)}")


if __name__ == "__main__":
    main()
