#!/usr/bin/env python3
"""
01_import_course.py - Load course definitions into the progress database.

Reads YAML/JSON course files, validates them, reports prerequisite cycles and
stores every module so learners can be evaluated against it.

Usage:
  python scripts/01_import_course.py
  python scripts/01_import_course.py --course data/sample_course.yaml --db data/progress.db
  python scripts/01_import_course.py --course-dir data/courses
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from modulegate.classroom import (
    SQLiteProgressionStore,
    find_prerequisite_cycles,
    load_course,
    load_courses_from_dir,
)
from modulegate.utils import load_settings, setup_logging

logger = logging.getLogger(__name__)


def import_courses(course_paths: list[Path], course_dir: Path | None, db_path: Path) -> int:
    """Load courses and store their modules. Returns the number of modules stored."""
    courses = []
    if course_dir is not None:
        courses.extend(load_courses_from_dir(course_dir).values())
    for path in course_paths:
        courses.append(load_course(path))

    store = SQLiteProgressionStore(db_path)
    stored = 0
    for course in courses:
        cycles = find_prerequisite_cycles(course.modules)
        if cycles:
            logger.warning(f"Course {course.id} has {len(cycles)} prerequisite cycle(s); modules on them stay locked")
        store.put_course(course)
        stored += len(course.modules)
        logger.info(f"Imported {course.id}: {len(course.modules)} modules")
    return stored


def main():
    settings = load_settings()
    setup_logging(settings.log_level)

    parser = argparse.ArgumentParser(
        description="Import course module definitions into the progress database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--course",
        type=Path,
        action="append",
        default=[],
        help="Course file (.yaml/.yml/.json); may be repeated (default: data/sample_course.yaml)",
    )
    parser.add_argument(
        "--course-dir",
        type=Path,
        default=None,
        help="Directory of course files to import",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=settings.db_path,
        help=f"Progress database (default: {settings.db_path})",
    )
    args = parser.parse_args()

    course_paths = args.course
    if not course_paths and args.course_dir is None:
        course_paths = [PROJECT_ROOT / "data" / "sample_course.yaml"]

    for path in course_paths:
        if not path.exists():
            print(f"ERROR: Course file not found: {path}")
            sys.exit(1)

    try:
        stored = import_courses(course_paths, args.course_dir, args.db)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(f"\nStored {stored} modules in {args.db}")


if __name__ == "__main__":
    main()
