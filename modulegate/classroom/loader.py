"""
CourseLoader - Load course definitions from YAML or JSON files.

A course file looks like:

    id: intro-course
    name: Introduction
    modules:
      - id: m1
        name: Getting started
        position: 1
        items:
          - {id: i1, title: Welcome, position: 1, requirement: {type: must_view}}
      - id: m2
        prerequisite_module_ids: [m1]
        require_sequential_progress: true
        requirement_count: 0
        unlock_at: 2026-09-01T00:00:00Z
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from modulegate.schemas import Course

from .graph import find_prerequisite_cycles

logger = logging.getLogger(__name__)

COURSE_SUFFIXES = (".yaml", ".yml", ".json")


def _read_document(file_path: Path) -> Any:
    with open(file_path, "r", encoding="utf-8") as f:
        if file_path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def load_course(path: str | Path) -> Course:
    """
    Load and validate one course file.

    Prerequisite cycles are logged, not rejected: stored courses can be
    inconsistent and the evaluator locks the modules involved.

    Args:
        path: .yaml, .yml or .json course file

    Returns:
        Validated Course

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a valid course document
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Course file not found: {file_path}")
    if file_path.suffix not in COURSE_SUFFIXES:
        raise ValueError(f"Unsupported course file type: {file_path.suffix}")

    try:
        raw = _read_document(file_path)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Could not parse {file_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"Course file root must be a mapping: {file_path}")

    try:
        course = Course.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid course in {file_path}: {e}") from e

    for issue in find_prerequisite_cycles(course.modules):
        logger.warning(f"{file_path.name}: {issue}")

    logger.info(f"Loaded course {course.id} with {len(course.modules)} modules")
    return course


def load_courses_from_dir(path: str | Path) -> dict[str, Course]:
    """Load every course file in a directory, keyed by course id."""
    dir_path = Path(path)
    courses: dict[str, Course] = {}
    for file_path in sorted(dir_path.iterdir()):
        if file_path.suffix not in COURSE_SUFFIXES:
            continue
        course = load_course(file_path)
        if course.id in courses:
            raise ValueError(f"Duplicate course id: {course.id}")
        courses[course.id] = course
    return courses
