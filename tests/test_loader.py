"""
Course loading and prerequisite graph tests.
"""

import json
import logging
from pathlib import Path

import pytest

from modulegate.classroom import (
    build_prerequisite_graph,
    evaluation_generations,
    find_prerequisite_cycles,
    load_course,
    load_courses_from_dir,
)
from modulegate.classroom.graph import component_cycle, is_cyclic_component
from modulegate.schemas import Module, RequirementType


SAMPLE_COURSE = Path(__file__).parent.parent / "data" / "sample_course.yaml"

SMALL_COURSE_YAML = """\
id: small
name: Small course
modules:
  - id: second
    position: 2
    prerequisite_module_ids: [first]
    require_sequential_progress: true
    unlock_at: 2026-09-01T00:00:00
    items:
      - {id: s2, position: 2, requirement: {type: must_submit}}
      - {id: s1, position: 1}
  - id: first
    position: 1
    items:
      - {id: f1, position: 1, requirement: {type: min_score, min_score: 5}}
"""


class TestLoadCourse:
    """Reading and validating course files."""

    def test_sample_course(self):
        course = load_course(SAMPLE_COURSE)
        assert course.id == "intro-biology"
        assert [m.id for m in course.modules] == ["orientation", "cells", "genetics", "final-project"]
        genetics = course.get_module("genetics")
        assert genetics.requirement_count == 2
        assert genetics.prerequisite_module_ids == ["cells"]

    def test_yaml(self, tmp_path):
        path = tmp_path / "small.yaml"
        path.write_text(SMALL_COURSE_YAML, encoding="utf-8")

        course = load_course(path)

        assert [m.id for m in course.modules] == ["first", "second"]
        second = course.get_module("second")
        assert [i.id for i in second.items] == ["s1", "s2"]
        assert second.unlock_at.tzinfo is not None
        assert course.get_module("first").items[0].requirement.min_score == 5

    def test_json(self, tmp_path):
        path = tmp_path / "small.json"
        path.write_text(json.dumps({
            "id": "j",
            "modules": [{"id": "m", "items": [{"id": "i", "position": 1,
                                                "requirement": {"type": "must_view"}}]}],
        }), encoding="utf-8")

        course = load_course(path)

        assert course.modules[0].items[0].requirement.type == RequirementType.MUST_VIEW

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_course(tmp_path / "absent.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "course.txt"
        path.write_text("id: x", encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported"):
            load_course(path)

    def test_unparseable_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("id: [unclosed", encoding="utf-8")
        with pytest.raises(ValueError, match="Could not parse"):
            load_course(path)

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_course(path)

    def test_invalid_course(self, tmp_path):
        path = tmp_path / "invalid.yaml"
        path.write_text(
            "id: bad\nmodules:\n  - id: m\n    items:\n"
            "      - {id: q, position: 1, requirement: {type: min_score}}\n",
            encoding="utf-8",
        )
        with pytest.raises(ValueError, match="Invalid course"):
            load_course(path)

    def test_cycles_are_logged_not_rejected(self, tmp_path, caplog):
        path = tmp_path / "loop.yaml"
        path.write_text(
            "id: loop\nmodules:\n"
            "  - {id: a, prerequisite_module_ids: [b]}\n"
            "  - {id: b, prerequisite_module_ids: [a]}\n",
            encoding="utf-8",
        )
        with caplog.at_level(logging.WARNING):
            course = load_course(path)
        assert len(course.modules) == 2
        assert "Circular module prerequisites: a -> b -> a" in caplog.text


class TestLoadCoursesFromDir:
    """Loading a directory of course files."""

    def test_loads_supported_files(self, tmp_path):
        (tmp_path / "small.yaml").write_text(SMALL_COURSE_YAML, encoding="utf-8")
        (tmp_path / "other.json").write_text(json.dumps({"id": "other"}), encoding="utf-8")
        (tmp_path / "README.md").write_text("not a course", encoding="utf-8")

        courses = load_courses_from_dir(tmp_path)

        assert set(courses) == {"small", "other"}

    def test_duplicate_course_ids(self, tmp_path):
        (tmp_path / "a.yaml").write_text("id: same\n", encoding="utf-8")
        (tmp_path / "b.yml").write_text("id: same\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate course id"):
            load_courses_from_dir(tmp_path)


class TestPrerequisiteGraph:
    """Graph construction, cycles and evaluation order."""

    def test_edges_point_to_dependents(self):
        G = build_prerequisite_graph([
            Module(id="a", position=1),
            Module(id="b", position=2, prerequisite_module_ids=["a", "ghost"]),
        ])
        assert set(G.nodes) == {"a", "b"}
        assert list(G.edges) == [("a", "b")]
        assert G.nodes["b"]["position"] == 2

    def test_unknown_prerequisite_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            build_prerequisite_graph([Module(id="b", prerequisite_module_ids=["ghost"])])
        assert "ghost" in caplog.text

    def test_no_cycles(self):
        course = load_course(SAMPLE_COURSE)
        assert find_prerequisite_cycles(course.modules) == []

    def test_cycles_start_at_smallest_id(self):
        issues = find_prerequisite_cycles([
            Module(id="c", prerequisite_module_ids=["b"]),
            Module(id="b", prerequisite_module_ids=["d"]),
            Module(id="d", prerequisite_module_ids=["c"]),
            Module(id="x", prerequisite_module_ids=["x"]),
        ])
        assert [issue.cycle for issue in issues] == [["x", "x"], ["b", "c", "d", "b"]]

    def test_generations_follow_prerequisites(self):
        course = load_course(SAMPLE_COURSE)
        generations = evaluation_generations(build_prerequisite_graph(course.modules))
        assert generations == [[["orientation"]], [["cells"]], [["genetics"]], [["final-project"]]]

    def test_independent_modules_share_a_generation(self):
        generations = evaluation_generations(build_prerequisite_graph([
            Module(id="root", position=1),
            Module(id="right", position=3, prerequisite_module_ids=["root"]),
            Module(id="left", position=2, prerequisite_module_ids=["root"]),
        ]))
        assert generations == [[["root"]], [["left"], ["right"]]]

    def test_cycle_is_one_component(self):
        generations = evaluation_generations(build_prerequisite_graph([
            Module(id="b", prerequisite_module_ids=["a"]),
            Module(id="a", prerequisite_module_ids=["b"]),
            Module(id="c", prerequisite_module_ids=["a"]),
        ]))
        assert generations == [[["a", "b"]], [["c"]]]

    def test_component_cycle_matches_reported_cycle(self):
        modules = [
            Module(id="c", prerequisite_module_ids=["b"]),
            Module(id="b", prerequisite_module_ids=["d"]),
            Module(id="d", prerequisite_module_ids=["c"]),
            Module(id="x", prerequisite_module_ids=["x"]),
            Module(id="y", prerequisite_module_ids=["x"]),
        ]
        G = build_prerequisite_graph(modules)
        components = [c for generation in evaluation_generations(G) for c in generation]

        cycles = [component_cycle(G, c).cycle for c in components if is_cyclic_component(G, c)]
        assert sorted(cycles) == [["b", "c", "d", "b"], ["x", "x"]]
        assert not is_cyclic_component(G, ["y"])
