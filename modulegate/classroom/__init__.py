"""
modulegate classroom - Runtime components for evaluating module progress.

This module provides:
- ProgressionStore: storage protocol, with SQLite and in-memory stores
- ProgressionEvaluator: locked/unlocked/started/completed computation
- Navigator: pending requirements, item availability, collapse flags
- Loader and graph helpers for course definitions
- Reports across learners
"""

from .progress import (
    ProgressionStore,
    SQLiteProgressionStore,
    FactsByItem,
)

from .memory_store import InMemoryProgressionStore

from .evaluator import ProgressionEvaluator

from .graph import (
    build_prerequisite_graph,
    find_prerequisite_cycles,
    evaluation_generations,
)

from .loader import (
    load_course,
    load_courses_from_dir,
)

from .navigator import (
    Navigator,
    ItemAvailability,
    PendingRequirement,
    PendingModule,
    GateReport,
    NavigationItem,
    NavigationModule,
)

from .report import (
    progressions_frame,
    completion_summary,
    render_markdown_report,
)

__all__ = [
    # Storage
    "ProgressionStore",
    "SQLiteProgressionStore",
    "InMemoryProgressionStore",
    "FactsByItem",
    # Evaluation
    "ProgressionEvaluator",
    # Graph
    "build_prerequisite_graph",
    "find_prerequisite_cycles",
    "evaluation_generations",
    # Loader
    "load_course",
    "load_courses_from_dir",
    # Navigator
    "Navigator",
    "ItemAvailability",
    "PendingRequirement",
    "PendingModule",
    "GateReport",
    "NavigationItem",
    "NavigationModule",
    # Reports
    "progressions_frame",
    "completion_summary",
    "render_markdown_report",
]
