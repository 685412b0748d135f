"""
InMemoryProgressionStore - Dict-backed ProgressionStore.

Same authoring helpers as SQLiteProgressionStore, kept in process memory.
Suitable for embedding callers that persist elsewhere, and for tests.
"""

import threading
from datetime import datetime, timezone
from typing import Iterable, Optional

from modulegate.exceptions import NotFound
from modulegate.schemas import (
    CompletionFact,
    Course,
    Module,
    Progression,
    RequirementType,
    ensure_utc,
)

from .progress import FactsByItem


class InMemoryProgressionStore:
    """ProgressionStore held in dictionaries, guarded by one lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._learners: dict[str, str] = {}
        self._modules: dict[str, Module] = {}
        self._module_courses: dict[str, Optional[str]] = {}
        self._facts: dict[tuple[str, str], dict[RequirementType, CompletionFact]] = {}
        self._progressions: dict[tuple[str, str], Progression] = {}

    # -------------------------------------------------------------------------
    # Learners
    # -------------------------------------------------------------------------

    def add_learner(self, learner_id: str, name: str = ""):
        with self._lock:
            self._learners[learner_id] = name

    def has_learner(self, learner_id: str) -> bool:
        with self._lock:
            return learner_id in self._learners

    def list_learner_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._learners)

    def reset_learner(self, learner_id: str):
        with self._lock:
            for key in [k for k in self._facts if k[0] == learner_id]:
                del self._facts[key]
            for key in [k for k in self._progressions if k[0] == learner_id]:
                del self._progressions[key]

    # -------------------------------------------------------------------------
    # Modules
    # -------------------------------------------------------------------------

    def put_module(self, module: Module, course_id: Optional[str] = None):
        with self._lock:
            self._modules[module.id] = module
            if course_id is not None or module.id not in self._module_courses:
                self._module_courses[module.id] = course_id

    def put_course(self, course: Course):
        for module in course.modules:
            self.put_module(module, course_id=course.id)

    def remove_module(self, module_id: str) -> bool:
        with self._lock:
            removed = self._modules.pop(module_id, None) is not None
            self._module_courses.pop(module_id, None)
            for key in [k for k in self._progressions if k[1] == module_id]:
                del self._progressions[key]
            return removed

    def get_module(self, module_id: str) -> Module:
        with self._lock:
            module = self._modules.get(module_id)
        if module is None:
            raise NotFound("module", module_id)
        return module

    def list_module_ids(self, course_id: Optional[str] = None) -> list[str]:
        with self._lock:
            modules = [
                m for m in self._modules.values()
                if course_id is None or self._module_courses.get(m.id) == course_id
            ]
        return [m.id for m in sorted(modules, key=lambda m: (m.position, m.id))]

    # -------------------------------------------------------------------------
    # Completion facts
    # -------------------------------------------------------------------------

    def record_completion(
        self,
        learner_id: str,
        item_id: str,
        requirement_type: RequirementType,
        score: Optional[float] = None,
        satisfied_at: Optional[datetime] = None,
    ):
        fact = CompletionFact(
            item_id=item_id,
            requirement_type=RequirementType(requirement_type),
            satisfied_at=ensure_utc(satisfied_at) or datetime.now(timezone.utc),
            score=score,
        )
        with self._lock:
            self._facts.setdefault((learner_id, item_id), {})[fact.requirement_type] = fact

    def record_score(self, learner_id: str, item_id: str, score: float,
                     satisfied_at: Optional[datetime] = None):
        self.record_completion(learner_id, item_id, RequirementType.MIN_SCORE, score, satisfied_at)

    def clear_completion(self, learner_id: str, item_id: str,
                         requirement_type: Optional[RequirementType] = None) -> int:
        with self._lock:
            facts = self._facts.get((learner_id, item_id))
            if not facts:
                return 0
            if requirement_type is None:
                del self._facts[(learner_id, item_id)]
                return len(facts)
            removed = facts.pop(RequirementType(requirement_type), None)
            return 0 if removed is None else 1

    def completions_for(self, learner_id: str, item_ids: Iterable[str]) -> FactsByItem:
        with self._lock:
            return {
                item_id: dict(self._facts[(learner_id, item_id)])
                for item_id in item_ids
                if self._facts.get((learner_id, item_id))
            }

    # -------------------------------------------------------------------------
    # Progressions
    # -------------------------------------------------------------------------

    def load_progression(self, learner_id: str, module_id: str) -> Optional[Progression]:
        with self._lock:
            progression = self._progressions.get((learner_id, module_id))
        return progression.model_copy(deep=True) if progression else None

    def save_progression(self, learner_id: str, module_id: str, progression: Progression):
        with self._lock:
            self._progressions[(learner_id, module_id)] = progression.model_copy(deep=True)

    def list_progressions(self, module_id: Optional[str] = None) -> list[Progression]:
        with self._lock:
            keys = sorted(k for k in self._progressions if module_id is None or k[1] == module_id)
            return [self._progressions[k].model_copy(deep=True) for k in keys]
