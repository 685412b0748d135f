"""
ProgressionEvaluator - Compute module progressions for a learner.

Per module and learner the workflow state is one of:
  locked    -> a prerequisite is not completed, or unlock_at is in the future
  unlocked  -> reachable, no requirement met yet
  started   -> at least one requirement met, threshold not reached
  completed -> requirement threshold reached

Every call collects the requested modules plus their transitive
prerequisites, condenses the prerequisite graph into strongly connected
components and evaluates those in topological generations, so a module is
only computed once all of its prerequisites are. Results are memoised for the
duration of one evaluate / evaluate_all call. Modules on a prerequisite cycle
can never have their prerequisites completed and are locked.

Completed is sticky: once stored as completed, a module stays completed while
it is unlocked, whatever happens to the learner's later activity.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

import networkx as nx

from modulegate.exceptions import (
    InconsistentCompletionFact,
    NotFound,
    UnsatisfiableRequirementCount,
)
from modulegate.schemas import (
    CompletionFact,
    IncompleteRequirement,
    Module,
    ModuleItem,
    Progression,
    ProgressionState,
    RequirementMet,
    RequirementType,
)
from modulegate.utils.config import DEFAULT_MAX_DEPTH, DEFAULT_MAX_WORKERS, Settings

from .graph import (
    build_prerequisite_graph,
    component_cycle,
    evaluation_generations,
    is_cyclic_component,
)
from .progress import ProgressionStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _EvaluationRun:
    """State shared by everything one evaluate / evaluate_all call computes."""

    def __init__(self, learner_id: str, now: datetime):
        self.learner_id = learner_id
        self.now = now
        self.lock = threading.Lock()
        self.memo: dict[str, Progression] = {}
        self.modules: dict[str, Module] = {}
        self.missing: set[str] = set()

    def lookup(self, module_id: str) -> Optional[Progression]:
        with self.lock:
            return self.memo.get(module_id)

    def remember(self, module_id: str, progression: Progression):
        with self.lock:
            self.memo[module_id] = progression


class ProgressionEvaluator:
    """
    Evaluate module progressions through a ProgressionStore.

    Only NotFound escapes; cycles and unusable completion facts are logged,
    kept on `issues`, and resolved to the conservative answer.
    """

    def __init__(
        self,
        store: ProgressionStore,
        clock: Optional[Clock] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_depth: Optional[int] = DEFAULT_MAX_DEPTH,
    ):
        """
        Initialize the evaluator.

        Args:
            store: Where modules, completion facts and progressions live
            clock: Returns the current time (aware); defaults to UTC now
            max_workers: Threads used per evaluation (1 = sequential)
            max_depth: Prerequisite chain length treated as misconfiguration;
                None means the number of modules involved in the call, which
                no acyclic chain can reach
        """
        self.store = store
        self.clock = clock or _utcnow
        self.max_workers = max(1, max_workers)
        self.max_depth = None if max_depth is None else max(1, max_depth)
        self._issues: dict[str, ValueError] = {}
        self._issues_lock = threading.Lock()

    @classmethod
    def from_settings(cls, store: ProgressionStore, settings: Settings,
                      clock: Optional[Clock] = None) -> "ProgressionEvaluator":
        return cls(store, clock=clock, max_workers=settings.max_workers, max_depth=settings.max_depth)

    @property
    def issues(self) -> list[ValueError]:
        """Data problems seen so far, each reported once."""
        with self._issues_lock:
            return list(self._issues.values())

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def evaluate(self, learner_id: str, module_id: str) -> Progression:
        """
        Evaluate one module for a learner, prerequisites first.

        Raises:
            NotFound: If the learner or module does not exist
        """
        self._require_learner(learner_id)
        run = _EvaluationRun(learner_id, self.clock())
        module = self._load_module(run, module_id)
        if module is None:
            raise NotFound("module", module_id)
        self._evaluate_modules(run, [module])
        return run.memo[module_id]

    def evaluate_all(self, learner_id: str,
                     module_ids: Optional[Iterable[str]] = None) -> dict[str, Progression]:
        """
        Evaluate several modules for a learner (default: every stored module).

        Modules are evaluated in prerequisite order. Independent modules of
        the same generation run in parallel when max_workers > 1.

        Returns:
            Mapping module_id -> Progression, in request order

        Raises:
            NotFound: If the learner or any requested module does not exist;
                raised before anything is evaluated
        """
        self._require_learner(learner_id)
        if module_ids is None:
            module_ids = self.store.list_module_ids()
        module_ids = list(dict.fromkeys(module_ids))

        run = _EvaluationRun(learner_id, self.clock())
        requested = []
        for module_id in module_ids:
            module = self._load_module(run, module_id)
            if module is None:
                raise NotFound("module", module_id)
            requested.append(module)

        self._evaluate_modules(run, requested)
        return {module_id: run.memo[module_id] for module_id in module_ids}

    def evaluate_learners(self, module_id: str, learner_ids: Iterable[str]) -> dict[str, Progression]:
        """Re-evaluate one module for many learners, e.g. after it was edited."""
        return {learner_id: self.evaluate(learner_id, module_id) for learner_id in learner_ids}

    # -------------------------------------------------------------------------
    # Module resolution
    # -------------------------------------------------------------------------

    def _require_learner(self, learner_id: str):
        if not self.store.has_learner(learner_id):
            raise NotFound("learner", learner_id)

    def _load_module(self, run: _EvaluationRun, module_id: str) -> Optional[Module]:
        """Module by id, cached per run; None when the store does not know it."""
        with run.lock:
            if module_id in run.modules:
                return run.modules[module_id]
            if module_id in run.missing:
                return None
        try:
            module = self.store.get_module(module_id)
        except NotFound:
            with run.lock:
                run.missing.add(module_id)
            return None
        with run.lock:
            run.modules[module_id] = module
        return module

    def _prerequisite_closure(self, run: _EvaluationRun, modules: list[Module]) -> list[Module]:
        """The given modules plus everything they transitively require."""
        seen = {module.id: module for module in modules}
        pending = list(modules)
        while pending:
            module = pending.pop()
            for prereq_id in module.prerequisite_module_ids:
                if prereq_id in seen:
                    continue
                prereq = self._load_module(run, prereq_id)
                if prereq is None:
                    continue
                seen[prereq_id] = prereq
                pending.append(prereq)
        return list(seen.values())

    def _evaluate_modules(self, run: _EvaluationRun, modules: list[Module]):
        """Evaluate modules and their prerequisites, filling run.memo."""
        closure = self._prerequisite_closure(run, modules)
        G = build_prerequisite_graph(closure)
        generations = evaluation_generations(G)
        limit = self.max_depth if self.max_depth is not None else len(closure)

        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                for depth, generation in enumerate(generations):
                    futures = [
                        executor.submit(self._evaluate_component, run, G, component, depth >= limit)
                        for component in generation
                    ]
                    for future in futures:
                        future.result()
        else:
            for depth, generation in enumerate(generations):
                for component in generation:
                    self._evaluate_component(run, G, component, depth >= limit)

    def _evaluate_component(self, run: _EvaluationRun, G: nx.DiGraph,
                            component: list[str], too_deep: bool):
        cyclic = is_cyclic_component(G, component)
        if cyclic:
            self._report(component_cycle(G, component), logging.WARNING)
        elif too_deep:
            logger.warning(
                f"Prerequisite chain of module {component[0]} is longer than "
                f"{self.max_depth}, treating its prerequisites as not completed"
            )

        for module_id in component:
            module = run.modules[module_id]
            prerequisites_met = not cyclic and not too_deep and all(
                self._prerequisite_completed(run, prereq_id)
                for prereq_id in module.prerequisite_module_ids
            )
            self._evaluate_module(run, module, prerequisites_met)

    @staticmethod
    def _prerequisite_completed(run: _EvaluationRun, prereq_id: str) -> bool:
        progression = run.lookup(prereq_id)
        if progression is None:
            # unknown module, already skipped with a warning by the graph
            return True
        return progression.is_completed

    def _evaluate_module(self, run: _EvaluationRun, module: Module,
                         prerequisites_met: bool) -> Progression:
        previous = self.store.load_progression(run.learner_id, module.id)
        progression = self._compute(run, module, prerequisites_met, previous)
        run.remember(module.id, progression)
        if progression != previous:
            self.store.save_progression(run.learner_id, module.id, progression)
        logger.debug(
            f"Evaluated module {module.id} for learner {run.learner_id}: "
            f"{progression.workflow_state.value}"
        )
        return progression

    # -------------------------------------------------------------------------
    # Requirement evaluation
    # -------------------------------------------------------------------------

    def _compute(self, run: _EvaluationRun, module: Module, prerequisites_met: bool,
                 previous: Optional[Progression]) -> Progression:
        collapsed = previous.collapsed if previous else False
        total = len(module.requirement_items)
        if module.requirement_count > total:
            self._report(
                UnsatisfiableRequirementCount(module.id, module.requirement_count, total),
                logging.WARNING,
            )

        if not prerequisites_met or module.to_be_unlocked(run.now):
            return Progression(
                learner_id=run.learner_id,
                module_id=module.id,
                workflow_state=ProgressionState.LOCKED,
                current_position=module.first_position,
                collapsed=collapsed,
            )

        facts = self.store.completions_for(run.learner_id, [item.id for item in module.items])
        satisfied = {
            item.id: self._requirement_satisfied(run, module, item, facts.get(item.id, {}))
            for item in module.requirement_items
        }

        # index of the furthest reachable item in walking order
        reachable = len(module.items) - 1
        current_position = None
        if module.require_sequential_progress and module.items:
            current_position = module.items[-1].position
            for index, item in enumerate(module.items):
                if item.requirement is not None and not satisfied[item.id]:
                    reachable = index
                    current_position = item.position
                    break

        met: list[RequirementMet] = []
        incomplete: list[IncompleteRequirement] = []
        met_facts: list[CompletionFact] = []
        for index, item in enumerate(module.items):
            requirement = item.requirement
            if requirement is None:
                continue
            item_facts = facts.get(item.id, {})
            if satisfied[item.id] and index <= reachable:
                met.append(RequirementMet(item_id=item.id, type=requirement.type))
                met_facts.append(item_facts[requirement.type])
            else:
                score = None
                if requirement.type == RequirementType.MIN_SCORE and RequirementType.MIN_SCORE in item_facts:
                    score = item_facts[RequirementType.MIN_SCORE].score
                incomplete.append(IncompleteRequirement(
                    item_id=item.id,
                    type=requirement.type,
                    min_score=requirement.min_score,
                    score=score,
                ))

        needed = total if module.requirement_count == 0 else min(module.requirement_count, total)
        threshold_reached = len(met) >= needed
        was_completed = previous is not None and previous.is_completed

        if threshold_reached or was_completed:
            state = ProgressionState.COMPLETED
        elif met:
            state = ProgressionState.STARTED
        else:
            state = ProgressionState.UNLOCKED

        completed_at = None
        if state == ProgressionState.COMPLETED:
            if was_completed and previous.completed_at is not None:
                completed_at = previous.completed_at
            elif met_facts:
                completed_at = max(fact.satisfied_at for fact in met_facts)
            else:
                completed_at = module.unlock_at

        return Progression(
            learner_id=run.learner_id,
            module_id=module.id,
            workflow_state=state,
            requirements_met=met,
            incomplete_requirements=incomplete,
            current_position=current_position,
            completed_at=completed_at,
            collapsed=collapsed,
        )

    def _requirement_satisfied(self, run: _EvaluationRun, module: Module, item: ModuleItem,
                               facts: dict[RequirementType, CompletionFact]) -> bool:
        requirement = item.requirement
        if item.content_locked:
            if facts:
                self._report(
                    InconsistentCompletionFact(run.learner_id, module.id, item.id, "content is locked"),
                    logging.DEBUG,
                )
            return False

        if requirement.type == RequirementType.MIN_SCORE:
            fact = facts.get(RequirementType.MIN_SCORE)
            if fact is None:
                return False
            if fact.score is None:
                self._report(
                    InconsistentCompletionFact(run.learner_id, module.id, item.id, "min_score fact has no score"),
                    logging.DEBUG,
                )
                return False
            return fact.score >= requirement.min_score

        return requirement.type in facts

    def _report(self, issue: ValueError, level: int):
        key = f"{type(issue).__name__}: {issue}"
        with self._issues_lock:
            if key in self._issues:
                return
            self._issues[key] = issue
        logger.log(level, str(issue))
