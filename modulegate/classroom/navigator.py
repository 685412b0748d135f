"""
Navigator - What a learner can open next, and what still blocks them.

Provides:
- Pending requirements per module, with descriptions and availability
- Gate reports for locked modules and sequentially locked items
- Opening an item (re-evaluating when it looks locked)
- Collapse flags
- Course tree with status indicators and a progress summary
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from modulegate.exceptions import NotFound
from modulegate.schemas import (
    CompletionRequirement,
    Module,
    ModuleItem,
    Progression,
    ProgressionState,
    requirement_description,
)

from .evaluator import ProgressionEvaluator
from .progress import ProgressionStore


class ItemAvailability(str, Enum):
    """Item availability for one learner."""
    LOCKED = "locked"           # module locked, or behind a sequential gate
    AVAILABLE = "available"     # can be opened
    COMPLETED = "completed"     # requirement met


@dataclass
class PendingRequirement:
    """An unmet requirement the learner still has to finish."""
    item_id: str
    module_id: str
    title: str
    requirement: CompletionRequirement
    description: str
    available: bool


@dataclass
class PendingModule:
    """A module standing between the learner and what they tried to open."""
    module_id: str
    name: str
    locked: bool
    requirements: list[PendingRequirement]


@dataclass
class GateReport:
    locked: bool
    modules: list[PendingModule]


@dataclass
class NavigationItem:
    item_id: str
    title: str
    position: int
    availability: ItemAvailability


@dataclass
class NavigationModule:
    """Module with progression and per-item navigation metadata."""
    module: Module
    progression: Progression
    items: list[NavigationItem]
    status_indicator: str


STATUS_INDICATORS = {
    ProgressionState.COMPLETED: "✓",
    ProgressionState.STARTED: "→",
    ProgressionState.UNLOCKED: "○",
    ProgressionState.LOCKED: "◌",
}


class Navigator:
    """
    Navigate a learner through modules.

    Combines the store (module definitions) with the evaluator (progressions)
    to answer availability questions.
    """

    def __init__(self, store: ProgressionStore, evaluator: ProgressionEvaluator):
        self.store = store
        self.evaluator = evaluator

    # -------------------------------------------------------------------------
    # Pending requirements
    # -------------------------------------------------------------------------

    def pending_requirements(self, module: Module, progression: Progression,
                             before_item_id: Optional[str] = None) -> list[PendingRequirement]:
        """
        Unmet requirements of a module, in walking order.

        Args:
            module: Module definition
            progression: The learner's progression for that module
            before_item_id: Only list requirements up to and including this item
        """
        limit = None
        if before_item_id is not None:
            before_item = module.get_item(before_item_id)
            if before_item is None:
                raise NotFound("item", before_item_id)
            limit = before_item.sort_key

        pending = []
        for item in module.requirement_items:
            if limit is not None and item.sort_key > limit:
                continue
            if progression.has_met(item.id, item.requirement.type):
                continue
            pending.append(PendingRequirement(
                item_id=item.id,
                module_id=module.id,
                title=item.title,
                requirement=item.requirement,
                description=requirement_description(item.requirement),
                available=self._item_reachable(module, progression, item),
            ))
        return pending

    def requirements_needing_finishing(self, learner_id: str, module_id: str,
                                       item_id: Optional[str] = None) -> GateReport:
        """
        Explain what blocks a module, or an item inside it.

        A locked module reports every unfinished module on its prerequisite
        chain, in course order. An item behind a sequential gate reports the
        pending requirements of its own module up to that item.
        """
        module = self.store.get_module(module_id)
        progressions = self.evaluator.evaluate_all(learner_id, [module_id])
        progression = progressions[module_id]

        if progression.is_locked:
            chain = self._prerequisite_chain(module)
            chain_progressions = self.evaluator.evaluate_all(learner_id, [m.id for m in chain])
            modules = []
            for prereq in chain:
                prereq_progression = chain_progressions[prereq.id]
                if prereq_progression.is_completed:
                    continue
                modules.append(PendingModule(
                    module_id=prereq.id,
                    name=prereq.name,
                    locked=prereq_progression.is_locked,
                    requirements=self.pending_requirements(prereq, prereq_progression),
                ))
            return GateReport(locked=True, modules=modules)

        if item_id is not None and module.require_sequential_progress:
            item = module.get_item(item_id)
            if item is None:
                raise NotFound("item", item_id)
            if not self._item_reachable(module, progression, item):
                return GateReport(locked=True, modules=[PendingModule(
                    module_id=module.id,
                    name=module.name,
                    locked=False,
                    requirements=self.pending_requirements(module, progression, before_item_id=item_id),
                )])

        return GateReport(locked=False, modules=[])

    def _prerequisite_chain(self, module: Module) -> list[Module]:
        """Transitive prerequisites of a module, ordered by position."""
        seen: dict[str, Module] = {}
        pending = list(module.prerequisite_module_ids)
        while pending:
            prereq_id = pending.pop()
            if prereq_id in seen or prereq_id == module.id:
                continue
            try:
                prereq = self.store.get_module(prereq_id)
            except NotFound:
                continue
            seen[prereq_id] = prereq
            pending.extend(prereq.prerequisite_module_ids)
        return sorted(seen.values(), key=lambda m: (m.position, m.id))

    # -------------------------------------------------------------------------
    # Item availability
    # -------------------------------------------------------------------------

    @staticmethod
    def _sequential_gate(module: Module, progression: Progression) -> Optional[tuple[int, str]]:
        """
        Sort key of the item blocking sequential progress, or None.

        Every requirement before the blocking item is met, so the blocker is
        the first requirement item, in walking order, not in requirements_met.
        """
        for item in module.requirement_items:
            if not progression.has_met(item.id, item.requirement.type):
                return item.sort_key
        return None

    @classmethod
    def _item_reachable(cls, module: Module, progression: Progression, item: ModuleItem) -> bool:
        if progression.is_locked:
            return False
        if not module.require_sequential_progress:
            return True
        gate = cls._sequential_gate(module, progression)
        return gate is None or item.sort_key <= gate

    def get_item_availability(self, learner_id: str, module_id: str, item_id: str) -> ItemAvailability:
        module = self.store.get_module(module_id)
        item = module.get_item(item_id)
        if item is None:
            raise NotFound("item", item_id)
        progression = self.evaluator.evaluate(learner_id, module_id)
        return self._availability(module, progression, item.id)

    def _availability(self, module: Module, progression: Progression, item_id: str) -> ItemAvailability:
        item = module.get_item(item_id)
        if item.requirement is not None and progression.has_met(item.id, item.requirement.type):
            return ItemAvailability.COMPLETED
        if self._item_reachable(module, progression, item):
            return ItemAvailability.AVAILABLE
        return ItemAvailability.LOCKED

    def open_item(self, learner_id: str, module_id: str, item_id: str) -> tuple[Progression, ItemAvailability]:
        """
        Open an item the way a learner following a link would.

        If the item looks locked, every module is re-evaluated first (stored
        progressions may be stale after authoring changes). The module is
        uncollapsed so the item is visible.
        """
        availability = self.get_item_availability(learner_id, module_id, item_id)
        if availability == ItemAvailability.LOCKED:
            self.evaluator.evaluate_all(learner_id)
            availability = self.get_item_availability(learner_id, module_id, item_id)

        progression = self.evaluator.evaluate(learner_id, module_id)
        if progression.collapsed:
            progression = self.set_collapsed(learner_id, module_id, False)
        return progression, availability

    # -------------------------------------------------------------------------
    # Collapse flags
    # -------------------------------------------------------------------------

    def set_collapsed(self, learner_id: str, module_id: str, collapsed: bool) -> Progression:
        """Set the display collapse flag; locking is unaffected."""
        progression = self.evaluator.evaluate(learner_id, module_id)
        if progression.collapsed != collapsed:
            progression = progression.model_copy(update={"collapsed": collapsed})
            self.store.save_progression(learner_id, module_id, progression)
        return progression

    def set_all_collapsed(self, learner_id: str, collapsed: bool) -> list[Progression]:
        return [
            self.set_collapsed(learner_id, module_id, collapsed)
            for module_id in self.store.list_module_ids()
        ]

    # -------------------------------------------------------------------------
    # Course tree
    # -------------------------------------------------------------------------

    @staticmethod
    def get_status_indicator(progression: Progression) -> str:
        """
        Status indicator for list display.

        Returns:
            ✓ for completed
            → for started
            ○ for unlocked
            ◌ for locked
        """
        return STATUS_INDICATORS[progression.workflow_state]

    def get_navigation_tree(self, learner_id: str) -> list[NavigationModule]:
        """Every module in course order, annotated for the learner."""
        progressions = self.evaluator.evaluate_all(learner_id)
        tree = []
        for module_id, progression in progressions.items():
            module = self.store.get_module(module_id)
            items = [
                NavigationItem(
                    item_id=item.id,
                    title=item.title,
                    position=item.position,
                    availability=self._availability(module, progression, item.id),
                )
                for item in module.items
            ]
            tree.append(NavigationModule(
                module=module,
                progression=progression,
                items=items,
                status_indicator=self.get_status_indicator(progression),
            ))
        return tree

    def get_progress_summary(self, learner_id: str) -> dict:
        """Completion statistics across all modules."""
        progressions = self.evaluator.evaluate_all(learner_id)
        counts = {state.value: 0 for state in ProgressionState}
        for progression in progressions.values():
            counts[progression.workflow_state.value] += 1

        total = len(progressions)
        completed = counts[ProgressionState.COMPLETED.value]
        next_module_id = next(
            (module_id for module_id, p in progressions.items()
             if p.workflow_state in (ProgressionState.STARTED, ProgressionState.UNLOCKED)),
            None,
        )
        return {
            "total_modules": total,
            **counts,
            "completion_percent": round(completed / total * 100, 1) if total > 0 else 0,
            "recommended_module_id": next_module_id,
        }
