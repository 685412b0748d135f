"""
Module structure schemas for modulegate.

Defines Pydantic models for course structure including:
- Completion requirements attached to module items
- Module items with ordering and content locks
- Modules with prerequisites, sequential progress and unlock dates
- Courses as ordered collections of modules
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so they compare against aware clocks."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# -----------------------------------------------------------------------------
# Completion requirements
# -----------------------------------------------------------------------------


class RequirementType(str, Enum):
    MUST_VIEW = "must_view"
    MUST_SUBMIT = "must_submit"
    MUST_CONTRIBUTE = "must_contribute"
    MUST_MARK_DONE = "must_mark_done"
    MIN_SCORE = "min_score"


class CompletionRequirement(BaseModel):
    """Requirement a learner must satisfy on one item."""
    model_config = ConfigDict(frozen=True)

    type: RequirementType
    min_score: Optional[float] = Field(default=None, ge=0)  # only for min_score

    @model_validator(mode="after")
    def threshold_matches_type(self):
        if self.type == RequirementType.MIN_SCORE and self.min_score is None:
            raise ValueError("min_score requirement needs a min_score threshold")
        if self.type != RequirementType.MIN_SCORE and self.min_score is not None:
            raise ValueError(f"{self.type.value} requirement does not take a min_score")
        return self


def requirement_description(requirement: CompletionRequirement) -> str:
    """Human-readable description of a requirement, as shown to learners."""
    if requirement.type == RequirementType.MIN_SCORE:
        score = requirement.min_score
        shown = int(score) if score is not None and float(score).is_integer() else score
        return f"score at least {shown}"
    return {
        RequirementType.MUST_VIEW: "view",
        RequirementType.MUST_SUBMIT: "submit",
        RequirementType.MUST_CONTRIBUTE: "contribute",
        RequirementType.MUST_MARK_DONE: "mark as done",
    }[requirement.type]


# -----------------------------------------------------------------------------
# Items and modules
# -----------------------------------------------------------------------------


class ModuleItem(BaseModel):
    """One piece of content inside a module."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str = ""
    position: int
    requirement: Optional[CompletionRequirement] = None
    content_locked: bool = False  # underlying content inaccessible to the learner

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.position, self.id)


class Module(BaseModel):
    """
    Ordered container of items with gating rules.

    Items are normalised to (position, id) order on validation, so callers can
    rely on `items` being in walking order. Prerequisite ids are stored as
    given: they may reference missing modules or form cycles, and the
    evaluator copes with both.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    position: int = 0
    items: list[ModuleItem] = []
    prerequisite_module_ids: list[str] = []
    require_sequential_progress: bool = False
    requirement_count: int = Field(default=0, ge=0)  # 0 = all, N = any N
    unlock_at: Optional[datetime] = None

    @field_validator("items")
    @classmethod
    def items_in_order(cls, v):
        ids = [item.id for item in v]
        duplicates = sorted({item_id for item_id in ids if ids.count(item_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate item ids in module: {', '.join(duplicates)}")
        return sorted(v, key=lambda item: item.sort_key)

    @field_validator("prerequisite_module_ids")
    @classmethod
    def dedupe_prerequisites(cls, v):
        return list(dict.fromkeys(v))

    @field_validator("unlock_at")
    @classmethod
    def unlock_at_utc(cls, v):
        return ensure_utc(v)

    @property
    def requirement_items(self) -> list[ModuleItem]:
        """Items carrying a completion requirement, in walking order."""
        return [item for item in self.items if item.requirement is not None]

    @property
    def first_position(self) -> Optional[int]:
        return self.items[0].position if self.items else None

    def get_item(self, item_id: str) -> Optional[ModuleItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_be_unlocked(self, now: datetime) -> bool:
        """True while unlock_at is still in the future."""
        return self.unlock_at is not None and self.unlock_at > now


class Course(BaseModel):
    """Ordered collection of modules."""
    id: str = Field(..., min_length=1)
    name: str = ""
    modules: list[Module] = []

    @field_validator("modules")
    @classmethod
    def modules_in_order(cls, v):
        ids = [module.id for module in v]
        duplicates = sorted({module_id for module_id in ids if ids.count(module_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate module ids in course: {', '.join(duplicates)}")
        return sorted(v, key=lambda module: (module.position, module.id))

    def get_module(self, module_id: str) -> Optional[Module]:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None
