"""
Progression schemas for modulegate.

Defines Pydantic models for learner progress including:
- Module workflow states
- Recorded completion facts
- Per-learner module progressions
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .module import RequirementType, ensure_utc


class ProgressionState(str, Enum):
    LOCKED = "locked"         # prerequisites unmet or unlock_at in the future
    UNLOCKED = "unlocked"     # reachable, nothing met yet
    STARTED = "started"       # some requirements met
    COMPLETED = "completed"   # requirement threshold reached


class CompletionFact(BaseModel):
    """Something a learner did to an item, as recorded by the store."""
    model_config = ConfigDict(frozen=True)

    item_id: str
    requirement_type: RequirementType
    satisfied_at: datetime
    score: Optional[float] = None

    @field_validator("satisfied_at")
    @classmethod
    def satisfied_at_utc(cls, v):
        return ensure_utc(v)


class RequirementMet(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    type: RequirementType


class IncompleteRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    type: RequirementType
    min_score: Optional[float] = None
    score: Optional[float] = None  # best recorded score, for min_score items


class Progression(BaseModel):
    """Computed state of one module for one learner."""
    learner_id: str
    module_id: str
    workflow_state: ProgressionState = ProgressionState.LOCKED
    requirements_met: list[RequirementMet] = []
    incomplete_requirements: list[IncompleteRequirement] = []
    current_position: Optional[int] = None
    completed_at: Optional[datetime] = None
    collapsed: bool = False

    @field_validator("completed_at")
    @classmethod
    def completed_at_utc(cls, v):
        return ensure_utc(v)

    @property
    def is_locked(self) -> bool:
        return self.workflow_state == ProgressionState.LOCKED

    @property
    def is_completed(self) -> bool:
        return self.workflow_state == ProgressionState.COMPLETED

    def has_met(self, item_id: str, requirement_type: RequirementType) -> bool:
        return RequirementMet(item_id=item_id, type=requirement_type) in self.requirements_met
