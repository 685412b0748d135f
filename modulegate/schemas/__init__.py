"""
modulegate schemas - Pydantic models for module progression.

This module exports all schema classes for:
- Module: items, completion requirements, modules, courses
- Progress: completion facts and per-learner progressions
"""

# Module schemas
from .module import (
    RequirementType,
    CompletionRequirement,
    ModuleItem,
    Module,
    Course,
    ensure_utc,
    requirement_description,
)

# Progress schemas
from .progress import (
    ProgressionState,
    CompletionFact,
    RequirementMet,
    IncompleteRequirement,
    Progression,
)

__all__ = [
    # Module
    "RequirementType",
    "CompletionRequirement",
    "ModuleItem",
    "Module",
    "Course",
    "ensure_utc",
    "requirement_description",
    # Progress
    "ProgressionState",
    "CompletionFact",
    "RequirementMet",
    "IncompleteRequirement",
    "Progression",
]
