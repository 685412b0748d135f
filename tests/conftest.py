"""Shared fixtures for modulegate tests."""

from datetime import datetime, timezone

import pytest

from modulegate.classroom import InMemoryProgressionStore, ProgressionEvaluator
from modulegate.schemas import CompletionRequirement, ModuleItem, RequirementType


FIXED_NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def make_item(item_id, position, requirement=None, min_score=None, **kwargs) -> ModuleItem:
    """ModuleItem with an optional requirement given by type value."""
    req = None
    if requirement is not None:
        req = CompletionRequirement(type=RequirementType(requirement), min_score=min_score)
    return ModuleItem(id=item_id, position=position, requirement=req, **kwargs)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def item():
    return make_item


@pytest.fixture
def store():
    store = InMemoryProgressionStore()
    store.add_learner("ada", "Ada")
    return store


@pytest.fixture
def evaluator(store, now):
    return ProgressionEvaluator(store, clock=lambda: now)
