"""
ProgressionStore - Persist module definitions, completion facts and progressions.

The evaluator talks to storage only through the ProgressionStore protocol:
- Learner and module lookup
- Completion facts per learner and item
- Last computed progression per (learner, module)

SQLiteProgressionStore is the on-disk implementation; each call is atomic.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Protocol

from modulegate.exceptions import NotFound
from modulegate.schemas import (
    CompletionFact,
    Course,
    IncompleteRequirement,
    Module,
    Progression,
    ProgressionState,
    RequirementMet,
    RequirementType,
    ensure_utc,
)
from modulegate.utils.config import DEFAULT_PROGRESS_DB

logger = logging.getLogger(__name__)

FactsByItem = dict[str, dict[RequirementType, CompletionFact]]


class ProgressionStore(Protocol):
    """Storage boundary consumed by ProgressionEvaluator."""

    def has_learner(self, learner_id: str) -> bool: ...

    def get_module(self, module_id: str) -> Module: ...

    def list_module_ids(self) -> list[str]: ...

    def completions_for(self, learner_id: str, item_ids: Iterable[str]) -> FactsByItem: ...

    def load_progression(self, learner_id: str, module_id: str) -> Optional[Progression]: ...

    def save_progression(self, learner_id: str, module_id: str, progression: Progression) -> None: ...


SCHEMA = """
CREATE TABLE IF NOT EXISTS learners (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS modules (
    id TEXT PRIMARY KEY,
    course_id TEXT,
    position INTEGER NOT NULL DEFAULT 0,
    definition JSON NOT NULL
);

CREATE TABLE IF NOT EXISTS completion_facts (
    learner_id TEXT NOT NULL,
    item_id TEXT NOT NULL,
    requirement_type TEXT NOT NULL,
    satisfied_at TEXT NOT NULL,
    score REAL,
    PRIMARY KEY (learner_id, item_id, requirement_type)
);

CREATE TABLE IF NOT EXISTS module_progressions (
    learner_id TEXT NOT NULL,
    module_id TEXT NOT NULL,
    workflow_state TEXT NOT NULL,
    requirements_met JSON NOT NULL DEFAULT '[]',
    incomplete_requirements JSON NOT NULL DEFAULT '[]',
    current_position INTEGER,
    completed_at TEXT,
    collapsed INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (learner_id, module_id)
);

CREATE INDEX IF NOT EXISTS idx_modules_course ON modules(course_id);
CREATE INDEX IF NOT EXISTS idx_facts_learner ON completion_facts(learner_id);
CREATE INDEX IF NOT EXISTS idx_progressions_module ON module_progressions(module_id);
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLiteProgressionStore:
    """
    ProgressionStore backed by SQLite.

    Each method opens its own connection, so one store can be shared by the
    worker threads of a parallel evaluate_all.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            db_path: Path to the database (default: ~/.modulegate/progress.db)
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_PROGRESS_DB
        self._ensure_database()

    def _ensure_database(self):
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # -------------------------------------------------------------------------
    # Learners
    # -------------------------------------------------------------------------

    def add_learner(self, learner_id: str, name: str = ""):
        """Register a learner; re-adding only updates the name."""
        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO learners (id, name, created_at) VALUES (?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET name = excluded.name""",
                (learner_id, name, _utcnow().isoformat())
            )
            conn.commit()
        finally:
            conn.close()

    def has_learner(self, learner_id: str) -> bool:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT 1 FROM learners WHERE id = ?", (learner_id,)).fetchone()
            return row is not None
        finally:
            conn.close()

    def list_learner_ids(self) -> list[str]:
        conn = self._get_connection()
        try:
            rows = conn.execute("SELECT id FROM learners ORDER BY id").fetchall()
            return [row["id"] for row in rows]
        finally:
            conn.close()

    def reset_learner(self, learner_id: str):
        """Delete every fact and progression recorded for a learner."""
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM completion_facts WHERE learner_id = ?", (learner_id,))
            conn.execute("DELETE FROM module_progressions WHERE learner_id = ?", (learner_id,))
            conn.commit()
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Modules
    # -------------------------------------------------------------------------

    def put_module(self, module: Module, course_id: Optional[str] = None):
        """Insert or replace a module definition."""
        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO modules (id, course_id, position, definition)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     course_id = COALESCE(excluded.course_id, course_id),
                     position = excluded.position,
                     definition = excluded.definition""",
                (module.id, course_id, module.position, module.model_dump_json())
            )
            conn.commit()
        finally:
            conn.close()

    def put_course(self, course: Course):
        """Store every module of a course."""
        for module in course.modules:
            self.put_module(module, course_id=course.id)
        logger.debug(f"Stored {len(course.modules)} modules for course {course.id}")

    def remove_module(self, module_id: str) -> bool:
        """Remove a module and its stored progressions."""
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM modules WHERE id = ?", (module_id,))
            conn.execute("DELETE FROM module_progressions WHERE module_id = ?", (module_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def get_module(self, module_id: str) -> Module:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT definition FROM modules WHERE id = ?", (module_id,)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFound("module", module_id)
        return Module.model_validate_json(row["definition"])

    def list_module_ids(self, course_id: Optional[str] = None) -> list[str]:
        """Module ids ordered by position, optionally for one course."""
        conn = self._get_connection()
        try:
            if course_id is None:
                rows = conn.execute("SELECT id FROM modules ORDER BY position, id").fetchall()
            else:
                rows = conn.execute(
                    "SELECT id FROM modules WHERE course_id = ? ORDER BY position, id",
                    (course_id,)
                ).fetchall()
            return [row["id"] for row in rows]
        finally:
            conn.close()

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
        """Record (or overwrite) one completion fact."""
        when = ensure_utc(satisfied_at) or _utcnow()
        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO completion_facts
                     (learner_id, item_id, requirement_type, satisfied_at, score)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(learner_id, item_id, requirement_type) DO UPDATE SET
                     satisfied_at = excluded.satisfied_at,
                     score = excluded.score""",
                (learner_id, item_id, RequirementType(requirement_type).value, when.isoformat(), score)
            )
            conn.commit()
        finally:
            conn.close()

    def record_score(self, learner_id: str, item_id: str, score: float,
                     satisfied_at: Optional[datetime] = None):
        """Record the learner's score on an item's content."""
        self.record_completion(learner_id, item_id, RequirementType.MIN_SCORE, score, satisfied_at)

    def clear_completion(self, learner_id: str, item_id: str,
                         requirement_type: Optional[RequirementType] = None) -> int:
        """Delete facts for an item (one type, or all). Returns rows removed."""
        conn = self._get_connection()
        try:
            if requirement_type is None:
                cursor = conn.execute(
                    "DELETE FROM completion_facts WHERE learner_id = ? AND item_id = ?",
                    (learner_id, item_id)
                )
            else:
                cursor = conn.execute(
                    """DELETE FROM completion_facts
                       WHERE learner_id = ? AND item_id = ? AND requirement_type = ?""",
                    (learner_id, item_id, RequirementType(requirement_type).value)
                )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def completions_for(self, learner_id: str, item_ids: Iterable[str]) -> FactsByItem:
        item_ids = list(item_ids)
        if not item_ids:
            return {}
        placeholders = ", ".join("?" for _ in item_ids)
        conn = self._get_connection()
        try:
            rows = conn.execute(
                f"""SELECT item_id, requirement_type, satisfied_at, score
                    FROM completion_facts
                    WHERE learner_id = ? AND item_id IN ({placeholders})""",
                (learner_id, *item_ids)
            ).fetchall()
        finally:
            conn.close()

        result: FactsByItem = {}
        for row in rows:
            fact = CompletionFact(
                item_id=row["item_id"],
                requirement_type=RequirementType(row["requirement_type"]),
                satisfied_at=datetime.fromisoformat(row["satisfied_at"]),
                score=row["score"],
            )
            result.setdefault(fact.item_id, {})[fact.requirement_type] = fact
        return result

    # -------------------------------------------------------------------------
    # Progressions
    # -------------------------------------------------------------------------

    def load_progression(self, learner_id: str, module_id: str) -> Optional[Progression]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                """SELECT workflow_state, requirements_met, incomplete_requirements,
                          current_position, completed_at, collapsed
                   FROM module_progressions
                   WHERE learner_id = ? AND module_id = ?""",
                (learner_id, module_id)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None

        return Progression(
            learner_id=learner_id,
            module_id=module_id,
            workflow_state=ProgressionState(row["workflow_state"]),
            requirements_met=[RequirementMet(**r) for r in json.loads(row["requirements_met"])],
            incomplete_requirements=[
                IncompleteRequirement(**r) for r in json.loads(row["incomplete_requirements"])
            ],
            current_position=row["current_position"],
            completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
            collapsed=bool(row["collapsed"]),
        )

    def save_progression(self, learner_id: str, module_id: str, progression: Progression):
        requirements_met = json.dumps([r.model_dump(mode="json") for r in progression.requirements_met])
        incomplete = json.dumps([r.model_dump(mode="json") for r in progression.incomplete_requirements])
        completed_at = progression.completed_at.isoformat() if progression.completed_at else None

        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO module_progressions
                     (learner_id, module_id, workflow_state, requirements_met,
                      incomplete_requirements, current_position, completed_at,
                      collapsed, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(learner_id, module_id) DO UPDATE SET
                     workflow_state = excluded.workflow_state,
                     requirements_met = excluded.requirements_met,
                     incomplete_requirements = excluded.incomplete_requirements,
                     current_position = excluded.current_position,
                     completed_at = excluded.completed_at,
                     collapsed = excluded.collapsed,
                     updated_at = excluded.updated_at""",
                (
                    learner_id,
                    module_id,
                    progression.workflow_state.value,
                    requirements_met,
                    incomplete,
                    progression.current_position,
                    completed_at,
                    int(progression.collapsed),
                    _utcnow().isoformat(),
                )
            )
            conn.commit()
        finally:
            conn.close()

    def list_progressions(self, module_id: Optional[str] = None) -> list[Progression]:
        """Stored progressions, optionally for one module."""
        conn = self._get_connection()
        try:
            if module_id is None:
                rows = conn.execute(
                    "SELECT learner_id, module_id FROM module_progressions ORDER BY learner_id, module_id"
                ).fetchall()
            else:
                rows = conn.execute(
                    """SELECT learner_id, module_id FROM module_progressions
                       WHERE module_id = ? ORDER BY learner_id""",
                    (module_id,)
                ).fetchall()
            keys = [(row["learner_id"], row["module_id"]) for row in rows]
        finally:
            conn.close()
        progressions = (self.load_progression(learner, module) for learner, module in keys)
        return [p for p in progressions if p is not None]
