"""
Progress reports across learners.

Flattens progressions into a pandas DataFrame (one row per learner x module)
and summarises it per module.
"""

from datetime import datetime
from typing import Mapping

import pandas as pd

from modulegate.schemas import Progression, ProgressionState

REPORT_COLUMNS = [
    "learner_id",
    "module_id",
    "workflow_state",
    "requirements_met",
    "requirements_incomplete",
    "current_position",
    "completed_at",
]


def progressions_frame(progressions_by_learner: Mapping[str, Mapping[str, Progression]]) -> pd.DataFrame:
    """
    Flatten progressions into a DataFrame.

    Args:
        progressions_by_learner: learner_id -> (module_id -> Progression)

    Returns:
        DataFrame with REPORT_COLUMNS, sorted by learner then module order
    """
    rows = []
    for learner_id, progressions in progressions_by_learner.items():
        for order, (module_id, p) in enumerate(progressions.items()):
            rows.append({
                "learner_id": learner_id,
                "module_id": module_id,
                "module_order": order,
                "workflow_state": p.workflow_state.value,
                "requirements_met": len(p.requirements_met),
                "requirements_incomplete": len(p.incomplete_requirements),
                "current_position": p.current_position,
                "completed_at": p.completed_at.isoformat() if p.completed_at else None,
            })

    if not rows:
        return pd.DataFrame(columns=REPORT_COLUMNS)

    df = pd.DataFrame(rows)
    df = df.sort_values(["learner_id", "module_order"]).drop(columns="module_order")
    return df[REPORT_COLUMNS].reset_index(drop=True)


def completion_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Per-module learner counts by workflow state, plus a completion rate."""
    states = [state.value for state in ProgressionState]
    if df.empty:
        return pd.DataFrame(columns=["module_id", *states, "learners", "completion_rate"])

    module_order = list(dict.fromkeys(df["module_id"]))
    counts = (
        df.groupby(["module_id", "workflow_state"]).size()
        .unstack(fill_value=0)
        .reindex(index=module_order, columns=states, fill_value=0)
    )
    counts.index.name = "module_id"
    counts.columns.name = None
    counts["learners"] = counts[states].sum(axis=1)
    counts["completion_rate"] = (counts[ProgressionState.COMPLETED.value] / counts["learners"]).round(3)
    return counts.reset_index()


def render_markdown_report(df: pd.DataFrame, summary: pd.DataFrame) -> str:
    """Human-readable report of a progressions frame and its summary."""
    lines = [
        "# Module Progress Report",
        "",
        f"Generated: {datetime.now().isoformat(timespec='seconds')}",
        "",
        f"- **Learners**: {df['learner_id'].nunique() if not df.empty else 0}",
        f"- **Modules**: {len(summary)}",
        "",
        "## Modules",
        "",
        "| Module | Locked | Unlocked | Started | Completed | Completion |",
        "|--------|--------|----------|---------|-----------|------------|",
    ]
    for _, row in summary.iterrows():
        lines.append(
            f"| {row['module_id']} | {row['locked']} | {row['unlocked']} | {row['started']} "
            f"| {row['completed']} | {row['completion_rate'] * 100:.1f}% |"
        )
    return "\n".join(lines) + "\n"
