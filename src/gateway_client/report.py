"""
Per-task outcome tables and CSV export for finished batches.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from .batch import BatchResult
from .config import OUTCOMES_CSV, TOP_ERROR_CLASSES

# Column order of the exported outcomes CSV
OUTCOME_COLUMNS: list[str] = [
    "task_id",
    "status",
    "category",
    "attempts",
    "duration_seconds",
    "kind",
    "protocol",
    "currency",
    "transaction_code",
    "amount",
    "transaction_no",
    "gateway_message",
    "follow_up_error",
    "error_type",
    "error",
    "error_key",
]


def _response_fields(data: object) -> dict:
    if not isinstance(data, dict):
        return {"transaction_no": None, "gateway_message": None}
    return {
        "transaction_no": data.get("transaction_no"),
        "gateway_message": data.get("message"),
    }


def _follow_up_errors(outcome) -> str | None:
    # UTR and callback steps record their own errors on the deposit result
    errors = []
    if isinstance(outcome.data, dict):
        errors += [outcome.data[key] for key in ("utr_error", "callback_error") if outcome.data.get(key)]
    if outcome.follow_up_error:
        errors.append(outcome.follow_up_error)
    return "; ".join(errors) or None


def outcomes_to_frame(result: BatchResult) -> pd.DataFrame:
    """
    One row per dispatched task, in submission order.

    Context fields (kind, currency, transaction code, amount) come from the
    task that produced the outcome; response fields are filled for
    successes only, including ``follow_up_error`` for a failed UTR submission
    or callback after an otherwise successful deposit.
    """
    records: list[dict] = []
    for outcome in result.outcomes:
        record: dict = {
            "task_id": outcome.task_id,
            "status": "success" if outcome.ok else "failed",
            "attempts": outcome.attempts,
            "duration_seconds": outcome.duration_seconds,
            **{key: outcome.context.get(key) for key in
               ("kind", "protocol", "currency", "transaction_code", "amount")},
        }
        if outcome.ok:
            record.update(_response_fields(outcome.data))
            record["follow_up_error"] = _follow_up_errors(outcome)
            record["category"] = None
        else:
            record.update({
                "category": outcome.category,
                "error_type": outcome.error_type,
                "error": outcome.error,
                "error_key": outcome.error_key,
            })
        records.append(record)

    return pd.DataFrame(records, columns=OUTCOME_COLUMNS)


def summarize_outcomes(result: BatchResult) -> pd.DataFrame:
    """
    Outcome counts grouped by status and failure category.

    Returns:
        DataFrame with columns ``status``, ``category``, ``count``,
        ``mean_attempts``, ``mean_duration_seconds``, largest group first.
    """
    df = outcomes_to_frame(result)
    if df.empty:
        return pd.DataFrame(
            columns=["status", "category", "count", "mean_attempts", "mean_duration_seconds"]
        )

    df["category"] = df["category"].fillna("-")
    summary = (
        df.groupby(["status", "category"])
        .agg(
            count=("task_id", "size"),
            mean_attempts=("attempts", "mean"),
            mean_duration_seconds=("duration_seconds", "mean"),
        )
        .reset_index()
        .sort_values(["count", "status", "category"], ascending=[False, True, True])
        .reset_index(drop=True)
    )
    summary["mean_attempts"] = summary["mean_attempts"].round(2)
    summary["mean_duration_seconds"] = summary["mean_duration_seconds"].round(3)
    return summary


def error_histogram_frame(result: BatchResult, top_n: int = TOP_ERROR_CLASSES) -> pd.DataFrame:
    """Top-N error keys as a two-column DataFrame (``error_key``, ``count``)."""
    return pd.DataFrame(result.top_errors(top_n), columns=["error_key", "count"])


def export_outcomes(result: BatchResult, path: Path = OUTCOMES_CSV) -> pd.DataFrame:
    """
    Write per-task outcomes to CSV, overwriting ``path``.

    Args:
        result: Finished batch.
        path: Destination CSV.

    Returns:
        The exported DataFrame.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    df = outcomes_to_frame(result)
    df.to_csv(path, index=False)
    print(f"Exported {len(df):,} outcomes to {path}")
    return df
