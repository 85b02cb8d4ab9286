"""
Actual vs. predicted wait-time summary and chart.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from data import Record


ACTUAL_COLOR = (75 / 255, 192 / 255, 192 / 255)
PREDICTED_COLOR = (255 / 255, 99 / 255, 132 / 255)
CHART_KINDS = ("line", "bar")


@dataclass(frozen=True)
class PredictionSummary:
    mean_actual: Optional[float]
    mean_predicted: Optional[float]
    mae: Optional[float]
    count: int
    known_count: int


def _is_known(value: Optional[float], unknown_label: Optional[float]) -> bool:
    if value is None:
        return False
    return unknown_label is None or value != unknown_label


def mean_excluding(values: Sequence[Optional[float]], unknown_label: Optional[float] = None) -> Optional[float]:
    """Mean of the values that are neither None nor the unknown-wait sentinel."""
    known = [v for v in values if _is_known(v, unknown_label)]
    if not known:
        return None
    return float(np.mean(known))


def summarize(
    actual: Sequence[Optional[float]],
    predicted: Sequence[float],
    unknown_label: Optional[float] = None,
) -> PredictionSummary:
    """
    Averages and mean absolute error for a prediction run.

    Unknown actual values are left out of the actual average and the error,
    but their predictions still count toward the predicted average.
    """
    if len(actual) != len(predicted):
        raise ValueError(f"{len(actual)} actual values but {len(predicted)} predictions")

    pairs = [(a, p) for a, p in zip(actual, predicted) if _is_known(a, unknown_label)]
    mae = float(np.mean([abs(a - p) for a, p in pairs])) if pairs else None

    return PredictionSummary(
        mean_actual=mean_excluding(actual, unknown_label),
        mean_predicted=mean_excluding(predicted),
        mae=mae,
        count=len(predicted),
        known_count=len(pairs),
    )


def point_labels(records: Sequence[Record]) -> List[str]:
    return [f"ID: {r.record_id if r.record_id is not None else i}" for i, r in enumerate(records)]


def render_chart(
    labels: Sequence[str],
    actual: Sequence[Optional[float]],
    predicted: Sequence[float],
    output_path: str,
    kind: str = "line",
    unknown_label: Optional[float] = None,
    title: str = "Actual vs. predicted wait time",
) -> Path:
    """
    Plot actual and predicted wait times with dashed average lines and save as an image.

    Unknown actual values are drawn as gaps.

    Returns:
        The path the chart was written to
    """
    if kind not in CHART_KINDS:
        raise ValueError(f"Unknown chart kind: {kind!r} (expected one of {CHART_KINDS})")
    if not len(labels) == len(actual) == len(predicted):
        raise ValueError("labels, actual and predicted must have the same length")

    actual_plot = np.array(
        [a if _is_known(a, unknown_label) else np.nan for a in actual], dtype=float
    )
    predicted_plot = np.asarray(predicted, dtype=float)
    summary = summarize(actual, predicted, unknown_label)
    x = np.arange(len(labels))

    fig, ax = plt.subplots(figsize=(max(6, len(labels) * 0.6), 5))

    if kind == "line":
        ax.plot(x, actual_plot, color=ACTUAL_COLOR, linewidth=2, marker="o", label="Actual wait time")
        ax.plot(x, predicted_plot, color=PREDICTED_COLOR, linewidth=2, marker="o", label="Predicted wait time")
    else:
        width = 0.4
        ax.bar(x - width / 2, actual_plot, width, color=ACTUAL_COLOR, label="Actual wait time")
        ax.bar(x + width / 2, predicted_plot, width, color=PREDICTED_COLOR, label="Predicted wait time")

    if summary.mean_actual is not None:
        ax.axhline(summary.mean_actual, color=ACTUAL_COLOR, linewidth=2, linestyle=(0, (6, 6)),
                   label=f"Actual average: {summary.mean_actual:.2f}")
    if summary.mean_predicted is not None:
        ax.axhline(summary.mean_predicted, color=PREDICTED_COLOR, linewidth=2, linestyle=(0, (6, 6)),
                   label=f"Predicted average: {summary.mean_predicted:.2f}")

    ax.set_xticks(x)
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.set_ylim(bottom=0)
    ax.set_xlabel("Data point")
    ax.set_ylabel("Wait time (min)")
    ax.set_title(title)
    ax.legend()
    fig.tight_layout()

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path)
    plt.close(fig)
    print(f"Chart saved to {path}")
    return path
