from __future__ import annotations

from typing import Any

import matplotlib.pyplot as plt

from .analytics import AnalyticsSnapshot

_RANGE_TITLES = {"week": "Last 7 days", "month": "Last 30 days", "all": "Last 90 days"}


def build_summary_figure(snapshot: AnalyticsSnapshot) -> Any:
    """Daily minutes as bars next to a pie of minutes per subject."""
    fig, (ax_daily, ax_subjects) = plt.subplots(1, 2, figsize=(11, 4))  # type: ignore[call-arg]

    labels = [b.label for b in snapshot.daily]
    minutes = [b.minutes for b in snapshot.daily]
    ax_daily.bar(range(len(minutes)), minutes, color="#2ecc71")
    # Thin out tick labels on the longer ranges
    step = max(1, len(labels) // 10)
    ax_daily.set_xticks(range(0, len(labels), step))
    ax_daily.set_xticklabels(labels[::step], rotation=45, ha="right")
    ax_daily.set_ylabel("Minutes")
    ax_daily.set_title(_RANGE_TITLES.get(snapshot.time_range.value, "Daily"))

    names = [s.name for s in snapshot.subjects]
    sizes = [s.minutes for s in snapshot.subjects]
    if sum(sizes) <= 0:
        # Avoid divide-by-zero; show an empty chart
        ax_subjects.text(0.5, 0.5, "No sessions yet", ha="center", va="center")
        ax_subjects.set_axis_off()
    else:
        ax_subjects.pie(
            sizes,
            labels=names,
            autopct=lambda p: f"{p:.1f}%",
            startangle=140,
            textprops={"color": "black"},
        )  # type: ignore[call-arg]
        ax_subjects.axis("equal")  # Equal aspect ratio ensures that pie is drawn as a circle.
    ax_subjects.set_title("Subjects")

    fig.suptitle(
        f"{snapshot.total_minutes} min in {snapshot.total_sessions} sessions, "
        f"focus {snapshot.average_focus * 100:.0f}%, streak {snapshot.current_streak} d"
    )
    fig.tight_layout()
    return fig


def show_summary(snapshot: AnalyticsSnapshot, block: bool = True) -> None:
    build_summary_figure(snapshot)
    plt.show(block=block)  # type: ignore[call-arg]


def save_summary(snapshot: AnalyticsSnapshot, file_path: str) -> None:
    fig = build_summary_figure(snapshot)
    fig.savefig(file_path)
    plt.close(fig)
