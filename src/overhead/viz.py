#!/usr/bin/env python3
"""Sky plots and tabular export of a tick's results.

``tracking_frame`` flattens the update cycle into a DataFrame (one row per
placed object); ``plot_sky`` draws the visible part of it on a polar
azimuth / elevation chart, colored the same way the renderer colors
objects.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .tracker import COLOR_HEX, ColorClass, UpdateCycle

plt.rcParams.update({
    "figure.facecolor": "white",
    "axes.facecolor": "#fafafa",
    "axes.grid": True,
    "grid.alpha": 0.3,
    "font.family": "sans-serif",
    "font.size": 10,
})

FRAME_COLUMNS = [
    "id", "name", "norad_id", "lat", "lng", "alt_km", "speed_km_s",
    "operator", "country", "mission_type", "orbit_class",
    "is_eligible", "is_selected", "color_class",
    "is_visible", "azimuth_deg", "elevation_deg", "range_km",
]


def tracking_frame(cycle: UpdateCycle) -> pd.DataFrame:
    """One row per object placed on the cycle's last tick.

    Visibility columns are NaN for objects whose visibility was not
    evaluated on that tick.
    """
    rows = []
    for state, directive in cycle.placed():
        meta = cycle.classifier.classify(state.record)
        vis = directive.visibility
        rows.append({
            "id": state.id,
            "name": state.name,
            "norad_id": state.record.norad_id.strip(),
            "lat": round(state.lat, 4),
            "lng": round(state.lng, 4),
            "alt_km": round(state.alt, 2),
            "speed_km_s": round(state.speed, 3),
            **meta.to_dict(),
            "is_eligible": directive.is_eligible,
            "is_selected": directive.is_selected,
            "color_class": directive.color_class.value,
            "is_visible": vis.is_visible if vis else np.nan,
            "azimuth_deg": round(vis.azimuth, 2) if vis else np.nan,
            "elevation_deg": round(vis.elevation, 2) if vis else np.nan,
            "range_km": round(vis.range_km, 1) if vis else np.nan,
        })

    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def plot_sky(
    frame: pd.DataFrame,
    title: str = "Sky View",
    min_elevation: float = 0.0,
    label_top: int = 10,
    save_path: Optional[str | Path] = None,
    figsize: tuple = (8, 8),
) -> plt.Figure:
    """Polar sky chart: north up, east right, zenith at the center.

    Args:
        frame: Output of ``tracking_frame`` (visibility columns required).
        min_elevation: Objects below this elevation are not drawn.
        label_top: Label the N highest objects by name.
        save_path: Path to save figure (optional).

    Returns:
        matplotlib Figure
    """
    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(projection="polar")
    ax.set_theta_zero_location("N")
    ax.set_theta_direction(-1)
    ax.set_rlim(0, 90)
    ax.set_yticks([0, 30, 60, 90])
    ax.set_yticklabels(["90°", "60°", "30°", "0°"])
    ax.set_title(title)

    sky = frame[frame["elevation_deg"] >= min_elevation] if not frame.empty else frame
    if sky.empty:
        ax.text(0.5, 0.5, "Nothing above the horizon", transform=ax.transAxes,
                ha="center", va="center", fontsize=14, color="#95a5a6")
    else:
        for cls in ColorClass:
            subset = sky[sky["color_class"] == cls.value]
            if subset.empty:
                continue
            ax.scatter(
                np.radians(subset["azimuth_deg"]),
                90.0 - subset["elevation_deg"],
                c=COLOR_HEX[cls],
                s=18,
                alpha=0.85,
                label=cls.value.replace("-", " ").title(),
                edgecolors="#2c3e50",
                linewidths=0.3,
            )

        for _, row in sky.nlargest(label_top, "elevation_deg").iterrows():
            ax.annotate(
                row["name"],
                (np.radians(row["azimuth_deg"]), 90.0 - row["elevation_deg"]),
                fontsize=7,
                xytext=(4, 4),
                textcoords="offset points",
            )
        ax.legend(loc="lower left", bbox_to_anchor=(-0.1, -0.1), fontsize=8)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig
