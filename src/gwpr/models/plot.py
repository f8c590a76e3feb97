import logging
import math
import os
from typing import Iterable, List, Sequence

import geopandas as gpd
import numpy as np
import pandas as pd
from matplotlib import pyplot as plt
from matplotlib.patches import Patch

from .bandwidth import BandwidthAssignment
from .gwpr import GWPRResults

logger = logging.getLogger(__name__)

SIGNIFICANT_COLOR = "firebrick"
NOT_SIGNIFICANT_COLOR = "lightgrey"


def _join(gdf: gpd.GeoDataFrame, table: pd.DataFrame, key: str, location_col: str = "location_id") -> gpd.GeoDataFrame:
    """Attach a per-location table to the geometries by location id."""
    left = gdf.copy()
    left["_key"] = left[key].astype(str)
    right = table.copy()
    right["_key"] = right[location_col].astype(str)
    right = right.drop(columns=[location_col] if location_col != key else [])
    merged = left.merge(right, on="_key", how="left", suffixes=("", "_table"))
    unmatched = set(right["_key"]) - set(left["_key"])
    if unmatched:
        logger.warning("No geometry for %d locations: %s", len(unmatched), sorted(unmatched)[:10])
    return merged.drop(columns="_key")


def _save(fig, output_path: str | None) -> None:
    if output_path is None:
        return
    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    fig.savefig(output_path, bbox_inches="tight")
    logger.info("Map saved to %s", output_path)


def plot_choropleth(
    gdf: gpd.GeoDataFrame,
    table: pd.DataFrame,
    column: str,
    key: str,
    pvalues: pd.Series | None = None,
    alpha: float = 0.05,
    title: str | None = None,
    cmap: str = "RdYlBu_r",
    ax=None,
    output_path: str | None = None,
):
    """
    Choropleth of one per-location column.

    Parameters
    ----------
    gdf : GeoDataFrame
        Location geometries with an id column ``key``.
    table : DataFrame
        Per-location table with a ``location_id`` column and ``column``.
    pvalues : Series, optional
        p-values aligned with ``table`` rows; locations with p >= alpha are
        hatched as not significant.
    output_path : str, optional
        Where to save the PNG; the figure is closed after saving.
    """
    data = table[["location_id", column]].copy()
    if pvalues is not None:
        data["_p"] = np.asarray(pvalues, dtype=float)
    merged = _join(gdf, data, key)

    own_fig = ax is None
    if own_fig:
        fig, ax = plt.subplots(figsize=(12, 6))
    else:
        fig = ax.figure

    merged.plot(
        column=column,
        ax=ax,
        cmap=cmap,
        legend=True,
        edgecolor="black",
        linewidth=0.3,
        missing_kwds={"color": "white", "hatch": "xx", "label": "missing"},
    )
    if pvalues is not None:
        not_sig = merged[~(merged["_p"] < alpha)]
        if not not_sig.empty:
            not_sig.plot(ax=ax, facecolor="none", edgecolor="dimgrey", hatch="///", linewidth=0.3)

    ax.set_title(title or column, fontsize=12)
    ax.set_axis_off()

    if own_fig:
        _save(fig, output_path)
        if output_path is not None:
            plt.close(fig)
    return fig


def plot_coefficient_maps(
    gdf: gpd.GeoDataFrame,
    results: GWPRResults,
    key: str,
    variables: Sequence[str] | None = None,
    alpha: float = 0.05,
    output_path: str | None = None,
):
    """One panel per coefficient, hatched where the local p-value >= alpha."""
    variables = list(variables or results.feature_names)
    params = results.params_table()
    pvalues = results.pvalues_table()

    ncols = min(2, len(variables))
    nrows = math.ceil(len(variables) / ncols)
    fig, axes = plt.subplots(nrows, ncols, figsize=(8 * ncols, 5 * nrows), squeeze=False)
    for ax, var in zip(axes.flat, variables):
        plot_choropleth(gdf, params, var, key, pvalues=pvalues[f"p_{var}"], alpha=alpha, title=f"Local coefficient: {var}", ax=ax)
    for ax in list(axes.flat)[len(variables):]:
        ax.set_visible(False)
    fig.suptitle(f"GWPR coefficients ({results.kernel_name} kernel)", fontsize=14)

    _save(fig, output_path)
    if output_path is not None:
        plt.close(fig)
    return fig


def plot_significance_map(
    gdf: gpd.GeoDataFrame,
    results: GWPRResults,
    key: str,
    variables: Sequence[str] | None = None,
    alpha: float = 0.05,
    output_path: str | None = None,
):
    """Significant / not significant categories per explanatory variable."""
    variables = list(variables or results.feature_names[1:])
    pvalues = results.pvalues_table()

    fig, axes = plt.subplots(1, len(variables), figsize=(7 * len(variables), 5), squeeze=False)
    for ax, var in zip(axes.flat, variables):
        merged = _join(gdf, pvalues[["location_id", f"p_{var}"]], key)
        colors = np.where(merged[f"p_{var}"] < alpha, SIGNIFICANT_COLOR, NOT_SIGNIFICANT_COLOR)
        merged.plot(ax=ax, color=colors, edgecolor="black", linewidth=0.3)
        ax.set_title(f"{var} (p < {alpha:g})", fontsize=12)
        ax.set_axis_off()
    fig.legend(
        handles=[
            Patch(facecolor=SIGNIFICANT_COLOR, label="significant"),
            Patch(facecolor=NOT_SIGNIFICANT_COLOR, label="not significant"),
        ],
        loc="lower center",
        ncol=2,
    )

    _save(fig, output_path)
    if output_path is not None:
        plt.close(fig)
    return fig


def plot_panel_map(
    gdf: gpd.GeoDataFrame,
    panel_df: pd.DataFrame,
    column: str,
    key: str,
    location_col: str,
    time_col: str,
    periods: Iterable | None = None,
    output_path: str | None = None,
):
    """A variable of the panel mapped once per time period, on a shared colour scale."""
    periods: List = list(periods) if periods is not None else sorted(panel_df[time_col].unique())
    vmin, vmax = panel_df[column].min(), panel_df[column].max()

    ncols = min(3, len(periods))
    nrows = math.ceil(len(periods) / ncols)
    fig, axes = plt.subplots(nrows, ncols, figsize=(6 * ncols, 4 * nrows), squeeze=False)
    for ax, period in zip(axes.flat, periods):
        frame = panel_df.loc[panel_df[time_col] == period, [location_col, column]]
        frame = frame.rename(columns={location_col: "location_id"})
        merged = _join(gdf, frame, key)
        merged.plot(column=column, ax=ax, cmap="viridis", vmin=vmin, vmax=vmax, edgecolor="black", linewidth=0.3)
        ax.set_title(str(period))
        ax.set_axis_off()
    for ax in list(axes.flat)[len(periods):]:
        ax.set_visible(False)
    fig.suptitle(column, fontsize=14)

    _save(fig, output_path)
    if output_path is not None:
        plt.close(fig)
    return fig


def plot_cv_curves(assignment: BandwidthAssignment, output_path: str | None = None):
    """CV score against bandwidth candidate, one line per location."""
    table = assignment.cv_frame().set_index("location_id")
    plt.style.use("seaborn-v0_8-whitegrid")
    fig, ax = plt.subplots(figsize=(12, 6))
    for loc, row in table.iterrows():
        scores = row.to_numpy(dtype=float)
        ax.plot(assignment.candidates, np.where(np.isfinite(scores), scores, np.nan), linewidth=0.8, alpha=0.7)
    ax.set_yscale("log")
    ax.set_xlabel("Neighbours" if assignment.adaptive else "Bandwidth distance", fontsize=12)
    ax.set_ylabel("CV score", fontsize=12)
    ax.set_title("Leave-one-location-out CV by location", fontsize=14)

    _save(fig, output_path)
    if output_path is not None:
        plt.close(fig)
    return fig
