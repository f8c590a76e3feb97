import logging
from typing import List, Sequence

import numpy as np
import pandas as pd

from ..config import settings
from ..exceptions import CoordinateMismatchError, MissingDataError

logger = logging.getLogger(__name__)


def validate_panel(
    df: pd.DataFrame,
    location_col: str | None = None,
    time_col: str | None = None,
    target_col: str | None = None,
    feature_cols: Sequence[str] | None = None,
    coord_cols: Sequence[str] | None = None,
) -> pd.DataFrame:
    """
    Check the panel input contract and return a sorted copy.

    The panel must be balanced (every location observed in every period,
    exactly once), free of missing values in the modelling columns, and each
    location must keep the same coordinates in every period. Violations are
    fatal: ``MissingDataError`` for coverage/missing values and
    ``CoordinateMismatchError`` for moving coordinates.
    """
    location_col = location_col or settings.location_column
    time_col = time_col or settings.time_column
    target_col = target_col or settings.target_column
    feature_cols = list(feature_cols or settings.feature_list)
    coord_cols = list(coord_cols or [settings.x_coord_column, settings.y_coord_column])

    needed: List[str] = [location_col, time_col, target_col] + feature_cols + coord_cols
    missing_cols = [c for c in needed if c not in df.columns]
    if missing_cols:
        raise KeyError(f"Panel is missing required columns {missing_cols}; got {list(df.columns)}")

    panel = df[needed].copy()

    na_counts = panel.isna().sum()
    na_counts = na_counts[na_counts > 0]
    if not na_counts.empty:
        raise MissingDataError(f"Panel has missing values: {na_counts.to_dict()}")

    dup = panel.duplicated(subset=[location_col, time_col], keep=False)
    if dup.any():
        pairs = panel.loc[dup, [location_col, time_col]].drop_duplicates()
        raise MissingDataError(
            "Duplicate (location, time) rows detected. Examples:\n" + pairs.head(10).to_string(index=False)
        )

    locations = pd.unique(panel[location_col])
    periods = np.sort(pd.unique(panel[time_col]))
    full_index = pd.MultiIndex.from_product([locations, periods], names=[location_col, time_col])
    observed = pd.MultiIndex.from_frame(panel[[location_col, time_col]])
    gaps = full_index.difference(observed)
    if len(gaps) > 0:
        examples = ", ".join(f"({loc}, {t})" for loc, t in list(gaps)[:10])
        raise MissingDataError(f"Unbalanced panel: {len(gaps)} missing (location, time) pairs, e.g. {examples}")

    coord_spread = panel.groupby(location_col)[coord_cols].nunique()
    moving = coord_spread[(coord_spread > 1).any(axis=1)]
    if not moving.empty:
        raise CoordinateMismatchError(
            f"Coordinates vary across periods for locations: {list(moving.index)[:10]}"
        )

    panel = panel.sort_values([location_col, time_col]).reset_index(drop=True)
    logger.info(
        "Validated balanced panel: %d locations x %d periods, %d features.",
        len(locations),
        len(periods),
        len(feature_cols),
    )
    return panel
