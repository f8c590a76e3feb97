"""Synthetic panels with known local coefficients.

Locations are scattered on a plane; every location is observed for
``n_periods`` periods. The default data-generating process lets the slope of
the first regressor drift with the x-coordinate so the local estimator has
spatial variation to recover, while the demo pipeline and the tests can turn
that off (``slope_gradient=0``) to get a homogeneous relationship.
"""

from typing import Sequence

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry import box

from ..config import settings


def make_synthetic_panel(
    n_locations: int = 34,
    n_periods: int = 6,
    intercept: float = 2.0,
    slopes: Sequence[float] = (3.0, -1.0),
    slope_gradient: float = 0.5,
    noise: float = 0.1,
    random_seed: int | None = None,
    start_period: int = 2015,
) -> pd.DataFrame:
    """Return a balanced panel in the column layout expected by ``validate_panel``."""
    if n_locations < 2 or n_periods < 1:
        raise ValueError("Need at least two locations and one period.")
    rng = np.random.default_rng(settings.random_seed if random_seed is None else random_seed)

    coords = rng.uniform(0.0, 10.0, size=(n_locations, 2))
    ids = [f"P{i + 1:02d}" for i in range(n_locations)]
    feature_cols = [f"x{j + 1}" for j in range(len(slopes))]

    rows = []
    for i, loc in enumerate(ids):
        local_slopes = np.asarray(slopes, dtype=float).copy()
        local_slopes[0] += slope_gradient * (coords[i, 0] - 5.0) / 5.0
        for t in range(n_periods):
            x = rng.normal(0.0, 1.0, size=len(slopes))
            y = intercept + float(x @ local_slopes) + rng.normal(scale=noise)
            row = {
                settings.location_column: loc,
                settings.time_column: start_period + t,
                settings.target_column: y,
                settings.x_coord_column: coords[i, 0],
                settings.y_coord_column: coords[i, 1],
            }
            row.update(dict(zip(feature_cols, x)))
            rows.append(row)

    return pd.DataFrame(rows)


def make_synthetic_geometries(panel_df: pd.DataFrame, half_width: float = 0.4):
    """Square polygons centred on each location's coordinates, for demo maps."""
    coords = panel_df.groupby(settings.location_column, sort=True)[
        [settings.x_coord_column, settings.y_coord_column]
    ].first()
    squares = [
        box(x - half_width, y - half_width, x + half_width, y + half_width)
        for x, y in coords.to_numpy(dtype=float)
    ]
    return gpd.GeoDataFrame({settings.geometry_key: coords.index.astype(str)}, geometry=squares)
