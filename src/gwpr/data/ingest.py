from pathlib import Path

import geopandas as gpd
import pandas as pd

from ..paths import PATHS
from ..config import settings


def load_panel_raw(filename: str | None = None, path: str | Path | None = None) -> pd.DataFrame:
    """Load the raw panel table from data/raw (or from an explicit path)."""
    if path is None:
        path = PATHS.data_raw / (filename or settings.panel_file)
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Raw panel file not found: {path}")

    df = pd.read_csv(path)
    df = df.sort_values([settings.location_column, settings.time_column]).reset_index(drop=True)
    return df


def load_geometries(path: str | Path, key: str | None = None) -> gpd.GeoDataFrame:
    """Load location polygons (shapefile, GeoJSON, ...) keyed by location id."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Geometry file not found: {path}")

    key = key or settings.geometry_key
    gdf = gpd.read_file(path)
    if key not in gdf.columns:
        raise KeyError(f"Geometry file has no '{key}' column: {list(gdf.columns)}")
    return gdf
