import pandas as pd
import numpy as np
from typing import List, Sequence

from ..config import settings
from ..data.preprocess import validate_panel


class PanelDataset:
    """Convenience wrapper around a balanced (location, time) panel.

    Responsibilities:
    - Validate and sort the table (location-major, time-minor).
    - Expose X, y, coordinates and the location of every observation.
    - Provide the design matrix with intercept used by the local estimator.
    - Provide the MultiIndex frame expected by the classical panel models.
    """

    def __init__(
        self,
        df: pd.DataFrame,
        feature_cols: Sequence[str] | None = None,
        target_col: str | None = None,
        location_col: str | None = None,
        time_col: str | None = None,
        coord_cols: Sequence[str] | None = None,
    ) -> None:
        self.feature_cols: List[str] = list(feature_cols or settings.feature_list)
        self.target_col = target_col or settings.target_column
        self.location_col = location_col or settings.location_column
        self.time_col = time_col or settings.time_column
        self.coord_cols: List[str] = list(coord_cols or [settings.x_coord_column, settings.y_coord_column])

        df = validate_panel(
            df,
            location_col=self.location_col,
            time_col=self.time_col,
            target_col=self.target_col,
            feature_cols=self.feature_cols,
            coord_cols=self.coord_cols,
        )

        self.df = df
        self.locations = pd.Index(pd.unique(df[self.location_col]), name=self.location_col)
        self.periods = pd.Index(pd.unique(df[self.time_col]), name=self.time_col)
        self.X = df[self.feature_cols].astype(float).copy()
        self.y = df[self.target_col].astype(float).copy()
        self.location_index = pd.Categorical(df[self.location_col], categories=self.locations).codes.astype(int)
        self.coords = (
            df.groupby(self.location_col, sort=False)[self.coord_cols].first().loc[self.locations].to_numpy(dtype=float)
        )

    @classmethod
    def from_csv(cls, csv_path: str, **kwargs) -> "PanelDataset":
        return cls(pd.read_csv(csv_path), **kwargs)

    @property
    def n_locations(self) -> int:
        return len(self.locations)

    @property
    def n_periods(self) -> int:
        return len(self.periods)

    @property
    def n_obs(self) -> int:
        return len(self.df)

    @property
    def feature_names(self) -> List[str]:
        """Coefficient names, intercept first."""
        return ["intercept"] + self.feature_cols

    @property
    def observation_labels(self) -> List[str]:
        return [f"{loc}:{t}" for loc, t in zip(self.df[self.location_col], self.df[self.time_col])]

    def design_matrix(self) -> np.ndarray:
        """(n_obs, K + 1) regressor matrix with a leading column of ones."""
        return np.column_stack([np.ones(self.n_obs), self.X.to_numpy()])

    def observations_of(self, location_code: int) -> np.ndarray:
        """Row positions of all observations recorded for one location."""
        return np.flatnonzero(self.location_index == location_code)

    def to_panel_frame(self) -> pd.DataFrame:
        """Frame indexed by (location, time) for linearmodels."""
        frame = self.df[[self.location_col, self.time_col, self.target_col] + self.feature_cols].copy()
        frame[self.location_col] = frame[self.location_col].astype(str)
        return frame.set_index([self.location_col, self.time_col])
