from abc import ABC, abstractmethod
from typing import Any, Dict

import numpy as np


class BaseModel(ABC):
    """Local panel estimator: fit on a PanelDataset, predict its observations."""

    def __init__(self) -> None:
        self.hyperparams: Dict[str, Any] = {}
        self._is_fitted: bool = False

    @abstractmethod
    def fit(self, panel, **kwargs) -> "BaseModel":
        ...

    @abstractmethod
    def predict(self, panel) -> np.ndarray:
        """In-sample fitted values, one per (location, time) observation."""
        ...

    def residuals(self, panel) -> np.ndarray:
        return np.asarray(panel.y, dtype=float) - self.predict(panel)

    @property
    def is_fitted(self) -> bool:
        return self._is_fitted

    def clone(self) -> "BaseModel":
        """Unfitted copy with the same kernel, engine and search settings."""
        return self.__class__(**self.hyperparams)
