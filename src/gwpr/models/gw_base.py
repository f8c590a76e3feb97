from abc import ABC, abstractmethod
from typing import Any

import numpy as np
import torch


class BaseKernel(ABC):
    """Base class for distance-decay kernels.

    Kernels act on the scaled distance u = d / b and satisfy weight(0) = 1.
    """

    name: str = "base"

    @abstractmethod
    def weight(self, u: torch.Tensor) -> torch.Tensor:
        """Computes the kernel weight for a given scaled distance u."""
        ...

    def __call__(self, distances, bandwidth) -> np.ndarray:
        """Weights for raw distances and a (broadcastable) bandwidth."""
        d = torch.as_tensor(np.asarray(distances, dtype=float), dtype=torch.float64)
        b = torch.as_tensor(np.asarray(bandwidth, dtype=float), dtype=torch.float64)
        # coincident points keep full weight even under a zero bandwidth
        u = torch.where(d == 0, torch.zeros_like(d / b), d / b)
        return self.weight(u).numpy()


class BaseLocalEngine(ABC):
    """Base class for batched local weighted regression engines."""

    @abstractmethod
    def fit(self, X: np.ndarray, y: np.ndarray, W: np.ndarray, with_inference: bool = False) -> Any:
        """Solves one weighted least squares problem per row of W."""
        ...
