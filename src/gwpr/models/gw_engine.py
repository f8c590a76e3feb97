import logging
from dataclasses import dataclass

import numpy as np
import torch

from .gw_base import BaseLocalEngine

logger = logging.getLogger(__name__)


@dataclass
class LocalFit:
    """Batched output of the weighted least squares engine.

    params:   (m, p) coefficients, NaN rows where the design was singular.
    rcond:    (m,) reciprocal condition numbers of the diagonally scaled X'WX.
    singular: (m,) boolean mask of unsolvable rows.
    hat:      (m, p, n) operators C = (X'WX)^-1 X'W, only with inference.
    """

    params: np.ndarray
    rcond: np.ndarray
    singular: np.ndarray
    hat: np.ndarray | None = None


class WeightedLeastSquaresEngine(BaseLocalEngine):
    """
    Batched weighted least squares.

    Every row of the weight matrix W defines one local problem
    min_b sum_j W[r, j] (y_j - X_j b)^2 over the same design X. All problems
    are assembled and solved in a single batched call.
    """

    def __init__(self, use_gpu: bool = False, singular_tol: float = 1e-12):
        self.singular_tol = singular_tol
        self.device = torch.device("cuda" if torch.cuda.is_available() and use_gpu else "cpu")
        if use_gpu and not torch.cuda.is_available():
            logger.warning("GPU not available, falling back to CPU.")
        logger.debug("WeightedLeastSquaresEngine will use device: %s", self.device)

    def fit(self, X: np.ndarray, y: np.ndarray, W: np.ndarray, with_inference: bool = False) -> LocalFit:
        # np.array copies, so read-only pandas buffers never reach torch
        X_t = torch.as_tensor(np.array(X, dtype=float), dtype=torch.float64, device=self.device)
        y_t = torch.as_tensor(np.array(y, dtype=float), dtype=torch.float64, device=self.device)
        W_t = torch.as_tensor(np.array(np.atleast_2d(W), dtype=float), dtype=torch.float64, device=self.device)

        m = W_t.shape[0]
        p = X_t.shape[1]

        # X'W for every local problem: (m, p, n)
        XtW = X_t.T.unsqueeze(0) * W_t.unsqueeze(1)
        XtWX = XtW @ X_t  # (m, p, p)
        XtWy = XtW @ y_t  # (m, p)

        # Jacobi scaling: S = D^-1 X'WX D^-1 has a unit diagonal, so the
        # condition number no longer depends on the units of the regressors
        scale = torch.sqrt(torch.diagonal(XtWX, dim1=1, dim2=2))
        scale = torch.where(scale > 0, scale, torch.ones_like(scale))  # (m, p)
        S = XtWX / (scale.unsqueeze(2) * scale.unsqueeze(1))

        # cond() is inf for exactly singular matrices and NaN for all-zero ones
        rcond = 1.0 / torch.linalg.cond(S)
        rcond = torch.nan_to_num(rcond, nan=0.0)
        singular = ~(rcond > self.singular_tol)

        eye = torch.eye(p, dtype=torch.float64, device=self.device).expand(m, p, p)
        A = torch.where(singular.view(m, 1, 1), eye, S)

        # b = D^-1 S^-1 D^-1 X'Wy
        params = torch.linalg.solve(A, (XtWy / scale).unsqueeze(2)).squeeze(2) / scale
        params[singular] = float("nan")

        hat = None
        if with_inference:
            hat_t = torch.linalg.solve(A, XtW / scale.unsqueeze(2)) / scale.unsqueeze(2)
            hat_t[singular] = float("nan")
            hat = hat_t.cpu().numpy()

        return LocalFit(
            params=params.cpu().numpy(),
            rcond=rcond.cpu().numpy(),
            singular=singular.cpu().numpy(),
            hat=hat,
        )
