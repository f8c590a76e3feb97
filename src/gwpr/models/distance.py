import numpy as np
import pandas as pd


def distance_matrix(coords: np.ndarray) -> np.ndarray:
    """
    Pairwise Euclidean distances between location coordinates.

    Returns an (N, N) symmetric array with an exact zero diagonal.
    """
    coords = np.asarray(coords, dtype=float)
    if coords.ndim != 2 or coords.shape[1] != 2:
        raise ValueError(f"Expected (N, 2) coordinates, got shape {coords.shape}.")

    diffs = coords[:, None, :] - coords[None, :, :]
    D = np.sqrt(np.sum(diffs**2, axis=2))
    np.fill_diagonal(D, 0.0)
    return D


def distance_table(D: np.ndarray, locations) -> pd.DataFrame:
    """location_id x location_id table of distances."""
    index = pd.Index(list(locations), name="location_id")
    table = pd.DataFrame(D, index=index, columns=[str(loc) for loc in locations])
    return table.reset_index()
