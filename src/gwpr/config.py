from dataclasses import dataclass
import os
from typing import List

from dotenv import load_dotenv

from .paths import ROOT

load_dotenv(ROOT / ".env", override=False)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    environment: str = os.getenv("ENVIRONMENT", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    random_seed: int = int(os.getenv("RANDOM_SEED", "42"))

    location_column: str = os.getenv("LOCATION_COLUMN", "province")
    time_column: str = os.getenv("TIME_COLUMN", "year")
    target_column: str = os.getenv("TARGET_COLUMN", "y")
    feature_columns: str = os.getenv("FEATURE_COLUMNS", "x1,x2")
    x_coord_column: str = os.getenv("X_COORD_COLUMN", "longitude")
    y_coord_column: str = os.getenv("Y_COORD_COLUMN", "latitude")

    panel_file: str = os.getenv("PANEL_FILE", "panel.csv")
    geometry_file: str = os.getenv("GEOMETRY_FILE", "")
    geometry_key: str = os.getenv("GEOMETRY_KEY", "province")

    kernels: str = os.getenv("KERNELS", "gaussian,bisquare,exponential")
    adaptive: bool = _env_flag("ADAPTIVE", "true")
    bandwidth_mode: str = os.getenv("BANDWIDTH_MODE", "local")
    min_neighbors: int = int(os.getenv("MIN_NEIGHBORS", "0"))
    cv_tie_tolerance: float = float(os.getenv("CV_TIE_TOLERANCE", "0.0"))
    singular_tol: float = float(os.getenv("SINGULAR_TOL", "1e-12"))
    significance_level: float = float(os.getenv("SIGNIFICANCE_LEVEL", "0.05"))
    n_jobs: int = int(os.getenv("N_JOBS", "1"))
    use_gpu: bool = _env_flag("USE_GPU", "false")

    @property
    def feature_list(self) -> List[str]:
        return _split(self.feature_columns)

    @property
    def kernel_list(self) -> List[str]:
        return _split(self.kernels)


settings = Settings()

__all__ = ["Settings", "settings"]
