from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

from .config import Settings
from .models.bandwidth import BandwidthAssignment
from .models.gwpr import GWPRResults
from .models.panel_data import PanelDataset


@dataclass
class RunContext:
    """State of one workflow run, handed from stage to stage."""

    settings: Settings
    output_dir: Path
    feature_cols: List[str]
    raw: pd.DataFrame | None = None
    panel: PanelDataset | None = None
    distances: np.ndarray | None = None
    panel_results: Dict[str, object] = field(default_factory=dict)
    diagnostics: pd.DataFrame | None = None
    recommendation: str | None = None
    bandwidths: Dict[str, BandwidthAssignment] = field(default_factory=dict)
    gwpr_results: Dict[str, GWPRResults] = field(default_factory=dict)

    def require(self, *names: str) -> None:
        missing = [name for name in names if getattr(self, name) is None]
        if missing:
            raise RuntimeError(f"Run context is missing {missing}; run the earlier stages first.")
