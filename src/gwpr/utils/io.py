import logging
from pathlib import Path
from typing import Dict

import pandas as pd

from ..paths import PATHS

logger = logging.getLogger(__name__)


def save_dataframe(df: pd.DataFrame, filename: str, base: Path | None = None, float_format: str | None = None) -> Path:
    """Save a DataFrame as CSV under ``base`` (reports/ by default), creating parents."""
    path = Path(PATHS.reports_dir if base is None else base) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, float_format=float_format)
    return path


def export_gwpr_results(results, output_dir: str | Path) -> Dict[str, Path]:
    """Write every per-location table of a GWPR run as CSV, one row per location."""
    output_dir = Path(output_dir)
    tables = {
        "parameters.csv": results.params_table(),
        "std_errors.csv": results.std_errors_table(),
        "t_values.csv": results.tvalues_table(),
        "p_values.csv": results.pvalues_table(),
        "local_r2.csv": results.local_r2_table(),
        "bandwidths.csv": results.bandwidth_table(),
        "distance_matrix.csv": results.distance_table(),
        "weight_matrix.csv": results.weight_table(),
        "gwpr_summary.csv": results.summary_frame(),
    }
    if results.bandwidths.cv_table is not None:
        tables["cv_scores.csv"] = results.bandwidths.cv_frame()

    written = {}
    for filename, table in tables.items():
        written[filename] = save_dataframe(table, filename, base=output_dir)
    logger.info("Exported %d tables to %s", len(written), output_dir)
    return written
