"""End-to-end workflow: load, validate, classical panel fit, diagnostics, GWPR, export, maps."""

import argparse
import dataclasses
import logging
from pathlib import Path
from typing import List, Sequence

import matplotlib

matplotlib.use("Agg")

from ..config import Settings, settings as default_settings
from ..context import RunContext
from ..data import (
    load_geometries,
    load_panel_raw,
    make_synthetic_geometries,
    make_synthetic_panel,
)
from ..logging_config import setup_logging
from ..models import (
    GWPRModel,
    PanelDataset,
    WeightedLeastSquaresEngine,
    coefficient_table,
    distance_matrix,
    fit_panel_models,
    get_kernel,
    model_selection_tests,
    plot_coefficient_maps,
    plot_choropleth,
    plot_cv_curves,
    plot_panel_map,
    plot_significance_map,
    recommend_model,
    vif_table,
)
from ..models.panel_models import panel_design
from ..paths import PATHS
from ..utils import export_gwpr_results, save_dataframe, set_global_seed

logger = logging.getLogger(__name__)


def load_stage(ctx: RunContext, data_path: str | None = None, demo: bool = False) -> RunContext:
    if demo:
        logger.info("Generating synthetic demo panel...")
        ctx.raw = make_synthetic_panel(random_seed=ctx.settings.random_seed)
    else:
        logger.info("Loading raw panel data...")
        ctx.raw = load_panel_raw(path=data_path) if data_path else load_panel_raw(ctx.settings.panel_file)
    return ctx


def validate_stage(ctx: RunContext) -> RunContext:
    ctx.require("raw")
    logger.info("Validating panel...")
    ctx.panel = PanelDataset(
        ctx.raw,
        feature_cols=ctx.feature_cols,
        target_col=ctx.settings.target_column,
        location_col=ctx.settings.location_column,
        time_col=ctx.settings.time_column,
        coord_cols=[ctx.settings.x_coord_column, ctx.settings.y_coord_column],
    )
    ctx.distances = distance_matrix(ctx.panel.coords)
    return ctx


def classical_stage(ctx: RunContext) -> RunContext:
    ctx.require("panel")
    logger.info("Fitting pooled, fixed effects and random effects models...")
    ctx.panel_results = fit_panel_models(ctx.panel)
    return ctx


def diagnostics_stage(ctx: RunContext) -> RunContext:
    ctx.require("panel")
    if not ctx.panel_results:
        raise RuntimeError("Classical panel models must be fitted before diagnostics.")
    alpha = ctx.settings.significance_level
    ctx.diagnostics = model_selection_tests(ctx.panel_results, alpha=alpha)
    ctx.recommendation, rationale = recommend_model(ctx.diagnostics, alpha=alpha)
    logger.info("Recommended classical model: %s", ctx.recommendation)
    for line in rationale:
        logger.info("  %s", line)
    return ctx


def local_stage(ctx: RunContext, kernels: Sequence[str] | None = None) -> RunContext:
    ctx.require("panel", "distances")
    s = ctx.settings
    engine = WeightedLeastSquaresEngine(use_gpu=s.use_gpu, singular_tol=s.singular_tol)
    for name in kernels or s.kernel_list:
        model = GWPRModel(
            kernel=get_kernel(name),
            local_engine=engine,
            adaptive=s.adaptive,
            bandwidth_mode=s.bandwidth_mode,
            min_neighbors=s.min_neighbors,
            tie_tolerance=s.cv_tie_tolerance,
            n_jobs=s.n_jobs,
            show_progress=True,
        )
        model.fit(ctx.panel, distances=ctx.distances)
        ctx.gwpr_results[model.kernel.name] = model.results_
        ctx.bandwidths[model.kernel.name] = model.results_.bandwidths
        logger.info("GWPR %s summary: %s", model.kernel.name, model.results_.summary())
    return ctx


def export_stage(ctx: RunContext) -> RunContext:
    out = Path(ctx.output_dir)
    if ctx.panel_results:
        save_dataframe(coefficient_table(ctx.panel_results), "panel_models.csv", base=out)
        _, X = panel_design(ctx.panel)
        save_dataframe(vif_table(X), "vif.csv", base=out)
    if ctx.diagnostics is not None:
        diagnostics = ctx.diagnostics.copy()
        diagnostics["recommended_model"] = ctx.recommendation
        save_dataframe(diagnostics, "diagnostics.csv", base=out)
    for name, results in ctx.gwpr_results.items():
        export_gwpr_results(results, out / name)
    return ctx


def map_stage(ctx: RunContext, geometry_path: str | None = None, demo: bool = False) -> RunContext:
    s = ctx.settings
    if geometry_path:
        gdf = load_geometries(geometry_path, key=s.geometry_key)
    elif demo:
        gdf = make_synthetic_geometries(ctx.raw)
    else:
        logger.info("No geometry file configured; skipping maps.")
        return ctx

    out = Path(ctx.output_dir)
    alpha = s.significance_level
    plot_panel_map(
        gdf,
        ctx.panel.df,
        ctx.panel.target_col,
        key=s.geometry_key,
        location_col=ctx.panel.location_col,
        time_col=ctx.panel.time_col,
        output_path=str(out / "maps" / f"{ctx.panel.target_col}_by_period.png"),
    )
    for name, results in ctx.gwpr_results.items():
        map_dir = out / name / "maps"
        plot_choropleth(
            gdf,
            results.local_r2_table(),
            "local_r2",
            key=s.geometry_key,
            title=f"Local R2 ({name})",
            output_path=str(map_dir / "local_r2.png"),
        )
        plot_coefficient_maps(gdf, results, key=s.geometry_key, alpha=alpha, output_path=str(map_dir / "coefficients.png"))
        plot_significance_map(gdf, results, key=s.geometry_key, alpha=alpha, output_path=str(map_dir / "significance.png"))
        if results.bandwidths.cv_table is not None:
            plot_cv_curves(results.bandwidths, output_path=str(map_dir / "cv_curves.png"))
    return ctx


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the panel + GWPR workflow.")
    parser.add_argument("--data", help="Panel CSV (defaults to data/raw/<PANEL_FILE>).")
    parser.add_argument("--demo", action="store_true", help="Use a synthetic 34 x 6 panel.")
    parser.add_argument("--geometry", help="Shapefile / GeoJSON with location polygons.")
    parser.add_argument("--features", help="Comma-separated explanatory columns.")
    parser.add_argument("--kernels", help="Comma-separated kernels (gaussian, bisquare, exponential).")
    parser.add_argument("--fixed", action="store_true", help="Fixed distance bandwidths instead of adaptive.")
    parser.add_argument("--bandwidth-mode", choices=["local", "global"], help="Per-location or shared bandwidth.")
    parser.add_argument("--n-jobs", type=int, help="Parallel workers for the bandwidth search.")
    parser.add_argument("--output-dir", help="Directory for tables and maps.")
    parser.add_argument("--skip-classical", action="store_true", help="Skip pooled/FE/RE models and tests.")
    return parser


def _settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    overrides = {}
    if args.kernels:
        overrides["kernels"] = args.kernels
    if args.fixed:
        overrides["adaptive"] = False
    if args.bandwidth_mode:
        overrides["bandwidth_mode"] = args.bandwidth_mode
    if args.n_jobs is not None:
        overrides["n_jobs"] = args.n_jobs
    if args.features:
        overrides["feature_columns"] = args.features
    return dataclasses.replace(base, **overrides)


def run(argv: List[str] | None = None) -> RunContext:
    args = build_parser().parse_args(argv)
    run_settings = _settings_from_args(args, default_settings)

    if args.output_dir:
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
    else:
        PATHS.ensure_directories()
        output_dir = PATHS.run_directory("gwpr")

    setup_logging(run_settings.log_level, log_file=output_dir / "run.log")
    set_global_seed(run_settings.random_seed)
    logger.info("Results will be in: %s", output_dir)

    feature_cols = ["x1", "x2"] if args.demo and not args.features else run_settings.feature_list
    ctx = RunContext(settings=run_settings, output_dir=output_dir, feature_cols=feature_cols)

    load_stage(ctx, data_path=args.data, demo=args.demo)
    validate_stage(ctx)
    if not args.skip_classical:
        classical_stage(ctx)
        diagnostics_stage(ctx)
    local_stage(ctx)
    export_stage(ctx)
    map_stage(ctx, geometry_path=args.geometry or run_settings.geometry_file or None, demo=args.demo)

    logger.info("Workflow finished.")
    return ctx


def main(argv: List[str] | None = None) -> None:
    run(argv)


if __name__ == "__main__":
    main()
