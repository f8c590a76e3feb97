from .base_model import BaseModel
from .panel_data import PanelDataset
from .distance import distance_matrix, distance_table
from .gw_base import BaseKernel, BaseLocalEngine
from .gw_kernels import GaussianKernel, BisquareKernel, ExponentialKernel, KERNELS, get_kernel
from .gw_engine import WeightedLeastSquaresEngine, LocalFit
from .bandwidth import BandwidthAssignment, BandwidthSelector, candidate_bandwidths
from .gwpr import GWPRModel, GWPRResults, LocalModelResult
from .panel_models import fit_panel_models, coefficient_table
from .diagnostics import model_selection_tests, recommend_model, vif_table
from .plot import plot_choropleth, plot_coefficient_maps, plot_significance_map, plot_panel_map, plot_cv_curves
