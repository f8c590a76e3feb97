import logging
import random

import numpy as np
import torch

from ..config import settings

logger = logging.getLogger(__name__)


def set_global_seed(seed: int | None = None) -> int:
    """Seed Python, NumPy and torch so demo panels and CV runs repeat exactly."""
    seed = settings.random_seed if seed is None else int(seed)
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    logger.debug("Global seed set to %d", seed)
    return seed
