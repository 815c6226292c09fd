from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

import numpy as np


class RayQuery(ABC):
    """Interface for nearest-hit ray queries against one fixed surface."""

    @abstractmethod
    def nearest_hit_distances(
        self,
        origins: np.ndarray,
        directions: np.ndarray,
        max_distance: float,
    ) -> np.ndarray:
        """Return the first-hit distance per ray, ``np.inf`` for a miss or a hit past ``max_distance``."""


RayQueryFactory = Callable[[np.ndarray, np.ndarray], RayQuery]
