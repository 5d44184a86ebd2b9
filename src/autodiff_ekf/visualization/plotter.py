"""
Plotting of tracker estimates against ground truth.

TrackPlotter records the truth, the observation, the estimate and its
covariance at each step, then renders a planar view with confidence
ellipses projected from the position block of the covariance.

Author: Scientific Computing Team
License: MIT
"""

import logging
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Ellipse

from ..fusion.covariance import confidence_ellipse

logger = logging.getLogger(__name__)


class TrackPlotter:
    """
    Planar plot of a tracking run.

    Attributes:
        position_indices: State indices of the plotted x and y coordinates
        confidence_level: Probability mass enclosed by each ellipse
        ellipse_every: Draw an ellipse on every n-th step
    """

    def __init__(self, position_indices: Sequence[int] = (0, 1),
                 confidence_level: float = 0.95, ellipse_every: int = 5,
                 figure_size: Tuple[int, int] = (8, 8)):
        if ellipse_every < 1:
            raise ValueError(f"ellipse_every must be at least 1, got {ellipse_every}")
        self.position_indices = tuple(position_indices)
        self.confidence_level = confidence_level
        self.ellipse_every = ellipse_every
        self.figure_size = figure_size

        self.truth_history: List[np.ndarray] = []
        self.estimate_history: List[np.ndarray] = []
        self.covariance_history: List[np.ndarray] = []
        self.observation_positions: List[np.ndarray] = []

    def add_step(self, estimate: np.ndarray, covariance: np.ndarray,
                 truth: Optional[np.ndarray] = None,
                 observed_position: Optional[np.ndarray] = None) -> None:
        """
        Record one step of a tracking run.

        Args:
            estimate: Estimated state
            covariance: Estimated covariance
            truth: True state, if known
            observed_position: Observation mapped to plot coordinates, if any
        """
        ix, iy = self.position_indices
        self.estimate_history.append(np.array([estimate[ix], estimate[iy]], dtype=float))
        block = np.asarray(covariance, dtype=float)[np.ix_([ix, iy], [ix, iy])]
        self.covariance_history.append(block)
        if truth is not None:
            self.truth_history.append(np.array([truth[ix], truth[iy]], dtype=float))
        if observed_position is not None:
            self.observation_positions.append(np.asarray(observed_position, dtype=float)[:2])

    def render(self, title: str = "Tracker estimate") -> plt.Figure:
        """
        Draw the recorded run.

        Returns:
            The matplotlib Figure

        Raises:
            ValueError: If no steps were recorded
        """
        if not self.estimate_history:
            raise ValueError("No steps recorded")

        fig, ax = plt.subplots(figsize=self.figure_size)

        if self.observation_positions:
            obs = np.array(self.observation_positions)
            ax.scatter(obs[:, 0], obs[:, 1], s=8, c='gray', alpha=0.5, label='Observations')
        if self.truth_history:
            truth = np.array(self.truth_history)
            ax.plot(truth[:, 0], truth[:, 1], 'g-', linewidth=2, label='Ground truth')

        est = np.array(self.estimate_history)
        ax.plot(est[:, 0], est[:, 1], 'b--', linewidth=1.5, label='EKF estimate')

        for i in range(0, len(est), self.ellipse_every):
            width, height, angle = confidence_ellipse(self.covariance_history[i], self.confidence_level)
            ax.add_patch(Ellipse((est[i, 0], est[i, 1]), width, height, angle=angle,
                                 facecolor='red', alpha=0.15, edgecolor='red', linewidth=0.5))

        ax.set_xlabel('x [m]')
        ax.set_ylabel('y [m]')
        ax.set_title(title)
        ax.set_aspect('equal', adjustable='datalim')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='best')
        return fig

    def save(self, path: str, title: str = "Tracker estimate", dpi: int = 100) -> None:
        """Render and write the figure to a file."""
        fig = self.render(title)
        fig.savefig(path, dpi=dpi, bbox_inches='tight')
        plt.close(fig)
        logger.info(f"Saved track plot to {path}")
