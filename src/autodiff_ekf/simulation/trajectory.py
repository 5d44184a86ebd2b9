"""
Ground-truth scenario generation for exercising the tracker.

A scenario is produced by running a motion model forward on plain floats
and sampling noisy observations from an observation model:

    x(k+1) = f(x(k), dt) + w(k),    w ~ N(0, Q(x(k), t(k)))
    z(k)   = h(x(k), t(k)) + v(k),  v ~ N(0, R(x(k), t(k)))

The same model objects the tracker linearizes are used here with float
inputs, which doubles as a check that they are written generically.

Randomness comes from a seeded numpy Generator so scenarios are
reproducible.

Author: Scientific Computing Team
License: MIT
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class ScenarioParameters:
    """Parameters of a simulated scenario with validation."""

    initial_state: Sequence[float]
    duration: float = 10.0         # Scenario length [s]
    dt: float = 0.1                # Sampling interval [s]
    start_time: float = 0.0        # Timestamp of the initial state [s]
    process_noise: bool = True     # Perturb the truth with Q samples
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate scenario parameters."""
        if self.duration <= 0:
            raise ValueError(f"Duration must be positive, got {self.duration}")
        if self.dt <= 0:
            raise ValueError(f"Time step must be positive, got {self.dt}")
        if self.dt > self.duration:
            raise ValueError(f"Time step {self.dt} exceeds duration {self.duration}")
        if len(self.initial_state) == 0:
            raise ValueError("Initial state must not be empty")

    @property
    def num_steps(self) -> int:
        return int(round(self.duration / self.dt))


@dataclass
class Scenario:
    """
    Simulated truth and observations.

    Attributes:
        times: Timestamps of each step, shape (K,)
        true_states: True state after each step, shape (K, N)
        observations: Noisy observation at each step, shape (K, M)
        initial_state: True state at start_time, shape (N,)
        start_time: Timestamp of initial_state
    """
    times: np.ndarray
    true_states: np.ndarray
    observations: np.ndarray
    initial_state: np.ndarray
    start_time: float

    def __len__(self) -> int:
        return len(self.times)


class ScenarioGenerator:
    """
    Generates ground-truth trajectories and observations from models.

    Example:
        >>> params = ScenarioParameters(initial_state=[0, 0, 1, 0.5], duration=5.0, seed=1)
        >>> scenario = ScenarioGenerator(params).generate(ConstantVelocityModel(), obs_model)
        >>> scenario.observations.shape
        (50, 2)
    """

    def __init__(self, params: ScenarioParameters):
        self.params = params
        self._rng = np.random.default_rng(params.seed)

    def generate(self, motion_model: Any, observation_model: Any) -> Scenario:
        """
        Run the models forward to produce a scenario.

        Args:
            motion_model: Motion model evaluated on floats
            observation_model: Observation model evaluated on floats

        Returns:
            Scenario with K = duration / dt steps
        """
        p = self.params
        x = np.asarray(p.initial_state, dtype=float).copy()
        initial_state = x.copy()

        times = p.start_time + p.dt * np.arange(1, p.num_steps + 1)
        true_states = []
        observations = []

        t_prev = p.start_time
        for t in times:
            x_next = np.asarray(motion_model(x, t - t_prev), dtype=float)
            if p.process_noise:
                Q = np.asarray(motion_model.process_noise(x, t), dtype=float)
                x_next = x_next + self._sample(Q)
            x = x_next

            z = np.asarray(observation_model(x, t), dtype=float)
            R = np.asarray(observation_model.observation_noise(x, t), dtype=float)
            z = z + self._sample(R)

            true_states.append(x.copy())
            observations.append(z)
            t_prev = t

        logger.debug(f"Generated scenario with {len(times)} steps over {p.duration:.2f}s")
        return Scenario(
            times=times,
            true_states=np.array(true_states),
            observations=np.array(observations),
            initial_state=initial_state,
            start_time=p.start_time,
        )

    def _sample(self, covariance: np.ndarray) -> np.ndarray:
        return self._rng.multivariate_normal(np.zeros(covariance.shape[0]), covariance)


def position_rmse(estimates: np.ndarray, truth: np.ndarray, indices: Sequence[int] = (0, 1)) -> float:
    """
    Root-mean-square position error between two state histories.

    Args:
        estimates: Estimated states or positions, shape (K, ≥max(indices)+1)
        truth: True states, same shape as estimates
        indices: Columns holding the position

    Returns:
        RMSE over all steps
    """
    idx = list(indices)
    errors = np.asarray(estimates, dtype=float)[:, idx] - np.asarray(truth, dtype=float)[:, idx]
    return float(np.sqrt(np.mean(np.sum(errors ** 2, axis=1))))
