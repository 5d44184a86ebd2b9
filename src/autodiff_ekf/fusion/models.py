"""
Motion and observation model contracts with stock implementations.

Models are plain Python objects written generically over their element
type. The tracker evaluates the call operation with dual-number arrays to
obtain both the prediction and its Jacobian, and calls the noise methods
with ordinary float arrays.

Model Contract:
    Motion model:
        model(x, dt) -> x_pred                  generic over float and Dual
        model.process_noise(x, t) -> Q          floats only, shape (N, N)

    Observation model:
        model(x, t) -> z_pred                   generic over float and Dual
        model.observation_noise(x, t) -> R      floats only, shape (M, M)
        model.residual(z, z_pred) -> y          optional, defaults to z - z_pred

Writing Generic Models:
    Use arithmetic operators and the elementary functions from
    autodiff_ekf.autodiff (or numpy ufuncs such as np.sin) on the elements
    of x. Constants mix freely with Duals. Do not convert elements with
    float(), which would drop the derivative.

Stock Models:
    - ConstantVelocityModel: linear kinematics in 1-3 spatial dimensions
    - CoordinatedTurnModel: planar unicycle with speed, heading and turn rate
    - PositionObservationModel: direct observation of selected state entries
    - RangeBearingObservationModel: polar observation from a fixed sensor

Author: Scientific Computing Team
License: MIT
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

import numpy as np

from ..autodiff.dual import arctan2, cos, hypot, sin

NoiseSpec = Union[float, Sequence[float], np.ndarray]


def _noise_matrix(noise: NoiseSpec, size: int, name: str) -> np.ndarray:
    """
    Build a covariance matrix from a scalar, a diagonal or a full matrix.

    Raises:
        ValueError: If the noise has the wrong shape or negative variances
    """
    arr = np.asarray(noise, dtype=float)
    if arr.ndim == 0:
        matrix = np.eye(size) * float(arr)
    elif arr.ndim == 1:
        if arr.shape[0] != size:
            raise ValueError(f"{name} diagonal must have {size} entries, got {arr.shape[0]}")
        matrix = np.diag(arr)
    elif arr.shape == (size, size):
        matrix = arr.copy()
    else:
        raise ValueError(f"{name} must be scalar, length {size}, or ({size}, {size}); got {arr.shape}")

    if np.any(np.diag(matrix) < 0):
        raise ValueError(f"{name} variances must be non-negative")
    return matrix


class MotionModel(ABC):
    """
    Base class for motion models used by EkfTracker.

    Subclassing is optional; any object exposing the same two methods is
    accepted by the tracker.
    """

    @abstractmethod
    def __call__(self, x, dt: float):
        """Predict the state dt seconds ahead. Must be generic over Dual."""

    @abstractmethod
    def process_noise(self, x: np.ndarray, t: float) -> np.ndarray:
        """Process noise covariance Q at state x and time t."""


class ObservationModel(ABC):
    """Base class for observation models used by EkfTracker."""

    @abstractmethod
    def __call__(self, x, t: float):
        """Predicted observation for state x at time t. Must be generic over Dual."""

    @abstractmethod
    def observation_noise(self, x: np.ndarray, t: float) -> np.ndarray:
        """Observation noise covariance R at state x and time t."""

    def residual(self, z: np.ndarray, z_pred: np.ndarray) -> np.ndarray:
        """Innovation between an actual and a predicted observation."""
        return z - z_pred


class ConstantVelocityModel(MotionModel):
    """
    Constant velocity kinematics.

    State layout for d spatial dimensions:
        x = [p₁, ..., p_d, v₁, ..., v_d]ᵀ

    Motion:
        p(k+1) = p(k) + v(k)·dt
        v(k+1) = v(k)
    """

    def __init__(self, spatial_dims: int = 2, process_noise: NoiseSpec = 1.0):
        """
        Args:
            spatial_dims: Number of position coordinates (1-3)
            process_noise: Q as a scalar (times identity), diagonal, or full matrix

        Raises:
            ValueError: If spatial_dims is out of range or Q is malformed
        """
        if spatial_dims not in (1, 2, 3):
            raise ValueError(f"spatial_dims must be 1, 2 or 3, got {spatial_dims}")
        self.spatial_dims = spatial_dims
        self.state_dim = 2 * spatial_dims
        self._process_noise = _noise_matrix(process_noise, self.state_dim, "Process noise")

    def __call__(self, x, dt: float):
        d = self.spatial_dims
        predicted = np.empty(self.state_dim, dtype=object)
        for i in range(d):
            predicted[i] = x[i] + dt * x[d + i]
            predicted[d + i] = x[d + i]
        return predicted

    def process_noise(self, x: np.ndarray, t: float) -> np.ndarray:
        return self._process_noise.copy()


class CoordinatedTurnModel(MotionModel):
    """
    Planar coordinated-turn (unicycle) model.

    State:
        x = [px, py, v, ψ, ω]ᵀ  (position, speed, heading, turn rate)

    Motion (first-order integration):
        px(k+1) = px + v·cos(ψ)·dt
        py(k+1) = py + v·sin(ψ)·dt
        v(k+1)  = v
        ψ(k+1)  = ψ + ω·dt
        ω(k+1)  = ω

    The trigonometric coupling makes F state-dependent, which is what the
    autodiff driver is for.
    """

    state_dim = 5

    def __init__(self, position_noise: float = 0.01, speed_noise: float = 0.1,
                 heading_noise: float = 0.01, turn_rate_noise: float = 0.01):
        self._process_noise = _noise_matrix(
            [position_noise, position_noise, speed_noise, heading_noise, turn_rate_noise],
            self.state_dim, "Process noise")

    def __call__(self, x, dt: float):
        px, py, v, heading, turn_rate = x[0], x[1], x[2], x[3], x[4]
        return np.array([
            px + v * cos(heading) * dt,
            py + v * sin(heading) * dt,
            v,
            heading + turn_rate * dt,
            turn_rate,
        ], dtype=object)

    def process_noise(self, x: np.ndarray, t: float) -> np.ndarray:
        return self._process_noise.copy()


class PositionObservationModel(ObservationModel):
    """
    Direct observation of selected state components.

    Observation:
        z = [x[i] for i in indices]
    """

    def __init__(self, state_dim: int, indices: Sequence[int] = (0, 1),
                 observation_noise: NoiseSpec = 1.0):
        """
        Args:
            state_dim: Dimension of the state the model reads from
            indices: State indices observed, in observation order
            observation_noise: R as a scalar, diagonal, or full matrix

        Raises:
            ValueError: If an index is outside the state
        """
        self.state_dim = state_dim
        self.indices = tuple(int(i) for i in indices)
        if not self.indices:
            raise ValueError("At least one observed index is required")
        if any(i < 0 or i >= state_dim for i in self.indices):
            raise ValueError(f"Observed indices {self.indices} out of range for state_dim {state_dim}")
        self.obs_dim = len(self.indices)
        self._observation_noise = _noise_matrix(observation_noise, self.obs_dim, "Observation noise")

    def __call__(self, x, t: float):
        return np.array([x[i] for i in self.indices], dtype=object)

    def observation_noise(self, x: np.ndarray, t: float) -> np.ndarray:
        return self._observation_noise.copy()


class RangeBearingObservationModel(ObservationModel):
    """
    Range and bearing to a target from a fixed sensor.

    Observation:
        r = sqrt((px - sx)² + (py - sy)²)
        β = atan2(py - sy, px - sx)

    The bearing residual is wrapped to [-π, π) so that observations on
    either side of the ±π cut do not produce a spurious 2π innovation.
    """

    obs_dim = 2

    def __init__(self, position_indices: Sequence[int] = (0, 1),
                 sensor_position: Optional[Sequence[float]] = None,
                 range_std: float = 1.0, bearing_std: float = 0.01):
        if range_std <= 0 or bearing_std <= 0:
            raise ValueError("Range and bearing standard deviations must be positive")
        self.position_indices = tuple(int(i) for i in position_indices)
        if len(self.position_indices) != 2:
            raise ValueError("position_indices must name exactly two state entries")
        self.sensor_position = np.zeros(2) if sensor_position is None else np.asarray(sensor_position, dtype=float)
        self._observation_noise = np.diag([range_std ** 2, bearing_std ** 2])

    def __call__(self, x, t: float):
        ix, iy = self.position_indices
        dx = x[ix] - self.sensor_position[0]
        dy = x[iy] - self.sensor_position[1]
        return np.array([hypot(dx, dy), arctan2(dy, dx)], dtype=object)

    def observation_noise(self, x: np.ndarray, t: float) -> np.ndarray:
        return self._observation_noise.copy()

    def residual(self, z: np.ndarray, z_pred: np.ndarray) -> np.ndarray:
        y = np.asarray(z, dtype=float) - np.asarray(z_pred, dtype=float)
        y[1] = np.mod(y[1] + np.pi, 2 * np.pi) - np.pi
        return y
