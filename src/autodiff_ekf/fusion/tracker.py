"""
Generic Extended Kalman Filter driven by automatic differentiation.

This module provides an EKF whose motion and observation models are
arbitrary user code. Jacobians are obtained by evaluating the models with
dual numbers, so no hand-derived calculus is needed.

Mathematical Foundation:
    State Evolution:
        x(k+1) = f(x(k), dt) + w(k),    w ~ N(0, Q)
        z(k)   = h(x(k), t) + v(k),     v ~ N(0, R)

    EKF Recursion (one update call):
        Prediction:
            x' = f(x, dt),           F = ∂f/∂x |ₓ
            P' = F P Fᵀ + Q
        Correction:
            z' = h(x', t),           H = ∂h/∂x |ₓ'
            y  = z - z'
            S  = H P' Hᵀ + R
            K  = P' Hᵀ S⁻¹
            x'' = x' + K y
            P'' = (I - K H) P'

Covariance Handling:
    P is stored exactly as the equations above produce it. The tracker
    does not symmetrize P, clamp its eigenvalues, or check the caller's
    P0 for positive semi-definiteness. Floating-point asymmetry can
    therefore accumulate over many updates; get_diagnostics() reports it.

Model Ownership:
    Models are borrowed through weak references. The caller owns them and
    must keep them alive for as long as the tracker uses them.

Author: Scientific Computing Team
License: MIT
"""

import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import numpy as np
import scipy.linalg

from ..autodiff.jacobian import evaluate_with_jacobian
from ..exceptions import (
    DimensionMismatchError,
    ModelReleasedError,
    NonFiniteModelOutputError,
    NonMonotonicTimeError,
    SingularInnovationError,
    TrackerNotInitializedError,
)
from .covariance import asymmetry, condition_number

logger = logging.getLogger(__name__)


class TrackerStatus(Enum):
    """Lifecycle of an EkfTracker."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


@dataclass
class TrackerConfig:
    """
    Numerical policy for EkfTracker.

    Attributes:
        max_condition_number: Largest accepted condition number of the
                              innovation covariance S before the update
                              is refused
        allow_time_reversal: Accept update timestamps earlier than the
                             current one (negative dt)
        prior_covariance_gain: Form S and K from the covariance held
                               before prediction rather than from P'.
                               The posterior is still (I - K H) P'.
    """
    max_condition_number: float = 1e12
    allow_time_reversal: bool = False
    prior_covariance_gain: bool = False

    def __post_init__(self):
        if not self.max_condition_number > 1.0:
            raise ValueError(f"max_condition_number must exceed 1, got {self.max_condition_number}")


@dataclass
class TrackerDiagnostics:
    """Summary of the tracker's stored estimate."""
    covariance_trace: float
    condition_number: float
    asymmetry: float
    update_count: int
    timestamp: float


class EkfTracker:
    """
    Extended Kalman Filter over user-supplied nonlinear models.

    The tracker is parameterized by the state dimension N and observation
    dimension M. Every vector and matrix crossing its interface is checked
    against those dimensions, including model outputs.

    Lifecycle:
        tracker = EkfTracker(4, 2)
        tracker.set_models(motion_model, observation_model)
        tracker.initialize(x0, P0, t0)
        tracker.update(z, t)          # repeatedly
        tracker.get_state(), tracker.get_covariance()

    Thread Safety:
        None. State, covariance and timestamp form one unit of mutable
        data; callers sharing a tracker across threads must serialize
        access themselves.
    """

    def __init__(self, state_dim: int, obs_dim: int, config: Optional[TrackerConfig] = None):
        """
        Args:
            state_dim: State dimension N
            obs_dim: Observation dimension M
            config: Numerical policy; defaults to TrackerConfig()

        Raises:
            ValueError: If a dimension is not a positive integer
        """
        if int(state_dim) != state_dim or state_dim <= 0:
            raise ValueError(f"State dimension must be a positive integer, got {state_dim}")
        if int(obs_dim) != obs_dim or obs_dim <= 0:
            raise ValueError(f"Observation dimension must be a positive integer, got {obs_dim}")

        self._state_dim = int(state_dim)
        self._obs_dim = int(obs_dim)
        self.config = config if config is not None else TrackerConfig()

        self._motion_model_ref: Optional[weakref.ref] = None
        self._observation_model_ref: Optional[weakref.ref] = None

        self._state: Optional[np.ndarray] = None
        self._covariance: Optional[np.ndarray] = None
        self._timestamp: Optional[float] = None
        self._update_count = 0

    @property
    def state_dim(self) -> int:
        return self._state_dim

    @property
    def obs_dim(self) -> int:
        return self._obs_dim

    @property
    def timestamp(self) -> Optional[float]:
        """Timestamp of the current estimate, None before initialize()."""
        return self._timestamp

    @property
    def update_count(self) -> int:
        """Number of successful updates since the last initialize()."""
        return self._update_count

    @property
    def status(self) -> TrackerStatus:
        if self._has_models() and self._state is not None:
            return TrackerStatus.INITIALIZED
        return TrackerStatus.UNINITIALIZED

    def set_models(self, motion_model: Any, observation_model: Any) -> None:
        """
        Register the motion and observation models.

        Only weak references are kept. The tracker never copies or owns the
        models, so the caller must keep both alive while the tracker is in
        use.

        Args:
            motion_model: Callable (x, dt) -> x_pred with process_noise(x, t)
            observation_model: Callable (x, t) -> z_pred with observation_noise(x, t)

        Raises:
            TypeError: If a model lacks a required capability or cannot be
                       weakly referenced
        """
        self._require_capability(motion_model, "motion", "process_noise")
        self._require_capability(observation_model, "observation", "observation_noise")

        # Build both handles before storing either
        motion_ref = self._weak_handle(motion_model, "motion")
        observation_ref = self._weak_handle(observation_model, "observation")

        self._motion_model_ref = motion_ref
        self._observation_model_ref = observation_ref
        logger.info(f"Models registered: motion={type(motion_model).__name__}, "
                    f"observation={type(observation_model).__name__}")

    @staticmethod
    def _weak_handle(model: Any, role: str) -> weakref.ref:
        try:
            return weakref.ref(model)
        except TypeError as exc:
            raise TypeError(f"{role.capitalize()} model {type(model).__name__} cannot be weakly "
                            f"referenced; give it a __weakref__ slot") from exc

    @staticmethod
    def _require_capability(model: Any, role: str, noise_method: str) -> None:
        if model is None:
            raise TypeError(f"A {role} model is required, got None")
        if not callable(model):
            raise TypeError(f"{role.capitalize()} model {type(model).__name__} is not callable")
        if not callable(getattr(model, noise_method, None)):
            raise TypeError(f"{role.capitalize()} model {type(model).__name__} has no {noise_method}() method")

    def initialize(self, x0: np.ndarray, P0: np.ndarray, t0: float) -> None:
        """
        Set state, covariance and reference timestamp directly.

        Any previous estimate is discarded. P0 is taken as-is: no symmetry
        or positive semi-definiteness check is made.

        Args:
            x0: Initial state, shape (N,)
            P0: Initial covariance, shape (N, N)
            t0: Timestamp of the initial state

        Raises:
            DimensionMismatchError: If x0 or P0 has the wrong shape
        """
        x0 = self._as_vector(x0, self._state_dim, "Initial state")
        P0 = self._as_matrix(P0, (self._state_dim, self._state_dim), "Initial covariance")

        self._state = x0
        self._covariance = P0
        self._timestamp = float(t0)
        self._update_count = 0
        logger.info(f"Tracker initialized at t={self._timestamp:.3f} with N={self._state_dim}, M={self._obs_dim}")

    def update(self, observation: np.ndarray, t: float) -> None:
        """
        Predict to time t and correct with an observation.

        The update is all-or-nothing: if any step fails, state, covariance
        and timestamp are left unchanged.

        Args:
            observation: Observation vector, shape (M,)
            t: Observation timestamp

        Raises:
            TrackerNotInitializedError: If set_models() or initialize() was not called
            ModelReleasedError: If a registered model no longer exists
            NonMonotonicTimeError: If t precedes the current timestamp
            DimensionMismatchError: If the observation or a model output has the wrong shape
            NonFiniteModelOutputError: If a model value or Jacobian contains NaN or inf
            SingularInnovationError: If S cannot be inverted reliably
        """
        motion_model, observation_model = self._models()
        z = self._as_vector(observation, self._obs_dim, "Observation")

        dt = float(t) - self._timestamp
        if dt < 0 and not self.config.allow_time_reversal:
            logger.warning(f"Rejected update: t={t} precedes current timestamp {self._timestamp}")
            raise NonMonotonicTimeError(
                f"Update time {t} precedes current timestamp {self._timestamp}"
            )

        x_pred, P_pred = self._predict(motion_model, dt, float(t))
        x_new, P_new, innovation = self._correct(observation_model, x_pred, P_pred, z, float(t))

        self._state = x_new
        self._covariance = P_new
        self._timestamp = float(t)
        self._update_count += 1

        logger.debug(f"Update {self._update_count}: dt={dt:.3f}s, "
                     f"|innovation|={np.linalg.norm(innovation):.3e}")

    def _predict(self, motion_model: Any, dt: float, t: float) -> Tuple[np.ndarray, np.ndarray]:
        """x' = f(x, dt), P' = F P Fᵀ + Q."""
        n = self._state_dim
        x_pred, F = evaluate_with_jacobian(motion_model, self._state, dt)
        self._check_output(x_pred, F, n, "Motion model")

        Q = self._as_matrix(motion_model.process_noise(self._state.copy(), t), (n, n), "Process noise")
        P_pred = F @ self._covariance @ F.T + Q
        return x_pred, P_pred

    def _correct(self, observation_model: Any, x_pred: np.ndarray, P_pred: np.ndarray,
                 z: np.ndarray, t: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Kalman correction of the predicted estimate with observation z."""
        n, m = self._state_dim, self._obs_dim
        z_pred, H = evaluate_with_jacobian(observation_model, x_pred, t)
        self._check_output(z_pred, H, m, "Observation model")

        R = self._as_matrix(observation_model.observation_noise(x_pred.copy(), t), (m, m), "Observation noise")

        residual = getattr(observation_model, "residual", None)
        innovation = np.asarray(residual(z, z_pred), dtype=float) if residual is not None else z - z_pred

        P_gain = self._covariance if self.config.prior_covariance_gain else P_pred
        S = H @ P_gain @ H.T + R
        S_inv = self._invert_innovation_covariance(S)

        K = P_gain @ H.T @ S_inv
        x_new = x_pred + K @ innovation
        P_new = (np.eye(n) - K @ H) @ P_pred
        return x_new, P_new, innovation

    def _invert_innovation_covariance(self, S: np.ndarray) -> np.ndarray:
        if not np.all(np.isfinite(S)):
            logger.warning("Innovation covariance contains non-finite values")
            raise SingularInnovationError("Innovation covariance contains NaN or infinite values")

        cond = condition_number(S)
        if cond > self.config.max_condition_number:
            logger.warning(f"Ill-conditioned innovation covariance: κ={cond:.2e}")
            raise SingularInnovationError(
                f"Innovation covariance condition number {cond:.3e} exceeds "
                f"{self.config.max_condition_number:.1e}",
                condition_number=cond,
            )

        try:
            return scipy.linalg.inv(S)
        except np.linalg.LinAlgError as exc:
            logger.warning(f"Innovation covariance inversion failed: {exc}")
            raise SingularInnovationError(f"Innovation covariance is singular: {exc}",
                                          condition_number=cond) from exc

    def get_state(self) -> np.ndarray:
        """
        Copy of the current state vector.

        Raises:
            TrackerNotInitializedError: Before initialize()
        """
        if self._state is None:
            raise TrackerNotInitializedError("Tracker has no state; call initialize() first")
        return self._state.copy()

    def get_covariance(self) -> np.ndarray:
        """
        Copy of the current covariance matrix.

        Raises:
            TrackerNotInitializedError: Before initialize()
        """
        if self._covariance is None:
            raise TrackerNotInitializedError("Tracker has no covariance; call initialize() first")
        return self._covariance.copy()

    def get_diagnostics(self) -> TrackerDiagnostics:
        """Trace, conditioning and asymmetry of the stored covariance."""
        P = self.get_covariance()
        return TrackerDiagnostics(
            covariance_trace=float(np.trace(P)),
            condition_number=condition_number(P),
            asymmetry=asymmetry(P),
            update_count=self._update_count,
            timestamp=self._timestamp,
        )

    def _has_models(self) -> bool:
        return self._motion_model_ref is not None and self._observation_model_ref is not None

    def _models(self) -> Tuple[Any, Any]:
        if not self._has_models():
            raise TrackerNotInitializedError("No models registered; call set_models() first")
        if self._state is None:
            raise TrackerNotInitializedError("Tracker not initialized; call initialize() first")

        motion_model = self._motion_model_ref()
        observation_model = self._observation_model_ref()
        if motion_model is None or observation_model is None:
            raise ModelReleasedError(
                "A registered model was garbage-collected; the caller must keep "
                "models alive while the tracker uses them"
            )
        return motion_model, observation_model

    @staticmethod
    def _check_output(value: np.ndarray, jacobian: np.ndarray, expected: int, name: str) -> None:
        if value.shape[0] != expected:
            raise DimensionMismatchError(f"{name} returned {value.shape[0]} values, expected {expected}")
        if not np.all(np.isfinite(value)) or not np.all(np.isfinite(jacobian)):
            logger.warning(f"{name} produced non-finite output or Jacobian entries")
            raise NonFiniteModelOutputError(f"{name} produced non-finite output or Jacobian entries")

    @staticmethod
    def _as_vector(v: Any, size: int, name: str) -> np.ndarray:
        arr = np.array(v, dtype=float)
        if arr.ndim == 2 and 1 in arr.shape:
            arr = arr.ravel()
        if arr.shape != (size,):
            raise DimensionMismatchError(f"{name} must have shape ({size},), got {arr.shape}")
        return arr

    @staticmethod
    def _as_matrix(M: Any, shape: Tuple[int, int], name: str) -> np.ndarray:
        arr = np.array(M, dtype=float)
        if arr.shape != shape:
            raise DimensionMismatchError(f"{name} must have shape {shape}, got {arr.shape}")
        return arr
