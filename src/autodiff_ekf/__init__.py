"""
autodiff-ekf: Extended Kalman Filtering with Automatic Differentiation

A scientific Python package that linearizes arbitrary nonlinear motion and
observation models with forward-mode automatic differentiation, so an EKF
can be run on user models without hand-derived Jacobians.

This package implements:
- Dual-number arithmetic with exact derivative propagation
- A Jacobian driver for models generic over their element type
- A generic Extended Kalman Filter tracker built on that driver
- Scenario simulation and plotting for demonstrations
"""

from .autodiff import Dual, compute_jacobian, evaluate_with_jacobian, check_jacobian
from .fusion import (
    EkfTracker,
    TrackerConfig,
    TrackerStatus,
    MotionModel,
    ObservationModel,
    ConstantVelocityModel,
    CoordinatedTurnModel,
    PositionObservationModel,
    RangeBearingObservationModel,
)
from .exceptions import (
    AutodiffEkfError,
    DimensionMismatchError,
    TrackerNotInitializedError,
    ModelReleasedError,
    NonFiniteModelOutputError,
    NonMonotonicTimeError,
    SingularInnovationError,
)

__version__ = "1.0.0"
__author__ = "Autodiff EKF Team"

__all__ = [
    "Dual",
    "compute_jacobian",
    "evaluate_with_jacobian",
    "check_jacobian",
    "EkfTracker",
    "TrackerConfig",
    "TrackerStatus",
    "MotionModel",
    "ObservationModel",
    "ConstantVelocityModel",
    "CoordinatedTurnModel",
    "PositionObservationModel",
    "RangeBearingObservationModel",
    "AutodiffEkfError",
    "DimensionMismatchError",
    "TrackerNotInitializedError",
    "ModelReleasedError",
    "NonFiniteModelOutputError",
    "NonMonotonicTimeError",
    "SingularInnovationError",
]
