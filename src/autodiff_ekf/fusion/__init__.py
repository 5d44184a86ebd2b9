"""
State estimation for autodiff-ekf.

This module implements the generic Extended Kalman Filter tracker, the
model contracts it relies on, and read-only covariance analysis helpers.
"""

from .tracker import EkfTracker, TrackerConfig, TrackerStatus, TrackerDiagnostics
from .models import (
    MotionModel,
    ObservationModel,
    ConstantVelocityModel,
    CoordinatedTurnModel,
    PositionObservationModel,
    RangeBearingObservationModel,
)
from .covariance import (
    standard_deviations,
    correlation_matrix,
    condition_number,
    asymmetry,
    confidence_ellipse,
)

__all__ = [
    "EkfTracker",
    "TrackerConfig",
    "TrackerStatus",
    "TrackerDiagnostics",
    "MotionModel",
    "ObservationModel",
    "ConstantVelocityModel",
    "CoordinatedTurnModel",
    "PositionObservationModel",
    "RangeBearingObservationModel",
    "standard_deviations",
    "correlation_matrix",
    "condition_number",
    "asymmetry",
    "confidence_ellipse",
]
