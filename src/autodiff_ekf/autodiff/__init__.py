"""
Forward-mode automatic differentiation for autodiff-ekf.

This module provides the dual-number type and the Jacobian driver that
linearizes arbitrary user models for the EKF tracker.
"""

from .dual import (
    Dual, value_of, derivative_of,
    sin, cos, tan, exp, log, sqrt, arcsin, arccos, arctan,
    sinh, cosh, tanh, arctan2, hypot,
)
from .jacobian import compute_jacobian, evaluate_with_jacobian, seed_vector, seed_identity
from .checks import JacobianCheck, check_jacobian, finite_difference_jacobian

__all__ = [
    "Dual",
    "value_of",
    "derivative_of",
    "sin", "cos", "tan", "exp", "log", "sqrt",
    "arcsin", "arccos", "arctan", "sinh", "cosh", "tanh",
    "arctan2", "hypot",
    "compute_jacobian",
    "evaluate_with_jacobian",
    "seed_vector",
    "seed_identity",
    "JacobianCheck",
    "check_jacobian",
    "finite_difference_jacobian",
]
