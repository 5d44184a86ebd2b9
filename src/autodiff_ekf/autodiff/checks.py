"""
Jacobian verification against analytic or finite-difference references.

The autodiff Jacobian is exact up to floating-point rounding, so comparing
it with a hand-derived Jacobian should give an error norm of zero. When no
analytic Jacobian is available, a central finite-difference estimate is
used instead:

    J[:, i] ≈ (f(x + h·e_i) - f(x - h·e_i)) / 2h

with truncation error O(h²), so the tolerance has to be loosened
accordingly.

Verbosity is an explicit argument: at verbosity > 0 both Jacobians and the
error norm are logged at INFO level.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from ..exceptions import DimensionMismatchError
from .jacobian import compute_jacobian

logger = logging.getLogger(__name__)


@dataclass
class JacobianCheck:
    """Outcome of comparing an autodiff Jacobian with a reference."""
    autodiff: np.ndarray
    reference: np.ndarray
    error_norm: float
    tolerance: float
    method: str

    @property
    def passed(self) -> bool:
        return bool(self.error_norm <= self.tolerance)


def finite_difference_jacobian(model: Callable[..., Any], x: np.ndarray, *args,
                               step: float = 1e-6, **kwargs) -> np.ndarray:
    """
    Central finite-difference Jacobian of a real-valued model.

    Args:
        model: Callable evaluated on plain float arrays
        x: Point of evaluation
        *args: Auxiliary arguments passed through
        step: Perturbation size h

    Returns:
        Matrix of shape (N_out, N_in)
    """
    if step <= 0:
        raise ValueError(f"Finite-difference step must be positive, got {step}")

    x = np.asarray(x, dtype=float).ravel()
    columns = []
    for i in range(x.shape[0]):
        offset = np.zeros_like(x)
        offset[i] = step
        forward = np.asarray(model(x + offset, *args, **kwargs), dtype=float).ravel()
        backward = np.asarray(model(x - offset, *args, **kwargs), dtype=float).ravel()
        columns.append((forward - backward) / (2.0 * step))

    if not columns:
        n_out = np.asarray(model(x, *args, **kwargs), dtype=float).size
        return np.zeros((n_out, 0))
    return np.column_stack(columns)


def check_jacobian(model: Callable[..., Any], x: np.ndarray, *args,
                   expected: Optional[np.ndarray] = None,
                   step: float = 1e-6,
                   tolerance: Optional[float] = None,
                   verbosity: int = 0,
                   **kwargs) -> JacobianCheck:
    """
    Compare the autodiff Jacobian of a model with a reference Jacobian.

    Args:
        model: Model generic over float and Dual elements
        x: Point of evaluation
        *args: Auxiliary arguments passed through to the model
        expected: Analytic Jacobian; if None a finite-difference estimate
                  is used
        step: Finite-difference perturbation size
        tolerance: Maximum accepted Frobenius norm of the difference.
                   Defaults to 1e-12 against an analytic reference and
                   1e-5 against finite differences.
        verbosity: Log both Jacobians and the error when > 0

    Returns:
        JacobianCheck with both matrices and the error norm

    Raises:
        DimensionMismatchError: If the reference has a different shape
    """
    autodiff = compute_jacobian(model, x, *args, **kwargs)

    if expected is not None:
        reference = np.asarray(expected, dtype=float)
        method = "analytic"
        tolerance = 1e-12 if tolerance is None else tolerance
    else:
        reference = finite_difference_jacobian(model, x, *args, step=step, **kwargs)
        method = "finite_difference"
        tolerance = 1e-5 if tolerance is None else tolerance

    if reference.shape != autodiff.shape:
        raise DimensionMismatchError(
            f"Reference Jacobian shape {reference.shape} does not match "
            f"autodiff Jacobian shape {autodiff.shape}"
        )

    error_norm = float(np.linalg.norm(reference - autodiff))
    result = JacobianCheck(autodiff=autodiff, reference=reference,
                           error_norm=error_norm, tolerance=tolerance, method=method)

    if verbosity > 0:
        logger.info("Autodiff Jacobian:\n%s", autodiff)
        logger.info("%s Jacobian:\n%s", method.replace("_", " ").capitalize(), reference)
        logger.info("Error: %.3e (tolerance %.1e)", error_norm, tolerance)
    if not result.passed:
        logger.warning(f"Jacobian check failed: error {error_norm:.3e} exceeds {tolerance:.1e}")

    return result
