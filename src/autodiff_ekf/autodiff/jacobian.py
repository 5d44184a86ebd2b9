"""
Jacobian extraction by forward-mode automatic differentiation.

Given a model f: ℝⁿ → ℝᵐ written generically over its element type, the
driver evaluates f on dual-number inputs and reads the partial derivatives
off the derivative components:

    J[:, i] = ε-part of f(x + e_i ε)

where e_i is the i-th unit vector. Column seeding needs exactly n model
evaluations; vector seeding carries all n directions at once in an array
derivative and needs a single evaluation.

Model Contract:
    model(x, *args, **kwargs) -> sequence of m elements

    x is a 1-D numpy object array of Dual. Auxiliary arguments are passed
    through untouched and are therefore treated as constants. Output
    elements may be Duals or plain reals (constants).

Author: Scientific Computing Team
License: MIT
"""

from typing import Any, Callable, Sequence, Tuple

import numpy as np

from ..exceptions import DimensionMismatchError
from .dual import Dual, derivative_of, value_of

SEEDING_MODES = ("column", "vector")


def seed_vector(x: np.ndarray, index: int) -> np.ndarray:
    """
    Build a dual input vector with a one-hot seed.

    Args:
        x: Real input vector
        index: Coordinate carrying derivative 1; all others carry 0

    Returns:
        1-D object array of Dual
    """
    x = np.asarray(x, dtype=float).ravel()
    seeded = np.empty(x.shape[0], dtype=object)
    for j, xj in enumerate(x):
        seeded[j] = Dual(xj, 1.0 if j == index else 0.0)
    return seeded


def seed_identity(x: np.ndarray) -> np.ndarray:
    """Dual input vector whose i-th element carries the i-th unit vector."""
    x = np.asarray(x, dtype=float).ravel()
    basis = np.eye(x.shape[0])
    seeded = np.empty(x.shape[0], dtype=object)
    for j, xj in enumerate(x):
        seeded[j] = Dual(xj, basis[j])
    return seeded


def _flatten_output(output: Any) -> Sequence[Any]:
    if isinstance(output, Dual):
        return [output]
    if isinstance(output, np.ndarray):
        return list(output.ravel())
    return list(output)


def evaluate_with_jacobian(model: Callable[..., Any], x: np.ndarray, *args,
                           seeding: str = "column",
                           **kwargs) -> Tuple[np.ndarray, np.ndarray]:
    """
    Evaluate a model and its Jacobian at a point.

    The model value is read off the value component of the dual
    evaluation, so no separate real-valued call is made.

    Args:
        model: Callable generic over float and Dual element types
        x: Real input vector of length N_in
        *args: Auxiliary arguments passed through without differentiation
        seeding: "column" (one evaluation per input) or "vector" (single
                 evaluation with array-valued derivatives)
        **kwargs: Auxiliary keyword arguments passed through

    Returns:
        Tuple (value, J) with value of shape (N_out,) and J of shape
        (N_out, N_in)

    Raises:
        ValueError: If the seeding mode is unknown
        DimensionMismatchError: If the model's output length changes
                                between evaluations
    """
    if seeding not in SEEDING_MODES:
        raise ValueError(f"Unknown seeding mode {seeding!r}, expected one of {SEEDING_MODES}")

    x = np.asarray(x, dtype=float).ravel()
    n_in = x.shape[0]

    if n_in == 0 or seeding == "vector":
        outputs = _flatten_output(model(seed_identity(x), *args, **kwargs))
        value = np.array([value_of(y) for y in outputs], dtype=float)
        jacobian = np.zeros((len(outputs), n_in))
        for row, y in enumerate(outputs):
            jacobian[row, :] = derivative_of(y)
        return value, jacobian

    value = None
    jacobian = None
    for i in range(n_in):
        outputs = _flatten_output(model(seed_vector(x, i), *args, **kwargs))
        if jacobian is None:
            value = np.array([value_of(y) for y in outputs], dtype=float)
            jacobian = np.zeros((len(outputs), n_in))
        elif len(outputs) != jacobian.shape[0]:
            raise DimensionMismatchError(
                f"Model output length changed from {jacobian.shape[0]} to "
                f"{len(outputs)} while seeding input {i}"
            )
        jacobian[:, i] = [derivative_of(y) for y in outputs]

    return value, jacobian


def compute_jacobian(model: Callable[..., Any], x: np.ndarray, *args,
                     seeding: str = "column", **kwargs) -> np.ndarray:
    """
    Dense Jacobian of a model evaluated at x.

    Example:
        >>> def f(x):
        ...     return [x[0] * x[1], np.sin(x[0])]
        >>> compute_jacobian(f, [1.0, 2.0])  # [[2, 1], [cos(1), 0]]

    Returns:
        Matrix of shape (N_out, N_in)
    """
    return evaluate_with_jacobian(model, x, *args, seeding=seeding, **kwargs)[1]
