"""
Exception hierarchy for autodiff-ekf.

Every error raised deliberately by the package derives from
AutodiffEkfError and from the built-in exception a caller would naturally
catch for the same situation, so both `except DimensionMismatchError` and
`except ValueError` work.
"""

import numpy as np


class AutodiffEkfError(Exception):
    """Base class for all package errors."""


class DimensionMismatchError(AutodiffEkfError, ValueError):
    """A vector or matrix has the wrong shape for its role."""


class TrackerNotInitializedError(AutodiffEkfError, RuntimeError):
    """The tracker was asked to update before models and state were set."""


class ModelReleasedError(AutodiffEkfError, ReferenceError):
    """A borrowed model object was garbage-collected while still registered."""


class NonFiniteModelOutputError(AutodiffEkfError, ValueError):
    """A model returned NaN or inf in its value or its Jacobian."""


class NonMonotonicTimeError(AutodiffEkfError, ValueError):
    """An update timestamp precedes the tracker's current timestamp."""


class SingularInnovationError(AutodiffEkfError, np.linalg.LinAlgError):
    """
    The innovation covariance cannot be inverted reliably.

    Raised when S is non-finite, exactly singular, or its condition number
    exceeds the configured limit. No pseudo-inverse or regularization is
    attempted.

    Attributes:
        condition_number: Condition number of S when it could be computed
    """

    def __init__(self, message: str, condition_number: float = float("inf")):
        super().__init__(message)
        self.condition_number = condition_number
