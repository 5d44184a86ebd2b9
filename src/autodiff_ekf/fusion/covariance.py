"""
Read-only analysis of covariance matrices.

None of these functions modify their input. In particular nothing here
symmetrizes a covariance or clamps its eigenvalues: the tracker keeps P
exactly as the update equations produce it, and these helpers only
report on it.

Mathematical Properties Reported:
    - Standard deviations: σᵢ = sqrt(Pᵢᵢ)
    - Correlation: ρᵢⱼ = Pᵢⱼ / (σᵢ σⱼ)
    - Condition number: κ(P) = σ_max / σ_min (singular values)
    - Asymmetry: ‖P - Pᵀ‖_F
"""

from typing import Optional, Sequence, Tuple, Union

import numpy as np
import scipy.stats


def standard_deviations(P: np.ndarray,
                        indices: Optional[Union[slice, Sequence[int]]] = None) -> np.ndarray:
    """
    Standard deviations for selected state components.

    Args:
        P: Covariance matrix
        indices: Slice or index list; all components if None

    Returns:
        Array of standard deviations
    """
    variances = np.diag(np.asarray(P, dtype=float))
    if indices is not None:
        variances = variances[indices]
    return np.sqrt(variances)


def correlation_matrix(P: np.ndarray) -> np.ndarray:
    """
    Correlation matrix ρᵢⱼ = Pᵢⱼ / (σᵢ σⱼ).

    Components with zero variance get zero correlation with everything
    else and unit self-correlation.
    """
    P = np.asarray(P, dtype=float)
    std_devs = np.sqrt(np.diag(P))
    scale = np.outer(std_devs, std_devs)
    with np.errstate(divide="ignore", invalid="ignore"):
        correlation = np.where(scale > 0, P / scale, 0.0)
    np.fill_diagonal(correlation, 1.0)
    return correlation


def condition_number(P: np.ndarray) -> float:
    """Condition number in the 2-norm; inf for singular or non-finite input."""
    P = np.asarray(P, dtype=float)
    if not np.all(np.isfinite(P)):
        return float("inf")
    try:
        with np.errstate(divide="ignore", invalid="ignore"):
            cond = float(np.linalg.cond(P))
    except np.linalg.LinAlgError:
        return float("inf")
    return cond if np.isfinite(cond) else float("inf")


def asymmetry(P: np.ndarray) -> float:
    """Frobenius norm of P - Pᵀ."""
    P = np.asarray(P, dtype=float)
    return float(np.linalg.norm(P - P.T))


def confidence_ellipse(P2: np.ndarray, confidence_level: float = 0.95) -> Tuple[float, float, float]:
    """
    Confidence ellipse parameters for a 2x2 covariance block.

    The ellipse contains the given probability mass of a 2-D Gaussian:
    semi-axes are sqrt(λᵢ·χ²₂(level)).

    Args:
        P2: 2x2 covariance block
        confidence_level: Probability mass in (0, 1)

    Returns:
        Tuple of (width, height, angle_degrees) as expected by
        matplotlib.patches.Ellipse

    Raises:
        ValueError: If P2 is not 2x2 or the level is outside (0, 1)
    """
    P2 = np.asarray(P2, dtype=float)
    if P2.shape != (2, 2):
        raise ValueError(f"Covariance block must be 2x2, got {P2.shape}")
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(f"Confidence level must be in (0, 1), got {confidence_level}")

    # eigh reads only the lower triangle, so average in a local copy
    eigenvals, eigenvecs = np.linalg.eigh(0.5 * (P2 + P2.T))
    eigenvals = np.maximum(eigenvals, 0.0)
    chi2_val = scipy.stats.chi2.ppf(confidence_level, df=2)

    width = 2.0 * np.sqrt(eigenvals[1] * chi2_val)
    height = 2.0 * np.sqrt(eigenvals[0] * chi2_val)
    angle = np.degrees(np.arctan2(eigenvecs[1, 1], eigenvecs[0, 1]))
    return float(width), float(height), float(angle)
