import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from autodiff_ekf.autodiff import (
    Dual, compute_jacobian, evaluate_with_jacobian, seed_vector, seed_identity,
    check_jacobian, finite_difference_jacobian, cos, exp,
)
from autodiff_ekf.exceptions import DimensionMismatchError


class TwoByFourFunctor:
    """f(x0, x1) = [x0², x1·x0, x1², cos(x0)·exp(x1)]"""

    def __call__(self, x):
        return [
            x[0] * x[0],
            x[1] * x[0],
            x[1] * x[1],
            cos(x[0]) * exp(x[1]),
        ]


class AdditionalInputFunctor:
    """f(x0, x1; c) = [0.5·x0², x1·c, x0·x1·c] with c not differentiated"""

    def __call__(self, x, c):
        return [
            0.5 * x[0] * x[0],
            x[1] * c,
            x[0] * x[1] * c,
        ]


class TestComputeJacobian:
    """Test Jacobian assembly against closed-form Jacobians"""

    def test_two_by_four_jacobian(self):
        """Test the 4x2 Jacobian matches the analytic one exactly"""
        x = np.array([10.0, -5.0])
        J = compute_jacobian(TwoByFourFunctor(), x)

        J_expected = np.array([
            [2 * x[0], 0.0],
            [x[1], x[0]],
            [0.0, 2 * x[1]],
            [-np.sin(x[0]) * np.exp(x[1]), np.cos(x[0]) * np.exp(x[1])],
        ])
        assert J.shape == (4, 2)
        assert np.linalg.norm(J_expected - J) == pytest.approx(0.0, abs=1e-15)

    def test_additional_input_is_constant(self):
        """Test auxiliary arguments pass through without being differentiated"""
        x = np.array([10.0, -5.0])
        c = 3.0
        J = compute_jacobian(AdditionalInputFunctor(), x, c)

        J_expected = np.array([
            [x[0], 0.0],
            [0.0, c],
            [x[1] * c, x[0] * c],
        ])
        assert J.shape == (3, 2)
        assert np.linalg.norm(J_expected - J) == pytest.approx(0.0, abs=1e-15)

    def test_keyword_auxiliary_arguments(self):
        """Test keyword arguments are passed through as well"""
        def f(x, scale=1.0):
            return [scale * x[0] * x[1]]

        J = compute_jacobian(f, [2.0, 3.0], scale=2.0)
        np.testing.assert_allclose(J, [[6.0, 4.0]])

    def test_scalar_input_and_output(self):
        """Test N_in = N_out = 1 uses the same seeding"""
        J = compute_jacobian(lambda x: [exp(x[0])], np.array([0.3]))
        assert J.shape == (1, 1)
        assert J[0, 0] == pytest.approx(np.exp(0.3))

    def test_constant_outputs(self):
        """Test plain-real outputs are treated as constants"""
        J = compute_jacobian(lambda x: [1.0, x[0]], np.array([4.0]))
        np.testing.assert_array_equal(J, [[0.0], [1.0]])

    def test_model_evaluations_per_column(self):
        """Test column seeding evaluates the model once per input"""
        calls = []

        def f(x):
            calls.append(1)
            return [x[0] + x[1] + x[2]]

        compute_jacobian(f, np.zeros(3))
        assert len(calls) == 3

    def test_numpy_array_output(self):
        """Test models that build object arrays and use numpy ufuncs"""
        def f(x):
            return np.array([np.sin(x[0]) * x[1], x[1] ** 2], dtype=object)

        x = np.array([0.4, 2.0])
        J = compute_jacobian(f, x)
        np.testing.assert_allclose(J, [[np.cos(0.4) * 2.0, np.sin(0.4)],
                                       [0.0, 4.0]])

    def test_branch_follows_evaluation_point(self):
        """Test non-differentiable models yield the slope of the taken branch"""
        def relu(x):
            return [x[0] if x[0] > 0 else 0.0 * x[0]]

        assert compute_jacobian(relu, [2.0])[0, 0] == 1.0
        assert compute_jacobian(relu, [-2.0])[0, 0] == 0.0

    def test_vector_seeding_matches_column_seeding(self):
        """Test single-pass vector seeding gives the same Jacobian"""
        x = np.array([10.0, -5.0])
        J_col = compute_jacobian(TwoByFourFunctor(), x)
        J_vec = compute_jacobian(TwoByFourFunctor(), x, seeding="vector")
        np.testing.assert_allclose(J_vec, J_col, rtol=0, atol=1e-15)

    def test_unknown_seeding_mode(self):
        """Test invalid seeding mode is rejected"""
        with pytest.raises(ValueError):
            compute_jacobian(TwoByFourFunctor(), [1.0, 2.0], seeding="reverse")

    def test_inconsistent_output_length(self):
        """Test a model changing its output length between seeds is rejected"""
        def f(x):
            return [x[0]] if x[0].derivative == 1.0 else [x[0], x[1]]

        with pytest.raises(DimensionMismatchError):
            compute_jacobian(f, [1.0, 2.0])

    def test_empty_input(self):
        """Test zero-dimensional input gives an (N_out, 0) Jacobian"""
        value, J = evaluate_with_jacobian(lambda x: [1.0, 2.0], np.zeros(0))
        assert J.shape == (2, 0)
        np.testing.assert_array_equal(value, [1.0, 2.0])


class TestEvaluateWithJacobian:
    """Test the value read off the dual evaluation"""

    def test_value_matches_real_evaluation(self):
        """Test the value component equals a direct float evaluation"""
        x = np.array([10.0, -5.0])
        value, J = evaluate_with_jacobian(TwoByFourFunctor(), x)
        direct = np.array([10.0 * 10.0, -5.0 * 10.0, 25.0, np.cos(10.0) * np.exp(-5.0)])
        np.testing.assert_allclose(value, direct)
        assert J.shape == (4, 2)

    def test_input_not_modified(self):
        """Test the caller's input vector is left untouched"""
        x = np.array([1.0, 2.0])
        evaluate_with_jacobian(TwoByFourFunctor(), x)
        np.testing.assert_array_equal(x, [1.0, 2.0])


class TestSeeding:
    """Test seeded input construction"""

    def test_one_hot_seed(self):
        """Test only the seeded coordinate carries derivative 1"""
        seeded = seed_vector(np.array([1.0, 2.0, 3.0]), 1)
        assert [d.derivative for d in seeded] == [0.0, 1.0, 0.0]
        assert [d.value for d in seeded] == [1.0, 2.0, 3.0]

    def test_identity_seed(self):
        """Test vector seeding carries unit vectors"""
        seeded = seed_identity(np.array([1.0, 2.0]))
        assert isinstance(seeded[0], Dual)
        np.testing.assert_array_equal(seeded[1].derivative, [0.0, 1.0])


class TestCheckJacobian:
    """Test the verification harness"""

    def test_analytic_check_passes(self):
        """Test comparison against an analytic Jacobian"""
        x = np.array([10.0, -5.0])
        expected = np.array([
            [2 * x[0], 0.0],
            [x[1], x[0]],
            [0.0, 2 * x[1]],
            [-np.sin(x[0]) * np.exp(x[1]), np.cos(x[0]) * np.exp(x[1])],
        ])
        result = check_jacobian(TwoByFourFunctor(), x, expected=expected)
        assert result.passed
        assert result.method == "analytic"
        assert result.error_norm == pytest.approx(0.0, abs=1e-15)

    def test_finite_difference_check_passes(self):
        """Test comparison against central finite differences"""
        result = check_jacobian(AdditionalInputFunctor(), np.array([1.5, -0.5]), 3.0)
        assert result.method == "finite_difference"
        assert result.passed

    def test_wrong_reference_fails(self):
        """Test a wrong analytic Jacobian is detected"""
        result = check_jacobian(AdditionalInputFunctor(), np.array([1.0, 1.0]), 3.0,
                                expected=np.zeros((3, 2)))
        assert not result.passed

    def test_reference_shape_mismatch(self):
        """Test a reference with the wrong shape is rejected"""
        with pytest.raises(DimensionMismatchError):
            check_jacobian(TwoByFourFunctor(), np.array([1.0, 1.0]), expected=np.zeros((2, 2)))

    def test_verbosity_logs_jacobians(self, caplog):
        """Test verbosity is an explicit parameter controlling log output"""
        with caplog.at_level("INFO", logger="autodiff_ekf.autodiff.checks"):
            check_jacobian(TwoByFourFunctor(), np.array([1.0, 1.0]), verbosity=0)
        assert "Autodiff Jacobian" not in caplog.text

        with caplog.at_level("INFO", logger="autodiff_ekf.autodiff.checks"):
            check_jacobian(TwoByFourFunctor(), np.array([1.0, 1.0]), verbosity=1)
        assert "Autodiff Jacobian" in caplog.text
        assert "Error:" in caplog.text

    def test_finite_difference_step_validation(self):
        """Test non-positive steps are rejected"""
        with pytest.raises(ValueError):
            finite_difference_jacobian(TwoByFourFunctor(), [1.0, 1.0], step=0.0)
