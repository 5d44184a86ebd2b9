import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from autodiff_ekf.autodiff import compute_jacobian
from autodiff_ekf.fusion.models import (
    MotionModel, ObservationModel, ConstantVelocityModel, CoordinatedTurnModel,
    PositionObservationModel, RangeBearingObservationModel, _noise_matrix,
)


class TestNoiseMatrix:
    """Test construction of noise covariances from compact descriptions"""

    def test_scalar_diagonal_and_full(self):
        """Test each accepted form"""
        np.testing.assert_array_equal(_noise_matrix(2.0, 3, "Q"), 2.0 * np.eye(3))
        np.testing.assert_array_equal(_noise_matrix([1.0, 2.0], 2, "Q"), np.diag([1.0, 2.0]))
        full = np.array([[1.0, 0.2], [0.2, 3.0]])
        np.testing.assert_array_equal(_noise_matrix(full, 2, "Q"), full)

    def test_full_matrix_is_copied(self):
        """Test the stored matrix is independent of the caller's array"""
        full = np.eye(2)
        Q = _noise_matrix(full, 2, "Q")
        full[0, 0] = 5.0
        assert Q[0, 0] == 1.0

    def test_invalid_noise(self):
        """Test wrong sizes and negative variances are rejected"""
        with pytest.raises(ValueError):
            _noise_matrix([1.0, 2.0, 3.0], 2, "Q")
        with pytest.raises(ValueError):
            _noise_matrix(np.eye(3), 2, "Q")
        with pytest.raises(ValueError):
            _noise_matrix([-1.0, 1.0], 2, "Q")


class TestModelBaseClasses:
    """Test the abstract model contracts"""

    def test_abstract_models_cannot_be_instantiated(self):
        """Test call and noise methods are required"""
        with pytest.raises(TypeError):
            MotionModel()
        with pytest.raises(TypeError):
            ObservationModel()

    def test_default_residual_is_difference(self):
        """Test observation models subtract by default"""
        class Scalar(ObservationModel):
            def __call__(self, x, t):
                return [x[0]]

            def observation_noise(self, x, t):
                return np.eye(1)

        y = Scalar().residual(np.array([3.0]), np.array([1.0]))
        np.testing.assert_array_equal(y, [2.0])


class TestConstantVelocityModel:
    """Test constant velocity kinematics"""

    def test_float_prediction(self):
        """Test p + v dt on plain floats"""
        model = ConstantVelocityModel(spatial_dims=2)
        x_pred = np.asarray(model(np.array([1.0, 2.0, 0.5, -1.0]), 2.0), dtype=float)
        np.testing.assert_allclose(x_pred, [2.0, 0.0, 0.5, -1.0])

    def test_jacobian_is_transition_matrix(self):
        """Test the autodiff Jacobian equals [[I, dt I], [0, I]]"""
        model = ConstantVelocityModel(spatial_dims=3)
        dt = 0.25
        F = compute_jacobian(model, np.arange(6, dtype=float), dt)

        F_expected = np.eye(6)
        F_expected[:3, 3:] = dt * np.eye(3)
        np.testing.assert_array_equal(F, F_expected)

    def test_process_noise(self):
        """Test Q has the state dimension and is returned as a copy"""
        model = ConstantVelocityModel(spatial_dims=1, process_noise=[0.1, 0.2])
        Q = model.process_noise(np.zeros(2), 0.0)
        np.testing.assert_array_equal(Q, np.diag([0.1, 0.2]))
        Q[0, 0] = 99.0
        assert model.process_noise(np.zeros(2), 0.0)[0, 0] == 0.1

    def test_invalid_spatial_dims(self):
        """Test only 1-3 spatial dimensions are supported"""
        with pytest.raises(ValueError):
            ConstantVelocityModel(spatial_dims=4)


class TestCoordinatedTurnModel:
    """Test the planar coordinated-turn model"""

    def test_jacobian_matches_analytic(self):
        """Test state-dependent F against the hand-derived one"""
        model = CoordinatedTurnModel()
        x = np.array([1.0, 2.0, 3.0, 0.7, 0.1])
        dt = 0.5
        F = compute_jacobian(model, x, dt)

        v, psi = x[2], x[3]
        F_expected = np.eye(5)
        F_expected[0, 2] = np.cos(psi) * dt
        F_expected[0, 3] = -v * np.sin(psi) * dt
        F_expected[1, 2] = np.sin(psi) * dt
        F_expected[1, 3] = v * np.cos(psi) * dt
        F_expected[3, 4] = dt
        np.testing.assert_allclose(F, F_expected, rtol=1e-14, atol=1e-15)

    def test_straight_line_without_turn_rate(self):
        """Test zero turn rate keeps the heading"""
        model = CoordinatedTurnModel()
        x_pred = np.asarray(model(np.array([0.0, 0.0, 2.0, 0.0, 0.0]), 1.0), dtype=float)
        np.testing.assert_allclose(x_pred, [2.0, 0.0, 2.0, 0.0, 0.0])

    def test_process_noise_diagonal(self):
        """Test Q is built from the per-component noise parameters"""
        model = CoordinatedTurnModel(position_noise=1.0, speed_noise=2.0,
                                     heading_noise=3.0, turn_rate_noise=4.0)
        np.testing.assert_array_equal(np.diag(model.process_noise(np.zeros(5), 0.0)),
                                      [1.0, 1.0, 2.0, 3.0, 4.0])


class TestPositionObservationModel:
    """Test direct observation of state components"""

    def test_selected_components(self):
        """Test the observation and its selector Jacobian"""
        model = PositionObservationModel(state_dim=4, indices=(1, 0))
        x = np.array([5.0, 6.0, 7.0, 8.0])
        z = np.asarray(model(x, 0.0), dtype=float)
        np.testing.assert_array_equal(z, [6.0, 5.0])

        H = compute_jacobian(model, x, 0.0)
        np.testing.assert_array_equal(H, [[0.0, 1.0, 0.0, 0.0], [1.0, 0.0, 0.0, 0.0]])
        assert model.obs_dim == 2

    def test_invalid_indices(self):
        """Test out-of-range and empty index lists are rejected"""
        with pytest.raises(ValueError):
            PositionObservationModel(state_dim=2, indices=(0, 2))
        with pytest.raises(ValueError):
            PositionObservationModel(state_dim=2, indices=())


class TestRangeBearingObservationModel:
    """Test polar observation from a fixed sensor"""

    def test_range_and_bearing(self):
        """Test values relative to an offset sensor"""
        model = RangeBearingObservationModel(sensor_position=[1.0, 1.0])
        z = np.asarray(model(np.array([4.0, 5.0]), 0.0), dtype=float)
        assert z[0] == pytest.approx(5.0)
        assert z[1] == pytest.approx(np.arctan2(4.0, 3.0))

    def test_jacobian_matches_analytic(self):
        """Test H = [[dx/r, dy/r], [-dy/r², dx/r²]]"""
        model = RangeBearingObservationModel(position_indices=(0, 1))
        x = np.array([3.0, 4.0, 1.0])
        H = compute_jacobian(model, x, 0.0)
        np.testing.assert_allclose(H, [[0.6, 0.8, 0.0], [-4.0 / 25.0, 3.0 / 25.0, 0.0]])

    def test_bearing_residual_wraps(self):
        """Test innovations across the ±π cut stay small"""
        model = RangeBearingObservationModel()
        y = model.residual(np.array([1.0, np.pi - 0.01]), np.array([1.0, -np.pi + 0.01]))
        assert y[0] == 0.0
        assert y[1] == pytest.approx(-0.02)

    def test_observation_noise(self):
        """Test R = diag(σ_r², σ_β²)"""
        model = RangeBearingObservationModel(range_std=2.0, bearing_std=0.1)
        np.testing.assert_allclose(model.observation_noise(np.zeros(2), 0.0), np.diag([4.0, 0.01]))

    def test_invalid_parameters(self):
        """Test non-positive noise and wrong index counts are rejected"""
        with pytest.raises(ValueError):
            RangeBearingObservationModel(range_std=0.0)
        with pytest.raises(ValueError):
            RangeBearingObservationModel(position_indices=(0, 1, 2))
