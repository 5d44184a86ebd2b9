"""
Simulation components for autodiff-ekf.

Ground-truth scenarios for demonstrating and testing the tracker:
    - ScenarioParameters: validated scenario configuration
    - ScenarioGenerator: runs models forward and samples noisy observations
    - Scenario: times, true states and observations
"""

from .trajectory import Scenario, ScenarioGenerator, ScenarioParameters, position_rmse

__all__ = [
    "Scenario",
    "ScenarioGenerator",
    "ScenarioParameters",
    "position_rmse",
]
