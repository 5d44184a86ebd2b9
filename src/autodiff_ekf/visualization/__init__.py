"""
Visualization components for autodiff-ekf.
"""

from .plotter import TrackPlotter

__all__ = ["TrackPlotter"]
