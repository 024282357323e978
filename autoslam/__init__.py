"""Inertial navigation, Kalman filtering, IMU preintegration, point-cloud search and cloud images."""

__version__ = "0.1.0"