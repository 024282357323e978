[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "autoslam"
version = "0.1.0"
description = "Inertial navigation, error-state Kalman filtering, IMU preintegration and point-cloud nearest-neighbour search"
requires-python = ">=3.10"
keywords = ["slam", "imu", "eskf", "preintegration", "kd-tree", "octree", "point cloud", "navigation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
autoslam-motion = "autoslam.motion:main"

[tool.hatch.build.targets.wheel]
packages = ["autoslam"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
