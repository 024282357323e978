# autoslam

Building blocks for inertial and lidar localisation, written in Python on top of numpy.

## Contents

- `autoslam.lie` holds the rotation class `SO3`, with `exp`, `log`, `rot_z`, `from_quaternion`, `inverse`, `matrix` and `unit_quaternion`. It also holds the rigid transform `SE3`, with `inverse`, `matrix` and composition, and the helpers `hat`, `jr` and `jr_inv`. The records `IMU`, `Odom` and `NavState` live here too.
- `autoslam.imu_integration` provides `IMUIntegration`. It integrates IMU readings directly, using biases you already know.
- `autoslam.static_imu_init` provides `StaticIMUInit` and `StaticIMUInitOptions`. While the vehicle stands still, they estimate the gyro and accelerometer biases, the noise and gravity.
- `autoslam.eskf` provides `ESKF`, `ESKFOptions` and `GNSS`. `ESKF` is an 18-dimensional error-state Kalman filter. It predicts from IMU readings and corrects the state with wheel speed, GNSS poses and SE3 pose observations.
- `autoslam.imu_preintegration` provides `IMUPreintegration` and `PreintegrationOptions`. They preintegrate IMU readings, and the deltas can be corrected to first order for a different bias.
- `autoslam.inertial_edge` provides `InertialEdge`, the 9-dimensional preintegration residual. It gives the residual, its Jacobians and the 24x24 Hessian.
- `autoslam.motion` provides `simulate_circular_motion`, a generator of states for a vehicle driving in a circle. It also has a command-line entry point.
- Nearest-neighbour search over point clouds, given as `(N, 3)` arrays, comes in four forms. `autoslam.bfnn` does it by brute force. `autoslam.gridnn` uses `GridNN`, with 2D or 3D cells. `autoslam.kdtree` uses `KdTree` and `autoslam.octo_tree` uses `OctoTree`. Both trees support exact and approximate k-nearest search.
- `autoslam.cloud_images` provides `bird_eye_image` for a top-down image and `range_image` for a lidar range image. `save_image` writes either one to a file through Pillow.

## Install

```
pip install .
pip install ".[test]"   # with test dependencies
```

## Examples

Direct IMU integration:

```python
import numpy as np
from autoslam.lie import IMU
from autoslam.imu_integration import IMUIntegration

integ = IMUIntegration(np.array([0, 0, -9.8]), np.zeros(3), np.zeros(3))
for i in range(1, 101):
    integ.add_imu(IMU(0.01 * i, np.zeros(3), np.array([0.1, 0, 9.8])))
print(integ.nav_state())
```

k-nearest neighbours with a k-d tree:

```python
import numpy as np
from autoslam.kdtree import KdTree

cloud = np.random.default_rng(0).random((1000, 3))
tree = KdTree()
tree.build_tree(cloud)
tree.set_enable_ann(False, 1.0)   # exact search
print(tree.closest_points(cloud[0], 5))
```

Bird's-eye image of a cloud:

```python
from autoslam.cloud_images import bird_eye_image, save_image

image = bird_eye_image(cloud * 50, 0.1, 0.2, 2.5)
save_image(image, "bev.png")
```

## Command

The circular-motion simulation prints the vehicle position at each step. Without `--steps`, it runs until you interrupt it.

```
autoslam-motion --angular_velocity 10 --linear_velocity 5 --steps 100
```

The options are:

- `--angular_velocity`, in degrees per second
- `--linear_velocity`, in m/s
- `--use_quaternion`
- `--dt`
- `--steps`

## What it does not do

- It does not read sensor logs, bag files or PCD files. Readings and clouds must be passed in as Python objects or numpy arrays.
- It does not convert latitude and longitude to UTM. `GNSS` expects a pose that has already been expressed in the map frame.
- It has no graph optimiser. `InertialEdge` gives residuals and Jacobians only.
- It has no viewer window. The motion command prints positions, and images are only written to files.

## Tests

```
pytest
```