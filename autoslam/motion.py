"""Simulates a vehicle driving in a circle at constant speed and turn rate."""

from __future__ import annotations

import argparse
import itertools
import time
from collections.abc import Iterator

import numpy as np

from autoslam.lie import DEG2RAD, SE3, SO3, NavState


def simulate_circular_motion(
    angular_velocity_deg: float = 10.0,
    linear_velocity: float = 5.0,
    use_quaternion: bool = False,
    dt: float = 0.05,
    steps: int | None = None,
) -> Iterator[NavState]:
    """Yield the state after each step; runs forever when ``steps`` is None."""
    if steps is not None and steps < 0:
        raise ValueError("steps must be non-negative")
    omega = np.array([0.0, 0.0, angular_velocity_deg * DEG2RAD])
    v_body = np.array([linear_velocity, 0.0, 0.0])
    pose = SE3()
    counter = itertools.count(1) if steps is None else range(1, steps + 1)

    for step in counter:
        v_world = pose.rotation * v_body
        translation = pose.translation + v_world * dt

        if use_quaternion:
            half = 0.5 * omega * dt
            rotation = pose.rotation * SO3.from_quaternion((1.0, *half))
        else:
            rotation = pose.rotation * SO3.exp(omega * dt)

        pose = SE3(rotation, translation)
        yield NavState(step * dt, pose.rotation, pose.translation, v_world)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Simulate a vehicle moving on a circle.")
    parser.add_argument("--angular_velocity", type=float, default=10.0, help="turn rate in degrees per second")
    parser.add_argument("--linear_velocity", type=float, default=5.0, help="forward speed in m/s")
    parser.add_argument("--use_quaternion", action="store_true", help="update rotation with quaternions")
    parser.add_argument("--dt", type=float, default=0.05, help="time step in seconds")
    parser.add_argument("--steps", type=int, default=None, help="number of steps; runs until interrupted if omitted")
    args = parser.parse_args(argv)

    states = simulate_circular_motion(
        args.angular_velocity, args.linear_velocity, args.use_quaternion, args.dt, args.steps
    )
    try:
        for state in states:
            x, y, z = state.position
            print(f"pose: {x} {y} {z}", flush=True)
            time.sleep(args.dt)
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())