import numpy as np
import pytest

from autoslam.lie import DEG2RAD
from autoslam.motion import main, simulate_circular_motion


def test_first_step_moves_forward_along_x():
    (state,) = simulate_circular_motion(10.0, 5.0, False, 0.05, 1)
    assert state.position == pytest.approx([5.0 * 0.05, 0.0, 0.0])
    assert state.velocity == pytest.approx([5.0, 0.0, 0.0])


def test_full_circle_returns_to_origin():
    steps = int(round(360.0 / (10.0 * 0.05)))
    states = list(simulate_circular_motion(10.0, 5.0, False, 0.05, steps))
    assert len(states) == steps
    assert np.allclose(states[-1].position, 0.0, atol=1e-9)
    assert np.allclose(states[-1].rotation.matrix(), np.eye(3), atol=1e-9)


def test_heading_accumulates_and_speed_is_constant():
    states = list(simulate_circular_motion(10.0, 5.0, False, 0.05, 36))
    yaw = states[-1].rotation.log()[2]
    assert yaw == pytest.approx(36 * 10.0 * 0.05 * DEG2RAD)
    speeds = [np.linalg.norm(s.velocity) for s in states]
    assert speeds == pytest.approx([5.0] * len(states))
    assert all(s.position[2] == 0.0 for s in states)


def test_quaternion_update_agrees_with_exponential():
    exp_states = list(simulate_circular_motion(10.0, 5.0, False, 0.05, 50))
    quat_states = list(simulate_circular_motion(10.0, 5.0, True, 0.05, 50))
    for a, b in zip(exp_states, quat_states):
        assert np.linalg.norm(b.rotation.unit_quaternion()) == pytest.approx(1.0)
        assert np.linalg.norm((a.rotation.inverse() * b.rotation).log()) < 1e-5
        assert np.allclose(a.position, b.position, atol=1e-4)


def test_negative_steps_rejected():
    with pytest.raises(ValueError):
        list(simulate_circular_motion(steps=-1))


def test_main_prints_one_pose_per_step(capsys):
    assert main(["--steps", "3", "--dt", "0.001"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 3
    assert all(line.startswith("pose: ") for line in lines)
    assert float(lines[0].split()[1]) == pytest.approx(5.0 * 0.001)