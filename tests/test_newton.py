import math

import pytest

from ariacalib.newton import DOUBLE_TOLERANCE, has_converged, init_theta


@pytest.mark.parametrize("step", [0.0, 1e-9, -1e-9, 5e-8, -5e-8])
def test_small_scalar_steps_converge(step):
    assert has_converged(step) is True


@pytest.mark.parametrize("step", [1e-6, -1e-6, 0.5, -3.0])
def test_large_scalar_steps_do_not_converge(step):
    assert has_converged(step) is False


def test_tolerance_boundary_is_strict():
    assert has_converged(DOUBLE_TOLERANCE) is False
    assert has_converged(DOUBLE_TOLERANCE * 0.999) is True


def test_vector_step_uses_squared_norm():
    assert has_converged([1e-8, -1e-8]) is True
    assert has_converged((1e-6, 0.0)) is False
    # each component is below tolerance but the norm is not
    component = DOUBLE_TOLERANCE * 0.9
    assert has_converged(component) is True
    assert has_converged([component, component]) is False


@pytest.mark.parametrize("r", [0.0, 0.25, 1.0, 2.5, 1000.0])
def test_init_theta_is_square_root(r):
    theta = init_theta(r)
    assert theta >= 0.0
    assert math.isclose(theta * theta, r, rel_tol=1e-12, abs_tol=1e-15)