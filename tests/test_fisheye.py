import numpy as np
import pytest

from ariacalib.fisheye import FISHEYE624, FisheyeRadTanThinPrism

PARAMS_624 = np.array(
    [
        241.0, 318.5, 238.2,
        -0.025, 0.1, -0.07, 0.017, 0.002, -0.0006,
        0.0005, -0.0003,
        -0.0004, 0.0001, 0.0002, -0.00005,
    ]
)

SPEC_624 = (6, True, True, True)
SPEC_DUAL = (3, True, True, False)
SPEC_PLAIN = (4, False, False, False)

DUAL_MODEL = FisheyeRadTanThinPrism(*SPEC_DUAL)
PARAMS_DUAL = np.array(
    [
        240.0, 244.0, 320.0, 236.0,
        -0.02, 0.05, -0.01,
        0.0004, -0.0002,
        -0.0003, 0.0001, 0.0002, -0.00004,
    ]
)

PARAMS_PLAIN = np.array([300.0, 301.0, 320.0, 240.0, 0.01, -0.02, 0.003, -0.0004])

POINTS = [
    np.array([0.3, -0.2, 1.0]),
    np.array([1.0, 0.5, 1.2]),
    np.array([-0.4, 0.7, 0.9]),
    np.array([0.05, 0.02, 2.0]),
]

CASES = [
    (SPEC_624, PARAMS_624),
    (SPEC_DUAL, PARAMS_DUAL),
    (SPEC_PLAIN, PARAMS_PLAIN),
]


def _numeric_jacobian(func, x, h=1e-6):
    x = np.asarray(x, dtype=float)
    cols = []
    for i in range(x.size):
        dx = np.zeros_like(x)
        dx[i] = h
        cols.append((func(x + dx) - func(x - dx)) / (2 * h))
    return np.stack(cols, axis=1)


def test_fisheye624_layout():
    model = FisheyeRadTanThinPrism(*SPEC_624)
    assert model.num_params == 15
    assert model.principal_point_col_idx == 1
    assert model.focal_y_idx == model.focal_x_idx
    assert FISHEYE624.num_params == model.num_params
    np.testing.assert_allclose(
        FISHEYE624.project(POINTS[0], PARAMS_624), model.project(POINTS[0], PARAMS_624)
    )


def test_dual_focal_layout_matches_param_vector():
    assert DUAL_MODEL.num_params == PARAMS_DUAL.size
    assert DUAL_MODEL.focal_y_idx == DUAL_MODEL.focal_x_idx + 1


def test_negative_num_k_rejected():
    with pytest.raises(ValueError):
        FisheyeRadTanThinPrism(-1, True, True, True)


@pytest.mark.parametrize("spec,params", CASES)
def test_optical_axis_projects_to_principal_point(spec, params):
    model = FisheyeRadTanThinPrism(*spec)
    pixel = model.project([0.0, 0.0, 3.0], params)
    col = model.principal_point_col_idx
    np.testing.assert_allclose(pixel, params[col:col + 2])


@pytest.mark.parametrize("spec,params", CASES)
def test_principal_point_unprojects_to_optical_axis(spec, params):
    model = FisheyeRadTanThinPrism(*spec)
    col = model.principal_point_col_idx
    ray = model.unproject(params[col:col + 2], params)
    np.testing.assert_allclose(ray, [0.0, 0.0, 1.0])


@pytest.mark.parametrize("spec,params", CASES)
@pytest.mark.parametrize("point", POINTS)
def test_unproject_inverts_project(spec, params, point):
    model = FisheyeRadTanThinPrism(*spec)
    ray = model.unproject(model.project(point, params), params)
    assert ray[2] == 1.0
    np.testing.assert_allclose(ray, point / point[2], atol=1e-6)


@pytest.mark.parametrize("spec,params", CASES)
@pytest.mark.parametrize("uv", [(100.0, 80.0), (400.0, 300.0), (330.0, 200.0)])
def test_project_inverts_unproject(spec, params, uv):
    model = FisheyeRadTanThinPrism(*spec)
    ray = model.unproject(uv, params)
    np.testing.assert_allclose(model.project(ray, params), uv, atol=1e-5)


@pytest.mark.parametrize("spec,params", CASES)
@pytest.mark.parametrize("point", POINTS)
def test_projection_is_symmetric(spec, params, point):
    model = FisheyeRadTanThinPrism(*spec)
    np.testing.assert_allclose(
        model.project(point, params), model.project(-point, params), atol=1e-9
    )


@pytest.mark.parametrize("spec,params", CASES)
@pytest.mark.parametrize("point", POINTS)
def test_point_jacobian_matches_finite_differences(spec, params, point):
    model = FisheyeRadTanThinPrism(*spec)
    pixel, d_point, _ = model.project_with_jacobians(point, params)
    np.testing.assert_allclose(pixel, model.project(point, params))
    numeric = _numeric_jacobian(lambda p: model.project(p, params), point)
    np.testing.assert_allclose(d_point, numeric, rtol=1e-5, atol=1e-4)


@pytest.mark.parametrize("spec,params", CASES)
@pytest.mark.parametrize("point", POINTS)
def test_param_jacobian_matches_finite_differences(spec, params, point):
    model = FisheyeRadTanThinPrism(*spec)
    _, _, d_params = model.project_with_jacobians(point, params)
    assert d_params.shape == (2, model.num_params)
    numeric = _numeric_jacobian(lambda prm: model.project(point, prm), params)
    np.testing.assert_allclose(d_params, numeric, rtol=1e-5, atol=1e-4)


@pytest.mark.parametrize("spec,params", CASES)
def test_unit_plane_jacobian_matches_finite_differences(spec, params):
    model = FisheyeRadTanThinPrism(*spec)
    uv = np.array([250.0, 180.0])
    plane, d_uv = model.unproject_unit_plane_with_jacobian(uv, params)
    np.testing.assert_allclose(plane, model.unproject_unit_plane(uv, params))
    numeric = _numeric_jacobian(lambda q: model.unproject_unit_plane(q, params), uv, h=1e-3)
    np.testing.assert_allclose(d_uv, numeric, rtol=1e-4, atol=1e-7)


@pytest.mark.parametrize("spec,params", CASES)
def test_scale_params_round_trip(spec, params):
    model = FisheyeRadTanThinPrism(*spec)
    scaled = model.scale_params(2.0, params)
    np.testing.assert_allclose(model.scale_params(0.5, scaled), params)
    np.testing.assert_allclose(
        scaled[model.principal_point_row_idx + 1:], params[model.principal_point_row_idx + 1:]
    )


@pytest.mark.parametrize("spec,params", CASES)
def test_scaled_params_scale_projections(spec, params):
    model = FisheyeRadTanThinPrism(*spec)
    point = POINTS[0]
    original = model.project(point, params)
    scaled = model.project(point, model.scale_params(2.0, params))
    np.testing.assert_allclose(scaled, 2.0 * (original + 0.5) - 0.5)


@pytest.mark.parametrize("spec,params", CASES)
def test_subtract_from_origin_shifts_pixels(spec, params):
    model = FisheyeRadTanThinPrism(*spec)
    point = POINTS[1]
    shifted = model.subtract_from_origin(10.0, -4.0, params)
    np.testing.assert_allclose(
        model.project(point, shifted), model.project(point, params) - [10.0, -4.0]
    )
    np.testing.assert_allclose(model.subtract_from_origin(-10.0, 4.0, shifted), params)


def test_scale_params_does_not_modify_input():
    params = PARAMS_624.copy()
    FISHEYE624.scale_params(3.0, params)
    FISHEYE624.subtract_from_origin(1.0, 1.0, params)
    np.testing.assert_array_equal(params, PARAMS_624)


def test_wrong_param_count_rejected():
    with pytest.raises(ValueError):
        FISHEYE624.project([0.1, 0.2, 1.0], PARAMS_DUAL)
    with pytest.raises(ValueError):
        DUAL_MODEL.unproject([1.0, 2.0], PARAMS_624)


def test_zero_depth_rejected():
    with pytest.raises(ValueError):
        FISHEYE624.project([0.1, 0.2, 0.0], PARAMS_624)