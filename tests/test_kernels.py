import numpy as np
import pytest

from pyeigenstrain.core.errors import NumericalFailure
from pyeigenstrain.core.mesh import MeshTraits
from pyeigenstrain.eigenstrain.fit import affine_fit, volume_average
from pyeigenstrain.eigenstrain.kernels import evaluate_batch, reduce_batch
from pyeigenstrain.integration.quadrature import map_to_physical


def _hex_batch(rng, n_elem=5, order=2):
    """Randomly perturbed unit cubes shifted along x."""
    ref = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
                    [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1]], dtype=float)
    qds = []
    for e in range(n_elem):
        nodes = ref + 0.1 * rng.uniform(-1, 1, size=ref.shape) + [2.0 * e, 0.0, 0.0]
        qds.append(map_to_physical(nodes, 'hex', order))
    points = np.stack([qd.points for qd in qds])
    weights = np.stack([qd.weights for qd in qds])
    values = rng.normal(size=(n_elem, points.shape[1], 6))
    return qds, values, points, weights


def ref_eval(qd, vals, weighted):
    return affine_fit(vals, qd, 3, weighted=weighted).evaluate_many(qd.points)


@pytest.mark.parametrize("weighted", [False, True])
def test_batched_affine_matches_single_element(rng, weighted):
    qds, values, points, weights = _hex_batch(rng)
    coeffs = reduce_batch(values, points, weights, MeshTraits(3, True), weighted=weighted)
    assert coeffs.shape == (5, 6, 4)
    for e, qd in enumerate(qds):
        ref = affine_fit(values[e], qd, 3, weighted=weighted)
        np.testing.assert_allclose(coeffs[e], ref.coefficients, rtol=1e-9, atol=1e-11)

    out = evaluate_batch(coeffs, points)
    np.testing.assert_allclose(out[2], ref_eval(qds[2], values[2], weighted), rtol=1e-9, atol=1e-11)


def test_batched_average_matches_single_element(rng):
    qds, values, points, weights = _hex_batch(rng, n_elem=3)
    coeffs = reduce_batch(values, points, weights, MeshTraits(3, False))
    assert coeffs.shape == (3, 6, 1)
    for e, qd in enumerate(qds):
        np.testing.assert_allclose(coeffs[e, :, 0], volume_average(values[e], qd).tensor.voigt)
    # constant fields evaluate to the same tensor everywhere
    out = evaluate_batch(coeffs, points)
    assert np.allclose(out[1], coeffs[1, :, 0][None, :])


def test_batched_zero_weight_names_element(rng):
    _, values, points, weights = _hex_batch(rng, n_elem=4)
    weights[2] = 0.0
    with pytest.raises(NumericalFailure) as info:
        reduce_batch(values, points, weights, MeshTraits(3), element_ids=[10, 11, 12, 13])
    assert info.value.element_id == 12


def test_batched_singular_fit():
    # all points of element 1 share y: 2-D fit is singular there
    points = np.array([[[0, 0], [1, 0], [0, 1], [1, 1]],
                       [[0, 0], [1, 0], [2, 0], [3, 0]]], dtype=float)
    values = np.ones((2, 4, 6))
    weights = np.ones((2, 4))
    with pytest.raises(NumericalFailure) as info:
        reduce_batch(values, points, weights, MeshTraits(2, True))
    assert info.value.element_id == 1


def test_batched_scenario_1d():
    points = np.array([[[0.0], [1.0], [2.0]]])
    values = np.zeros((1, 3, 6))
    values[0, :, 0] = [1.0, 3.0, 5.0]
    coeffs = reduce_batch(values, points, np.ones((1, 3)), MeshTraits(1, True))
    assert np.allclose(coeffs[0, 0], [1.0, 2.0])
    assert np.isclose(evaluate_batch(coeffs, np.array([[[0.5]]]))[0, 0, 0], 2.0)


@pytest.mark.parametrize("weighted", [False, True])
def test_batched_affine_on_micro_element(weighted):
    h = 1e-6
    unit = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
                     [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1]], dtype=float)
    qd = map_to_physical(unit * h, 'hex', 2)
    values = np.zeros((1, qd.n_points, 6))
    values[0, :, 0] = 1.0 + 2.0 * qd.points[:, 0] / h
    coeffs = reduce_batch(values, qd.points[None], qd.weights[None], MeshTraits(3, True),
                          weighted=weighted)
    assert np.isclose(coeffs[0, 0, 0], 1.0, rtol=1e-10)
    np.testing.assert_allclose(coeffs[0, 0, 1:] * h, [2.0, 0.0, 0.0], atol=1e-9)
    np.testing.assert_allclose(evaluate_batch(coeffs, qd.points[None])[0], values[0],
                               rtol=1e-10, atol=1e-10)


@pytest.mark.parametrize("second_order", [False, True])
def test_batched_nan_input_raises(rng, second_order):
    _, values, points, weights = _hex_batch(rng, n_elem=3)
    values[1, 3, 2] = np.nan
    with pytest.raises(NumericalFailure) as info:
        reduce_batch(values, points, weights, MeshTraits(3, second_order))
    assert info.value.element_id == 1
    assert "non-finite" in info.value.reason


def test_batched_subnormal_weight_raises(rng):
    _, values, points, weights = _hex_batch(rng, n_elem=2)
    weights[0] = 1e-310
    with pytest.raises(NumericalFailure) as info:
        reduce_batch(values, points, weights, MeshTraits(3))
    assert info.value.element_id == 0
