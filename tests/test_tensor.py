import numpy as np
import pytest

from pyeigenstrain.core.tensor import SymmetricTensor, as_voigt_array, COMPONENT_NAMES


def test_from_matrix_reads_upper_triangle():
    m = np.array([[1.0, 6.0, 5.0],
                  [-99., 2.0, 4.0],
                  [-99., -99., 3.0]])
    t = SymmetricTensor.from_matrix(m)
    assert t.voigt.tolist() == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
    full = t.to_matrix()
    assert np.array_equal(full, full.T)
    assert t[1, 0] == 6.0 and t[2, 1] == 4.0


def test_components_by_name_and_index():
    t = SymmetricTensor([1, 2, 3, 4, 5, 6])
    for i, name in enumerate(COMPONENT_NAMES):
        assert t.component(name) == t.component(i) == i + 1
    with pytest.raises(KeyError):
        t.component("zx")
    assert t.trace() == 6.0


def test_fill_from_input_vector():
    t = SymmetricTensor([9, 9, 9, 9, 9, 9])
    t.fill_from_input_vector([1.0, 2.0, 3.0])
    assert t.voigt.tolist() == [1.0, 2.0, 3.0, 0.0, 0.0, 0.0]
    t.fill_from_input_vector(np.arange(6.0))
    assert t.voigt.tolist() == [0.0, 1.0, 2.0, 3.0, 4.0, 5.0]
    with pytest.raises(ValueError):
        t.fill_from_input_vector([1.0, 2.0])


def test_arithmetic():
    a = SymmetricTensor([1, 0, 0, 0, 0, 2])
    b = SymmetricTensor([0, 1, 0, 0, 3, 0])
    assert (a + b).voigt.tolist() == [1, 1, 0, 0, 3, 2]
    assert (a - b).voigt.tolist() == [1, -1, 0, 0, -3, 2]
    assert (2 * a) == (a * 2.0)
    assert (a / 2).allclose([0.5, 0, 0, 0, 0, 1.0])
    assert SymmetricTensor.zero() == -SymmetricTensor.zero()


def test_as_voigt_array_accepts_mixed_input():
    rows = [SymmetricTensor([1, 2, 3, 4, 5, 6]),
            np.diag([7.0, 8.0, 9.0]),
            [0, 0, 0, 1, 1, 1]]
    arr = as_voigt_array(rows)
    assert arr.shape == (3, 6)
    assert arr[1].tolist() == [7, 8, 9, 0, 0, 0]

    stacked = np.stack([np.eye(3), 2 * np.eye(3)])
    assert as_voigt_array(stacked)[:, 0].tolist() == [1.0, 2.0]

    with pytest.raises(ValueError):
        as_voigt_array(np.zeros((4, 5)))
