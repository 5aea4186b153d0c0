import logging

import numpy as np
import pytest

from pyeigenstrain.core.errors import ContractViolation, NumericalFailure
from pyeigenstrain.core.mesh import MeshTraits
from pyeigenstrain.eigenstrain.fit import AffineFit, ConstantFit
from pyeigenstrain.eigenstrain.reducer import EigenstrainReducer, ReducerParameters
from pyeigenstrain.eigenstrain.sample import ElementSample
from pyeigenstrain.integration.quadrature import QuadratureData, map_to_physical
from pyeigenstrain.materials.properties import MaterialPropertyStore
from pyeigenstrain.utils.timing import TimingCollector

INPUTS = ["thermal_eigenstrain", "phase_eigenstrain"]


def _store(stateful=True, prefix=""):
    store = MaterialPropertyStore()
    for name in INPUTS:
        store.declare(prefix + name, stateful=stateful)
    return store


def _quad(order=2):
    return map_to_physical([[0, 0], [2, 0], [2, 1], [0, 1]], 'quad', order=order)


def _linear_in_x(qd, slope, intercept):
    vals = np.zeros((qd.n_points, 6))
    vals[:, 0] = intercept + slope * qd.points[:, 0]
    return vals


# ---------------------------------------------------------------------------
# construction contracts
# ---------------------------------------------------------------------------
def test_empty_input_names_rejected():
    with pytest.raises(ContractViolation):
        EigenstrainReducer(ReducerParameters([]), MeshTraits(2))


def test_undeclared_input_rejected():
    store = MaterialPropertyStore()
    store.declare("thermal_eigenstrain")
    with pytest.raises(ContractViolation, match="phase_eigenstrain"):
        EigenstrainReducer(ReducerParameters(INPUTS), MeshTraits(2), store)


def test_incremental_needs_stateful_inputs():
    store = _store(stateful=False)
    with pytest.raises(ContractViolation, match="not stateful"):
        EigenstrainReducer(ReducerParameters(INPUTS, incremental_form=True), MeshTraits(2), store)


def test_traits_type_checked():
    with pytest.raises(TypeError):
        EigenstrainReducer(ReducerParameters(INPUTS), traits=2)


# ---------------------------------------------------------------------------
# property computation
# ---------------------------------------------------------------------------
def test_initial_output_is_zero():
    store = _store()
    red = EigenstrainReducer(ReducerParameters(INPUTS), MeshTraits(2), store)
    red.init_qp_stateful_properties(0, 4)
    assert np.array_equal(store.get(red.output_name, 0), np.zeros((4, 6)))
    assert np.array_equal(store.get_old(red.output_name, 0), np.zeros((4, 6)))


def test_first_order_mesh_gives_volume_average():
    qd = _quad()
    store = _store()
    store.set("thermal_eigenstrain", 0, _linear_in_x(qd, slope=1.0, intercept=0.0))
    store.set("phase_eigenstrain", 0, _linear_in_x(qd, slope=0.0, intercept=0.5))
    red = EigenstrainReducer(ReducerParameters(INPUTS), MeshTraits(2, second_order=False), store)

    out = red.compute_properties(0, qd)
    # mean of x over [0, 2] is 1, plus the constant 0.5
    assert np.allclose(out[:, 0], 1.5)
    assert np.allclose(out[:, 1:], 0.0)
    assert np.array_equal(store.get("reduced_order_eigenstrain", 0), out)


def test_second_order_mesh_reproduces_affine_sum():
    qd = _quad(order=3)
    store = _store()
    store.set("thermal_eigenstrain", 3, _linear_in_x(qd, slope=2.0, intercept=1.0))
    store.set("phase_eigenstrain", 3, _linear_in_x(qd, slope=-0.5, intercept=0.25))
    red = EigenstrainReducer(ReducerParameters(INPUTS), MeshTraits(2, second_order=True), store)
    out = red.compute_properties(3, qd)
    np.testing.assert_allclose(out[:, 0], 1.25 + 1.5 * qd.points[:, 0], rtol=1e-12)


def test_base_name_prefixes_inputs_and_output():
    qd = _quad()
    store = _store(prefix="mech_")
    for name in INPUTS:
        store.set("mech_" + name, 1, np.ones((qd.n_points, 6)))
    red = EigenstrainReducer(ReducerParameters(INPUTS, base_name="mech_"), MeshTraits(2), store)
    assert red.output_name == "mech_reduced_order_eigenstrain"
    red.compute_properties(1, qd)
    assert np.allclose(store.get("mech_reduced_order_eigenstrain", 1), 2.0)


def test_incremental_form_uses_step_increment():
    qd = _quad()
    store = _store()
    params = ReducerParameters(INPUTS, incremental_form=True)
    red = EigenstrainReducer(params, MeshTraits(2), store)
    store.init_stateful(0, qd.n_points)

    # step 1
    for name in INPUTS:
        store.set(name, 0, np.full((qd.n_points, 6), 1.0))
    assert np.allclose(red.compute_properties(0, qd), 2.0)
    store.advance()

    # step 2: each input grows by 0.25
    for name in INPUTS:
        store.set(name, 0, np.full((qd.n_points, 6), 1.25))
    assert np.allclose(red.compute_properties(0, qd), 0.5)


def test_compute_all_and_timer():
    qd = _quad()
    store = _store()
    for eid in range(3):
        for name in INPUTS:
            store.set(name, eid, np.full((qd.n_points, 6), float(eid)))
    timer = TimingCollector()
    red = EigenstrainReducer(ReducerParameters(INPUTS), MeshTraits(2), store, timer=timer)
    results = red.compute_all((eid, qd) for eid in range(3))
    assert sorted(results) == [0, 1, 2]
    assert np.allclose(results[2], 4.0)
    assert timer.counts == {"accumulate": 3, "reduce": 3, "evaluate": 3}
    assert "reduce" in timer.summary()
    timer.reset()
    assert timer.counts == {} and timer.as_dict() == {"counts": {}}


def test_compute_properties_needs_store():
    red = EigenstrainReducer(ReducerParameters(INPUTS), MeshTraits(2))
    with pytest.raises(ContractViolation):
        red.compute_properties(0, _quad())


# ---------------------------------------------------------------------------
# framework-free path and failure policy
# ---------------------------------------------------------------------------
def _collinear():
    qd = QuadratureData([[0, 0], [1, 0], [2, 0], [3, 0]], np.ones(4))
    vals = np.zeros((4, 6))
    vals[:, 0] = [1.0, 2.0, 3.0, 4.0]
    return qd, ElementSample.from_arrays([vals], names=["thermal_eigenstrain"], element_id=9)


def test_numerical_failure_propagates_with_element_id():
    qd, sample = _collinear()
    red = EigenstrainReducer(ReducerParameters(["thermal_eigenstrain"]), MeshTraits(2, True))
    with pytest.raises(NumericalFailure) as info:
        red.reduce_sample(sample, qd)
    assert info.value.element_id == 9


def test_fallback_to_average_is_explicit(caplog):
    qd, sample = _collinear()
    params = ReducerParameters(["thermal_eigenstrain"], fallback_to_average=True)
    red = EigenstrainReducer(params, MeshTraits(2, True))
    with caplog.at_level(logging.WARNING, logger="pyeigenstrain.eigenstrain.reducer"):
        model = red.reduce_sample(sample, qd)
    assert isinstance(model, ConstantFit)
    assert model.tensor.component('xx') == 2.5
    assert any("volume average" in r.message for r in caplog.records)


def test_reduce_sample_and_qp_evaluation():
    qd = QuadratureData([[0, 0, 0], [1, 0, 0], [2, 0, 0]], np.ones(3))
    vals = np.zeros((3, 6))
    vals[:, 0] = [1.0, 3.0, 5.0]
    red = EigenstrainReducer(ReducerParameters(["a"]), MeshTraits(1, True))
    model = red.reduce_sample(ElementSample.from_arrays([vals], names=["a"]), qd)
    assert isinstance(model, AffineFit)
    assert np.isclose(red.compute_qp_eigenstrain(model, [0.5, 0, 0]).component('xx'), 2.0)
    np.testing.assert_allclose(red.evaluate(model, qd)[:, 0], [1.0, 3.0, 5.0])


def test_sample_quadrature_mismatch():
    red = EigenstrainReducer(ReducerParameters(["a"]), MeshTraits(1))
    sample = ElementSample.from_arrays([np.zeros((2, 6))], names=["a"])
    with pytest.raises(ContractViolation):
        red.reduce_sample(sample, QuadratureData([[0.0], [1.0], [2.0]], np.ones(3)))
