"""Example: reduced-order thermal + swelling eigenstrain on a quad strip"""
import logging

import numpy as np
import matplotlib.pyplot as plt

from pyeigenstrain.core import MeshTraits
from pyeigenstrain.eigenstrain import EigenstrainReducer, ReducerParameters
from pyeigenstrain.eigenstrain.kernels import evaluate_batch, reduce_batch
from pyeigenstrain.integration.quadrature import map_to_physical
from pyeigenstrain.io.visualization import plot_component_fit
from pyeigenstrain.materials.properties import MaterialPropertyStore
from pyeigenstrain.utils.timing import TimingCollector

logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")

alpha = 1.2e-5                                   # thermal expansion
T = lambda x, y: 300.0 + 400.0 * x**2 + 50.0 * y  # quadratic temperature, so the fit is not exact
swell = lambda x, y: 1e-4 * np.sin(np.pi * y)

# 10 x 2 strip of unit quads
nx, ny = 10, 2
elements = []
for i in range(nx):
    for j in range(ny):
        nodes = [[i, j], [i + 1, j], [i + 1, j + 1], [i, j + 1]]
        elements.append(map_to_physical(np.array(nodes) / nx, 'quad', order=3))

store = MaterialPropertyStore()
store.declare("thermal_eigenstrain", stateful=True)
store.declare("swelling_eigenstrain", stateful=True)
for eid, qd in enumerate(elements):
    x, y = qd.points[:, 0], qd.points[:, 1]
    th = np.zeros((qd.n_points, 6)); th[:, :3] = (alpha * (T(x, y) - 300.0))[:, None]
    sw = np.zeros((qd.n_points, 6)); sw[:, :3] = swell(x, y)[:, None]
    store.set("thermal_eigenstrain", eid, th)
    store.set("swelling_eigenstrain", eid, sw)

timer = TimingCollector()
params = ReducerParameters(["thermal_eigenstrain", "swelling_eigenstrain"])
for traits in (MeshTraits(2, second_order=False), MeshTraits(2, second_order=True)):
    reducer = EigenstrainReducer(params, traits, store, timer=timer)
    for eid, qd in enumerate(elements):
        reducer.init_qp_stateful_properties(eid, qd.n_points)
    reduced = reducer.compute_all(enumerate(elements))
    err = max(np.abs(reduced[e][:, 0] - (store.get("thermal_eigenstrain", e)[:, 0]
                                         + store.get("swelling_eigenstrain", e)[:, 0])).max()
              for e in reduced)
    print(f"second_order={traits.second_order}: max |reduced - pointwise| (xx) = {err:.3e}")
print(timer.summary())

# same affine reduction, all elements in one parallel call
values = np.stack([store.get("thermal_eigenstrain", e) + store.get("swelling_eigenstrain", e)
                   for e in range(len(elements))])
points = np.stack([qd.points for qd in elements])
weights = np.stack([qd.weights for qd in elements])
coeffs = reduce_batch(values, points, weights, MeshTraits(2, second_order=True))
batched = evaluate_batch(coeffs, points)
print("batched vs per-element:", np.abs(batched[-1] - reduced[len(elements) - 1]).max())

model = reducer.reduce_sample(reducer.gather_sample(len(elements) - 1), elements[-1])
plot_component_fit(model, elements[-1], values[-1], component="xx")
plt.show()
