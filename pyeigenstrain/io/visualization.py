"""pyeigenstrain.io.visualization"""
import numpy as np
import matplotlib.pyplot as plt

from pyeigenstrain.core.tensor import COMPONENT_NAMES, as_voigt_array, component_index


def plot_component_fit(model, qdata, values, component="xx", *,
                       ax=None, show=False, n_samples=50, axis=0):
    """
    Compare per-point values of one tensor component with the reduced field.

    Args:
        model: FitModel returned by the reducer.
        qdata (QuadratureData): Quadrature geometry of the element.
        values: (Q, 6) per-point eigenstrains that were reduced.
        component: Voigt index or name ('xx', 'yz', ...).
        ax (matplotlib.axes.Axes, optional): Axes to draw into.
        show (bool, optional): Call ``plt.show()`` at the end.
        n_samples (int, optional): Points on the reduced-field line.
        axis (int, optional): Coordinate used as abscissa (0=x, 1=y, 2=z).

    Returns:
        matplotlib.axes.Axes
    """
    c = component_index(component)
    vals = as_voigt_array(values)
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 4))

    pts = qdata.points
    s = pts[:, axis]
    ax.scatter(s, vals[:, c], color="black", zorder=3, label="quadrature points")

    # line through the element centroid along the chosen axis
    lo, hi = float(s.min()), float(s.max())
    if hi == lo:
        hi = lo + 1.0
    line = np.tile(pts.mean(axis=0), (n_samples, 1))
    line[:, axis] = np.linspace(lo, hi, n_samples)
    reduced = model.evaluate_many(line)[:, c]
    ax.plot(line[:, axis], reduced, color="tab:red", lw=1.5, label="reduced")

    ax.set_xlabel("xyz"[axis])
    ax.set_ylabel(f"eigenstrain {COMPONENT_NAMES[c]}")
    ax.legend(loc="best")
    if show:
        plt.show()
    return ax
