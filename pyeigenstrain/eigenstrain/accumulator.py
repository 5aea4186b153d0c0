"""pyeigenstrain.eigenstrain.accumulator
Sum of all contributing eigenstrains at every quadrature point.
"""
from __future__ import annotations

import numpy as np

from pyeigenstrain.core.errors import ContractViolation
from pyeigenstrain.core.tensor import N_COMPONENTS, to_tensors
from pyeigenstrain.eigenstrain.sample import ElementSample


def accumulate_total(sample: ElementSample) -> np.ndarray:
    eigsum = np.zeros((sample.n_points, N_COMPONENTS))
    for f in sample.fields:
        eigsum += f.current
    return eigsum


def accumulate_incremental(sample: ElementSample) -> np.ndarray:
    missing = [f.name for f in sample.fields if f.previous is None]
    if missing:
        raise ContractViolation(
            f"Element {sample.element_id}: incremental form needs the previous state of {missing}.")
    eigsum = np.zeros((sample.n_points, N_COMPONENTS))
    for f in sample.fields:
        eigsum += f.current
        eigsum -= f.previous
    return eigsum


def accumulate(sample: ElementSample, incremental: bool = False) -> np.ndarray:
    """(Q, 6) combined eigenstrain; increments since the last step if *incremental*."""
    if incremental:
        return accumulate_incremental(sample)
    return accumulate_total(sample)


def accumulate_tensors(sample: ElementSample, incremental: bool = False):
    return to_tensors(accumulate(sample, incremental))
