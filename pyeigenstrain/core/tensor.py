"""pyeigenstrain.core.tensor
Symmetric rank-2 tensor stored as its six independent components.

Voigt ordering used throughout the package:

    index : 0   1   2   3   4   5
    comp  : xx  yy  zz  yz  xz  xy
"""
from __future__ import annotations

from typing import Iterable, Union

import numpy as np

VOIGT_INDEX = ((0, 0), (1, 1), (2, 2), (1, 2), (0, 2), (0, 1))
COMPONENT_NAMES = ("xx", "yy", "zz", "yz", "xz", "xy")
N_COMPONENTS = 6


def component_index(c: Union[int, str]) -> int:
    """Accept 0..5 or one of the names in COMPONENT_NAMES."""
    if isinstance(c, str):
        try:
            return COMPONENT_NAMES.index(c.lower())
        except ValueError:
            raise KeyError(f"Unknown tensor component '{c}'. Expected one of {COMPONENT_NAMES}.")
    idx = int(c)
    if not 0 <= idx < N_COMPONENTS:
        raise IndexError(c)
    return idx


class SymmetricTensor:
    __slots__ = ("_v",)

    def __init__(self, values=None):
        if values is None:
            self._v = np.zeros(N_COMPONENTS)
            return
        v = np.asarray(values, dtype=float).ravel()
        if v.shape != (N_COMPONENTS,):
            raise ValueError(f"SymmetricTensor needs 6 components, got shape {np.shape(values)}")
        self._v = v.copy()

    # ---- construction ------------------------------------------------
    @classmethod
    def zero(cls) -> "SymmetricTensor":
        return cls()

    @classmethod
    def from_matrix(cls, m) -> "SymmetricTensor":
        """Read the upper triangle of a 3x3 array; the lower one is ignored."""
        m = np.asarray(m, dtype=float)
        if m.shape != (3, 3):
            raise ValueError(f"Expected a 3x3 matrix, got shape {m.shape}")
        return cls([m[i, j] for i, j in VOIGT_INDEX])

    def fill_from_input_vector(self, values) -> "SymmetricTensor":
        """
        Overwrite in place. Six entries are taken in Voigt order, three
        entries fill the diagonal and zero the shear terms.
        """
        v = np.asarray(values, dtype=float).ravel()
        if v.size == N_COMPONENTS:
            self._v[:] = v
        elif v.size == 3:
            self._v[:3] = v
            self._v[3:] = 0.0
        else:
            raise ValueError(f"fill_from_input_vector expects 3 or 6 values, got {v.size}")
        return self

    # ---- access ------------------------------------------------------
    @property
    def voigt(self) -> np.ndarray:
        """Copy of the six components."""
        return self._v.copy()

    def component(self, c: Union[int, str]) -> float:
        return float(self._v[component_index(c)])

    def __getitem__(self, ij):
        # T[i, j] like a full matrix
        i, j = ij
        if i > j:
            i, j = j, i
        return float(self._v[VOIGT_INDEX.index((i, j))])

    def to_matrix(self) -> np.ndarray:
        m = np.empty((3, 3))
        for k, (i, j) in enumerate(VOIGT_INDEX):
            m[i, j] = self._v[k]
            m[j, i] = self._v[k]
        return m

    def trace(self) -> float:
        return float(self._v[:3].sum())

    # ---- arithmetic --------------------------------------------------
    def __add__(self, other):
        if not isinstance(other, SymmetricTensor):
            return NotImplemented
        return SymmetricTensor(self._v + other._v)

    def __sub__(self, other):
        if not isinstance(other, SymmetricTensor):
            return NotImplemented
        return SymmetricTensor(self._v - other._v)

    def __neg__(self):
        return SymmetricTensor(-self._v)

    def __mul__(self, s):
        if isinstance(s, SymmetricTensor):
            return NotImplemented
        return SymmetricTensor(self._v * float(s))

    __rmul__ = __mul__

    def __truediv__(self, s):
        return SymmetricTensor(self._v / float(s))

    def __eq__(self, other):
        if not isinstance(other, SymmetricTensor):
            return NotImplemented
        return bool(np.array_equal(self._v, other._v))

    __hash__ = None

    def allclose(self, other, rtol=1e-12, atol=1e-12) -> bool:
        return bool(np.allclose(self._v, SymmetricTensor._coerce(other), rtol=rtol, atol=atol))

    @staticmethod
    def _coerce(other) -> np.ndarray:
        if isinstance(other, SymmetricTensor):
            return other._v
        return as_voigt_array([other])[0]

    def __repr__(self):
        body = ", ".join(f"{n}={x:.6g}" for n, x in zip(COMPONENT_NAMES, self._v))
        return f"SymmetricTensor({body})"


def as_voigt_array(values: Union[np.ndarray, Iterable]) -> np.ndarray:
    """
    Normalise a per-point sequence into a (Q, 6) float array.

    Accepts SymmetricTensor items, (6,) vectors, 3x3 matrices, or an array
    already shaped (Q, 6) / (Q, 3, 3).
    """
    if isinstance(values, np.ndarray):
        arr = np.asarray(values, dtype=float)
        if arr.ndim == 2 and arr.shape[1] == N_COMPONENTS:
            return arr.copy()
        if arr.ndim == 3 and arr.shape[1:] == (3, 3):
            return np.stack([arr[:, i, j] for i, j in VOIGT_INDEX], axis=1)
        if arr.ndim == 1 and arr.size == 0:
            return np.zeros((0, N_COMPONENTS))
        raise ValueError(f"Cannot interpret array of shape {arr.shape} as per-point tensors")

    rows = []
    for item in values:
        if isinstance(item, SymmetricTensor):
            rows.append(item._v)
            continue
        a = np.asarray(item, dtype=float)
        if a.shape == (3, 3):
            rows.append(SymmetricTensor.from_matrix(a)._v)
        elif a.shape == (N_COMPONENTS,):
            rows.append(a)
        else:
            raise ValueError(f"Cannot interpret item of shape {a.shape} as a symmetric tensor")
    if not rows:
        return np.zeros((0, N_COMPONENTS))
    return np.vstack(rows)


def to_tensors(values: np.ndarray) -> list[SymmetricTensor]:
    return [SymmetricTensor(row) for row in np.asarray(values, dtype=float)]
