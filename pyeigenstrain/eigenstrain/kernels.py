"""pyeigenstrain.eigenstrain.kernels
Numba kernels reducing a whole batch of elements (same number of quadrature
points each) in one call, parallel over elements.

Every element owns its scratch inside the ``prange`` body, so nothing is
shared between workers. Failures are reported per element through a status
array and turned into :class:`NumericalFailure` by :func:`reduce_batch`.
"""
from __future__ import annotations

import logging
import os

import numpy as np
import numba as _nb

from pyeigenstrain.core.errors import ContractViolation, NumericalFailure
from pyeigenstrain.core.mesh import MeshTraits
from pyeigenstrain.eigenstrain.fit import DEFAULT_MAX_CONDITION, MIN_TOTAL_WEIGHT

logger = logging.getLogger(__name__)

_CACHE = os.getenv("PYEIGENSTRAIN_DISABLE_JIT_CACHE", "").lower() not in {"1", "true", "yes"}

STATUS_OK = 0
STATUS_ZERO_WEIGHT = 1
STATUS_SINGULAR = 2
STATUS_UNDERDETERMINED = 3
STATUS_NONFINITE = 4

_STATUS_REASON = {
    STATUS_ZERO_WEIGHT: "degenerate element volume in volume average",
    STATUS_SINGULAR: "singular or ill-conditioned normal equations",
    STATUS_UNDERDETERMINED: "too few quadrature points for an affine fit",
    STATUS_NONFINITE: "non-finite eigenstrain values or reduced coefficients",
}


# -------------------------------------------------------------------------
# Kernels
# -------------------------------------------------------------------------
@_nb.njit(cache=_CACHE)
def _all_finite(a):
    for i in range(a.shape[0]):
        for j in range(a.shape[1]):
            if not np.isfinite(a[i, j]):
                return False
    return True


@_nb.njit(cache=_CACHE)
def _average_one(values, weights, tiny, out):
    nQ, nC = values.shape
    if not _all_finite(values):
        return STATUS_NONFINITE
    vol = 0.0
    for q in range(nQ):
        vol += weights[q]
    if not (vol > tiny):
        return STATUS_ZERO_WEIGHT
    for k in range(nC):
        acc = 0.0
        for q in range(nQ):
            acc += values[q, k] * weights[q]
        out[k, 0] = acc / vol
    if not _all_finite(out):
        return STATUS_NONFINITE
    return STATUS_OK


@_nb.njit(cache=_CACHE)
def _affine_one(values, points, weights, dim, weighted, max_condition, out):
    nQ, nC = values.shape
    n = dim + 1
    if nQ < n:
        return STATUS_UNDERDETERMINED
    if not _all_finite(values):
        return STATUS_NONFINITE

    # centroid shift, then unit extent per axis
    c = np.zeros(3)
    for q in range(nQ):
        for d in range(dim):
            c[d] += points[q, d]
    for d in range(dim):
        c[d] /= nQ
    sc = np.zeros(3)
    for q in range(nQ):
        for d in range(dim):
            sc[d] = max(sc[d], abs(points[q, d] - c[d]))
    for d in range(dim):
        if sc[d] == 0.0:
            sc[d] = 1.0

    # normal equations  M = Σ s·a aᵀ,  R = Σ s·a bᵀ
    M = np.zeros((n, n))
    R = np.zeros((n, nC))
    row = np.empty(n)
    for q in range(nQ):
        s = weights[q] if weighted else 1.0
        row[0] = 1.0
        for d in range(dim):
            row[d + 1] = (points[q, d] - c[d]) / sc[d]
        for i in range(n):
            for j in range(n):
                M[i, j] += s * row[i] * row[j]
            for k in range(nC):
                R[i, k] += s * row[i] * values[q, k]

    # Cholesky M = L Lᵀ
    L = np.zeros((n, n))
    for j in range(n):
        acc = M[j, j]
        for k in range(j):
            acc -= L[j, k] * L[j, k]
        if not (acc > 0.0):
            return STATUS_SINGULAR
        L[j, j] = np.sqrt(acc)
        for i in range(j + 1, n):
            acc2 = M[i, j]
            for k in range(j):
                acc2 -= L[i, k] * L[j, k]
            L[i, j] = acc2 / L[j, j]
    dmax = L[0, 0]
    dmin = L[0, 0]
    for j in range(1, n):
        dmax = max(dmax, L[j, j])
        dmin = min(dmin, L[j, j])
    # squared pivot ratio: lower bound of cond(M)
    if (dmax / dmin) ** 2 > max_condition:
        return STATUS_SINGULAR

    y = np.empty(n)
    x = np.empty(n)
    for k in range(nC):
        for i in range(n):
            acc = R[i, k]
            for m in range(i):
                acc -= L[i, m] * y[m]
            y[i] = acc / L[i, i]
        for i in range(n - 1, -1, -1):
            acc = y[i]
            for m in range(i + 1, n):
                acc -= L[m, i] * x[m]
            x[i] = acc / L[i, i]
        intercept = x[0]
        for d in range(dim):
            slope = x[d + 1] / sc[d]
            intercept -= slope * c[d]
            out[k, d + 1] = slope
        out[k, 0] = intercept
    if not _all_finite(out):
        return STATUS_NONFINITE
    return STATUS_OK


@_nb.njit(cache=_CACHE, parallel=True)
def _average_kernel(values, weights, tiny, out, status):
    for e in _nb.prange(values.shape[0]):
        status[e] = _average_one(values[e], weights[e], tiny, out[e])


@_nb.njit(cache=_CACHE, parallel=True)
def _affine_kernel(values, points, weights, dim, weighted, max_condition, out, status):
    for e in _nb.prange(values.shape[0]):
        status[e] = _affine_one(values[e], points[e], weights[e], dim, weighted, max_condition, out[e])


@_nb.njit(cache=_CACHE, parallel=True)
def _evaluate_kernel(coeffs, points, out):
    nE, nC, n = coeffs.shape
    nQ = points.shape[1]
    for e in _nb.prange(nE):
        for q in range(nQ):
            for k in range(nC):
                v = coeffs[e, k, 0]
                for d in range(n - 1):
                    v += coeffs[e, k, d + 1] * points[e, q, d]
                out[e, q, k] = v


# -------------------------------------------------------------------------
# Python wrappers
# -------------------------------------------------------------------------
def _as_points3(points, nE, nQ) -> np.ndarray:
    P = np.asarray(points, dtype=np.float64)
    if P.ndim == 2:
        P = P[:, :, None]
    if P.shape[:2] != (nE, nQ) or P.shape[2] > 3:
        raise ContractViolation(f"points must be (E, Q, d<=3) = ({nE}, {nQ}, d), got {P.shape}")
    out = np.zeros((nE, nQ, 3))
    out[:, :, :P.shape[2]] = P
    return out


def reduce_batch(values, points, weights, traits: MeshTraits, *,
                 weighted: bool = False,
                 max_condition: float = DEFAULT_MAX_CONDITION,
                 element_ids=None) -> np.ndarray:
    """
    Reduce E elements at once.

    Args:
        values:  (E, Q, 6) combined eigenstrains.
        points:  (E, Q, d) quadrature point coordinates.
        weights: (E, Q) JxW·coord.
        traits:  mesh traits selecting average or affine fit.

    Returns:
        (E, 6, 1) intercepts for a volume average, (E, 6, 1 + dim)
        coefficients for an affine fit; both evaluate with
        :func:`evaluate_batch`.

    Raises:
        NumericalFailure naming the first element that failed.
    """
    V = np.ascontiguousarray(values, dtype=np.float64)
    if V.ndim != 3 or V.shape[2] != 6:
        raise ContractViolation(f"values must be (E, Q, 6), got {V.shape}")
    nE, nQ, _ = V.shape
    W = np.ascontiguousarray(weights, dtype=np.float64)
    if W.shape != (nE, nQ):
        raise ContractViolation(f"weights must be ({nE}, {nQ}), got {W.shape}")
    if np.any(W < 0.0) or not np.all(np.isfinite(W)):
        raise ContractViolation("weights must be finite and non-negative.")
    status = np.full(nE, -1, dtype=np.int64)

    if traits.second_order:
        P = _as_points3(points, nE, nQ)
        out = np.zeros((nE, 6, traits.n_cols))
        _affine_kernel(V, P, W, traits.dimension, bool(weighted), float(max_condition), out, status)
    else:
        out = np.zeros((nE, 6, 1))
        _average_kernel(V, W, MIN_TOTAL_WEIGHT, out, status)

    failed = np.flatnonzero(status != STATUS_OK)
    if failed.size:
        i = int(failed[0])
        eid = element_ids[i] if element_ids is not None else i
        logger.debug(f"reduce_batch: {failed.size}/{nE} elements failed, first is {eid}")
        raise NumericalFailure(_STATUS_REASON.get(int(status[i]), "unknown failure"), element_id=eid)
    return out


def evaluate_batch(coeffs, points) -> np.ndarray:
    """(E, Q, 6) values of batched fit coefficients at the given points."""
    C = np.ascontiguousarray(coeffs, dtype=np.float64)
    nE = C.shape[0]
    P0 = np.asarray(points, dtype=np.float64)
    nQ = P0.shape[1]
    P = _as_points3(P0, nE, nQ)
    out = np.empty((nE, nQ, C.shape[1]))
    _evaluate_kernel(C, P, out)
    return out
