"""pyeigenstrain.eigenstrain.fit
Reduce per-point eigenstrains of one element to a constant (volume average)
or an affine-in-space field, and evaluate the result back at any point.

Affine fit, per Voigt component c:

    A[q] = [1, x_q, (y_q), (z_q)]          (1 + dim columns)
    (AᵀA) x_c = Aᵀ b_c,   b_c[q] = value_c(q)

solved with a Cholesky factorisation of AᵀA shared by all six components.
"""
from __future__ import annotations

import logging

import numpy as np
import scipy.linalg as sla

from pyeigenstrain.core.errors import ContractViolation, NumericalFailure
from pyeigenstrain.core.mesh import MeshTraits
from pyeigenstrain.core.tensor import N_COMPONENTS, SymmetricTensor, as_voigt_array
from pyeigenstrain.integration.quadrature import QuadratureData

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONDITION = 1e12
# smallest total weight an element may carry; subnormal volumes are degenerate
MIN_TOTAL_WEIGHT = np.finfo(float).tiny


# -------------------------------------------------------------------------
# Fit models
# -------------------------------------------------------------------------
class FitModel:
    """Reduced eigenstrain of one element."""
    def evaluate(self, point) -> SymmetricTensor:
        raise NotImplementedError
    def evaluate_many(self, points) -> np.ndarray:
        raise NotImplementedError


class ConstantFit(FitModel):
    def __init__(self, tensor):
        self._value = (tensor.voigt if isinstance(tensor, SymmetricTensor)
                       else np.asarray(tensor, dtype=float).reshape(N_COMPONENTS).copy())

    @property
    def tensor(self) -> SymmetricTensor:
        return SymmetricTensor(self._value)

    def evaluate(self, point=None) -> SymmetricTensor:
        return SymmetricTensor(self._value)

    def evaluate_many(self, points) -> np.ndarray:
        n = len(np.atleast_2d(np.asarray(points, dtype=float)))
        return np.tile(self._value, (n, 1))

    def __repr__(self):
        return f"ConstantFit({self.tensor!r})"


class AffineFit(FitModel):
    """
    coefficients[c] = [intercept, c_x, (c_y), (c_z)] for Voigt component c.
    Coordinates beyond ``dimension`` never enter the evaluation.
    """
    def __init__(self, coefficients, dimension: int):
        coef = np.asarray(coefficients, dtype=float)
        if coef.shape != (N_COMPONENTS, 1 + dimension):
            raise ValueError(f"Affine coefficients must be (6, {1 + dimension}), got {coef.shape}")
        self.coefficients = coef.copy()
        self.dimension = int(dimension)

    def intercept(self, c: int) -> float:
        return float(self.coefficients[c, 0])

    def slope(self, c: int) -> np.ndarray:
        return self.coefficients[c, 1:].copy()

    def evaluate(self, point) -> SymmetricTensor:
        p = np.zeros(3)
        src = np.asarray(point, dtype=float).ravel()
        p[:min(3, src.size)] = src[:3]
        vals = self.coefficients[:, 0] + self.coefficients[:, 1:] @ p[:self.dimension]
        return SymmetricTensor(vals)

    def evaluate_many(self, points) -> np.ndarray:
        P = np.atleast_2d(np.asarray(points, dtype=float))
        X = np.zeros((P.shape[0], self.dimension))
        k = min(self.dimension, P.shape[1])
        X[:, :k] = P[:, :k]
        return self.coefficients[:, 0][None, :] + X @ self.coefficients[:, 1:].T

    def __repr__(self):
        return f"AffineFit(dimension={self.dimension}, coefficients={self.coefficients.tolist()})"


# -------------------------------------------------------------------------
# Reduction
# -------------------------------------------------------------------------
def _check_lengths(values: np.ndarray, qdata: QuadratureData, element_id) -> None:
    if values.shape[0] != qdata.n_points:
        raise ContractViolation(
            f"Element {element_id}: {values.shape[0]} tensors for {qdata.n_points} quadrature points.")


def volume_average(values, qdata: QuadratureData, element_id=None) -> ConstantFit:
    """Σ v·w / Σ w with w = JxW·coord."""
    values = as_voigt_array(values)
    _check_lengths(values, qdata, element_id)
    w = qdata.weights
    vol = float(w.sum())
    if not np.isfinite(vol) or vol <= MIN_TOTAL_WEIGHT:
        raise NumericalFailure(f"degenerate element volume {vol!r} in volume average",
                               element_id=element_id)
    mean = (values * w[:, None]).sum(axis=0) / vol
    if not np.all(np.isfinite(mean)):
        bad = int(np.flatnonzero(~np.isfinite(mean))[0])
        raise NumericalFailure("non-finite volume average", element_id=element_id, component=bad)
    return ConstantFit(mean)


def design_matrix(points, dimension: int) -> np.ndarray:
    """Rows [1, x, (y), (z)]; columns past *dimension* are dropped."""
    P = np.atleast_2d(np.asarray(points, dtype=float))
    A = np.ones((P.shape[0], 1 + dimension))
    k = min(dimension, P.shape[1])
    A[:, 1:1 + k] = P[:, :k]
    if k < dimension:
        A[:, 1 + k:] = 0.0
    return A


def _condition_number(M: np.ndarray) -> float:
    s = np.linalg.svd(M, compute_uv=False)
    if s[-1] <= 0.0:
        return np.inf
    return float(s[0] / s[-1])


def affine_fit(values, qdata: QuadratureData, dimension: int, *,
               weighted: bool = False,
               max_condition: float = DEFAULT_MAX_CONDITION,
               element_id=None) -> AffineFit:
    """
    Least-squares fit of each Voigt component to a + b·x (+ c·y + d·z).

    Rows are unweighted unless *weighted*, in which case each row is scaled
    by sqrt(JxW·coord). Coordinates are shifted to their centroid and divided
    by their extent along each axis before the normal equations are
    assembled, so the condition number does not depend on element size.
    Slopes and intercept are mapped back afterwards.
    """
    values = as_voigt_array(values)
    _check_lengths(values, qdata, element_id)
    n_q = qdata.n_points
    n_cols = 1 + dimension
    if n_q < n_cols:
        raise NumericalFailure(
            f"{n_q} quadrature points cannot determine {n_cols} affine coefficients",
            element_id=element_id)
    finite_in = np.all(np.isfinite(values), axis=0)
    if not np.all(finite_in):
        bad = int(np.flatnonzero(~finite_in)[0])
        raise NumericalFailure("non-finite eigenstrain values", element_id=element_id, component=bad)

    P = qdata.points[:, :dimension]
    center = P.mean(axis=0)
    scale = np.abs(P - center).max(axis=0)
    scale[scale == 0.0] = 1.0          # flat direction: left singular, caught below
    A = design_matrix((P - center) / scale, dimension)
    B = values
    if weighted:
        s = np.sqrt(qdata.weights)
        A = A * s[:, None]
        B = B * s[:, None]

    AT = A.T
    ATA = AT @ A                 # (n_cols, n_cols)
    ATB = AT @ B                 # (n_cols, 6)

    cond = _condition_number(ATA)
    if not np.isfinite(cond) or cond > max_condition:
        raise NumericalFailure(
            f"ill-conditioned normal equations (cond={cond:.3e} > {max_condition:.1e})",
            element_id=element_id)
    try:
        factor = sla.cho_factor(ATA, lower=False, check_finite=True)
        X = sla.cho_solve(factor, ATB)        # (n_cols, 6)
    except (sla.LinAlgError, ValueError) as exc:
        raise NumericalFailure(f"normal equations not positive definite: {exc}",
                               element_id=element_id) from exc

    coef = X.T.copy()                          # (6, n_cols)
    coef[:, 1:] /= scale
    coef[:, 0] -= coef[:, 1:] @ center
    finite = np.all(np.isfinite(coef), axis=1)
    if not np.all(finite):
        bad = int(np.flatnonzero(~finite)[0])
        raise NumericalFailure("non-finite affine coefficients", element_id=element_id, component=bad)

    logger.debug(f"Affine fit on element {element_id}: n_q={n_q}, dim={dimension}, cond={cond:.3e}")
    return AffineFit(coef, dimension)


def reduce(values, qdata: QuadratureData, traits: MeshTraits, *,
           weighted: bool = False,
           max_condition: float = DEFAULT_MAX_CONDITION,
           element_id=None) -> FitModel:
    """Volume average on first-order meshes, affine fit on second-order ones."""
    if traits.second_order:
        return affine_fit(values, qdata, traits.dimension, weighted=weighted,
                          max_condition=max_condition, element_id=element_id)
    return volume_average(values, qdata, element_id=element_id)


def evaluate(model: FitModel, qdata: QuadratureData) -> np.ndarray:
    """(Q, 6) reduced eigenstrain at every quadrature point of the element."""
    return model.evaluate_many(qdata.points)
