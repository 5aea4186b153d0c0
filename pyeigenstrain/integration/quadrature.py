"""pyeigenstrain.integration.quadrature
Per-element quadrature geometry (points, JxW, coordinate factors).

The reducer only consumes :class:`QuadratureData`. The Gauss rules and
:func:`map_to_physical` below are a small convenience for callers with no FE
layer of their own (tests, examples, scripts): they map vertex-linear
line, triangle, quad and hex elements and nothing more.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Iterator, NamedTuple

import numpy as np
from numpy.polynomial.legendre import leggauss

from pyeigenstrain.core.errors import ContractViolation


# -------------------------------------------------------------------------
# Coordinate systems
# -------------------------------------------------------------------------
class CoordinateSystem(str, Enum):
    XYZ = "XYZ"
    RZ = "RZ"                   # axisymmetric, r = x
    RSPHERICAL = "RSPHERICAL"   # spherical symmetry, r = x


def coord_factors(system, points) -> np.ndarray:
    """Integration scale factor per point for the given coordinate system."""
    system = CoordinateSystem(system)
    pts = np.atleast_2d(np.asarray(points, dtype=float))
    r = pts[:, 0]
    if system is CoordinateSystem.XYZ:
        return np.ones(len(pts))
    if system is CoordinateSystem.RZ:
        return 2.0 * np.pi * r
    return 4.0 * np.pi * r * r


# -------------------------------------------------------------------------
# Quadrature data of one physical element
# -------------------------------------------------------------------------
class QuadraturePoint(NamedTuple):
    point: np.ndarray   # (3,)
    JxW: float
    coord: float


class QuadratureData:
    """
    Quadrature geometry of one element.

    Points are always stored with three columns; 1-D and 2-D input is padded
    with zeros so downstream code can index x, y, z uniformly.
    """

    def __init__(self, points, JxW, coord=None):
        pts = np.asarray(points, dtype=float)
        if pts.ndim == 1:
            pts = pts[:, None]
        if pts.ndim != 2 or pts.shape[1] > 3:
            raise ContractViolation(f"Quadrature points must be (Q, d) with d <= 3, got shape {pts.shape}")
        n_q = pts.shape[0]
        self.points = np.zeros((n_q, 3))
        self.points[:, :pts.shape[1]] = pts

        self.JxW = np.asarray(JxW, dtype=float).ravel()
        self.coord = np.ones(n_q) if coord is None else np.asarray(coord, dtype=float).ravel()
        if self.JxW.shape != (n_q,) or self.coord.shape != (n_q,):
            raise ContractViolation(
                f"JxW/coord must have one entry per point ({n_q}); "
                f"got {self.JxW.shape} and {self.coord.shape}")
        for name, arr in (("JxW", self.JxW), ("coord", self.coord)):
            if not np.all(np.isfinite(arr)) or np.any(arr < 0.0):
                raise ContractViolation(f"{name} must be finite and non-negative.")

    @classmethod
    def in_coordinate_system(cls, points, JxW, system=CoordinateSystem.XYZ) -> "QuadratureData":
        pts = np.asarray(points, dtype=float)
        return cls(pts, JxW, coord_factors(system, pts.reshape(len(pts), -1)))

    @property
    def n_points(self) -> int:
        return self.points.shape[0]

    @property
    def weights(self) -> np.ndarray:
        """Averaging / least-squares weight per point: JxW * coord."""
        return self.JxW * self.coord

    @property
    def volume(self) -> float:
        return float(self.weights.sum())

    def __len__(self):
        return self.n_points

    def __iter__(self) -> Iterator[QuadraturePoint]:
        for q in range(self.n_points):
            yield QuadraturePoint(self.points[q], float(self.JxW[q]), float(self.coord[q]))

    def __repr__(self):
        return f"<QuadratureData {self.n_points} pts, volume={self.volume:.6g}>"


# -------------------------------------------------------------------------
# Reference Gauss rules
# -------------------------------------------------------------------------
def gauss_legendre(order: int):
    """Points and weights of the ``order``-point rule on [-1, 1]."""
    if order < 1:
        raise ValueError(f"Gauss order must be >= 1, got {order}")
    return leggauss(order)


def _tensor_rule(order: int, dim: int):
    xi, wi = gauss_legendre(order)
    pts = np.stack([g.ravel() for g in np.meshgrid(*([xi] * dim), indexing='ij')], axis=1)
    wts = np.prod([g.ravel() for g in np.meshgrid(*([wi] * dim), indexing='ij')], axis=0)
    return pts, wts


@lru_cache(maxsize=None)
def line_rule(order: int):
    return _tensor_rule(order, 1)


@lru_cache(maxsize=None)
def quad_rule(order: int):
    return _tensor_rule(order, 2)


@lru_cache(maxsize=None)
def hex_rule(order: int):
    return _tensor_rule(order, 3)


@lru_cache(maxsize=None)
def tri_rule(order: int):
    """Duffy-collapsed square on the triangle (0,0)-(1,0)-(0,1); weights sum to 1/2."""
    sq, w = _tensor_rule(order, 2)
    u = 0.5 * (sq + 1.0)
    r = u[:, 0]
    pts = np.column_stack([r, u[:, 1] * (1.0 - r)])
    return pts, 0.25 * w * (1.0 - r)


# -------------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------------
def volume(element_type: str, order: int = 2):
    if element_type == 'line':
        return line_rule(order)
    if element_type == 'tri':
        return tri_rule(order)
    if element_type == 'quad':
        return quad_rule(order)
    if element_type == 'hex':
        return hex_rule(order)
    raise KeyError(element_type)


# -------------------------------------------------------------------------
# Vertex-linear geometry mapping
# -------------------------------------------------------------------------
def _linear_shape_and_grad(element_type: str, xi: np.ndarray):
    if element_type == 'line':
        s = xi[0]
        N = np.array([0.5 * (1 - s), 0.5 * (1 + s)])
        dN = np.array([[-0.5], [0.5]])
    elif element_type == 'tri':
        r, s = xi
        N = np.array([1.0 - r - s, r, s])
        dN = np.array([[-1.0, -1.0], [1.0, 0.0], [0.0, 1.0]])
    elif element_type == 'quad':
        # CCW corners (-1,-1) (1,-1) (1,1) (-1,1)
        s, t = xi
        sg = np.array([[-1, -1], [1, -1], [1, 1], [-1, 1]], dtype=float)
        N = 0.25 * (1 + sg[:, 0] * s) * (1 + sg[:, 1] * t)
        dN = np.column_stack([0.25 * sg[:, 0] * (1 + sg[:, 1] * t),
                              0.25 * sg[:, 1] * (1 + sg[:, 0] * s)])
    elif element_type == 'hex':
        # bottom face CCW, then top face CCW
        s, t, u = xi
        sg = np.array([[-1, -1, -1], [1, -1, -1], [1, 1, -1], [-1, 1, -1],
                       [-1, -1, 1], [1, -1, 1], [1, 1, 1], [-1, 1, 1]], dtype=float)
        a = 1 + sg[:, 0] * s
        b = 1 + sg[:, 1] * t
        c = 1 + sg[:, 2] * u
        N = 0.125 * a * b * c
        dN = 0.125 * np.column_stack([sg[:, 0] * b * c, sg[:, 1] * a * c, sg[:, 2] * a * b])
    else:
        raise KeyError(element_type)
    return N, dN


def map_to_physical(nodes, element_type: str, order: int = 2,
                    system=CoordinateSystem.XYZ) -> QuadratureData:
    """
    Map the reference rule of a vertex-linear element onto physical space.

    Args:
        nodes: (n_vertices, d) corner coordinates in the orientation used by
               ``_linear_shape_and_grad``.
        element_type: 'line', 'tri', 'quad' or 'hex'.
        order: Gauss order per direction.
        system: Coordinate system providing the ``coord`` factor.
    """
    X = np.asarray(nodes, dtype=float)
    if X.ndim == 1:
        X = X[:, None]
    ref_pts, ref_wts = volume(element_type, order)
    pts = np.empty((len(ref_wts), X.shape[1]))
    jxw = np.empty(len(ref_wts))
    for q, (xi, w) in enumerate(zip(ref_pts, ref_wts)):
        N, dN = _linear_shape_and_grad(element_type, np.atleast_1d(xi))
        if N.shape[0] != X.shape[0]:
            raise ContractViolation(
                f"{element_type} element needs {N.shape[0]} vertices, got {X.shape[0]}")
        pts[q] = N @ X
        J = dN.T @ X                       # (ref_dim, d)
        if J.shape[0] == 1:
            det = np.linalg.norm(J[0])
        elif J.shape[0] == J.shape[1]:
            det = abs(np.linalg.det(J))
        else:
            # embedded surface: sqrt(det(J J^T))
            det = np.sqrt(abs(np.linalg.det(J @ J.T)))
        jxw[q] = w * det
    return QuadratureData(pts, jxw, coord_factors(system, pts))
