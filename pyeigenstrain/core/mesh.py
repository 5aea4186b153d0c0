"""pyeigenstrain.core.mesh
Mesh-level facts the reducer needs: spatial dimension and whether the mesh
carries second-order (affine-fit eligible) elements.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple, Union

from pyeigenstrain.core.errors import ContractViolation

# Reference dimension of each element family.
_ELEMENT_DIM = {
    'line': 1,
    'tri':  2,
    'quad': 2,
    'tet':  3,
    'hex':  3,
}


@dataclass(frozen=True)
class MeshTraits:
    dimension: int              # 1, 2 or 3; fixes the number of design-matrix columns
    second_order: bool = False  # True -> affine fit, False -> volume average

    def __post_init__(self):
        if self.dimension not in (1, 2, 3):
            raise ContractViolation(f"Mesh dimension must be 1, 2 or 3, got {self.dimension!r}")

    @property
    def n_cols(self) -> int:
        """Columns of the least-squares design matrix: [1, x, (y), (z)]."""
        return 1 + self.dimension

    @classmethod
    def from_elements(cls,
                      elements: Iterable[Union[Tuple[str, int], str]],
                      dimension: int = None) -> "MeshTraits":
        """
        Build traits from (element_type, poly_order) pairs, e.g.
        ``[('quad', 2), ('tri', 2)]``. A bare string means poly_order 1.
        The mesh is second order if any element is; the dimension defaults
        to the largest element dimension present.
        """
        second_order = False
        max_dim = 0
        seen = False
        for item in elements:
            seen = True
            if isinstance(item, str):
                etype, order = item, 1
            else:
                etype, order = item
            if etype not in _ELEMENT_DIM:
                raise KeyError(etype)
            max_dim = max(max_dim, _ELEMENT_DIM[etype])
            second_order = second_order or int(order) >= 2
        if not seen:
            raise ContractViolation("Cannot derive mesh traits from an empty element list.")
        return cls(dimension=int(dimension) if dimension is not None else max_dim,
                   second_order=second_order)

    @classmethod
    def from_mesh(cls, mesh) -> "MeshTraits":
        """Duck-typed: reads ``element_type``, ``poly_order`` and optionally ``spatial_dim``."""
        dim = getattr(mesh, "spatial_dim", None)
        return cls.from_elements([(mesh.element_type, getattr(mesh, "poly_order", 1))], dimension=dim)
