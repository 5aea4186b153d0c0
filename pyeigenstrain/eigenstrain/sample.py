"""pyeigenstrain.eigenstrain.sample
Input fields of one element, validated once at construction.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from pyeigenstrain.core.errors import ContractViolation
from pyeigenstrain.core.tensor import as_voigt_array


@dataclass
class InputField:
    """One eigenstrain source sampled at the quadrature points of an element."""
    name: str
    current: np.ndarray
    previous: Optional[np.ndarray] = None

    def __post_init__(self):
        self.current = as_voigt_array(self.current)
        if self.previous is not None:
            self.previous = as_voigt_array(self.previous)
            if self.previous.shape != self.current.shape:
                raise ContractViolation(
                    f"Field '{self.name}': previous state has {len(self.previous)} points, "
                    f"current has {len(self.current)}.")

    def __len__(self):
        return len(self.current)


@dataclass
class ElementSample:
    fields: List[InputField]
    element_id: object = None
    n_points: int = field(init=False)

    def __post_init__(self):
        self.fields = list(self.fields)
        if not self.fields:
            raise ContractViolation(f"Element {self.element_id}: at least one input field is required.")
        lengths = {f.name: len(f) for f in self.fields}
        if len(set(lengths.values())) != 1:
            raise ContractViolation(
                f"Element {self.element_id}: input fields disagree on the number of "
                f"quadrature points: {lengths}")
        self.n_points = len(self.fields[0])

    @property
    def has_previous(self) -> bool:
        return all(f.previous is not None for f in self.fields)

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.fields]

    @classmethod
    def from_arrays(cls, current: Sequence, previous: Sequence = None,
                    names: Sequence[str] = None, element_id=None) -> "ElementSample":
        """Convenience constructor from parallel lists of per-point arrays."""
        n = len(current)
        names = list(names) if names is not None else [f"eigenstrain_{i}" for i in range(n)]
        if len(names) != n or (previous is not None and len(previous) != n):
            raise ContractViolation("names/previous must match the number of current fields.")
        fields = [InputField(names[i], current[i], None if previous is None else previous[i])
                  for i in range(n)]
        return cls(fields, element_id=element_id)
