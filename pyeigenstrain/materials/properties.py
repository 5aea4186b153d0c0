"""pyeigenstrain.materials.properties
Explicit per-element storage of tensor-valued material properties, with an
optional "old" copy for properties that carry state between time steps.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

import numpy as np

from pyeigenstrain.core.errors import ContractViolation
from pyeigenstrain.core.tensor import N_COMPONENTS, as_voigt_array

logger = logging.getLogger(__name__)


class MaterialPropertyStore:
    """
    name -> element_id -> (Q, 6) array.

    Stateful properties additionally keep the value they had at the end of
    the previous time step, readable through :meth:`get_old`.
    """

    def __init__(self) -> None:
        self._current: Dict[str, Dict[object, np.ndarray]] = {}
        self._old: Dict[str, Dict[object, np.ndarray]] = {}
        self._stateful: set = set()

    # ------------------------------------------------------------------
    # declaration
    # ------------------------------------------------------------------
    def declare(self, name: str, stateful: bool = False) -> None:
        if name not in self._current:
            self._current[name] = {}
        if stateful and name not in self._stateful:
            self._stateful.add(name)
            self._old[name] = {}
        logger.debug(f"Declared property '{name}' (stateful={name in self._stateful})")

    def has(self, name: str) -> bool:
        return name in self._current

    def is_stateful(self, name: str) -> bool:
        return name in self._stateful

    @property
    def names(self):
        return sorted(self._current)

    # ------------------------------------------------------------------
    # values
    # ------------------------------------------------------------------
    def _require(self, name: str) -> None:
        if name not in self._current:
            raise ContractViolation(f"Material property '{name}' has not been declared.")

    def set(self, name: str, element_id, values) -> None:
        self._require(name)
        self._current[name][element_id] = as_voigt_array(values)

    def set_old(self, name: str, element_id, values) -> None:
        self._require(name)
        if name not in self._stateful:
            raise ContractViolation(f"Material property '{name}' is not stateful; it has no old value.")
        self._old[name][element_id] = as_voigt_array(values)

    def get(self, name: str, element_id) -> np.ndarray:
        self._require(name)
        try:
            return self._current[name][element_id]
        except KeyError:
            raise ContractViolation(f"Property '{name}' has no value on element {element_id}.")

    def get_old(self, name: str, element_id) -> np.ndarray:
        self._require(name)
        if name not in self._stateful:
            raise ContractViolation(f"Material property '{name}' is not stateful; it has no old value.")
        try:
            return self._old[name][element_id]
        except KeyError:
            raise ContractViolation(f"Property '{name}' has no old value on element {element_id}.")

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def init_stateful(self, element_id, n_points: int, names: Optional[Iterable[str]] = None) -> None:
        """Zero current and old values of stateful properties on one element."""
        targets = self._stateful if names is None else list(names)
        for name in targets:
            self._require(name)
            zeros = np.zeros((int(n_points), N_COMPONENTS))
            self._current[name][element_id] = zeros
            if name in self._stateful:
                self._old[name][element_id] = zeros.copy()

    def advance(self) -> None:
        """End of time step: old <- current for every stateful property."""
        for name in self._stateful:
            self._old[name] = {eid: v.copy() for eid, v in self._current[name].items()}
        logger.debug(f"Advanced {len(self._stateful)} stateful properties.")
