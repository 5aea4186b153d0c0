r"""
reducer.py  –  Reduced-order eigenstrain material
=================================================
Sums the named input eigenstrains of an element, replaces the sum by a
single representative field (volume average on first-order meshes, affine
least-squares fit on second-order meshes) and writes that field back at
every quadrature point as ``<base_name>reduced_order_eigenstrain``.

Per element the pass is strictly Accumulate → Reduce (once) → Evaluate
(once per quadrature point). The reducer keeps no per-element state between
calls, so different elements may be handed to different workers.
"""
from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from pyeigenstrain.core.errors import ContractViolation, NumericalFailure
from pyeigenstrain.core.mesh import MeshTraits
from pyeigenstrain.core.tensor import SymmetricTensor
from pyeigenstrain.eigenstrain import fit as _fit
from pyeigenstrain.eigenstrain.accumulator import accumulate
from pyeigenstrain.eigenstrain.sample import ElementSample, InputField
from pyeigenstrain.integration.quadrature import QuadratureData
from pyeigenstrain.materials.properties import MaterialPropertyStore
from pyeigenstrain.utils.timing import TimingCollector

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = "reduced_order_eigenstrain"


@dataclass
class ReducerParameters:
    """Settings of one reduced-order eigenstrain material."""

    input_eigenstrain_names: List[str] = field(default_factory=list)
    base_name: str = ""                 # prefix for every input and the output
    incremental_form: bool = False      # sum (current - old) instead of current
    weighted_fit: bool = False          # scale least-squares rows by sqrt(JxW·coord)
    max_condition: float = _fit.DEFAULT_MAX_CONDITION
    fallback_to_average: bool = False   # affine fit failure -> volume average + warning

    @property
    def output_name(self) -> str:
        return self.base_name + OUTPUT_SUFFIX

    @property
    def prefixed_inputs(self) -> List[str]:
        return [self.base_name + n for n in self.input_eigenstrain_names]


class EigenstrainReducer:
    """
    Args:
        params: Reducer settings.
        traits: Mesh dimension and order.
        store:  Property store holding the inputs; required for
                :meth:`compute_properties`, optional for the
                framework-free :meth:`reduce_sample` path.
        timer:  Optional collector timing the accumulate/reduce/evaluate phases.
    """

    def __init__(self,
                 params: ReducerParameters,
                 traits: MeshTraits,
                 store: Optional[MaterialPropertyStore] = None,
                 timer: Optional[TimingCollector] = None):
        if not isinstance(traits, MeshTraits):
            raise TypeError("'traits' must be a MeshTraits instance.")
        names = list(params.input_eigenstrain_names)
        if not names:
            raise ContractViolation("'input_eigenstrain_names' cannot be empty.")
        if len(set(names)) != len(names):
            raise ContractViolation(f"'input_eigenstrain_names' contains duplicates: {names}")
        if not params.max_condition > 1.0:
            raise ContractViolation(f"'max_condition' must exceed 1, got {params.max_condition}")

        self.params = params
        self.traits = traits
        self.store = store
        self.timer = timer
        self.input_names = params.prefixed_inputs
        self.output_name = params.output_name

        if store is not None:
            for name in self.input_names:
                if not store.has(name):
                    raise ContractViolation(f"Input eigenstrain '{name}' is not declared in the property store.")
                if params.incremental_form and not store.is_stateful(name):
                    raise ContractViolation(
                        f"Incremental form needs the old value of '{name}', but it is not stateful.")
            store.declare(self.output_name, stateful=True)

        logger.info(f"EigenstrainReducer '{self.output_name}': inputs={self.input_names}, "
                    f"dim={traits.dimension}, second_order={traits.second_order}, "
                    f"incremental={params.incremental_form}")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _phase(self, name):
        if self.timer is None:
            return nullcontext()
        return self.timer.phase(name)

    def _require_store(self) -> MaterialPropertyStore:
        if self.store is None:
            raise ContractViolation("This reducer was built without a property store.")
        return self.store

    # ------------------------------------------------------------------
    # host-facing lifecycle
    # ------------------------------------------------------------------
    def init_qp_stateful_properties(self, element_id, n_points: int) -> None:
        """Zero the output on an element that has never been evaluated."""
        self._require_store().init_stateful(element_id, n_points, names=[self.output_name])

    def gather_sample(self, element_id) -> ElementSample:
        store = self._require_store()
        fields = []
        for name in self.input_names:
            current = store.get(name, element_id)
            previous = store.get_old(name, element_id) if self.params.incremental_form else None
            fields.append(InputField(name, current, previous))
        return ElementSample(fields, element_id=element_id)

    def compute_properties(self, element_id, qdata: QuadratureData) -> np.ndarray:
        """Accumulate, reduce and evaluate one element; the result is also stored."""
        sample = self.gather_sample(element_id)
        model = self.reduce_sample(sample, qdata)
        with self._phase("evaluate"):
            values = self.evaluate(model, qdata)
        self.store.set(self.output_name, element_id, values)
        return values

    def compute_all(self, elements: Iterable[Tuple[object, QuadratureData]]) -> Dict[object, np.ndarray]:
        return {eid: self.compute_properties(eid, qdata) for eid, qdata in elements}

    # ------------------------------------------------------------------
    # framework-free path
    # ------------------------------------------------------------------
    def reduce_sample(self, sample: ElementSample, qdata: QuadratureData) -> _fit.FitModel:
        if sample.n_points != qdata.n_points:
            raise ContractViolation(
                f"Element {sample.element_id}: {sample.n_points} field values for "
                f"{qdata.n_points} quadrature points.")
        with self._phase("accumulate"):
            eigsum = accumulate(sample, incremental=self.params.incremental_form)
        with self._phase("reduce"):
            return self._reduce(eigsum, qdata, sample.element_id)

    def _reduce(self, eigsum: np.ndarray, qdata: QuadratureData, element_id) -> _fit.FitModel:
        p = self.params
        try:
            return _fit.reduce(eigsum, qdata, self.traits, weighted=p.weighted_fit,
                               max_condition=p.max_condition, element_id=element_id)
        except NumericalFailure as exc:
            if not (self.traits.second_order and p.fallback_to_average):
                raise
            logger.warning(f"Affine eigenstrain fit failed ({exc}); using the volume average instead.")
            return _fit.volume_average(eigsum, qdata, element_id=element_id)

    @staticmethod
    def evaluate(model: _fit.FitModel, qdata: QuadratureData) -> np.ndarray:
        return _fit.evaluate(model, qdata)

    @staticmethod
    def compute_qp_eigenstrain(model: _fit.FitModel, point) -> SymmetricTensor:
        return model.evaluate(point)

