"""pyeigenstrain.core.errors
Exception types shared by the reduction pipeline.
"""
from __future__ import annotations

from typing import Optional


class PyEigenstrainError(Exception):
    """Base class for all errors raised by pyeigenstrain."""


class ContractViolation(PyEigenstrainError, ValueError):
    """
    Caller misuse detected at setup time: mismatched field lengths, missing
    previous-state data in incremental form, no input fields at all.
    Not meant to be caught and patched over.
    """


class NumericalFailure(PyEigenstrainError, ArithmeticError):
    """
    A reduction could not produce a finite result for one element.

    Attributes:
        element_id: Element being reduced (None if the caller did not say).
        component:  Voigt component index that failed, or None when the
                    shared normal-equations matrix is at fault.
        reason:     Short machine-friendly description.
    """

    def __init__(self, reason: str, *, element_id=None, component: Optional[int] = None):
        self.reason = reason
        self.element_id = element_id
        self.component = component
        where = f"element {element_id}" if element_id is not None else "element <unknown>"
        if component is not None:
            where += f", component {component}"
        super().__init__(f"{reason} ({where})")
