from .errors import PyEigenstrainError, ContractViolation, NumericalFailure
from .tensor import SymmetricTensor, COMPONENT_NAMES, VOIGT_INDEX, as_voigt_array
from .mesh import MeshTraits
__all__=['PyEigenstrainError','ContractViolation','NumericalFailure',
         'SymmetricTensor','COMPONENT_NAMES','VOIGT_INDEX','as_voigt_array','MeshTraits']
