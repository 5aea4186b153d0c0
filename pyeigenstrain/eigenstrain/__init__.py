from .sample import InputField, ElementSample
from .accumulator import accumulate
from .fit import FitModel, ConstantFit, AffineFit, volume_average, affine_fit, reduce, evaluate
from .reducer import ReducerParameters, EigenstrainReducer
__all__=['InputField','ElementSample','accumulate',
         'FitModel','ConstantFit','AffineFit','volume_average','affine_fit','reduce','evaluate',
         'ReducerParameters','EigenstrainReducer']
