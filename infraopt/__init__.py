"""
This module bundles all common functionality of infraopt and sets up the logging
"""

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version('infraopt')
except (PackageNotFoundError, TypeError):
    # Package is not installed (development mode without editable install)
    __version__ = '0.0.0.dev0'

from . import cost_terms, features, io, objective_functions, operating_costs
from .config import CONFIG
from .containers import DenseValueContainer, ParameterContainer, SparseValueContainer
from .core import (
    UNSET,
    AlreadyInitializedError,
    ConfigurationError,
    DataShapeError,
    DuplicateAxisLabelError,
    DuplicateContainerKeyError,
    InvalidTypeError,
    InvalidValueError,
    KeyNotFoundError,
    UnknownKeyTypeError,
)
from .cost_curves import (
    CostCurve,
    FuelCurve,
    LinearCurve,
    OperationalCost,
    PiecewiseAverageCurve,
    PiecewiseIncrementalCurve,
    PiecewisePointCurve,
    QuadraticCurve,
    TimeSeriesKey,
    UnitSystem,
)
from .formulations import DeviceFormulation, DeviceModel, FixedOutput, SOSStatus, set_device_model
from .keys import AuxVarKey, ConstraintKey, ContainerKey, ExpressionKey, ParameterKey, VariableKey, decode_key, encode_key
from .model import OptimizationModel
from .objective import ObjectiveFunction
from .objective_functions import add_variable_cost, add_variable_cost_to_objective, add_vom_cost
from .operating_costs import (
    add_proportional_cost,
    add_proportional_cost_maybe_time_variant,
    add_shut_down_cost,
    add_start_up_cost,
)
from .optimization_container import OptimizationContainer
from .settings import Settings
from .solvers import GurobiSolver
from .structure import (
    AuxVariableType,
    ComponentLike,
    ConstraintType,
    ExpressionType,
    ParameterType,
    VariableType,
    register_component_type,
    register_element_type,
)

__all__ = [
    'CONFIG',
    'OptimizationContainer',
    'OptimizationModel',
    'ObjectiveFunction',
    'Settings',
    'GurobiSolver',
    # Keys and containers
    'ContainerKey',
    'VariableKey',
    'ConstraintKey',
    'ExpressionKey',
    'ParameterKey',
    'AuxVarKey',
    'encode_key',
    'decode_key',
    'DenseValueContainer',
    'SparseValueContainer',
    'ParameterContainer',
    'UNSET',
    # Element types
    'VariableType',
    'ConstraintType',
    'ExpressionType',
    'ParameterType',
    'AuxVariableType',
    'ComponentLike',
    'register_element_type',
    'register_component_type',
    # Formulations
    'DeviceFormulation',
    'DeviceModel',
    'FixedOutput',
    'SOSStatus',
    'set_device_model',
    # Cost data
    'UnitSystem',
    'LinearCurve',
    'QuadraticCurve',
    'PiecewisePointCurve',
    'PiecewiseIncrementalCurve',
    'PiecewiseAverageCurve',
    'TimeSeriesKey',
    'CostCurve',
    'FuelCurve',
    'OperationalCost',
    # Cost assembly
    'add_variable_cost',
    'add_variable_cost_to_objective',
    'add_vom_cost',
    'add_proportional_cost',
    'add_proportional_cost_maybe_time_variant',
    'add_start_up_cost',
    'add_shut_down_cost',
    'cost_terms',
    'features',
    'io',
    'objective_functions',
    'operating_costs',
    # Errors
    'ConfigurationError',
    'AlreadyInitializedError',
    'DuplicateContainerKeyError',
    'InvalidTypeError',
    'UnknownKeyTypeError',
    'KeyNotFoundError',
    'DataShapeError',
    'DuplicateAxisLabelError',
    'InvalidValueError',
]

# Initialize logger with default configuration (silent: WARNING level, NullHandler)
logger = logging.getLogger('infraopt')
logger.setLevel(logging.WARNING)
logger.addHandler(logging.NullHandler())
