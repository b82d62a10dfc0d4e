"""
This module contains the incremental piecewise linear approximation of a nonlinear function.
Devices use it to model e.g. losses or efficiency curves over their operating range.

For segment breakpoints ``x_0 < ... < x_n`` with values ``y_i = f(x_i)`` the approximation is::

    x = x_0 + sum_i delta_i * (x_{i+1} - x_i)
    y = y_0 + sum_i delta_i * (y_{i+1} - y_i)
    z_i <= delta_i,   delta_{i+1} <= z_i

with continuous fill levels ``delta_i`` in [0, 1] and binary ordering variables ``z_i``,
so a segment can only be used once all previous segments are full.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING

import gurobipy as gp
import numpy as np

from .core import DataShapeError, InvalidTypeError, InvalidValueError
from .structure import (
    BinaryInterpolationVariableType,
    InterpolationVariableType,
    PiecewiseLinearInputConstraint,
    PiecewiseLinearLowerBoundConstraint,
    PiecewiseLinearOutputConstraint,
    PiecewiseLinearUpperBoundConstraint,
    check_concrete,
)

if TYPE_CHECKING:
    from .formulations import DeviceModel
    from .model import Addend
    from .optimization_container import OptimizationContainer
    from .structure import ComponentLike, VariableType

logger = logging.getLogger('infraopt')

INTERPOLATION_DIMS = ('name', 'index', 'time_step')


def get_breakpoints_for_pwl_function(
    min_value: float, max_value: float, f: Callable[[float], float], num_segments: int = 4
) -> tuple[list[float], list[float]]:
    """
    Evenly spaced breakpoints of ``f`` over ``[min_value, max_value]``.

    Returns:
        ``num_segments + 1`` x values, including both ends, and ``f`` at each of them.

    Raises:
        InvalidValueError: If ``num_segments < 1`` or ``max_value <= min_value``.
    """
    if num_segments < 1:
        raise InvalidValueError(f'num_segments must be at least 1, got {num_segments}')
    if max_value <= min_value:
        raise InvalidValueError(f'max_value ({max_value}) must be larger than min_value ({min_value})')
    x = np.linspace(min_value, max_value, num_segments + 1).tolist()
    return x, [float(f(value)) for value in x]


def add_sparse_pwl_interpolation_variables(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    components: Iterable[ComponentLike],
    device_model: DeviceModel,
    num_segments: int = 4,
):
    """
    Create the interpolation variables of every component and time step.

    Continuous fill levels (``InterpolationVariableType``) get ``num_segments`` variables,
    binary ordering variables (``BinaryInterpolationVariableType``) get ``num_segments - 1``.
    Bounds and integrality come from the formulation of ``device_model``. Variables are
    stored at ``(name, i, time_step)`` with ``i`` starting at 1.

    Raises:
        InvalidTypeError: If ``variable_type`` is not an interpolation variable.
    """
    check_concrete(variable_type)
    if issubclass(variable_type, BinaryInterpolationVariableType):
        n_variables = num_segments - 1
    elif issubclass(variable_type, InterpolationVariableType):
        n_variables = num_segments
    else:
        raise InvalidTypeError(f'{variable_type.__name__} is not an interpolation variable type')

    formulation = device_model.formulation_instance()
    component_type = device_model.component_type
    var_container = container.lazy_container_addition(variable_type, component_type, dims=INTERPOLATION_DIMS)
    for component in components:
        name = component.get_name()
        binary = formulation.variable_binary(variable_type, component)
        lower_bound = formulation.variable_lower_bound(variable_type, component)
        upper_bound = formulation.variable_upper_bound(variable_type, component)
        for t in container.time_steps:
            for i in range(1, n_variables + 1):
                var_container[name, i, t] = container.model.create_variable(
                    name=container.variable_name(variable_type, component_type, f'{name},pwl_{i},{t}'),
                    lower_bound=lower_bound,
                    upper_bound=upper_bound,
                    binary=binary,
                )
    logger.debug(f'Added {variable_type.__name__} for {component_type.__name__} with {num_segments} segments')
    return var_container


def add_pwl_incremental_constraints(
    container: OptimizationContainer,
    component_type: type,
    name: str,
    time_step: int,
    x: Addend,
    deltas: Sequence[gp.Var],
    z: Sequence[gp.Var],
    x_breakpoints: Sequence[float],
    y: Addend | None = None,
    y_breakpoints: Sequence[float] | None = None,
    meta: str = '',
) -> None:
    """
    Add the incremental formulation linking ``x`` (and optionally ``y``) to the fill levels.

    Args:
        x: Input quantity, a variable or an expression.
        deltas: Fill levels, one per segment.
        z: Binary ordering variables, one less than segments.
        x_breakpoints: Breakpoints of the input, one more than segments.
        y: Output quantity. Requires ``y_breakpoints``.
        y_breakpoints: Function values at ``x_breakpoints``.
        meta: Qualifier of the constraint containers, for several approximations per device.

    Raises:
        DataShapeError: If the sequence lengths do not fit together.
    """
    n_segments = len(deltas)
    if len(x_breakpoints) != n_segments + 1:
        raise DataShapeError(f'Got {len(x_breakpoints)} breakpoints for {n_segments} segments of "{name}"')
    if len(z) != n_segments - 1:
        raise DataShapeError(f'Got {len(z)} ordering variables for {n_segments} segments of "{name}"')
    if (y is None) != (y_breakpoints is None):
        raise DataShapeError('y and y_breakpoints must be given together')
    if y_breakpoints is not None and len(y_breakpoints) != n_segments + 1:
        raise DataShapeError(f'Got {len(y_breakpoints)} y breakpoints for {n_segments} segments of "{name}"')

    model = container.model
    label = f'{{{name},{time_step}}}'

    def _store(constraint_type, key, constraint):
        con_container = container.lazy_container_addition(constraint_type, component_type, meta)
        con_container[key] = constraint

    _store(
        PiecewiseLinearInputConstraint,
        (name, time_step),
        model.add_constraint('==', x, _incremental_expression(x_breakpoints, deltas), name=f'pwl_input_{label}'),
    )
    if y is not None:
        _store(
            PiecewiseLinearOutputConstraint,
            (name, time_step),
            model.add_constraint('==', y, _incremental_expression(y_breakpoints, deltas), name=f'pwl_output_{label}'),
        )
    for i, z_i in enumerate(z, start=1):
        _store(
            PiecewiseLinearUpperBoundConstraint,
            (name, i, time_step),
            model.add_constraint('<=', z_i, deltas[i - 1], name=f'pwl_ub_{label}_{i}'),
        )
        _store(
            PiecewiseLinearLowerBoundConstraint,
            (name, i, time_step),
            model.add_constraint('<=', deltas[i], z_i, name=f'pwl_lb_{label}_{i}'),
        )


def _incremental_expression(breakpoints: Sequence[float], deltas: Sequence[gp.Var]) -> gp.LinExpr:
    """``b_0 + sum_i delta_i * (b_{i+1} - b_i)``"""
    steps = np.diff(np.asarray(breakpoints, dtype=float)).tolist()
    return gp.LinExpr(steps, list(deltas)) + float(breakpoints[0])
