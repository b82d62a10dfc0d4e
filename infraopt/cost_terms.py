"""
Reusable building blocks of the objective function: cost terms routed to the invariant or
variant half of the objective, expression bookkeeping and piecewise linear (PWL) scaffolding.

All helpers work on a single component (given by name and type) and a single time step.
Looping over devices and time steps stays with the caller.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import TYPE_CHECKING

import gurobipy as gp

from .core import DataShapeError
from .model import Addend, add_to_expression
from .structure import ParameterType, PiecewiseLinearCostSOS2Constraint

if TYPE_CHECKING:
    from .optimization_container import OptimizationContainer
    from .structure import ConstraintType, ExpressionType, VariableType

logger = logging.getLogger('infraopt')

PWL_VARIABLE_DIMS = ('name', 'index', 'time_step')
PWL_CONSTRAINT_DIMS = ('name', 'time_step')


def scale(quantity: Addend, rate: float) -> Addend:
    """Return a new ``quantity * rate``. Numbers stay numbers, everything else becomes an expression."""
    if isinstance(quantity, gp.QuadExpr):
        return add_to_expression(gp.QuadExpr(), quantity, rate)
    if isinstance(quantity, (gp.Var, gp.LinExpr)):
        return add_to_expression(gp.LinExpr(), quantity, rate)
    return float(quantity) * rate


# === Expression helpers ===


def add_cost_to_expression(
    container: OptimizationContainer,
    expression_type: type[ExpressionType],
    cost: Addend,
    component_type: type,
    name: str,
    time_step: int,
) -> bool:
    """Add ``cost`` to cell ``(name, time_step)`` of an expression container, if that container exists.

    Returns:
        Whether the container existed.
    """
    if not container.has_container_key(expression_type, component_type):
        return False
    expression = container.get_expression(expression_type, component_type)
    add_to_expression(expression[name, time_step], cost)
    return True


def add_constant_to_expression(expression, value: float) -> None:
    """``expression += value``"""
    add_to_expression(expression, value)


def add_proportional_to_expression(expression, quantity: Addend, multiplier: float) -> None:
    """``expression += multiplier * quantity``, for a variable as well as for a parameter value."""
    add_to_expression(expression, quantity, multiplier)


def add_linear_to_expression(expression, variable: gp.Var, multiplier: float, constant: float) -> None:
    """``expression += constant + multiplier * variable``"""
    add_constant_to_expression(expression, constant)
    add_proportional_to_expression(expression, variable, multiplier)


# === Linear cost terms ===


def add_cost_term_invariant(
    container: OptimizationContainer,
    quantity: Addend,
    rate: float,
    expression_type: type[ExpressionType],
    component_type: type,
    name: str,
    time_step: int,
) -> Addend:
    """
    Add ``quantity * rate`` to an expression (if present) and to the invariant objective.

    Args:
        container: The optimization container.
        quantity: The value being costed, a number, a variable or an expression.
        rate: Cost rate, e.g. $/MWh.
        expression_type: Expression that mirrors the cost, e.g. ProductionCostExpression.
        component_type: Class of the component.
        name: Name of the component.
        time_step: Time step.

    Returns:
        The cost term, so callers may aggregate it further.
    """
    cost = scale(quantity, rate)
    add_cost_to_expression(container, expression_type, cost, component_type, name, time_step)
    container.objective_function.add_to_invariant(cost)
    return cost


def add_cost_term_variant(
    container: OptimizationContainer,
    quantity: Addend,
    rate: float | type[ParameterType],
    expression_type: type[ExpressionType],
    component_type: type,
    name: str,
    time_step: int,
) -> Addend:
    """
    Add ``quantity * rate`` to an expression (if present) and to the variant objective.

    ``rate`` is either a number or a parameter type. A parameter type is resolved to
    ``parameter[name, time_step] * multiplier[name, time_step]`` of the component type's
    parameter container.

    Raises:
        KeyNotFoundError: If ``rate`` is a parameter type without a container.
    """
    rate = resolve_parameter_value(container, rate, component_type, name, time_step)
    cost = scale(quantity, rate)
    add_cost_to_expression(container, expression_type, cost, component_type, name, time_step)
    container.objective_function.add_to_variant(cost)
    return cost


def resolve_parameter_value(
    container: OptimizationContainer,
    rate: float | type[ParameterType],
    component_type: type,
    name: str,
    time_step: int,
) -> float:
    if isinstance(rate, ParameterType) or (isinstance(rate, type) and issubclass(rate, ParameterType)):
        return container.get_parameter(rate, component_type).value((name, time_step))
    return float(rate)


# === Piecewise linear helpers ===


def add_pwl_variables(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component_type: type,
    name: str,
    time_step: int,
    n_points: int,
    upper_bound: float = 1.0,
) -> list[gp.Var]:
    """
    Create ``n_points`` delta variables of a component at one time step.

    The variables are stored at ``(name, i, time_step)`` with ``i`` in ``1..n_points`` in a
    sparse container that is created on first use.

    Args:
        upper_bound: Upper bound of every variable. 1.0 for the convex combination
            formulation, ``inf`` for block offers.
    """
    var_container = container.lazy_container_addition(variable_type, component_type, dims=PWL_VARIABLE_DIMS)
    bound = None if math.isinf(upper_bound) else upper_bound
    pwl_vars = []
    for i in range(1, n_points + 1):
        var = container.model.create_variable(
            name=container.variable_name(variable_type, component_type, f'{name},pwl_{i},{time_step}'),
            lower_bound=0.0,
            upper_bound=bound,
        )
        var_container[name, i, time_step] = var
        pwl_vars.append(var)
    return pwl_vars


def add_pwl_linking_constraint(
    container: OptimizationContainer,
    constraint_type: type[ConstraintType],
    component_type: type,
    name: str,
    time_step: int,
    power_var: Addend,
    pwl_vars: Sequence[gp.Var],
    breakpoints: Sequence[float],
) -> gp.Constr:
    """Add ``power_var == sum(delta_i * breakpoint_i)``.

    Raises:
        DataShapeError: If the number of deltas and breakpoints differ.
    """
    if len(pwl_vars) != len(breakpoints):
        raise DataShapeError(f'Got {len(pwl_vars)} delta variables for {len(breakpoints)} breakpoints of "{name}"')
    con_container = container.lazy_container_addition(constraint_type, component_type, dims=PWL_CONSTRAINT_DIMS)
    weighted = gp.LinExpr([float(b) for b in breakpoints], list(pwl_vars))
    con_container[name, time_step] = container.model.add_constraint(
        '==', power_var, weighted, name=f'{constraint_type.__name__}_{component_type.__name__}_{{{name},{time_step}}}'
    )
    return con_container[name, time_step]


def add_pwl_normalization_constraint(
    container: OptimizationContainer,
    constraint_type: type[ConstraintType],
    component_type: type,
    name: str,
    time_step: int,
    pwl_vars: Sequence[gp.Var],
    on_status: float | gp.Var,
) -> gp.Constr:
    """Add ``sum(delta_i) == on_status``. ``on_status`` is 1.0, a parameter value or a binary variable."""
    con_container = container.lazy_container_addition(constraint_type, component_type, dims=PWL_CONSTRAINT_DIMS)
    con_container[name, time_step] = container.model.add_constraint(
        '==',
        gp.quicksum(pwl_vars),
        on_status,
        name=f'{constraint_type.__name__}_{component_type.__name__}_{{{name},{time_step}}}',
    )
    return con_container[name, time_step]


def add_pwl_sos2_constraint(
    container: OptimizationContainer,
    component_type: type,
    name: str,
    time_step: int,
    pwl_vars: Sequence[gp.Var],
) -> gp.SOS:
    """Register an SOS2 set over the delta variables, ordered by their index."""
    sos = container.model.add_sos2_constraint(pwl_vars)
    con_container = container.lazy_container_addition(
        PiecewiseLinearCostSOS2Constraint, component_type, dims=PWL_CONSTRAINT_DIMS
    )
    con_container[name, time_step] = sos
    return sos


def get_pwl_cost_expression(pwl_vars: Sequence[gp.Var], slopes: Sequence[float], multiplier: float) -> gp.LinExpr:
    """``sum(delta_i * slope_i * multiplier)``. Nothing is added to the objective.

    Raises:
        DataShapeError: If the number of deltas and slopes differ.
    """
    if len(pwl_vars) != len(slopes):
        raise DataShapeError(f'Got {len(pwl_vars)} delta variables for {len(slopes)} cost values')
    return gp.LinExpr([float(slope) * multiplier for slope in slopes], list(pwl_vars))
