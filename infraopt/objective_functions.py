"""
Objective function strategies, one per combination of curve wrapper (``CostCurve``,
``FuelCurve``) and value curve shape.

Every strategy normalizes the curve to system per unit, scales rates by the time step
length and routes the resulting terms through the cost term helpers. Piecewise incremental
and average curves are converted to point curves first, so all piecewise linear logic
lives in the point curve strategy.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

import gurobipy as gp
import numpy as np

from .core import DataShapeError, InvalidTypeError, is_zero
from .cost_curves import (
    CostCurve,
    FuelCurve,
    LinearCurve,
    OperationalCost,
    PiecewiseAverageCurve,
    PiecewiseIncrementalCurve,
    PiecewisePointCurve,
    QuadraticCurve,
    get_piecewise_curve_per_system_unit,
    get_proportional_cost_per_system_unit,
    get_quadratic_cost_per_system_unit,
    is_time_variant,
)
from .cost_terms import (
    add_cost_term_invariant,
    add_cost_term_variant,
    add_cost_to_expression,
    add_pwl_linking_constraint,
    add_pwl_normalization_constraint,
    add_pwl_sos2_constraint,
    add_pwl_variables,
    get_pwl_cost_expression,
)
from .formulations import SOSStatus
from .structure import (
    FuelConsumptionExpression,
    FuelCostParameter,
    PiecewiseLinearCostConstraint,
    PiecewiseLinearCostNormalizationConstraint,
    PiecewiseLinearCostVariable,
    ProductionCostExpression,
)

if TYPE_CHECKING:
    from .formulations import DeviceFormulation
    from .optimization_container import OptimizationContainer
    from .structure import ComponentLike, VariableType

logger = logging.getLogger('infraopt')

CostStrategy = Callable[..., None]
COST_STRATEGIES: dict[tuple[type, type], CostStrategy] = {}


def register_cost_strategy(wrapper_type: type, curve_type: type):
    """Register the function that adds a ``wrapper_type[curve_type]`` cost to the objective."""

    def decorator(func: CostStrategy) -> CostStrategy:
        key = (wrapper_type, curve_type)
        if key in COST_STRATEGIES:
            raise ValueError(f'A strategy for {wrapper_type.__name__}[{curve_type.__name__}] is already registered')
        COST_STRATEGIES[key] = func
        return func

    return decorator


def add_variable_cost_to_objective(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    cost_function: CostCurve | FuelCurve | OperationalCost,
    formulation: DeviceFormulation,
) -> None:
    """
    Add the variable cost of one component to the objective.

    Args:
        container: The optimization container. The variable container of ``variable_type``
            must exist for the component's type.
        variable_type: The variable that is costed, e.g. ActivePowerVariable.
        component: The device.
        cost_function: The cost curve, or the operational cost it is taken from.
        formulation: The formulation of the device.

    Raises:
        InvalidTypeError: If no strategy exists for the curve.
    """
    if isinstance(cost_function, OperationalCost):
        cost_function = formulation.variable_cost(cost_function, variable_type, component)
    key = (type(cost_function), type(cost_function.value_curve))
    try:
        strategy = COST_STRATEGIES[key]
    except KeyError:
        raise InvalidTypeError(f'No objective function strategy for {key[0].__name__}[{key[1].__name__}]') from None
    logger.debug(f'Adding {key[0].__name__}[{key[1].__name__}] cost of "{component.get_name()}"')
    strategy(container, variable_type, component, cost_function, formulation)


def add_variable_cost(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    components: Iterable[ComponentLike],
    formulation: DeviceFormulation,
) -> None:
    """Add variable cost and VOM cost of every component."""
    for component in components:
        operation_cost = formulation.operation_cost(component)
        cost_function = formulation.variable_cost(operation_cost, variable_type, component)
        add_variable_cost_to_objective(container, variable_type, component, cost_function, formulation)
        add_vom_cost(container, variable_type, component, cost_function)


def add_vom_cost(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    cost_function: CostCurve | FuelCurve,
) -> None:
    """Add the variable operation and maintenance cost. VOM cost is never sign-flipped."""
    cost_term = cost_function.vom_cost.proportional_term
    if is_zero(cost_term):
        return
    normalized = get_proportional_cost_per_system_unit(
        cost_term, cost_function.power_units, container.base_power, component.get_base_power()
    )
    component_type = type(component)
    name = component.get_name()
    variables = container.get_variable(variable_type, component_type)
    for t in container.time_steps:
        add_cost_term_invariant(
            container, variables[name, t], normalized * container.dt, ProductionCostExpression, component_type, name, t
        )


def _per_time_step(container: OptimizationContainer, values) -> dict[int, float]:
    """Map a scalar or a per-time-step vector onto the time steps."""
    time_steps = container.time_steps
    if np.ndim(values) == 0:
        return {t: float(values) for t in time_steps}
    values = np.asarray(values, dtype=float)
    if len(values) != len(time_steps):
        raise DataShapeError(f'Got {len(values)} cost values for {len(time_steps)} time steps')
    return dict(zip(time_steps, values.tolist(), strict=True))


# === Fuel ===


def _add_fuel_cost(
    container: OptimizationContainer,
    component: ComponentLike,
    consumption: dict[int, gp.LinExpr | gp.QuadExpr],
    fuel_cost,
) -> None:
    """Record the fuel consumption and price it, invariant for a scalar fuel cost, variant for a time series."""
    component_type = type(component)
    name = component.get_name()
    time_variant = is_time_variant(fuel_cost)
    for t, fuel in consumption.items():
        add_cost_to_expression(container, FuelConsumptionExpression, fuel, component_type, name, t)
        if time_variant:
            add_cost_term_variant(
                container, fuel, FuelCostParameter, ProductionCostExpression, component_type, name, t
            )
        else:
            add_cost_term_invariant(
                container, fuel, float(fuel_cost), ProductionCostExpression, component_type, name, t
            )


# === Linear ===


def _add_linearcurve_variable_term(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    proportional_term_per_unit: float,
    time_step: int,
):
    name = component.get_name()
    variable = container.get_variable(variable_type, type(component))[name, time_step]
    return add_cost_term_invariant(
        container,
        variable,
        proportional_term_per_unit * container.dt,
        ProductionCostExpression,
        type(component),
        name,
        time_step,
    )


def _add_linearcurve_variable_cost(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    proportional_terms_per_unit,
) -> None:
    """Add a linear cost with a scalar rate or one rate per time step."""
    for t, term in _per_time_step(container, proportional_terms_per_unit).items():
        _add_linearcurve_variable_term(container, variable_type, component, term, t)


@register_cost_strategy(CostCurve, LinearCurve)
def _linear_cost(container, variable_type, component, cost_function: CostCurve, formulation) -> None:
    proportional_term_per_unit = get_proportional_cost_per_system_unit(
        cost_function.value_curve.proportional_term,
        cost_function.power_units,
        container.base_power,
        component.get_base_power(),
    )
    multiplier = formulation.objective_function_multiplier(variable_type)
    _add_linearcurve_variable_cost(container, variable_type, component, multiplier * proportional_term_per_unit)


@register_cost_strategy(FuelCurve, LinearCurve)
def _linear_fuel_cost(container, variable_type, component, cost_function: FuelCurve, formulation) -> None:
    # Fuel curves are never sign-flipped
    fuel_curve_per_unit = get_proportional_cost_per_system_unit(
        cost_function.value_curve.proportional_term,
        cost_function.power_units,
        container.base_power,
        component.get_base_power(),
    )
    variables = container.get_variable(variable_type, type(component))
    name = component.get_name()
    consumption = {
        t: gp.LinExpr(fuel_curve_per_unit * container.dt, variables[name, t]) for t in container.time_steps
    }
    _add_fuel_cost(container, component, consumption, cost_function.fuel_cost)


# === Quadratic ===


def _check_quadratic_monotonicity(
    name: str, quadratic_term: float, proportional_term: float, limits: tuple[float, float] | None
) -> None:
    if limits is None:
        return
    x_min, x_max = limits
    if 2 * quadratic_term * x_min + proportional_term < 0 or 2 * quadratic_term * x_max + proportional_term < 0:
        logger.warning(
            f'Cost function of "{name}" is not monotonically increasing in the range [{x_min}, {x_max}]. '
            f'This can lead to unexpected results'
        )


def _quadratic_consumption(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    proportional_term_per_unit: float,
    quadratic_term_per_unit: float,
) -> dict[int, gp.QuadExpr]:
    variables = container.get_variable(variable_type, type(component))
    name = component.get_name()
    dt = container.dt
    expressions = {}
    for t in container.time_steps:
        expression = gp.QuadExpr()
        if quadratic_term_per_unit != 0.0:
            expression.addTerms(quadratic_term_per_unit * dt, variables[name, t], variables[name, t])
        expression.add(gp.LinExpr(proportional_term_per_unit * dt, variables[name, t]))
        expressions[t] = expression
    return expressions


def _add_quadraticcurve_variable_term(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    proportional_term_per_unit: float,
    quadratic_term_per_unit: float,
    time_step: int,
):
    name = component.get_name()
    variable = container.get_variable(variable_type, type(component))[name, time_step]
    dt = container.dt
    cost = gp.QuadExpr()
    cost.addTerms(quadratic_term_per_unit * dt, variable, variable)
    cost.add(gp.LinExpr(proportional_term_per_unit * dt, variable))
    add_cost_to_expression(container, ProductionCostExpression, cost, type(component), name, time_step)
    container.objective_function.add_to_invariant(cost)
    return cost


def _add_quadraticcurve_variable_cost(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    proportional_terms_per_unit,
    quadratic_terms_per_unit,
) -> None:
    """Add a quadratic cost. Time steps whose quadratic term is zero get a linear cost."""
    proportional = _per_time_step(container, proportional_terms_per_unit)
    quadratic = _per_time_step(container, quadratic_terms_per_unit)
    for t in container.time_steps:
        if quadratic[t] == 0.0:
            _add_linearcurve_variable_term(container, variable_type, component, proportional[t], t)
        else:
            _add_quadraticcurve_variable_term(container, variable_type, component, proportional[t], quadratic[t], t)


def _normalized_quadratic_terms(container, component, cost_function) -> tuple[float, float]:
    curve = cost_function.value_curve
    args = (cost_function.power_units, container.base_power, component.get_base_power())
    return (
        get_proportional_cost_per_system_unit(curve.proportional_term, *args),
        get_quadratic_cost_per_system_unit(curve.quadratic_term, *args),
    )


@register_cost_strategy(CostCurve, QuadraticCurve)
def _quadratic_cost(container, variable_type, component, cost_function: CostCurve, formulation) -> None:
    proportional_term, quadratic_term = _normalized_quadratic_terms(container, component, cost_function)
    _check_quadratic_monotonicity(
        component.get_name(), quadratic_term, proportional_term, formulation.active_power_limits(component)
    )
    multiplier = formulation.objective_function_multiplier(variable_type)
    _add_quadraticcurve_variable_cost(
        container, variable_type, component, multiplier * proportional_term, multiplier * quadratic_term
    )


@register_cost_strategy(FuelCurve, QuadraticCurve)
def _quadratic_fuel_cost(container, variable_type, component, cost_function: FuelCurve, formulation) -> None:
    proportional_term, quadratic_term = _normalized_quadratic_terms(container, component, cost_function)
    _check_quadratic_monotonicity(
        component.get_name(), quadratic_term, proportional_term, formulation.active_power_limits(component)
    )
    consumption = _quadratic_consumption(container, variable_type, component, proportional_term, quadratic_term)
    _add_fuel_cost(container, component, consumption, cost_function.fuel_cost)


# === Piecewise linear ===


def get_sos_status(
    container: OptimizationContainer, component: ComponentLike, formulation: DeviceFormulation
) -> SOSStatus:
    """A stored on-status parameter takes precedence over what the formulation reports."""
    if container.has_container_key(formulation.on_parameter_type(component), type(component)):
        return SOSStatus.PARAMETER
    return formulation.sos_status(component)


def get_on_status(
    container: OptimizationContainer,
    sos_status: SOSStatus,
    component: ComponentLike,
    formulation: DeviceFormulation,
    time_step: int,
) -> float | gp.Var:
    """The right-hand side of the PWL normalization constraint."""
    if formulation.must_run(component) or sos_status == SOSStatus.NO_VARIABLE:
        return 1.0
    name = component.get_name()
    if sos_status == SOSStatus.PARAMETER:
        parameter = container.get_parameter_array(formulation.on_parameter_type(component), type(component))
        return parameter[name, time_step]
    return container.get_variable(formulation.on_variable_type(component), type(component))[name, time_step]


def _add_pwl_term(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    cost_function: CostCurve | FuelCurve,
    formulation: DeviceFormulation,
    multiplier: float,
) -> dict[int, gp.LinExpr] | None:
    """
    Build the convex combination scaffolding of a point curve for every time step.

    Returns:
        The cost (or fuel consumption) expression per time step, or ``None`` if every
        y value is zero. Nothing is created in that case.
    """
    name = component.get_name()
    if is_zero(cost_function.value_curve.y_coords):
        logger.debug(f'All cost terms for component "{name}" are 0.0')
        return None
    data = get_piecewise_curve_per_system_unit(
        cost_function.value_curve, cost_function.power_units, container.base_power, component.get_base_power()
    )
    cost_is_convex = data.is_convex()
    if not cost_is_convex:
        logger.warning(
            f'The cost function provided for "{name}" is not compatible with a linear PWL cost function. '
            f'An SOS-2 formulation will be added to the model. This will result in additional binary variables.'
        )
    component_type = type(component)
    break_points = data.x_coords
    y_coords = data.y_coords
    sos_status = get_sos_status(container, component, formulation)
    power_variables = container.get_variable(variable_type, component_type)
    expressions = {}
    for t in container.time_steps:
        pwl_vars = add_pwl_variables(
            container, PiecewiseLinearCostVariable, component_type, name, t, len(break_points)
        )
        add_pwl_linking_constraint(
            container,
            PiecewiseLinearCostConstraint,
            component_type,
            name,
            t,
            power_variables[name, t],
            pwl_vars,
            break_points,
        )
        add_pwl_normalization_constraint(
            container,
            PiecewiseLinearCostNormalizationConstraint,
            component_type,
            name,
            t,
            pwl_vars,
            get_on_status(container, sos_status, component, formulation, t),
        )
        if not cost_is_convex:
            add_pwl_sos2_constraint(container, component_type, name, t, pwl_vars)
        expressions[t] = get_pwl_cost_expression(pwl_vars, y_coords, multiplier * container.dt)
    return expressions


@register_cost_strategy(CostCurve, PiecewisePointCurve)
def _pwl_cost(container, variable_type, component, cost_function: CostCurve, formulation) -> None:
    multiplier = formulation.objective_function_multiplier(variable_type)
    expressions = _add_pwl_term(container, variable_type, component, cost_function, formulation, multiplier)
    if expressions is None:
        return
    for t, expression in expressions.items():
        add_cost_to_expression(container, ProductionCostExpression, expression, type(component), component.get_name(), t)
        container.objective_function.add_to_invariant(expression)


@register_cost_strategy(FuelCurve, PiecewisePointCurve)
def _pwl_fuel_cost(container, variable_type, component, cost_function: FuelCurve, formulation) -> None:
    consumption = _add_pwl_term(container, variable_type, component, cost_function, formulation, 1.0)
    if consumption is None:
        return
    _add_fuel_cost(container, component, consumption, cost_function.fuel_cost)


def _as_point_curve(container, variable_type, component, cost_function, formulation) -> None:
    point_cost_function = dataclasses.replace(cost_function, value_curve=cost_function.value_curve.to_point_curve())
    add_variable_cost_to_objective(container, variable_type, component, point_cost_function, formulation)


for _wrapper in (CostCurve, FuelCurve):
    for _curve in (PiecewiseIncrementalCurve, PiecewiseAverageCurve):
        register_cost_strategy(_wrapper, _curve)(_as_point_curve)
