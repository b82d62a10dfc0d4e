"""
Per-device loops for proportional, start-up and shut-down costs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .core import is_zero
from .cost_curves import is_time_variant
from .cost_terms import add_cost_term_invariant, add_cost_term_variant, add_cost_to_expression, resolve_parameter_value
from .structure import ProductionCostExpression, ShutdownCostParameter, StartupCostParameter

if TYPE_CHECKING:
    from .formulations import DeviceFormulation
    from .optimization_container import OptimizationContainer
    from .structure import ComponentLike, ParameterType, VariableType

logger = logging.getLogger('infraopt')


def add_proportional_cost(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    components: Iterable[ComponentLike],
    formulation: DeviceFormulation,
) -> None:
    """Add a time-invariant proportional cost of ``variable_type`` for every component. Zero costs are skipped."""
    multiplier = formulation.objective_function_multiplier(variable_type)
    for component in components:
        operation_cost = formulation.operation_cost(component)
        cost_term = formulation.proportional_cost(operation_cost, variable_type, component)
        if is_zero(cost_term):
            continue
        component_type = type(component)
        name = component.get_name()
        variables = container.get_variable(variable_type, component_type)
        for t in container.time_steps:
            add_cost_term_invariant(
                container, variables[name, t], cost_term * multiplier, ProductionCostExpression, component_type, name, t
            )


def add_proportional_cost_maybe_time_variant(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    components: Iterable[ComponentLike],
    formulation: DeviceFormulation,
) -> None:
    """
    Add a proportional cost that the formulation may declare time variant per time step.

    Time-variant terms go to the variant half of the objective, all others to the invariant
    half. Components for which ``formulation.skip_proportional_cost`` holds only get the
    cost recorded in the production cost expression.
    """
    multiplier = formulation.objective_function_multiplier(variable_type)
    for component in components:
        operation_cost = formulation.operation_cost(component)
        component_type = type(component)
        name = component.get_name()
        skip = formulation.skip_proportional_cost(component)
        variables = container.get_variable(variable_type, component_type)
        for t in container.time_steps:
            cost_term = formulation.proportional_cost(operation_cost, variable_type, component, t, container)
            if is_zero(cost_term):
                continue
            rate = cost_term * multiplier
            if skip:
                add_cost_to_expression(container, ProductionCostExpression, rate, component_type, name, t)
            elif formulation.is_time_variant_term(operation_cost, variable_type, component, t, container):
                add_cost_term_variant(
                    container, variables[name, t], rate, ProductionCostExpression, component_type, name, t
                )
            else:
                add_cost_term_invariant(
                    container, variables[name, t], rate, ProductionCostExpression, component_type, name, t
                )


def _add_transition_cost(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    component: ComponentLike,
    formulation: DeviceFormulation,
    raw_cost,
    parameter_type: type[ParameterType],
    convert=None,
) -> None:
    component_type = type(component)
    name = component.get_name()
    time_variant = is_time_variant(raw_cost)
    multiplier = formulation.objective_function_multiplier(variable_type)
    variables = container.get_variable(variable_type, component_type)
    for t in container.time_steps:
        cost_term = resolve_parameter_value(container, parameter_type, component_type, name, t) if time_variant else raw_cost
        if convert is not None:
            cost_term = convert(cost_term)
        if is_zero(cost_term):
            continue
        rate = cost_term * multiplier
        if time_variant:
            add_cost_term_variant(container, variables[name, t], rate, ProductionCostExpression, component_type, name, t)
        else:
            add_cost_term_invariant(
                container, variables[name, t], rate, ProductionCostExpression, component_type, name, t
            )


def add_start_up_cost(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    components: Iterable[ComponentLike],
    formulation: DeviceFormulation,
) -> None:
    """
    Add the start-up cost of every component that is not must-run.

    A start-up cost given as a ``TimeSeriesKey`` is read from ``StartupCostParameter`` and
    goes to the variant objective. ``formulation.start_up_cost`` turns the raw value into
    the cost per start.
    """
    for component in components:
        if formulation.must_run(component):
            continue
        _add_transition_cost(
            container,
            variable_type,
            component,
            formulation,
            formulation.operation_cost(component).start_up,
            StartupCostParameter,
            convert=lambda raw, c=component: formulation.start_up_cost(raw, c, variable_type),
        )


def add_shut_down_cost(
    container: OptimizationContainer,
    variable_type: type[VariableType],
    components: Iterable[ComponentLike],
    formulation: DeviceFormulation,
) -> None:
    """Add the shut-down cost of every component that is not must-run. Time series come from ``ShutdownCostParameter``."""
    for component in components:
        if formulation.must_run(component):
            continue
        _add_transition_cost(
            container,
            variable_type,
            component,
            formulation,
            formulation.operation_cost(component).shut_down,
            ShutdownCostParameter,
        )
