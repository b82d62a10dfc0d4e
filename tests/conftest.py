"""
The conftest.py file is used by pytest to define shared fixtures, hooks, and configuration
that apply to multiple test files without needing explicit imports.
It helps avoid redundancy and centralizes reusable test logic.
"""

import datetime
from collections.abc import Iterable

import pytest

import infraopt as ix
from infraopt.cost_curves import CostCurve, LinearCurve, OperationalCost
from infraopt.formulations import DeviceFormulation, SOSStatus
from infraopt.model import linear_coefficient, quadratic_coefficient
from infraopt.settings import to_timedelta
from infraopt.structure import (
    ActivePowerVariable,
    ObjectiveFunctionParameter,
    ProductionCostExpression,
    register_component_type,
    register_element_type,
)

# ============================================================================
# SOLVER FIXTURES
# ============================================================================


@pytest.fixture()
def gurobi_solver():
    pytest.importorskip('gurobipy', reason='Gurobi not available in this environment')
    return ix.GurobiSolver(mip_gap=0, time_limit_seconds=300, log_to_console=False)


# ============================================================================
# MOCK COMPONENTS
# ============================================================================


@register_component_type
class MockThermalGen:
    """Thermal generator test double implementing ComponentLike."""

    def __init__(
        self,
        name: str,
        base_power: float = 50.0,
        operation_cost: OperationalCost | None = None,
        active_power_limits: tuple[float, float] | None = (0.0, 1.0),
    ):
        self.name = name
        self.base_power = base_power
        self.operation_cost = operation_cost or OperationalCost(CostCurve(LinearCurve(0.0)))
        self.active_power_limits = active_power_limits

    def get_name(self) -> str:
        return self.name

    def get_base_power(self) -> float:
        return self.base_power

    def get_operation_cost(self) -> OperationalCost:
        return self.operation_cost


@register_component_type
class MockLoad(MockThermalGen):
    """Interruptible load test double."""


@register_element_type
class FixedCostParameter(ObjectiveFunctionParameter):
    """Time series of fixed costs, used by the time-variant formulation."""


# ============================================================================
# MOCK FORMULATIONS
# ============================================================================


class ThermalDispatch(DeviceFormulation):
    """Dispatch without commitment: power in [0, 1], no on variable."""

    def variable_lower_bound(self, variable_type, component):
        if variable_type is ActivePowerVariable:
            return 0.0
        return super().variable_lower_bound(variable_type, component)

    def variable_upper_bound(self, variable_type, component):
        if variable_type is ActivePowerVariable:
            return component.active_power_limits[1] if component.active_power_limits else None
        return super().variable_upper_bound(variable_type, component)

    def variable_warm_start_value(self, variable_type, component):
        if variable_type is ActivePowerVariable:
            return 0.5
        return None

    def active_power_limits(self, component):
        return component.active_power_limits


class ThermalUnitCommitment(ThermalDispatch):
    """Commitment through a binary on variable."""

    def sos_status(self, component):
        return SOSStatus.VARIABLE


class ThermalMustRun(ThermalUnitCommitment):
    """Committed at all times."""

    def must_run(self, component):
        return True


class TimeVariantFixedCost(ThermalUnitCommitment):
    """Fixed cost read per time step from FixedCostParameter."""

    def proportional_cost(self, operation_cost, variable_type, component, time_step=None, container=None):
        if container is None or time_step is None:
            return operation_cost.fixed
        return container.get_parameter(FixedCostParameter, type(component)).value((component.get_name(), time_step))

    def is_time_variant_term(self, operation_cost, variable_type, component, time_step, container=None):
        return True


class HotStartCost(ThermalUnitCommitment):
    """Start-up cost data given per start type, the hot start is charged."""

    def start_up_cost(self, raw_cost, component, variable_type):
        return raw_cost['hot']


class PowerLoadInterruption(ThermalDispatch):
    """Served load reduces the objective."""

    def objective_function_multiplier(self, variable_type):
        return -1.0


class AbstractThermalFormulation(DeviceFormulation):
    abstract = True


# ============================================================================
# CONTAINER FIXTURES
# ============================================================================


def create_container(
    resolution=datetime.timedelta(hours=1), num_time_steps: int = 4, base_power: float = 100.0, **settings_kwargs
) -> ix.OptimizationContainer:
    """An OptimizationContainer with its time steps set."""
    resolution = to_timedelta(resolution)
    settings = ix.Settings(horizon=resolution * num_time_steps, resolution=resolution, **settings_kwargs)
    container = ix.OptimizationContainer(settings, base_power)
    container.set_time_steps()
    return container


@pytest.fixture
def container() -> ix.OptimizationContainer:
    return create_container()


@pytest.fixture
def container_factory():
    return create_container


def add_variables(container, components, formulation, variable_type=ActivePowerVariable, component_type=None):
    """Add a populated (name, time_step) variable container."""
    components = list(components)
    component_type = component_type or type(components[0])
    return container.add_variable_container(
        variable_type,
        component_type,
        [c.get_name() for c in components],
        container.time_steps,
        formulation=formulation,
        components=components,
    )


def add_cost_expressions(container, components, expression_type=ProductionCostExpression):
    components = list(components)
    return container.add_expression_container(
        expression_type, type(components[0]), [c.get_name() for c in components], container.time_steps
    )


# ============================================================================
# ASSERTION HELPERS
# ============================================================================


def objective_coefficient(container, variable, variant: bool = False) -> float:
    """Linear coefficient of ``variable`` in one half of the objective."""
    container.model.update()
    objective = container.objective_function
    expression = objective.get_variant() if variant else objective.get_invariant()
    return linear_coefficient(expression, variable)


def objective_quadratic_coefficient(container, variable, variant: bool = False) -> float:
    container.model.update()
    objective = container.objective_function
    expression = objective.get_variant() if variant else objective.get_invariant()
    return quadratic_coefficient(expression, variable)


def expression_coefficient(container, expression, variable) -> float:
    container.model.update()
    return linear_coefficient(expression, variable)


def assert_sets_equal(set1: Iterable, set2: Iterable, msg=''):
    """Assert two sets are equal with custom error message."""
    set1, set2 = set(set1), set(set2)

    extra = set1 - set2
    missing = set2 - set1

    if extra or missing:
        parts = []
        if extra:
            parts.append(f'Extra: {sorted(extra, key=repr)}')
        if missing:
            parts.append(f'Missing: {sorted(missing, key=repr)}')

        error_msg = ', '.join(parts)
        if msg:
            error_msg = f'{msg}: {error_msg}'

        raise AssertionError(error_msg)
