"""Tests for quadratic cost and fuel curves in the objective function."""

import datetime
import logging

import pytest

from infraopt.cost_curves import CostCurve, FuelCurve, OperationalCost, QuadraticCurve, TimeSeriesKey, UnitSystem
from infraopt.model import num_quadratic_terms, quadratic_coefficient
from infraopt.objective_functions import (
    _add_quadraticcurve_variable_cost,
    _add_quadraticcurve_variable_term,
    add_variable_cost_to_objective,
)
from infraopt.structure import ActivePowerVariable, FuelConsumptionExpression, FuelCostParameter

from .conftest import (
    MockLoad,
    MockThermalGen,
    PowerLoadInterruption,
    ThermalDispatch,
    add_cost_expressions,
    add_variables,
    create_container,
    objective_coefficient,
    objective_quadratic_coefficient,
)


def _setup(container, cost_function, component_type=MockThermalGen, formulation=None, limits=(0.0, 1.0)):
    formulation = formulation or ThermalDispatch()
    gen = component_type(
        'gen1', base_power=50.0, operation_cost=OperationalCost(cost_function), active_power_limits=limits
    )
    variables = add_variables(container, [gen], formulation)
    return gen, variables, formulation


class TestQuadraticNormalization:
    @pytest.mark.parametrize(
        'curve, units, expected_quadratic, expected_linear',
        [
            (QuadraticCurve(0.5, 20.0), UnitSystem.NATURAL_UNITS, 5000.0, 2000.0),
            (QuadraticCurve(2.0, 30.0), UnitSystem.SYSTEM_BASE, 2.0, 30.0),
            (QuadraticCurve(1.0, 20.0), UnitSystem.DEVICE_BASE, 4.0, 40.0),
        ],
    )
    def test_unit_systems(self, container, curve, units, expected_quadratic, expected_linear):
        cost_function = CostCurve(curve, power_units=units)
        gen, variables, formulation = _setup(container, cost_function)
        add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        for t in container.time_steps:
            assert objective_quadratic_coefficient(container, variables['gen1', t]) == pytest.approx(expected_quadratic)
            assert objective_coefficient(container, variables['gen1', t]) == pytest.approx(expected_linear)

    def test_quarter_hour_resolution(self):
        container = create_container(resolution=datetime.timedelta(minutes=15))
        cost_function = CostCurve(QuadraticCurve(2.0, 40.0), power_units=UnitSystem.NATURAL_UNITS)
        gen, variables, formulation = _setup(container, cost_function)
        add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        assert objective_coefficient(container, variables['gen1', 1]) == pytest.approx(1000.0)
        assert objective_quadratic_coefficient(container, variables['gen1', 1]) == pytest.approx(5000.0)

    def test_variable_term_scaled_by_dt(self):
        container = create_container(resolution=datetime.timedelta(minutes=30))
        gen, variables, _ = _setup(container, CostCurve(QuadraticCurve(0.0, 0.0)))
        _add_quadraticcurve_variable_term(container, ActivePowerVariable, gen, 10.0, 3.0, 1)
        assert objective_quadratic_coefficient(container, variables['gen1', 1]) == pytest.approx(1.5)
        assert objective_coefficient(container, variables['gen1', 1]) == pytest.approx(5.0)

    def test_objective_multiplier(self, container):
        cost_function = CostCurve(QuadraticCurve(1.0, 20.0), power_units=UnitSystem.SYSTEM_BASE)
        load, variables, formulation = _setup(container, cost_function, MockLoad, PowerLoadInterruption())
        add_variable_cost_to_objective(container, ActivePowerVariable, load, cost_function, formulation)
        assert objective_quadratic_coefficient(container, variables['gen1', 2]) == pytest.approx(-1.0)
        assert objective_coefficient(container, variables['gen1', 2]) == pytest.approx(-20.0)


class TestQuadraticDegeneration:
    """A zero quadratic term gives a linear cost."""

    def test_zero_quadratic_term(self, container):
        cost_function = CostCurve(QuadraticCurve(0.0, 25.0), power_units=UnitSystem.NATURAL_UNITS)
        gen, variables, formulation = _setup(container, cost_function)
        add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        assert num_quadratic_terms(container.objective_function.get_invariant()) == 0
        for t in container.time_steps:
            assert objective_coefficient(container, variables['gen1', t]) == pytest.approx(2500.0)

    def test_per_time_step_degeneration(self, container):
        gen, variables, _ = _setup(container, CostCurve(QuadraticCurve(0.0, 0.0)))
        _add_quadraticcurve_variable_cost(container, ActivePowerVariable, gen, 10.0, [0.0, 1.0, 0.0, 2.0])
        invariant = container.objective_function.get_invariant()
        container.model.update()
        assert num_quadratic_terms(invariant) == 2
        assert quadratic_coefficient(invariant, variables['gen1', 1]) == 0.0
        assert quadratic_coefficient(invariant, variables['gen1', 4]) == pytest.approx(2.0)
        assert all(objective_coefficient(container, variables['gen1', t]) == 10.0 for t in container.time_steps)

    def test_quadratic_cost_in_expression(self, container):
        cost_function = CostCurve(QuadraticCurve(2.0, 30.0), power_units=UnitSystem.SYSTEM_BASE)
        gen, variables, formulation = _setup(container, cost_function)
        expressions = add_cost_expressions(container, [gen])
        add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        container.model.update()
        assert quadratic_coefficient(expressions['gen1', 3], variables['gen1', 3]) == pytest.approx(2.0)


class TestMonotonicityCheck:
    def test_decreasing_cost_warns(self, container, caplog):
        cost_function = CostCurve(QuadraticCurve(-1.0, 0.5), power_units=UnitSystem.SYSTEM_BASE)
        gen, _, formulation = _setup(container, cost_function, limits=(0.2, 1.0))
        with caplog.at_level(logging.WARNING, logger='infraopt'):
            add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        assert 'not monotonically increasing' in caplog.text

    def test_increasing_cost_is_silent(self, container, caplog):
        cost_function = CostCurve(QuadraticCurve(1.0, 0.5), power_units=UnitSystem.SYSTEM_BASE)
        gen, _, formulation = _setup(container, cost_function)
        with caplog.at_level(logging.WARNING, logger='infraopt'):
            add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        assert 'not monotonically increasing' not in caplog.text

    def test_no_limits_no_check(self, container, caplog):
        cost_function = CostCurve(QuadraticCurve(-1.0, 0.5), power_units=UnitSystem.SYSTEM_BASE)
        gen, _, formulation = _setup(container, cost_function, limits=None)
        with caplog.at_level(logging.WARNING, logger='infraopt'):
            add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        assert 'not monotonically increasing' not in caplog.text


class TestQuadraticFuelCurve:
    def test_scalar_fuel_cost(self, container):
        cost_function = FuelCurve(QuadraticCurve(0.02, 7.0), power_units=UnitSystem.NATURAL_UNITS, fuel_cost=4.0)
        gen, variables, formulation = _setup(container, cost_function)
        fuel = add_cost_expressions(container, [gen], FuelConsumptionExpression)
        add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        variable = variables['gen1', 1]
        assert objective_quadratic_coefficient(container, variable) == pytest.approx(800.0)
        assert objective_coefficient(container, variable) == pytest.approx(2800.0)
        assert quadratic_coefficient(fuel['gen1', 1], variable) == pytest.approx(200.0)

    def test_time_variant_fuel_cost(self, container):
        cost_function = FuelCurve(
            QuadraticCurve(1.0, 2.0), power_units=UnitSystem.SYSTEM_BASE, fuel_cost=TimeSeriesKey('fuel_price')
        )
        gen, variables, formulation = _setup(container, cost_function)
        container.add_parameter_container(
            FuelCostParameter, MockThermalGen, ['gen1'], container.time_steps, values=[[1.0, 2.0, 3.0, 4.0]]
        )
        add_variable_cost_to_objective(container, ActivePowerVariable, gen, cost_function, formulation)
        variable = variables['gen1', 3]
        assert objective_quadratic_coefficient(container, variable, variant=True) == pytest.approx(3.0)
        assert objective_coefficient(container, variable, variant=True) == pytest.approx(6.0)
        assert objective_quadratic_coefficient(container, variable) == 0.0
