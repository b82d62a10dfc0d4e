"""
Device formulations: the capability interface through which the host application
tells the cost assembly and the variable creation how a (component, formulation)
pair behaves.
"""

from __future__ import annotations

import enum
import inspect
import logging
from typing import TYPE_CHECKING, Any

from .core import InvalidTypeError
from .structure import OnStatusParameter, OnVariable, check_concrete

if TYPE_CHECKING:
    from .cost_curves import CostCurve, FuelCurve, OperationalCost
    from .optimization_container import OptimizationContainer
    from .structure import ComponentLike, ParameterType, VariableType

logger = logging.getLogger('infraopt')


class SOSStatus(enum.Enum):
    """Where the commitment status of a piecewise linear cost comes from."""

    NO_VARIABLE = 'no_variable'
    PARAMETER = 'parameter'
    VARIABLE = 'variable'


class DeviceFormulation:
    """
    Base class of all device formulations.

    Subclass it and override the hooks that differ from the defaults. Every hook receives
    the variable tag and/or the component it is asked about. Intermediate categories set
    ``abstract = True`` in their own class body.
    """

    abstract = True

    @classmethod
    def is_abstract(cls) -> bool:
        return cls.__dict__.get('abstract', False)

    # --- variables ---

    def variable_binary(self, variable_type: type[VariableType], component: ComponentLike) -> bool:
        return variable_type.binary

    def variable_lower_bound(self, variable_type: type[VariableType], component: ComponentLike) -> float | None:
        return variable_type.lower_bound

    def variable_upper_bound(self, variable_type: type[VariableType], component: ComponentLike) -> float | None:
        return variable_type.upper_bound

    def variable_warm_start_value(self, variable_type: type[VariableType], component: ComponentLike) -> float | None:
        return None

    # --- objective ---

    def objective_function_multiplier(self, variable_type: type[VariableType]) -> float:
        """Sign/scale of cost terms of ``variable_type``. -1.0 turns a cost into a revenue (e.g. loads)."""
        return 1.0

    def operation_cost(self, component: ComponentLike) -> OperationalCost:
        return component.get_operation_cost()

    def variable_cost(
        self, operation_cost: OperationalCost, variable_type: type[VariableType], component: ComponentLike
    ) -> CostCurve | FuelCurve:
        return operation_cost.variable

    def proportional_cost(
        self,
        operation_cost: OperationalCost,
        variable_type: type[VariableType],
        component: ComponentLike,
        time_step: int | None = None,
        container: OptimizationContainer | None = None,
    ) -> float:
        """Cost per time step of ``variable_type`` being 1, e.g. the fixed cost of a committed unit.

        Time-variant implementations read their value for ``time_step`` from a parameter of ``container``.
        """
        return operation_cost.fixed

    def is_time_variant_term(
        self,
        operation_cost: OperationalCost,
        variable_type: type[VariableType],
        component: ComponentLike,
        time_step: int,
        container: OptimizationContainer | None = None,
    ) -> bool:
        return False

    def must_run(self, component: ComponentLike) -> bool:
        return False

    def skip_proportional_cost(self, component: ComponentLike) -> bool:
        """Record proportional cost only in the expression, not in the objective."""
        return self.must_run(component)

    def start_up_cost(self, raw_cost, component: ComponentLike, variable_type: type[VariableType]) -> float:
        """Turn the start-up cost data of a component into a scalar cost."""
        return raw_cost

    # --- piecewise linear costs ---

    def sos_status(self, component: ComponentLike) -> SOSStatus:
        return SOSStatus.NO_VARIABLE

    def on_variable_type(self, component: ComponentLike) -> type[VariableType]:
        return OnVariable

    def on_parameter_type(self, component: ComponentLike) -> type[ParameterType]:
        return OnStatusParameter

    def active_power_limits(self, component: ComponentLike) -> tuple[float, float] | None:
        """Operating range in system per unit. ``None`` skips range-dependent checks."""
        return None

    # --- device model ---

    def default_attributes(self) -> dict[str, Any]:
        return {}

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}()'


class FixedOutput(DeviceFormulation):
    """Formulation for devices whose output is a parameter, not a decision."""


def check_device_formulation(cls: type) -> type:
    """Reject abstract component types and abstract formulations.

    Raises:
        InvalidTypeError: If ``cls`` is not a class or is abstract.
    """
    if not isinstance(cls, type):
        raise InvalidTypeError(f'{cls!r} is not a class')
    if inspect.isabstract(cls) or cls.__dict__.get('abstract', False):
        raise InvalidTypeError(f'{cls.__name__} is abstract. A concrete type is required')
    return cls


class DeviceModel:
    """
    Couples a component type with the formulation used to model it.

    Args:
        component_type: Concrete component class.
        formulation: Concrete DeviceFormulation subclass.
        use_slacks: Add slack variables to the device constraints.
        attributes: Overrides of the formulation's default attributes.
        duals: Constraint types whose duals are requested.
        services: Services the devices contribute to.
    """

    def __init__(
        self,
        component_type: type,
        formulation: type[DeviceFormulation],
        use_slacks: bool = False,
        attributes: dict[str, Any] | None = None,
        duals: list[type] | None = None,
        services: list[Any] | None = None,
    ):
        check_device_formulation(component_type)
        check_device_formulation(formulation)
        if not issubclass(formulation, DeviceFormulation):
            raise InvalidTypeError(f'{formulation.__name__} is not a DeviceFormulation')
        self.component_type = component_type
        self.formulation = formulation
        self.use_slacks = use_slacks
        self.attributes = {**formulation().default_attributes(), **(attributes or {})}
        self.duals = [check_concrete(dual) for dual in duals or []]
        self.services = list(services or [])
        self.subsystem: str | None = None

    def get_attribute(self, key: str, default=None):
        return self.attributes.get(key, default)

    def formulation_instance(self) -> DeviceFormulation:
        return self.formulation()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.component_type.__name__}, {self.formulation.__name__})'


def set_device_model(models: dict[str, DeviceModel], model: DeviceModel) -> None:
    """Store ``model`` under its component type name, warning if one is replaced."""
    key = model.component_type.__name__
    if key in models:
        logger.warning(f'Overwriting the existing model for {key} with {model!r}')
    models[key] = model
