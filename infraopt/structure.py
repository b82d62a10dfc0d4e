"""
This module contains the element-type tags that address containers, their registries,
and the minimal interface a component has to offer.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from .core import InvalidTypeError, UnknownKeyTypeError

logger = logging.getLogger('infraopt')

ELEMENT_TYPE_REGISTRY: dict[str, type[ElementType]] = {}
COMPONENT_TYPE_REGISTRY: dict[str, type] = {}


@runtime_checkable
class ComponentLike(Protocol):
    """Anything that can own cells in a container: generators, loads, test doubles."""

    def get_name(self) -> str: ...

    def get_base_power(self) -> float: ...


class ElementType:
    """
    Base class of all nominal tags that name a container.
    Tags are never instantiated for their state; the class itself is the identity.
    Intermediate categories set ``abstract = True`` in their own class body.
    """

    abstract = True

    @classmethod
    def is_abstract(cls) -> bool:
        return cls.__dict__.get('abstract', False)


class VariableType(ElementType):
    """Tag of a decision-variable container.

    The class attributes are the defaults that formulations hand out for bounds and
    integrality. A formulation may override them per component.
    """

    abstract = True
    binary = False
    lower_bound: float | None = None
    upper_bound: float | None = None


class ConstraintType(ElementType):
    """Tag of a constraint container."""

    abstract = True


class ExpressionType(ElementType):
    """Tag of an expression container.

    Attributes:
        quadratic: Cells hold quadratic expressions instead of linear ones.
    """

    abstract = True
    quadratic = False


class ParameterType(ElementType):
    """Tag of a parameter container."""

    abstract = True


class AuxVariableType(ElementType):
    """Tag of an auxiliary-variable container (values computed after the solve)."""

    abstract = True


class CostExpression(ExpressionType):
    """Expressions that accumulate cost. May carry quadratic terms."""

    abstract = True
    quadratic = True


class InterpolationVariableType(VariableType):
    """Continuous fill level of one segment of an incremental piecewise linear approximation."""

    abstract = True
    lower_bound = 0.0
    upper_bound = 1.0


class BinaryInterpolationVariableType(VariableType):
    """Binary that orders the segments of an incremental piecewise linear approximation."""

    abstract = True
    binary = True


class ObjectiveFunctionParameter(ParameterType):
    """Parameters that scale objective function terms."""

    abstract = True


class RightHandSideParameter(ParameterType):
    """Parameters that appear on the right-hand side of constraints."""

    abstract = True


ELEMENT_KINDS: tuple[type[ElementType], ...] = (
    VariableType,
    ConstraintType,
    ExpressionType,
    ParameterType,
    AuxVariableType,
)


def element_kind(element_type: type) -> type[ElementType]:
    """Return the registry base class (VariableType, ConstraintType, ...) of a tag."""
    if not isinstance(element_type, type) or not issubclass(element_type, ElementType):
        raise InvalidTypeError(f'{element_type!r} is not an element type tag')
    for kind in ELEMENT_KINDS:
        if issubclass(element_type, kind):
            return kind
    raise InvalidTypeError(f'{element_type.__name__} does not derive from any of {[k.__name__ for k in ELEMENT_KINDS]}')


def check_concrete(element_type: type, kind: type[ElementType] | None = None) -> type[ElementType]:
    """Validate that ``element_type`` is a concrete tag, optionally of the given kind.

    Raises:
        InvalidTypeError: If the tag is abstract, not a tag at all, or of another kind.
    """
    actual_kind = element_kind(element_type)
    if kind is not None and actual_kind is not kind:
        raise InvalidTypeError(f'{element_type.__name__} is a {actual_kind.__name__}, expected a {kind.__name__}')
    if element_type.is_abstract():
        raise InvalidTypeError(f'{element_type.__name__} is abstract. A concrete type is required')
    return element_type


def register_element_type(cls):
    """Register a concrete tag so that its canonical name can be decoded again."""
    check_concrete(cls)
    name = cls.__name__
    registered = ELEMENT_TYPE_REGISTRY.get(name)
    if registered is not None and registered is not cls:
        raise ValueError(f'Element type {name} already registered! Use a different name for the class!')
    ELEMENT_TYPE_REGISTRY[name] = cls
    return cls


def register_component_type(cls):
    """Register a component class so that keys naming it can be decoded again."""
    if not isinstance(cls, type):
        raise InvalidTypeError(f'{cls!r} is not a class')
    name = cls.__name__
    registered = COMPONENT_TYPE_REGISTRY.get(name)
    if registered is not None and registered is not cls:
        raise ValueError(f'Component type {name} already registered! Use a different name for the class!')
    COMPONENT_TYPE_REGISTRY[name] = cls
    return cls


def lookup_element_type(name: str) -> type[ElementType]:
    try:
        return ELEMENT_TYPE_REGISTRY[name]
    except KeyError:
        raise UnknownKeyTypeError(f'Element type "{name}" is not registered') from None


def lookup_component_type(name: str) -> type:
    try:
        return COMPONENT_TYPE_REGISTRY[name]
    except KeyError:
        raise UnknownKeyTypeError(f'Component type "{name}" is not registered') from None


# === Standard variables ===


@register_element_type
class ActivePowerVariable(VariableType):
    """Active power output or consumption of a device."""


@register_element_type
class OnVariable(VariableType):
    """Binary commitment status of a device."""

    binary = True


@register_element_type
class StartVariable(VariableType):
    """Binary start-up indicator."""

    binary = True


@register_element_type
class StopVariable(VariableType):
    """Binary shut-down indicator."""

    binary = True


@register_element_type
class PiecewiseLinearCostVariable(VariableType):
    """Convex-combination weights (delta) of a piecewise linear cost curve."""

    lower_bound = 0.0
    upper_bound = 1.0


@register_element_type
class InterpolationVariable(InterpolationVariableType):
    """Continuous segment fill level of an incremental piecewise linear approximation."""


@register_element_type
class BinaryInterpolationVariable(BinaryInterpolationVariableType):
    """Binary segment ordering variable of an incremental piecewise linear approximation."""


# === Standard constraints ===


@register_element_type
class PiecewiseLinearCostConstraint(ConstraintType):
    """Links the power variable to the delta-weighted breakpoints."""


@register_element_type
class PiecewiseLinearCostNormalizationConstraint(ConstraintType):
    """Sum of delta variables equals the commitment status."""


@register_element_type
class PiecewiseLinearCostSOS2Constraint(ConstraintType):
    """SOS2 over the delta variables of a non-convex curve."""


@register_element_type
class PiecewiseLinearInputConstraint(ConstraintType):
    """Incremental approximation: x as a function of the interpolation variables."""


@register_element_type
class PiecewiseLinearOutputConstraint(ConstraintType):
    """Incremental approximation: y as a function of the interpolation variables."""


@register_element_type
class PiecewiseLinearUpperBoundConstraint(ConstraintType):
    """Incremental approximation: z_i <= delta_i."""


@register_element_type
class PiecewiseLinearLowerBoundConstraint(ConstraintType):
    """Incremental approximation: delta_{i+1} <= z_i."""


# === Standard expressions ===


@register_element_type
class ProductionCostExpression(CostExpression):
    """Total production cost of a device per time step."""


@register_element_type
class FuelConsumptionExpression(ExpressionType):
    """Fuel consumed by a device per time step. Quadratic consumption curves make it quadratic."""

    quadratic = True


# === Standard parameters ===


@register_element_type
class FuelCostParameter(ObjectiveFunctionParameter):
    """Time series of fuel prices."""


@register_element_type
class StartupCostParameter(ObjectiveFunctionParameter):
    """Time series of start-up costs."""


@register_element_type
class ShutdownCostParameter(ObjectiveFunctionParameter):
    """Time series of shut-down costs."""


@register_element_type
class OnStatusParameter(RightHandSideParameter):
    """Commitment status fixed from the system state."""
