"""
Cost curve data consumed by the objective function strategies, and its normalization to
system per unit.

A value curve describes cost (or fuel consumption) as a function of power. It is wrapped
either in a ``CostCurve`` (the curve is a cost) or a ``FuelCurve`` (the curve is a fuel
consumption that is priced with a separate fuel cost). Both carry the unit system the
power axis is expressed in.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Union

import numpy as np

from .config import CONFIG
from .core import InvalidValueError

logger = logging.getLogger('infraopt')


class UnitSystem(enum.Enum):
    """Bases in which the power axis of a curve can be expressed."""

    NATURAL_UNITS = 'natural_units'  # MW
    SYSTEM_BASE = 'system_base'  # system per unit
    DEVICE_BASE = 'device_base'  # device per unit


# === Value curves ===


@dataclass(frozen=True)
class LinearCurve:
    """``f(x) = proportional_term * x + constant_term``."""

    proportional_term: float
    constant_term: float = 0.0


@dataclass(frozen=True)
class QuadraticCurve:
    """``f(x) = quadratic_term * x**2 + proportional_term * x + constant_term``."""

    quadratic_term: float
    proportional_term: float
    constant_term: float = 0.0


@dataclass(frozen=True)
class PiecewisePointCurve:
    """
    Piecewise linear curve given by its breakpoints.

    Args:
        points: ``(x, y)`` pairs with strictly increasing x. At least two are required.

    Raises:
        InvalidValueError: If fewer than two points are given or x is not strictly increasing.
    """

    points: tuple[tuple[float, float], ...]

    def __post_init__(self):
        points = tuple((float(x), float(y)) for x, y in self.points)
        if len(points) < 2:
            raise InvalidValueError(f'A piecewise linear curve needs at least two points, got {len(points)}')
        if any(b[0] <= a[0] for a, b in zip(points[:-1], points[1:], strict=True)):
            raise InvalidValueError(f'x coordinates must be strictly increasing, got {[p[0] for p in points]}')
        object.__setattr__(self, 'points', points)

    @property
    def x_coords(self) -> list[float]:
        return [x for x, _ in self.points]

    @property
    def y_coords(self) -> list[float]:
        return [y for _, y in self.points]

    @property
    def slopes(self) -> list[float]:
        return [(y1 - y0) / (x1 - x0) for (x0, y0), (x1, y1) in zip(self.points[:-1], self.points[1:], strict=True)]

    def __len__(self) -> int:
        """Number of segments."""
        return len(self.points) - 1

    def is_convex(self) -> bool:
        """True if the slopes do not decrease. Equal slopes count as convex."""
        slopes = self.slopes
        return all(b >= a for a, b in zip(slopes[:-1], slopes[1:], strict=True))


@dataclass(frozen=True)
class PiecewiseIncrementalCurve:
    """
    Piecewise linear curve given by the value at the first breakpoint and the slope of
    every segment.

    Args:
        initial_input: ``f(x_coords[0])``.
        x_coords: Breakpoints, strictly increasing.
        slopes: One slope per segment, ``len(x_coords) - 1`` entries.
    """

    initial_input: float
    x_coords: tuple[float, ...]
    slopes: tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, 'x_coords', tuple(float(x) for x in self.x_coords))
        object.__setattr__(self, 'slopes', tuple(float(s) for s in self.slopes))
        if len(self.slopes) != len(self.x_coords) - 1:
            raise InvalidValueError(f'Expected {len(self.x_coords) - 1} slopes, got {len(self.slopes)}')

    def to_point_curve(self) -> PiecewisePointCurve:
        """Integrate the slopes starting at ``initial_input``."""
        y = [float(self.initial_input)]
        for (x0, x1), slope in zip(zip(self.x_coords[:-1], self.x_coords[1:]), self.slopes, strict=True):
            y.append(y[-1] + slope * (x1 - x0))
        return PiecewisePointCurve(tuple(zip(self.x_coords, y, strict=True)))


@dataclass(frozen=True)
class PiecewiseAverageCurve:
    """
    Piecewise linear curve given by the value at the first breakpoint and the average rate
    ``f(x) / x`` at every further breakpoint.
    """

    initial_input: float
    x_coords: tuple[float, ...]
    average_rates: tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, 'x_coords', tuple(float(x) for x in self.x_coords))
        object.__setattr__(self, 'average_rates', tuple(float(r) for r in self.average_rates))
        if len(self.average_rates) != len(self.x_coords) - 1:
            raise InvalidValueError(f'Expected {len(self.x_coords) - 1} average rates, got {len(self.average_rates)}')

    def to_point_curve(self) -> PiecewisePointCurve:
        y = [float(self.initial_input)] + [x * rate for x, rate in zip(self.x_coords[1:], self.average_rates, strict=True)]
        return PiecewisePointCurve(tuple(zip(self.x_coords, y, strict=True)))


ValueCurve = Union[LinearCurve, QuadraticCurve, PiecewisePointCurve, PiecewiseIncrementalCurve, PiecewiseAverageCurve]


@dataclass(frozen=True)
class TimeSeriesKey:
    """Reference to a time series. Its values live in a parameter container."""

    name: str


def is_time_variant(value) -> bool:
    return isinstance(value, TimeSeriesKey)


# === Curve wrappers ===


@dataclass(frozen=True)
class CostCurve:
    """
    A value curve that directly expresses cost in $/h over power.

    Args:
        value_curve: The curve.
        power_units: Unit system of the power axis.
        vom_cost: Variable operation and maintenance cost in $/MWh.
    """

    value_curve: ValueCurve
    power_units: UnitSystem = UnitSystem.NATURAL_UNITS
    vom_cost: LinearCurve = field(default_factory=lambda: LinearCurve(0.0))


@dataclass(frozen=True)
class FuelCurve:
    """
    A value curve that expresses fuel consumption (e.g. MMBTU/h) over power, priced with
    ``fuel_cost``.

    Args:
        value_curve: The consumption curve.
        power_units: Unit system of the power axis.
        fuel_cost: Price per unit of fuel, a scalar or a ``TimeSeriesKey``.
        vom_cost: Variable operation and maintenance cost in $/MWh.
    """

    value_curve: ValueCurve
    power_units: UnitSystem = UnitSystem.NATURAL_UNITS
    fuel_cost: float | TimeSeriesKey = 0.0
    vom_cost: LinearCurve = field(default_factory=lambda: LinearCurve(0.0))


@dataclass(frozen=True)
class OperationalCost:
    """
    Operating cost data of a device.

    Args:
        variable: Cost of producing power.
        fixed: Cost per hour of being committed.
        start_up: Cost per start-up, a scalar or a ``TimeSeriesKey``.
        shut_down: Cost per shut-down, a scalar or a ``TimeSeriesKey``.
    """

    variable: CostCurve | FuelCurve
    fixed: float = 0.0
    start_up: float | TimeSeriesKey = 0.0
    shut_down: float | TimeSeriesKey = 0.0


# === Normalization to system per unit ===


def get_proportional_cost_per_system_unit(
    cost_term, unit_system: UnitSystem, system_base_power: float, device_base_power: float
):
    """Convert a cost per unit of power (e.g. $/MWh) to cost per system per unit.

    Works on scalars and on numpy arrays alike.
    """
    if unit_system == UnitSystem.SYSTEM_BASE:
        return cost_term
    if unit_system == UnitSystem.NATURAL_UNITS:
        return cost_term * system_base_power
    if unit_system == UnitSystem.DEVICE_BASE:
        return cost_term * (system_base_power / device_base_power)
    raise InvalidValueError(f'Unknown unit system {unit_system!r}')


def get_quadratic_cost_per_system_unit(
    cost_term, unit_system: UnitSystem, system_base_power: float, device_base_power: float
):
    """Convert a cost per unit of power squared to cost per system per unit squared."""
    if unit_system == UnitSystem.SYSTEM_BASE:
        return cost_term
    if unit_system == UnitSystem.NATURAL_UNITS:
        return cost_term * system_base_power**2
    if unit_system == UnitSystem.DEVICE_BASE:
        return cost_term * (system_base_power / device_base_power) ** 2
    raise InvalidValueError(f'Unknown unit system {unit_system!r}')


def get_piecewise_curve_per_system_unit(
    curve: PiecewisePointCurve, unit_system: UnitSystem, system_base_power: float, device_base_power: float
) -> PiecewisePointCurve:
    """Express the x coordinates in system per unit. y coordinates are kept."""
    x = np.asarray(curve.x_coords, dtype=float)
    if unit_system == UnitSystem.SYSTEM_BASE:
        return curve
    if unit_system == UnitSystem.NATURAL_UNITS:
        x = x / system_base_power
    elif unit_system == UnitSystem.DEVICE_BASE:
        x = x * (device_base_power / system_base_power)
    else:
        raise InvalidValueError(f'Unknown unit system {unit_system!r}')
    return PiecewisePointCurve(tuple(zip(x.tolist(), curve.y_coords, strict=True)))


def get_onvar_cost(cost_curve: CostCurve | FuelCurve) -> float:
    """Cost per hour of being committed that a curve carries in its constant term.

    Piecewise curves include it in their points and return 0.0.
    """
    value_curve = cost_curve.value_curve
    if isinstance(value_curve, (LinearCurve, QuadraticCurve)):
        return value_curve.constant_term
    return 0.0


def get_curve_with_zero_intercept(curve: PiecewisePointCurve, name: str = '') -> PiecewisePointCurve:
    """
    Extend a convex point curve to start at x = 0 with the slope of its first segment.

    Formulations without a minimum output need the curve to be defined at zero. The
    extrapolated cost is raised by ``CONFIG.Modeling.cost_epsilon`` so that the first two
    slopes never become equal within floating point noise.

    Raises:
        InvalidValueError: If the curve is not convex or the extrapolated cost is negative.
    """
    if not curve.is_convex():
        raise InvalidValueError(f'The cost curve of "{name}" is not convex')
    x_first, y_first = curve.points[0]
    if x_first == 0.0:
        return curve
    guess_y_zero = y_first - curve.slopes[0] * x_first
    logger.warning(
        f'Cost curve of "{name}" has no 0.0 intercept. First point is (x={x_first:.3f}, y={y_first:.3f}). '
        f'Adding an intercept at (x=0.0, y={guess_y_zero:.3f})'
    )
    if guess_y_zero < 0.0:
        raise InvalidValueError(f'The added zero intercept of "{name}" has negative cost ({guess_y_zero})')
    return PiecewisePointCurve(((0.0, guess_y_zero + CONFIG.Modeling.cost_epsilon), *curve.points))
