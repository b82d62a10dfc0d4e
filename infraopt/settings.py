"""
Problem-level settings of an optimization container.
"""

from __future__ import annotations

import dataclasses
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from .core import MILLISECONDS_IN_HOUR, InvalidValueError
from .solvers import GurobiSolver

logger = logging.getLogger('infraopt')


def to_timedelta(value) -> datetime.timedelta:
    """Convert a timedelta, pandas Timedelta or a string such as ``'15min'`` to ``datetime.timedelta``."""
    if isinstance(value, datetime.timedelta) and not isinstance(value, pd.Timedelta):
        return value
    return pd.Timedelta(value).to_pytimedelta()


@dataclass
class Settings:
    """
    Settings of one optimization problem.

    Args:
        horizon: Length of the optimization horizon.
        resolution: Length of one time step. Must be positive.
        initial_time: Timestamp of the first time step.
        warm_start: Hand start values of variables to the solver.
        rebuild_model: Allow containers to be replaced instead of raising on duplicate keys.
        store_variable_names: Give decision variables readable names in the solver model.
        export_pwl_vars: Include piecewise linear variables in ``OptimizationContainer.export_variable_values()``.
        check_numerical_bounds: Warn about coefficient magnitudes outside the ``CONFIG.Modeling`` range
            before solving.
        solver: Solver options used by ``OptimizationContainer.solve()``.
        ext: Free-form extension data.
    """

    horizon: datetime.timedelta
    resolution: datetime.timedelta
    initial_time: datetime.datetime | None = None
    warm_start: bool = True
    rebuild_model: bool = False
    store_variable_names: bool = False
    export_pwl_vars: bool = False
    check_numerical_bounds: bool = True
    solver: GurobiSolver | None = None
    ext: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.horizon = to_timedelta(self.horizon)
        self.resolution = to_timedelta(self.resolution)
        if self.resolution <= datetime.timedelta(0):
            raise InvalidValueError(f'resolution must be positive, got {self.resolution}')
        if self.horizon < self.resolution:
            raise InvalidValueError(f'horizon ({self.horizon}) is shorter than one time step ({self.resolution})')
        if self.initial_time is not None:
            self.initial_time = pd.Timestamp(self.initial_time).to_pydatetime()

    @property
    def resolution_ms(self) -> int:
        return self.resolution // datetime.timedelta(milliseconds=1)

    @property
    def dt(self) -> float:
        """Length of a time step in hours."""
        return self.resolution_ms / MILLISECONDS_IN_HOUR

    @property
    def num_time_steps(self) -> int:
        return self.horizon // self.resolution

    def copy_for_serialization(self) -> Settings:
        """Copy without the solver, which is not serializable."""
        return dataclasses.replace(self, solver=None, ext=dict(self.ext))

    def to_dict(self) -> dict[str, Any]:
        data = {
            'horizon': self.horizon.total_seconds(),
            'resolution': self.resolution.total_seconds(),
            'initial_time': self.initial_time.isoformat() if self.initial_time is not None else None,
        }
        for attribute in (
            'warm_start',
            'rebuild_model',
            'store_variable_names',
            'export_pwl_vars',
            'check_numerical_bounds',
        ):
            data[attribute] = getattr(self, attribute)
        data['solver'] = self.solver.to_dict() if self.solver is not None else None
        data['ext'] = dict(self.ext)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        data = dict(data)
        data['horizon'] = datetime.timedelta(seconds=data['horizon'])
        data['resolution'] = datetime.timedelta(seconds=data['resolution'])
        solver = data.pop('solver', None)
        if solver is not None:
            solver = {k: v for k, v in solver.items() if k != 'name'}
            data['solver'] = GurobiSolver(**solver)
        return cls(**data)
