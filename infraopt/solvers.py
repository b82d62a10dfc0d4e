"""
This module contains the solver settings handed to OptimizationModel.solve().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .config import CONFIG

logger = logging.getLogger('infraopt')


@dataclass
class GurobiSolver:
    """
    Gurobi parameters for a solve.

    Args:
        mip_gap: Solver's mip gap setting. The MIP gap describes the accepted (MILP) objective,
            and the lower bound, which is the theoretically optimal solution (LP)
        time_limit_seconds: Solver's time limit in seconds.
        log_to_console: Print the solver log.
        threads: Number of threads to use. Defaults to Gurobi's choice.
        extra_options: Additional Gurobi parameters, passed as-is.
    """

    name: ClassVar[str] = 'gurobi'

    mip_gap: float = field(default_factory=lambda: CONFIG.Solving.mip_gap)
    time_limit_seconds: int = field(default_factory=lambda: CONFIG.Solving.time_limit_seconds)
    log_to_console: bool = field(default_factory=lambda: CONFIG.Solving.log_to_console)
    threads: int | None = None
    extra_options: dict[str, Any] = field(default_factory=dict)

    @property
    def options(self) -> dict[str, Any]:
        """Gurobi parameter names mapped to values. ``None`` values are dropped."""
        options = {
            'MIPGap': self.mip_gap,
            'TimeLimit': self.time_limit_seconds,
            'OutputFlag': int(self.log_to_console),
            'Threads': self.threads,
        }
        return {key: value for key, value in {**options, **self.extra_options}.items() if value is not None}

    def to_dict(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'mip_gap': self.mip_gap,
            'time_limit_seconds': self.time_limit_seconds,
            'log_to_console': self.log_to_console,
            'threads': self.threads,
            'extra_options': dict(self.extra_options),
        }
