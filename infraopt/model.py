"""
Thin layer over gurobipy that offers exactly what the containers and cost helpers need:
scalar variables, linear/quadratic expressions, constraints, SOS2 sets, solving and
coefficient inspection.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import TYPE_CHECKING, Union

import gurobipy as gp
from gurobipy import GRB

from .config import CONFIG

if TYPE_CHECKING:
    from .solvers import GurobiSolver

logger = logging.getLogger('infraopt')

Expression = Union[gp.LinExpr, gp.QuadExpr]
Addend = Union[int, float, gp.Var, gp.LinExpr, gp.QuadExpr]

_SENSES = {'==': GRB.EQUAL, '<=': GRB.LESS_EQUAL, '>=': GRB.GREATER_EQUAL}

_STATUS_NAMES = {
    GRB.LOADED: 'loaded',
    GRB.OPTIMAL: 'optimal',
    GRB.INFEASIBLE: 'infeasible',
    GRB.INF_OR_UNBD: 'infeasible_or_unbounded',
    GRB.UNBOUNDED: 'unbounded',
    GRB.TIME_LIMIT: 'time_limit',
    GRB.INTERRUPTED: 'interrupted',
    GRB.NUMERIC: 'numeric',
    GRB.SUBOPTIMAL: 'suboptimal',
}


def add_to_expression(target: Expression, addend: Addend, multiplier: float = 1.0) -> Expression:
    """Add ``multiplier * addend`` to ``target`` in place and return ``target``.

    Raises:
        TypeError: If a quadratic addend is added to a linear expression.
    """
    if isinstance(addend, (int, float)):
        target.addConstant(multiplier * addend)
    elif isinstance(addend, gp.Var):
        target.add(gp.LinExpr(multiplier, addend))
    elif isinstance(addend, gp.QuadExpr) and isinstance(target, gp.LinExpr):
        raise TypeError('Cannot add a quadratic term to a linear expression')
    elif isinstance(addend, (gp.LinExpr, gp.QuadExpr)):
        target.add(addend, multiplier)
    else:
        # numpy scalars and the like
        target.addConstant(multiplier * float(addend))
    return target


def same_variable(var1: gp.Var, var2: gp.Var) -> bool:
    """Identity of two variables. Pending variables only compare reliably after ``OptimizationModel.update()``."""
    return var1 is var2 or var1.sameAs(var2)


def linear_part(expr: Addend) -> gp.LinExpr:
    if isinstance(expr, gp.QuadExpr):
        return expr.getLinExpr()
    if isinstance(expr, gp.LinExpr):
        return expr
    return add_to_expression(gp.LinExpr(), expr)


def linear_coefficient(expr: Addend, var: gp.Var) -> float:
    """Sum of the coefficients of ``var`` in the linear part of ``expr``."""
    lin = linear_part(expr)
    return sum(lin.getCoeff(i) for i in range(lin.size()) if same_variable(lin.getVar(i), var))


def quadratic_coefficient(expr: Addend, var1: gp.Var, var2: gp.Var | None = None) -> float:
    """Sum of the coefficients of ``var1 * var2`` (``var1**2`` if ``var2`` is omitted) in ``expr``."""
    if not isinstance(expr, gp.QuadExpr):
        return 0.0
    var2 = var1 if var2 is None else var2
    total = 0.0
    for i in range(expr.size()):
        first, second = expr.getVar1(i), expr.getVar2(i)
        if (same_variable(first, var1) and same_variable(second, var2)) or (
            same_variable(first, var2) and same_variable(second, var1)
        ):
            total += expr.getCoeff(i)
    return total


def constant_term(expr: Addend) -> float:
    if isinstance(expr, (gp.LinExpr, gp.QuadExpr)):
        return expr.getConstant()
    if isinstance(expr, gp.Var):
        return 0.0
    return float(expr)


def num_quadratic_terms(expr: Addend) -> int:
    """Number of non-zero quadratic terms."""
    if not isinstance(expr, gp.QuadExpr):
        return 0
    return sum(1 for i in range(expr.size()) if expr.getCoeff(i) != 0.0)


class OptimizationModel:
    """
    The mathematical-programming model that containers are populated from.

    Args:
        name: Name of the underlying gurobipy model.
    """

    def __init__(self, name: str = 'infraopt'):
        self.name = name
        self.gurobi_model = gp.Model(name)
        self.gurobi_model.Params.OutputFlag = int(CONFIG.Solving.log_to_console)
        self._sos_constraints: list[gp.SOS] = []

    # --- building ---

    def create_variable(
        self,
        name: str = '',
        lower_bound: float | None = None,
        upper_bound: float | None = None,
        binary: bool = False,
        warm_start: float | None = None,
    ) -> gp.Var:
        """Create a scalar decision variable.

        Args:
            name: Name hint of the variable.
            lower_bound: Lower bound. ``None`` means unbounded below (``0`` for binaries).
            upper_bound: Upper bound. ``None`` or ``inf`` means unbounded above (``1`` for binaries).
            binary: Create a binary instead of a continuous variable.
            warm_start: Start value handed to the solver.
        """
        if binary:
            lb = 0.0 if lower_bound is None else lower_bound
            ub = 1.0 if upper_bound is None else upper_bound
            vtype = GRB.BINARY
        else:
            lb = -GRB.INFINITY if lower_bound is None else lower_bound
            ub = GRB.INFINITY if upper_bound is None or math.isinf(upper_bound) else upper_bound
            vtype = GRB.CONTINUOUS
        var = self.gurobi_model.addVar(lb=lb, ub=ub, vtype=vtype, name=name)
        if warm_start is not None:
            var.Start = warm_start
        return var

    def add_constraint(self, relation: str, lhs: Addend, rhs: Addend, name: str = '') -> gp.Constr:
        """Add the linear constraint ``lhs <relation> rhs`` with relation one of '==', '<=', '>='."""
        try:
            sense = _SENSES[relation]
        except KeyError:
            raise ValueError(f'Unknown relation "{relation}". Use one of {list(_SENSES)}') from None
        return self.gurobi_model.addLConstr(lhs, sense, rhs, name=name)

    def add_sos2_constraint(self, variables: Sequence[gp.Var], weights: Sequence[float] | None = None) -> gp.SOS:
        """Register an SOS2 set over ``variables``, ordered by ``weights`` (default 1..n)."""
        variables = list(variables)
        if weights is None:
            weights = [float(i) for i in range(1, len(variables) + 1)]
        sos = self.gurobi_model.addSOS(GRB.SOS_TYPE2, variables, list(weights))
        self._sos_constraints.append(sos)
        return sos

    @staticmethod
    def linear_expression(constant: float = 0.0) -> gp.LinExpr:
        return gp.LinExpr(constant)

    @staticmethod
    def quadratic_expression(constant: float = 0.0) -> gp.QuadExpr:
        return gp.QuadExpr(constant)

    def set_objective(self, expression: Addend, sense: str = 'min') -> None:
        self.gurobi_model.setObjective(expression, GRB.MINIMIZE if sense == 'min' else GRB.MAXIMIZE)

    def update(self) -> None:
        """Process pending modifications so that attributes of new objects can be queried."""
        self.gurobi_model.update()

    # --- inspection ---

    @property
    def num_sos_constraints(self) -> int:
        return len(self._sos_constraints)

    @property
    def num_constraints(self) -> int:
        self.update()
        return self.gurobi_model.NumConstrs

    @property
    def num_variables(self) -> int:
        self.update()
        return self.gurobi_model.NumVars

    @property
    def num_binary_variables(self) -> int:
        self.update()
        return self.gurobi_model.NumBinVars

    def variable_bounds(self, var: gp.Var) -> tuple[float, float]:
        self.update()
        return var.LB, var.UB

    def is_binary(self, var: gp.Var) -> bool:
        self.update()
        return var.VType == GRB.BINARY

    def variable_name(self, var: gp.Var) -> str:
        self.update()
        return var.VarName

    def numerical_ranges(self) -> dict[str, tuple[float, float]]:
        """
        Smallest and largest nonzero magnitude of the constraint coefficients, the right-hand
        sides and the objective coefficients. Groups without a nonzero entry are left out.
        """
        self.update()
        entries: dict[str, list[float]] = {'coefficient': [], 'rhs': [], 'objective': []}
        for con in self.gurobi_model.getConstrs():
            row = self.gurobi_model.getRow(con)
            entries['coefficient'].extend(row.getCoeff(i) for i in range(row.size()))
            entries['rhs'].append(con.RHS)
        objective = self.gurobi_model.getObjective()
        if isinstance(objective, gp.QuadExpr):
            entries['objective'].extend(objective.getCoeff(i) for i in range(objective.size()))
            objective = objective.getLinExpr()
        entries['objective'].extend(objective.getCoeff(i) for i in range(objective.size()))

        ranges = {}
        for group, values in entries.items():
            magnitudes = [abs(value) for value in values if value != 0]
            if magnitudes:
                ranges[group] = (min(magnitudes), max(magnitudes))
        return ranges

    def check_numerical_bounds(self) -> bool:
        """
        Warn about magnitudes outside ``[CONFIG.Modeling.epsilon, CONFIG.Modeling.big]``.

        Returns:
            True if every group lies inside the range.
        """
        lower, upper = CONFIG.Modeling.epsilon, CONFIG.Modeling.big
        within = True
        for group, (smallest, largest) in self.numerical_ranges().items():
            if smallest < lower or largest > upper:
                logger.warning(
                    f'Model "{self.name}": {group} magnitudes span [{smallest:.2e}, {largest:.2e}], '
                    f'outside of [{lower:.0e}, {upper:.0e}]. The solver may run into numerical trouble'
                )
                within = False
        return within

    # --- solving ---

    def solve(self, solver: GurobiSolver | None = None) -> str:
        """Optimize the model and return the termination condition.

        Args:
            solver: Solver options. Defaults taken from ``CONFIG.Solving``.
        """
        if solver is not None:
            for option, value in solver.options.items():
                self.gurobi_model.setParam(option, value)
        logger.debug(f'Solving model "{self.name}"')
        self.gurobi_model.optimize()
        status = self.termination_condition
        if status == 'optimal':
            logger.success(f'Model "{self.name}" solved. Objective: {self.objective_value:.4f}')
        else:
            logger.warning(f'Model "{self.name}" terminated with status "{status}"')
        return status

    @property
    def termination_condition(self) -> str:
        status = self.gurobi_model.Status
        return _STATUS_NAMES.get(status, f'status_{status}')

    @property
    def objective_value(self) -> float:
        return self.gurobi_model.ObjVal

    @staticmethod
    def value(item: Addend) -> float:
        """Solution value of a variable or an expression."""
        if isinstance(item, gp.Var):
            return item.X
        if isinstance(item, (gp.LinExpr, gp.QuadExpr)):
            return item.getValue()
        return float(item)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(name={self.name!r})'
