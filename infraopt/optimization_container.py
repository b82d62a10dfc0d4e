"""
This module contains the OptimizationContainer, the aggregate store that maps container keys
to value containers and owns the model handle, the time horizon and the objective function.
"""

from __future__ import annotations

import logging
import pathlib
from collections.abc import Callable, Hashable, Iterable, Sequence
from io import StringIO
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
import xarray as xr
from rich.console import Console
from rich.pretty import Pretty

from .core import (
    AlreadyInitializedError,
    ConfigurationError,
    DuplicateContainerKeyError,
    InvalidValueError,
    KeyNotFoundError,
)
from .containers import DenseValueContainer, ParameterContainer, SparseValueContainer, ValueContainer
from .io import OptimizationContainerMetadata, export_container_metadata
from .keys import AuxVarKey, ConstraintKey, ContainerKey, ExpressionKey, ParameterKey, VariableKey, make_key
from .model import OptimizationModel
from .objective import ObjectiveFunction
from .structure import (
    AuxVariableType,
    BinaryInterpolationVariableType,
    ConstraintType,
    ElementType,
    ExpressionType,
    InterpolationVariableType,
    ParameterType,
    PiecewiseLinearCostVariable,
    VariableType,
    element_kind,
)

if TYPE_CHECKING:
    from .formulations import DeviceFormulation
    from .settings import Settings
    from .solvers import GurobiSolver
    from .structure import ComponentLike

logger = logging.getLogger('infraopt')

PWL_VARIABLE_TYPES = (PiecewiseLinearCostVariable, InterpolationVariableType, BinaryInterpolationVariableType)


def _as_type(element_type) -> type:
    """Tags may be passed as the class or as an instance of it."""
    return element_type if isinstance(element_type, type) else type(element_type)


def _cell_label(cell: tuple) -> str:
    return ','.join(str(entry) for entry in cell)


class OptimizationContainer:
    """
    Store of every variable, constraint, expression, parameter and auxiliary variable of one
    optimization problem.

    Each of the five registries maps a ContainerKey to a value container. A key is added
    exactly once. In rebuild mode (``Settings.rebuild_model``) adding an existing key
    replaces the container and logs a warning.

    Args:
        settings: Problem settings. Fixes the resolution.
        base_power: System base power in MW. Must be positive.
        model: The model collaborator. A new ``OptimizationModel`` is created if omitted.
        name: Name of the problem, used for the model and for exported metadata.

    Raises:
        InvalidValueError: If ``base_power`` is not positive.
    """

    def __init__(
        self,
        settings: Settings,
        base_power: float,
        model: OptimizationModel | None = None,
        name: str = 'infraopt',
    ):
        if not base_power > 0:
            raise InvalidValueError(f'base_power must be positive, got {base_power}')
        self.settings = settings
        self.base_power = float(base_power)
        self.name = name
        self.model = model if model is not None else OptimizationModel(name)
        self.variables: dict[VariableKey, ValueContainer] = {}
        self.constraints: dict[ConstraintKey, ValueContainer] = {}
        self.expressions: dict[ExpressionKey, ValueContainer] = {}
        self.parameters: dict[ParameterKey, ParameterContainer] = {}
        self.aux_variables: dict[AuxVarKey, ValueContainer] = {}
        self.objective_function = ObjectiveFunction()
        self.metadata = OptimizationContainerMetadata()
        self._time_steps: list[int] | None = None

    # --- time ---

    @property
    def resolution(self):
        return self.settings.resolution

    @property
    def dt(self) -> float:
        """Length of a time step in hours."""
        return self.settings.dt

    def set_time_steps(self, time_steps: Iterable[int] | None = None) -> None:
        """Fix the time steps. Defaults to ``1..N`` with ``N`` derived from horizon and resolution.

        Raises:
            AlreadyInitializedError: If the time steps were already set.
        """
        if self._time_steps is not None:
            raise AlreadyInitializedError('Time steps are already set')
        if time_steps is None:
            time_steps = range(1, self.settings.num_time_steps + 1)
        self._time_steps = list(time_steps)
        logger.debug(f'Set {len(self._time_steps)} time steps with dt={self.dt}h')

    @property
    def time_steps(self) -> list[int]:
        if self._time_steps is None:
            raise ConfigurationError('Time steps are not set. Call set_time_steps() first')
        return self._time_steps

    # --- registries ---

    def _registry_for(self, key: ContainerKey) -> dict:
        kind = key.kind
        if kind is VariableType:
            return self.variables
        if kind is ConstraintType:
            return self.constraints
        if kind is ExpressionType:
            return self.expressions
        if kind is ParameterType:
            return self.parameters
        return self.aux_variables

    def _check_new_key(self, key: ContainerKey) -> None:
        if key in self._registry_for(key):
            if not self.settings.rebuild_model:
                raise DuplicateContainerKeyError(f'{key!r} already exists')
            logger.warning(f'Replacing the existing container {key!r}')

    def _assign_container(self, key: ContainerKey, container) -> None:
        self._registry_for(key)[key] = container
        self.metadata.add_container_key(key)
        logger.debug(f'Added container {key!r}: {container!r}')

    @staticmethod
    def _new_container(
        axes: Sequence[Iterable[Hashable]], sparse: bool, dims: Sequence[str] | None
    ) -> DenseValueContainer | SparseValueContainer:
        if sparse:
            return SparseValueContainer(dims=dims)
        return DenseValueContainer(*axes, dims=dims)

    # --- variables ---

    def add_variable_container(
        self,
        variable_type: type[VariableType],
        component_type: type,
        *axes: Iterable[Hashable],
        meta: str = '',
        sparse: bool = False,
        dims: Sequence[str] | None = None,
        formulation: DeviceFormulation | None = None,
        components: Iterable[ComponentLike] | None = None,
    ) -> ValueContainer:
        """Add a variable container over ``axes``.

        With a ``formulation`` and the ``components`` named on the first axis, every cell is
        populated with a new decision variable whose bounds, integrality and start value
        come from the formulation's hooks. Otherwise the cells stay ``UNSET``.

        Args:
            variable_type: Concrete VariableType tag.
            component_type: Class of the components owning the cells.
            *axes: Label sequences, the component names first.
            meta: Qualifier that distinguishes containers of the same type pair.
            sparse: Create an empty sparse container instead of a dense one.
            dims: Names of the axes.
            formulation: Supplies the variable properties of every cell.
            components: Components named on the first axis.

        Raises:
            DuplicateContainerKeyError: If the key exists and rebuild mode is off.
            InvalidTypeError: If ``variable_type`` is abstract or not a variable tag.
        """
        key = VariableKey(_as_type(variable_type), component_type, meta)
        self._check_new_key(key)
        container = self._new_container(axes, sparse, dims)
        if formulation is not None and not sparse:
            self._populate_variables(container, key, formulation, components or ())
        self._assign_container(key, container)
        return container

    def _populate_variables(
        self,
        container: DenseValueContainer,
        key: VariableKey,
        formulation: DeviceFormulation,
        components: Iterable[ComponentLike],
    ) -> None:
        by_name = {component.get_name(): component for component in components}
        missing = [label for label in container.axes[0] if label not in by_name]
        if missing:
            raise ConfigurationError(f'No components named {missing} were passed for {key!r}')
        variable_type = key.element_type
        for cell in container.keys():
            component = by_name[cell[0]]
            warm_start = (
                formulation.variable_warm_start_value(variable_type, component) if self.settings.warm_start else None
            )
            container[cell] = self.model.create_variable(
                name=self.variable_name(variable_type, key.component_type, _cell_label(cell)),
                lower_bound=formulation.variable_lower_bound(variable_type, component),
                upper_bound=formulation.variable_upper_bound(variable_type, component),
                binary=formulation.variable_binary(variable_type, component),
                warm_start=warm_start,
            )

    def variable_name(self, variable_type: type, component_type: type, label: str) -> str:
        """Solver-side name of a variable, empty unless ``settings.store_variable_names`` is set."""
        if not self.settings.store_variable_names:
            return ''
        return f'{variable_type.__name__}_{component_type.__name__}_{{{label}}}'

    def get_variable(self, variable_type, component_type: type, meta: str = '') -> ValueContainer:
        return self._get(VariableKey(_as_type(variable_type), component_type, meta))

    # --- constraints ---

    def add_constraints_container(
        self,
        constraint_type: type[ConstraintType],
        component_type: type,
        *axes: Iterable[Hashable],
        meta: str = '',
        sparse: bool = False,
        dims: Sequence[str] | None = None,
    ) -> ValueContainer:
        key = ConstraintKey(_as_type(constraint_type), component_type, meta)
        self._check_new_key(key)
        container = self._new_container(axes, sparse, dims)
        self._assign_container(key, container)
        return container

    def get_constraint(self, constraint_type, component_type: type, meta: str = '') -> ValueContainer:
        return self._get(ConstraintKey(_as_type(constraint_type), component_type, meta))

    # --- expressions ---

    def add_expression_container(
        self,
        expression_type: type[ExpressionType],
        component_type: type,
        *axes: Iterable[Hashable],
        meta: str = '',
        sparse: bool = False,
        dims: Sequence[str] | None = None,
    ) -> ValueContainer:
        """Add an expression container. Dense cells start as empty expressions.

        Cells are quadratic expressions if ``expression_type.quadratic`` is set,
        linear expressions otherwise.
        """
        key = ExpressionKey(_as_type(expression_type), component_type, meta)
        self._check_new_key(key)
        container = self._new_container(axes, sparse, dims)
        if not sparse:
            factory = self.expression_factory(key.element_type)
            for cell in container.keys():
                container[cell] = factory()
        self._assign_container(key, container)
        return container

    def expression_factory(self, expression_type: type[ExpressionType]) -> Callable[[], Any]:
        if expression_type.quadratic:
            return self.model.quadratic_expression
        return self.model.linear_expression

    def get_expression(self, expression_type, component_type: type, meta: str = '') -> ValueContainer:
        return self._get(ExpressionKey(_as_type(expression_type), component_type, meta))

    # --- parameters ---

    def add_parameter_container(
        self,
        parameter_type: type[ParameterType],
        component_type: type,
        *axes: Iterable[Hashable],
        meta: str = '',
        values=None,
        multipliers=None,
        attributes: dict | None = None,
        dims: Sequence[str] | None = None,
    ) -> ParameterContainer:
        """Add a parameter container with a dense parameter and multiplier array over ``axes``.

        Args:
            values: Array-like broadcastable to the container shape. Cells stay ``UNSET`` if omitted.
            multipliers: Array-like broadcastable to the container shape. Defaults to 1.0.
            attributes: Free-form description stored with the parameter.
        """
        key = ParameterKey(_as_type(parameter_type), component_type, meta)
        self._check_new_key(key)
        parameter_array = DenseValueContainer(*axes, dims=dims)
        multiplier_array = DenseValueContainer(*axes, dims=dims)
        if values is not None:
            _fill_dense(parameter_array, values)
        _fill_dense(multiplier_array, 1.0 if multipliers is None else multipliers)
        container = ParameterContainer(parameter_array, multiplier_array, attributes)
        self._assign_container(key, container)
        return container

    def get_parameter(self, parameter_type, component_type: type, meta: str = '') -> ParameterContainer:
        return self._get(ParameterKey(_as_type(parameter_type), component_type, meta))

    def get_parameter_array(self, parameter_type, component_type: type, meta: str = '') -> DenseValueContainer:
        return self.get_parameter(parameter_type, component_type, meta).parameter_array

    def get_parameter_multiplier_array(
        self, parameter_type, component_type: type, meta: str = ''
    ) -> DenseValueContainer:
        return self.get_parameter(parameter_type, component_type, meta).multiplier_array

    # --- auxiliary variables ---

    def add_aux_variable_container(
        self,
        aux_variable_type: type[AuxVariableType],
        component_type: type,
        *axes: Iterable[Hashable],
        meta: str = '',
        sparse: bool = False,
        dims: Sequence[str] | None = None,
    ) -> ValueContainer:
        key = AuxVarKey(_as_type(aux_variable_type), component_type, meta)
        self._check_new_key(key)
        container = self._new_container(axes, sparse, dims)
        self._assign_container(key, container)
        return container

    def get_aux_variable(self, aux_variable_type, component_type: type, meta: str = '') -> ValueContainer:
        return self._get(AuxVarKey(_as_type(aux_variable_type), component_type, meta))

    # --- lookup ---

    def _get(self, key: ContainerKey):
        registry = self._registry_for(key)
        try:
            return registry[key]
        except KeyError:
            raise KeyNotFoundError(
                f'{key!r} is not stored. Available keys: {[k.encode() for k in registry]}'
            ) from None

    def get_container(self, key: ContainerKey):
        return self._get(key)

    def has_container_key(self, element_type, component_type: type, meta: str = '') -> bool:
        """Non-failing existence probe for any of the five registries."""
        key = make_key(_as_type(element_type), component_type, meta)
        return key in self._registry_for(key)

    def ensure_container_exists(self, key: ContainerKey, container_builder: Callable[[], ValueContainer]):
        """Return the container stored under ``key``, adding ``container_builder()`` first if absent."""
        registry = self._registry_for(key)
        if key not in registry:
            self._assign_container(key, container_builder())
        return registry[key]

    def lazy_container_addition(
        self,
        element_type: type[ElementType],
        component_type: type,
        meta: str = '',
        dims: Sequence[str] | None = None,
    ) -> SparseValueContainer:
        """Get-or-create a sparse container, for cells that are only known while they are populated."""
        key = make_key(_as_type(element_type), component_type, meta)
        return self.ensure_container_exists(key, lambda: SparseValueContainer(dims=dims))

    def list_keys(self, kind: type[ElementType] | None = None) -> list[ContainerKey]:
        """All stored keys, optionally restricted to one registry (e.g. ``VariableType``)."""
        if kind is not None:
            kind = element_kind(kind)
            return [key for key in self.metadata.container_key_lookup.values() if key.kind is kind]
        return list(self.metadata.container_key_lookup.values())

    # --- objective and solving ---

    def update_objective_function(self) -> None:
        """Hand invariant + variant to the model."""
        self.model.set_objective(self.objective_function.total(), self.objective_function.sense)
        self.objective_function.synchronized = True

    def solve(self, solver: GurobiSolver | None = None) -> str:
        """Set the objective and solve. Returns the termination condition."""
        self.update_objective_function()
        if self.settings.check_numerical_bounds:
            self.model.check_numerical_bounds()
        return self.model.solve(solver if solver is not None else self.settings.solver)

    def get_variable_values(
        self, variable_type, component_type: type, meta: str = ''
    ) -> xr.DataArray | pd.Series:
        """Solution values of a variable container. Dense containers give a DataArray, sparse ones a Series."""
        key = VariableKey(_as_type(variable_type), component_type, meta)
        return self._values_of(self._get(key), key)

    def exported_variable_keys(self) -> list[VariableKey]:
        """Keys written by ``export_variable_values``. Piecewise linear variables need ``settings.export_pwl_vars``."""
        return [
            key
            for key in self.variables
            if self.settings.export_pwl_vars or not issubclass(key.element_type, PWL_VARIABLE_TYPES)
        ]

    def export_variable_values(self) -> dict[str, xr.DataArray | pd.Series]:
        """Solution values of every exported variable container, by encoded key."""
        return {key.encode(): self._values_of(self.variables[key], key) for key in self.exported_variable_keys()}

    def get_expression_values(
        self, expression_type, component_type: type, meta: str = ''
    ) -> xr.DataArray | pd.Series:
        key = ExpressionKey(_as_type(expression_type), component_type, meta)
        return self._values_of(self._get(key), key)

    def _values_of(self, container: ValueContainer, key: ContainerKey) -> xr.DataArray | pd.Series:
        if isinstance(container, DenseValueContainer):
            return container.to_dataarray(value=self.model.value, name=key.encode())
        return container.to_series(value=self.model.value, name=key.encode())

    def serialize_metadata(self, output_dir: str | pathlib.Path) -> pathlib.Path:
        """Write the container metadata to ``<output_dir>/<name>/``."""
        return export_container_metadata(self, output_dir)

    # --- representation ---

    def get_structure(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'base_power': self.base_power,
            'resolution': str(self.resolution),
            'time_steps': len(self._time_steps) if self._time_steps is not None else None,
            'variables': {key.encode(): repr(c) for key, c in self.variables.items()},
            'constraints': {key.encode(): repr(c) for key, c in self.constraints.items()},
            'expressions': {key.encode(): repr(c) for key, c in self.expressions.items()},
            'parameters': {key.encode(): repr(c) for key, c in self.parameters.items()},
            'aux_variables': {key.encode(): repr(c) for key, c in self.aux_variables.items()},
        }

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}({self.name!r}, {len(self.variables)} variables, '
            f'{len(self.constraints)} constraints, {len(self.expressions)} expressions, '
            f'{len(self.parameters)} parameters, {len(self.aux_variables)} aux variables)'
        )

    def __str__(self) -> str:
        with StringIO() as output_buffer:
            console = Console(file=output_buffer, width=1000)
            console.print(Pretty(self.get_structure(), expand_all=True, indent_guides=True))
            return output_buffer.getvalue()


def _fill_dense(container: DenseValueContainer, values) -> None:
    """Broadcast ``values`` to the container shape and store them cell by cell."""
    array = np.broadcast_to(np.asarray(values, dtype=float), container.shape)
    for cell, value in zip(container.keys(), array.flat, strict=True):
        container[cell] = float(value)


