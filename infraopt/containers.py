"""
Axis-labeled value containers.

A dense container allocates every combination of its axis labels up front and fills
untouched cells with ``UNSET``. A sparse container only holds the tuples that were set.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Hashable, Iterable, Iterator, Sequence
from typing import Any

import numpy as np
import pandas as pd
import xarray as xr

from .core import UNSET, DataShapeError, DuplicateAxisLabelError, KeyNotFoundError

logger = logging.getLogger('infraopt')

DEFAULT_DIMS = {1: ('name',), 2: ('name', 'time_step'), 3: ('name', 'index', 'time_step')}


def _as_tuple(key) -> tuple:
    return key if isinstance(key, tuple) else (key,)


class ValueContainer:
    """Common read interface of dense and sparse containers."""

    dims: tuple[str, ...]

    def __getitem__(self, key):
        raise NotImplementedError

    def __setitem__(self, key, value):
        raise NotImplementedError

    def keys(self) -> Iterator[tuple]:
        raise NotImplementedError

    def has_key(self, key) -> bool:
        raise NotImplementedError

    def __contains__(self, key) -> bool:
        return self.has_key(key)

    def get(self, key, default=None):
        """Return the stored value, or ``default`` if the cell is absent or unpopulated."""
        if not self.has_key(key):
            return default
        value = self[key]
        return default if value is UNSET else value

    def items(self) -> Iterator[tuple[tuple, Any]]:
        for key in self.keys():
            yield key, self[key]

    def values(self) -> Iterator[Any]:
        for key in self.keys():
            yield self[key]

    def __iter__(self) -> Iterator[Any]:
        return self.values()


class DenseValueContainer(ValueContainer):
    """
    Dense, axis-labeled container. Every combination of axis labels exists from creation.

    Args:
        *axes: One label sequence per axis. Labels of an axis must be unique.
        dims: Names of the axes, used when exporting to xarray.

    Raises:
        DuplicateAxisLabelError: If an axis repeats a label.
        DataShapeError: If no axis or a mismatching number of dims is given.
    """

    def __init__(self, *axes: Iterable[Hashable], dims: Sequence[str] | None = None):
        if not axes:
            raise DataShapeError('A dense container needs at least one axis')
        self._axes = tuple(pd.Index(list(axis)) for axis in axes)
        for position, axis in enumerate(self._axes):
            if not axis.is_unique:
                duplicated = axis[axis.duplicated()].unique().tolist()
                raise DuplicateAxisLabelError(f'Axis {position} contains duplicated labels: {duplicated}')
        if dims is None:
            dims = DEFAULT_DIMS.get(len(axes), tuple(f'dim_{i}' for i in range(len(axes))))
        if len(dims) != len(axes):
            raise DataShapeError(f'Got {len(dims)} dims for {len(axes)} axes')
        self.dims = tuple(dims)
        self._data = np.full(tuple(len(axis) for axis in self._axes), UNSET, dtype=object)

    @property
    def axes(self) -> tuple[pd.Index, ...]:
        return self._axes

    @property
    def shape(self) -> tuple[int, ...]:
        return self._data.shape

    @property
    def size(self) -> int:
        return self._data.size

    def _locate(self, key) -> tuple[int, ...]:
        key = _as_tuple(key)
        if len(key) != len(self._axes):
            raise KeyNotFoundError(f'Key {key} has {len(key)} entries, container has {len(self._axes)} axes')
        try:
            return tuple(axis.get_loc(label) for axis, label in zip(self._axes, key, strict=True))
        except (KeyError, TypeError, pd.errors.InvalidIndexError):
            raise KeyNotFoundError(f'{key} is not a key of this container') from None

    def __getitem__(self, key):
        return self._data[self._locate(key)]

    def __setitem__(self, key, value):
        self._data[self._locate(key)] = value

    def has_key(self, key) -> bool:
        try:
            self._locate(key)
        except KeyNotFoundError:
            return False
        return True

    def is_populated(self, key) -> bool:
        return self.has_key(key) and self[key] is not UNSET

    def keys(self) -> Iterator[tuple]:
        return itertools.product(*(axis.tolist() for axis in self._axes))

    def __len__(self) -> int:
        return self._data.size

    def to_dataarray(self, value: Callable[[Any], float] | None = None, name: str | None = None) -> xr.DataArray:
        """Export to an xarray DataArray. Unset cells become NaN.

        Args:
            value: Converts a cell (e.g. a decision variable) to a number. Defaults to ``float``.
            name: Name of the returned DataArray.
        """
        value = float if value is None else value
        numbers = np.array(
            [np.nan if cell is UNSET else value(cell) for cell in self._data.flat], dtype=float
        ).reshape(self._data.shape)
        coords = {dim: axis for dim, axis in zip(self.dims, self._axes, strict=True)}
        return xr.DataArray(numbers, coords=coords, dims=self.dims, name=name)

    def __repr__(self) -> str:
        shape = ' x '.join(str(n) for n in self.shape)
        return f'{self.__class__.__name__}({shape}, dims={self.dims})'


class SparseValueContainer(ValueContainer):
    """
    Container of explicit tuple keys. Used where not every combination of labels exists,
    e.g. piecewise linear deltas whose count differs per device.

    Args:
        dims: Names of the key positions, used when exporting to pandas.
        data: Initial content.
    """

    def __init__(self, dims: Sequence[str] | None = None, data: dict | None = None):
        self.dims = tuple(dims) if dims is not None else ()
        self._data: dict[tuple, Any] = {}
        for key, value in (data or {}).items():
            self[key] = value

    def _check_key(self, key) -> tuple:
        key = _as_tuple(key)
        if self.dims and len(key) != len(self.dims):
            raise DataShapeError(f'Key {key} has {len(key)} entries, expected {len(self.dims)} ({self.dims})')
        return key

    def __getitem__(self, key):
        key = _as_tuple(key)
        try:
            return self._data[key]
        except KeyError:
            raise KeyNotFoundError(f'{key} is not a key of this container') from None

    def __setitem__(self, key, value):
        self._data[self._check_key(key)] = value

    def has_key(self, key) -> bool:
        return _as_tuple(key) in self._data

    def keys(self) -> Iterator[tuple]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def to_series(self, value: Callable[[Any], float] | None = None, name: str | None = None) -> pd.Series:
        """Export to a pandas Series with a MultiIndex over the key tuples."""
        value = float if value is None else value
        keys = list(self._data)
        if keys:
            index = pd.MultiIndex.from_tuples(keys, names=self.dims or None)
        else:
            index = pd.MultiIndex.from_tuples([], names=self.dims or ('key',))
        return pd.Series([value(self._data[key]) for key in keys], index=index, name=name, dtype=float)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({len(self)} entries, dims={self.dims})'


class ParameterContainer:
    """
    Values of a parameter together with a multiplier of the same shape.
    The effective value of a cell is ``parameter_array[key] * multiplier_array[key]``.

    Args:
        parameter_array: Raw parameter values.
        multiplier_array: Scaling applied to each parameter value. Filled with 1.0 if omitted.
        attributes: Free-form description of the parameter (source time series, ...).
    """

    def __init__(
        self,
        parameter_array: DenseValueContainer,
        multiplier_array: DenseValueContainer | None = None,
        attributes: dict | None = None,
    ):
        if multiplier_array is None:
            multiplier_array = DenseValueContainer(*parameter_array.axes, dims=parameter_array.dims)
            for key in multiplier_array.keys():
                multiplier_array[key] = 1.0
        if multiplier_array.shape != parameter_array.shape:
            raise DataShapeError(
                f'Multiplier shape {multiplier_array.shape} does not match parameter shape {parameter_array.shape}'
            )
        self.parameter_array = parameter_array
        self.multiplier_array = multiplier_array
        self.attributes = attributes or {}

    def value(self, key) -> float:
        """Effective value of a cell."""
        return self.parameter_array[key] * self.multiplier_array[key]

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.parameter_array!r})'
