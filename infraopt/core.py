"""
This module contains the core datatypes and exceptions of infraopt.
"""

from __future__ import annotations

import logging
from typing import Union

import numpy as np

logger = logging.getLogger('infraopt')

Scalar = Union[int, float, np.integer, np.floating]
"""A single number, either integer or float."""

MILLISECONDS_IN_HOUR = 3_600_000
"""Used to turn a time-step resolution into hours (``dt``)."""


class _Unset:
    """Sentinel type for cells of a container that were allocated but never populated."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'UNSET'

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Unset, ())


UNSET = _Unset()
"""Value of every dense container cell until it is populated."""


class ConfigurationError(Exception):
    """The calling code used the library incorrectly. Not caused by input data."""

    pass


class AlreadyInitializedError(ConfigurationError):
    """A one-time initialization was attempted a second time."""

    pass


class DuplicateContainerKeyError(ConfigurationError):
    """A container was registered twice under the same key."""

    pass


class InvalidTypeError(ConfigurationError, TypeError):
    """An abstract or otherwise unsuitable type was passed where a concrete type is required."""

    pass


class UnknownKeyTypeError(ConfigurationError, KeyError):
    """A canonical key string names an element type that is not registered."""

    pass


class KeyNotFoundError(KeyError):
    """A container or a container cell was looked up but never added."""

    pass


class DataShapeError(ValueError):
    """Sizes of related inputs do not match."""

    pass


class DuplicateAxisLabelError(DataShapeError):
    """An axis of a container contains the same label twice."""

    pass


class InvalidValueError(ValueError):
    """Input data is malformed."""

    pass


def is_zero(value) -> bool:
    """True if a scalar or every entry of an array-like is exactly zero."""
    return bool(np.all(np.asarray(value, dtype=float) == 0.0))
