"""
Typed keys that address containers inside an OptimizationContainer.

A key is ``(element_type, component_type, meta)`` where both types are classes and
``meta`` is a free-form qualifier. Its canonical string form is
``ElementType__ComponentType`` or ``ElementType__ComponentType__meta``.
"""

from __future__ import annotations

from typing import ClassVar, NamedTuple

from .core import ConfigurationError
from .structure import (
    AuxVariableType,
    ConstraintType,
    ElementType,
    ExpressionType,
    ParameterType,
    VariableType,
    check_concrete,
    element_kind,
    lookup_component_type,
    lookup_element_type,
)

KEY_SEPARATOR = '__'
KEY_REGISTRY: dict[type[ElementType], type[ContainerKey]] = {}


class _KeyFields(NamedTuple):
    element_type: type
    component_type: type
    meta: str


class ContainerKey(_KeyFields):
    """Immutable, structurally compared container identity."""

    __slots__ = ()

    kind: ClassVar[type[ElementType]] = ElementType

    def __new__(cls, element_type: type, component_type: type, meta: str = ''):
        if cls is ContainerKey:
            cls = key_class_for(element_type)
        check_concrete(element_type, cls.kind)
        if not isinstance(component_type, type):
            raise ConfigurationError(f'component_type must be a class, got {component_type!r}')
        for type_name in (element_type.__name__, component_type.__name__):
            if KEY_SEPARATOR in type_name:
                raise ConfigurationError(f'Type names must not contain "{KEY_SEPARATOR}", got {type_name}')
            if type_name.startswith('_') or type_name.endswith('_'):
                raise ConfigurationError(f'Type names must not start or end with "_", got {type_name}')
        return tuple.__new__(cls, (element_type, component_type, str(meta)))

    def __getnewargs__(self):
        return tuple(self)

    def __eq__(self, other):
        return type(self) is type(other) and tuple.__eq__(self, other)

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash((type(self).__name__, *self))

    def __repr__(self):
        meta = f', meta={self.meta!r}' if self.meta else ''
        return f'{type(self).__name__}({self.element_type.__name__}, {self.component_type.__name__}{meta})'

    def encode(self) -> str:
        """Return the canonical string of this key."""
        return encode_key(self)


def _register_key(kind: type[ElementType]):
    def decorator(cls):
        cls.kind = kind
        KEY_REGISTRY[kind] = cls
        return cls

    return decorator


@_register_key(VariableType)
class VariableKey(ContainerKey):
    __slots__ = ()


@_register_key(ConstraintType)
class ConstraintKey(ContainerKey):
    __slots__ = ()


@_register_key(ExpressionType)
class ExpressionKey(ContainerKey):
    __slots__ = ()


@_register_key(ParameterType)
class ParameterKey(ContainerKey):
    __slots__ = ()


@_register_key(AuxVariableType)
class AuxVarKey(ContainerKey):
    __slots__ = ()


def key_class_for(element_type: type) -> type[ContainerKey]:
    """Return the key class matching the registry an element type belongs to."""
    return KEY_REGISTRY[element_kind(element_type)]


def make_key(element_type: type, component_type: type, meta: str = '') -> ContainerKey:
    return key_class_for(element_type)(element_type, component_type, meta)


def encode_key(key: ContainerKey) -> str:
    """Encode a key as ``ElementType__ComponentType[__meta]``."""
    parts = [key.element_type.__name__, key.component_type.__name__]
    if key.meta:
        parts.append(key.meta)
    return KEY_SEPARATOR.join(parts)


def decode_key(value: str) -> ContainerKey:
    """Decode a canonical key string.

    Everything after the second separator belongs to ``meta``, so qualifiers may contain it.

    Raises:
        UnknownKeyTypeError: If the element or component type name is not registered.
        ValueError: If the string does not contain a component type.
    """
    parts = value.split(KEY_SEPARATOR, 2)
    if len(parts) < 2:
        raise ValueError(f'"{value}" is not a container key string')
    element_type = lookup_element_type(parts[0])
    component_type = lookup_component_type(parts[1])
    meta = parts[2] if len(parts) == 3 else ''
    return make_key(element_type, component_type, meta)
