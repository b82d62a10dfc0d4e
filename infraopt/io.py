from __future__ import annotations

import json
import logging
import pathlib
from typing import TYPE_CHECKING

import yaml

from .core import KeyNotFoundError
from .keys import ContainerKey, decode_key, encode_key

if TYPE_CHECKING:
    from .optimization_container import OptimizationContainer

logger = logging.getLogger('infraopt')

METADATA_FILENAME = 'optimization_container_metadata.yaml'


def load_json(path: str | pathlib.Path) -> dict | list:
    """
    Load data from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    path = pathlib.Path(path)
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict | list, path: str | pathlib.Path, indent: int = 4, **kwargs) -> None:
    """Save data to a JSON file with consistent formatting."""
    path = pathlib.Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, **kwargs)


def load_yaml(path: str | pathlib.Path) -> dict | list:
    """
    Load data from a YAML file.

    Returns:
        Loaded data, or an empty dict if the file is empty.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    path = pathlib.Path(path)
    with open(path, encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def save_yaml(data: dict | list, path: str | pathlib.Path, indent: int = 4, sort_keys: bool = False) -> None:
    """Save data to a YAML file with consistent formatting."""
    path = pathlib.Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(
            data,
            f,
            indent=indent,
            width=1000,
            allow_unicode=True,
            sort_keys=sort_keys,
            default_flow_style=False,
        )


class OptimizationContainerMetadata:
    """Lookup from canonical key strings to the keys registered in a container."""

    def __init__(self, container_key_lookup: dict[str, ContainerKey] | None = None):
        self.container_key_lookup: dict[str, ContainerKey] = dict(container_key_lookup or {})

    def add_container_key(self, key: ContainerKey) -> str:
        encoded = encode_key(key)
        self.container_key_lookup[encoded] = key
        return encoded

    def has_container_key(self, encoded: str) -> bool:
        return encoded in self.container_key_lookup

    def get_container_key(self, encoded: str) -> ContainerKey:
        try:
            return self.container_key_lookup[encoded]
        except KeyError:
            raise KeyNotFoundError(f'"{encoded}" is not a key of this container') from None

    def __len__(self) -> int:
        return len(self.container_key_lookup)

    def to_dict(self) -> dict:
        return {
            'container_keys': [
                {'kind': type(key).__name__, 'encoded': encoded} for encoded, key in self.container_key_lookup.items()
            ]
        }

    @classmethod
    def from_dict(cls, data: dict) -> OptimizationContainerMetadata:
        keys = {}
        for entry in data.get('container_keys', []):
            key = decode_key(entry['encoded'])
            if type(key).__name__ != entry['kind']:
                raise ValueError(f'"{entry["encoded"]}" decodes to a {type(key).__name__}, file says {entry["kind"]}')
            keys[entry['encoded']] = key
        return cls(keys)


def metadata_path(output_dir: str | pathlib.Path, model_name: str) -> pathlib.Path:
    return pathlib.Path(output_dir) / model_name / METADATA_FILENAME


def serialize_metadata(
    metadata: OptimizationContainerMetadata, output_dir: str | pathlib.Path, model_name: str
) -> pathlib.Path:
    """Write the metadata to ``<output_dir>/<model_name>/`` and return the file path."""
    path = metadata_path(output_dir, model_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    save_yaml(metadata.to_dict(), path)
    logger.debug(f'Serialized container metadata with {len(metadata)} keys to {path}')
    return path


def deserialize_metadata(output_dir: str | pathlib.Path, model_name: str) -> OptimizationContainerMetadata:
    """Read metadata written by ``serialize_metadata``.

    Raises:
        FileNotFoundError: If no metadata was written for ``model_name``.
        UnknownKeyTypeError: If a stored key names an unregistered type.
    """
    return OptimizationContainerMetadata.from_dict(load_yaml(metadata_path(output_dir, model_name)))


def deserialize_key(metadata: OptimizationContainerMetadata, name: str) -> ContainerKey:
    return metadata.get_container_key(name)


def export_container_metadata(container: OptimizationContainer, output_dir: str | pathlib.Path) -> pathlib.Path:
    """Write the metadata of ``container`` next to its settings."""
    path = serialize_metadata(container.metadata, output_dir, container.name)
    save_yaml(container.settings.copy_for_serialization().to_dict(), path.with_name('settings.yaml'))
    return path
