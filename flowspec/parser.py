"""Loading workflow definitions from JSON or YAML sources and files."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

from .workflow import Workflow

_EXT_JSON = ".json"
_EXT_YAML = ".yaml"
_EXT_YML = ".yml"
SUPPORTED_EXTENSIONS = (_EXT_YAML, _EXT_YML, _EXT_JSON)
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _JsonCompatibleLoader(yaml.SafeLoader):
    """A safe YAML loader that keeps timestamps as plain strings."""


_JsonCompatibleLoader.yaml_implicit_resolvers = {
    first: [(tag, pattern) for tag, pattern in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _json_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "null"
    return str(key)


def _to_json_data(value: Any) -> Any:
    if isinstance(value, dict):
        return {_json_key(k): _to_json_data(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_json_data(item) for item in value]
    return value


def _parse(data: Any) -> Workflow:
    workflow = Workflow.from_json(data)
    workflow.validate()
    return workflow


def from_yaml_source(source: bytes | str) -> Workflow:
    """Parse and validate a workflow written in YAML."""
    try:
        data = yaml.load(source, Loader=_JsonCompatibleLoader)
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid YAML: {exc}") from exc
    return _parse(_to_json_data(data))


def from_json_source(source: bytes | str) -> Workflow:
    """Parse and validate a workflow written in JSON."""
    return _parse(json.loads(source))


def from_file(path: str | os.PathLike[str]) -> Workflow:
    """Parse and validate the workflow stored in a .json, .yaml or .yml file."""
    check_file_path(path)
    text = os.fspath(path)
    content = Path(os.path.normpath(text)).read_bytes()
    if text.endswith((_EXT_YAML, _EXT_YML)):
        return from_yaml_source(content)
    return from_json_source(content)


def check_file_path(path: str | os.PathLike[str]) -> None:
    """Raise if *path* is missing, is a directory, or has an unsupported extension."""
    text = os.fspath(path)
    if Path(text).is_dir():
        raise ValueError(f"file path '{text}' must stand to a file")
    os.stat(text)
    if not text.endswith(SUPPORTED_EXTENSIONS):
        raise ValueError(
            f"file extension not supported for '{text}'. supported formats are "
            f"[{' '.join(SUPPORTED_EXTENSIONS)}]"
        )