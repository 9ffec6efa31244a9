from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Union
import os

from .models import DC_FIELDS, Config, config_from_dict

PATH_LIST_KEYS = ("pages", "styles", "scripts", "images")
PATH_KEYS = ("logo",)
KNOWN_KEYS = {
    *DC_FIELDS,
    *PATH_LIST_KEYS,
    *PATH_KEYS,
    "identifier",
    "unique_identifier",
    "modified",
    "version",
    "cover",
    "nav",
    "extras",
}


class ConfigFileError(ValueError):
    pass


def _is_str_list(value: object) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _check_meta_value(name: str, value: object) -> None:
    if value is None or isinstance(value, str) or _is_str_list(value):
        return
    raise ConfigFileError(f"{name} must be a string or an array of strings")


def validate_config_data(data: object) -> dict:
    if not isinstance(data, dict):
        raise ConfigFileError("configuration must be a JSON object")
    unknown = sorted(set(data) - KNOWN_KEYS)
    if unknown:
        raise ConfigFileError(f"unknown configuration keys: {', '.join(unknown)}")

    for name in (*DC_FIELDS, "modified"):
        _check_meta_value(name, data.get(name))

    identifier = data.get("identifier")
    if identifier is not None and not isinstance(identifier, str):
        if not isinstance(identifier, dict) or not all(
            isinstance(key, str) and isinstance(value, str) for key, value in identifier.items()
        ):
            raise ConfigFileError("identifier must be a string or an object of strings")

    for name in ("unique_identifier", "version", *PATH_KEYS):
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            raise ConfigFileError(f"{name} must be a string")

    cover = data.get("cover")
    if cover is not None and not isinstance(cover, (bool, str)):
        raise ConfigFileError("cover must be a boolean or a string")

    for name in PATH_LIST_KEYS:
        value = data.get(name)
        if value is not None and not _is_str_list(value):
            raise ConfigFileError(f"{name} must be an array of strings")

    nav = data.get("nav")
    if nav is not None:
        if not isinstance(nav, list):
            raise ConfigFileError("nav must be an array")
        for index, entry in enumerate(nav):
            if not isinstance(entry, dict) or not all(isinstance(entry.get(key), str) for key in ("id", "label", "content")):
                raise ConfigFileError(f"nav[{index}] must have string id, label and content")

    extras = data.get("extras")
    if extras is not None and not isinstance(extras, dict):
        raise ConfigFileError("extras must be an object")
    return data


def _resolve(base: Path, value: str) -> str:
    path = Path(value).expanduser()
    return str(path if path.is_absolute() else base / path)


def resolve_paths(data: dict, base: Path) -> dict[str, Any]:
    resolved = dict(data)
    for name in PATH_LIST_KEYS:
        if resolved.get(name):
            resolved[name] = [_resolve(base, value) for value in resolved[name]]
    for name in PATH_KEYS:
        if resolved.get(name):
            resolved[name] = _resolve(base, resolved[name])
    return resolved


def load_config(path: Union[str, os.PathLike]) -> Config:
    """Load a JSON book description; relative paths are taken from its directory."""
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigFileError(f"cannot read {config_path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigFileError(f"invalid JSON in {config_path}: {exc}") from exc
    data = validate_config_data(data)
    return config_from_dict(resolve_paths(data, config_path.resolve().parent))
