from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

import yaml

CONFIG_ENV_VAR = "MACHINE_INIT_CONFIG"
CONFIG_SUBDIR = "config"
BASE_CONFIG_NAME = "config.yaml"
LOCAL_CONFIG_NAME = "config.local.yaml"


def find_config_home(start: str | None = None) -> str:
    """Return the nearest directory at or above `start` holding config/config.yaml."""

    origin = os.path.abspath(start or os.getcwd())
    here = origin
    while not os.path.isfile(os.path.join(here, CONFIG_SUBDIR, BASE_CONFIG_NAME)):
        parent = os.path.dirname(here)
        if parent == here:
            raise FileNotFoundError(
                f"No {CONFIG_SUBDIR}/{BASE_CONFIG_NAME} found in {origin} or any parent directory"
            )
        here = parent
    return here


def load_yaml_mapping(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"YAML file must contain a mapping: {path}")
    return dict(payload)


def _shape(value: Any) -> str:
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "list"
    return "scalar"


def merge_overlay(base: Mapping[str, Any], overlay: Mapping[str, Any], *, prefix: str = "") -> dict[str, Any]:
    """Lay `overlay` over `base`.

    Mappings merge key by key, lists and scalars are replaced whole, and an
    explicit null in the overlay clears the key. Replacing a mapping with a list
    (or any other change of shape) is an error naming the dotted key.
    """

    merged = dict(base)
    for key, value in overlay.items():
        where = f"{prefix}.{key}" if prefix else str(key)
        current = merged.get(key)
        if value is None or current is None:
            merged[key] = value
            continue

        current_shape, value_shape = _shape(current), _shape(value)
        if current_shape != value_shape:
            raise ValueError(
                f"Cannot merge config overlay at {where}: base is a {current_shape}, overlay is a {value_shape}"
            )
        if current_shape == "mapping":
            merged[key] = merge_overlay(current, value, prefix=where)
        elif current_shape == "list":
            merged[key] = list(value)
        else:
            merged[key] = value
    return merged


def _load_single(path: str, *, mode: str, env_var: str | None) -> tuple[dict[str, Any], dict[str, Any]]:
    resolved = os.path.abspath(os.path.expandvars(os.path.expanduser(path)))
    meta = {"mode": mode, "paths": [resolved], "env_var": env_var, "base_dir": os.path.dirname(resolved)}
    return load_yaml_mapping(resolved), meta


def load_config(
    config_path: str | None = None, *, env_var: str | None = CONFIG_ENV_VAR
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Load the request config, returning (config, meta).

    An explicit path, or else the file named by `env_var`, is loaded on its own
    and relative paths inside it resolve against its directory. Otherwise the
    nearest config/config.yaml above the working directory is loaded, with
    config.local.yaml beside it merged on top, and relative paths resolve
    against the directory holding config/. `meta["base_dir"]` records which.
    """

    explicit = str(config_path).strip() if config_path is not None else ""
    if explicit:
        return _load_single(explicit, mode="explicit", env_var=env_var)

    from_env = os.environ.get(env_var, "").strip() if env_var else ""
    if from_env:
        return _load_single(from_env, mode="env", env_var=env_var)

    home = find_config_home()
    config_dir = os.path.join(home, CONFIG_SUBDIR)
    paths = [os.path.join(config_dir, BASE_CONFIG_NAME)]
    cfg = load_yaml_mapping(paths[0])

    local_path = os.path.join(config_dir, LOCAL_CONFIG_NAME)
    if os.path.isfile(local_path):
        cfg = merge_overlay(cfg, load_yaml_mapping(local_path))
        paths.append(local_path)

    meta = {
        "mode": "base+local" if len(paths) > 1 else "base",
        "paths": paths,
        "env_var": env_var,
        "base_dir": home,
    }
    return cfg, meta
