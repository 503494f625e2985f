"""
Loads client configuration from YAML files and keyword overrides.

Defaults live in Python (config.py). A YAML file only lists the keys it changes
and may name a parent file with ``extends: <filename>`` (resolved relative to
the file itself). Keyword overrides from the command line are applied last.
"""

from pathlib import Path
from typing import Any

import yaml

from zeroclient.shared.config import Config
from zeroclient.shared.dicts import deep_merge_dicts


def load_config(path: str | Path | None = None, **overrides: Any) -> Config:
    """
    Build a :class:`Config` from defaults, an optional YAML file and overrides.

    Resolution order (last wins):
      1. Python field defaults
      2. YAML file, after following its ``extends`` chain
      3. Keyword overrides; ``None`` values are skipped so unset CLI flags
         leave the file's values alone

    Args:
        path: Optional path to a YAML config file.
        **overrides: Nested keys joined with ``__``,
            e.g. ``engine__games_per_gpu=2``.

    Examples:
        >>> cfg = load_config()
        >>> cfg = load_config("config/production.yaml")
        >>> cfg = load_config("config/production.yaml", storage__keep_dir="kept")
    """
    config = Config.default()

    if path is not None:
        config = config.merge(_load_yaml(Path(path)))

    given = {key: value for key, value in overrides.items() if value is not None}
    if given:
        config = config.merge(_nest(given))

    return config


def _load_yaml(path: Path, _seen: frozenset[Path] = frozenset()) -> dict[str, Any]:
    """Read one YAML file, merging it over its ``extends`` parent if it has one."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    resolved = path.resolve()
    if resolved in _seen:
        raise ValueError(f"Circular 'extends' chain at {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    parent = data.pop("extends", None)
    if parent is not None:
        base = _load_yaml(path.parent / parent, _seen | {resolved})
        data = deep_merge_dicts(base, data)

    return data


def _nest(flat: dict[str, Any]) -> dict[str, Any]:
    """Turn ``{"engine__gpus": [...]}`` into ``{"engine": {"gpus": [...]}}``."""
    nested: dict[str, Any] = {}
    for key, value in flat.items():
        *parents, leaf = key.split("__")
        node = nested
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value
    return nested
