"""Nested dict merging for layered configuration."""

from __future__ import annotations

from typing import Any


def deep_merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Layer ``override`` on top of ``base`` without mutating either.

    Sections present in both are merged key by key; any other value in
    ``override`` (lists included) replaces the one in ``base``.
    """
    merged: dict[str, Any] = {**base}
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = deep_merge_dicts(current, value)
        merged[key] = value
    return merged
