"""Strict config section parsing with consumed-keys enforcement."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable

_MISSING = object()


def _join_path(parent: str, key: str) -> str:
    if not parent:
        return key
    return f"{parent}.{key}"


@dataclass
class ConfigSection:
    """Typed accessors over a mapping that remember which keys were read.

    Every accessor records the key as consumed; `unconsumed_paths()` then reports
    anything the caller never looked at (typos, stale keys) with its dotted path.
    """

    data: Mapping[str, Any]
    path: str = ""
    _consumed: set[str] = field(default_factory=set, init=False, repr=False)
    _children: dict[str, "ConfigSection"] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def empty(cls, *, path: str) -> "ConfigSection":
        return cls({}, path=path)

    def _key(self, key: str) -> str:
        if not isinstance(key, str) or not key.strip():
            raise TypeError("ConfigSection key must be a non-empty string")
        return key.strip()

    def _get_raw(self, key: str, *, default: Any) -> Any:
        normalized = self._key(key)
        if normalized in self._children:
            raise ValueError(f"{_join_path(self.path, normalized)} already accessed as a section")

        self._consumed.add(normalized)
        if normalized not in self.data:
            if default is _MISSING:
                raise ValueError(f"Missing required config key: {_join_path(self.path, normalized)}")
            return default
        return self.data.get(normalized)

    def get(self, key: str, *, default: Any = _MISSING) -> Any:
        """Return the raw value, leaving type checks to the caller."""

        return self._get_raw(key, default=default)

    def has(self, key: str) -> bool:
        return self._key(key) in self.data

    def consumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._consumed))

    def unconsumed_paths(self) -> tuple[str, ...]:
        unknown = [
            _join_path(self.path, str(key))
            for key in self.data.keys()
            if str(key) not in self._consumed
        ]
        for child in self._children.values():
            unknown.extend(child.unconsumed_paths())
        return tuple(sorted(unknown))

    def assert_consumed(self) -> None:
        unknown = self.unconsumed_paths()
        if unknown:
            consumed = ", ".join(self.consumed_keys()) or "<none>"
            raise ValueError(
                f"Unknown config keys under {self.path or '<root>'}: {', '.join(unknown)} "
                f"(consumed: {consumed})"
            )

    def section(self, key: str, *, required: bool = False) -> "ConfigSection":
        normalized = self._key(key)
        if normalized in self._children:
            return self._children[normalized]

        child_path = _join_path(self.path, normalized)
        self._consumed.add(normalized)
        raw = self.data.get(normalized)
        if raw is None:
            if required:
                raise ValueError(f"Missing required config section: {child_path}")
            child = ConfigSection.empty(path=child_path)
        elif not isinstance(raw, Mapping):
            raise TypeError(f"{child_path} must be a mapping (type={type(raw).__name__})")
        else:
            child = ConfigSection(dict(raw), path=child_path)

        self._children[normalized] = child
        return child

    def get_bool(self, key: str, *, default: bool | object = _MISSING) -> bool:
        raw = self._get_raw(key, default=default)
        if not isinstance(raw, bool):
            raise TypeError(
                f"{_join_path(self.path, key.strip())} must be a boolean (type={type(raw).__name__})"
            )
        return raw

    def get_int(
        self,
        key: str,
        *,
        default: int | object = _MISSING,
        min_value: int | None = None,
        max_value: int | None = None,
    ) -> int:
        raw = self._get_raw(key, default=default)
        label = _join_path(self.path, key.strip())
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise TypeError(f"{label} must be an int (type={type(raw).__name__})")
        if min_value is not None and raw < min_value:
            raise ValueError(f"{label} must be >= {min_value} (got {raw})")
        if max_value is not None and raw > max_value:
            raise ValueError(f"{label} must be <= {max_value} (got {raw})")
        return raw

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _MISSING,
        allow_empty: bool = False,
        choices: Iterable[str] | None = None,
    ) -> str | None:
        raw = self._get_raw(key, default=default)
        if raw is None:
            return None

        label = _join_path(self.path, key.strip())
        if not isinstance(raw, str):
            raise TypeError(f"{label} must be a string (type={type(raw).__name__})")
        value = raw.strip()
        if not value and not allow_empty:
            raise ValueError(f"{label} cannot be empty")
        if choices is not None:
            allowed = tuple(choices)
            if value not in allowed:
                raise ValueError(f"{label} must be one of: {', '.join(allowed)} (got {value!r})")
        return value

    def get_text(self, key: str, *, default: str | None | object = _MISSING) -> str | None:
        """Like `get_str` but keeps the value verbatim (no stripping)."""

        raw = self._get_raw(key, default=default)
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise TypeError(
                f"{_join_path(self.path, key.strip())} must be a string (type={type(raw).__name__})"
            )
        return raw

    def get_list_str(
        self,
        key: str,
        *,
        default: list[str] | tuple[str, ...] | object = _MISSING,
        allow_empty: bool = False,
    ) -> list[str]:
        raw = self._get_raw(key, default=default)
        label = _join_path(self.path, key.strip())
        if not isinstance(raw, (list, tuple)):
            raise TypeError(f"{label} must be a list[str] (type={type(raw).__name__})")

        items: list[str] = []
        for idx, item in enumerate(raw):
            if not isinstance(item, str):
                raise TypeError(f"{label}[{idx}] must be a string (type={type(item).__name__})")
            trimmed = item.strip()
            if not trimmed:
                raise ValueError(f"{label}[{idx}] cannot be empty")
            items.append(trimmed)

        if not items and not allow_empty:
            raise ValueError(f"{label} cannot be empty")
        return items
