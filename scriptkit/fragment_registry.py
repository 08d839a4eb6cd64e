from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import Any, Iterable

from scriptkit.fragment_types import FRAGMENT_KINDS, FragmentKind, FragmentRef


def _check_kind(kind: str) -> str:
    normalized = (kind or "").strip().lower()
    if normalized not in FRAGMENT_KINDS:
        raise ValueError(f"Unknown fragment kind: {kind!r} (expected one of: {', '.join(FRAGMENT_KINDS)})")
    return normalized


@dataclass(frozen=True)
class FragmentRegistry:
    _by_key: dict[tuple[str, str], FragmentRef]

    @classmethod
    def from_refs(cls, refs: Iterable[FragmentRef]) -> "FragmentRegistry":
        entries: dict[tuple[str, str], FragmentRef] = {}
        for ref in refs:
            if ref.key in entries:
                raise ValueError(f"Duplicate {ref.kind} fragment id: {ref.id}")
            entries[ref.key] = ref
        return cls(_by_key=entries)

    def available(self, kind: FragmentKind = "capability") -> tuple[str, ...]:
        normalized = _check_kind(kind)
        return tuple(sorted(frag_id for frag_kind, frag_id in self._by_key if frag_kind == normalized))

    def describe(self) -> tuple[dict[str, Any], ...]:
        rows: list[dict[str, Any]] = []
        for ref in sorted(self._by_key.values(), key=lambda r: (r.kind, r.id)):
            rows.append(
                {
                    "fragment_id": ref.id,
                    "kind": ref.kind,
                    "doc": ref.doc,
                    "source": ref.source,
                    "tags": list(ref.tags),
                }
            )
        return tuple(rows)

    def find(self, fragment_id: str, *, kind: FragmentKind = "capability") -> FragmentRef | None:
        return self._by_key.get((_check_kind(kind), fragment_id))

    def get(self, fragment_id: str, *, kind: FragmentKind = "capability") -> FragmentRef:
        if not isinstance(fragment_id, str) or not fragment_id:
            raise ValueError("fragment_id must be a non-empty string")
        ref = self.find(fragment_id, kind=kind)
        if ref is not None:
            return ref

        suggestions = self.suggest(fragment_id, kind=kind)
        hint = f" (did you mean: {', '.join(suggestions)})" if suggestions else ""
        available = ", ".join(self.available(kind)) or "<none>"
        raise ValueError(
            f"Unknown {kind} fragment id: {fragment_id}{hint} (available: {available})"
        )

    def suggest(
        self, fragment_id: str, *, kind: FragmentKind = "capability", limit: int = 3
    ) -> tuple[str, ...]:
        key = (fragment_id or "").strip()
        if not key:
            return ()
        available = self.available(kind)
        if not available:
            return ()
        return tuple(difflib.get_close_matches(key, list(available), n=limit))
