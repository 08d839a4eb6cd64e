from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol

FragmentKind = Literal["capability", "fixed"]
FRAGMENT_KINDS: tuple[str, ...] = ("capability", "fixed")


class FragmentGenerator(Protocol):
    def __call__(self, request: Any) -> str:
        ...


@dataclass(frozen=True)
class FragmentRef:
    id: str
    generator: FragmentGenerator
    kind: FragmentKind = "capability"
    doc: str | None = None
    source: str | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise TypeError("FragmentRef.id must be a non-empty string")
        object.__setattr__(self, "id", self.id.strip())

        if not callable(self.generator):
            raise TypeError(
                f"FragmentRef.generator must be callable (fragment={self.id}, "
                f"type={type(self.generator).__name__})"
            )

        normalized_kind = str(self.kind).strip().lower()
        if normalized_kind not in FRAGMENT_KINDS:
            raise ValueError(
                f"FragmentRef.kind must be one of: {', '.join(FRAGMENT_KINDS)} (got {self.kind!r})"
            )
        object.__setattr__(self, "kind", normalized_kind)  # type: ignore[arg-type]

        if self.doc is not None and (not isinstance(self.doc, str) or not self.doc.strip()):
            raise TypeError("FragmentRef.doc must be a non-empty string or None")
        if self.source is not None and (
            not isinstance(self.source, str) or not self.source.strip()
        ):
            raise TypeError("FragmentRef.source must be a non-empty string or None")

        if self.tags:
            object.__setattr__(
                self, "tags", tuple(str(tag).strip() for tag in self.tags if str(tag).strip())
            )

    @property
    def key(self) -> tuple[str, str]:
        return (self.kind, self.id)

    def render(self, request: Any) -> str:
        text = self.generator(request)
        if text is None:
            raise ValueError(f"Fragment generator returned None (fragment={self.id})")
        if not isinstance(text, str):
            raise TypeError(
                f"Fragment generator returned non-string (fragment={self.id}, type={type(text).__name__})"
            )
        return text
