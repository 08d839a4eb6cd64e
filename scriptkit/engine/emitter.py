"""Banner-separated script concatenation.

This module is intentionally app-agnostic and must not import `machine_init.*`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Protocol, TypeAlias

Section: TypeAlias = Literal["body", "marker", "after_marker"]

DEFAULT_BANNER = (
    "###########################\n"
    "set +x\n"
    + 'echo ""\n' * 5
    + "set -x\n\n\n\n\n"
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmittedFragment:
    label: str
    section: Section
    chars: int
    banner: bool = True


class EmitRecorder(Protocol):
    def on_fragment(self, record: EmittedFragment) -> None:
        ...

    def on_marker(self, marker: str) -> None:
        ...


class DefaultEmitRecorder:
    def __init__(self, log: logging.Logger | None = None):
        self._logger = log or logger

    def on_fragment(self, record: EmittedFragment) -> None:
        self._logger.debug(
            "Emitted fragment %s (section=%s, chars=%d)", record.label, record.section, record.chars
        )

    def on_marker(self, marker: str) -> None:
        self._logger.info("Emitted completion marker %r", marker)


class NullEmitRecorder:
    def on_fragment(self, record: EmittedFragment) -> None:
        return

    def on_marker(self, marker: str) -> None:
        return


def _validate_recorder(recorder: EmitRecorder) -> None:
    for name in ("on_fragment", "on_marker"):
        method = getattr(recorder, name, None)
        if method is None or not callable(method):
            raise TypeError(f"Emit recorder missing required method: {name}")


class ScriptEmitter:
    """Append-only script builder with a single completion marker.

    Fragments land in three sections, in this order: the body, the completion
    marker, and the after-marker tail reserved for steps that must run last.
    Nothing is ever reordered or deduplicated.
    """

    def __init__(self, *, banner: str = DEFAULT_BANNER, recorder: EmitRecorder | None = None):
        if not isinstance(banner, str):
            raise TypeError(f"banner must be a string (type={type(banner).__name__})")
        self._banner = banner
        self._recorder = recorder or DefaultEmitRecorder()
        _validate_recorder(self._recorder)

        self._parts: list[str] = []
        self._records: list[EmittedFragment] = []
        self._marker: str | None = None

    @property
    def records(self) -> tuple[EmittedFragment, ...]:
        return tuple(self._records)

    @property
    def included(self) -> tuple[str, ...]:
        return tuple(record.label for record in self._records if record.section != "marker")

    def _write(self, label: str, text: str, *, section: Section, banner: bool) -> None:
        if not isinstance(label, str) or not label.strip():
            raise ValueError("Fragment label must be a non-empty string")
        if not isinstance(text, str):
            raise TypeError(f"Fragment {label} text must be a string (type={type(text).__name__})")

        if banner:
            self._parts.append(self._banner)
        self._parts.append(text)

        record = EmittedFragment(label=label.strip(), section=section, chars=len(text), banner=banner)
        self._records.append(record)
        self._recorder.on_fragment(record)

    def append(self, label: str, text: str, *, banner: bool = True) -> None:
        if self._marker is not None:
            raise ValueError(
                f"Cannot append fragment {label} to the body: completion marker already emitted"
            )
        self._write(label, text, section="body", banner=banner)

    def mark_complete(self, marker: str) -> None:
        if self._marker is not None:
            raise ValueError(f"Completion marker already emitted: {self._marker!r}")
        if not isinstance(marker, str) or not marker.strip() or "\n" in marker:
            raise ValueError("Completion marker must be a non-empty single line")

        marker = marker.strip()
        self._parts.append(self._banner)
        self._parts.append(f"###########################\n# {marker}\n")
        self._parts.append(f'echo "{marker}"\n\n')
        self._marker = marker
        self._records.append(EmittedFragment(label=marker, section="marker", chars=len(marker)))
        self._recorder.on_marker(marker)

    def append_after_marker(self, label: str, text: str) -> None:
        if self._marker is None:
            raise ValueError(
                f"Cannot append fragment {label} after the completion marker: marker not emitted yet"
            )
        self._write(label, text, section="after_marker", banner=True)

    def render(self) -> str:
        return "".join(self._parts) + self._banner
