"""Reusable script-assembly kernel (emitter + fragment authoring kit).

This package is intentionally independent of `machine_init.*`. Capability
vocabularies, rule tables and epilogue ordering live in the consuming application.
"""

from scriptkit.config_section import ConfigSection
from scriptkit.engine.emitter import (
    DEFAULT_BANNER,
    DefaultEmitRecorder,
    EmitRecorder,
    EmittedFragment,
    NullEmitRecorder,
    ScriptEmitter,
)
from scriptkit.fragment_registry import FragmentRegistry
from scriptkit.fragment_types import FRAGMENT_KINDS, FragmentGenerator, FragmentKind, FragmentRef

__all__ = [
    "ConfigSection",
    "DEFAULT_BANNER",
    "DefaultEmitRecorder",
    "EmitRecorder",
    "EmittedFragment",
    "FRAGMENT_KINDS",
    "FragmentGenerator",
    "FragmentKind",
    "FragmentRef",
    "FragmentRegistry",
    "NullEmitRecorder",
    "ScriptEmitter",
]
