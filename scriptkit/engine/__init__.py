"""Engine primitives for assembling banner-separated scripts."""

from scriptkit.engine.emitter import (
    DEFAULT_BANNER,
    DefaultEmitRecorder,
    EmitRecorder,
    EmittedFragment,
    NullEmitRecorder,
    ScriptEmitter,
)

__all__ = [
    "DEFAULT_BANNER",
    "DefaultEmitRecorder",
    "EmitRecorder",
    "EmittedFragment",
    "NullEmitRecorder",
    "ScriptEmitter",
]
