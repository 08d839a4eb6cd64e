import logging

import pytest

from scriptkit.engine.emitter import (
    DEFAULT_BANNER,
    DefaultEmitRecorder,
    EmittedFragment,
    NullEmitRecorder,
    ScriptEmitter,
)


def test_emitter_joins_fragments_with_banners_in_append_order():
    emitter = ScriptEmitter(banner="--\n", recorder=NullEmitRecorder())
    emitter.append("start", "#!/bin/bash\n", banner=False)
    emitter.append("b", "b\n")
    emitter.append("a", "a\n")
    emitter.append("b", "b\n")

    assert emitter.render() == "#!/bin/bash\n--\nb\n--\na\n--\nb\n--\n"
    assert emitter.included == ("start", "b", "a", "b")


def test_marker_is_written_once_between_body_and_tail():
    emitter = ScriptEmitter(banner="--\n", recorder=NullEmitRecorder())
    emitter.append("body", "x\n")
    emitter.mark_complete("DONE")
    emitter.append_after_marker("tail", "y\n")

    assert emitter.render() == '--\nx\n--\n###########################\n# DONE\necho "DONE"\n\n--\ny\n--\n'
    assert [r.section for r in emitter.records] == ["body", "marker", "after_marker"]
    assert emitter.included == ("body", "tail")


def test_append_after_marker_is_rejected():
    emitter = ScriptEmitter(recorder=NullEmitRecorder())
    emitter.mark_complete("DONE")
    with pytest.raises(ValueError, match=r"completion marker already emitted"):
        emitter.append("late", "x\n")


def test_marking_twice_is_rejected():
    emitter = ScriptEmitter(recorder=NullEmitRecorder())
    emitter.mark_complete("DONE")
    with pytest.raises(ValueError, match=r"already emitted"):
        emitter.mark_complete("DONE")


def test_tail_before_marker_is_rejected():
    emitter = ScriptEmitter(recorder=NullEmitRecorder())
    with pytest.raises(ValueError, match=r"marker not emitted yet"):
        emitter.append_after_marker("tail", "x\n")


def test_marker_must_be_single_line():
    emitter = ScriptEmitter(recorder=NullEmitRecorder())
    with pytest.raises(ValueError, match=r"single line"):
        emitter.mark_complete("A\nB")


def test_fragment_text_must_be_a_string():
    emitter = ScriptEmitter(recorder=NullEmitRecorder())
    with pytest.raises(TypeError, match=r"must be a string"):
        emitter.append("x", None)  # type: ignore[arg-type]


def test_default_banner_is_appended_after_last_fragment():
    emitter = ScriptEmitter(recorder=NullEmitRecorder())
    emitter.append("only", "x\n")
    assert emitter.render() == DEFAULT_BANNER + "x\n" + DEFAULT_BANNER


def test_default_recorder_logs_labels_and_marker(caplog):
    caplog.set_level(logging.DEBUG, logger="scriptkit.engine.emitter")
    emitter = ScriptEmitter(recorder=DefaultEmitRecorder())
    emitter.append("imds", "abc\n")
    emitter.mark_complete("DONE")

    assert "Emitted fragment imds (section=body, chars=4)" in caplog.text
    assert "Emitted completion marker 'DONE'" in caplog.text


def test_custom_recorder_sees_every_record():
    class Collecting:
        def __init__(self):
            self.records: list[EmittedFragment] = []
            self.markers: list[str] = []

        def on_fragment(self, record):
            self.records.append(record)

        def on_marker(self, marker):
            self.markers.append(marker)

    recorder = Collecting()
    emitter = ScriptEmitter(recorder=recorder)
    emitter.append("a", "1\n")
    emitter.mark_complete("DONE")
    emitter.append_after_marker("z", "2\n")

    assert [r.label for r in recorder.records] == ["a", "z"]
    assert recorder.markers == ["DONE"]


def test_recorder_missing_methods_is_rejected():
    class Incomplete:
        def on_fragment(self, record):
            return None

    with pytest.raises(TypeError, match=r"missing required method: on_marker"):
        ScriptEmitter(recorder=Incomplete())  # type: ignore[arg-type]
