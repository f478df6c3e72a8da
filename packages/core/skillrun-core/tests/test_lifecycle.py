"""Tests for lifecycle events, sinks and the emitter."""

import json
import logging
from pathlib import Path

import pytest

from skillrun_core import (
    InMemoryLifecycleSink,
    JsonLinesLifecycleSink,
    LifecycleEmitter,
    LifecycleEvent,
    LifecyclePhase,
    LifecycleSink,
    LoggingLifecycleSink,
)


def _event(phase=LifecyclePhase.INVOKED, iid="abc123", **kwargs):
    return LifecycleEvent(
        invocation_id=iid, skill_id="databases", operation="BACKUP", phase=phase, **kwargs
    )


class _BrokenSink(LifecycleSink):
    def write(self, event):
        raise OSError("disk full")


class TestLifecycleEvent:
    def test_to_dict(self):
        data = _event(LifecyclePhase.FAILED, detail="timeout", attempts=3, exit_code=2).to_dict()
        assert data["phase"] == "failed"
        assert data["detail"] == "timeout"
        assert data["attempts"] == 3
        assert data["exit_code"] == 2
        assert data["timestamp"].endswith("+00:00")

    def test_terminal_phases(self):
        assert not LifecyclePhase.INVOKED.terminal
        assert LifecyclePhase.COMPLETED.terminal
        assert LifecyclePhase.FAILED.terminal
        assert LifecyclePhase.CANCELLED.terminal


class TestInMemoryLifecycleSink:
    def test_records_in_order(self):
        sink = InMemoryLifecycleSink()
        sink.write(_event(LifecyclePhase.INVOKED))
        sink.write(_event(LifecyclePhase.COMPLETED))
        assert [e.phase for e in sink.events] == [
            LifecyclePhase.INVOKED,
            LifecyclePhase.COMPLETED,
        ]
        assert len(sink) == 2

    def test_for_invocation(self):
        sink = InMemoryLifecycleSink()
        sink.write(_event(iid="one"))
        sink.write(_event(iid="two"))
        assert [e.invocation_id for e in sink.for_invocation("two")] == ["two"]

    def test_events_is_a_snapshot(self):
        sink = InMemoryLifecycleSink()
        snapshot = sink.events
        sink.write(_event())
        assert snapshot == []


class TestJsonLinesLifecycleSink:
    def test_appends_one_line_per_event(self, tmp_path):
        path = tmp_path / "audit" / "lifecycle.jsonl"
        sink = JsonLinesLifecycleSink(path)
        sink.write(_event(LifecyclePhase.INVOKED))
        sink.write(_event(LifecyclePhase.FAILED, detail="security_issue: denied", exit_code=2))

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["phase"] == "invoked"
        assert json.loads(lines[1])["detail"] == "security_issue: denied"
        sink.close()

    def test_keeps_one_handle_until_closed(self, tmp_path, monkeypatch):
        path = tmp_path / "lifecycle.jsonl"
        sink = JsonLinesLifecycleSink(path)
        opened = []
        real_open = Path.open

        def counting_open(self, *args, **kwargs):
            opened.append(self)
            return real_open(self, *args, **kwargs)

        monkeypatch.setattr(Path, "open", counting_open)
        sink.write(_event(LifecyclePhase.INVOKED))
        sink.write(_event(LifecyclePhase.COMPLETED))
        assert opened == [path]

        sink.close()
        sink.write(_event(LifecyclePhase.CANCELLED))
        sink.close()
        assert opened == [path, path]
        lines = path.read_text(encoding="utf-8").splitlines()
        phases = [json.loads(line)["phase"] for line in lines]
        assert phases == ["invoked", "completed", "cancelled"]


class TestLoggingLifecycleSink:
    def test_logs_completed_at_info(self, caplog):
        sink = LoggingLifecycleSink()
        with caplog.at_level(logging.INFO, logger="skillrun.lifecycle"):
            sink.write(_event(LifecyclePhase.COMPLETED))
        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert "databases/BACKUP completed" in record.getMessage()
        assert record.lifecycle["phase"] == "completed"

    def test_logs_failed_at_warning(self, caplog):
        sink = LoggingLifecycleSink(level=logging.DEBUG)
        with caplog.at_level(logging.DEBUG, logger="skillrun.lifecycle"):
            sink.write(_event(LifecyclePhase.FAILED, detail="timeout"))
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage().endswith("failed: timeout")


class TestLifecycleEmitter:
    def test_fans_out_to_all_sinks(self):
        first, second = InMemoryLifecycleSink(), InMemoryLifecycleSink()
        LifecycleEmitter([first, second]).emit(_event())
        assert len(first) == 1
        assert len(second) == 1

    def test_accepts_single_sink(self):
        sink = InMemoryLifecycleSink()
        emitter = LifecycleEmitter(sink)
        assert emitter.sinks == (sink,)

    def test_no_sinks(self):
        emitter = LifecycleEmitter()
        emitter.emit(_event())
        assert repr(emitter) == "LifecycleEmitter(0 sinks)"

    def test_failing_sink_is_contained(self, caplog):
        healthy = InMemoryLifecycleSink()
        emitter = LifecycleEmitter([_BrokenSink(), healthy])
        with caplog.at_level(logging.WARNING, logger="skillrun_core.lifecycle"):
            emitter.emit(_event())
        assert len(healthy) == 1
        assert "_BrokenSink failed" in caplog.text

    def test_rejects_non_sinks(self):
        with pytest.raises(TypeError, match="LifecycleSink"):
            LifecycleEmitter([object()])  # type: ignore[list-item]
