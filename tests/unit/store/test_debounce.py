"""Tests for Debouncer and run_in_background."""

from __future__ import annotations

import threading

import pytest

from holorag.store.background import run_in_background
from holorag.store.debounce import Debouncer


def test_schedule_then_flush_runs_once():
    calls = []
    d = Debouncer(60, lambda: calls.append(1))
    d.schedule()
    d.schedule()
    d.schedule()
    assert d.pending
    assert d.flush() is True
    assert calls == [1]
    assert not d.pending


def test_flush_without_pending_is_noop():
    calls = []
    d = Debouncer(60, lambda: calls.append(1))
    assert d.flush() is False
    assert calls == []


def test_cancel_drops_pending_run():
    calls = []
    d = Debouncer(60, lambda: calls.append(1))
    d.schedule()
    assert d.cancel() is True
    assert d.flush() is False
    assert calls == []


def test_timer_fires_after_delay():
    fired = threading.Event()
    d = Debouncer(0.01, fired.set)
    d.schedule()
    assert fired.wait(timeout=5)


def test_action_failure_is_logged_not_raised(caplog):
    def boom():
        raise OSError("read-only filesystem")

    d = Debouncer(60, boom, name="save")
    d.schedule()
    assert d.flush() is True
    assert "Deferred save failed" in caplog.text


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        Debouncer(-1, lambda: None)


def test_run_in_background_runs_target():
    result = []
    thread = run_in_background(result.append, 42, name="t")
    thread.join(timeout=5)
    assert result == [42]
    assert thread.daemon


def test_run_in_background_logs_failure(caplog):
    def boom():
        raise RuntimeError("nope")

    run_in_background(boom, name="explode").join(timeout=5)
    assert "explode" in caplog.text
