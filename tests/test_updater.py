import threading
import time

import pytest

from lbsync.updater import AntiBurstUpdater, PendingState, UpdaterState

QUIET = 0.1


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def running():
    started = []

    def _start(update, quiescence=QUIET):
        updater = AntiBurstUpdater(update, quiescence_seconds=quiescence)
        thread = threading.Thread(target=updater.run, daemon=True)
        thread.start()
        started.append((updater, thread))
        return updater

    yield _start
    for updater, thread in started:
        updater.stop()
        thread.join(timeout=2)


def test_pending_state_transitions():
    state = PendingState()
    assert state.state is UpdaterState.IDLE
    assert not state.take()

    state.mark()
    assert state.pending
    assert state.take()
    assert state.state is UpdaterState.FIRING
    assert state.finish()
    assert state.state is UpdaterState.IDLE


def test_signal_while_firing_keeps_change_pending():
    state = PendingState()
    state.mark()
    state.take()
    state.mark()
    assert not state.finish()
    assert state.state is UpdaterState.PENDING


def test_single_signal_fires_once(running):
    calls = []
    updater = running(lambda: calls.append(time.monotonic()))
    updater.signal()
    assert _wait_for(lambda: len(calls) == 1)
    time.sleep(QUIET * 4)
    assert len(calls) == 1
    assert updater.state is UpdaterState.IDLE


def test_burst_is_coalesced(running):
    calls = []
    updater = running(lambda: calls.append(time.monotonic()))
    for _ in range(10):
        updater.signal()
        time.sleep(QUIET / 5)
    assert calls == []
    assert _wait_for(lambda: len(calls) == 1)
    time.sleep(QUIET * 4)
    assert len(calls) == 1


def test_concurrent_signals_collapse(running):
    calls = []
    updater = running(lambda: calls.append(1))
    threads = [threading.Thread(target=updater.signal) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=2)
    assert _wait_for(lambda: len(calls) == 1)
    time.sleep(QUIET * 4)
    assert len(calls) == 1


def test_no_signal_no_update(running):
    calls = []
    running(lambda: calls.append(1))
    time.sleep(QUIET * 4)
    assert calls == []


def test_signal_during_update_triggers_another_update(running):
    entered = threading.Event()
    release = threading.Event()
    calls = []

    def update():
        calls.append(1)
        if len(calls) == 1:
            entered.set()
            release.wait(timeout=2)

    updater = running(update)
    updater.signal()
    assert entered.wait(timeout=2)
    assert updater.state is UpdaterState.FIRING

    signaller = threading.Thread(target=lambda: [updater.signal() for _ in range(3)])
    signaller.start()
    signaller.join(timeout=2)
    release.set()

    assert _wait_for(lambda: len(calls) == 2)
    time.sleep(QUIET * 4)
    assert len(calls) == 2


def test_failed_update_is_not_retried(running):
    calls = []

    def update():
        calls.append(1)
        raise RuntimeError("boom")

    updater = running(update)
    updater.signal()
    assert _wait_for(lambda: len(calls) == 1)
    time.sleep(QUIET * 4)
    assert len(calls) == 1
    assert updater.state is UpdaterState.IDLE

    updater.signal()
    assert _wait_for(lambda: len(calls) == 2)


def test_update_never_overlaps(running):
    active = []
    overlaps = []

    def update():
        if active:
            overlaps.append(1)
        active.append(1)
        time.sleep(QUIET / 2)
        active.pop()

    updater = running(update)
    for _ in range(5):
        updater.signal()
        time.sleep(QUIET * 1.5)
    time.sleep(QUIET * 3)
    assert overlaps == []
    assert updater.invocations >= 2


def test_rejects_non_positive_quiescence():
    with pytest.raises(ValueError):
        AntiBurstUpdater(lambda: None, quiescence_seconds=0)


def test_signal_waits_for_timer_loop():
    calls = []
    updater = AntiBurstUpdater(lambda: calls.append(1), quiescence_seconds=QUIET)
    signaller = threading.Thread(target=updater.signal, daemon=True)
    signaller.start()

    signaller.join(timeout=QUIET * 3)
    assert signaller.is_alive()
    assert updater.state is UpdaterState.PENDING

    runner = threading.Thread(target=updater.run, daemon=True)
    runner.start()
    try:
        signaller.join(timeout=2)
        assert not signaller.is_alive()
        assert _wait_for(lambda: len(calls) == 1)
    finally:
        updater.stop()
        runner.join(timeout=2)


def test_signal_after_stop_returns_immediately():
    updater = AntiBurstUpdater(lambda: None, quiescence_seconds=QUIET)
    updater.stop()
    signaller = threading.Thread(target=updater.signal, daemon=True)
    signaller.start()
    signaller.join(timeout=2)
    assert not signaller.is_alive()
