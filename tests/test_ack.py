import threading
import time

import pytest

from meshdevice.ack import DEFAULT_ACK_TIMEOUT, DEFAULT_MAX_RETRIES, AckTracker, PendingAck


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker():
    return AckTracker(ack_timeout=60)


def timed_tracker(clock, max_retries=0):
    return AckTracker(ack_timeout=0.1, max_retries=max_retries, clock=clock)


def expire(tracker, clock, seconds=0.2):
    clock.advance(seconds)
    tracker.check_timeouts()


def test_defaults():
    tr = AckTracker()
    assert tr.ack_timeout == DEFAULT_ACK_TIMEOUT
    assert tr.max_retries == 0
    assert tr.pending_count() == 0


def test_negative_retries_use_default():
    tr = AckTracker(ack_timeout=0, max_retries=-1)
    assert tr.max_retries == DEFAULT_MAX_RETRIES
    assert tr.ack_timeout == DEFAULT_ACK_TIMEOUT


def test_track_and_resolve(tracker):
    acked = []
    tracker.track(0xDEADBEEF, PendingAck(on_ack=lambda: acked.append(True)))
    assert tracker.pending_count() == 1
    assert tracker.resolve(0xDEADBEEF) is True
    assert acked == [True]
    assert tracker.pending_count() == 0


def test_resolve_unknown(tracker):
    assert tracker.resolve(0x12345678) is False


def test_resolve_without_callback(tracker):
    tracker.track(0xAAAA, PendingAck())
    assert tracker.resolve(0xAAAA) is True


def test_cancel(tracker):
    called = []
    tracker.track(
        0xBBBB,
        PendingAck(on_ack=lambda: called.append(1), on_timeout=lambda: called.append(2)),
    )
    tracker.cancel(0xBBBB)
    assert tracker.pending_count() == 0
    assert tracker.resolve(0xBBBB) is False
    assert called == []


def test_track_replaces(tracker):
    calls = []
    for label in ("first", "second"):
        tracker.track(0xCCCC, PendingAck(on_ack=lambda label=label: calls.append(label)))
    assert tracker.pending_count() == 1
    tracker.resolve(0xCCCC)
    assert calls == ["second"]


def test_timeout_no_retries(clock):
    tr = timed_tracker(clock)
    timed_out = []
    tr.track(0x1111, PendingAck(on_timeout=lambda: timed_out.append(True)))
    expire(tr, clock)
    assert timed_out == [True]
    assert tr.pending_count() == 0


def test_not_timed_out_before_deadline(clock):
    tr = timed_tracker(clock)
    timed_out = []
    tr.track(0x1112, PendingAck(on_timeout=lambda: timed_out.append(True)))
    expire(tr, clock, 0.05)
    assert timed_out == []
    assert tr.pending_count() == 1


def test_timeout_with_retries(clock):
    tr = timed_tracker(clock, max_retries=2)
    retries = []
    timed_out = []
    tr.track(
        0x2222,
        PendingAck(resend=lambda: retries.append(1), on_timeout=lambda: timed_out.append(True)),
    )
    steps = [(1, [], 1), (2, [], 1), (2, [True], 0)]
    for expected_retries, expected_timed_out, expected_pending in steps:
        expire(tr, clock)
        assert len(retries) == expected_retries
        assert timed_out == expected_timed_out
        assert tr.pending_count() == expected_pending


def test_failing_resend_counts_as_attempt(clock):
    tr = timed_tracker(clock, max_retries=1)
    attempts = []
    timed_out = []

    def resend():
        attempts.append(1)
        raise OSError("link down")

    tr.track(0x6666, PendingAck(resend=resend, on_timeout=lambda: timed_out.append(True)))
    expire(tr, clock)
    assert len(attempts) == 1
    assert tr.pending_count() == 1
    expire(tr, clock)
    assert timed_out == [True]


def test_resolve_during_retries(clock):
    tr = timed_tracker(clock, max_retries=3)
    events = []
    tr.track(
        0x3333,
        PendingAck(
            resend=lambda: None,
            on_ack=lambda: events.append("ack"),
            on_timeout=lambda: events.append("timeout"),
        ),
    )
    expire(tr, clock)
    assert tr.resolve(0x3333) is True
    assert events == ["ack"]


def test_multiple_pending(tracker):
    for ack_hash in (0xAAAA, 0xBBBB, 0xCCCC):
        tracker.track(ack_hash, PendingAck())
    assert tracker.pending_count() == 3
    tracker.resolve(0xBBBB)
    assert tracker.pending_count() == 2
    tracker.cancel(0xAAAA)
    assert tracker.pending_count() == 1


def test_timeout_without_callbacks(clock):
    tr = timed_tracker(clock)
    tr.track(0x4444, PendingAck())
    expire(tr, clock)
    assert tr.pending_count() == 0


def test_no_retry_without_resend(clock):
    tr = timed_tracker(clock, max_retries=3)
    timed_out = []
    tr.track(0x5555, PendingAck(on_timeout=lambda: timed_out.append(True)))
    expire(tr, clock)
    assert timed_out == [True]


def test_track_does_not_mutate_caller_entry(clock):
    tr = timed_tracker(clock, max_retries=2)
    entry = PendingAck(resend=lambda: None)
    tr.track(0x7777, entry)
    expire(tr, clock)
    assert entry.retries == 0


@pytest.mark.parametrize("use_event", [False, True])
def test_stop(use_event):
    tr = AckTracker(ack_timeout=60)
    stop_event = threading.Event()
    args = (stop_event,) if use_event else ()
    thread = threading.Thread(target=tr.start, args=args, daemon=True)
    thread.start()
    time.sleep(0.05)
    if use_event:
        stop_event.set()
    else:
        tr.stop()
    thread.join(timeout=2.5)
    assert not thread.is_alive()


@pytest.mark.parametrize("ack_hash", [0, 0xFFFFFFFF])
def test_boundary_hashes(tracker, ack_hash):
    tracker.track(ack_hash, PendingAck())
    assert tracker.resolve(ack_hash) is True
    assert tracker.pending_count() == 0