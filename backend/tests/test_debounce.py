from __future__ import annotations

from config.tuning import AdaptiveTier
from debounce import AdaptiveDebouncer, Debouncer, FrameSampler
from fakes import ManualScheduler


def test_burst_commits_only_last_value():
    sched = ManualScheduler()
    commits = []
    d = Debouncer(300, sched, on_commit=commits.append)

    for i in range(5):
        d.push(i)
        sched.advance(0.1)
    assert commits == []
    assert d.pending

    sched.advance(0.3)
    assert commits == [4]
    assert d.value == 4
    assert not d.pending


def test_value_keeps_initial_until_first_commit():
    sched = ManualScheduler()
    d = Debouncer(300, sched, initial="start")
    d.push("next")
    sched.advance(0.2)
    assert d.value == "start"
    sched.advance(0.2)
    assert d.value == "next"


def test_cancel_drops_pending_value():
    sched = ManualScheduler()
    commits = []
    d = Debouncer(300, sched, on_commit=commits.append)
    d.push("a")
    d.cancel()
    sched.advance(1.0)
    assert commits == []
    assert sched.pending == 0


def test_flush_commits_immediately():
    sched = ManualScheduler()
    commits = []
    d = Debouncer(300, sched, on_commit=commits.append)
    d.push("a")
    d.flush()
    assert commits == ["a"]
    sched.advance(1.0)
    assert commits == ["a"]


def test_failing_commit_callback_does_not_break_gate():
    sched = ManualScheduler()

    def boom(_v):
        raise RuntimeError("nope")

    d = Debouncer(100, sched, on_commit=boom)
    d.push(1)
    sched.advance(0.2)
    assert d.value == 1
    d.push(2)
    sched.advance(0.2)
    assert d.value == 2


def test_set_delay_restarts_pending_timer():
    sched = ManualScheduler()
    commits = []
    d = Debouncer(400, sched, on_commit=commits.append)
    d.push("a")
    sched.advance(0.3)
    d.set_delay(200)
    sched.advance(0.1)
    assert commits == []
    sched.advance(0.2)
    assert commits == ["a"]


def test_sampler_keeps_default_until_window_full():
    s = FrameSampler()
    s.record_durations([16.6] * 9)
    assert s.fps is None
    assert s.delay_ms == 400


def test_sampler_tiers():
    fast = FrameSampler()
    assert fast.record_durations([16.6] * 10) == 200

    mid = FrameSampler()
    assert mid.record_durations([25.0] * 10) == 400

    slow = FrameSampler()
    assert slow.record_durations([40.0] * 10) == 800


def test_sampler_boundaries_are_inclusive():
    # 20ms frames are exactly 50 fps
    assert FrameSampler().record_durations([20.0] * 10) == 200


def test_sampler_window_slides():
    s = FrameSampler()
    s.record_durations([40.0] * 10)
    assert s.delay_ms == 800
    s.record_durations([16.0] * 10)
    assert s.delay_ms == 200
    assert s.samples == 10


def test_record_frame_uses_timestamp_deltas():
    s = FrameSampler()
    ts = 0.0
    s.record_frame(ts)
    for _ in range(10):
        ts += 16.0
        s.record_frame(ts)
    assert s.delay_ms == 200


def test_custom_tiers_are_sorted():
    s = FrameSampler(
        tiers=[AdaptiveTier(min_fps=0, delay_ms=900), AdaptiveTier(min_fps=20, delay_ms=100)],
        window=2,
    )
    assert s.record_durations([10.0, 10.0]) == 100
    assert s.record_durations([100.0, 100.0]) == 900


def test_adaptive_debouncer_follows_sampler():
    sched = ManualScheduler()
    commits = []
    d = AdaptiveDebouncer(FrameSampler(), sched, on_commit=commits.append)
    assert d.delay_ms == 400

    d.push("a")
    d.record_durations([16.6] * 10)
    assert d.delay_ms == 200
    # Tier change restarted the pending timer with the new delay.
    sched.advance(0.2)
    assert commits == ["a"]


def test_adaptive_debouncer_slows_down_on_poor_fps():
    sched = ManualScheduler()
    commits = []
    d = AdaptiveDebouncer(FrameSampler(), sched, on_commit=commits.append)
    d.record_durations([40.0] * 10)
    d.push("a")
    sched.advance(0.7)
    assert commits == []
    sched.advance(0.2)
    assert commits == ["a"]
