"""Tests for observer throttle, dedup and debounce primitives."""

from bs4 import BeautifulSoup

from pageguard.dom.document import MutationRecord
from pageguard.observer.guard import AlertDedup, AnalysisThrottle, ObserverGuard
from pageguard.observer.watcher import DebounceTimer, MutationWatcher, adds_form


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _record(html: str) -> MutationRecord:
    soup = BeautifulSoup(html, "html.parser")
    return MutationRecord(target=soup, added_nodes=list(soup.contents))


def test_throttle_allows_one_run_per_window():
    clock = FakeClock()
    throttle = AnalysisThrottle(window=1.0, clock=clock)

    assert throttle.try_acquire()
    clock.advance(0.5)
    assert not throttle.try_acquire()
    clock.advance(0.4)
    assert not throttle.try_acquire()
    clock.advance(0.2)
    assert throttle.try_acquire()


def test_dropped_calls_do_not_extend_window():
    clock = FakeClock()
    throttle = AnalysisThrottle(window=1.0, clock=clock)
    throttle.try_acquire()
    for _ in range(5):
        clock.advance(0.19)
        throttle.try_acquire()
    clock.advance(0.1)
    assert throttle.try_acquire()


def test_dedup_first_time_only():
    dedup = AlertDedup()
    assert dedup.first_time("link:https://bit.ly/a")
    assert not dedup.first_time("link:https://bit.ly/a")
    assert dedup.first_time("script:https://bit.ly/a")
    assert "link:https://bit.ly/a" in dedup
    assert len(dedup) == 2


def test_guard_reset_clears_both():
    clock = FakeClock()
    guard = ObserverGuard(throttle_window=1.0, clock=clock)
    guard.throttle.try_acquire()
    guard.dedup.first_time("link:x")

    guard.reset()
    assert guard.throttle.try_acquire()
    assert "link:x" not in guard.dedup


def test_adds_form_detects_nested_forms():
    assert adds_form([_record("<form></form>")])
    assert adds_form([_record("<div><section><form></form></section></div>")])
    assert not adds_form([_record("<div>text</div>")])
    assert not adds_form([_record("just text")])


def test_debounce_keeps_first_deadline():
    clock = FakeClock()
    timer = DebounceTimer(0.05, clock)

    assert timer.arm()
    clock.advance(0.03)
    assert not timer.arm()
    clock.advance(0.03)
    assert timer.expired()


def test_watcher_coalesces_bursts():
    clock = FakeClock()
    watcher = MutationWatcher(0.05, clock)

    assert watcher.offer([_record("<form></form>")])
    assert not watcher.offer([_record("<form></form>")])
    assert not watcher.offer([_record("<div></div>")])
    assert not watcher.due()

    clock.advance(0.06)
    assert watcher.due()
    assert not watcher.due()
    assert watcher.batches_seen == 3
    assert watcher.rescans_scheduled == 1
