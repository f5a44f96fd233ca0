"""Tests for the background rescan schedule."""

import threading

from theorogram.moderation.scheduler import RescanScheduler


class CountingRescanner:
    def __init__(self, fail=False, target=2):
        self.calls = 0
        self.fail = fail
        self.target = target
        self.done = threading.Event()

    def run_once(self):
        self.calls += 1
        if self.calls >= self.target:
            self.done.set()
        if self.fail:
            raise RuntimeError("database unreachable")


def test_runs_on_interval_until_stopped():
    rescanner = CountingRescanner()
    scheduler = RescanScheduler(rescanner, interval_seconds=0.01)

    scheduler.start()
    assert rescanner.done.wait(5)
    scheduler.stop()

    assert not scheduler.running
    assert rescanner.calls >= 2


def test_failing_runs_do_not_kill_the_schedule():
    rescanner = CountingRescanner(fail=True, target=3)
    scheduler = RescanScheduler(rescanner, interval_seconds=0.01)

    scheduler.start()
    assert rescanner.done.wait(5)
    scheduler.stop()

    assert rescanner.calls >= 3
    assert scheduler.runs >= 3


def test_run_immediately_fires_before_first_interval():
    rescanner = CountingRescanner(target=1)
    scheduler = RescanScheduler(rescanner, interval_seconds=60, run_immediately=True)

    scheduler.start()
    assert rescanner.done.wait(5)
    scheduler.stop()

    assert rescanner.calls == 1


def test_default_interval_is_six_hours():
    assert RescanScheduler(CountingRescanner()).interval == 6 * 3600
