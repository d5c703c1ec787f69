"""Millisecond clocks used by the timers of the tracking core."""

import time


def monotonic_ms():
    return time.monotonic() * 1000.0


class ManualClock:
    """Clock that only moves when told to. Used for replay and tests."""

    def __init__(self, start_ms=0.0):
        self.now_ms = float(start_ms)

    def __call__(self):
        return self.now_ms

    def advance(self, delta_ms):
        self.now_ms += delta_ms
        return self.now_ms

    def set(self, now_ms):
        if now_ms < self.now_ms:
            raise ValueError(f"Clock cannot go backwards ({now_ms} < {self.now_ms})")
        self.now_ms = float(now_ms)
        return self.now_ms
