"""Single-writer state cells shared between the frame loop and the logger."""

import logging
import threading

logger = logging.getLogger(__name__)


class StateCell:
    """
    Holds the latest value of one published channel.

    Values are replaced whole, never mutated, so a reader always gets a
    complete record. Subscribers are called synchronously after each set().
    """

    def __init__(self, initial=None):
        self._lock = threading.Lock()
        self._value = initial
        self._version = 0
        self._subscribers = []

    def get(self):
        with self._lock:
            return self._value

    @property
    def version(self):
        """Number of set() calls so far."""
        with self._lock:
            return self._version

    def set(self, value):
        with self._lock:
            self._value = value
            self._version += 1
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(value)
            except Exception:
                logger.exception("State cell subscriber failed")

    def subscribe(self, callback):
        """Register *callback(value)*; returns a function that unsubscribes."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe
