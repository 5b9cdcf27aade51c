"""Wall-clock stopwatch for timing computations."""

from __future__ import annotations

from time import perf_counter

__all__ = ["Timer"]


class Timer:
    """Measures the seconds between :meth:`start` and :meth:`stop`.

    Also usable as a context manager that starts on entry and stops on exit.
    """

    def __init__(self) -> None:
        self._start: float | None = None
        self._end: float | None = None

    def start(self) -> None:
        """Record the starting instant."""
        self._start = perf_counter()

    def stop(self) -> None:
        """Record the finishing instant."""
        self._end = perf_counter()

    def elapsed(self) -> float:
        """Return the seconds between the recorded start and stop."""
        if self._start is None or self._end is None:
            raise RuntimeError("timer must be started and stopped before reading it")
        return self._end - self._start

    def __enter__(self) -> Timer:
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()