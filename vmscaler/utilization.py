"""UtilizationSource implementations."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from vmscaler.api.model import Instance, InstanceId


@dataclass(frozen=True, slots=True)
class Reading:
    utilization: float = 0.0
    busy: bool = False


def _key(instance: Instance | InstanceId) -> InstanceId:
    return instance.id if isinstance(instance, Instance) else instance


@dataclass
class UtilizationTable:
    """Utilization figures set by hand; unknown instances read as idle and unused."""

    _readings: dict[InstanceId, Reading] = field(default_factory=dict)

    def set(
        self,
        instance: Instance | InstanceId,
        utilization: float = 0.0,
        busy: bool = False,
    ) -> None:
        self._readings[_key(instance)] = Reading(utilization=utilization, busy=busy)

    def forget(self, instance: Instance | InstanceId) -> None:
        self._readings.pop(_key(instance), None)

    def hourly_utilization(self, instance: Instance) -> float:
        return self._readings.get(instance.id, Reading()).utilization

    def is_busy_or_pending(self, instance: Instance) -> bool:
        return self._readings.get(instance.id, Reading()).busy


class TrailingWindowUtilization:
    """Busy fraction of each instance over a trailing time window.

    Work is reported either as closed intervals (``mark_busy``) or as
    open spans (``start_work`` / ``finish_work``). Several spans may run on
    one instance at once; it stays busy until each has finished. Queued
    work that has not started yet is flagged with ``set_pending``.
    Overlapping work counts once.
    """

    def __init__(
        self,
        window: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window <= 0:
            raise ValueError(f"window must be > 0, got {window}")
        self._window = window
        self._clock = clock
        self._intervals: dict[InstanceId, list[tuple[float, float]]] = {}
        self._running: dict[InstanceId, list[float]] = {}
        self._pending: set[InstanceId] = set()

    @property
    def window(self) -> float:
        return self._window

    def mark_busy(self, instance: Instance | InstanceId, start: float, end: float) -> None:
        if end < start:
            raise ValueError(f"Interval ends before it starts: {start} > {end}")
        self._intervals.setdefault(_key(instance), []).append((start, end))

    def start_work(self, instance: Instance | InstanceId, at: float | None = None) -> None:
        self._running.setdefault(_key(instance), []).append(
            self._clock() if at is None else at
        )

    def finish_work(self, instance: Instance | InstanceId, at: float | None = None) -> None:
        key = _key(instance)
        if not (starts := self._running.get(key)):
            return
        started = starts.pop(0)
        if not starts:
            del self._running[key]
        self.mark_busy(key, started, self._clock() if at is None else at)

    def running(self, instance: Instance | InstanceId) -> int:
        return len(self._running.get(_key(instance), ()))

    def set_pending(self, instance: Instance | InstanceId, pending: bool) -> None:
        if pending:
            self._pending.add(_key(instance))
        else:
            self._pending.discard(_key(instance))

    def forget(self, instance: Instance | InstanceId) -> None:
        key = _key(instance)
        self._intervals.pop(key, None)
        self._running.pop(key, None)
        self._pending.discard(key)

    def hourly_utilization(self, instance: Instance) -> float:
        now = self._clock()
        since = now - self._window

        intervals = [(s, e) for s, e in self._intervals.get(instance.id, []) if e > since]
        if intervals:
            self._intervals[instance.id] = list(intervals)
        else:
            self._intervals.pop(instance.id, None)

        intervals.extend((started, now) for started in self._running.get(instance.id, ()))

        clipped = [(max(s, since), min(e, now)) for s, e in intervals]
        return min(1.0, _covered(clipped) / self._window)

    def is_busy_or_pending(self, instance: Instance) -> bool:
        return bool(self._running.get(instance.id)) or instance.id in self._pending


def _covered(intervals: list[tuple[float, float]]) -> float:
    """Length of the union of ``intervals``."""
    total = 0.0
    end = float("-inf")
    for s, e in sorted(intervals):
        s = max(s, end)
        if e > s:
            total += e - s
            end = e
    return total
