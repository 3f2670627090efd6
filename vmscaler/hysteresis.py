"""Consecutive-idle-tick counters for sole instances of a kind."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from vmscaler.api.model import Instance, InstanceId


@dataclass
class IdleHysteresisTracker:
    """Counts consecutive idle ticks per instance id.

    An entry exists only while the instance is the sole member of its pool
    and has been idle on every tick since the entry was created.
    """

    _counts: dict[InstanceId, int] = field(default_factory=dict)

    def observe_idle(self, instance: Instance) -> int:
        count = self._counts.get(instance.id, 0) + 1
        self._counts[instance.id] = count
        return count

    def clear(self, instance: Instance) -> None:
        self._counts.pop(instance.id, None)

    def retain(self, ids: Iterable[InstanceId]) -> list[InstanceId]:
        """Drop every entry whose id is not in ``ids``; return the dropped ids."""
        keep = set(ids)
        dropped = [iid for iid in self._counts if iid not in keep]
        for iid in dropped:
            del self._counts[iid]
        return dropped

    def count(self, instance: Instance) -> int:
        return self._counts.get(instance.id, 0)

    def snapshot(self) -> dict[InstanceId, int]:
        return dict(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, instance: object) -> bool:
        match instance:
            case Instance(id=iid):
                return iid in self._counts
            case str() as iid:
                return iid in self._counts
            case _:
                return False
