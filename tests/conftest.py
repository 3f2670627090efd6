from __future__ import annotations

from collections.abc import Callable

import pytest

from vmscaler.api.model import Instance
from vmscaler.config import ScalingConfig
from vmscaler.engine import ScalingDecisionEngine
from vmscaler.lifecycle import InMemoryLifecycle
from vmscaler.utilization import UtilizationTable

type Seeder = Callable[[str, list[tuple[float, bool]]], list[Instance]]


@pytest.fixture
def lifecycle() -> InMemoryLifecycle:
    return InMemoryLifecycle(kinds=["batch"])


@pytest.fixture
def utilization() -> UtilizationTable:
    return UtilizationTable()


@pytest.fixture
def engine(lifecycle: InMemoryLifecycle, utilization: UtilizationTable) -> ScalingDecisionEngine:
    return ScalingDecisionEngine(lifecycle, utilization, ScalingConfig())


@pytest.fixture
def seed(lifecycle: InMemoryLifecycle, utilization: UtilizationTable) -> Seeder:
    """Add one instance of ``kind`` per (utilization, busy) reading."""

    def _seed(kind: str, readings: list[tuple[float, bool]]) -> list[Instance]:
        instances = []
        for n, (util, busy) in enumerate(readings):
            instance = lifecycle.add(Instance(id=f"{kind}-seed-{n}", kind=kind))
            utilization.set(instance, utilization=util, busy=busy)
            instances.append(instance)
        return instances

    return _seed
