import pytest

from vmscaler.api.model import Instance
from vmscaler.api.protocols import UtilizationSource
from vmscaler.utilization import TrailingWindowUtilization, UtilizationTable

_VM = Instance(id="batch-0", kind="batch")


class _Clock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestUtilizationTable:
    def test_unknown_instance_is_idle(self):
        table = UtilizationTable()
        assert table.hourly_utilization(_VM) == 0.0
        assert table.is_busy_or_pending(_VM) is False

    def test_set_by_instance_or_id(self):
        table = UtilizationTable()
        table.set("batch-0", utilization=0.4, busy=True)
        assert table.hourly_utilization(_VM) == 0.4
        table.set(_VM, utilization=0.1)
        assert table.is_busy_or_pending(_VM) is False

    def test_forget(self):
        table = UtilizationTable()
        table.set(_VM, utilization=0.4, busy=True)
        table.forget(_VM)
        assert table.hourly_utilization(_VM) == 0.0

    def test_satisfies_protocol(self):
        assert isinstance(UtilizationTable(), UtilizationSource)


class TestTrailingWindowUtilization:
    def test_fraction_of_window(self):
        clock = _Clock(3600.0)
        source = TrailingWindowUtilization(window=3600.0, clock=clock)
        source.mark_busy(_VM, 0.0, 900.0)
        source.mark_busy(_VM, 1800.0, 2700.0)
        assert source.hourly_utilization(_VM) == 0.5

    def test_old_work_slides_out(self):
        clock = _Clock(3600.0)
        source = TrailingWindowUtilization(window=3600.0, clock=clock)
        source.mark_busy(_VM, 0.0, 1800.0)
        assert source.hourly_utilization(_VM) == 0.5

        clock.now = 4500.0
        assert source.hourly_utilization(_VM) == 0.25

        clock.now = 6000.0
        assert source.hourly_utilization(_VM) == 0.0

    def test_running_work_counts_and_marks_busy(self):
        clock = _Clock(1000.0)
        source = TrailingWindowUtilization(window=1000.0, clock=clock)
        source.start_work(_VM, at=500.0)

        assert source.is_busy_or_pending(_VM)
        assert source.hourly_utilization(_VM) == 0.5

        clock.now = 1200.0
        source.finish_work(_VM)
        assert not source.is_busy_or_pending(_VM)
        assert source.hourly_utilization(_VM) == 0.7

    def test_pending_work_is_busy(self):
        source = TrailingWindowUtilization(clock=_Clock())
        source.set_pending(_VM, True)
        assert source.is_busy_or_pending(_VM)
        source.set_pending(_VM, False)
        assert not source.is_busy_or_pending(_VM)

    def test_overlapping_intervals_are_capped(self):
        source = TrailingWindowUtilization(window=100.0, clock=_Clock(100.0))
        source.mark_busy(_VM, 0.0, 100.0)
        source.mark_busy(_VM, 0.0, 100.0)
        assert source.hourly_utilization(_VM) == 1.0

    def test_overlapping_intervals_count_once(self):
        source = TrailingWindowUtilization(window=100.0, clock=_Clock(100.0))
        source.mark_busy(_VM, 0.0, 50.0)
        source.mark_busy(_VM, 0.0, 50.0)
        assert source.hourly_utilization(_VM) == 0.5

        source.mark_busy(_VM, 25.0, 75.0)
        source.mark_busy(_VM, 30.0, 40.0)
        assert source.hourly_utilization(_VM) == 0.75

    def test_concurrent_work_keeps_instance_busy(self):
        clock = _Clock(0.0)
        source = TrailingWindowUtilization(window=100.0, clock=clock)
        source.start_work(_VM, at=10.0)
        source.start_work(_VM, at=20.0)
        assert source.running(_VM) == 2

        source.finish_work(_VM, at=30.0)
        assert source.running(_VM) == 1
        assert source.is_busy_or_pending(_VM)

        clock.now = 50.0
        assert source.hourly_utilization(_VM) == 0.4

        source.finish_work(_VM, at=60.0)
        assert not source.is_busy_or_pending(_VM)
        clock.now = 100.0
        assert source.hourly_utilization(_VM) == 0.5

    def test_finish_without_start_is_ignored(self):
        source = TrailingWindowUtilization(window=100.0, clock=_Clock(100.0))
        source.finish_work(_VM, at=50.0)
        assert source.hourly_utilization(_VM) == 0.0
        assert source.running(_VM) == 0

    def test_forget(self):
        source = TrailingWindowUtilization(window=100.0, clock=_Clock(100.0))
        source.mark_busy(_VM, 0.0, 50.0)
        source.start_work(_VM)
        source.forget(_VM)
        assert source.hourly_utilization(_VM) == 0.0
        assert not source.is_busy_or_pending(_VM)

    def test_rejects_inverted_interval(self):
        with pytest.raises(ValueError):
            TrailingWindowUtilization().mark_busy(_VM, 10.0, 5.0)

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValueError):
            TrailingWindowUtilization(window=0)
