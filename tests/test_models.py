"""Tests for cpubar data models."""

import dataclasses

import pytest

from cpubar.models import CoreCounters, CoreUsage, CounterSnapshot, TemperatureReading


def make_snapshot() -> CounterSnapshot:
    return CounterSnapshot(
        cores=(
            CoreCounters(core_id=4, user=1, nice=0, system=1, idle=8, total=10),
            CoreCounters(core_id=0, user=2, nice=0, system=2, idle=6, total=10),
        )
    )


def test_snapshot_core_ids_keep_order():
    """Test core_ids follow the order of the cores tuple."""
    assert make_snapshot().core_ids == (4, 0)


def test_snapshot_by_id():
    """Test by_id maps each id to its counters."""
    by_id = make_snapshot().by_id()
    assert set(by_id) == {0, 4}
    assert by_id[0].user == 2


def test_snapshot_len():
    """Test len() counts cores."""
    assert len(make_snapshot()) == 2
    assert len(CounterSnapshot(cores=())) == 0


def test_core_usage_frequency_defaults_to_unknown():
    """Test CoreUsage has no frequency unless given one."""
    usage = CoreUsage(core_id=1, usage_percent=12.5)
    assert usage.frequency_mhz is None


@pytest.mark.parametrize(
    "record",
    [
        CoreCounters(core_id=0, user=0, nice=0, system=0, idle=0, total=0),
        CoreUsage(core_id=0, usage_percent=0.0),
        TemperatureReading(label="edge", celsius=40.0),
        CounterSnapshot(cores=()),
    ],
)
def test_records_are_frozen_slots(record):
    """Test model records are immutable and slot-based."""
    field = dataclasses.fields(record)[0].name
    with pytest.raises(dataclasses.FrozenInstanceError):
        setattr(record, field, None)
    assert not hasattr(record, "__dict__")
