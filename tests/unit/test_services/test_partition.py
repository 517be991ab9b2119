"""Unit tests for part planning."""

import pytest

from src.core.exceptions import InvalidSizeError
from src.services.partition import MAX_PARTS, MIN_PART_SIZE, plan_parts

MIB = 1024 * 1024


def test_plan_200_mib_with_8_mib_parts():
    plan = plan_parts(200 * MIB, 8 * MIB)

    assert plan.part_count == 25
    assert [r.part_number for r in plan.ranges] == list(range(1, 26))
    assert all(r.size == 8 * MIB for r in plan.ranges)


def test_last_part_holds_remainder():
    plan = plan_parts(20 * MIB + 3, 8 * MIB)

    assert plan.part_count == 3
    assert plan.ranges[-1].size == 4 * MIB + 3
    assert plan.ranges[-1].end == 20 * MIB + 3


def test_ranges_are_contiguous_and_cover_file():
    total = 123_456_789
    plan = plan_parts(total, 7 * MIB)

    assert plan.ranges[0].start == 0
    for prev, nxt in zip(plan.ranges, plan.ranges[1:]):
        assert prev.end == nxt.start
    assert plan.ranges[-1].end == total
    assert sum(r.size for r in plan.ranges) == total


def test_file_smaller_than_one_part():
    plan = plan_parts(10, MIN_PART_SIZE)

    assert plan.part_count == 1
    assert plan.ranges[0].start == 0
    assert plan.ranges[0].end == 10


@pytest.mark.parametrize("total", [0, -1])
def test_rejects_non_positive_size(total):
    with pytest.raises(InvalidSizeError):
        plan_parts(total, 8 * MIB)


def test_rejects_part_size_below_minimum():
    with pytest.raises(InvalidSizeError, match="below the minimum"):
        plan_parts(100 * MIB, MIN_PART_SIZE - 1)


def test_rejects_too_many_parts():
    with pytest.raises(InvalidSizeError, match="exceed the limit"):
        plan_parts(MAX_PARTS + 1, 1, min_part_size=1)
