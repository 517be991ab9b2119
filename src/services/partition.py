"""Split a file into multipart upload byte ranges."""

import math
from dataclasses import dataclass
from typing import List

from ..core.exceptions import InvalidSizeError

MIN_PART_SIZE = 5 * 1024 * 1024  # S3 minimum for every part but the last
MAX_PARTS = 10000


@dataclass(frozen=True)
class ByteRange:
    """Half-open byte range [start, end) of one part."""

    part_number: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class PartitionPlan:
    part_count: int
    part_size: int
    ranges: List[ByteRange]


def plan_parts(
    total_size: int, part_size: int, min_part_size: int = MIN_PART_SIZE
) -> PartitionPlan:
    """
    Compute ``ceil(total_size / part_size)`` contiguous ranges.

    Every range is ``part_size`` long except the last, which holds the
    remainder (at least one byte).
    """
    if total_size <= 0:
        raise InvalidSizeError("Total size must be greater than 0")
    if part_size < min_part_size:
        raise InvalidSizeError(
            f"Part size {part_size} is below the minimum of {min_part_size} bytes"
        )

    part_count = math.ceil(total_size / part_size)
    if part_count > MAX_PARTS:
        raise InvalidSizeError(
            f"{part_count} parts exceed the limit of {MAX_PARTS}; use a larger part size"
        )

    ranges = [
        ByteRange(
            part_number=index + 1,
            start=index * part_size,
            end=min((index + 1) * part_size, total_size),
        )
        for index in range(part_count)
    ]
    return PartitionPlan(part_count=part_count, part_size=part_size, ranges=ranges)
