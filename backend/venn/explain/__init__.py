"""Text rendering of engine results."""

from .formatter import (
    PartitionStyle,
    format_partition,
    format_region,
    parse_partition_lines,
    partition_to_dict,
)

__all__ = [
    "PartitionStyle",
    "format_partition",
    "format_region",
    "parse_partition_lines",
    "partition_to_dict",
]
