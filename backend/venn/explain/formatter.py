"""
Deterministic Partition Formatter - Always available, no I/O.

Formats a PartitionResult into text for display, logs and round-trips.
Supports multiple styles for different use cases.

LINES style (canonical, one line per region, all 2^M regions):
    Region 0 (in none of the sets): [5]
    Region 1 (in A and not in B): [4, 6]
"""

import json
import re
from enum import Enum
from typing import Dict, List, Optional

from ..elements import ElementTypeRegistry
from ..partition import PartitionResult, Region


class PartitionStyle(Enum):
    """Output style for partition formatting."""

    LINES = "lines"  # One line per region
    REPORT = "report"  # Header plus lines with counts and percentages
    DEBUG = "debug"  # Full JSON for debugging


REGION_LINE = re.compile(r"^Region (\d+) \((.*)\): \[(.*)\]")


def format_partition(
    result: PartitionResult,
    registry: ElementTypeRegistry,
    style: PartitionStyle = PartitionStyle.LINES,
) -> str:
    """Format a partition for display.

    Args:
        result: PartitionResult from PartitionEngine
        registry: Registry of the diagram's kind (renders elements)
        style: Output style

    Returns:
        Formatted string
    """
    if style == PartitionStyle.LINES:
        return "\n".join(format_region(r, registry) for r in result.regions)
    elif style == PartitionStyle.REPORT:
        return _format_report(result, registry)
    elif style == PartitionStyle.DEBUG:
        return json.dumps(partition_to_dict(result, registry), indent=2)
    else:
        raise ValueError(f"Unknown style: {style}")


def format_region(region: Region, registry: ElementTypeRegistry) -> str:
    reps = ", ".join(registry.render(e) for e in region.elements)
    return f"Region {region.mask} ({region.description}): [{reps}]"


def partition_to_dict(result: PartitionResult, registry: ElementTypeRegistry) -> Dict:
    return {
        "set_names": list(result.set_names),
        "total": result.total,
        "regions": [
            {
                "mask": r.mask,
                "description": r.description,
                "element_count": r.element_count,
                "probability": r.probability(result.total),
                "elements": [registry.encode(e) for e in r.elements],
            }
            for r in result.regions
        ],
    }


def _format_report(result: PartitionResult, registry: ElementTypeRegistry) -> str:
    lines = [
        f"--- Venn Diagram Partitions (N={result.set_count}) ---",
        f"Set Order: [{', '.join(result.set_names)}]",
        f"Total unique regions: {len(result.regions)}",
    ]
    for region in result.regions:
        share = region.probability(result.total)
        lines.append(f"{format_region(region, registry)} {region.element_count} items ({share:.1%})")
    lines.append("-" * 49)
    return "\n".join(lines)


def parse_partition_lines(text: str) -> Dict[int, List[str]]:
    """Read LINES output back into mask -> element representations.

    Element representations are split on ", ", so text elements that
    themselves contain ", " do not round-trip.
    """
    regions: Dict[int, List[str]] = {}
    for line in text.splitlines():
        match = REGION_LINE.match(line.strip())
        if not match:
            continue
        body: Optional[str] = match.group(3)
        regions[int(match.group(1))] = body.split(", ") if body else []
    return regions
