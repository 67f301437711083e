#!/usr/bin/env python3
"""
Print the Venn partition of a template or a saved diagram snapshot.

Usage:
    python show_partitions.py --list                       # Available templates
    python show_partitions.py DICE_ROLLS_2                  # Region lines for a template
    python show_partitions.py DECK_OF_CARDS --style report  # Header, counts and percentages
    python show_partitions.py --snapshot diagram.json       # Partition a stored snapshot
"""
import argparse
import json
import logging
import sys

from config.settings import configure_logging
from services.diagram_service import DiagramService
from venn.errors import VennError
from venn.templates import DECK_OF_CARDS, template_names


logger = logging.getLogger("show_partitions")


def load_service(args) -> DiagramService:
    if args.snapshot:
        with open(args.snapshot) as f:
            return DiagramService.from_snapshot(json.load(f))
    return DiagramService.from_template(args.template)


def main() -> int:
    parser = argparse.ArgumentParser(description='Show the regions of a Venn diagram')
    parser.add_argument('template', nargs='?', default=DECK_OF_CARDS, help='Template name (default: DECK_OF_CARDS)')
    parser.add_argument('--snapshot', help='Path to a diagram snapshot JSON file')
    parser.add_argument('--style', choices=['lines', 'report', 'debug'], default='lines', help='Output style')
    parser.add_argument('--summaries', action='store_true', help='Also print per-set sizes and probabilities')
    parser.add_argument('--list', action='store_true', help='List template names and exit')
    args = parser.parse_args()

    configure_logging()

    if args.list:
        for name in template_names():
            print(name)
        return 0

    try:
        service = load_service(args)
    except VennError as e:
        logger.error(f"[{e.code.value}] {e.message}")
        return 1

    result = service.render_partition(args.style)
    if not result.ok:
        logger.error(f"[{result.error.code}] {result.error.message}")
        return 1
    print(result.value)

    if args.summaries:
        summaries = service.set_summaries().value
        print()
        for summary in summaries:
            print(f"{summary['name']}: {summary['size']} items (P = {summary['probability']:.4f})")
    return 0


if __name__ == '__main__':
    sys.exit(main())
