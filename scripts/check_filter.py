#!/usr/bin/env python3
"""
Filter checker for the BOOTH notifier.

Validates a filter YAML file the same way the repository does before storing
it, prints the normalised form, and optionally evaluates it against an item
detail record saved as JSON.
"""

import argparse
import json
import sys
from pathlib import Path

# Add the project root so the script runs from a source checkout
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from booth_notifier.components.filter_engine import FilterEngine  # noqa: E402
from booth_notifier.models.filter import parse_filter  # noqa: E402
from booth_notifier.models.item import Item  # noqa: E402
from booth_notifier.utils.error_handling import ParseError  # noqa: E402


def check_filter(filter_path: Path, item_path: Path = None) -> bool:
    """Check one filter file and return True when it is usable."""
    print(f"\n🔍 Checking {filter_path}...")

    try:
        parsed = parse_filter(filter_path.read_text(encoding="utf-8"))
        parsed.validate()
    except OSError as e:
        print(f"❌ Cannot read filter: {e}")
        return False
    except (ParseError, ValueError) as e:
        print(f"❌ Invalid filter: {e}")
        return False

    rule_count = sum(len(group.rules) for group in parsed.groups)
    print(f"✅ Valid filter: {len(parsed.groups)} groups, {rule_count} rules")
    print("\nNormalised form:\n")
    print(parsed.to_yaml())

    if item_path is None:
        return True

    try:
        item = Item.from_dict(json.loads(item_path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ParseError) as e:
        print(f"❌ Cannot load item: {e}")
        return False

    engine = FilterEngine()
    matched = engine.evaluate(parsed, item)
    verdict = "matches" if matched else "does not match"
    print(f"📦 Item {item.id} ({item.name}) {verdict} this filter")
    for index, satisfied in enumerate(engine.explain(parsed, item)):
        print(f"   • group {index}: {'✅' if satisfied else '❌'}")
    return True


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate BOOTH notifier filters")
    parser.add_argument("filters", nargs="+", type=Path, help="Filter YAML files")
    parser.add_argument(
        "--item",
        type=Path,
        help="Item detail JSON (as served by booth.pm/ja/items/<id>.json)",
    )
    args = parser.parse_args()

    results = [check_filter(path, args.item) for path in args.filters]

    if all(results):
        print("\n🎉 All filters are valid")
        sys.exit(0)

    print(f"\n❌ {results.count(False)} of {len(results)} filters failed")
    sys.exit(1)


if __name__ == "__main__":
    main()
