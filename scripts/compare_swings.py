#!/usr/bin/env python3
"""Compare a user swing against a reference swing."""

import argparse
import json
import logging
import sys
from pathlib import Path

from swingtrace.analysis.swing_comparator import SwingComparator


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Compare two analyzed golf swings")
    parser.add_argument("user", type=Path, help="User pose file (_pose.json)")
    parser.add_argument("reference", type=Path, help="Reference pose file (_pose.json)")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    result = SwingComparator().compare_files(args.user, args.reference)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.ok else 1

    if not result.ok:
        print(f"❌ {result.error}")
        return 1

    print("=" * 60)
    print(f"Overall score: {result.overall_score:.1f}")
    print("=" * 60)
    for label, score in sorted(result.keypoint_scores.items(), key=lambda item: item[1]):
        print(f"  {label:<16} {score:5.1f}  ({result.sample_counts.get(label, 0)} samples)")
    print()
    print("Recommendations:")
    for recommendation in result.recommendations:
        print(f"  - {recommendation}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
