#!/usr/bin/env python3
"""Check all tree files in data/ for broken links and asymmetric relationships."""

import sys
from pathlib import Path

# Add gentree to path
sys.path.insert(0, str(Path(__file__).parent))

from gentree.graph import check_consistency
from gentree.importers.import_family_tree import load_tree_file


def main():
    data_dir = Path(__file__).parent / "data"
    files = sorted(
        p for p in data_dir.glob("*")
        if p.suffix.lower() in (".json", ".gntree", ".txt", ".csv")
    )

    if not files:
        print("No tree files found in data/")
        return

    print(f"Checking {len(files)} files for consistency problems...\n")
    print("=" * 80)

    for tree_file in files:
        print(f"\nFile: {tree_file.name}")
        print("-" * 80)

        try:
            graph, _name, import_warnings = load_tree_file(tree_file)
            problems = import_warnings + check_consistency(graph)

            if problems:
                print(f"Found {len(problems)} problem(s):\n")
                for problem in problems:
                    print(f"  ⚠️  {problem}")
            else:
                print(f"✅ No problems found ({len(graph.people)} people)")

        except (OSError, ValueError) as e:
            print(f"❌ Error processing file: {e}")

    print("\n" + "=" * 80)
    print("Consistency check complete.")


if __name__ == "__main__":
    main()
