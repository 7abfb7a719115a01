#!/usr/bin/env python3
"""Run the weighted catalog benchmark from a source checkout."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog_bench.cli import main  # noqa: E402

if __name__ == "__main__":
    raise SystemExit(main())
