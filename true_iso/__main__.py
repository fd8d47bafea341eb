"""Entry point for ``python -m true_iso``.

    python -m true_iso tile.png -o tile_fixed.png --ratio 2:1 --size 128
"""
from __future__ import annotations

import sys

from true_iso import main

if __name__ == "__main__":
    sys.exit(main(sys.argv))
