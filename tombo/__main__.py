"""
Executable module for tombo.

Running:
    python -m tombo

is equivalent to:
    tombo
"""

from __future__ import annotations

import sys

from tombo.cli import main

if __name__ == "__main__":
    sys.exit(main())
