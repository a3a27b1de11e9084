"""Launch the TranslateBridge web service from a source checkout (no install needed)."""

from __future__ import annotations

import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parent / "src"


def _bootstrap_path() -> None:
    """Put src/ on sys.path so the translatebridge package imports without pip install."""
    if str(SRC_DIR) not in sys.path:
        sys.path.insert(0, str(SRC_DIR))


def main():
    _bootstrap_path()
    from translatebridge.web import main as serve

    serve()


if __name__ == "__main__":
    main()
