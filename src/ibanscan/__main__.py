"""Entry point for `python -m ibanscan`."""

from __future__ import annotations

from ibanscan.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
