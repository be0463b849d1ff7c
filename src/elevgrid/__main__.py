"""Module entrypoint for `python -m elevgrid`."""

from __future__ import annotations

from elevgrid.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
