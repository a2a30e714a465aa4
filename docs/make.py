"""Build and deploy the style guide site.

Run from a checkout with ``python docs/make.py``; accepts the same options as
the ``styledocs`` command.
"""

from __future__ import annotations

from styledocs.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
