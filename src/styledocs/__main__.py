"""Allow ``python -m styledocs``."""

from __future__ import annotations

from styledocs.cli import main

raise SystemExit(main())
