"""Pytest configuration.

The application code lives in the top-level `quote_intake/` package, which has
no `__init__.py` files. Depending on how pytest is invoked the repository root
may not be on `sys.path`, which breaks imports like
`from quote_intake.modules...`.

This file adds the repo root to `sys.path` during test collection.
"""

from __future__ import annotations

import sys
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
