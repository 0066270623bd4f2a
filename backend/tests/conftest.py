# ruff: noqa: INP001
"""Pytest configuration shared across backend tests."""

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Deterministic settings during import-time initialization, regardless of
# shell env. Scenario dates are fixed calendar days, so past dates are allowed.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_AUTO_MIGRATE"] = "false"
os.environ["ALLOW_PAST_DATES"] = "true"
os.environ["FACILITY_TIMEZONE"] = "UTC"
os.environ["DEFAULT_PROCESSOR_ID"] = "900"
