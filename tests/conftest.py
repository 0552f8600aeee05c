"""Shared test fixtures."""

import os
import sys
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure the project root is on the path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# Keep test log output out of the working tree
os.environ.setdefault("LOG_FILE", str(Path(tempfile.gettempdir()) / "perp_book_test.log"))

from models.fill import Fill, Side  # noqa: E402


@pytest.fixture
def make_fill():
    """Build a Fill from plain numbers: make_fill("buy", 1, 100, 0)."""
    def _make(side, size, price, timestamp, coin="ETH", **kwargs):
        return Fill(
            coin=coin,
            side=Side(side),
            size=Decimal(str(size)),
            price=Decimal(str(price)),
            timestamp=timestamp,
            **kwargs,
        )
    return _make
