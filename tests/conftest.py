import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ledger_client_mock import MockFaucet, MockLedgerClient
from ledger_models import KeyPair
from reporting import RecordingReporter


@pytest.fixture
def ledger():
    """Fresh in-memory ledger (plain weight rule)."""
    return MockLedgerClient()


@pytest.fixture
def strict_ledger():
    """In-memory ledger that refuses unneeded signatures, like the live network."""
    return MockLedgerClient(reject_unused_signatures=True)


@pytest.fixture
def faucet(ledger):
    return MockFaucet(ledger)


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def make_account(ledger):
    """Factory creating funded accounts on the mock ledger."""

    def _make(amount: str = "1000") -> KeyPair:
        keypair = ledger.create_keypair()
        ledger.mint_account(keypair.address, amount)
        return keypair

    return _make
