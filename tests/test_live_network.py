"""
Live Network Tests

Runs the full multi-signature scenario against the public test network,
using Friendbot to fund the participants.

Prerequisites:
- Network access to Horizon and Friendbot
- Optionally LEDGER_FUND_SOURCE_SEED for an existing funded account

Usage:
    LEDGER_MODE=live pytest tests/test_live_network.py -v

Note: These tests only run in live mode as they submit real transactions
and take a few minutes to complete.
"""
import logging
import os

import pytest

from harness_config import load_config
from ledger_models import Thresholds
from reporting import RecordingReporter
from scenario import run_scenario

pytestmark = [
    pytest.mark.skipif(os.environ.get("LEDGER_MODE") != "live",
                       reason="live network tests need LEDGER_MODE=live"),
]

logger = logging.getLogger(__name__)


def test_scenario_on_test_network():
    config = load_config()
    config.use_mock = False
    reporter = RecordingReporter()

    snapshots = run_scenario(config, reporter)

    results = reporter.results()
    assert results["Paying from distributor to customer (with too many signers)"] == "rejected"
    assert results["Paying from distributor to customer (with additional signer)"] == "admitted"

    distributor = snapshots["distributor"]
    logger.info(f"Distributor {distributor.address} ended with {distributor.native_balance} XLM")
    assert distributor.master_weight == 0
    assert distributor.thresholds == Thresholds(2, 2, 2)
    assert not snapshots["customer"].balances
