"""
Balance reporter
Reads back account state for verification and diagnostics
"""
import logging
from typing import Any, Dict, Optional

from ledger_client import LedgerAPIError, error_string
from ledger_models import AccountSnapshot, Asset
from outcomes import HarnessError
from reporting import LoggingReporter, Reporter

logger = logging.getLogger(__name__)


class ReportError(HarnessError):
    """An account that should exist could not be loaded"""
    pass


class BalanceReporter:
    """Loads fresh account snapshots and hands them to the reporter"""

    def __init__(self, client: Any, reporter: Optional[Reporter] = None):
        self.client = client
        self.reporter = reporter or LoggingReporter()

    def report(self, address: str, asset: Optional[Asset] = None,
               label: Optional[str] = None) -> AccountSnapshot:
        """
        Load and report one account.

        Raises:
            ReportError: if the account cannot be loaded
        """
        try:
            snapshot = self.client.load_account(address)
        except LedgerAPIError as e:
            raise ReportError(f"Can't load balances for {label or address}: {error_string(e)}") from e

        self.reporter.snapshot(label or address, snapshot, asset)
        return snapshot

    def report_all(self, accounts: Dict[str, str],
                   asset: Optional[Asset] = None) -> Dict[str, AccountSnapshot]:
        """Report several accounts, keyed by label"""
        return {label: self.report(address, asset, label) for label, address in accounts.items()}
