"""
Trust line management
Establishes and removes the trust lines holders need for non-native assets
"""
import logging
from typing import Any, Optional

from ledger_client import LedgerAPIError, error_string
from ledger_models import Amount, Asset, Opts, TxOptions
from outcomes import HarnessError, OperationResult, run_operation
from reporting import LoggingReporter, Reporter

logger = logging.getLogger(__name__)


class TrustLineError(HarnessError):
    """A trust line could not be created or removed"""

    def __init__(self, message: str, result: Optional[OperationResult] = None):
        super().__init__(message)
        self.result = result


class TrustLineManager:
    """Creates and removes trust lines; failures are never retried"""

    def __init__(self, client: Any, reporter: Optional[Reporter] = None):
        self.client = client
        self.reporter = reporter or LoggingReporter()

    def establish(self, holder_seed: str, asset: Asset, limit: Amount,
                  options: Optional[TxOptions] = None) -> OperationResult:
        """
        Let the holder receive an asset, up to a limit.

        Raises:
            TrustLineError: if the ledger does not admit the operation
        """
        holder = self.client.address_of(holder_seed)
        self.reporter.step("Creating trust line", holder=holder, asset=asset.code, limit=limit)
        result = run_operation(self.client.create_trust_line, holder_seed, asset, limit, options)
        self.reporter.result(f"CreateTrustLine {asset.code} for {holder}", result.outcome.value,
                             reason=result.reason)
        if not result.admitted:
            raise TrustLineError(f"CreateTrustLine: {result.reason}", result)
        return result

    def remove(self, holder_seed: str, asset: Asset,
               options: Optional[TxOptions] = None) -> OperationResult:
        """
        Remove the holder's trust line.

        The holder's balance of the asset must already be zero; use drain()
        first when it is not.

        Raises:
            TrustLineError: if the balance is not zero or the ledger rejects
                the operation
        """
        holder = self.client.address_of(holder_seed)
        balance = self._balance(holder, asset)
        if balance is None:
            raise TrustLineError(f"RemoveTrustLine: {holder} has no {asset.code} trust line")
        if balance != 0:
            raise TrustLineError(f"RemoveTrustLine: {holder} still holds {balance} {asset.code}")

        self.reporter.step("Removing trust line", holder=holder, asset=asset.code)
        result = run_operation(self.client.remove_trust_line, holder_seed, asset, options)
        self.reporter.result(f"RemoveTrustLine {asset.code} for {holder}", result.outcome.value,
                             reason=result.reason)
        if not result.admitted:
            raise TrustLineError(f"RemoveTrustLine: {result.reason}", result)
        return result

    def drain(self, holder_seed: str, asset: Asset, destination: str,
              memo_text: str = "take it back") -> OperationResult:
        """
        Pay the holder's entire balance of an asset to a destination.

        Raises:
            TrustLineError: if the payment is not admitted
        """
        holder = self.client.address_of(holder_seed)
        balance = self._balance(holder, asset) or 0
        if balance == 0:
            return OperationResult.admitted_result()

        self.reporter.step("Sending back asset before removing trust line",
                           holder=holder, amount=balance, asset=asset.code)
        result = run_operation(self.client.pay, holder_seed, destination, balance, asset,
                               Opts().with_memo_text(memo_text))
        self.reporter.result(f"Pay {balance} {asset.code} back from {holder}", result.outcome.value,
                             reason=result.reason)
        if not result.admitted:
            raise TrustLineError(f"Pay: {result.reason}", result)
        return result

    def _balance(self, holder: str, asset: Asset):
        try:
            return self.client.load_account(holder).balance(asset)
        except LedgerAPIError as e:
            raise TrustLineError(f"Can't load {holder}: {error_string(e)}") from e
