"""
Account provisioning
Creates funded test identities, via the faucet or from a funding account
"""
import logging
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from ledger_client import FaucetError, LedgerAPIError, error_string
from ledger_models import Amount, KeyPair, Opts, to_amount
from outcomes import HarnessError
from reporting import LoggingReporter, Reporter

logger = logging.getLogger(__name__)

DEFAULT_BOOTSTRAP_AMOUNT = "100"
DEFAULT_PAYBACK_FRACTION = Decimal("0.5")


class ProvisioningError(HarnessError):
    """A new identity could not be funded"""
    pass


class FundingAction(str, Enum):
    FUND_FROM_SOURCE = "fund_from_source"
    PAY_BACK = "pay_back"
    NONE = "none"


# (faucet attempted, balance > 0) -> action
FUNDING_DECISIONS = {
    (False, False): FundingAction.FUND_FROM_SOURCE,
    (True, False): FundingAction.FUND_FROM_SOURCE,
    (True, True): FundingAction.PAY_BACK,
    (False, True): FundingAction.NONE,
}


def decide_funding(faucet_attempted: bool, observed_balance: Amount) -> FundingAction:
    """Pick what to do with a freshly created identity"""
    return FUNDING_DECISIONS[(bool(faucet_attempted), to_amount(observed_balance) > 0)]


def payback_amount(balance: Amount, fraction: Amount = DEFAULT_PAYBACK_FRACTION) -> Decimal:
    """Share of a faucet-funded balance that goes back to the funding account"""
    return to_amount(to_amount(balance) * Decimal(str(fraction)))


class AccountProvisioner:
    """Ensures every test identity ends up with a funded account"""

    def __init__(self, client: Any, faucet: Any = None, reporter: Optional[Reporter] = None,
                 bootstrap_amount: Amount = DEFAULT_BOOTSTRAP_AMOUNT,
                 payback_fraction: Amount = DEFAULT_PAYBACK_FRACTION):
        self.client = client
        self.faucet = faucet
        self.reporter = reporter or LoggingReporter()
        self.bootstrap_amount = to_amount(bootstrap_amount)
        self.payback_fraction = Decimal(str(payback_fraction))

    def provision(self, funding_source_seed: Optional[str], use_faucet: bool = False) -> KeyPair:
        """
        Create a new identity and make sure it has a positive native balance.

        Args:
            funding_source_seed: Seed of the account that funds the identity
                when the faucet did not
            use_faucet: Try the faucet first

        Returns:
            The funded key pair

        Raises:
            ProvisioningError: if the fallback funding payment is rejected
        """
        keypair = self.client.create_keypair()
        self.reporter.step("Created key pair", address=keypair.address)

        faucet_attempted = False
        if use_faucet and self.faucet is not None:
            faucet_attempted = True
            self.reporter.step("Funding new key with faucet", address=keypair.address)
            try:
                response = self.faucet.fund(keypair.address)
                logger.debug(f"Faucet says: {response}")
            except FaucetError as e:
                logger.warning(f"Faucet funding failed, falling back to funding source: {e}")

        balance = self._observed_balance(keypair.address)
        action = decide_funding(faucet_attempted, balance)
        self.reporter.step("Funding decision", address=keypair.address,
                           balance=balance, action=action.value)

        if action == FundingAction.FUND_FROM_SOURCE:
            self._fund_from_source(funding_source_seed, keypair)
        elif action == FundingAction.PAY_BACK:
            self._pay_back(funding_source_seed, keypair, balance)

        return keypair

    def provision_many(self, funding_source_seed: str, count: int) -> List[KeyPair]:
        """Provision several identities from one funding source, in order"""
        return [self.provision(funding_source_seed, use_faucet=False) for _ in range(count)]

    def _observed_balance(self, address: str) -> Decimal:
        # An account that is not visible yet simply has no funds
        try:
            snapshot = self.client.load_account(address)
        except LedgerAPIError as e:
            logger.info(f"Could not load {address} ({error_string(e)}), assuming empty")
            return Decimal("0")
        return snapshot.native_balance

    def _fund_from_source(self, funding_source_seed: Optional[str], keypair: KeyPair):
        if not funding_source_seed:
            raise ProvisioningError(f"No funds for {keypair.address} and no funding source configured")

        self.reporter.step("Funding via source account", address=keypair.address,
                           amount=self.bootstrap_amount)
        try:
            self.client.fund_account(
                funding_source_seed, keypair.address, self.bootstrap_amount,
                Opts().with_memo_text("initial fund"),
            )
        except LedgerAPIError as e:
            raise ProvisioningError(f"Funding failed: {error_string(e)}") from e

    def _pay_back(self, funding_source_seed: Optional[str], keypair: KeyPair, balance: Decimal):
        if not funding_source_seed:
            logger.info(f"No funding source configured, keeping faucet funds on {keypair.address}")
            return

        amount = payback_amount(balance, self.payback_fraction)
        if amount <= 0:
            return
        self.reporter.step("Sending faucet funds back to funding source", amount=amount)
        try:
            self.client.pay_native(
                keypair.seed, funding_source_seed, amount,
                Opts().with_memo_text("friendbot payback"),
            )
        except LedgerAPIError as e:
            # The identity is funded either way
            logger.warning(f"Payback failed: {error_string(e)}")
