"""
Multi-signature authorization harness
Changes signer sets and thresholds on an account and checks which payments the ledger admits
"""
import logging
from enum import Enum
from typing import Any, Iterable, List, Optional

from ledger_client import LedgerAPIError, error_string
from ledger_models import (
    AccountSnapshot,
    PaymentAttempt,
    SignerSet,
    Thresholds,
    TxOptions,
)
from outcomes import Expect, OperationResult, expect_outcome, run_operation
from reporting import LoggingReporter, Reporter

logger = logging.getLogger(__name__)

# Threshold level each operation category is checked against
OPERATION_THRESHOLDS = {
    "payment": "medium",
    "create_account": "medium",
    "change_trust": "medium",
    "set_options": "high",
}


class AuthorizationState(str, Enum):
    DEFAULT = "default"
    MULTI_SIGNER = "multi_signer"
    MASTER_DISABLED = "master_disabled"
    THRESHOLD_RAISED = "threshold_raised"


def classify_state(snapshot: AccountSnapshot) -> AuthorizationState:
    """Which authorization configuration an account is in"""
    thresholds = snapshot.thresholds
    if thresholds.low or thresholds.medium or thresholds.high:
        return AuthorizationState.THRESHOLD_RAISED
    if snapshot.master_weight == 0:
        return AuthorizationState.MASTER_DISABLED
    if snapshot.signer_set.signers:
        return AuthorizationState.MULTI_SIGNER
    return AuthorizationState.DEFAULT


def required_weight(thresholds: Thresholds, category: str = "payment") -> int:
    """Signing weight an operation needs; a zero threshold still needs one signature"""
    level = OPERATION_THRESHOLDS.get(category)
    if level is None:
        raise ValueError(f"Unknown operation category: {category}")
    return max(getattr(thresholds, level), 1)


def signing_weight(signer_set: SignerSet, signing_keys: Iterable[str]) -> int:
    """Total weight of the distinct recognized signers among the signing keys"""
    return sum(signer_set.weight_of(key) for key in set(signing_keys))


def is_authorized(signer_set: SignerSet, thresholds: Thresholds, signing_keys: Iterable[str],
                  category: str = "payment", reject_unused_signatures: bool = False) -> bool:
    """
    Predict whether the ledger admits an operation signed by the given keys.

    Args:
        signer_set: Signers of the source account
        thresholds: Thresholds of the source account
        signing_keys: Public keys that sign, in signing order
        category: Operation category (see OPERATION_THRESHOLDS)
        reject_unused_signatures: Also require that every signature is needed
            to reach the threshold (the live network's rule)
    """
    needed = required_weight(thresholds, category)
    total, unused = signer_set.consume(list(signing_keys), needed)
    if total < needed:
        return False
    return not (reject_unused_signatures and unused)


class AuthorizationHarness:
    """
    Drives an account through its authorization states and asserts the
    ledger's accept/reject decision for every step.

    Every method takes an explicit expectation; a step whose outcome differs
    raises UnexpectedOutcomeError.
    """

    def __init__(self, client: Any, reporter: Optional[Reporter] = None,
                 reject_unused_signatures: bool = False):
        self.client = client
        self.reporter = reporter or LoggingReporter()
        self.reject_unused_signatures = reject_unused_signatures

    def snapshot(self, address: str) -> AccountSnapshot:
        return self.client.load_account(address)

    def signer_set(self, address: str) -> SignerSet:
        """Current signers of an account (fresh read)"""
        return self.snapshot(address).signer_set

    def state(self, address: str) -> AuthorizationState:
        return classify_state(self.snapshot(address))

    def add_signer(self, account_seed: str, signer_address: str, weight: int,
                   expect: Expect = Expect.ADMIT) -> OperationResult:
        """Add one signer; each addition is its own transaction"""
        account = self.client.address_of(account_seed)
        name = f"AddSigner {signer_address} (weight {weight}) to {account}"
        self.reporter.step("Adding signer", account=account, signer=signer_address, weight=weight)
        self._check_prediction(name, account, [account_seed], "set_options", expect)
        result = run_operation(self.client.add_signer, account_seed, signer_address, weight)
        return expect_outcome(name, result, expect, self.reporter)

    def set_master_weight(self, account_seed: str, weight: int,
                          expect: Expect = Expect.ADMIT) -> OperationResult:
        """Set the master key weight; 0 disables the master key for good"""
        account = self.client.address_of(account_seed)
        name = f"SetMasterWeight {weight} on {account}"
        self.reporter.step("Setting master weight", account=account, weight=weight)
        self._check_prediction(name, account, [account_seed], "set_options", expect)
        result = run_operation(self.client.set_master_weight, account_seed, weight)
        return expect_outcome(name, result, expect, self.reporter)

    def set_thresholds(self, account: str, low: int, medium: int, high: int,
                       options: Optional[TxOptions] = None,
                       expect: Expect = Expect.ADMIT) -> OperationResult:
        """
        Change the account thresholds.

        The change is itself checked against the current high threshold.
        """
        address = self.client.address_of(account)
        name = f"SetThresholds {low}/{medium}/{high} on {address}"
        self.reporter.step("Setting thresholds", account=address, low=low, medium=medium, high=high)
        seeds = self._signing_seeds(account, options)
        self._check_prediction(name, address, seeds, "set_options", expect)
        result = run_operation(self.client.set_thresholds, account, low, medium, high, options)
        return expect_outcome(name, result, expect, self.reporter)

    def attempt_payment(self, name: str, attempt: PaymentAttempt, expect: Expect) -> OperationResult:
        """Submit a payment signed by a specific set of keys and assert the outcome"""
        source = self.client.address_of(attempt.source)
        options = attempt.options()
        seeds = self._signing_seeds(attempt.source, options)
        self.reporter.step(name, source=source, destination=attempt.destination,
                           amount=attempt.amount, asset=attempt.asset.code, signers=len(seeds))
        self._check_prediction(name, source, seeds, "payment", expect)
        result = run_operation(self.client.pay, attempt.source, attempt.destination,
                               attempt.amount, attempt.asset, options)
        return expect_outcome(name, result, expect, self.reporter)

    def _signing_seeds(self, source: str, options: Optional[TxOptions]) -> List[str]:
        seeds = [source] if source.startswith("S") else []
        if options:
            seeds.extend(options.signers)
        return seeds

    def _check_prediction(self, name: str, address: str, seeds: List[str],
                          category: str, expect: Expect):
        """Warn when the expectation disagrees with what the account state predicts"""
        try:
            snapshot = self.snapshot(address)
        except LedgerAPIError as e:
            logger.debug(f"{name}: no prediction ({error_string(e)})")
            return

        keys = [self.client.address_of(seed) for seed in seeds]
        authorized = is_authorized(snapshot.signer_set, snapshot.thresholds, keys,
                                   category, self.reject_unused_signatures)
        predicted = Expect.ADMIT if authorized else Expect.REJECT
        if predicted != expect:
            logger.warning(
                f"{name}: expecting {expect.value} but signing weight "
                f"{signing_weight(snapshot.signer_set, keys)} vs required "
                f"{required_weight(snapshot.thresholds, category)} predicts {predicted.value}"
            )
