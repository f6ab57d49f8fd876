"""
Mock Ledger Client for Local Testing
Simulates a Stellar ledger in memory: accounts, trust lines, signers and thresholds
"""
import logging
import os
import secrets
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ledger_client import (
    AccountNotFoundError,
    FaucetError,
    LedgerAPIError,
    LedgerConnectionError,
)
from ledger_models import (
    AccountSnapshot,
    Amount,
    Asset,
    KeyPair,
    Signer,
    SignerSet,
    Thresholds,
    TxOptions,
    to_amount,
)

logger = logging.getLogger(__name__)

BASE_RESERVE = Decimal("0.5")
MAX_SIGNERS = 20
_KEY_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"


def _random_key(prefix: str) -> str:
    return prefix + "".join(secrets.choice(_KEY_ALPHABET) for _ in range(55))


@dataclass
class _MockTrustLine:
    balance: Decimal
    limit: Decimal


@dataclass
class _MockAccount:
    address: str
    native: Decimal
    trust_lines: Dict[Asset, _MockTrustLine] = field(default_factory=dict)
    master_weight: int = 1
    signers: Dict[str, int] = field(default_factory=dict)
    thresholds: Thresholds = field(default_factory=Thresholds)

    @property
    def minimum_balance(self) -> Decimal:
        subentries = len(self.trust_lines) + len(self.signers)
        return (2 + subentries) * BASE_RESERVE

    @property
    def signer_set(self) -> SignerSet:
        return SignerSet(
            master_key=self.address,
            master_weight=self.master_weight,
            signers=tuple(Signer(public_key=key, weight=weight) for key, weight in self.signers.items()),
        )


class MockLedgerClient:
    """
    Mock client simulating a ledger for local testing.

    Enforces the same authorization rule as the network: the account's signers
    (master key first, then by key) each take a matching signature until the
    collected weight reaches the operation's threshold (a threshold of 0
    still needs one signature).
    With reject_unused_signatures=True, leftover signatures make the
    transaction fail with tx_bad_auth_extra, as on the live network.
    """

    def __init__(self, reject_unused_signatures: bool = False):
        self.reject_unused_signatures = reject_unused_signatures
        self.offline = False
        self._accounts: Dict[str, _MockAccount] = {}
        self._seeds: Dict[str, str] = {}
        self.submitted: List[Dict[str, Any]] = []
        logger.info("🎭 MockLedgerClient initialized")

    # ---- keys ----------------------------------------------------------------

    def create_keypair(self) -> KeyPair:
        """Generate a mock key pair"""
        address = _random_key("G")
        seed = _random_key("S")
        self._seeds[seed] = address
        return KeyPair(address=address, seed=seed)

    def address_of(self, seed_or_address: str) -> str:
        if seed_or_address.startswith("S"):
            if seed_or_address not in self._seeds:
                raise ValueError("Unknown seed")
            return self._seeds[seed_or_address]
        return seed_or_address

    # ---- reads ---------------------------------------------------------------

    def load_account(self, address: str) -> AccountSnapshot:
        """Return a snapshot of a mock account"""
        self._check_online()
        account = self._accounts.get(address)
        if account is None:
            raise AccountNotFoundError(f"Account not found: {address}")

        signers = [Signer(public_key=key, weight=weight) for key, weight in sorted(account.signers.items())]
        signers.append(Signer(public_key=address, weight=account.master_weight))
        return AccountSnapshot(
            address=address,
            native_balance=account.native,
            balances={asset: line.balance for asset, line in account.trust_lines.items()},
            master_weight=account.master_weight,
            signers=signers,
            thresholds=account.thresholds,
        )

    # ---- faucet support ------------------------------------------------------

    def mint_account(self, address: str, amount: Amount):
        """Create an account out of thin air (used by the mock faucet)"""
        self._check_online()
        if address in self._accounts:
            raise LedgerAPIError("Account already exists", {"operations": ["op_already_exists"]})
        self._accounts[address] = _MockAccount(address=address, native=to_amount(amount))
        logger.info(f"🎭 Minted account {address} with {amount} lumens")

    # ---- transactions --------------------------------------------------------

    def fund_account(self, source_seed: str, address: str, amount: Amount,
                     options: Optional[TxOptions] = None):
        amount = to_amount(amount)
        source = self._authorize(source_seed, "medium", options)
        if address in self._accounts:
            self._fail("op_already_exists")
        if amount < 2 * BASE_RESERVE:
            self._fail("op_low_reserve")
        if source.native - amount < source.minimum_balance:
            self._fail("op_underfunded")

        source.native -= amount
        self._accounts[address] = _MockAccount(address=address, native=amount)
        self._record("create_account", source.address, options, destination=address, amount=amount)
        logger.info(f"🎭 Mock create account {address} with {amount} lumens")

    def pay_native(self, source_seed: str, target: str, amount: Amount,
                   options: Optional[TxOptions] = None):
        self.pay(source_seed, target, amount, Asset.native(), options)

    def pay(self, source: str, target: str, amount: Amount, asset: Asset,
            options: Optional[TxOptions] = None):
        amount = to_amount(amount)
        sender = self._authorize(source, "medium", options)
        if amount <= 0:
            self._fail("op_malformed")
        destination = self._accounts.get(self.address_of(target))
        if destination is None:
            self._fail("op_no_destination")

        if asset.is_native:
            if sender.native - amount < sender.minimum_balance:
                self._fail("op_underfunded")
            sender.native -= amount
            destination.native += amount
        else:
            self._pay_credit(sender, destination, amount, asset)

        self._record("payment", sender.address, options,
                     destination=destination.address, amount=amount, asset=asset)
        logger.info(f"🎭 Mock payment {amount} {asset.code} {sender.address} -> {destination.address}")

    def _pay_credit(self, sender: _MockAccount, destination: _MockAccount,
                    amount: Decimal, asset: Asset):
        if sender.address != asset.issuer:
            line = sender.trust_lines.get(asset)
            if line is None:
                self._fail("op_src_no_trust")
            if line.balance < amount:
                self._fail("op_underfunded")

        if destination.address != asset.issuer:
            dest_line = destination.trust_lines.get(asset)
            if dest_line is None:
                self._fail("op_no_trust")
            if dest_line.balance + amount > dest_line.limit:
                self._fail("op_line_full")
            dest_line.balance += amount

        if sender.address != asset.issuer:
            sender.trust_lines[asset].balance -= amount

    def create_trust_line(self, holder_seed: str, asset: Asset, limit: Amount,
                          options: Optional[TxOptions] = None):
        limit = to_amount(limit)
        holder = self._authorize(holder_seed, "medium", options)
        if asset.is_native or limit < 0:
            self._fail("op_malformed")
        if holder.address == asset.issuer:
            self._fail("op_self_not_allowed")
        if asset.issuer not in self._accounts:
            self._fail("op_no_issuer")

        line = holder.trust_lines.get(asset)
        if line is not None:
            # Existing line: only the limit changes
            if limit < line.balance:
                self._fail("op_invalid_limit")
            line.limit = limit
        else:
            if holder.native < holder.minimum_balance + BASE_RESERVE:
                self._fail("op_low_reserve")
            holder.trust_lines[asset] = _MockTrustLine(balance=Decimal("0"), limit=limit)

        self._record("change_trust", holder.address, options, asset=asset, limit=limit)
        logger.info(f"🎭 Mock trust line {holder.address} -> {asset.code} (limit {limit})")

    def remove_trust_line(self, holder_seed: str, asset: Asset,
                          options: Optional[TxOptions] = None):
        holder = self._authorize(holder_seed, "medium", options)
        line = holder.trust_lines.get(asset)
        if line is None or line.balance != 0:
            self._fail("op_invalid_limit")

        del holder.trust_lines[asset]
        self._record("change_trust", holder.address, options, asset=asset, limit=Decimal("0"))
        logger.info(f"🎭 Mock removed trust line {holder.address} -> {asset.code}")

    def add_signer(self, account_seed: str, signer_address: str, weight: int,
                   options: Optional[TxOptions] = None):
        account = self._authorize(account_seed, "high", options)
        if signer_address == account.address or not 0 <= weight <= 255:
            self._fail("op_bad_signer")

        if weight == 0:
            account.signers.pop(signer_address, None)
        elif signer_address in account.signers:
            account.signers[signer_address] = weight
        else:
            if len(account.signers) >= MAX_SIGNERS:
                self._fail("op_too_many_signers")
            if account.native < account.minimum_balance + BASE_RESERVE:
                self._fail("op_low_reserve")
            account.signers[signer_address] = weight

        self._record("set_options", account.address, options, signer=signer_address, weight=weight)
        logger.info(f"🎭 Mock signer {signer_address} (weight {weight}) on {account.address}")

    def set_master_weight(self, account_seed: str, weight: int,
                          options: Optional[TxOptions] = None):
        account = self._authorize(account_seed, "high", options)
        if not 0 <= weight <= 255:
            self._fail("op_threshold_out_of_range")
        account.master_weight = weight
        self._record("set_options", account.address, options, master_weight=weight)
        logger.info(f"🎭 Mock master weight {weight} on {account.address}")

    def set_thresholds(self, account: str, low: int, medium: int, high: int,
                       options: Optional[TxOptions] = None):
        target = self._authorize(account, "high", options)
        try:
            thresholds = Thresholds(low=low, medium=medium, high=high)
        except ValueError:
            self._fail("op_threshold_out_of_range")
        target.thresholds = thresholds
        self._record("set_options", target.address, options, thresholds=thresholds)
        logger.info(f"🎭 Mock thresholds {low}/{medium}/{high} on {target.address}")

    # ---- internals -----------------------------------------------------------

    def _check_online(self):
        if self.offline:
            raise LedgerConnectionError("Request failed: mock ledger is offline")

    def _fail(self, op_code: str):
        raise LedgerAPIError(
            "Transaction rejected: Transaction Failed",
            {"transaction": "tx_failed", "operations": [op_code]},
        )

    def _signature_keys(self, source: str, options: Optional[TxOptions]) -> List[str]:
        seeds = [source] if source.startswith("S") else []
        if options:
            seeds.extend(options.signers)
        return [self.address_of(seed) for seed in seeds]

    def _authorize(self, source: str, category: str,
                   options: Optional[TxOptions]) -> _MockAccount:
        """Check the transaction signatures against the source account"""
        self._check_online()
        address = self.address_of(source)
        account = self._accounts.get(address)
        if account is None:
            raise AccountNotFoundError(f"Account not found: {address}")

        needed = max(getattr(account.thresholds, category), 1)
        keys = self._signature_keys(source, options)
        total, unused = account.signer_set.consume(keys, needed)

        if total < needed:
            logger.info(f"🎭 Rejected: weight {total} < threshold {needed} ({category}) on {address}")
            raise LedgerAPIError("Transaction rejected: Transaction Failed", {"transaction": "tx_bad_auth"})
        if self.reject_unused_signatures and unused:
            logger.info(f"🎭 Rejected: {unused} unused signature(s) on {address}")
            raise LedgerAPIError("Transaction rejected: Transaction Failed", {"transaction": "tx_bad_auth_extra"})
        return account

    def _record(self, operation: str, source: str, options: Optional[TxOptions], **details):
        self.submitted.append({
            "operation": operation,
            "source": source,
            "memo": options.memo_text if options else None,
            **details,
        })

    def close(self):
        pass

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()


class MockFaucet:
    """Mock faucet creating accounts on a MockLedgerClient"""

    def __init__(self, client: MockLedgerClient, amount: Amount = "10000", available: bool = True):
        self.client = client
        self.amount = amount
        self.available = available

    def fund(self, address: str) -> Dict[str, Any]:
        if not self.available:
            raise FaucetError("Friendbot request failed: mock faucet unavailable")
        try:
            self.client.mint_account(address, self.amount)
        except LedgerAPIError as e:
            raise FaucetError(f"Friendbot request failed: {e}") from e
        return {"successful": True, "account": address}


def use_mock_ledger() -> bool:
    return os.environ.get('MOCK_LEDGER', '').lower() in ('true', '1', 'yes')


def get_ledger_client(network: str = "test", horizon_url: Optional[str] = None,
                      base_fee: int = 100, tx_timeout: int = 30,
                      use_mock: Optional[bool] = None,
                      reject_unused_signatures: bool = False) -> Any:
    """
    Factory function to get appropriate ledger client based on environment.

    Returns MockLedgerClient if MOCK_LEDGER=true (or use_mock=True), otherwise
    the real LedgerClient.
    """
    if use_mock is None:
        use_mock = use_mock_ledger()

    if use_mock:
        logger.info("🎭 Using MockLedgerClient for local testing")
        return MockLedgerClient(reject_unused_signatures=reject_unused_signatures)
    else:
        from ledger_client import LedgerClient
        logger.info(f"Using real LedgerClient ({network})")
        return LedgerClient(network=network, horizon_url=horizon_url,
                            base_fee=base_fee, tx_timeout=tx_timeout)


def get_faucet(client: Any, friendbot_url: Optional[str] = None) -> Any:
    """Faucet matching the client: MockFaucet for the mock ledger, Friendbot otherwise"""
    if isinstance(client, MockLedgerClient):
        return MockFaucet(client)
    from ledger_client import FriendbotFaucet
    return FriendbotFaucet(friendbot_url or "https://friendbot.stellar.org")
