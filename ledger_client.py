"""
Ledger API Client
Handles communication with a Stellar Horizon server and the Friendbot faucet
"""
import logging
from typing import Any, Dict, List, Optional

import requests
from stellar_sdk import Asset as SdkAsset
from stellar_sdk import Keypair, Network, Server, TransactionBuilder
from stellar_sdk.exceptions import BaseHorizonError, BaseRequestError, NotFoundError

from ledger_models import (
    AccountSnapshot,
    Amount,
    Asset,
    KeyPair,
    TxOptions,
    format_amount,
)

logger = logging.getLogger(__name__)

NETWORKS = {
    "test": {
        "passphrase": Network.TESTNET_NETWORK_PASSPHRASE,
        "horizon_url": "https://horizon-testnet.stellar.org",
        "friendbot_url": "https://friendbot.stellar.org",
    },
    "public": {
        "passphrase": Network.PUBLIC_NETWORK_PASSPHRASE,
        "horizon_url": "https://horizon.stellar.org",
        "friendbot_url": None,
    },
}


class LedgerAPIError(Exception):
    """Exception raised when the ledger rejects a request"""

    def __init__(self, message: str, result_codes: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.result_codes = result_codes or {}


class LedgerConnectionError(LedgerAPIError):
    """Exception raised when the ledger cannot be reached"""
    pass


class AccountNotFoundError(LedgerAPIError):
    """Exception raised when an account does not exist on the ledger"""
    pass


class FaucetError(Exception):
    """Exception raised when the faucet could not fund an account"""
    pass


def error_string(error: Exception) -> str:
    """Human-readable description of a ledger error, including result codes"""
    codes = getattr(error, "result_codes", None)
    if codes:
        return f"{error} (result codes: {codes})"
    return str(error)


class FriendbotFaucet:
    """Client for the Friendbot test network faucet"""

    def __init__(self, url: str = "https://friendbot.stellar.org", timeout: int = 30):
        self.url = url
        self.timeout = timeout

    def fund(self, address: str) -> Dict[str, Any]:
        """Ask Friendbot to create and fund an account"""
        try:
            response = requests.get(self.url, params={"addr": address}, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"Friendbot request failed: {e}")
            raise FaucetError(f"Friendbot request failed: {e}")


class LedgerClient:
    """Client for building, signing and submitting transactions to a Horizon server"""

    def __init__(self, network: str = "test", horizon_url: Optional[str] = None,
                 base_fee: int = 100, tx_timeout: int = 30):
        if network not in NETWORKS:
            raise ValueError(f"Unknown network: {network}")
        self.network = network
        self.network_passphrase = NETWORKS[network]["passphrase"]
        self.horizon_url = horizon_url or NETWORKS[network]["horizon_url"]
        self.base_fee = base_fee
        self.tx_timeout = tx_timeout
        self.server = Server(horizon_url=self.horizon_url)

    def create_keypair(self) -> KeyPair:
        """Generate a new random key pair (not yet on the ledger)"""
        keypair = Keypair.random()
        return KeyPair(address=keypair.public_key, seed=keypair.secret)

    def address_of(self, seed_or_address: str) -> str:
        """Resolve a seed to its address; addresses are returned unchanged"""
        if seed_or_address.startswith("S"):
            return Keypair.from_secret(seed_or_address).public_key
        return seed_or_address

    def load_account(self, address: str) -> AccountSnapshot:
        """Load the current state of an account"""
        try:
            data = self.server.accounts().account_id(address).call()
        except NotFoundError as e:
            raise AccountNotFoundError(f"Account not found: {address}") from e
        except BaseHorizonError as e:
            raise LedgerAPIError(f"Horizon error: {e.title}: {e.detail}") from e
        except BaseRequestError as e:
            logger.error(f"Request failed: {e}")
            raise LedgerConnectionError(f"Request failed: {e}") from e
        return AccountSnapshot.from_horizon(data)

    def fund_account(self, source_seed: str, address: str, amount: Amount,
                     options: Optional[TxOptions] = None):
        """Create a new account, funded with a starting balance from the source"""
        def build(builder: TransactionBuilder):
            builder.append_create_account_op(
                destination=address, starting_balance=format_amount(amount)
            )
        self._submit(source_seed, build, options)
        logger.info(f"Funded {address} with {amount} lumens")

    def pay_native(self, source_seed: str, target: str, amount: Amount,
                   options: Optional[TxOptions] = None):
        """Send native lumens to an existing account"""
        self.pay(source_seed, target, amount, Asset.native(), options)

    def pay(self, source: str, target: str, amount: Amount, asset: Asset,
            options: Optional[TxOptions] = None):
        """
        Send a payment.

        Args:
            source: Seed (signs the transaction) or address (only the
                option signers sign)
            target: Destination address or seed
            amount: Amount to send
            asset: Asset to send
            options: Memo text and additional signers
        """
        destination = self.address_of(target)

        def build(builder: TransactionBuilder):
            builder.append_payment_op(
                destination=destination,
                asset=self._sdk_asset(asset),
                amount=format_amount(amount),
            )
        self._submit(source, build, options)

    def create_trust_line(self, holder_seed: str, asset: Asset, limit: Amount,
                          options: Optional[TxOptions] = None):
        """Allow the holder to receive an asset, up to a limit"""
        def build(builder: TransactionBuilder):
            builder.append_change_trust_op(
                asset=self._sdk_asset(asset), limit=format_amount(limit)
            )
        self._submit(holder_seed, build, options)

    def remove_trust_line(self, holder_seed: str, asset: Asset,
                          options: Optional[TxOptions] = None):
        """Remove a trust line (the holder's balance must be zero)"""
        def build(builder: TransactionBuilder):
            builder.append_change_trust_op(asset=self._sdk_asset(asset), limit="0")
        self._submit(holder_seed, build, options)

    def add_signer(self, account_seed: str, signer_address: str, weight: int,
                   options: Optional[TxOptions] = None):
        """Add (or reweight) a signer on an account; weight 0 removes it"""
        def build(builder: TransactionBuilder):
            builder.append_ed25519_public_key_signer(account_id=signer_address, weight=weight)
        self._submit(account_seed, build, options)

    def set_master_weight(self, account_seed: str, weight: int,
                          options: Optional[TxOptions] = None):
        """Set the weight of the account's own key"""
        def build(builder: TransactionBuilder):
            builder.append_set_options_op(master_weight=weight)
        self._submit(account_seed, build, options)

    def set_thresholds(self, account: str, low: int, medium: int, high: int,
                       options: Optional[TxOptions] = None):
        """Set low/medium/high thresholds; account may be a seed or an address"""
        def build(builder: TransactionBuilder):
            builder.append_set_options_op(
                low_threshold=low, med_threshold=medium, high_threshold=high
            )
        self._submit(account, build, options)

    def _sdk_asset(self, asset: Asset) -> SdkAsset:
        if asset.is_native:
            return SdkAsset.native()
        return SdkAsset(asset.code, asset.issuer)

    def _signing_keys(self, source: str, options: Optional[TxOptions]) -> List[Keypair]:
        seeds: List[str] = []
        if source.startswith("S"):
            seeds.append(source)
        if options:
            seeds.extend(options.signers)
        return [Keypair.from_secret(seed) for seed in seeds]

    def _submit(self, source: str, build, options: Optional[TxOptions] = None) -> Dict[str, Any]:
        """Build a single-operation transaction, sign it and submit it"""
        source_address = self.address_of(source)
        try:
            account = self.server.load_account(source_address)
            builder = TransactionBuilder(
                source_account=account,
                network_passphrase=self.network_passphrase,
                base_fee=self.base_fee,
            )
            build(builder)
            if options and options.memo_text:
                builder.add_text_memo(options.memo_text)
            builder.set_timeout(self.tx_timeout)
            tx = builder.build()

            for keypair in self._signing_keys(source, options):
                tx.sign(keypair)

            response = self.server.submit_transaction(tx)
            logger.debug(f"Transaction accepted: {response.get('hash')}")
            return response
        except NotFoundError as e:
            raise AccountNotFoundError(f"Account not found: {source_address}") from e
        except BaseHorizonError as e:
            result_codes = (e.extras or {}).get("result_codes", {})
            raise LedgerAPIError(f"Transaction rejected: {e.title}", result_codes) from e
        except BaseRequestError as e:
            logger.error(f"Request failed: {e}")
            raise LedgerConnectionError(f"Request failed: {e}") from e

    def close(self):
        self.server.close()

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()
