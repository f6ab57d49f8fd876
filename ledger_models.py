"""
Ledger data model
Value types shared by the ledger clients and the test harness
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

# Ledger amounts carry 7 fractional digits
AMOUNT_PRECISION = Decimal("0.0000001")

Amount = Union[str, int, Decimal]


def to_amount(value: Amount) -> Decimal:
    """Convert a string/int/Decimal amount to a Decimal at ledger precision"""
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(AMOUNT_PRECISION)


def format_amount(value: Amount) -> str:
    """Render an amount the way the ledger expects it on the wire"""
    text = f"{to_amount(value):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class AssetType(str, Enum):
    """Precision class of an asset"""

    NATIVE = "native"
    CREDIT_4 = "credit_alphanum4"
    CREDIT_12 = "credit_alphanum12"


@dataclass(frozen=True)
class KeyPair:
    """Address + seed of a test identity"""

    address: str
    seed: str

    def __repr__(self) -> str:
        # Seeds never end up in logs
        return f"KeyPair(address={self.address!r})"


@dataclass(frozen=True)
class Asset:
    """An asset on the ledger, identified by code + issuer"""

    code: str
    issuer: Optional[str]
    asset_type: AssetType = AssetType.CREDIT_4

    @classmethod
    def native(cls) -> Asset:
        return cls(code="XLM", issuer=None, asset_type=AssetType.NATIVE)

    @property
    def is_native(self) -> bool:
        return self.asset_type == AssetType.NATIVE

    def __str__(self) -> str:
        if self.is_native:
            return self.code
        return f"{self.code}:{self.issuer}"


@dataclass(frozen=True)
class Signer:
    """A key authorized to sign for an account"""

    public_key: str
    weight: int
    type: str = "ed25519_public_key"


@dataclass(frozen=True)
class Thresholds:
    """Minimum signing weight per operation category"""

    low: int = 0
    medium: int = 0
    high: int = 0

    def __post_init__(self):
        for name in ("low", "medium", "high"):
            value = getattr(self, name)
            if not 0 <= value <= 255:
                raise ValueError(f"Threshold {name} out of range: {value}")


@dataclass(frozen=True)
class SignerSet:
    """Master key + additional signers of an account"""

    master_key: str
    master_weight: int
    signers: Tuple[Signer, ...] = ()

    def weight_of(self, public_key: str) -> int:
        """Weight a signature by this key contributes (0 if not a signer)"""
        if public_key == self.master_key:
            return self.master_weight
        for signer in self.signers:
            if signer.public_key == public_key:
                return signer.weight
        return 0

    def is_signer(self, public_key: str) -> bool:
        return self.weight_of(public_key) > 0

    @property
    def total_weight(self) -> int:
        return self.master_weight + sum(s.weight for s in self.signers)

    def signing_order(self) -> List[Tuple[str, int]]:
        """(key, weight) in the order the ledger checks them: master first, then signers by key"""
        order = [(self.master_key, self.master_weight)] if self.master_weight > 0 else []
        for signer in sorted(self.signers, key=lambda s: s.public_key):
            if signer.weight > 0:
                order.append((signer.public_key, signer.weight))
        return order

    def consume(self, signing_keys: List[str], needed: int) -> Tuple[int, int]:
        """
        Match signatures to signers the way the ledger does.

        Signers are walked in signing_order(); each one takes a matching
        signature until the collected weight reaches `needed`. The order the
        signatures were added in does not matter.

        Returns:
            (collected weight, number of signatures left unused)
        """
        pending = list(signing_keys)
        total = 0
        for key, weight in self.signing_order():
            if total >= needed:
                break
            if key in pending:
                pending.remove(key)
                total += weight
        return total, len(pending)


@dataclass
class AccountSnapshot:
    """
    Account state as read from the ledger at one point in time.

    Snapshots are never updated in place; every read is a fresh load.
    """

    address: str
    native_balance: Decimal
    balances: Dict[Asset, Decimal] = field(default_factory=dict)
    master_weight: int = 1
    signers: List[Signer] = field(default_factory=list)
    thresholds: Thresholds = field(default_factory=Thresholds)

    def balance(self, asset: Asset) -> Optional[Decimal]:
        """Balance of an asset, or None when the account has no trust line for it"""
        if asset.is_native:
            return self.native_balance
        return self.balances.get(asset)

    def has_trust_line(self, asset: Asset) -> bool:
        return asset in self.balances

    @property
    def signer_set(self) -> SignerSet:
        others = tuple(s for s in self.signers if s.public_key != self.address)
        return SignerSet(
            master_key=self.address,
            master_weight=self.master_weight,
            signers=others,
        )

    @classmethod
    def from_horizon(cls, data: Dict[str, Any]) -> AccountSnapshot:
        """Build a snapshot from a Horizon account record"""
        address = data.get("account_id", "")
        native = Decimal("0")
        balances: Dict[Asset, Decimal] = {}
        for entry in data.get("balances") or []:
            asset_type = entry.get("asset_type", "")
            if asset_type == AssetType.NATIVE.value:
                native = to_amount(entry.get("balance", "0"))
            elif asset_type in (AssetType.CREDIT_4.value, AssetType.CREDIT_12.value):
                asset = Asset(
                    code=entry.get("asset_code", ""),
                    issuer=entry.get("asset_issuer"),
                    asset_type=AssetType(asset_type),
                )
                balances[asset] = to_amount(entry.get("balance", "0"))

        # Horizon lists the master key among the signers
        master_weight = 0
        signers: List[Signer] = []
        for entry in data.get("signers") or []:
            key = entry.get("key", "")
            weight = int(entry.get("weight", 0))
            if key == address:
                master_weight = weight
            signers.append(Signer(public_key=key, weight=weight, type=entry.get("type", "")))

        raw = data.get("thresholds") or {}
        thresholds = Thresholds(
            low=int(raw.get("low_threshold", 0)),
            medium=int(raw.get("med_threshold", 0)),
            high=int(raw.get("high_threshold", 0)),
        )
        return cls(
            address=address,
            native_balance=native,
            balances=balances,
            master_weight=master_weight,
            signers=signers,
            thresholds=thresholds,
        )


class TxOptions:
    """
    Per-operation options: memo text and additional co-signers.

    Builder methods return self so options compose:

        Opts().with_memo_text("real payment").with_signer(seed1).with_signer(seed2)
    """

    def __init__(self):
        self.memo_text: Optional[str] = None
        self.signers: List[str] = []

    def with_memo_text(self, text: str) -> TxOptions:
        # Ledger text memos are limited to 28 bytes
        if len(text.encode("utf-8")) > 28:
            raise ValueError(f"Memo text too long: {text!r}")
        self.memo_text = text
        return self

    def with_signer(self, seed: str) -> TxOptions:
        self.signers.append(seed)
        return self

    def __repr__(self) -> str:
        return f"TxOptions(memo_text={self.memo_text!r}, signers={len(self.signers)})"


def Opts() -> TxOptions:
    """Shorthand for TxOptions()"""
    return TxOptions()


@dataclass
class PaymentAttempt:
    """A payment to be submitted by a specific set of signers"""

    source: str
    destination: str
    amount: Amount
    asset: Asset
    memo_text: Optional[str] = None
    signing_keys: List[str] = field(default_factory=list)

    def options(self) -> TxOptions:
        opts = TxOptions()
        if self.memo_text:
            opts.with_memo_text(self.memo_text)
        for seed in self.signing_keys:
            opts.with_signer(seed)
        return opts
