"""Tests for the in-memory mock ledger and the client factories."""

from decimal import Decimal

import pytest

from ledger_client import AccountNotFoundError, FaucetError, LedgerAPIError, LedgerConnectionError
from ledger_client_mock import (
    MockFaucet,
    MockLedgerClient,
    get_faucet,
    get_ledger_client,
    use_mock_ledger,
)
from ledger_models import Asset, Opts


def _op_code(exc_info):
    return exc_info.value.result_codes["operations"][0]


def test_keypairs_are_unique(ledger):
    first = ledger.create_keypair()
    second = ledger.create_keypair()

    assert first.address != second.address
    assert first.address.startswith("G") and len(first.address) == 56
    assert first.seed.startswith("S") and len(first.seed) == 56
    assert ledger.address_of(first.seed) == first.address
    assert ledger.address_of(first.address) == first.address
    with pytest.raises(ValueError):
        ledger.address_of("SUNKNOWN")


def test_load_missing_account(ledger):
    with pytest.raises(AccountNotFoundError):
        ledger.load_account(ledger.create_keypair().address)


def test_new_account_defaults(ledger, make_account):
    account = make_account("100")
    snapshot = ledger.load_account(account.address)

    assert snapshot.native_balance == Decimal("100")
    assert snapshot.master_weight == 1
    assert snapshot.signers[-1].public_key == account.address
    assert snapshot.thresholds.medium == 0


def test_fund_account(ledger, make_account):
    source = make_account("100")
    target = ledger.create_keypair()

    ledger.fund_account(source.seed, target.address, "10", Opts().with_memo_text("initial fund"))

    assert ledger.load_account(target.address).native_balance == Decimal("10")
    assert ledger.submitted[-1]["operation"] == "create_account"
    assert ledger.submitted[-1]["memo"] == "initial fund"

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.fund_account(source.seed, target.address, "10")
    assert _op_code(exc_info) == "op_already_exists"

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.fund_account(source.seed, ledger.create_keypair().address, "0.5")
    assert _op_code(exc_info) == "op_low_reserve"


def test_native_payment_respects_reserve(ledger, make_account):
    source = make_account("10")
    target = make_account("10")

    # Two base reserves stay locked
    ledger.pay_native(source.seed, target.address, "9")
    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.pay_native(source.seed, target.address, "0.5")
    assert _op_code(exc_info) == "op_underfunded"
    assert ledger.load_account(source.address).native_balance == Decimal("1")


def test_payment_errors(ledger, make_account):
    issuer = make_account()
    holder = make_account()
    usd = Asset("USD", issuer.address)

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.pay(issuer.seed, ledger.create_keypair().address, "1", usd)
    assert _op_code(exc_info) == "op_no_destination"

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.pay(issuer.seed, holder.address, "1", usd)
    assert _op_code(exc_info) == "op_no_trust"

    ledger.create_trust_line(holder.seed, usd, "100")
    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.pay(issuer.seed, holder.address, "101", usd)
    assert _op_code(exc_info) == "op_line_full"

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.pay(holder.seed, issuer.address, "1", usd)
    assert _op_code(exc_info) == "op_underfunded"

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.pay(issuer.seed, holder.address, "0", usd)
    assert _op_code(exc_info) == "op_malformed"


def test_payment_without_source_trust_line(ledger, make_account):
    issuer = make_account()
    sender = make_account()
    receiver = make_account()
    usd = Asset("USD", issuer.address)
    ledger.create_trust_line(receiver.seed, usd, "100")

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.pay(sender.seed, receiver.address, "1", usd)
    assert _op_code(exc_info) == "op_src_no_trust"


def test_paying_the_issuer_burns_the_asset(ledger, make_account):
    issuer = make_account()
    holder = make_account()
    usd = Asset("USD", issuer.address)
    ledger.create_trust_line(holder.seed, usd, "100")
    ledger.pay(issuer.seed, holder.address, "40", usd)

    ledger.pay(holder.seed, issuer.address, "15", usd)

    assert ledger.load_account(holder.address).balance(usd) == Decimal("25")
    assert not ledger.load_account(issuer.address).has_trust_line(usd)


def test_trust_line_rules(ledger, make_account):
    issuer = make_account()
    holder = make_account()
    usd = Asset("USD", issuer.address)

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.create_trust_line(holder.seed, Asset("USD", ledger.create_keypair().address), "10")
    assert _op_code(exc_info) == "op_no_issuer"

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.create_trust_line(holder.seed, Asset.native(), "10")
    assert _op_code(exc_info) == "op_malformed"

    # A second change_trust only updates the limit
    ledger.create_trust_line(holder.seed, usd, "100")
    ledger.pay(issuer.seed, holder.address, "50", usd)
    ledger.create_trust_line(holder.seed, usd, "60")
    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.create_trust_line(holder.seed, usd, "40")
    assert _op_code(exc_info) == "op_invalid_limit"
    assert ledger.load_account(holder.address).balance(usd) == Decimal("50")


def test_subentries_raise_the_reserve(ledger, make_account):
    issuer = make_account()
    holder = make_account("1.2")

    # 2 base reserves + 1 for the trust line = 1.5
    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.create_trust_line(holder.seed, Asset("USD", issuer.address), "10")
    assert _op_code(exc_info) == "op_low_reserve"


def test_signer_management(ledger, make_account):
    account = make_account()
    signer = ledger.create_keypair()

    ledger.add_signer(account.seed, signer.address, 1)
    ledger.add_signer(account.seed, signer.address, 3)
    assert ledger.load_account(account.address).signer_set.weight_of(signer.address) == 3

    ledger.add_signer(account.seed, signer.address, 0)
    assert not ledger.load_account(account.address).signer_set.is_signer(signer.address)

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.add_signer(account.seed, account.address, 1)
    assert _op_code(exc_info) == "op_bad_signer"


def test_threshold_range(ledger, make_account):
    account = make_account()

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.set_thresholds(account.seed, 0, 0, 256)
    assert _op_code(exc_info) == "op_threshold_out_of_range"
    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.set_master_weight(account.seed, -1)
    assert _op_code(exc_info) == "op_threshold_out_of_range"


def test_signatures_are_checked_before_operation(ledger, make_account):
    account = make_account()
    stranger = make_account()

    with pytest.raises(LedgerAPIError) as exc_info:
        ledger.pay_native(account.address, stranger.address, "1", Opts().with_signer(stranger.seed))
    assert exc_info.value.result_codes == {"transaction": "tx_bad_auth"}
    assert ledger.submitted == []


def test_strict_ledger_rejects_unused_signatures(strict_ledger):
    account = strict_ledger.create_keypair()
    signer = strict_ledger.create_keypair()
    target = strict_ledger.create_keypair()
    for keypair in (account, target):
        strict_ledger.mint_account(keypair.address, "100")
    strict_ledger.add_signer(account.seed, signer.address, 1)

    with pytest.raises(LedgerAPIError) as exc_info:
        strict_ledger.pay_native(account.seed, target.address, "1", Opts().with_signer(signer.seed))
    assert exc_info.value.result_codes == {"transaction": "tx_bad_auth_extra"}

    # Exactly enough weight
    strict_ledger.set_thresholds(account.seed, 2, 2, 2)
    strict_ledger.pay_native(account.seed, target.address, "1", Opts().with_signer(signer.seed))
    assert strict_ledger.load_account(target.address).native_balance == Decimal("101")


def test_offline_ledger(ledger, make_account):
    account = make_account()
    ledger.offline = True

    with pytest.raises(LedgerConnectionError):
        ledger.load_account(account.address)
    with pytest.raises(LedgerConnectionError):
        ledger.pay_native(account.seed, account.address, "1")


def test_mock_faucet(ledger):
    faucet = MockFaucet(ledger, amount="250")
    keypair = ledger.create_keypair()

    assert faucet.fund(keypair.address)["successful"]
    assert ledger.load_account(keypair.address).native_balance == Decimal("250")
    with pytest.raises(FaucetError):
        faucet.fund(keypair.address)
    with pytest.raises(FaucetError):
        MockFaucet(ledger, available=False).fund(ledger.create_keypair().address)


def test_use_mock_ledger(monkeypatch):
    monkeypatch.setenv("MOCK_LEDGER", "true")
    assert use_mock_ledger()
    monkeypatch.setenv("MOCK_LEDGER", "no")
    assert not use_mock_ledger()
    monkeypatch.delenv("MOCK_LEDGER")
    assert not use_mock_ledger()


def test_factories_pick_the_mock(monkeypatch):
    monkeypatch.setenv("MOCK_LEDGER", "1")
    client = get_ledger_client(reject_unused_signatures=True)

    assert isinstance(client, MockLedgerClient)
    assert client.reject_unused_signatures
    assert isinstance(get_faucet(client), MockFaucet)


def test_signature_order_does_not_matter(strict_ledger):
    account = strict_ledger.create_keypair()
    target = strict_ledger.create_keypair()
    for keypair in (account, target):
        strict_ledger.mint_account(keypair.address, "100")
    first, second = sorted((strict_ledger.create_keypair() for _ in range(2)), key=lambda k: k.address)

    # The signer checked first carries the whole threshold
    strict_ledger.add_signer(account.seed, first.address, 2)
    strict_ledger.add_signer(account.seed, second.address, 1)
    strict_ledger.set_master_weight(account.seed, 0)
    strict_ledger.set_thresholds(account.address, 2, 2, 2, Opts().with_signer(first.seed))

    with pytest.raises(LedgerAPIError) as exc_info:
        strict_ledger.pay_native(account.address, target.address, "1",
                                 Opts().with_signer(second.seed).with_signer(first.seed))
    assert exc_info.value.result_codes == {"transaction": "tx_bad_auth_extra"}

    strict_ledger.pay_native(account.address, target.address, "1", Opts().with_signer(first.seed))
    assert strict_ledger.load_account(target.address).native_balance == Decimal("101")
