"""Tests for loading the harness configuration."""

from decimal import Decimal

import pytest

from harness_config import ConfigError, HarnessConfig, load_config


@pytest.fixture
def config_file(tmp_path):
    def _write(text: str):
        path = tmp_path / "harness.yaml"
        path.write_text(text)
        return str(path)

    return _write


def test_defaults_without_file():
    config = load_config(environ={})

    assert config == HarnessConfig()
    assert config.network == "test"
    assert config.asset_code == "USD"
    assert config.issue_amount == Decimal("500000")


def test_yaml_values_are_coerced(config_file):
    path = config_file(
        "network: public\n"
        "asset_code: EURT\n"
        "payment_amount: 250.5\n"
        "base_fee: '200'\n"
        "use_mock: 'yes'\n"
    )

    config = load_config(path, environ={})

    assert config.network == "public"
    assert config.asset_code == "EURT"
    assert config.payment_amount == Decimal("250.5")
    assert config.base_fee == 200
    assert config.use_mock is True


def test_environment_overrides_file(config_file):
    path = config_file("network: public\nuse_mock: false\n")

    config = load_config(path, environ={
        "LEDGER_NETWORK": "test",
        "MOCK_LEDGER": "true",
        "LEDGER_FUND_SOURCE_SEED": "SSECRET",
        "LEDGER_HARNESS_LOG_LEVEL": "debug",
    })

    assert config.network == "test"
    assert config.use_mock is True
    assert config.fund_source_seed == "SSECRET"
    assert config.log_level == "debug"


def test_empty_environment_values_are_ignored():
    config = load_config(environ={"LEDGER_NETWORK": ""})
    assert config.network == "test"


def test_empty_file_uses_defaults(config_file):
    assert load_config(config_file(""), environ={}) == HarnessConfig()


@pytest.mark.parametrize(
    "text",
    [
        "network: moon\n",
        "log_level: LOUD\n",
        "payback_fraction: 1.5\n",
        "payback_fraction: 1\n",
        "payment_amount: 0\n",
        "issue_amount: 2000000\n",
        "asset_code: WAYTOOLONGCODE\n",
        "base_fee: cheap\n",
        "customer_limit: lots\n",
        "base_fee: [100]\n",
        "log_level:\n",
        "bootstrap_amount:\n",
        "asset_code:\n",
        "network:\n",
    ],
)
def test_invalid_values(config_file, text):
    with pytest.raises(ConfigError):
        load_config(config_file(text), environ={})


def test_unknown_key(config_file):
    with pytest.raises(ConfigError) as exc_info:
        load_config(config_file("netwrok: test\n"), environ={})
    assert "netwrok" in str(exc_info.value)


def test_root_must_be_a_mapping(config_file):
    with pytest.raises(ConfigError):
        load_config(config_file("- network\n- test\n"), environ={})


def test_invalid_yaml(config_file):
    with pytest.raises(ConfigError):
        load_config(config_file("network: [test\n"), environ={})


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.yaml"), environ={})


def test_unused_signature_rule_follows_the_ledger():
    assert HarnessConfig().rejects_unused_signatures is True
    assert HarnessConfig(use_mock=True).rejects_unused_signatures is False
    assert HarnessConfig(use_mock=True, reject_unused_signatures=True).rejects_unused_signatures is True
    assert HarnessConfig(reject_unused_signatures=False).rejects_unused_signatures is False


def test_unused_signature_rule_from_environment():
    config = load_config(environ={"MOCK_LEDGER": "1", "LEDGER_REJECT_UNUSED_SIGNATURES": "true"})
    assert config.use_mock
    assert config.rejects_unused_signatures


def test_optional_fields_may_be_empty(config_file):
    config = load_config(config_file("horizon_url:\nfund_source_seed:\nreject_unused_signatures:\n"),
                         environ={})
    assert config.horizon_url is None
    assert config.fund_source_seed is None
    assert config.reject_unused_signatures is None


def test_missing_value_names_the_key(config_file):
    with pytest.raises(ConfigError) as exc_info:
        load_config(config_file("log_level:\n"), environ={})
    assert "log_level" in str(exc_info.value)


def test_payback_fraction_below_one(config_file):
    assert load_config(config_file("payback_fraction: 0.99\n"), environ={}).payback_fraction == Decimal("0.99")
    assert load_config(config_file("payback_fraction: 0\n"), environ={}).payback_fraction == 0
