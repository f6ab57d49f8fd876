"""
Harness configuration
Loaded from an optional YAML file, then overridden by environment variables
"""
import logging
import os
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import yaml

from outcomes import HarnessError

logger = logging.getLogger(__name__)

MAX_CONFIG_SIZE = 1024 * 1024  # 1MB

ENV_OVERRIDES = {
    "LEDGER_NETWORK": "network",
    "LEDGER_HORIZON_URL": "horizon_url",
    "LEDGER_FRIENDBOT_URL": "friendbot_url",
    "LEDGER_FUND_SOURCE_SEED": "fund_source_seed",
    "MOCK_LEDGER": "use_mock",
    "LEDGER_REJECT_UNUSED_SIGNATURES": "reject_unused_signatures",
    "LEDGER_HARNESS_LOG_LEVEL": "log_level",
}

# Fields that may be left empty
OPTIONAL_FIELDS = ("horizon_url", "friendbot_url", "fund_source_seed", "reject_unused_signatures")


class ConfigError(HarnessError):
    """Invalid harness configuration"""
    pass


@dataclass
class HarnessConfig:
    """Settings for one harness run"""

    network: str = "test"
    horizon_url: Optional[str] = None
    friendbot_url: Optional[str] = None
    fund_source_seed: Optional[str] = None
    use_mock: bool = False
    reject_unused_signatures: Optional[bool] = None
    log_level: str = "INFO"
    base_fee: int = 100
    tx_timeout: int = 30
    asset_code: str = "USD"
    bootstrap_amount: Decimal = Decimal("100")
    payback_fraction: Decimal = Decimal("0.5")
    distributor_limit: Decimal = Decimal("1000000")
    customer_limit: Decimal = Decimal("100000")
    issue_amount: Decimal = Decimal("500000")
    payment_amount: Decimal = Decimal("5000")

    @property
    def rejects_unused_signatures(self) -> bool:
        """The live network rejects unneeded signatures; the mock only if asked to"""
        if self.reject_unused_signatures is None:
            return not self.use_mock
        return self.reject_unused_signatures


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes')


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Convert a raw YAML/env value to the type of the field's default"""
    if value is None:
        if name in OPTIONAL_FIELDS:
            return None
        raise ConfigError(f"Missing value for {name}")
    try:
        if name in ("use_mock", "reject_unused_signatures"):
            return _parse_bool(value)
        if isinstance(default, Decimal):
            return Decimal(str(value))
        if isinstance(default, int):
            return int(value)
    except (TypeError, ValueError, InvalidOperation) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from e
    return str(value)


def _validate(config: HarnessConfig):
    if config.network not in ("test", "public"):
        raise ConfigError(f"Invalid network: {config.network}")
    if config.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"Invalid log level: {config.log_level}")
    # A faucet-funded identity keeps part of its balance
    if not Decimal("0") <= config.payback_fraction < Decimal("1"):
        raise ConfigError("payback_fraction must be at least 0 and below 1")
    for name in ("bootstrap_amount", "distributor_limit", "customer_limit",
                 "issue_amount", "payment_amount"):
        if getattr(config, name) <= 0:
            raise ConfigError(f"{name} must be positive")
    if config.issue_amount > config.distributor_limit:
        raise ConfigError("issue_amount exceeds distributor_limit")
    if not 1 <= len(config.asset_code) <= 12:
        raise ConfigError(f"Invalid asset code: {config.asset_code}")


def load_config(config_path: Optional[str] = None,
                environ: Optional[Dict[str, str]] = None) -> HarnessConfig:
    """
    Load configuration from YAML (optional) and environment variables

    Args:
        config_path: Path to a YAML file whose root is a mapping of field names
        environ: Environment to read overrides from (defaults to os.environ)

    Raises:
        ConfigError: if the file is unreadable or a value is invalid
    """
    environ = os.environ if environ is None else environ
    defaults = HarnessConfig()
    known = {f.name for f in fields(HarnessConfig)}
    values: Dict[str, Any] = {}

    if config_path:
        try:
            # Security: Limit config file size to 1MB
            file_size = os.path.getsize(config_path)
            if file_size > MAX_CONFIG_SIZE:
                raise ConfigError(f"Configuration file too large: {file_size} bytes")
            with open(config_path, 'r') as f:
                raw = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read configuration {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError("Invalid configuration: root must be a dictionary")
        for key, value in raw.items():
            if key not in known:
                raise ConfigError(f"Unknown configuration key: {key}")
            values[key] = value
        logger.info(f"Loaded configuration from {config_path}")

    for env_name, field_name in ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[field_name] = environ[env_name]

    for name, value in values.items():
        values[name] = _coerce(name, value, getattr(defaults, name))

    config = HarnessConfig(**values)
    _validate(config)
    return config
