"""
Asset registry
Defines the test-scoped assets used throughout a scenario
"""
import logging
from typing import Dict, Optional

from ledger_models import Asset, AssetType

logger = logging.getLogger(__name__)


def define_asset(code: str, issuer: str, asset_type: Optional[AssetType] = None) -> Asset:
    """
    Build an asset handle.

    Args:
        code: Asset code (e.g. "USD")
        issuer: Address of the issuing account
        asset_type: Precision class; inferred from the code length when omitted

    Returns:
        Immutable Asset value
    """
    if asset_type is None:
        asset_type = AssetType.CREDIT_4 if len(code) <= 4 else AssetType.CREDIT_12
    return Asset(code=code, issuer=issuer, asset_type=asset_type)


class AssetRegistry:
    """Keeps the asset handles defined during a run"""

    def __init__(self):
        self._assets: Dict[str, Asset] = {}

    def define(self, code: str, issuer: str, asset_type: Optional[AssetType] = None) -> Asset:
        asset = define_asset(code, issuer, asset_type)
        self._assets[code] = asset
        logger.info(f"Defined asset {asset.code} issued by {issuer} ({asset.asset_type.value})")
        return asset

    def get(self, code: str) -> Asset:
        if code not in self._assets:
            raise KeyError(f"Asset not defined: {code}")
        return self._assets[code]

    def __contains__(self, code: str) -> bool:
        return code in self._assets
