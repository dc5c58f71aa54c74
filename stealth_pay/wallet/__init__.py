"""
StealthPay - Wallet Package
=============================
Derivazione e indirizzi stealth.
"""

from stealth_pay.wallet.derivation import (
    derive_shared_secret,
    derive_wallet_from_secret,
    register_derivation,
    get_derivation,
    compute_view_tag,
)
from stealth_pay.wallet.stealth_address import StealthEngine

__all__ = [
    "derive_shared_secret",
    "derive_wallet_from_secret",
    "register_derivation",
    "get_derivation",
    "compute_view_tag",
    "StealthEngine",
]
