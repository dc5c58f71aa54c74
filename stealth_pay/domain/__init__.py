"""
StealthPay - Domain Package
=============================
Modelli, primitive crittografiche e formati.
"""

# Models
from stealth_pay.domain.models import (
    AsymmetricKeyPair,
    DerivationMethod,
    DerivedWallet,
    PublishedKeyRecord,
    StealthAnnouncement,
)

# Crypto
from stealth_pay.domain.crypto_core import (
    KeyPairProvider,
    Secp256k1Provider,
    get_key_pair_provider,
    compute_ecdh_secret,
)

# Formats
from stealth_pay.domain.addressing import (
    public_key_to_address,
    validate_address,
    format_public_key,
)

# Key pairs
from stealth_pay.domain.keypairs import (
    generate_key_pair,
    export_key_pair,
    import_key_pair,
)

__all__ = [
    # Models
    "AsymmetricKeyPair",
    "DerivationMethod",
    "DerivedWallet",
    "PublishedKeyRecord",
    "StealthAnnouncement",

    # Crypto
    "KeyPairProvider",
    "Secp256k1Provider",
    "get_key_pair_provider",
    "compute_ecdh_secret",

    # Formats
    "public_key_to_address",
    "validate_address",
    "format_public_key",

    # Key pairs
    "generate_key_pair",
    "export_key_pair",
    "import_key_pair",
]
