"""
StealthPay - Address & Key Formats
=====================================
Indirizzi EIP-55 e validazione formati chiave.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Address Format:
- Payload (20 bytes): ultimi 20 byte di Keccak-256(X || Y)
- Checksum EIP-55: maiuscola la lettera hex i se il nibble i
  di Keccak-256(lowercase hex) è >= 8
- Prefisso "0x"

Example Address: 0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed
"""

import re
from typing import Any, Optional

# Internal imports
from stealth_pay.domain.crypto_core import (
    compute_keccak256,
    encode_public_key,
    load_public_key,
    uncompressed_point,
)
from stealth_pay.errors import InvalidKeyError
from stealth_pay.logging_setup import get_logger
from stealth_pay.constants import (
    ADDRESS_HEX_LENGTH,
    ADDRESS_PREFIX,
    ADDRESS_SIZE,
    IDENTITY_PUB_PATTERN,
    PRIVATE_KEY_HEX_LENGTH,
    SCHEME_PREFIX,
)


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("addressing")


_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_IDENTITY_RE = re.compile(IDENTITY_PUB_PATTERN)


# ============================================================================
# ADDRESS GENERATION
# ============================================================================

def to_checksum_address(address: str) -> str:
    """
    Applica checksum EIP-55.

    Args:
        address: "0x" + 40 hex (qualsiasi case)

    Returns:
        str: Indirizzo con checksum

    Algorithm:
        1. hex lowercase senza prefisso
        2. h = keccak256(ascii(hex))
        3. carattere i maiuscolo se nibble i di h >= 8

    Examples:
        >>> to_checksum_address("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed")
        '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address):
        raise InvalidKeyError(
            f"Invalid address format: expected 0x + {ADDRESS_HEX_LENGTH} hex",
            code="INVALID_ADDRESS"
        )

    body = address[2:].lower()
    digest = compute_keccak256(body.encode("ascii")).hex()

    return ADDRESS_PREFIX + "".join(
        char.upper() if int(digest[i], 16) >= 8 else char
        for i, char in enumerate(body)
    )


def public_key_to_address(public_key: str) -> str:
    """
    Public key secp256k1 (hex, compressa o no) -> indirizzo EIP-55.

    Raises:
        InvalidKeyError: Public key invalida
    """
    point = uncompressed_point(load_public_key(public_key))
    digest = compute_keccak256(point[1:])
    return to_checksum_address(ADDRESS_PREFIX + digest[-ADDRESS_SIZE:].hex())


# ============================================================================
# ADDRESS VALIDATION
# ============================================================================

def validate_address(address: Any) -> bool:
    """
    Valida indirizzo.

    Regole:
    - "0x" + 40 hex
    - tutto minuscolo o tutto maiuscolo: accettato senza checksum
    - case misto: il checksum EIP-55 deve corrispondere

    Examples:
        >>> validate_address("0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")
        True
        >>> validate_address("0x5AAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")
        False
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address):
        return False

    body = address[2:]
    if body == body.lower() or body == body.upper():
        return True

    return to_checksum_address(address) == address


def compare_addresses(addr1: str, addr2: str) -> bool:
    """Confronto case-insensitive"""
    if not isinstance(addr1, str) or not isinstance(addr2, str):
        return False
    return addr1.lower() == addr2.lower()


# ============================================================================
# KEY FORMATS
# ============================================================================

def is_valid_public_key(value: Any) -> bool:
    """True se value è un punto secp256k1 valido in hex SEC1"""
    if not isinstance(value, str):
        return False
    try:
        load_public_key(value)
    except InvalidKeyError:
        return False
    return True


def normalize_public_key(value: str) -> str:
    """
    Normalizza public key a forma compressa lowercase.

    Raises:
        InvalidKeyError: Public key invalida
    """
    return encode_public_key(load_public_key(value))


def looks_like_private_key(value: Any) -> bool:
    """
    True se value ha la forma di una private key (64 hex, opz. "0x").

    Nessuna public key SEC1 ha questa lunghezza.
    """
    if not isinstance(value, str):
        return False
    if value.startswith(ADDRESS_PREFIX):
        value = value[2:]
    return len(value) == PRIVATE_KEY_HEX_LENGTH and _HEX_RE.match(value) is not None


# ============================================================================
# IDENTITY KEYS
# ============================================================================

def strip_scheme_prefix(identity_pub: str) -> str:
    """Rimuove il marker "~" iniziale"""
    if identity_pub.startswith(SCHEME_PREFIX):
        return identity_pub[len(SCHEME_PREFIX):]
    return identity_pub


def format_public_key(value: Any) -> Optional[str]:
    """
    Normalizza una identity pub per lookup/confronto.

    - None/vuota/non stringa -> None
    - charset fuori da [A-Za-z0-9_+/=-.] -> None
    - "~" iniziale rimosso

    Examples:
        >>> format_public_key("~abc123")
        'abc123'
        >>> format_public_key("invalid key!") is None
        True
    """
    if not isinstance(value, str):
        return None

    trimmed = value.strip()
    if not trimmed or not _IDENTITY_RE.match(trimmed):
        return None

    stripped = strip_scheme_prefix(trimmed)
    return stripped or None


def normalize_identity(value: Any) -> Optional[str]:
    """
    Chiave di lookup di una identity: format_public_key + forma
    compressa lowercase quando è una public key secp256k1.
    """
    identity = format_public_key(value)
    if identity is not None and is_valid_public_key(identity):
        return normalize_public_key(identity)
    return identity


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "to_checksum_address",
    "public_key_to_address",
    "validate_address",
    "compare_addresses",
    "is_valid_public_key",
    "normalize_public_key",
    "looks_like_private_key",
    "strip_scheme_prefix",
    "format_public_key",
    "normalize_identity",
]
