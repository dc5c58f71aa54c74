"""
StealthPay - Core Constants
================================
Costanti immutabili del protocollo stealth addresses.

Security Level: CRITICAL
Last Updated: 2026-10-12
Version: 1.0.0

IMPORTANTE: cambiare una costante di derivazione rende inapribili
gli announcement già pubblicati.
"""

from typing import Final


# ============================================================================
# IDENTIFICAZIONE PROGETTO
# ============================================================================

PROJECT_NAME: Final[str] = "StealthPay"

# Versione formato announcement (to_dict/from_dict)
ANNOUNCEMENT_FORMAT_VERSION: Final[int] = 1

# Versione envelope backup chiavi
KEY_BACKUP_VERSION: Final[int] = 1


# ============================================================================
# CURVA ELLITTICA (secp256k1)
# ============================================================================

CURVE_NAME: Final[str] = "secp256k1"

# Ordine del gruppo n
SECP256K1_N: Final[int] = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)

# Primo del campo p
SECP256K1_P: Final[int] = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F", 16
)


# ============================================================================
# DIMENSIONI CHIAVI E INDIRIZZI
# ============================================================================

PRIVATE_KEY_SIZE: Final[int] = 32
PRIVATE_KEY_HEX_LENGTH: Final[int] = PRIVATE_KEY_SIZE * 2

COMPRESSED_PUBKEY_SIZE: Final[int] = 33
UNCOMPRESSED_PUBKEY_SIZE: Final[int] = 65
COMPRESSED_PUBKEY_HEX_LENGTH: Final[int] = COMPRESSED_PUBKEY_SIZE * 2
UNCOMPRESSED_PUBKEY_HEX_LENGTH: Final[int] = UNCOMPRESSED_PUBKEY_SIZE * 2

SHARED_SECRET_SIZE: Final[int] = 32

ADDRESS_SIZE: Final[int] = 20
ADDRESS_PREFIX: Final[str] = "0x"
ADDRESS_HEX_LENGTH: Final[int] = ADDRESS_SIZE * 2

# View tag: primo byte di keccak256(shared secret)
VIEW_TAG_SIZE: Final[int] = 1


# ============================================================================
# IDENTITY KEYS
# ============================================================================

# Marker di schema davanti alle identity pub ("~<pub>")
SCHEME_PREFIX: Final[str] = "~"

# Charset ammesso per una identity pub (dopo il prefisso)
IDENTITY_PUB_PATTERN: Final[str] = r"^[~]?[\w+/=\-_.]+$"

# Separatore del messaggio firmato nei key record
KEY_RECORD_SEPARATOR: Final[str] = "|"


# ============================================================================
# VALIDAZIONE ANNOUNCEMENT
# ============================================================================

# Nomi di campo che indicano materiale privato (confronto case-insensitive)
PRIVATE_FIELD_NAMES: Final[frozenset] = frozenset({
    "priv",
    "epriv",
    "encpriv",
    "signpriv",
    "privatekey",
    "private_key",
    "enc_priv",
    "sign_priv",
    "ephemeralprivatekey",
    "ephemeral_private_key",
    "sharedsecret",
    "shared_secret",
    "secret",
    "mnemonic",
    "seed",
})

# Sottostringhe che rendono "privato" qualsiasi nome di campo
PRIVATE_NAME_MARKERS: Final[tuple] = ("priv", "secret")

# Chiave annidata del vecchio formato che conteneva l'intera coppia effimera
LEGACY_EPHEMERAL_PAIR_FIELD: Final[str] = "ephemeralKeyPair"


# ============================================================================
# KEY DERIVATION (backup)
# ============================================================================

PBKDF2_MIN_ITERATIONS: Final[int] = 10_000
PBKDF2_DEFAULT_ITERATIONS: Final[int] = 200_000
PBKDF2_MAX_ITERATIONS: Final[int] = 10_000_000
PBKDF2_SALT_SIZE: Final[int] = 32
AES_KEY_SIZE: Final[int] = 32
AES_GCM_NONCE_SIZE: Final[int] = 12


# ============================================================================
# SCANNING
# ============================================================================

DEFAULT_SCAN_MAX_WORKERS: Final[int] = 8
MAX_SCAN_WORKERS: Final[int] = 256

# Soglia warning per PerformanceLogger (ms)
SCAN_SLOW_THRESHOLD_MS: Final[int] = 5_000


# ============================================================================
# STORAGE
# ============================================================================

DB_FILENAME: Final[str] = "stealthpay.db"
TABLE_IDENTITY_KEYS: Final[str] = "identity_keys"
TABLE_ANNOUNCEMENTS: Final[str] = "announcements"


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "PROJECT_NAME",
    "ANNOUNCEMENT_FORMAT_VERSION",
    "KEY_BACKUP_VERSION",
    "CURVE_NAME",
    "SECP256K1_N",
    "SECP256K1_P",
    "PRIVATE_KEY_SIZE",
    "PRIVATE_KEY_HEX_LENGTH",
    "COMPRESSED_PUBKEY_SIZE",
    "UNCOMPRESSED_PUBKEY_SIZE",
    "COMPRESSED_PUBKEY_HEX_LENGTH",
    "UNCOMPRESSED_PUBKEY_HEX_LENGTH",
    "SHARED_SECRET_SIZE",
    "ADDRESS_SIZE",
    "ADDRESS_PREFIX",
    "ADDRESS_HEX_LENGTH",
    "VIEW_TAG_SIZE",
    "SCHEME_PREFIX",
    "IDENTITY_PUB_PATTERN",
    "KEY_RECORD_SEPARATOR",
    "PRIVATE_FIELD_NAMES",
    "PRIVATE_NAME_MARKERS",
    "LEGACY_EPHEMERAL_PAIR_FIELD",
    "PBKDF2_MIN_ITERATIONS",
    "PBKDF2_DEFAULT_ITERATIONS",
    "PBKDF2_MAX_ITERATIONS",
    "PBKDF2_SALT_SIZE",
    "AES_KEY_SIZE",
    "AES_GCM_NONCE_SIZE",
    "DEFAULT_SCAN_MAX_WORKERS",
    "MAX_SCAN_WORKERS",
    "SCAN_SLOW_THRESHOLD_MS",
    "DB_FILENAME",
    "TABLE_IDENTITY_KEYS",
    "TABLE_ANNOUNCEMENTS",
]
