"""
StealthPay - KeyPair Management
==================================
Generazione, verifica e backup cifrato delle AsymmetricKeyPair.

Security Level: CRITICAL
Last Updated: 2026-10-12
Version: 1.0.0

Features:
- Generazione tramite KeyPairProvider
- Ricostruzione da private keys
- Export/import cifrato (PBKDF2 + AES-256-GCM)
"""

from __future__ import annotations

import json
from typing import Optional

# Internal imports
from stealth_pay.domain.crypto_core import (
    KeyPairProvider,
    get_key_pair_provider,
    encrypt_data_aes_gcm,
    decrypt_data_aes_gcm,
    derive_key_pbkdf2,
    generate_random_bytes,
    public_key_from_private_hex,
)
from stealth_pay.domain.addressing import normalize_public_key
from stealth_pay.domain.models import AsymmetricKeyPair
from stealth_pay.errors import (
    InvalidKeyError,
    EncryptionError,
    DecryptionError,
)
from stealth_pay.logging_setup import get_logger, short_key
from stealth_pay.constants import (
    KEY_BACKUP_VERSION,
    PBKDF2_DEFAULT_ITERATIONS,
    PBKDF2_MAX_ITERATIONS,
    PBKDF2_MIN_ITERATIONS,
    PBKDF2_SALT_SIZE,
)


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("keypairs")

MIN_PASSWORD_LENGTH = 8

# Associated data AES-GCM: lega il ciphertext al formato envelope
_BACKUP_AAD = b"stealthpay-key-backup-v1"


# ============================================================================
# KEYPAIR GENERATION
# ============================================================================

async def generate_key_pair(provider: Optional[KeyPairProvider] = None) -> AsymmetricKeyPair:
    """
    Genera nuova AsymmetricKeyPair.

    Args:
        provider: KeyPairProvider (default: secp256k1)

    Examples:
        >>> pair = await generate_key_pair()
        >>> len(pair.enc_priv)
        64
    """
    provider = provider or get_key_pair_provider()
    pair = await provider.generate_pair()

    logger.info(
        "Key pair generated",
        extra_data={"identity": short_key(pair.sign_pub)}
    )

    return pair


def key_pair_from_private(sign_priv: str, enc_priv: str) -> AsymmetricKeyPair:
    """
    Ricostruisce keypair dalle sole private keys.

    Raises:
        InvalidKeyError: Private key invalida
    """
    return AsymmetricKeyPair(
        sign_pub=public_key_from_private_hex(sign_priv),
        sign_priv=sign_priv,
        enc_pub=public_key_from_private_hex(enc_priv),
        enc_priv=enc_priv,
    )


def validate_key_pair(key_pair: AsymmetricKeyPair) -> bool:
    """
    Verifica che le metà pubbliche corrispondano alle private.

    Returns:
        bool: True se coerente
    """
    try:
        expected_sign = public_key_from_private_hex(key_pair.sign_priv)
        expected_enc = public_key_from_private_hex(key_pair.enc_priv)

        return (
            normalize_public_key(key_pair.sign_pub) == expected_sign
            and normalize_public_key(key_pair.enc_pub) == expected_enc
        )
    except InvalidKeyError as e:
        logger.warning("Key pair validation failed", extra_data={"code": e.code})
        return False


# ============================================================================
# KEYPAIR BACKUP (ENCRYPTED EXPORT/IMPORT)
# ============================================================================

def export_key_pair(
    key_pair: AsymmetricKeyPair,
    password: str,
    iterations: int = PBKDF2_DEFAULT_ITERATIONS
) -> str:
    """
    Cripta keypair con password.

    Args:
        key_pair: Keypair da esportare
        password: Password (min 8 caratteri)
        iterations: Iterazioni PBKDF2

    Returns:
        str: JSON envelope {
            "version", "kdf", "iterations", "salt",
            "nonce", "ciphertext", "signPub", "encPub"
        }

    Security:
        - Salt random per ogni export
        - Le public keys in chiaro servono solo come hint; l'import
          verifica quelle cifrate
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise EncryptionError(
            f"Password too weak. Minimum {MIN_PASSWORD_LENGTH} characters.",
            code="WEAK_PASSWORD"
        )

    if iterations < PBKDF2_MIN_ITERATIONS:
        raise EncryptionError(
            f"Too few PBKDF2 iterations: {iterations}",
            code="WEAK_KDF",
            details={"minimum": PBKDF2_MIN_ITERATIONS}
        )

    if iterations > PBKDF2_MAX_ITERATIONS:
        raise EncryptionError(
            f"Too many PBKDF2 iterations: {iterations}",
            code="KDF_ITERATIONS_OUT_OF_RANGE",
            details={"maximum": PBKDF2_MAX_ITERATIONS}
        )

    salt = generate_random_bytes(PBKDF2_SALT_SIZE)
    key = derive_key_pbkdf2(password.encode("utf-8"), salt, iterations)

    plaintext = json.dumps(key_pair.to_dict(include_private=True)).encode("utf-8")
    ciphertext, nonce = encrypt_data_aes_gcm(plaintext, key, _BACKUP_AAD)

    logger.info(
        "Key pair exported",
        extra_data={"identity": short_key(key_pair.sign_pub), "iterations": iterations}
    )

    return json.dumps({
        "version": KEY_BACKUP_VERSION,
        "kdf": "pbkdf2-sha256",
        "iterations": iterations,
        "salt": salt.hex(),
        "nonce": nonce.hex(),
        "ciphertext": ciphertext.hex(),
        "signPub": key_pair.sign_pub,
        "encPub": key_pair.enc_pub,
    })


def import_key_pair(blob: str, password: str) -> AsymmetricKeyPair:
    """
    Decripta keypair esportata con export_key_pair.

    Raises:
        DecryptionError: Password errata, dati manomessi o envelope invalido
            (incluse iterazioni PBKDF2 fuori range)
        InvalidKeyError: Materiale chiave incoerente
    """
    try:
        envelope = json.loads(blob)
        if envelope["version"] != KEY_BACKUP_VERSION:
            raise DecryptionError(
                f"Unsupported backup version: {envelope['version']}",
                code="UNSUPPORTED_BACKUP_VERSION"
            )

        salt = bytes.fromhex(envelope["salt"])
        nonce = bytes.fromhex(envelope["nonce"])
        ciphertext = bytes.fromhex(envelope["ciphertext"])
        iterations = int(envelope["iterations"])
    except (KeyError, ValueError, TypeError) as e:
        raise DecryptionError(
            f"Invalid encrypted data format: {e}",
            code="INVALID_ENCRYPTED_FORMAT"
        )

    # Iterazioni limitate prima di avviare il KDF
    if not PBKDF2_MIN_ITERATIONS <= iterations <= PBKDF2_MAX_ITERATIONS:
        raise DecryptionError(
            f"PBKDF2 iterations out of range: {iterations}",
            code="KDF_ITERATIONS_OUT_OF_RANGE",
            details={"minimum": PBKDF2_MIN_ITERATIONS, "maximum": PBKDF2_MAX_ITERATIONS}
        )

    key = derive_key_pbkdf2(password.encode("utf-8"), salt, iterations)

    try:
        plaintext = decrypt_data_aes_gcm(ciphertext, key, nonce, _BACKUP_AAD)
    except DecryptionError:
        raise DecryptionError(
            "Failed to decrypt key pair. Wrong password or corrupted data.",
            code="DECRYPTION_FAILED"
        )

    try:
        key_pair = AsymmetricKeyPair.from_dict(json.loads(plaintext))
    except ValueError as e:
        raise DecryptionError(f"Corrupted key payload: {e}", code="INVALID_ENCRYPTED_FORMAT")

    if not validate_key_pair(key_pair):
        raise InvalidKeyError(
            "Public keys do not match private keys",
            code="KEY_PAIR_MISMATCH"
        )

    logger.info("Key pair imported", extra_data={"identity": short_key(key_pair.sign_pub)})

    return key_pair


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "generate_key_pair",
    "key_pair_from_private",
    "validate_key_pair",
    "export_key_pair",
    "import_key_pair",
    "MIN_PASSWORD_LENGTH",
]
