"""
StealthPay - Cryptographic Core Layer
========================================
Layer crittografico di basso livello per stealth addresses.

Security Level: CRITICAL
Last Updated: 2026-10-12
Version: 1.0.0

SECURITY NOTICE:
Questo modulo implementa primitive crittografiche critiche.
Ogni modifica deve essere sottoposta a security audit.

Algorithms:
- Hash: SHA-256, Keccak-256
- Key agreement: ECDH (secp256k1)
- Signature: ECDSA (secp256k1)
- KDF: PBKDF2
- Encryption: AES-256-GCM

Dependencies:
- cryptography (>=41.0.0)
- pycryptodome (Keccak-256)
- hashlib (stdlib)
"""

import asyncio
import hashlib
import hmac
import secrets
from typing import Optional, Tuple, Protocol, runtime_checkable

# Cryptography library (production-grade)
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature, InvalidTag

from Crypto.Hash import keccak

# Internal imports
from stealth_pay.constants import (
    AES_GCM_NONCE_SIZE,
    AES_KEY_SIZE,
    COMPRESSED_PUBKEY_SIZE,
    PBKDF2_MIN_ITERATIONS,
    PRIVATE_KEY_HEX_LENGTH,
    PRIVATE_KEY_SIZE,
    SECP256K1_N,
    UNCOMPRESSED_PUBKEY_SIZE,
)
from stealth_pay.domain.models import AsymmetricKeyPair
from stealth_pay.errors import (
    CryptoError,
    InvalidKeyError,
    KeyAgreementError,
    EncryptionError,
    DecryptionError,
)
from stealth_pay.logging_setup import get_logger


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("crypto")


# ============================================================================
# HASH FUNCTIONS
# ============================================================================

def compute_sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash.

    SHA-256 è l'hash primario per:
    - Derivazione STANDARD (secret -> chiave)
    - Chiave AES del provider (encrypt/decrypt con shared secret)

    Args:
        data: Input data da hashare

    Returns:
        bytes: 32-byte hash digest

    Examples:
        >>> compute_sha256(b"").hex()
        'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    if not isinstance(data, (bytes, bytearray)):
        raise CryptoError(
            f"compute_sha256 requires bytes, got {type(data).__name__}",
            code="INVALID_INPUT_TYPE"
        )

    return hashlib.sha256(data).digest()


def compute_keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 (variante Ethereum, non SHA3-256 FIPS).

    Usato per:
    - Indirizzi (ultimi 20 byte dell'hash del punto non compresso)
    - Checksum EIP-55
    - View tag
    - Derivazione LEGACY

    Examples:
        >>> compute_keccak256(b"").hex()
        'c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470'
    """
    if not isinstance(data, (bytes, bytearray)):
        raise CryptoError(
            f"compute_keccak256 requires bytes, got {type(data).__name__}",
            code="INVALID_INPUT_TYPE"
        )

    k = keccak.new(digest_bits=256)
    k.update(bytes(data))
    return k.digest()


# ============================================================================
# KEY DERIVATION FUNCTIONS
# ============================================================================

def derive_key_pbkdf2(
    password: bytes,
    salt: bytes,
    iterations: int = 200_000,
    key_length: int = AES_KEY_SIZE
) -> bytes:
    """
    Deriva chiave da password usando PBKDF2-HMAC-SHA256.

    Usato per il backup cifrato delle chiavi.

    Args:
        password: Password in bytes
        salt: Salt casuale (min 16 bytes)
        iterations: Numero iterazioni
        key_length: Lunghezza chiave output (bytes)

    Returns:
        bytes: Derived key

    Security:
        - Salt DEVE essere casuale e unico
    """
    if len(salt) < 16:
        raise CryptoError("Salt must be at least 16 bytes", code="SALT_TOO_SHORT")

    if iterations < PBKDF2_MIN_ITERATIONS:
        logger.warning(
            f"Low PBKDF2 iterations: {iterations}. Recommended: 100k+",
            extra_data={"iterations": iterations}
        )

    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=key_length,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(password)
    except Exception as e:
        raise CryptoError(f"PBKDF2 derivation failed: {e}", code="KDF_ERROR")


# ============================================================================
# SYMMETRIC ENCRYPTION (AES-256-GCM)
# ============================================================================

def encrypt_data_aes_gcm(
    plaintext: bytes,
    key: bytes,
    associated_data: Optional[bytes] = None
) -> Tuple[bytes, bytes]:
    """
    Encrypta data con AES-256-GCM (authenticated encryption).

    Args:
        plaintext: Dati da criptare
        key: Chiave 256-bit (32 bytes)
        associated_data: Dati addizionali autenticati ma non criptati

    Returns:
        tuple: (ciphertext, nonce)
            - ciphertext include authentication tag (16 bytes extra)
            - nonce: 12 bytes (salvare per decrypt)

    Examples:
        >>> key = secrets.token_bytes(32)
        >>> ciphertext, nonce = encrypt_data_aes_gcm(b"secret", key)
        >>> len(nonce)
        12
    """
    if len(key) != AES_KEY_SIZE:
        raise CryptoError(
            f"AES-256 requires 32-byte key, got {len(key)}",
            code="INVALID_KEY_LENGTH"
        )

    try:
        nonce = secrets.token_bytes(AES_GCM_NONCE_SIZE)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext, associated_data)

        logger.debug(
            "Data encrypted with AES-GCM",
            extra_data={
                "plaintext_size": len(plaintext),
                "ciphertext_size": len(ciphertext)
            }
        )

        return (ciphertext, nonce)

    except Exception as e:
        raise EncryptionError(f"AES-GCM encryption failed: {e}", code="ENCRYPT_ERROR")


def decrypt_data_aes_gcm(
    ciphertext: bytes,
    key: bytes,
    nonce: bytes,
    associated_data: Optional[bytes] = None
) -> bytes:
    """
    Decrypta data AES-256-GCM.

    Raises:
        DecryptionError: Se decrypt fallisce o auth tag invalido
    """
    if len(key) != AES_KEY_SIZE:
        raise CryptoError(f"AES-256 requires 32-byte key, got {len(key)}")

    if len(nonce) != AES_GCM_NONCE_SIZE:
        raise CryptoError(f"GCM requires 12-byte nonce, got {len(nonce)}")

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, associated_data)
    except InvalidTag:
        raise DecryptionError(
            "Authentication tag verification failed. Data may be corrupted or tampered.",
            code="AUTH_TAG_INVALID"
        )
    except Exception as e:
        raise DecryptionError(f"AES-GCM decryption failed: {e}", code="DECRYPT_ERROR")

    logger.debug(
        "Data decrypted with AES-GCM",
        extra_data={"plaintext_size": len(plaintext)}
    )

    return plaintext


# ============================================================================
# SECP256K1 KEY HELPERS
# ============================================================================

_CURVE = ec.SECP256K1()


def private_key_from_int(value: int) -> ec.EllipticCurvePrivateKey:
    """
    Costruisce private key da scalare.

    Raises:
        InvalidKeyError: Se value non è in [1, n-1]
    """
    if not (0 < value < SECP256K1_N):
        raise InvalidKeyError(
            "Private scalar out of range [1, n-1]",
            code="SCALAR_OUT_OF_RANGE"
        )
    return ec.derive_private_key(value, _CURVE)


def private_key_from_hex(private_hex: str) -> ec.EllipticCurvePrivateKey:
    """
    Carica private key da hex (64 caratteri, senza prefisso).

    Raises:
        InvalidKeyError: Formato o range invalido
    """
    if not isinstance(private_hex, str) or len(private_hex) != PRIVATE_KEY_HEX_LENGTH:
        raise InvalidKeyError(
            f"Private key must be {PRIVATE_KEY_HEX_LENGTH} hex characters",
            code="INVALID_PRIVATE_KEY"
        )

    try:
        value = int(private_hex, 16)
    except ValueError:
        raise InvalidKeyError("Private key is not valid hex", code="INVALID_PRIVATE_KEY")

    return private_key_from_int(value)


def private_key_to_hex(private_key: ec.EllipticCurvePrivateKey) -> str:
    """Private key -> 64 hex char"""
    return private_key.private_numbers().private_value.to_bytes(PRIVATE_KEY_SIZE, "big").hex()


def load_public_key(public_hex: str) -> ec.EllipticCurvePublicKey:
    """
    Carica public key SEC1 (compressa o non compressa) da hex.

    Il punto viene verificato sulla curva da cryptography.

    Raises:
        InvalidKeyError: Hex invalido, lunghezza errata o punto fuori curva
    """
    if not isinstance(public_hex, str):
        raise InvalidKeyError(
            f"Public key must be hex string, got {type(public_hex).__name__}",
            code="INVALID_PUBLIC_KEY"
        )

    try:
        raw = bytes.fromhex(public_hex)
    except ValueError:
        raise InvalidKeyError("Public key is not valid hex", code="INVALID_PUBLIC_KEY")

    if len(raw) not in (COMPRESSED_PUBKEY_SIZE, UNCOMPRESSED_PUBKEY_SIZE):
        raise InvalidKeyError(
            f"Public key must be 33 or 65 bytes, got {len(raw)}",
            code="INVALID_PUBLIC_KEY_LENGTH"
        )

    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, raw)
    except ValueError:
        raise InvalidKeyError("Public key is not a valid secp256k1 point", code="POINT_NOT_ON_CURVE")


def encode_public_key(public_key: ec.EllipticCurvePublicKey, compressed: bool = True) -> str:
    """Public key -> hex SEC1"""
    fmt = (
        serialization.PublicFormat.CompressedPoint
        if compressed
        else serialization.PublicFormat.UncompressedPoint
    )
    return public_key.public_bytes(serialization.Encoding.X962, fmt).hex()


def uncompressed_point(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Public key -> 65 bytes (0x04 || X || Y)"""
    return public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint
    )


def public_key_from_private_hex(private_hex: str) -> str:
    """Public key compressa (hex) corrispondente a una private key hex"""
    return encode_public_key(private_key_from_hex(private_hex).public_key())


def compute_ecdh_secret(local_private_hex: str, remote_public_hex: str) -> bytes:
    """
    ECDH secp256k1: coordinata x (32 bytes) del punto condiviso.

    Simmetrico: ECDH(a, B) == ECDH(b, A).

    Raises:
        KeyAgreementError: Chiavi malformate o punto fuori curva
    """
    try:
        private_key = private_key_from_hex(local_private_hex)
        public_key = load_public_key(remote_public_hex)
    except InvalidKeyError as e:
        raise KeyAgreementError(
            f"Key agreement failed: {e.message}",
            code="KEY_AGREEMENT_FAILED",
            details={"cause": e.code}
        )

    try:
        return private_key.exchange(ec.ECDH(), public_key)
    except ValueError as e:
        raise KeyAgreementError(f"Key agreement failed: {e}", code="KEY_AGREEMENT_FAILED")


# ============================================================================
# KEY PAIR PROVIDER PROTOCOL
# ============================================================================

@runtime_checkable
class KeyPairProvider(Protocol):
    """
    Protocol per provider di chiavi e primitive crittografiche.

    Tutte le primitive sono async: un provider può delegare a
    hardware wallet, enclave o servizi remoti.
    """

    async def generate_pair(self) -> AsymmetricKeyPair:
        """Genera coppia firma + coppia encryption"""
        ...

    async def ecdh(self, private_key: str, public_key: str) -> bytes:
        """Shared secret (32 bytes)"""
        ...

    async def hash(self, data: bytes) -> bytes:
        """Digest 32 bytes"""
        ...

    async def encrypt(self, data: bytes, secret: bytes) -> bytes:
        """Cifratura simmetrica con secret"""
        ...

    async def decrypt(self, data: bytes, secret: bytes) -> bytes:
        """Decifratura simmetrica con secret"""
        ...

    async def sign(self, message: bytes, private_key: str) -> bytes:
        """Firma messaggio"""
        ...

    async def verify(self, message: bytes, signature: bytes, public_key: str) -> bool:
        """Verifica firma (False se invalida)"""
        ...


# ============================================================================
# SECP256K1 PROVIDER
# ============================================================================

class Secp256k1Provider:
    """
    Provider di default su curva secp256k1.

    Features:
    - Key pair: firma + encryption indipendenti
    - ECDH: coordinata x del punto condiviso
    - Signature: ECDSA/SHA-256, DER encoded
    - Encrypt: AES-256-GCM con chiave SHA-256(secret), output nonce || ciphertext

    Le operazioni su curva girano in un thread (asyncio.to_thread), così
    lo scanning concorrente non blocca l'event loop.
    """

    name = "secp256k1"

    def __init__(self, offload: bool = True):
        self.curve = _CURVE
        self.hash_algo = hashes.SHA256()
        self.offload = offload

    async def _run(self, func, *args):
        if self.offload:
            return await asyncio.to_thread(func, *args)
        return func(*args)

    def _generate_pair_sync(self) -> AsymmetricKeyPair:
        sign_key = ec.generate_private_key(self.curve)
        enc_key = ec.generate_private_key(self.curve)

        return AsymmetricKeyPair(
            sign_pub=encode_public_key(sign_key.public_key()),
            sign_priv=private_key_to_hex(sign_key),
            enc_pub=encode_public_key(enc_key.public_key()),
            enc_priv=private_key_to_hex(enc_key),
        )

    async def generate_pair(self) -> AsymmetricKeyPair:
        """
        Genera keypair completo.

        Examples:
            >>> provider = Secp256k1Provider()
            >>> pair = await provider.generate_pair()
            >>> len(pair.enc_pub)
            66
        """
        try:
            pair = await self._run(self._generate_pair_sync)
        except Exception as e:
            raise CryptoError(f"Key pair generation failed: {e}", code="KEYGEN_ERROR")

        logger.debug("Key pair generated")
        return pair

    async def ecdh(self, private_key: str, public_key: str) -> bytes:
        """
        Raises:
            KeyAgreementError: Chiavi malformate
        """
        return await self._run(compute_ecdh_secret, private_key, public_key)

    async def hash(self, data: bytes) -> bytes:
        return compute_sha256(data)

    async def encrypt(self, data: bytes, secret: bytes) -> bytes:
        ciphertext, nonce = encrypt_data_aes_gcm(data, compute_sha256(secret))
        return nonce + ciphertext

    async def decrypt(self, data: bytes, secret: bytes) -> bytes:
        if len(data) <= AES_GCM_NONCE_SIZE:
            raise DecryptionError("Ciphertext too short", code="CIPHERTEXT_TOO_SHORT")

        return decrypt_data_aes_gcm(
            data[AES_GCM_NONCE_SIZE:],
            compute_sha256(secret),
            data[:AES_GCM_NONCE_SIZE],
        )

    def _sign_sync(self, message: bytes, private_key: str) -> bytes:
        return private_key_from_hex(private_key).sign(message, ec.ECDSA(self.hash_algo))

    async def sign(self, message: bytes, private_key: str) -> bytes:
        """
        Firma ECDSA (DER).

        Raises:
            InvalidKeyError: Se la private key è invalida
        """
        if not isinstance(message, bytes) or not message:
            raise CryptoError("Message must be non-empty bytes", code="INVALID_MESSAGE")

        signature = await self._run(self._sign_sync, message, private_key)

        logger.debug(
            "Message signed with ECDSA",
            extra_data={"message_size": len(message), "signature_size": len(signature)}
        )

        return signature

    def _verify_sync(self, message: bytes, signature: bytes, public_key: str) -> bool:
        try:
            load_public_key(public_key).verify(signature, message, ec.ECDSA(self.hash_algo))
            return True
        except CryptoInvalidSignature:
            logger.debug("ECDSA signature verification failed: invalid signature")
            return False
        except InvalidKeyError as e:
            logger.debug("ECDSA verification with malformed key", extra_data={"code": e.code})
            return False

    async def verify(self, message: bytes, signature: bytes, public_key: str) -> bool:
        """
        Verifica firma ECDSA.

        Returns:
            bool: True se firma valida, False altrimenti (anche con chiave malformata)
        """
        if not isinstance(message, bytes) or not isinstance(signature, bytes):
            return False

        return await self._run(self._verify_sync, message, signature, public_key)


# ============================================================================
# PROVIDER FACTORY
# ============================================================================

def get_key_pair_provider(algorithm: str = "secp256k1") -> KeyPairProvider:
    """
    Factory per ottenere il key pair provider.

    Raises:
        CryptoError: Se algorithm non supportato

    Examples:
        >>> provider = get_key_pair_provider()
        >>> isinstance(provider, Secp256k1Provider)
        True
    """
    algorithm = algorithm.lower()

    if algorithm == "secp256k1":
        return Secp256k1Provider()

    raise CryptoError(
        f"Unsupported key pair provider: {algorithm}",
        code="UNSUPPORTED_ALGORITHM",
        details={"supported": ["secp256k1"]}
    )


# ============================================================================
# RANDOM & HMAC
# ============================================================================

def generate_random_bytes(length: int) -> bytes:
    """
    Genera bytes casuali crittograficamente sicuri (CSPRNG).

    Examples:
        >>> len(generate_random_bytes(32))
        32
    """
    if length <= 0:
        raise CryptoError("Length must be positive")

    return secrets.token_bytes(length)


def constant_time_equals(a: bytes, b: bytes) -> bool:
    """Confronto a tempo costante"""
    return hmac.compare_digest(a, b)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "compute_sha256",
    "compute_keccak256",
    "derive_key_pbkdf2",
    "encrypt_data_aes_gcm",
    "decrypt_data_aes_gcm",
    "private_key_from_int",
    "private_key_from_hex",
    "private_key_to_hex",
    "load_public_key",
    "encode_public_key",
    "uncompressed_point",
    "public_key_from_private_hex",
    "compute_ecdh_secret",
    "KeyPairProvider",
    "Secp256k1Provider",
    "get_key_pair_provider",
    "generate_random_bytes",
    "constant_time_equals",
]
