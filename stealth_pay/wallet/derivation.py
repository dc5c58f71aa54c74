"""
StealthPay - Secret Derivation
=================================
ECDH shared secret e derivazione deterministica secret -> wallet.

Le funzioni di riduzione sono registrate per metodo: una funzione
già usata per annunciare indirizzi non può cambiare, quindi le
vecchie restano disponibili solo per aprire.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional
import re

from stealth_pay.constants import SECP256K1_N, SHARED_SECRET_SIZE, VIEW_TAG_SIZE
from stealth_pay.domain.crypto_core import (
    KeyPairProvider,
    get_key_pair_provider,
    compute_sha256,
    compute_keccak256,
    constant_time_equals,
    encode_public_key,
    private_key_from_int,
    private_key_to_hex,
)
from stealth_pay.domain.addressing import public_key_to_address
from stealth_pay.domain.models import DerivationMethod, DerivedWallet
from stealth_pay.errors import (
    CryptoError,
    DerivationMethodError,
    KeyAgreementError,
)
from stealth_pay.logging_setup import get_logger


logger = get_logger("derivation")


ReductionFunction = Callable[[bytes], int]

_VIEW_TAG_RE = re.compile(r"^0x[0-9a-fA-F]{2}$")


# ============================================================================
# SHARED SECRET
# ============================================================================

async def derive_shared_secret(
    local_enc_priv: str,
    remote_enc_pub: str,
    provider: Optional[KeyPairProvider] = None
) -> bytes:
    """
    Shared secret ECDH tra una private key locale e una public key remota.

    Simmetrico: il mittente usa (ephemeral.enc_priv, recipient.enc_pub),
    il destinatario (recipient.enc_priv, ephemeral_enc_pub).

    Args:
        local_enc_priv: Private key (hex)
        remote_enc_pub: Public key SEC1 (hex)
        provider: KeyPairProvider (default: secp256k1)

    Returns:
        bytes: 32 bytes

    Raises:
        KeyAgreementError: Chiavi malformate, punto fuori curva, secret di lunghezza errata
    """
    provider = provider or get_key_pair_provider()

    try:
        secret = await provider.ecdh(local_enc_priv, remote_enc_pub)
    except KeyAgreementError:
        raise
    except CryptoError as e:
        raise KeyAgreementError(
            f"Key agreement failed: {e.message}",
            code="KEY_AGREEMENT_FAILED",
            details={"cause": e.code}
        )

    if not isinstance(secret, (bytes, bytearray)) or len(secret) != SHARED_SECRET_SIZE:
        raise KeyAgreementError(
            "Shared secret has unexpected length",
            code="INVALID_SHARED_SECRET",
            details={"expected": SHARED_SECRET_SIZE}
        )

    return bytes(secret)


# ============================================================================
# REDUCTION REGISTRY
# ============================================================================

@dataclass(frozen=True)
class DerivationSpec:
    """Funzione di riduzione registrata per un metodo"""
    method: DerivationMethod
    reduce: ReductionFunction
    creatable: bool = False
    version: int = 1


_REGISTRY: Dict[DerivationMethod, DerivationSpec] = {}


def register_derivation(
    method: DerivationMethod,
    reduce: ReductionFunction,
    creatable: bool = False,
    version: int = 1
) -> DerivationSpec:
    """
    Registra (o sostituisce) la funzione di riduzione per un metodo.

    LEGACY non può essere registrato come creatable.

    Raises:
        DerivationMethodError: Se si tenta di rendere LEGACY creatable
    """
    method = DerivationMethod(method)

    if method is DerivationMethod.LEGACY and creatable:
        raise DerivationMethodError(
            "LEGACY derivation can only be used to open announcements",
            code="LEGACY_NOT_CREATABLE"
        )

    spec = DerivationSpec(method=method, reduce=reduce, creatable=creatable, version=version)
    _REGISTRY[method] = spec

    logger.debug(
        "Derivation registered",
        extra_data={"method": method.value, "creatable": creatable, "version": version}
    )

    return spec


def get_derivation(method: DerivationMethod) -> DerivationSpec:
    """
    Raises:
        DerivationMethodError: Metodo non registrato
    """
    try:
        return _REGISTRY[DerivationMethod(method)]
    except (KeyError, ValueError):
        raise DerivationMethodError(
            f"No derivation registered for method: {method}",
            code="UNKNOWN_DERIVATION_METHOD"
        )


def standard_reduction(secret: bytes) -> int:
    """k = SHA-256(secret) mod n"""
    return int.from_bytes(compute_sha256(secret), "big") % SECP256K1_N


def legacy_reduction(secret: bytes) -> int:
    """k = Keccak-256(utf8(hex(secret))) mod n (schema precedente, sulla forma testuale)"""
    return int.from_bytes(compute_keccak256(secret.hex().encode("utf-8")), "big") % SECP256K1_N


register_derivation(DerivationMethod.STANDARD, standard_reduction, creatable=True)
register_derivation(DerivationMethod.LEGACY, legacy_reduction, creatable=False)


# ============================================================================
# WALLET DERIVATION
# ============================================================================

def derive_wallet_from_secret(
    secret: bytes,
    method: DerivationMethod = DerivationMethod.STANDARD,
    for_creation: bool = False
) -> DerivedWallet:
    """
    Shared secret -> (private key, address).

    Args:
        secret: Shared secret ECDH (32 bytes)
        method: Metodo di riduzione
        for_creation: True quando il risultato finirà in un nuovo announcement

    Returns:
        DerivedWallet: Chiave privata hex + indirizzo EIP-55

    Raises:
        DerivationMethodError: Metodo sconosciuto o non creatable con for_creation
        KeyAgreementError: Secret malformato o scalare nullo
    """
    spec = get_derivation(method)

    if for_creation and not spec.creatable:
        raise DerivationMethodError(
            f"Derivation method '{spec.method.value}' cannot be used to create announcements",
            code="METHOD_NOT_CREATABLE"
        )

    if not isinstance(secret, (bytes, bytearray)) or len(secret) != SHARED_SECRET_SIZE:
        raise KeyAgreementError(
            "Shared secret must be 32 bytes",
            code="INVALID_SHARED_SECRET"
        )

    # Le riduzioni registrate possono restituire valori fuori da [0, n)
    scalar = spec.reduce(bytes(secret)) % SECP256K1_N
    if scalar == 0:
        raise KeyAgreementError("Derived scalar is zero", code="ZERO_SCALAR")

    private_key = private_key_from_int(scalar)
    address = public_key_to_address(encode_public_key(private_key.public_key()))

    return DerivedWallet(
        private_key=private_key_to_hex(private_key),
        address=address,
        method=spec.method,
    )


# ============================================================================
# VIEW TAG
# ============================================================================

def compute_view_tag(secret: bytes) -> str:
    """
    View tag: "0x" + primo byte di Keccak-256(secret).

    Examples:
        >>> compute_view_tag(bytes(32))
        '0x29'
    """
    return "0x" + compute_keccak256(secret)[:VIEW_TAG_SIZE].hex()


def is_valid_view_tag(value) -> bool:
    """True se value è "0x" + 2 hex"""
    return isinstance(value, str) and _VIEW_TAG_RE.match(value) is not None


def view_tag_matches(secret: bytes, view_tag: str) -> bool:
    """Confronta il view tag atteso con quello dell'announcement"""
    expected = compute_view_tag(secret)
    return constant_time_equals(expected.encode("ascii"), view_tag.lower().encode("ascii"))


__all__ = [
    "derive_shared_secret",
    "DerivationSpec",
    "register_derivation",
    "get_derivation",
    "standard_reduction",
    "legacy_reduction",
    "derive_wallet_from_secret",
    "compute_view_tag",
    "is_valid_view_tag",
    "view_tag_matches",
]
