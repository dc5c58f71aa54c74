"""
StealthPay - Data Model
=========================
Strutture dati immutabili per stealth addresses.

Security Level: CRITICAL
Last Updated: 2026-10-12
Version: 1.0.0

Contenuto:
- AsymmetricKeyPair: coppia firma + coppia Diffie-Hellman
- DerivationMethod: variante della riduzione segreto -> chiave
- StealthAnnouncement: record pubblico di un pagamento stealth
- DerivedWallet: chiave privata derivata (mai persistita)
- PublishedKeyRecord: encryption key pubblicata da una identity

Questo modulo non dipende dal layer crittografico: la validazione
qui è solo di forma (hex, lunghezze). La validazione semantica
(punti sulla curva, checksum) vive in addressing e HistoryRecorder.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from stealth_pay.constants import (
    COMPRESSED_PUBKEY_HEX_LENGTH,
    LEGACY_EPHEMERAL_PAIR_FIELD,
    PRIVATE_KEY_HEX_LENGTH,
    UNCOMPRESSED_PUBKEY_HEX_LENGTH,
)
from stealth_pay.errors import InvalidKeyError, format_validation_error


_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


def _is_hex(value: Any, *lengths: int) -> bool:
    return (
        isinstance(value, str)
        and len(value) in lengths
        and _HEX_RE.match(value) is not None
    )


# ============================================================================
# DERIVATION METHOD
# ============================================================================

class DerivationMethod(str, Enum):
    """
    Funzione di riduzione shared secret -> chiave privata.

    STANDARD: k = SHA-256(secret) mod n (creazione + apertura)
    LEGACY:   k = Keccak-256(utf8(hex(secret))) mod n (solo apertura)
    """
    STANDARD = "standard"
    LEGACY = "legacy"

    @classmethod
    def parse(cls, value: Any) -> Optional["DerivationMethod"]:
        """
        Converte valore serializzato in DerivationMethod.

        None resta None (record precedente al tracking del metodo).

        Raises:
            InvalidAnnouncementError: Se il valore non è un metodo noto
        """
        if value is None or isinstance(value, cls):
            return value

        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass

        raise format_validation_error(
            "derivationMethod", value, "one of: standard, legacy",
            code="UNKNOWN_DERIVATION_METHOD"
        )


# ============================================================================
# ASYMMETRIC KEY PAIR
# ============================================================================

@dataclass(frozen=True)
class AsymmetricKeyPair:
    """
    Due coppie di chiavi secp256k1 indipendenti.

    - sign_pub / sign_priv: identità e firma dei key record
    - enc_pub / enc_priv: key agreement (ECDH)

    Attributes:
        sign_pub (str): Public key firma, hex compressa (66 char)
        sign_priv (str): Private key firma, hex (64 char)
        enc_pub (str): Public key encryption, hex compressa (66 char)
        enc_priv (str): Private key encryption, hex (64 char)

    Security:
        - Immutabile (frozen dataclass)
        - Le metà private non finiscono mai in record pubblici
        - repr non mostra materiale privato

    Examples:
        >>> pair = await generate_key_pair()
        >>> pair.to_public_dict().keys()
        dict_keys(['signPub', 'encPub'])
    """

    sign_pub: str
    sign_priv: str = field(repr=False)
    enc_pub: str
    enc_priv: str = field(repr=False)

    def __post_init__(self):
        """Validazione formato + normalizzazione lowercase"""
        for name in ("sign_priv", "enc_priv"):
            value = getattr(self, name)
            if not _is_hex(value, PRIVATE_KEY_HEX_LENGTH):
                raise InvalidKeyError(
                    f"Invalid {name}: expected {PRIVATE_KEY_HEX_LENGTH} hex characters",
                    code="INVALID_PRIVATE_KEY"
                )
            object.__setattr__(self, name, value.lower())

        for name in ("sign_pub", "enc_pub"):
            value = getattr(self, name)
            if not _is_hex(value, COMPRESSED_PUBKEY_HEX_LENGTH, UNCOMPRESSED_PUBKEY_HEX_LENGTH):
                raise InvalidKeyError(
                    f"Invalid {name}: expected SEC1 public key in hex",
                    code="INVALID_PUBLIC_KEY",
                    details={"value": value[:12] if isinstance(value, str) else repr(value)}
                )
            object.__setattr__(self, name, value.lower())

    @property
    def identity_pub(self) -> str:
        """Identity pubblica = signing public key"""
        return self.sign_pub

    def to_public_dict(self) -> Dict[str, str]:
        """Solo metà pubbliche (sicuro da pubblicare)"""
        return {
            "signPub": self.sign_pub,
            "encPub": self.enc_pub,
        }

    def to_dict(self, include_private: bool = False) -> Dict[str, str]:
        """
        Serializza keypair.

        Args:
            include_private: Include chiavi private (PERICOLOSO, solo backup cifrato)
        """
        data = self.to_public_dict()

        if include_private:
            data["signPriv"] = self.sign_priv
            data["encPriv"] = self.enc_priv

        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AsymmetricKeyPair":
        """Deserializza keypair completo (camelCase)"""
        try:
            return cls(
                sign_pub=data["signPub"],
                sign_priv=data["signPriv"],
                enc_pub=data["encPub"],
                enc_priv=data["encPriv"],
            )
        except KeyError as e:
            raise InvalidKeyError(
                f"Missing key field: {e.args[0]}",
                code="INCOMPLETE_KEY_PAIR"
            )

    def __repr__(self) -> str:
        return (
            f"AsymmetricKeyPair(sign_pub={self.sign_pub[:16]}..., "
            f"enc_pub={self.enc_pub[:16]}...)"
        )


# ============================================================================
# STEALTH ANNOUNCEMENT
# ============================================================================

@dataclass(frozen=True)
class StealthAnnouncement:
    """
    Record pubblico di un pagamento stealth.

    Contiene solo la public key effimera: chiunque possieda la metà
    privata potrebbe derivare la chiave del pagamento senza il
    destinatario.

    Attributes:
        recipient_identity_pub (str): Identity del destinatario (senza "~")
        ephemeral_enc_pub (str): Public key effimera del mittente
        derived_address (str): Indirizzo stealth (EIP-55)
        created_at (int): Millisecondi da epoch
        derivation_method (DerivationMethod | None): None = record non tracciato
        view_tag (str | None): "0x" + primo byte di keccak256(secret)
    """

    recipient_identity_pub: str
    ephemeral_enc_pub: str
    derived_address: str
    created_at: int
    derivation_method: Optional[DerivationMethod] = DerivationMethod.STANDARD
    view_tag: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(
            self, "derivation_method", DerivationMethod.parse(self.derivation_method)
        )

    @property
    def method_or_default(self) -> DerivationMethod:
        """Metodo da usare per la prima apertura"""
        return self.derivation_method or DerivationMethod.STANDARD

    @property
    def is_untracked(self) -> bool:
        """True se il record precede il tracking esplicito del metodo"""
        return self.derivation_method is None

    def to_dict(self) -> Dict[str, Any]:
        """Serializza (camelCase)"""
        return {
            "recipientIdentityPub": self.recipient_identity_pub,
            "ephemeralEncPub": self.ephemeral_enc_pub,
            "derivedAddress": self.derived_address,
            "createdAt": self.created_at,
            "derivationMethod": (
                self.derivation_method.value if self.derivation_method else None
            ),
            "viewTag": self.view_tag,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StealthAnnouncement":
        """
        Deserializza announcement.

        Accetta anche il formato precedente
        (recipient, ephemeralKeyPair.epub, stealthAddress, timestamp, method):
        in quel formato un campo "method" assente significa record non tracciato.

        Il controllo sul materiale privato è compito di HistoryRecorder.validate;
        qui si estrae solo la public key effimera.

        Raises:
            InvalidAnnouncementError: Campi obbligatori mancanti
        """
        if "ephemeralEncPub" in data or LEGACY_EPHEMERAL_PAIR_FIELD not in data:
            required = ("recipientIdentityPub", "ephemeralEncPub", "derivedAddress", "createdAt")
            for name in required:
                if name not in data:
                    raise format_validation_error(name, None, "required field")

            return cls(
                recipient_identity_pub=data["recipientIdentityPub"],
                ephemeral_enc_pub=data["ephemeralEncPub"],
                derived_address=data["derivedAddress"],
                created_at=data["createdAt"],
                derivation_method=data.get("derivationMethod"),
                view_tag=data.get("viewTag"),
            )

        # Formato precedente
        pair = data.get(LEGACY_EPHEMERAL_PAIR_FIELD)
        if not isinstance(pair, Mapping) or not pair.get("epub"):
            raise format_validation_error(
                LEGACY_EPHEMERAL_PAIR_FIELD, pair, "object with epub"
            )

        for name in ("recipient", "stealthAddress", "timestamp"):
            if name not in data:
                raise format_validation_error(name, None, "required field")

        return cls(
            recipient_identity_pub=data["recipient"],
            ephemeral_enc_pub=pair["epub"],
            derived_address=data["stealthAddress"],
            created_at=data["timestamp"],
            derivation_method=data.get("method"),
            view_tag=data.get("viewTag"),
        )


# ============================================================================
# DERIVED WALLET
# ============================================================================

@dataclass(frozen=True)
class DerivedWallet:
    """
    Output della derivazione: chiave privata + indirizzo.

    Mai persistito. Il chiamante la scarta appena usata.
    """

    private_key: str = field(repr=False)
    address: str
    method: DerivationMethod = DerivationMethod.STANDARD

    def __repr__(self) -> str:
        return f"DerivedWallet(address={self.address}, method={self.method.value})"


# ============================================================================
# PUBLISHED KEY RECORD
# ============================================================================

@dataclass(frozen=True)
class PublishedKeyRecord:
    """
    Encryption key pubblicata da una identity.

    Attributes:
        identity_pub (str): Signing public key (senza "~")
        enc_pub (str): Encryption public key
        signature (str | None): Firma ECDSA DER hex su "identity_pub|enc_pub"
        published_at (int): Millisecondi da epoch
    """

    identity_pub: str
    enc_pub: str
    signature: Optional[str] = None
    published_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identityPub": self.identity_pub,
            "encPub": self.enc_pub,
            "signature": self.signature,
            "publishedAt": self.published_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PublishedKeyRecord":
        return cls(
            identity_pub=data["identityPub"],
            enc_pub=data["encPub"],
            signature=data.get("signature"),
            published_at=data.get("publishedAt", 0),
        )


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "DerivationMethod",
    "AsymmetricKeyPair",
    "StealthAnnouncement",
    "DerivedWallet",
    "PublishedKeyRecord",
]
