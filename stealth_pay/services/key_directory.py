"""
StealthPay - Key Directory
============================
Pubblicazione e risoluzione delle encryption keys per identity.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Ogni record è firmato dalla signing key dell'identity su
"identity_pub|enc_pub": un mittente non cifra mai verso una
encryption key che l'identity non ha sottoscritto.
"""

import time
from typing import Optional

# Internal imports
from stealth_pay.config import StealthSettings, get_settings
from stealth_pay.constants import KEY_RECORD_SEPARATOR
from stealth_pay.domain.addressing import (
    format_public_key,
    normalize_identity,
    is_valid_public_key,
    normalize_public_key,
)
from stealth_pay.domain.crypto_core import KeyPairProvider, get_key_pair_provider
from stealth_pay.domain.models import AsymmetricKeyPair, PublishedKeyRecord
from stealth_pay.errors import InvalidKeyRecordError, RecipientKeyNotFoundError
from stealth_pay.logging_setup import AuditLogger, get_logger, short_key
from stealth_pay.storage.interfaces import IdentityKeyStore


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("services.keys")


def key_record_message(identity_pub: str, enc_pub: str) -> bytes:
    """Messaggio firmato di un key record"""
    return f"{identity_pub}{KEY_RECORD_SEPARATOR}{enc_pub}".encode("utf-8")


# ============================================================================
# KEY DIRECTORY
# ============================================================================

class KeyDirectory:
    """
    Front-end di un IdentityKeyStore con firma/verifica dei record.

    Attributes:
        store: IdentityKeyStore sottostante
        provider: KeyPairProvider per firma/verifica
        settings: StealthSettings (verify_key_records)
        audit: AuditLogger opzionale

    Examples:
        >>> directory = KeyDirectory(store, provider, settings)
        >>> record = await directory.publish(alice_pair)
        >>> await directory.resolve("~" + alice_pair.sign_pub) == alice_pair.enc_pub
        True
    """

    format_public_key = staticmethod(format_public_key)

    def __init__(
        self,
        store: IdentityKeyStore,
        provider: Optional[KeyPairProvider] = None,
        settings: Optional[StealthSettings] = None,
        audit: Optional[AuditLogger] = None
    ):
        self.store = store
        self.provider = provider or get_key_pair_provider()
        self.settings = settings or get_settings()
        self.audit = audit

    # ========================================================================
    # PUBLISH
    # ========================================================================

    async def publish(self, key_pair: AsymmetricKeyPair) -> PublishedKeyRecord:
        """
        Firma e pubblica la encryption key di key_pair.

        Returns:
            PublishedKeyRecord: Record pubblicato

        Raises:
            StoreError: Se lo store fallisce
        """
        identity = normalize_public_key(key_pair.sign_pub)
        enc_pub = normalize_public_key(key_pair.enc_pub)

        signature = await self.provider.sign(
            key_record_message(identity, enc_pub),
            key_pair.sign_priv
        )

        record = PublishedKeyRecord(
            identity_pub=identity,
            enc_pub=enc_pub,
            signature=signature.hex(),
            published_at=int(time.time() * 1000),
        )

        changed = self.store.publish_enc_pub(
            record.identity_pub,
            record.enc_pub,
            record.signature,
            record.published_at,
        )

        logger.info(
            "Encryption key published",
            extra_data={"identity": short_key(identity), "changed": changed}
        )

        if self.audit and changed:
            self.audit.log_key_published(identity, enc_pub)

        return record

    # ========================================================================
    # RESOLVE
    # ========================================================================

    def get_record(self, identity_pub: str) -> Optional[PublishedKeyRecord]:
        """Record grezzo (nessuna verifica), None se assente o identity invalida"""
        identity = normalize_identity(identity_pub)
        if identity is None:
            return None
        return self.store.get_key_record(identity)

    async def verify_record(self, record: PublishedKeyRecord) -> None:
        """
        Verifica firma e formato di un key record.

        Raises:
            InvalidKeyRecordError: Firma assente/invalida o chiavi malformate
        """
        if not is_valid_public_key(record.identity_pub):
            raise InvalidKeyRecordError(
                "Identity key is not a valid public key",
                code="INVALID_IDENTITY_KEY"
            )

        if not is_valid_public_key(record.enc_pub):
            raise InvalidKeyRecordError(
                "Encryption key is not a valid public key",
                code="INVALID_ENC_KEY"
            )

        if not record.signature:
            raise InvalidKeyRecordError("Key record is not signed", code="MISSING_SIGNATURE")

        try:
            signature = bytes.fromhex(record.signature)
        except ValueError:
            raise InvalidKeyRecordError("Signature is not valid hex", code="INVALID_SIGNATURE")

        valid = await self.provider.verify(
            key_record_message(record.identity_pub, record.enc_pub),
            signature,
            record.identity_pub
        )
        if not valid:
            raise InvalidKeyRecordError(
                "Key record signature verification failed",
                code="INVALID_SIGNATURE"
            )

    async def resolve(self, identity_pub: str) -> str:
        """
        Identity pub ("~" opzionale) -> encryption pub verificata.

        Raises:
            RecipientKeyNotFoundError: Identity invalida, record assente,
                malformato o con firma invalida
        """
        identity = normalize_identity(identity_pub)
        if identity is None:
            raise RecipientKeyNotFoundError("Invalid recipient identity key", code="INVALID_IDENTITY")

        record = self.store.get_key_record(identity)
        if record is None:
            raise RecipientKeyNotFoundError(
                "Recipient has not published an encryption key",
                code="RECIPIENT_KEY_NOT_FOUND",
                details={"identity": short_key(identity)}
            )

        if self.settings.verify_key_records:
            try:
                await self.verify_record(record)
            except InvalidKeyRecordError as e:
                logger.warning(
                    "Rejected key record",
                    extra_data={"identity": short_key(identity), "code": e.code}
                )
                raise RecipientKeyNotFoundError(
                    f"Published key record is invalid: {e.message}",
                    code="RECIPIENT_KEY_INVALID",
                    details={"identity": short_key(identity), "cause": e.code}
                )
        elif not is_valid_public_key(record.enc_pub):
            raise RecipientKeyNotFoundError(
                "Recipient encryption key is malformed",
                code="RECIPIENT_KEY_MALFORMED",
                details={"identity": short_key(identity)}
            )

        return normalize_public_key(record.enc_pub)


__all__ = [
    "KeyDirectory",
    "key_record_message",
]
