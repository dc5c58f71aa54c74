"""
StealthPay - Stealth Addresses
=================================
Generazione e apertura di indirizzi stealth one-time.

Schema:
- Mittente: coppia effimera (e, E); secret = ECDH(e, recipient.enc_pub)
- Indirizzo: address(reduce(secret) * G)
- Destinatario: secret = ECDH(recipient.enc_priv, E), stessa riduzione

L'engine non conserva stato per operazione: ogni valore (coppia
effimera, metodo usato) passa per parametri e valori di ritorno,
quindi lo scanning concorrente su una sola istanza è sicuro.
"""

import time
from typing import Iterable, List, Optional, Tuple

from stealth_pay.config import StealthSettings, get_settings
from stealth_pay.domain.addressing import (
    compare_addresses,
    normalize_identity,
    is_valid_public_key,
    normalize_public_key,
)
from stealth_pay.domain.crypto_core import (
    KeyPairProvider,
    compute_ecdh_secret,
    get_key_pair_provider,
)
from stealth_pay.domain.models import (
    AsymmetricKeyPair,
    DerivationMethod,
    DerivedWallet,
    StealthAnnouncement,
)
from stealth_pay.errors import (
    AddressMismatchError,
    RecipientKeyNotFoundError,
)
from stealth_pay.logging_setup import get_logger, short_key
from stealth_pay.storage.interfaces import IdentityKeyStore
from stealth_pay.wallet.derivation import (
    compute_view_tag,
    derive_shared_secret,
    derive_wallet_from_secret,
    is_valid_view_tag,
    view_tag_matches,
)


logger = get_logger("stealth")


def _now_ms() -> int:
    return int(time.time() * 1000)


class StealthEngine:
    """
    Generazione, apertura e riconoscimento di stealth addresses.

    Attributes:
        provider: KeyPairProvider per chiavi effimere ed ECDH
        key_store: IdentityKeyStore per risolvere la encryption key del destinatario
        settings: StealthSettings (view tags, legacy fallback)

    Examples:
        >>> engine = StealthEngine(provider, key_store, settings)
        >>> announcement = await engine.generate_stealth_address("~02ab...")
        >>> wallet = await engine.open_stealth_address(announcement, recipient_pair)
        >>> wallet.address == announcement.derived_address
        True
    """

    def __init__(
        self,
        provider: Optional[KeyPairProvider] = None,
        key_store: Optional[IdentityKeyStore] = None,
        settings: Optional[StealthSettings] = None
    ):
        self.provider = provider or get_key_pair_provider()
        self.key_store = key_store
        self.settings = settings or get_settings()

    # ========================================================================
    # SENDER SIDE
    # ========================================================================

    async def create_ephemeral_key_pair(self) -> AsymmetricKeyPair:
        """Coppia effimera nuova a ogni chiamata (mai riusata)"""
        return await self.provider.generate_pair()

    def resolve_recipient(self, recipient_identity_pub: str) -> Tuple[str, str]:
        """
        Identity pub -> (identity normalizzata, enc_pub).

        Raises:
            RecipientKeyNotFoundError: Identity malformata, chiave assente o invalida
        """
        identity = normalize_identity(recipient_identity_pub)
        if identity is None:
            raise RecipientKeyNotFoundError(
                "Invalid recipient identity key",
                code="INVALID_IDENTITY"
            )

        if self.key_store is None:
            raise RecipientKeyNotFoundError(
                "No identity key store configured",
                code="NO_KEY_STORE"
            )

        enc_pub = self.key_store.resolve_enc_pub(identity)
        if not enc_pub:
            raise RecipientKeyNotFoundError(
                "Recipient has not published an encryption key",
                code="RECIPIENT_KEY_NOT_FOUND",
                details={"identity": short_key(identity)}
            )

        return identity, enc_pub

    async def generate_stealth_address(self, recipient_identity_pub: str) -> StealthAnnouncement:
        """
        Genera announcement per un destinatario identificato dalla identity pub.

        Raises:
            RecipientKeyNotFoundError: Chiave del destinatario assente o malformata
            KeyAgreementError: ECDH fallito
        """
        identity, enc_pub = self.resolve_recipient(recipient_identity_pub)
        return await self.generate_stealth_address_for_key(identity, enc_pub)

    async def generate_stealth_address_for_key(
        self,
        recipient_identity_pub: str,
        recipient_enc_pub: str
    ) -> StealthAnnouncement:
        """
        Come generate_stealth_address, con la encryption key già nota.

        Formula:
        - (e, E) = coppia effimera nuova
        - secret = ECDH(e, recipient_enc_pub)
        - address = address(SHA-256(secret) mod n * G)

        La private key effimera e quella derivata non escono da qui.
        """
        identity = normalize_identity(recipient_identity_pub)
        if identity is None:
            raise RecipientKeyNotFoundError("Invalid recipient identity key", code="INVALID_IDENTITY")

        if not is_valid_public_key(recipient_enc_pub):
            raise RecipientKeyNotFoundError(
                "Recipient encryption key is malformed",
                code="RECIPIENT_KEY_MALFORMED",
                details={"identity": short_key(identity)}
            )

        ephemeral = await self.create_ephemeral_key_pair()
        secret = await derive_shared_secret(
            ephemeral.enc_priv,
            normalize_public_key(recipient_enc_pub),
            self.provider
        )
        wallet = derive_wallet_from_secret(secret, DerivationMethod.STANDARD, for_creation=True)

        announcement = StealthAnnouncement(
            recipient_identity_pub=identity,
            ephemeral_enc_pub=ephemeral.enc_pub,
            derived_address=wallet.address,
            created_at=_now_ms(),
            derivation_method=DerivationMethod.STANDARD,
            view_tag=compute_view_tag(secret) if self.settings.enable_view_tags else None,
        )

        logger.debug(
            "Stealth address generated",
            extra_data={
                "address": short_key(wallet.address),
                "ephemeral": short_key(ephemeral.enc_pub),
                "recipient": short_key(identity),
            }
        )

        return announcement

    async def generate_multiple_stealth_addresses(
        self,
        recipient_identity_pubs: Iterable[str]
    ) -> List[StealthAnnouncement]:
        """
        Batch: un announcement per destinatario, ognuno con coppia effimera propria.

        Si ferma al primo destinatario senza chiave (RecipientKeyNotFoundError).
        """
        announcements = []
        for identity_pub in recipient_identity_pubs:
            announcements.append(await self.generate_stealth_address(identity_pub))

        logger.info(
            "Stealth addresses generated",
            extra_data={"count": len(announcements)}
        )

        return announcements

    # ========================================================================
    # RECIPIENT SIDE
    # ========================================================================

    def _candidate_methods(self, announcement: StealthAnnouncement) -> List[DerivationMethod]:
        methods = [announcement.method_or_default]
        if announcement.is_untracked and self.settings.legacy_fallback:
            methods.append(DerivationMethod.LEGACY)
        return methods

    def _match(self, announcement: StealthAnnouncement, secret: bytes) -> DerivedWallet:
        for method in self._candidate_methods(announcement):
            wallet = derive_wallet_from_secret(secret, method)
            if compare_addresses(wallet.address, announcement.derived_address):
                if method is not announcement.method_or_default:
                    logger.debug(
                        "Announcement opened with fallback method",
                        extra_data={"address": short_key(announcement.derived_address), "method": method.value}
                    )
                return wallet

        raise AddressMismatchError(
            "Derived address does not match announcement",
            code="ADDRESS_MISMATCH",
            details={"expected": short_key(announcement.derived_address)}
        )

    async def open_stealth_address(
        self,
        announcement: StealthAnnouncement,
        recipient_key_pair: AsymmetricKeyPair
    ) -> DerivedWallet:
        """
        Deriva la private key di un announcement.

        Prova il metodo registrato (STANDARD se assente); per record non
        tracciati ritenta con LEGACY se legacy_fallback è attivo.

        Raises:
            AddressMismatchError: Announcement non destinato a questa keypair
            KeyAgreementError: Ephemeral key malformata
        """
        secret = await derive_shared_secret(
            recipient_key_pair.enc_priv,
            announcement.ephemeral_enc_pub,
            self.provider
        )
        return self._match(announcement, secret)

    async def is_mine(
        self,
        announcement: StealthAnnouncement,
        recipient_key_pair: AsymmetricKeyPair
    ) -> bool:
        """
        Predicato di ownership.

        Un view tag presente e diverso scarta l'announcement senza
        derivare il wallet. Solo gli errori di infrastruttura propagano.
        """
        secret = await derive_shared_secret(
            recipient_key_pair.enc_priv,
            announcement.ephemeral_enc_pub,
            self.provider
        )

        if is_valid_view_tag(announcement.view_tag) and not view_tag_matches(secret, announcement.view_tag):
            return False

        try:
            self._match(announcement, secret)
        except AddressMismatchError:
            return False

        return True

    def verify_stealth_address(
        self,
        announcement: StealthAnnouncement,
        recipient_key_pair: AsymmetricKeyPair
    ) -> bool:
        """
        Variante sincrona di is_mine (ECDH locale, senza provider).

        Raises:
            KeyAgreementError: Ephemeral key malformata
        """
        secret = compute_ecdh_secret(recipient_key_pair.enc_priv, announcement.ephemeral_enc_pub)

        try:
            self._match(announcement, secret)
        except AddressMismatchError:
            return False

        return True


__all__ = [
    "StealthEngine",
]
