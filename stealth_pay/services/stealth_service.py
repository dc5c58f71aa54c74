"""
StealthPay - Stealth Service
==============================
Servizio high-level per pagamenti stealth.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Features:
- Pubblicazione encryption key firmata
- Invio: genera + registra announcement
- Scan pagamenti ricevuti
- Claim (private key dell'indirizzo stealth)
"""

from typing import Iterator, List, Optional

# Internal imports
from stealth_pay.config import StealthSettings, get_settings
from stealth_pay.domain.crypto_core import KeyPairProvider, get_key_pair_provider
from stealth_pay.domain.keypairs import export_key_pair, generate_key_pair, import_key_pair
from stealth_pay.domain.models import (
    AsymmetricKeyPair,
    DerivedWallet,
    PublishedKeyRecord,
    StealthAnnouncement,
)
from stealth_pay.logging_setup import AuditLogger, get_logger, short_key
from stealth_pay.services.history_service import HistoryRecorder
from stealth_pay.services.key_directory import KeyDirectory
from stealth_pay.services.scanning_service import ScanningService
from stealth_pay.storage.db import StealthDatabase
from stealth_pay.storage.interfaces import AnnouncementStore, IdentityKeyStore
from stealth_pay.wallet.stealth_address import StealthEngine


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("services.stealth")


# ============================================================================
# STEALTH SERVICE
# ============================================================================

class StealthService:
    """
    Servizio stealth payments.

    High-level API per:
    - Setup chiavi destinatario
    - Invio a identity pub
    - Scan e claim dei pagamenti ricevuti

    Attributes:
        settings: StealthSettings
        directory: KeyDirectory
        engine: StealthEngine
        scanner: ScanningService
        recorder: HistoryRecorder

    Examples:
        >>> service = StealthService.from_settings(settings)
        >>> bob = await service.create_key_pair()
        >>> await service.publish_keys(bob)
        >>> announcement = await service.send_to("~" + bob.sign_pub)
        >>> payments = await service.scan_for_payments(bob)
        >>> wallet = await service.claim(payments[0], bob)
    """

    def __init__(
        self,
        key_store: IdentityKeyStore,
        announcement_store: AnnouncementStore,
        provider: Optional[KeyPairProvider] = None,
        settings: Optional[StealthSettings] = None,
        audit: Optional[AuditLogger] = None
    ):
        self.settings = settings or get_settings()
        self.provider = provider or get_key_pair_provider()
        self.key_store = key_store
        self.announcement_store = announcement_store
        self.audit = audit

        self.directory = KeyDirectory(key_store, self.provider, self.settings, audit)
        self.engine = StealthEngine(self.provider, key_store, self.settings)
        self.scanner = ScanningService(self.engine, self.settings)
        self.recorder = HistoryRecorder(announcement_store, audit)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[StealthSettings] = None,
        provider: Optional[KeyPairProvider] = None
    ) -> "StealthService":
        """Servizio su StealthDatabase (key records + announcements nello stesso file)"""
        settings = settings or get_settings()
        database = StealthDatabase.from_settings(settings)
        audit = AuditLogger(settings.log_dir) if settings.log_to_file else None
        return cls(database, database, provider, settings, audit)

    # ========================================================================
    # KEYS
    # ========================================================================

    async def create_key_pair(self) -> AsymmetricKeyPair:
        """Nuova keypair (signing + encryption)"""
        return await generate_key_pair(self.provider)

    async def publish_keys(self, key_pair: AsymmetricKeyPair) -> PublishedKeyRecord:
        """Pubblica la encryption key firmata, così i mittenti possono risolverla"""
        return await self.directory.publish(key_pair)

    def export_keys(self, key_pair: AsymmetricKeyPair, password: str) -> str:
        """
        Backup cifrato della keypair.

        Usa settings.kdf_iterations come numero di iterazioni PBKDF2.
        """
        return export_key_pair(key_pair, password, self.settings.kdf_iterations)

    def import_keys(self, blob: str, password: str) -> AsymmetricKeyPair:
        """Ripristina una keypair da export_keys"""
        return import_key_pair(blob, password)

    # ========================================================================
    # SEND
    # ========================================================================

    async def send_to(self, recipient_identity_pub: str) -> StealthAnnouncement:
        """
        Genera e registra un announcement per il destinatario.

        Args:
            recipient_identity_pub: Identity pub ("~" opzionale)

        Returns:
            StealthAnnouncement: Announcement registrato

        Raises:
            RecipientKeyNotFoundError: Chiave assente o record non valido
            StoreError: Registrazione fallita
        """
        enc_pub = await self.directory.resolve(recipient_identity_pub)
        announcement = await self.engine.generate_stealth_address_for_key(
            recipient_identity_pub,
            enc_pub
        )
        self.recorder.record(announcement)

        logger.info(
            "Stealth payment address issued",
            extra_data={"address": short_key(announcement.derived_address)}
        )

        return announcement

    async def send_to_many(self, recipient_identity_pubs: List[str]) -> List[StealthAnnouncement]:
        """send_to per ogni destinatario; si ferma al primo errore"""
        return [await self.send_to(identity) for identity in recipient_identity_pubs]

    # ========================================================================
    # RECEIVE
    # ========================================================================

    async def scan_for_payments(
        self,
        key_pair: AsymmetricKeyPair,
        since: Optional[int] = None
    ) -> List[StealthAnnouncement]:
        """
        Announcement registrati destinati a key_pair.

        Scansiona tutto lo store: un announcement può riportare una
        identity diversa da quella del destinatario reale.
        """
        announcements = self.recorder.list(since=since)
        return await self.scanner.scan(announcements, key_pair)

    async def claim(
        self,
        announcement: StealthAnnouncement,
        key_pair: AsymmetricKeyPair
    ) -> DerivedWallet:
        """
        Apre l'indirizzo stealth.

        Raises:
            AddressMismatchError: Announcement non destinato a key_pair
        """
        wallet = await self.engine.open_stealth_address(announcement, key_pair)

        logger.info(
            "Stealth address claimed",
            extra_data={"address": short_key(wallet.address), "method": wallet.method.value}
        )

        if self.audit:
            self.audit.log_stealth_opened(wallet.address, wallet.method.value)

        return wallet

    def history(
        self,
        recipient_identity_pub: Optional[str] = None,
        since: Optional[int] = None
    ) -> Iterator[StealthAnnouncement]:
        """Announcement registrati (lazy)"""
        return self.recorder.list(recipient_identity_pub=recipient_identity_pub, since=since)


__all__ = [
    "StealthService",
]
