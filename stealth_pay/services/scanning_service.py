"""
StealthPay - Scanning Service
===============================
Riconoscimento degli announcement destinati a una keypair.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Ogni check è indipendente (ECDH + derivazione). I check girano in
parallelo, limitati da un semaforo di scan_max_workers.
"""

import asyncio
from contextlib import aclosing
from typing import AsyncIterator, Iterable, List, Optional, Tuple

# Internal imports
from stealth_pay.config import StealthSettings, get_settings
from stealth_pay.constants import SCAN_SLOW_THRESHOLD_MS
from stealth_pay.domain.addressing import normalize_identity
from stealth_pay.domain.models import AsymmetricKeyPair, StealthAnnouncement
from stealth_pay.errors import KeyAgreementError
from stealth_pay.logging_setup import PerformanceLogger, get_logger, short_key
from stealth_pay.storage.interfaces import AnnouncementStore
from stealth_pay.wallet.stealth_address import StealthEngine


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("services.scanning")


# ============================================================================
# SCANNING SERVICE
# ============================================================================

class ScanningService:
    """
    Scanner di announcement.

    Attributes:
        engine: StealthEngine
        max_workers: Check concorrenti massimi

    Examples:
        >>> scanner = ScanningService(engine, settings)
        >>> owned = await scanner.scan(announcements, bob_pair)
        >>> async for announcement in scanner.iter_owned(announcements, bob_pair):
        ...     print(announcement.derived_address)
    """

    def __init__(
        self,
        engine: StealthEngine,
        settings: Optional[StealthSettings] = None,
        max_workers: Optional[int] = None
    ):
        self.engine = engine
        self.settings = settings or get_settings()
        self.max_workers = max_workers or self.settings.scan_max_workers

        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    async def _check(
        self,
        announcement: StealthAnnouncement,
        recipient_key_pair: AsymmetricKeyPair
    ) -> bool:
        try:
            return await self.engine.is_mine(announcement, recipient_key_pair)
        except KeyAgreementError as e:
            # Ephemeral key corrotta: non è un errore del destinatario
            logger.warning(
                "Skipping announcement with unusable ephemeral key",
                extra_data={
                    "address": short_key(str(announcement.derived_address)),
                    "code": e.code,
                }
            )
            return False

    async def _iter_checked(
        self,
        announcements: Iterable[StealthAnnouncement],
        recipient_key_pair: AsymmetricKeyPair
    ) -> AsyncIterator[Tuple[int, StealthAnnouncement]]:
        """(indice, announcement) posseduti, in ordine di completamento"""
        semaphore = asyncio.Semaphore(self.max_workers)

        async def check(index: int, announcement: StealthAnnouncement):
            async with semaphore:
                owned = await self._check(announcement, recipient_key_pair)
            return index, announcement, owned

        tasks = [
            asyncio.ensure_future(check(index, announcement))
            for index, announcement in enumerate(announcements)
        ]

        try:
            for future in asyncio.as_completed(tasks):
                index, announcement, owned = await future
                if owned:
                    yield index, announcement
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.debug(
                    "Scan stopped early",
                    extra_data={"cancelled": len(pending), "total": len(tasks)}
                )

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def iter_owned(
        self,
        announcements: Iterable[StealthAnnouncement],
        recipient_key_pair: AsymmetricKeyPair
    ) -> AsyncIterator[StealthAnnouncement]:
        """
        Yield degli announcement posseduti man mano che i check finiscono.

        Chiudere il generator (break, aclose) cancella i check pendenti.
        """
        async with aclosing(self._iter_checked(announcements, recipient_key_pair)) as checked:
            async for _, announcement in checked:
                yield announcement

    async def scan(
        self,
        announcements: Iterable[StealthAnnouncement],
        recipient_key_pair: AsymmetricKeyPair
    ) -> List[StealthAnnouncement]:
        """
        Announcement posseduti, nell'ordine di input.

        Raises:
            StealthPayException: Errori di provider/store (non KeyAgreementError)
        """
        announcements = list(announcements)
        owned = []

        with PerformanceLogger(logger, "scan", threshold_ms=SCAN_SLOW_THRESHOLD_MS):
            async with aclosing(self._iter_checked(announcements, recipient_key_pair)) as checked:
                async for index, announcement in checked:
                    owned.append((index, announcement))

        owned.sort(key=lambda item: item[0])

        logger.info(
            "Scan completed",
            extra_data={"scanned": len(announcements), "owned": len(owned)}
        )

        return [announcement for _, announcement in owned]

    async def scan_store(
        self,
        store: AnnouncementStore,
        recipient_key_pair: AsymmetricKeyPair,
        recipient_identity_pub: Optional[str] = None
    ) -> List[StealthAnnouncement]:
        """Scan di uno store, opzionalmente filtrato per destinatario"""
        identity = None
        if recipient_identity_pub is not None:
            identity = normalize_identity(recipient_identity_pub)
            if identity is None:
                return []

        return await self.scan(
            store.list(recipient_identity_pub=identity),
            recipient_key_pair
        )

    async def get_private_key_for(
        self,
        announcement: StealthAnnouncement,
        recipient_key_pair: AsymmetricKeyPair
    ) -> str:
        """
        Private key (hex) dell'indirizzo stealth.

        Raises:
            AddressMismatchError: Announcement non destinato a questa keypair
        """
        wallet = await self.engine.open_stealth_address(announcement, recipient_key_pair)
        return wallet.private_key


__all__ = [
    "ScanningService",
]
