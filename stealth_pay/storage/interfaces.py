"""
StealthPay - Storage Interfaces
=================================
Protocol per gli store esterni (key records + announcements).

Gli store sono append-only: questo sottosistema non cancella né
modifica record già scritti.
"""

from typing import Iterator, Optional, Protocol, runtime_checkable

from stealth_pay.domain.models import PublishedKeyRecord, StealthAnnouncement


@runtime_checkable
class IdentityKeyStore(Protocol):
    """Publish/resolve della encryption public key per identity"""

    def resolve_enc_pub(self, identity_pub: str) -> Optional[str]:
        """Encryption pub pubblicata, None se assente"""
        ...

    def publish_enc_pub(
        self,
        identity_pub: str,
        enc_pub: str,
        signature: Optional[str] = None,
        published_at: Optional[int] = None
    ) -> bool:
        """True se il record è nuovo o cambiato"""
        ...

    def get_key_record(self, identity_pub: str) -> Optional[PublishedKeyRecord]:
        """Record completo (con firma), None se assente"""
        ...


@runtime_checkable
class AnnouncementStore(Protocol):
    """Append/list degli announcement"""

    def append(self, announcement: StealthAnnouncement) -> bool:
        """True se nuovo, False se già presente (stesso derived_address)"""
        ...

    def list(
        self,
        recipient_identity_pub: Optional[str] = None,
        since: Optional[int] = None
    ) -> Iterator[StealthAnnouncement]:
        """
        Sequenza lazy e finita, ordinata per created_at.

        Ogni chiamata riparte dall'inizio.
        """
        ...


__all__ = [
    "IdentityKeyStore",
    "AnnouncementStore",
]
