"""
StealthPay - In-Memory Stores
===============================
Implementazioni in memoria di IdentityKeyStore e AnnouncementStore.

Usate nei test e quando la persistenza è delegata al chiamante.
Thread-safe con un lock per store.
"""

import threading
import time
from typing import Dict, Iterator, List, Optional

from stealth_pay.domain.models import PublishedKeyRecord, StealthAnnouncement
from stealth_pay.logging_setup import get_logger, short_key


logger = get_logger("storage.memory")


def _now_ms() -> int:
    return int(time.time() * 1000)


class InMemoryKeyStore:
    """
    Key records indicizzati per identity pub.

    Examples:
        >>> store = InMemoryKeyStore()
        >>> store.publish_enc_pub("02ab...", "03cd...")
        True
        >>> store.resolve_enc_pub("02ab...")
        '03cd...'
    """

    def __init__(self):
        self._records: Dict[str, PublishedKeyRecord] = {}
        self._lock = threading.Lock()

    def resolve_enc_pub(self, identity_pub: str) -> Optional[str]:
        record = self.get_key_record(identity_pub)
        return record.enc_pub if record else None

    def get_key_record(self, identity_pub: str) -> Optional[PublishedKeyRecord]:
        with self._lock:
            return self._records.get(identity_pub)

    def publish_enc_pub(
        self,
        identity_pub: str,
        enc_pub: str,
        signature: Optional[str] = None,
        published_at: Optional[int] = None
    ) -> bool:
        record = PublishedKeyRecord(
            identity_pub=identity_pub,
            enc_pub=enc_pub,
            signature=signature,
            published_at=published_at or _now_ms(),
        )

        with self._lock:
            previous = self._records.get(identity_pub)
            if previous and previous.enc_pub == enc_pub and previous.signature == signature:
                return False
            self._records[identity_pub] = record

        logger.debug("Key record stored", extra_data={"identity": short_key(identity_pub)})
        return True

    def __len__(self) -> int:
        return len(self._records)


class InMemoryAnnouncementStore:
    """
    Announcements append-only, idempotenti su derived_address.

    list() itera su uno snapshot: append concorrenti non alterano
    una iterazione già iniziata.
    """

    def __init__(self):
        self._items: List[StealthAnnouncement] = []
        self._addresses: set = set()
        self._lock = threading.Lock()

    def append(self, announcement: StealthAnnouncement) -> bool:
        key = announcement.derived_address.lower()

        with self._lock:
            if key in self._addresses:
                return False
            self._addresses.add(key)
            self._items.append(announcement)

        return True

    def list(
        self,
        recipient_identity_pub: Optional[str] = None,
        since: Optional[int] = None
    ) -> Iterator[StealthAnnouncement]:
        with self._lock:
            snapshot = sorted(self._items, key=lambda a: a.created_at)

        for announcement in snapshot:
            if recipient_identity_pub is not None and announcement.recipient_identity_pub != recipient_identity_pub:
                continue
            if since is not None and announcement.created_at < since:
                continue
            yield announcement

    def __len__(self) -> int:
        return len(self._items)


__all__ = [
    "InMemoryKeyStore",
    "InMemoryAnnouncementStore",
]
