"""
StealthPay - Database Storage Layer
======================================
Persistent storage con SQLite.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Features:
- Key records pubblicati (IdentityKeyStore)
- Announcements append-only (AnnouncementStore)
- Append idempotente su derived_address
- Letture lazy a batch
"""

import sqlite3
import threading
import time
from pathlib import Path
from typing import Iterator, Optional

# Internal imports
from stealth_pay.domain.addressing import to_checksum_address
from stealth_pay.domain.models import PublishedKeyRecord, StealthAnnouncement
from stealth_pay.errors import (
    DatabaseError,
    DatabaseConnectionError,
)
from stealth_pay.logging_setup import get_logger, short_key
from stealth_pay.config import StealthSettings
from stealth_pay.constants import TABLE_ANNOUNCEMENTS, TABLE_IDENTITY_KEYS


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("storage")


# ============================================================================
# DATABASE SCHEMA
# ============================================================================

SCHEMA_VERSION = 1

FETCH_BATCH_SIZE = 256

CREATE_TABLES_SQL = f"""
-- Key records pubblicati
CREATE TABLE IF NOT EXISTS {TABLE_IDENTITY_KEYS} (
    identity_pub TEXT PRIMARY KEY,
    enc_pub TEXT NOT NULL,
    signature TEXT,
    published_at INTEGER NOT NULL
);

-- Announcements (append-only)
CREATE TABLE IF NOT EXISTS {TABLE_ANNOUNCEMENTS} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    derived_address TEXT UNIQUE NOT NULL,
    recipient_identity_pub TEXT NOT NULL,
    ephemeral_enc_pub TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    derivation_method TEXT,
    view_tag TEXT,
    recorded_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ann_recipient ON {TABLE_ANNOUNCEMENTS}(recipient_identity_pub);
CREATE INDEX IF NOT EXISTS idx_ann_created_at ON {TABLE_ANNOUNCEMENTS}(created_at);

-- Metadata table
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at INTEGER NOT NULL
);

INSERT OR REPLACE INTO metadata (key, value, updated_at)
VALUES ('schema_version', '{SCHEMA_VERSION}', strftime('%s', 'now'));
"""


# ============================================================================
# DATABASE CLASS
# ============================================================================

class StealthDatabase:
    """
    Database SQLite per key records e announcements.

    Implementa sia IdentityKeyStore che AnnouncementStore.
    Thread-safe con una connection per thread.

    Attributes:
        db_path: Path database file
        config: StealthSettings

    Examples:
        >>> db = StealthDatabase(settings.db_path, settings)
        >>> db.append(announcement)
        True
        >>> list(db.list(recipient_identity_pub=identity))
        [StealthAnnouncement(...)]
    """

    def __init__(self, db_path: Path, config: StealthSettings):
        self.db_path = Path(db_path)
        self.config = config

        self._local = threading.local()

        self._initialize_database()

        logger.info(
            "Database initialized",
            extra_data={"db_path": str(self.db_path)}
        )

    @classmethod
    def from_settings(cls, config: StealthSettings) -> "StealthDatabase":
        return cls(config.db_path, config)

    def _get_connection(self) -> sqlite3.Connection:
        """Ottieni connection thread-local"""
        if not hasattr(self._local, 'connection'):
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._local.connection = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False,
                    timeout=30.0
                )
                self._local.connection.execute("PRAGMA journal_mode = WAL")
            except (sqlite3.Error, OSError) as e:
                raise DatabaseConnectionError(
                    f"Failed to connect to database: {e}",
                    code="DB_CONNECTION_FAILED"
                )

        return self._local.connection

    def _initialize_database(self) -> None:
        """Inizializza database con schema"""
        try:
            conn = self._get_connection()
            conn.executescript(CREATE_TABLES_SQL)
            conn.commit()

            logger.debug("Database schema initialized")

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                code="DB_INIT_FAILED"
            )

    # ========================================================================
    # KEY RECORDS (IdentityKeyStore)
    # ========================================================================

    def publish_enc_pub(
        self,
        identity_pub: str,
        enc_pub: str,
        signature: Optional[str] = None,
        published_at: Optional[int] = None
    ) -> bool:
        """
        Pubblica (o aggiorna) la encryption key di una identity.

        Returns:
            bool: True se il record è nuovo o cambiato

        Raises:
            DatabaseError: Se il salvataggio fallisce
        """
        published_at = published_at or int(time.time() * 1000)
        conn = self._get_connection()

        try:
            current = self.get_key_record(identity_pub)
            if current and current.enc_pub == enc_pub and current.signature == signature:
                return False

            conn.execute(f"""
                INSERT OR REPLACE INTO {TABLE_IDENTITY_KEYS}
                    (identity_pub, enc_pub, signature, published_at)
                VALUES (?, ?, ?, ?)
            """, (identity_pub, enc_pub, signature, published_at))
            conn.commit()

            logger.debug(
                "Key record saved",
                extra_data={"identity": short_key(identity_pub)}
            )
            return True

        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(
                f"Failed to save key record: {e}",
                code="KEY_RECORD_SAVE_FAILED"
            )

    def get_key_record(self, identity_pub: str) -> Optional[PublishedKeyRecord]:
        """Record completo, None se assente"""
        try:
            cursor = self._get_connection().execute(f"""
                SELECT identity_pub, enc_pub, signature, published_at
                FROM {TABLE_IDENTITY_KEYS} WHERE identity_pub = ?
            """, (identity_pub,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to load key record: {e}",
                code="KEY_RECORD_LOAD_FAILED"
            )

        if not row:
            return None

        return PublishedKeyRecord(
            identity_pub=row[0],
            enc_pub=row[1],
            signature=row[2],
            published_at=row[3],
        )

    def resolve_enc_pub(self, identity_pub: str) -> Optional[str]:
        record = self.get_key_record(identity_pub)
        return record.enc_pub if record else None

    # ========================================================================
    # ANNOUNCEMENTS (AnnouncementStore)
    # ========================================================================

    def append(self, announcement: StealthAnnouncement) -> bool:
        """
        Aggiunge announcement.

        Returns:
            bool: True se nuovo, False se derived_address già presente

        Raises:
            DatabaseError: Se il salvataggio fallisce
        """
        conn = self._get_connection()

        try:
            cursor = conn.execute(f"""
                INSERT OR IGNORE INTO {TABLE_ANNOUNCEMENTS} (
                    derived_address, recipient_identity_pub, ephemeral_enc_pub,
                    created_at, derivation_method, view_tag, recorded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                announcement.derived_address.lower(),
                announcement.recipient_identity_pub,
                announcement.ephemeral_enc_pub,
                announcement.created_at,
                announcement.derivation_method.value if announcement.derivation_method else None,
                announcement.view_tag,
                int(time.time() * 1000),
            ))
            conn.commit()

        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(
                f"Failed to save announcement: {e}",
                code="ANNOUNCEMENT_SAVE_FAILED"
            )

        return cursor.rowcount == 1

    def list(
        self,
        recipient_identity_pub: Optional[str] = None,
        since: Optional[int] = None
    ) -> Iterator[StealthAnnouncement]:
        """
        Itera announcements per created_at crescente, a batch.

        Raises:
            DatabaseError: Se la query fallisce
        """
        clauses = []
        params = []

        if recipient_identity_pub is not None:
            clauses.append("recipient_identity_pub = ?")
            params.append(recipient_identity_pub)

        if since is not None:
            clauses.append("created_at >= ?")
            params.append(since)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        try:
            cursor = self._get_connection().execute(f"""
                SELECT recipient_identity_pub, ephemeral_enc_pub, derived_address,
                       created_at, derivation_method, view_tag
                FROM {TABLE_ANNOUNCEMENTS}
                {where}
                ORDER BY created_at ASC, id ASC
            """, params)

            while True:
                rows = cursor.fetchmany(FETCH_BATCH_SIZE)
                if not rows:
                    break
                for row in rows:
                    yield self._row_to_announcement(row)

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to list announcements: {e}",
                code="ANNOUNCEMENT_LIST_FAILED"
            )

    @staticmethod
    def _row_to_announcement(row) -> StealthAnnouncement:
        return StealthAnnouncement(
            recipient_identity_pub=row[0],
            ephemeral_enc_pub=row[1],
            derived_address=to_checksum_address(row[2]),
            created_at=row[3],
            derivation_method=row[4],
            view_tag=row[5],
        )

    def count_announcements(self) -> int:
        try:
            cursor = self._get_connection().execute(
                f"SELECT COUNT(*) FROM {TABLE_ANNOUNCEMENTS}"
            )
            return cursor.fetchone()[0]
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to count announcements: {e}")

    # ========================================================================
    # UTILITY
    # ========================================================================

    def close(self) -> None:
        """Chiudi database connection del thread corrente"""
        if hasattr(self._local, 'connection'):
            self._local.connection.close()
            delattr(self._local, 'connection')

        logger.info("Database closed")


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "StealthDatabase",
]
