"""
StealthPay - Storage Tests
============================
Unit tests for in-memory and SQLite stores.
"""

import threading

import pytest

from stealth_pay.domain.models import DerivationMethod, StealthAnnouncement
from stealth_pay.errors import DatabaseError
from stealth_pay.storage.db import StealthDatabase
from stealth_pay.storage.interfaces import AnnouncementStore, IdentityKeyStore
from stealth_pay.storage.memory import InMemoryAnnouncementStore, InMemoryKeyStore


IDENTITY = "02" + "aa" * 32
OTHER_IDENTITY = "03" + "bb" * 32
EPHEMERAL = "02" + "cc" * 32


def make_announcement(index, identity=IDENTITY, method=DerivationMethod.STANDARD):
    address = "0x" + f"{index:040x}"
    return StealthAnnouncement(
        recipient_identity_pub=identity,
        ephemeral_enc_pub=EPHEMERAL,
        derived_address=address,
        created_at=1_700_000_000_000 + index,
        derivation_method=method,
        view_tag="0x1f" if method else None,
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, test_database):
    """Ogni test gira su entrambe le implementazioni"""
    if request.param == "memory":
        return InMemoryAnnouncementStore()
    return test_database


@pytest.fixture(params=["memory", "sqlite"])
def keys(request, test_database):
    if request.param == "memory":
        return InMemoryKeyStore()
    return test_database


class TestProtocols:
    """Test implementations satisfy the store protocols"""

    def test_protocols(self, test_database):
        assert isinstance(InMemoryKeyStore(), IdentityKeyStore)
        assert isinstance(InMemoryAnnouncementStore(), AnnouncementStore)
        assert isinstance(test_database, IdentityKeyStore)
        assert isinstance(test_database, AnnouncementStore)


class TestKeyStore:
    """Test IdentityKeyStore implementations"""

    def test_publish_and_resolve(self, keys):
        assert keys.resolve_enc_pub(IDENTITY) is None
        assert keys.publish_enc_pub(IDENTITY, EPHEMERAL, "3006") is True
        assert keys.resolve_enc_pub(IDENTITY) == EPHEMERAL

        record = keys.get_key_record(IDENTITY)
        assert record.signature == "3006"
        assert record.published_at > 0

    def test_publish_unchanged(self, keys):
        keys.publish_enc_pub(IDENTITY, EPHEMERAL, "3006")
        assert keys.publish_enc_pub(IDENTITY, EPHEMERAL, "3006") is False

    def test_publish_replaces(self, keys):
        keys.publish_enc_pub(IDENTITY, EPHEMERAL)
        assert keys.publish_enc_pub(IDENTITY, OTHER_IDENTITY) is True
        assert keys.resolve_enc_pub(IDENTITY) == OTHER_IDENTITY


class TestAnnouncementStore:
    """Test AnnouncementStore implementations"""

    def test_append_idempotent(self, store):
        announcement = make_announcement(1)

        assert store.append(announcement) is True
        assert store.append(announcement) is False
        assert len(list(store.list())) == 1

    def test_idempotent_across_address_case(self, store):
        announcement = make_announcement(0xABC)
        upper = StealthAnnouncement(
            recipient_identity_pub=announcement.recipient_identity_pub,
            ephemeral_enc_pub=announcement.ephemeral_enc_pub,
            derived_address="0x" + announcement.derived_address[2:].upper(),
            created_at=announcement.created_at,
        )

        assert store.append(announcement) is True
        assert store.append(upper) is False

    def test_list_ordered_by_created_at(self, store):
        for index in (3, 1, 2):
            store.append(make_announcement(index))

        assert [a.created_at for a in store.list()] == [
            1_700_000_000_001, 1_700_000_000_002, 1_700_000_000_003
        ]

    def test_list_filters(self, store):
        store.append(make_announcement(1))
        store.append(make_announcement(2, identity=OTHER_IDENTITY))
        store.append(make_announcement(3))

        assert len(list(store.list(recipient_identity_pub=IDENTITY))) == 2
        assert len(list(store.list(since=1_700_000_000_002))) == 2
        assert len(list(store.list(recipient_identity_pub=IDENTITY, since=1_700_000_000_002))) == 1

    def test_list_is_restartable(self, store):
        store.append(make_announcement(1))

        first = list(store.list())
        second = list(store.list())

        assert first == second

    def test_fields_preserved(self, store):
        tracked = make_announcement(1)
        untracked = make_announcement(2, method=None)
        store.append(tracked)
        store.append(untracked)

        loaded = {a.created_at: a for a in store.list()}

        assert loaded[tracked.created_at].derivation_method is DerivationMethod.STANDARD
        assert loaded[tracked.created_at].view_tag == "0x1f"
        assert loaded[untracked.created_at].derivation_method is None
        assert loaded[untracked.created_at].view_tag is None


class TestStealthDatabase:
    """Test SQLite specifics"""

    def test_persistence_across_instances(self, test_config):
        db_path = test_config.data_dir / "persist.db"
        db = StealthDatabase(db_path, test_config)
        db.append(make_announcement(1))
        db.publish_enc_pub(IDENTITY, EPHEMERAL)
        db.close()

        reopened = StealthDatabase(db_path, test_config)
        try:
            assert reopened.count_announcements() == 1
            assert reopened.resolve_enc_pub(IDENTITY) == EPHEMERAL
        finally:
            reopened.close()

    def test_addresses_returned_checksummed(self, test_database):
        """Test stored lowercase addresses come back in EIP-55 form"""
        checksummed = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
        announcement = StealthAnnouncement(
            recipient_identity_pub=IDENTITY,
            ephemeral_enc_pub=EPHEMERAL,
            derived_address=checksummed,
            created_at=1,
        )
        test_database.append(announcement)

        assert next(test_database.list()).derived_address == checksummed

    def test_batched_listing(self, test_database):
        """Test listing spans several fetch batches"""
        from stealth_pay.storage.db import FETCH_BATCH_SIZE

        total = FETCH_BATCH_SIZE * 2 + 5
        for index in range(total):
            test_database.append(make_announcement(index + 1))

        assert sum(1 for _ in test_database.list()) == total

    def test_from_settings(self, test_config):
        db = StealthDatabase.from_settings(test_config)
        try:
            assert db.db_path == test_config.db_path
            assert db.db_path.exists()
        finally:
            db.close()

    def test_thread_local_connections(self, test_database):
        errors = []

        def worker(offset):
            try:
                for index in range(10):
                    test_database.append(make_announcement(offset + index))
            except DatabaseError as e:
                errors.append(e)
            finally:
                test_database.close()

        threads = [threading.Thread(target=worker, args=(i * 100 + 1,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert test_database.count_announcements() == 40

    def test_database_error_on_unusable_path(self, test_config, temp_data_dir):
        blocker = temp_data_dir / "file"
        blocker.write_text("x")

        with pytest.raises(DatabaseError):
            StealthDatabase(blocker / "sub" / "db.sqlite", test_config)
