"""
StealthPay - Key Directory Tests
==================================
Unit tests for publishing and resolving encryption keys.
"""

import pytest

from stealth_pay.domain.models import PublishedKeyRecord
from stealth_pay.errors import InvalidKeyRecordError, RecipientKeyNotFoundError
from stealth_pay.services.key_directory import KeyDirectory, key_record_message


class TestFormatPublicKey:
    """Test identity normalization"""

    @pytest.mark.parametrize("value,expected", [
        ("~abc123", "abc123"),
        ("abc123", "abc123"),
        ("  ~abc+/=_-.  ", "abc+/=_-."),
        ("invalid key!", None),
        ("", None),
        ("~", None),
        (None, None),
        (123, None),
    ])
    def test_format_public_key(self, value, expected):
        assert KeyDirectory.format_public_key(value) == expected


class TestPublish:
    """Test key publication"""

    @pytest.mark.asyncio
    async def test_publish_signs_record(self, directory, key_store, bob, provider):
        record = await directory.publish(bob)

        assert record.identity_pub == bob.sign_pub
        assert record.enc_pub == bob.enc_pub
        assert record.published_at > 0
        assert await provider.verify(
            key_record_message(bob.sign_pub, bob.enc_pub),
            bytes.fromhex(record.signature),
            bob.sign_pub,
        )
        assert key_store.resolve_enc_pub(bob.sign_pub) == bob.enc_pub

    @pytest.mark.asyncio
    async def test_republish_unchanged(self, directory, key_store, bob):
        """Test re-publishing the same key stores a single record"""
        await directory.publish(bob)
        await directory.publish(bob)

        assert len(key_store) == 1

    @pytest.mark.asyncio
    async def test_record_serialization(self, directory, bob):
        record = await directory.publish(bob)

        assert PublishedKeyRecord.from_dict(record.to_dict()) == record
        assert "encPriv" not in record.to_dict()


class TestResolve:
    """Test key resolution"""

    @pytest.mark.asyncio
    async def test_resolve(self, directory, bob):
        await directory.publish(bob)

        assert await directory.resolve(bob.sign_pub) == bob.enc_pub
        assert await directory.resolve("~" + bob.sign_pub) == bob.enc_pub

    @pytest.mark.asyncio
    async def test_resolve_unknown(self, directory, bob):
        with pytest.raises(RecipientKeyNotFoundError) as exc_info:
            await directory.resolve(bob.sign_pub)

        assert exc_info.value.code == "RECIPIENT_KEY_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_resolve_invalid_identity(self, directory):
        with pytest.raises(RecipientKeyNotFoundError) as exc_info:
            await directory.resolve("not a key!")

        assert exc_info.value.code == "INVALID_IDENTITY"

    @pytest.mark.asyncio
    async def test_unsigned_record_rejected(self, directory, key_store, bob):
        key_store.publish_enc_pub(bob.sign_pub, bob.enc_pub)

        with pytest.raises(RecipientKeyNotFoundError) as exc_info:
            await directory.resolve(bob.sign_pub)

        assert exc_info.value.details["cause"] == "MISSING_SIGNATURE"

    @pytest.mark.asyncio
    async def test_substituted_key_rejected(self, directory, key_store, bob, alice):
        """Test a record pointing to someone else's enc key fails verification"""
        record = await directory.publish(bob)
        key_store.publish_enc_pub(bob.sign_pub, alice.enc_pub, record.signature)

        with pytest.raises(RecipientKeyNotFoundError) as exc_info:
            await directory.resolve(bob.sign_pub)

        assert exc_info.value.details["cause"] == "INVALID_SIGNATURE"

    @pytest.mark.asyncio
    async def test_verification_disabled(self, key_store, provider, test_config, bob):
        settings = test_config.model_copy(update={"verify_key_records": False})
        directory = KeyDirectory(key_store, provider, settings)
        key_store.publish_enc_pub(bob.sign_pub, bob.enc_pub)

        assert await directory.resolve(bob.sign_pub) == bob.enc_pub

    @pytest.mark.asyncio
    async def test_verification_disabled_malformed(self, key_store, provider, test_config, bob):
        settings = test_config.model_copy(update={"verify_key_records": False})
        directory = KeyDirectory(key_store, provider, settings)
        key_store.publish_enc_pub(bob.sign_pub, "05" + "11" * 32)

        with pytest.raises(RecipientKeyNotFoundError) as exc_info:
            await directory.resolve(bob.sign_pub)

        assert exc_info.value.code == "RECIPIENT_KEY_MALFORMED"


class TestVerifyRecord:
    """Test verify_record error codes"""

    @pytest.mark.asyncio
    async def test_valid_record(self, directory, bob):
        record = await directory.publish(bob)
        await directory.verify_record(record)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("changes,code", [
        ({"identity_pub": "identity-42"}, "INVALID_IDENTITY_KEY"),
        ({"enc_pub": "00"}, "INVALID_ENC_KEY"),
        ({"signature": None}, "MISSING_SIGNATURE"),
        ({"signature": "not-hex"}, "INVALID_SIGNATURE"),
        ({"signature": "3006020101020101"}, "INVALID_SIGNATURE"),
    ])
    async def test_invalid_records(self, directory, bob, changes, code):
        record = await directory.publish(bob)
        fields = {**record.__dict__, **changes}

        with pytest.raises(InvalidKeyRecordError) as exc_info:
            await directory.verify_record(PublishedKeyRecord(**fields))

        assert exc_info.value.code == code
