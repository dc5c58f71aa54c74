"""
StealthPay - Key Pair Tests
=============================
Unit tests for key material, formats and encrypted backups.
"""

import json

import pytest

from stealth_pay.constants import PBKDF2_MAX_ITERATIONS
from stealth_pay.domain.addressing import (
    format_public_key,
    looks_like_private_key,
    normalize_identity,
    public_key_to_address,
    to_checksum_address,
    validate_address,
)
from stealth_pay.domain.keypairs import (
    export_key_pair,
    import_key_pair,
    key_pair_from_private,
    validate_key_pair,
)
from stealth_pay.domain.models import AsymmetricKeyPair
from stealth_pay.errors import DecryptionError, EncryptionError, InvalidKeyError


PASSWORD = "correct horse battery"
FAST_ITERATIONS = 10_000


class TestAsymmetricKeyPair:
    """Test AsymmetricKeyPair model"""

    @pytest.mark.asyncio
    async def test_generated_shape(self, bob):
        assert len(bob.sign_priv) == 64
        assert len(bob.enc_priv) == 64
        assert len(bob.sign_pub) == 66
        assert len(bob.enc_pub) == 66
        assert bob.identity_pub == bob.sign_pub
        assert bob.sign_pub != bob.enc_pub

    @pytest.mark.asyncio
    async def test_public_dict_has_no_private_halves(self, bob):
        data = bob.to_public_dict()

        assert set(data) == {"signPub", "encPub"}
        assert bob.enc_priv not in json.dumps(data)

    @pytest.mark.asyncio
    async def test_repr_hides_private_halves(self, bob):
        text = repr(bob)

        assert bob.sign_priv not in text
        assert bob.enc_priv not in text

    @pytest.mark.asyncio
    async def test_dict_round_trip(self, bob):
        assert AsymmetricKeyPair.from_dict(bob.to_dict(include_private=True)) == bob

    @pytest.mark.asyncio
    async def test_incomplete_dict(self, bob):
        with pytest.raises(InvalidKeyError):
            AsymmetricKeyPair.from_dict(bob.to_public_dict())

    def test_invalid_private_key(self):
        with pytest.raises(InvalidKeyError):
            AsymmetricKeyPair(sign_pub="02" + "11" * 32, sign_priv="xyz", enc_pub="02" + "11" * 32, enc_priv="11" * 32)

    @pytest.mark.asyncio
    async def test_from_private(self, bob):
        assert key_pair_from_private(bob.sign_priv, bob.enc_priv) == bob

    @pytest.mark.asyncio
    async def test_validate_key_pair(self, bob, alice):
        assert validate_key_pair(bob)

        swapped = AsymmetricKeyPair(
            sign_pub=bob.sign_pub, sign_priv=bob.sign_priv,
            enc_pub=alice.enc_pub, enc_priv=bob.enc_priv,
        )
        assert not validate_key_pair(swapped)


class TestBackup:
    """Test encrypted export/import"""

    @pytest.mark.asyncio
    async def test_export_import(self, bob):
        blob = export_key_pair(bob, PASSWORD, FAST_ITERATIONS)

        assert bob.enc_priv not in blob
        assert bob.sign_priv not in blob
        assert import_key_pair(blob, PASSWORD) == bob

    @pytest.mark.asyncio
    async def test_envelope_fields(self, bob):
        envelope = json.loads(export_key_pair(bob, PASSWORD, FAST_ITERATIONS))

        assert envelope["version"] == 1
        assert envelope["kdf"] == "pbkdf2-sha256"
        assert envelope["iterations"] == FAST_ITERATIONS
        assert envelope["signPub"] == bob.sign_pub
        assert {"salt", "nonce", "ciphertext"} <= set(envelope)

    @pytest.mark.asyncio
    async def test_fresh_salt(self, bob):
        first = json.loads(export_key_pair(bob, PASSWORD, FAST_ITERATIONS))
        second = json.loads(export_key_pair(bob, PASSWORD, FAST_ITERATIONS))

        assert first["salt"] != second["salt"]
        assert first["ciphertext"] != second["ciphertext"]

    @pytest.mark.asyncio
    async def test_wrong_password(self, bob):
        blob = export_key_pair(bob, PASSWORD, FAST_ITERATIONS)

        with pytest.raises(DecryptionError) as exc_info:
            import_key_pair(blob, "wrong password")

        assert exc_info.value.code == "DECRYPTION_FAILED"

    @pytest.mark.asyncio
    async def test_tampered_ciphertext(self, bob):
        envelope = json.loads(export_key_pair(bob, PASSWORD, FAST_ITERATIONS))
        flipped = "0" if envelope["ciphertext"][0] != "0" else "1"
        envelope["ciphertext"] = flipped + envelope["ciphertext"][1:]

        with pytest.raises(DecryptionError):
            import_key_pair(json.dumps(envelope), PASSWORD)

    @pytest.mark.parametrize("blob", ["not json", "{}", json.dumps({"version": 1, "salt": "zz"})])
    def test_malformed_envelope(self, blob):
        with pytest.raises(DecryptionError):
            import_key_pair(blob, PASSWORD)

    @pytest.mark.asyncio
    async def test_unsupported_version(self, bob):
        envelope = json.loads(export_key_pair(bob, PASSWORD, FAST_ITERATIONS))
        envelope["version"] = 99

        with pytest.raises(DecryptionError) as exc_info:
            import_key_pair(json.dumps(envelope), PASSWORD)

        assert exc_info.value.code == "UNSUPPORTED_BACKUP_VERSION"

    @pytest.mark.asyncio
    async def test_weak_password(self, bob):
        with pytest.raises(EncryptionError):
            export_key_pair(bob, "short", FAST_ITERATIONS)

    @pytest.mark.asyncio
    async def test_weak_kdf(self, bob):
        with pytest.raises(EncryptionError):
            export_key_pair(bob, PASSWORD, 1000)

    @pytest.mark.asyncio
    async def test_excessive_kdf_on_export(self, bob):
        with pytest.raises(EncryptionError) as exc_info:
            export_key_pair(bob, PASSWORD, PBKDF2_MAX_ITERATIONS + 1)

        assert exc_info.value.code == "KDF_ITERATIONS_OUT_OF_RANGE"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("iterations", [10 ** 12, 1, -5])
    async def test_iterations_out_of_range_on_import(self, bob, iterations):
        """Test a crafted envelope cannot choose an unbounded KDF cost"""
        envelope = json.loads(export_key_pair(bob, PASSWORD, FAST_ITERATIONS))
        envelope["iterations"] = iterations

        with pytest.raises(DecryptionError) as exc_info:
            import_key_pair(json.dumps(envelope), PASSWORD)

        assert exc_info.value.code == "KDF_ITERATIONS_OUT_OF_RANGE"


class TestServiceBackup:
    """Test StealthService.export_keys / import_keys"""

    @pytest.mark.asyncio
    async def test_configured_iterations_used(self, stealth_service, test_config):
        stealth_service.settings = test_config.model_copy(update={"kdf_iterations": 12_345})
        pair = await stealth_service.create_key_pair()

        envelope = json.loads(stealth_service.export_keys(pair, PASSWORD))

        assert envelope["iterations"] == 12_345
        assert stealth_service.import_keys(json.dumps(envelope), PASSWORD) == pair

    @pytest.mark.asyncio
    async def test_default_settings_iterations(self, stealth_service, test_config):
        pair = await stealth_service.create_key_pair()

        envelope = json.loads(stealth_service.export_keys(pair, PASSWORD))

        assert envelope["iterations"] == test_config.kdf_iterations


class TestAddressFormats:
    """Test EIP-55 addresses and key formats"""

    def test_checksum_vectors(self):
        """Test EIP-55 reference vectors"""
        for address in (
            "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
            "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359",
            "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB",
            "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb",
        ):
            assert to_checksum_address(address.lower()) == address
            assert validate_address(address)

    def test_address_of_generator_point(self):
        """Test address of private key 1"""
        generator = (
            "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
        )
        assert public_key_to_address(generator) == "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"

    def test_invalid_checksum(self):
        assert not validate_address("0x5AAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")
        assert validate_address("0x5AAEB6053F3E94C9B9A09F33669435E7EF1BEAED")

    def test_to_checksum_rejects_garbage(self):
        with pytest.raises(InvalidKeyError):
            to_checksum_address("0x1234")

    @pytest.mark.parametrize("value,expected", [
        ("11" * 32, True),
        ("0x" + "11" * 32, True),
        ("02" + "11" * 32, False),
        ("11" * 31, False),
        (None, False),
    ])
    def test_looks_like_private_key(self, value, expected):
        assert looks_like_private_key(value) is expected

    @pytest.mark.asyncio
    async def test_normalize_identity(self, bob):
        from stealth_pay.domain.crypto_core import encode_public_key, load_public_key

        uncompressed = encode_public_key(load_public_key(bob.sign_pub), compressed=False)

        assert normalize_identity("~" + uncompressed) == bob.sign_pub
        assert normalize_identity(bob.sign_pub.upper()) == bob.sign_pub
        assert normalize_identity("~identity-42") == "identity-42"
        assert format_public_key("~identity-42") == "identity-42"
        assert normalize_identity("bad id!") is None
