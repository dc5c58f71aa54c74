"""
StealthPay - Pytest Configuration
===================================
Fixtures e configurazione per testing.

Last Updated: 2026-10-12
Version: 1.0.0
"""

import pytest
import pytest_asyncio
from pathlib import Path
import tempfile
import shutil

# Internal imports
from stealth_pay.config import get_test_config
from stealth_pay.domain.crypto_core import Secp256k1Provider
from stealth_pay.domain.keypairs import generate_key_pair
from stealth_pay.services.history_service import HistoryRecorder
from stealth_pay.services.key_directory import KeyDirectory
from stealth_pay.services.scanning_service import ScanningService
from stealth_pay.services.stealth_service import StealthService
from stealth_pay.storage.db import StealthDatabase
from stealth_pay.storage.memory import InMemoryAnnouncementStore, InMemoryKeyStore
from stealth_pay.wallet.stealth_address import StealthEngine


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: full 10,000-trial randomized runs")


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def temp_data_dir():
    """Temporary data directory"""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def test_config(temp_data_dir):
    """Test configuration"""
    return get_test_config(temp_data_dir)


@pytest.fixture
def provider():
    """Provider secp256k1 senza thread offload (test più veloci)"""
    return Secp256k1Provider(offload=False)


# ============================================================================
# STORAGE FIXTURES
# ============================================================================

@pytest.fixture
def key_store():
    return InMemoryKeyStore()


@pytest.fixture
def announcement_store():
    return InMemoryAnnouncementStore()


@pytest.fixture
def test_database(test_config):
    """Test database"""
    db = StealthDatabase(test_config.data_dir / "test.db", test_config)
    yield db
    db.close()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def engine(provider, key_store, test_config):
    return StealthEngine(provider, key_store, test_config)


@pytest.fixture
def scanner(engine, test_config):
    return ScanningService(engine, test_config)


@pytest.fixture
def recorder(announcement_store):
    return HistoryRecorder(announcement_store)


@pytest.fixture
def directory(key_store, provider, test_config):
    return KeyDirectory(key_store, provider, test_config)


@pytest.fixture
def stealth_service(key_store, announcement_store, provider, test_config):
    return StealthService(key_store, announcement_store, provider, test_config)


# ============================================================================
# KEY PAIR FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def alice(provider):
    """Mittente"""
    return await generate_key_pair(provider)


@pytest_asyncio.fixture
async def bob(provider):
    """Destinatario"""
    return await generate_key_pair(provider)


@pytest_asyncio.fixture
async def published_bob(bob, key_store):
    """Destinatario con encryption key pubblicata (senza firma)"""
    key_store.publish_enc_pub(bob.sign_pub, bob.enc_pub)
    return bob
