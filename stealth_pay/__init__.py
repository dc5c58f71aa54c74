"""
StealthPay - Stealth Payment Addresses
========================================
Indirizzi one-time per pagamenti senza correlazione tra identity e indirizzo.

Version: 1.0.0
Author: StealthPay Team
License: MIT
"""

__version__ = "1.0.0"
__author__ = "StealthPay Team"
__license__ = "MIT"

# Core imports
from stealth_pay.domain.models import (
    AsymmetricKeyPair,
    DerivationMethod,
    DerivedWallet,
    PublishedKeyRecord,
    StealthAnnouncement,
)
from stealth_pay.domain.keypairs import (
    generate_key_pair,
    export_key_pair,
    import_key_pair,
)
from stealth_pay.wallet.stealth_address import StealthEngine
from stealth_pay.config import StealthSettings, get_settings

# Services
from stealth_pay.services.stealth_service import StealthService
from stealth_pay.services.scanning_service import ScanningService
from stealth_pay.services.history_service import HistoryRecorder
from stealth_pay.services.key_directory import KeyDirectory

# Storage
from stealth_pay.storage.memory import InMemoryKeyStore, InMemoryAnnouncementStore
from stealth_pay.storage.db import StealthDatabase

__all__ = [
    # Version
    "__version__",

    # Core
    "AsymmetricKeyPair",
    "DerivationMethod",
    "DerivedWallet",
    "PublishedKeyRecord",
    "StealthAnnouncement",
    "generate_key_pair",
    "export_key_pair",
    "import_key_pair",
    "StealthEngine",
    "StealthSettings",
    "get_settings",

    # Services
    "StealthService",
    "ScanningService",
    "HistoryRecorder",
    "KeyDirectory",

    # Storage
    "InMemoryKeyStore",
    "InMemoryAnnouncementStore",
    "StealthDatabase",
]
