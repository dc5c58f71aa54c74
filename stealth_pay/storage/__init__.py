"""
StealthPay - Storage Package
==============================
Key records e announcements.
"""

from stealth_pay.storage.interfaces import IdentityKeyStore, AnnouncementStore
from stealth_pay.storage.memory import InMemoryKeyStore, InMemoryAnnouncementStore
from stealth_pay.storage.db import StealthDatabase

__all__ = [
    "IdentityKeyStore",
    "AnnouncementStore",
    "InMemoryKeyStore",
    "InMemoryAnnouncementStore",
    "StealthDatabase",
]
