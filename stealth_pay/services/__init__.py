"""
StealthPay - Services Package
===============================
High-level service layer.
"""

from stealth_pay.services.key_directory import KeyDirectory
from stealth_pay.services.history_service import HistoryRecorder
from stealth_pay.services.scanning_service import ScanningService
from stealth_pay.services.stealth_service import StealthService

__all__ = [
    "KeyDirectory",
    "HistoryRecorder",
    "ScanningService",
    "StealthService",
]
