"""
StealthPay - Version Management
==================================
Gestione versioning semantico.

Security Level: MEDIUM
Last Updated: 2026-10-12
Version: 1.0.0
"""

from typing import NamedTuple


# ============================================================================
# VERSION INFO
# ============================================================================

class VersionInfo(NamedTuple):
    """Version information structure"""
    major: int
    minor: int
    patch: int
    prerelease: str = ""


VERSION = VersionInfo(
    major=1,
    minor=0,
    patch=0,
    prerelease="",
)


def get_version_string() -> str:
    """
    Get version as string.

    Example:
        >>> get_version_string()
        '1.0.0'
    """
    version_str = f"{VERSION.major}.{VERSION.minor}.{VERSION.patch}"

    if VERSION.prerelease:
        version_str += f"-{VERSION.prerelease}"

    return version_str


def is_compatible(other_version: str) -> bool:
    """
    Check compatibilità formato announcement con un'altra versione.

    Rules:
        - Stessa major = compatibile
    """
    try:
        other_major = int(other_version.split('.')[0])
    except (ValueError, IndexError):
        return False
    return other_major == VERSION.major


# ============================================================================
# EXPORT
# ============================================================================

__version__ = get_version_string()
__version_info__ = VERSION

__all__ = [
    "__version__",
    "__version_info__",
    "VERSION",
    "get_version_string",
    "is_compatible",
]
