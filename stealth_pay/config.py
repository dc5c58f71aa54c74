"""
StealthPay - Configuration Management
=======================================
Gestione centralizzata configurazione con Pydantic Settings.
Supporta environment variables, file .env, override runtime.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Features:
- Validazione automatica tipi
- Environment variables con prefisso STEALTHPAY_
- File .env support
- Profile multipli (dev/test)
"""

import os
from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stealth_pay.constants import (
    DB_FILENAME,
    DEFAULT_SCAN_MAX_WORKERS,
    MAX_SCAN_WORKERS,
    PBKDF2_DEFAULT_ITERATIONS,
    PBKDF2_MAX_ITERATIONS,
    PBKDF2_MIN_ITERATIONS,
)


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

class StealthSettings(BaseSettings):
    """
    Configurazione principale StealthPay.

    Supporta:
    - Caricamento da environment variables (STEALTHPAY_*)
    - Caricamento da file .env
    - Override programmatici
    - Validazione automatica

    Example:
        # Da environment
        export STEALTHPAY_SCAN_MAX_WORKERS=16
        export STEALTHPAY_LEGACY_FALLBACK=false

        # Da codice
        config = StealthSettings(scan_max_workers=4)
    """

    model_config = SettingsConfigDict(
        env_prefix='STEALTHPAY_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    # ========================================================================
    # STORAGE
    # ========================================================================

    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory dati (database announcements/key records)"
    )

    db_path: Optional[Path] = Field(
        default=None,
        description="Path database (auto: data_dir/stealthpay.db)"
    )

    # ========================================================================
    # SCANNING
    # ========================================================================

    scan_max_workers: int = Field(
        default=DEFAULT_SCAN_MAX_WORKERS,
        ge=1,
        le=MAX_SCAN_WORKERS,
        description="Check ownership concorrenti durante lo scan"
    )

    # ========================================================================
    # STEALTH PROTOCOL
    # ========================================================================

    enable_view_tags: bool = Field(
        default=True,
        description="Scrive il view tag nei nuovi announcement"
    )

    legacy_fallback: bool = Field(
        default=True,
        description="Ritenta con LEGACY gli announcement senza metodo registrato"
    )

    verify_key_records: bool = Field(
        default=True,
        description="Richiede firme valide sui key record pubblicati"
    )

    # ========================================================================
    # KEY BACKUP
    # ========================================================================

    kdf_iterations: int = Field(
        default=PBKDF2_DEFAULT_ITERATIONS,
        ge=PBKDF2_MIN_ITERATIONS,
        le=PBKDF2_MAX_ITERATIONS,
        description="Iterazioni PBKDF2 per export chiavi"
    )

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_to_file: bool = Field(
        default=True,
        description="Salva log su file"
    )

    log_dir: Path = Field(
        default=Path("./logs"),
        description="Directory log files"
    )

    log_format: str = Field(
        default="json",
        description="Formato log: json, text"
    )

    log_rotation_mb: int = Field(
        default=100,
        ge=1,
        description="Dimensione max file log prima rotation (MB)"
    )

    log_retention_days: int = Field(
        default=30,
        ge=1,
        description="Giorni retention log files"
    )

    # ========================================================================
    # DEVELOPMENT & DEBUG
    # ========================================================================

    dev_mode: bool = Field(
        default=False,
        description="Modalità sviluppo"
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Valida log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Valida formato log"""
        valid_formats = ['json', 'text']
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log_format: {v}. Must be one of {valid_formats}")
        return v_lower

    # ========================================================================
    # POST-INIT PROCESSING
    # ========================================================================

    def model_post_init(self, __context) -> None:
        """Post-initialization: setup paths"""

        if self.db_path is None:
            self.db_path = self.data_dir / DB_FILENAME

        self.data_dir.mkdir(parents=True, exist_ok=True)
        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def to_dict(self) -> dict:
        """Serializza config"""
        return self.model_dump()

    def to_json(self) -> str:
        """Serializza config in JSON"""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "StealthSettings":
        """Carica config da JSON"""
        return cls.model_validate_json(json_str)

    def __repr__(self) -> str:
        return (
            f"StealthSettings("
            f"db_path={self.db_path}, "
            f"scan_max_workers={self.scan_max_workers}, "
            f"view_tags={self.enable_view_tags}, "
            f"legacy_fallback={self.legacy_fallback})"
        )


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

_config_instance: Optional[StealthSettings] = None


@lru_cache(maxsize=1)
def get_settings() -> StealthSettings:
    """
    Ottieni singleton instance di StealthSettings.

    Returns:
        StealthSettings: Instance configurazione

    Example:
        >>> config = get_settings()
        >>> config.scan_max_workers
        8
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = StealthSettings()

    return _config_instance


def reload_settings() -> StealthSettings:
    """
    Ricarica settings (invalida cache).

    Usare quando si cambiano environment variables runtime.
    """
    global _config_instance

    get_settings.cache_clear()
    _config_instance = StealthSettings()

    return _config_instance


def override_settings(**kwargs) -> StealthSettings:
    """
    Override settings con valori custom.

    Utile per testing.

    Example:
        >>> cfg = override_settings(legacy_fallback=False, scan_max_workers=2)
    """
    return StealthSettings(**kwargs)


# ============================================================================
# PROFILE PRESETS
# ============================================================================

def get_development_config() -> StealthSettings:
    """
    Config preset per development.

    Features:
    - Dev mode enabled
    - Log DEBUG in formato text
    - Iterazioni KDF al minimo
    """
    return StealthSettings(
        dev_mode=True,
        log_level="DEBUG",
        log_format="text",
        kdf_iterations=PBKDF2_MIN_ITERATIONS,
    )


def get_test_config(base_dir: Path) -> StealthSettings:
    """
    Config preset per test: tutto sotto base_dir, niente file di log.

    Args:
        base_dir: Directory temporanea del test
    """
    return StealthSettings(
        data_dir=base_dir / "data",
        log_dir=base_dir / "logs",
        log_to_file=False,
        log_level="DEBUG",
        kdf_iterations=PBKDF2_MIN_ITERATIONS,
        scan_max_workers=4,
        dev_mode=True,
    )


# ============================================================================
# CONFIGURATION VALIDATION
# ============================================================================

def validate_config(config: StealthSettings) -> tuple[bool, list[str]]:
    """
    Valida configurazione completa.

    Returns:
        tuple: (is_valid, errors_list)
    """
    errors = []

    if not os.access(config.data_dir, os.W_OK):
        errors.append(f"Directory not writable: {config.data_dir}")

    if config.log_to_file and not os.access(config.log_dir, os.W_OK):
        errors.append(f"Directory not writable: {config.log_dir}")

    if not config.verify_key_records and not config.dev_mode:
        errors.append("verify_key_records=False is only allowed in dev_mode")

    return (len(errors) == 0, errors)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "StealthSettings",
    "get_settings",
    "reload_settings",
    "override_settings",
    "get_development_config",
    "get_test_config",
    "validate_config",
]
