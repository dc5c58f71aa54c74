"""
StealthPay - Logging System
=============================
Sistema logging strutturato JSON per audit e debugging.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Features:
- Logging JSON strutturato
- Rotation automatica
- Context enrichment
- Performance tracking (scanning)
- Audit trail announcements

Chiavi private e shared secret non vanno MAI passati a questi logger.
"""

import logging
import logging.handlers
import json
import sys
import time
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import traceback


# ============================================================================
# JSON FORMATTER
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    Formatter per log in formato JSON.

    Output structure:
    {
        "timestamp": "2026-10-12T22:00:00.000000Z",
        "level": "INFO",
        "logger": "stealthpay.stealth",
        "message": "Stealth address generated",
        "extra_data": {...},
        "exception": {...}
    }
    """

    def __init__(
        self,
        include_extra: bool = True,
        include_stack: bool = True
    ):
        super().__init__()
        self.include_extra = include_extra
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        """
        Formatta LogRecord in JSON.

        Args:
            record: LogRecord da formattare

        Returns:
            str: JSON string
        """
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)

        log_data = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.thread:
            log_data["thread_id"] = record.thread
            log_data["thread_name"] = record.threadName

        if record.process:
            log_data["process_id"] = record.process

        if self.include_extra and hasattr(record, 'extra_data'):
            log_data["extra_data"] = record.extra_data

        if record.exc_info and self.include_stack:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, default=str)


# ============================================================================
# TEXT FORMATTER (Human-Readable)
# ============================================================================

class ColoredTextFormatter(logging.Formatter):
    """
    Formatter colorato per console.

    Colors:
    - DEBUG: Gray
    - INFO: Green
    - WARNING: Yellow
    - ERROR: Red
    - CRITICAL: Bold Red
    """

    COLORS = {
        'DEBUG': '\033[90m',
        'INFO': '\033[92m',
        'WARNING': '\033[93m',
        'ERROR': '\033[91m',
        'CRITICAL': '\033[1;91m',
        'RESET': '\033[0m'
    }

    def format(self, record: logging.LogRecord) -> str:
        """Formatta con colori"""
        levelname = record.levelname
        if levelname in self.COLORS:
            levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"

        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = created.strftime('%Y-%m-%d %H:%M:%S')

        message = f"{timestamp} [{levelname}] {record.name}: {record.getMessage()}"

        if hasattr(record, 'extra_data'):
            message += f" | {record.extra_data}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


# ============================================================================
# LOGGER CLASS
# ============================================================================

class StealthPayLogger:
    """
    Wrapper logger con context enrichment e campi strutturati.

    Example:
        >>> logger = get_logger("stealth")
        >>> logger.info("Announcement recorded", extra_data={"address": "0xAbC..."})
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._context: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self._logger.name

    def set_context(self, **kwargs):
        """
        Imposta context globale (aggiunto a tutti i log).

        Example:
            >>> logger.set_context(wallet="alice")
        """
        self._context.update(kwargs)

    def clear_context(self):
        """Clear context"""
        self._context.clear()

    def _log(
        self,
        level: int,
        message: str,
        extra_data: Optional[Dict[str, Any]] = None,
        exc_info: Optional[Any] = None
    ):
        merged_extra = {**self._context}
        if extra_data:
            merged_extra.update(extra_data)

        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={'extra_data': merged_extra} if merged_extra else {},
            stacklevel=3
        )

    def debug(self, message: str, extra_data: Optional[Dict] = None):
        """Log DEBUG"""
        self._log(logging.DEBUG, message, extra_data)

    def info(self, message: str, extra_data: Optional[Dict] = None):
        """Log INFO"""
        self._log(logging.INFO, message, extra_data)

    def warning(self, message: str, extra_data: Optional[Dict] = None):
        """Log WARNING"""
        self._log(logging.WARNING, message, extra_data)

    def error(self, message: str, extra_data: Optional[Dict] = None, exc_info: Optional[Any] = None):
        """Log ERROR"""
        self._log(logging.ERROR, message, extra_data, exc_info)

    def critical(self, message: str, extra_data: Optional[Dict] = None, exc_info: Optional[Any] = None):
        """Log CRITICAL"""
        self._log(logging.CRITICAL, message, extra_data, exc_info)

    def exception(self, message: str, extra_data: Optional[Dict] = None):
        """Log exception con traceback"""
        self._log(logging.ERROR, message, extra_data, exc_info=sys.exc_info())


# ============================================================================
# SETUP FUNCTION
# ============================================================================

def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    log_dir: Path = Path("./logs"),
    log_format: str = "json",
    log_rotation_mb: int = 100,
    log_retention_days: int = 30,
    enable_console: bool = True,
) -> StealthPayLogger:
    """
    Setup logging system completo.

    Args:
        log_level: Level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Salva su file
        log_dir: Directory log files
        log_format: Formato (json, text)
        log_rotation_mb: MB prima rotation
        log_retention_days: File di backup mantenuti
        enable_console: Log anche su console

    Returns:
        StealthPayLogger: Logger root configurato

    Example:
        >>> logger = setup_logging(log_level="DEBUG", log_to_file=False)
        >>> logger.info("Scanner started", extra_data={"workers": 8})
    """
    root_logger = logging.getLogger("stealthpay")
    root_logger.setLevel(getattr(logging, log_level.upper()))

    root_logger.handlers.clear()

    if log_to_file:
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "stealthpay.log",
            maxBytes=log_rotation_mb * 1024 * 1024,
            backupCount=log_retention_days,
            encoding='utf-8'
        )

        if log_format == "json":
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                )
            )

        root_logger.addHandler(file_handler)

        # Error log separato
        error_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "stealthpay_errors.log",
            maxBytes=log_rotation_mb * 1024 * 1024,
            backupCount=log_retention_days,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter(include_stack=True))

        root_logger.addHandler(error_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ColoredTextFormatter())
        root_logger.addHandler(console_handler)

    return StealthPayLogger(root_logger)


def setup_logging_from_settings(settings) -> StealthPayLogger:
    """
    Setup logging da StealthSettings.

    Args:
        settings: StealthSettings instance

    Returns:
        StealthPayLogger: Logger root configurato
    """
    return setup_logging(
        log_level=settings.log_level,
        log_to_file=settings.log_to_file,
        log_dir=settings.log_dir,
        log_format=settings.log_format,
        log_rotation_mb=settings.log_rotation_mb,
        log_retention_days=settings.log_retention_days,
    )


# ============================================================================
# CATEGORY LOGGERS
# ============================================================================

def get_logger(category: str) -> StealthPayLogger:
    """
    Ottieni logger per categoria specifica.

    Args:
        category: Categoria (stealth, scanning, storage, ...)

    Returns:
        StealthPayLogger: Logger per categoria

    Example:
        >>> scan_logger = get_logger("services.scanning")
        >>> scan_logger.info("Scan started")
    """
    return StealthPayLogger(logging.getLogger(f"stealthpay.{category}"))


def short_key(value: Optional[str], length: int = 12) -> str:
    """Tronca chiavi pubbliche/indirizzi per i campi di log"""
    if not value:
        return ""
    return value[:length] + "..." if len(value) > length else value


# ============================================================================
# PERFORMANCE TRACKING
# ============================================================================

class PerformanceLogger:
    """
    Context manager per tracking performance.

    Example:
        >>> logger = get_logger("services.scanning")
        >>> with PerformanceLogger(logger, "scan", threshold_ms=5000):
        ...     owned = await scanner.scan(announcements, key_pair)
    """

    def __init__(
        self,
        logger: StealthPayLogger,
        operation: str,
        threshold_ms: Optional[int] = None
    ):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.start_time: Optional[float] = None
        self.elapsed_ms: float = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        extra = {
            "operation": self.operation,
            "duration_ms": round(self.elapsed_ms, 2)
        }

        if self.threshold_ms and self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation} took {self.elapsed_ms:.2f}ms (threshold: {self.threshold_ms}ms)",
                extra_data=extra
            )
        else:
            self.logger.debug(
                f"{self.operation} completed in {self.elapsed_ms:.2f}ms",
                extra_data=extra
            )


# ============================================================================
# AUDIT LOGGER
# ============================================================================

class AuditLogger:
    """
    Logger specializzato per audit trail.

    Use for:
    - Announcements registrati
    - Key records pubblicati
    - Stealth addresses aperti (solo indirizzo, mai la chiave)
    """

    def __init__(self, log_dir: Path = Path("./logs")):
        self.log_dir = log_dir
        self.log_dir.mkdir(parents=True, exist_ok=True)

        audit_file = (log_dir / "audit.log").resolve()

        self.logger = logging.getLogger("stealthpay.audit")
        self.logger.setLevel(logging.INFO)

        # Un solo handler per file (no rotation per audit)
        already_attached = any(
            isinstance(h, logging.FileHandler)
            and Path(h.baseFilename) == audit_file
            for h in self.logger.handlers
        )
        if not already_attached:
            handler = logging.FileHandler(audit_file, encoding='utf-8')
            handler.setFormatter(JSONFormatter(include_extra=True))
            self.logger.addHandler(handler)

    def _audit(self, message: str, action: str, **fields):
        self.logger.info(
            message,
            extra={
                'extra_data': {
                    "action": action,
                    **fields,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }
            }
        )

    def log_announcement_recorded(
        self,
        derived_address: str,
        recipient_identity_pub: str,
        derivation_method: Optional[str]
    ):
        """Log announcement append"""
        self._audit(
            "Announcement recorded",
            "announcement_recorded",
            derived_address=derived_address,
            recipient=short_key(recipient_identity_pub, 16),
            derivation_method=derivation_method,
        )

    def log_key_published(self, identity_pub: str, enc_pub: str):
        """Log key record publication"""
        self._audit(
            "Encryption key published",
            "key_published",
            identity=short_key(identity_pub, 16),
            enc_pub=short_key(enc_pub, 16),
        )

    def log_stealth_opened(self, derived_address: str, derivation_method: str):
        """Log claim di un indirizzo stealth"""
        self._audit(
            "Stealth address opened",
            "stealth_opened",
            derived_address=derived_address,
            derivation_method=derivation_method,
        )


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "setup_logging",
    "setup_logging_from_settings",
    "get_logger",
    "short_key",
    "StealthPayLogger",
    "PerformanceLogger",
    "AuditLogger",
    "JSONFormatter",
    "ColoredTextFormatter",
]
