"""
StealthPay - Custom Exceptions
================================
Gerarchia di eccezioni tipizzate per stealth addresses.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Gli errori sono risultati tipizzati: un loop di scanning deve poter
distinguere "non è mio" (AddressMismatchError) da "infrastruttura rotta"
(KeyAgreementError, StoreError).
"""

from typing import Optional, Any


# ============================================================================
# BASE EXCEPTION
# ============================================================================

class StealthPayException(Exception):
    """
    Eccezione base per tutte le eccezioni StealthPay.

    Attributes:
        message (str): Messaggio errore
        code (str): Codice errore (es. "ADDRESS_MISMATCH")
        details (dict): Dettagli aggiuntivi
        retryable (bool): True se il chiamante può ritentare
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializza eccezione per API/logging"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class ConfigError(StealthPayException):
    """Errore configurazione sistema"""
    pass


# ============================================================================
# CRYPTOGRAPHY ERRORS
# ============================================================================

class CryptoError(StealthPayException):
    """Errore crittografia"""
    pass


class InvalidKeyError(CryptoError):
    """Chiave crittografica invalida"""
    pass


class KeyAgreementError(CryptoError):
    """
    ECDH fallito: chiavi malformate o curve incompatibili.

    Fatale, non va ritentato.
    """
    pass


class EncryptionError(CryptoError):
    """Errore encryption"""
    pass


class DecryptionError(CryptoError):
    """Errore decryption (password errata o dati manomessi)"""
    pass


# ============================================================================
# STEALTH ERRORS
# ============================================================================

class StealthError(StealthPayException):
    """Errore generico stealth address"""
    pass


class RecipientKeyNotFoundError(StealthError):
    """
    Encryption key del destinatario non pubblicata o malformata.

    Recuperabile: ritentare dopo che il destinatario pubblica la chiave.
    """
    retryable = True


class AddressMismatchError(StealthError):
    """
    L'indirizzo derivato non corrisponde all'announcement.

    Esito benigno durante lo scanning; visibile al chiamante solo
    quando l'ownership era già stata asserita.
    """
    pass


class DerivationMethodError(StealthError):
    """Metodo di derivazione sconosciuto o non ammesso per la creazione"""
    pass


# ============================================================================
# VALIDATION ERRORS
# ============================================================================

class ValidationError(StealthPayException):
    """Errore validazione (base)"""
    pass


class InvalidAnnouncementError(ValidationError):
    """
    Announcement malformato o contenente materiale privato.

    Fatale: corruzione upstream o violazione di protocollo.
    """
    pass


class InvalidKeyRecordError(ValidationError):
    """Record di chiave pubblicata invalido (firma o formato)"""
    pass


# ============================================================================
# STORAGE ERRORS
# ============================================================================

class StoreError(StealthPayException):
    """Errore store esterno (propagato, ritentabile a discrezione)"""
    retryable = True


class DatabaseError(StoreError):
    """Errore database generico"""
    pass


class DatabaseConnectionError(DatabaseError):
    """Errore connessione database"""
    pass


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def format_validation_error(
    field: str,
    value: Any,
    expected: str,
    code: Optional[str] = None
) -> InvalidAnnouncementError:
    """
    Helper per creare InvalidAnnouncementError formattati.

    Il valore ricevuto è troncato: un campo invalido potrebbe contenere
    materiale privato e finire nei log.

    Args:
        field: Nome campo invalido
        value: Valore ricevuto
        expected: Valore/tipo atteso
        code: Codice errore custom

    Returns:
        InvalidAnnouncementError: Eccezione formattata

    Example:
        >>> raise format_validation_error("createdAt", -100, "positive integer")
    """
    preview = repr(value)
    if len(preview) > 12:
        preview = preview[:12] + "..."

    return InvalidAnnouncementError(
        message=f"Invalid field '{field}': expected {expected}",
        code=code or "INVALID_ANNOUNCEMENT",
        details={"field": field, "value": preview, "expected": expected}
    )


# ============================================================================
# EXPORT ALL
# ============================================================================

__all__ = [
    # Base
    "StealthPayException",

    # Config
    "ConfigError",

    # Crypto
    "CryptoError",
    "InvalidKeyError",
    "KeyAgreementError",
    "EncryptionError",
    "DecryptionError",

    # Stealth
    "StealthError",
    "RecipientKeyNotFoundError",
    "AddressMismatchError",
    "DerivationMethodError",

    # Validation
    "ValidationError",
    "InvalidAnnouncementError",
    "InvalidKeyRecordError",

    # Storage
    "StoreError",
    "DatabaseError",
    "DatabaseConnectionError",

    # Helpers
    "format_validation_error",
]
