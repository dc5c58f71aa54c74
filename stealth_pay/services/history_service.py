"""
StealthPay - History Recorder
===============================
Validazione e registrazione degli announcement.

Security Level: HIGH
Last Updated: 2026-10-12
Version: 1.0.0

Un announcement con materiale privato (metà privata della coppia
effimera, shared secret, chiave derivata) permette a chiunque lo legga
di spendere i fondi del destinatario: viene rifiutato, non ripulito.
"""

from typing import Any, Iterator, Mapping, Optional, Union

# Internal imports
from stealth_pay.constants import (
    LEGACY_EPHEMERAL_PAIR_FIELD,
    PRIVATE_FIELD_NAMES,
    PRIVATE_NAME_MARKERS,
)
from stealth_pay.domain.addressing import (
    format_public_key,
    is_valid_public_key,
    looks_like_private_key,
    normalize_identity,
    strip_scheme_prefix,
    validate_address,
)
from stealth_pay.domain.models import DerivationMethod, StealthAnnouncement
from stealth_pay.errors import (
    InvalidAnnouncementError,
    StealthPayException,
    StoreError,
    format_validation_error,
)
from stealth_pay.logging_setup import AuditLogger, get_logger, short_key
from stealth_pay.storage.interfaces import AnnouncementStore
from stealth_pay.wallet.derivation import is_valid_view_tag


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("services.history")


AnnouncementLike = Union[StealthAnnouncement, Mapping[str, Any]]


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == {} or value == []


def _is_private_name(key: Any) -> bool:
    name = str(key).lower()
    return name in PRIVATE_FIELD_NAMES or any(marker in name for marker in PRIVATE_NAME_MARKERS)


def _find_private_fields(data: Any, path: str = "") -> Optional[str]:
    """
    Primo campo con materiale privato, a qualsiasi profondità.

    Privato = nome "privato" con valore non vuoto, oppure stringa con la
    forma di una chiave privata (64 hex) sotto qualsiasi nome.
    Liste e tuple vengono attraversate come i mapping.
    """
    if isinstance(data, Mapping):
        items = [(f"{path}.{key}" if path else str(key), key, value) for key, value in data.items()]
    elif isinstance(data, (list, tuple)):
        items = [(f"{path}[{index}]", None, value) for index, value in enumerate(data)]
    else:
        return None

    for field_path, key, value in items:
        if key is not None and _is_private_name(key) and not _is_empty(value):
            return field_path

        if isinstance(value, str) and looks_like_private_key(strip_scheme_prefix(value)):
            return field_path

        nested = _find_private_fields(value, field_path)
        if nested:
            return nested

    return None


# ============================================================================
# HISTORY RECORDER
# ============================================================================

class HistoryRecorder:
    """
    Valida e registra announcement in un AnnouncementStore.

    Features:
    - Rifiuto di indirizzi/chiavi malformati
    - Rifiuto di qualsiasi materiale privato
    - Append idempotente (False se già presente)
    - Nessun retry: gli errori dello store arrivano al chiamante

    Attributes:
        store: AnnouncementStore
        audit: AuditLogger opzionale

    Examples:
        >>> recorder = HistoryRecorder(store)
        >>> recorder.record(announcement)
        True
        >>> recorder.record(announcement)
        False
    """

    def __init__(self, store: AnnouncementStore, audit: Optional[AuditLogger] = None):
        self.store = store
        self.audit = audit

    # ========================================================================
    # VALIDATION
    # ========================================================================

    def validate(self, announcement: AnnouncementLike) -> StealthAnnouncement:
        """
        Valida announcement (istanza o mapping serializzato).

        Returns:
            StealthAnnouncement: Announcement validato, identity normalizzata

        Raises:
            InvalidAnnouncementError: Al primo campo invalido
        """
        if isinstance(announcement, Mapping):
            announcement = self._validate_mapping(announcement)
        elif not isinstance(announcement, StealthAnnouncement):
            raise InvalidAnnouncementError(
                f"Unsupported announcement type: {type(announcement).__name__}",
                code="INVALID_ANNOUNCEMENT_TYPE"
            )

        self._validate_fields(announcement)

        identity = normalize_identity(announcement.recipient_identity_pub)
        if identity != announcement.recipient_identity_pub:
            announcement = StealthAnnouncement(
                recipient_identity_pub=identity,
                ephemeral_enc_pub=announcement.ephemeral_enc_pub,
                derived_address=announcement.derived_address,
                created_at=announcement.created_at,
                derivation_method=announcement.derivation_method,
                view_tag=announcement.view_tag,
            )

        return announcement

    def _validate_mapping(self, data: Mapping[str, Any]) -> StealthAnnouncement:
        private_field = _find_private_fields(data)
        if private_field:
            raise InvalidAnnouncementError(
                f"Announcement contains private key material in '{private_field}'",
                code="PRIVATE_KEY_MATERIAL",
                details={"field": private_field}
            )

        pair = data.get(LEGACY_EPHEMERAL_PAIR_FIELD)
        if pair is not None and not isinstance(pair, Mapping):
            raise format_validation_error(LEGACY_EPHEMERAL_PAIR_FIELD, pair, "object")

        return StealthAnnouncement.from_dict(data)

    def _validate_fields(self, announcement: StealthAnnouncement) -> None:
        for name in ("recipient_identity_pub", "ephemeral_enc_pub"):
            value = getattr(announcement, name)
            if isinstance(value, str) and looks_like_private_key(strip_scheme_prefix(value)):
                raise InvalidAnnouncementError(
                    f"Field '{name}' is shaped like a private key",
                    code="PRIVATE_KEY_MATERIAL",
                    details={"field": name}
                )

        if format_public_key(announcement.recipient_identity_pub) is None:
            raise format_validation_error(
                "recipientIdentityPub", announcement.recipient_identity_pub,
                "non-empty identity public key"
            )

        if not is_valid_public_key(announcement.ephemeral_enc_pub):
            raise format_validation_error(
                "ephemeralEncPub", announcement.ephemeral_enc_pub,
                "SEC1 secp256k1 public key (hex)"
            )

        if not validate_address(announcement.derived_address):
            raise format_validation_error(
                "derivedAddress", announcement.derived_address,
                "0x + 40 hex with valid EIP-55 checksum"
            )

        created_at = announcement.created_at
        if isinstance(created_at, bool) or not isinstance(created_at, int) or created_at <= 0:
            raise format_validation_error("createdAt", created_at, "positive integer (ms)")

        method = announcement.derivation_method
        if method is not None and not isinstance(method, DerivationMethod):
            raise format_validation_error(
                "derivationMethod", method, "one of: standard, legacy",
                code="UNKNOWN_DERIVATION_METHOD"
            )

        if announcement.view_tag is not None and not is_valid_view_tag(announcement.view_tag):
            raise format_validation_error("viewTag", announcement.view_tag, "0x + 2 hex")

    # ========================================================================
    # RECORD / LIST
    # ========================================================================

    def record(self, announcement: AnnouncementLike) -> bool:
        """
        Valida e registra.

        Returns:
            bool: True se registrato ora, False se già presente

        Raises:
            InvalidAnnouncementError: Announcement invalido
            StoreError: Errore dello store (nessun retry)
        """
        validated = self.validate(announcement)

        try:
            added = self.store.append(validated)
        except StealthPayException:
            raise
        except Exception as e:
            raise StoreError(
                f"Announcement store failed: {e}",
                code="STORE_APPEND_FAILED",
                details={"error_type": type(e).__name__}
            ) from e

        if added:
            logger.info(
                "Announcement recorded",
                extra_data={
                    "address": short_key(validated.derived_address),
                    "method": validated.derivation_method.value if validated.derivation_method else None,
                }
            )
            if self.audit:
                self.audit.log_announcement_recorded(
                    validated.derived_address,
                    validated.recipient_identity_pub,
                    validated.derivation_method.value if validated.derivation_method else None,
                )
        else:
            logger.debug(
                "Announcement already recorded",
                extra_data={"address": short_key(validated.derived_address)}
            )

        return added

    def list(
        self,
        recipient_identity_pub: Optional[str] = None,
        since: Optional[int] = None
    ) -> Iterator[StealthAnnouncement]:
        """
        Announcement registrati, lazy. Ogni chiamata riparte dall'inizio.

        Args:
            recipient_identity_pub: Filtro destinatario ("~" opzionale)
            since: created_at minimo (ms)
        """
        identity = None
        if recipient_identity_pub is not None:
            identity = normalize_identity(recipient_identity_pub)
            if identity is None:
                return iter(())

        return self.store.list(recipient_identity_pub=identity, since=since)


__all__ = [
    "HistoryRecorder",
]
