"""Error taxonomy for the box office core.

Every failure surfaced to operators carries a stable machine-readable code
and a short user-safe message. Store error text never leaves this module
unless diagnostic mode is enabled.
"""

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Stable failure codes shown to operators."""

    INVALID_INPUT = "INVALID_INPUT"
    FORMAT_INVALID = "FORMAT_INVALID"
    PREFIX_INVALID = "PREFIX_INVALID"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    EXPIRED = "EXPIRED"
    SECRET_MISSING = "SECRET_MISSING"
    NOT_FOUND = "NOT_FOUND"
    REVOKED = "REVOKED"
    NOT_ACTIVE = "NOT_ACTIVE"
    ACTIVE_CARD_EXISTS = "ACTIVE_CARD_EXISTS"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    DUPLICATE_REDEMPTION = "DUPLICATE_REDEMPTION"
    ALREADY_ANNULLED = "ALREADY_ANNULLED"
    NOT_ANNULLABLE = "NOT_ANNULLABLE"
    WINDOW_EXPIRED = "WINDOW_EXPIRED"
    CONTENTION = "CONTENTION"
    INTERNAL = "INTERNAL"


class FestivalPassError(Exception):
    """Base exception for all box office failures."""

    code: ErrorCode = ErrorCode.INTERNAL
    retryable: bool = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.code.value.lower().replace("_", " ")
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidInputError(FestivalPassError):
    """Malformed argument supplied by the caller."""

    code = ErrorCode.INVALID_INPUT


# Credential errors


class CredentialError(FestivalPassError):
    """Base exception for token verification failures."""


class CredentialFormatError(CredentialError):
    code = ErrorCode.FORMAT_INVALID


class CredentialPrefixError(CredentialError):
    code = ErrorCode.PREFIX_INVALID


class SignatureInvalidError(CredentialError):
    code = ErrorCode.SIGNATURE_INVALID


class CredentialExpiredError(CredentialError):
    code = ErrorCode.EXPIRED

    def __init__(self, expiry_date: str) -> None:
        super().__init__(f"Card expired on {expiry_date}")
        self.expiry_date = expiry_date


class SecretMissingError(CredentialError):
    code = ErrorCode.SECRET_MISSING

    def __init__(self) -> None:
        super().__init__("Card signing secret is not configured")


# Lookup errors


class NotFoundError(FestivalPassError):
    """Raised when a card, person or redemption does not exist."""

    code = ErrorCode.NOT_FOUND
    entity = "entity"

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"{self.entity.capitalize()} not found")
        self.entity_id = entity_id


class CardNotFoundError(NotFoundError):
    entity = "card"


class PersonNotFoundError(NotFoundError):
    entity = "person"


class RedemptionNotFoundError(NotFoundError):
    entity = "redemption"


class EventNotFoundError(FestivalPassError):
    code = ErrorCode.EVENT_NOT_FOUND

    def __init__(self, event_id: str) -> None:
        super().__init__("Event not found")
        self.event_id = event_id


# Card lifecycle errors


class CardRevokedError(FestivalPassError):
    code = ErrorCode.REVOKED

    def __init__(self, card_id: str) -> None:
        super().__init__("Card has been revoked")
        self.card_id = card_id


class CardNotActiveError(FestivalPassError):
    code = ErrorCode.NOT_ACTIVE

    def __init__(self, card_id: str) -> None:
        super().__init__("Card is not active")
        self.card_id = card_id


class ActiveCardExistsError(FestivalPassError):
    code = ErrorCode.ACTIVE_CARD_EXISTS

    def __init__(self, person_id: str) -> None:
        super().__init__("Person already holds an active card")
        self.person_id = person_id


# Redemption errors


class DuplicateRedemptionError(FestivalPassError):
    code = ErrorCode.DUPLICATE_REDEMPTION

    def __init__(self, card_id: str, event_id: str) -> None:
        super().__init__("Card already redeemed for this event")
        self.card_id = card_id
        self.event_id = event_id


class AlreadyAnnulledError(FestivalPassError):
    code = ErrorCode.ALREADY_ANNULLED

    def __init__(self, redemption_id: str) -> None:
        super().__init__("Redemption already annulled")
        self.redemption_id = redemption_id


class NotAnnullableError(FestivalPassError):
    code = ErrorCode.NOT_ANNULLABLE

    def __init__(self, redemption_id: str) -> None:
        super().__init__("Only successful redemptions can be annulled")
        self.redemption_id = redemption_id


class AnnulmentWindowExpiredError(FestivalPassError):
    code = ErrorCode.WINDOW_EXPIRED

    def __init__(self, redemption_id: str, window_days: int) -> None:
        super().__init__(f"Redemption is older than {window_days} days")
        self.redemption_id = redemption_id


# Store errors


class ContentionError(FestivalPassError):
    """The store stayed locked past the wait timeout. Safe to retry."""

    code = ErrorCode.CONTENTION
    retryable = True

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("Store is busy, retry the request")
        self.detail = detail


class InternalStoreError(FestivalPassError):
    """Unexpected store failure. Not retried automatically."""

    code = ErrorCode.INTERNAL

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("Internal error")
        self.detail = detail


def to_error_payload(
    error: FestivalPassError, expose_internal: bool = False
) -> dict[str, Any]:
    """Render an error as the payload returned to operator clients.

    Args:
        error: The failure to render
        expose_internal: Include store error text (diagnostic mode only)

    Returns:
        Dictionary with ``ok``, ``error`` (stable code) and ``message``
    """
    payload: dict[str, Any] = {
        "ok": False,
        "error": error.code.value,
        "message": error.message,
    }
    detail = getattr(error, "detail", None)
    if expose_internal and detail:
        payload["detail"] = detail
    return payload
