"""Box office domain layer.

This package contains the credential signer, the typed records and the
error taxonomy. Nothing here touches the database.
"""

from festival_pass.domain.credential import (
    CredentialSigner,
    VerifiedCredential,
    decode_secret,
    generate_secret,
    is_valid_secret,
)
from festival_pass.domain.errors import ErrorCode, FestivalPassError, to_error_payload
from festival_pass.domain.records import (
    Annulment,
    Card,
    CardEventStatus,
    CardOverview,
    CardState,
    CardStatistics,
    Category,
    DailyReport,
    Event,
    EventReport,
    Person,
    Redemption,
    RedemptionOutcome,
    Revocation,
    Sale,
)

__all__ = [
    # Credentials
    "CredentialSigner",
    "VerifiedCredential",
    "decode_secret",
    "generate_secret",
    "is_valid_secret",
    # Errors
    "ErrorCode",
    "FestivalPassError",
    "to_error_payload",
    # Records
    "Annulment",
    "Card",
    "CardEventStatus",
    "CardOverview",
    "CardState",
    "CardStatistics",
    "Category",
    "DailyReport",
    "Event",
    "EventReport",
    "Person",
    "Redemption",
    "RedemptionOutcome",
    "Revocation",
    "Sale",
]
