"""Card revocation with an append-only audit trail."""

import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from festival_pass.domain.clock import to_utc
from festival_pass.domain.errors import InvalidInputError
from festival_pass.domain.records import Card, Revocation
from festival_pass.infrastructure.repository import RevocationRepository
from festival_pass.logging_config import get_logger
from festival_pass.services import cards

logger = get_logger(__name__)


def revoke(
    session: Session,
    card_id: str,
    reason: str,
    operator: str,
    now: datetime | None = None,
) -> Card:
    """
    Revoke an active card and record why.

    The state transition and the audit row are written in the caller's
    unit of work, so either both land or neither does.

    Args:
        session: Session of an open write unit
        card_id: Card to revoke
        reason: Free text shown in the audit trail (e.g. "lost")
        operator: Operator performing the revocation
        now: Audit timestamp (timezone-aware), defaults to the current time

    Raises:
        CardNotFoundError: No such card
        CardNotActiveError: Card was already revoked
    """
    if not reason or not reason.strip():
        raise InvalidInputError("A revocation reason is required")
    if not operator or not operator.strip():
        raise InvalidInputError("An operator name is required")
    timestamp = to_utc(now)

    card = cards.revoke(session, card_id)

    RevocationRepository(session).create(
        Revocation(
            id=str(uuid.uuid4()),
            card_id=card_id,
            reason=reason.strip(),
            operator=operator.strip(),
            created_at=timestamp,
        )
    )

    logger.info("card_revoked", card_id=card_id, operator=operator, reason=reason)
    return card
