"""Bounded-window annulment of mistaken redemptions.

Annulled rows are never deleted. The redemption gets its annulment
sub-record and the paired sale is flagged, which drops both out of revenue
figures and frees the (card, event) pair for a new sale through the normal
sell path.
"""

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from festival_pass.domain.clock import to_utc
from festival_pass.domain.errors import (
    AlreadyAnnulledError,
    AnnulmentWindowExpiredError,
    InvalidInputError,
    NotAnnullableError,
    RedemptionNotFoundError,
)
from festival_pass.domain.records import Annulment, Redemption, RedemptionOutcome
from festival_pass.infrastructure.repository import RedemptionRepository, SaleRepository
from festival_pass.logging_config import get_logger

logger = get_logger(__name__)

ANNULMENT_WINDOW_DAYS = 7


def annul(
    session: Session,
    redemption_id: str,
    reason: str,
    operator: str,
    now: datetime | None = None,
    window_days: int = ANNULMENT_WINDOW_DAYS,
) -> Redemption:
    """
    Void a past redemption.

    Args:
        session: Session of an open write unit
        redemption_id: Redemption to annul
        reason: Why the redemption is voided
        operator: Operator performing the annulment
        now: Reference time (timezone-aware), defaults to the current time
        window_days: Maximum age of an annullable redemption

    Returns:
        The redemption with its annulment sub-record set

    Raises:
        RedemptionNotFoundError: No such redemption
        AlreadyAnnulledError: Annulment flag already set
        NotAnnullableError: Outcome is not ``ok``
        AnnulmentWindowExpiredError: Redemption older than the window
    """
    if not reason or not reason.strip():
        raise InvalidInputError("An annulment reason is required")
    if not operator or not operator.strip():
        raise InvalidInputError("An operator name is required")
    reference = to_utc(now)

    repository = RedemptionRepository(session)
    redemption = repository.get(redemption_id)
    if redemption is None:
        raise RedemptionNotFoundError(redemption_id)
    if redemption.annulled:
        raise AlreadyAnnulledError(redemption_id)
    if redemption.outcome is not RedemptionOutcome.OK:
        raise NotAnnullableError(redemption_id)

    if reference - redemption.created_at > timedelta(days=window_days):
        raise AnnulmentWindowExpiredError(redemption_id, window_days)

    annulment = Annulment(
        annulled_at=reference,
        operator=operator.strip(),
        reason=reason.strip(),
    )
    repository.mark_annulled(redemption_id, annulment)
    if redemption.sale_id:
        SaleRepository(session).mark_annulled(redemption.sale_id)

    logger.info(
        "redemption_annulled",
        redemption_id=redemption_id,
        sale_id=redemption.sale_id,
        operator=operator,
    )
    return repository.get(redemption_id)


def list_annullable(
    session: Session,
    limit: int = 50,
    now: datetime | None = None,
    window_days: int = ANNULMENT_WINDOW_DAYS,
) -> list[Redemption]:
    """Valid redemptions still inside the window, newest first."""
    if limit <= 0:
        return []
    reference = to_utc(now)
    return RedemptionRepository(session).list_annullable(
        since=reference - timedelta(days=window_days), limit=limit
    )
