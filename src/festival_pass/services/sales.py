"""Sale and redemption as one atomic unit.

A sale is only ever written together with its ``ok`` redemption. The
duplicate guard is the partial unique index on redemptions: there is no
"already redeemed?" query before the insert, because two concurrent sells
would both pass it. The insert that loses the race fails on flush and the
whole unit, sale row included, is rolled back.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from festival_pass.domain.clock import to_utc
from festival_pass.domain.errors import DuplicateRedemptionError, InvalidInputError
from festival_pass.domain.records import Redemption, RedemptionOutcome, Sale
from festival_pass.infrastructure.repository import RedemptionRepository, SaleRepository
from festival_pass.logging_config import get_logger
from festival_pass.services import cards, pricing

logger = get_logger(__name__)


class SaleResult(NamedTuple):
    """Outcome of a successful sell.

    Attributes:
        price: Amount charged
        sale_id: Id of the new sale row
        redemption_id: Id of the paired redemption row
    """

    price: Decimal
    sale_id: str
    redemption_id: str


def sell(
    session: Session,
    card_id: str,
    event_id: str,
    operator: str,
    register_id: str,
    now: datetime | None = None,
) -> SaleResult:
    """
    Sell one ticket for an event against a card.

    Checks run in a fixed order so a given bad request always reports the
    same failure: card state, then pricing, then the duplicate guard.

    Args:
        session: Session of an open write unit
        card_id: Card presented at the register
        event_id: Event being sold
        operator: Operator at the register
        register_id: Register the sale is booked on
        now: Sale timestamp (timezone-aware), defaults to the current time

    Returns:
        SaleResult with the resolved price and the new row ids

    Raises:
        CardNotFoundError, CardRevokedError, CardNotActiveError: Card unusable
        EventNotFoundError: Unknown event
        DuplicateRedemptionError: Card already redeemed for this event
    """
    if not operator or not operator.strip():
        raise InvalidInputError("An operator name is required")
    if not register_id or not register_id.strip():
        raise InvalidInputError("A register id is required")
    timestamp = to_utc(now)

    cards.check_validity(session, card_id)
    amount = pricing.price(session, card_id, event_id)

    sale = Sale(
        id=str(uuid.uuid4()),
        card_id=card_id,
        event_id=event_id,
        price_paid=amount,
        register_id=register_id,
        created_at=timestamp,
    )
    redemption = Redemption(
        id=str(uuid.uuid4()),
        card_id=card_id,
        event_id=event_id,
        operator=operator,
        outcome=RedemptionOutcome.OK,
        created_at=timestamp,
        sale_id=sale.id,
    )

    SaleRepository(session).create(sale)
    try:
        RedemptionRepository(session).create(redemption)
    except IntegrityError as e:
        logger.info("sale_rejected_duplicate", card_id=card_id, event_id=event_id)
        raise DuplicateRedemptionError(card_id, event_id) from e

    logger.info(
        "ticket_sold",
        card_id=card_id,
        event_id=event_id,
        sale_id=sale.id,
        redemption_id=redemption.id,
        price=str(amount),
        register_id=register_id,
    )
    return SaleResult(price=amount, sale_id=sale.id, redemption_id=redemption.id)
