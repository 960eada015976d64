"""Price resolution for a sale."""

from decimal import Decimal

from sqlalchemy.orm import Session

from festival_pass.domain.errors import CardNotFoundError, EventNotFoundError, PersonNotFoundError
from festival_pass.infrastructure.repository import (
    CardRepository,
    EventRepository,
    PersonRepository,
    TariffRepository,
)


def price(session: Session, card_id: str, event_id: str) -> Decimal:
    """
    Resolve the amount to charge for a card at an event.

    The tariff of the card holder's category wins when one is defined;
    otherwise the event's base price applies. Nothing else affects the
    price.

    Raises:
        CardNotFoundError: Unknown card
        PersonNotFoundError: Card refers to a missing person
        EventNotFoundError: Unknown event
    """
    card = CardRepository(session).get(card_id)
    if card is None:
        raise CardNotFoundError(card_id)

    base_price = EventRepository(session).base_price_of(event_id)
    if base_price is None:
        raise EventNotFoundError(event_id)

    category = PersonRepository(session).category_of(card.person_id)
    if category is None:
        raise PersonNotFoundError(card.person_id)

    tariff = TariffRepository(session).tariff_for(category)
    return tariff if tariff is not None else base_price
