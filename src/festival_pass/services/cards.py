"""Card lifecycle: issuance, validity and the active -> revoked transition.

A person holds at most one active card at any time. The check in
``assert_issuable`` runs inside the issuing unit of work, and the partial
unique index on ``cards(person_id) WHERE state = 'active'`` backs it up in
the store, so two concurrent issuances cannot both succeed.

All functions here run against the session of an already open unit of
work; callers own the transaction boundary.
"""

import uuid
from datetime import date, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from festival_pass.domain.clock import utc_now
from festival_pass.domain.credential import CredentialSigner
from festival_pass.domain.errors import (
    ActiveCardExistsError,
    CardNotActiveError,
    CardNotFoundError,
    CardRevokedError,
    PersonNotFoundError,
)
from festival_pass.domain.records import (
    Card,
    CardEventStatus,
    CardOverview,
    CardState,
    CardStatistics,
    Revocation,
)
from festival_pass.infrastructure.repository import (
    CardRepository,
    EventRepository,
    PersonRepository,
    RedemptionRepository,
    RevocationRepository,
)
from festival_pass.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_VALIDITY_DAYS = 365


def check_validity(session: Session, card_id: str) -> Card:
    """Return the card if it can be used, otherwise raise.

    Raises:
        CardNotFoundError: No such card
        CardRevokedError: Card was revoked
        CardNotActiveError: Card is in any other non-active state
    """
    card = CardRepository(session).get(card_id)
    if card is None:
        raise CardNotFoundError(card_id)
    if card.state is CardState.REVOKED:
        raise CardRevokedError(card_id)
    if not card.is_active:
        raise CardNotActiveError(card_id)
    return card


def assert_issuable(session: Session, person_id: str) -> None:
    """Raise ActiveCardExistsError if the person already holds an active card."""
    if CardRepository(session).find_active_for_person(person_id) is not None:
        raise ActiveCardExistsError(person_id)


def default_expiry_date(today: date | None = None, validity_days: int = DEFAULT_VALIDITY_DAYS) -> str:
    reference = today or utc_now().date()
    return (reference + timedelta(days=validity_days)).isoformat()


def issue(
    session: Session,
    person_id: str,
    secret: str | None,
    signer: CredentialSigner,
    expiry_date: str | None = None,
    today: date | None = None,
    validity_days: int = DEFAULT_VALIDITY_DAYS,
) -> Card:
    """Issue a new active card for a person.

    Args:
        session: Session of an open write unit
        person_id: Card holder
        secret: Hex encoded signing secret
        signer: Token signer
        expiry_date: Explicit expiry (YYYY-MM-DD); defaults to today + validity_days
        today: Reference date for the default expiry
        validity_days: Default validity length

    Returns:
        The persisted card

    Raises:
        PersonNotFoundError: Unknown person
        ActiveCardExistsError: Person already holds an active card
        InvalidInputError: Malformed expiry date
        SecretMissingError: No signing secret configured
    """
    if not PersonRepository(session).exists(person_id):
        raise PersonNotFoundError(person_id)

    assert_issuable(session, person_id)

    expiry = expiry_date or default_expiry_date(today, validity_days)
    card_id = str(uuid.uuid4())
    token = signer.generate(card_id, expiry, secret)

    card = Card(
        id=card_id,
        person_id=person_id,
        state=CardState.ACTIVE,
        token=token,
        expiry_date=expiry,
        created_at=utc_now(),
    )

    try:
        CardRepository(session).create(card)
    except IntegrityError as e:
        # Lost a race with a concurrent issuance for the same person
        raise ActiveCardExistsError(person_id) from e

    logger.info("card_issued", card_id=card_id, person_id=person_id, expiry_date=expiry)
    return card


def revoke(session: Session, card_id: str) -> Card:
    """Move an active card to the terminal revoked state.

    Raises:
        CardNotFoundError: No such card
        CardNotActiveError: Card is not active (revocation is one-way)
    """
    repository = CardRepository(session)
    card = repository.get(card_id)
    if card is None:
        raise CardNotFoundError(card_id)
    if not card.is_active:
        raise CardNotActiveError(card_id)

    repository.set_state(card_id, CardState.REVOKED)
    return repository.get(card_id)


def renew(
    session: Session,
    card_id: str,
    operator: str,
    secret: str | None,
    signer: CredentialSigner,
    expiry_date: str | None = None,
    today: date | None = None,
    validity_days: int = DEFAULT_VALIDITY_DAYS,
) -> Card:
    """Replace a card with a fresh one for the same person.

    The old card is revoked (with a ``renewal`` audit row) if it is still
    active. Revoked cards can be renewed too, which is how a lost card is
    replaced after revocation.

    Raises:
        CardNotFoundError: No such card
    """
    old = CardRepository(session).get(card_id)
    if old is None:
        raise CardNotFoundError(card_id)

    if old.is_active:
        revoke(session, card_id)
        RevocationRepository(session).create(
            Revocation(
                id=str(uuid.uuid4()),
                card_id=card_id,
                reason="renewal",
                operator=operator,
                created_at=utc_now(),
            )
        )

    card = issue(
        session,
        old.person_id,
        secret,
        signer,
        expiry_date=expiry_date,
        today=today,
        validity_days=validity_days,
    )
    logger.info("card_renewed", old_card_id=card_id, card_id=card.id, operator=operator)
    return card


def list_expiring(session: Session, within_days: int, today: date | None = None) -> list[Card]:
    """Active cards expiring within the next ``within_days`` days."""
    reference = today or utc_now().date()
    until = (reference + timedelta(days=within_days)).isoformat()
    return CardRepository(session).list_expiring(until)


def statistics(session: Session, within_days: int, today: date | None = None) -> CardStatistics:
    """Card counts by state, cards expiring soon and revocations on record."""
    counts = CardRepository(session).count_by_state()
    return CardStatistics(
        active=counts[CardState.ACTIVE],
        revoked=counts[CardState.REVOKED],
        expiring_soon=len(list_expiring(session, within_days, today=today)),
        revocations=RevocationRepository(session).count(),
    )


def card_overview(session: Session, card_id: str) -> CardOverview:
    """Card details plus, per event, whether the card has a valid redemption."""
    card = CardRepository(session).get(card_id)
    if card is None:
        raise CardNotFoundError(card_id)

    person = PersonRepository(session).get(card.person_id)
    if person is None:
        raise PersonNotFoundError(card.person_id)

    redeemed = {
        r.event_id
        for r in RedemptionRepository(session).list_recent(card_id=card_id)
        if r.is_valid
    }
    events = tuple(
        CardEventStatus(
            event_id=event.id,
            event_name=event.name,
            event_date=event.date,
            redeemed=event.id in redeemed,
        )
        for event in EventRepository(session).list_all()
    )
    return CardOverview(card=card, person=person, events=events)
