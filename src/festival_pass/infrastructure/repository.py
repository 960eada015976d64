"""Repository layer for box office database operations.

Each repository wraps a session that belongs to an open unit of work and
converts ORM rows into domain records. Repositories never commit; the
unit of work decides when the transaction ends.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from festival_pass.domain.records import (
    Annulment,
    Card,
    CardState,
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
from festival_pass.infrastructure.models import (
    Card as CardModel,
    Event as EventModel,
    Person as PersonModel,
    Redemption as RedemptionModel,
    Revocation as RevocationModel,
    Sale as SaleModel,
    Tariff as TariffModel,
)

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to timestamps read back without a zone (SQLite)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PersonRepository:
    """Read access to registered persons."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, person_id: str) -> Optional[Person]:
        model = self.session.get(PersonModel, person_id)
        if not model:
            return None
        return Person(
            id=model.id,
            name=model.name,
            category=Category(model.category),
            document_verified=bool(model.document_verified),
        )

    def exists(self, person_id: str) -> bool:
        stmt = select(PersonModel.id).where(PersonModel.id == person_id)
        return self.session.execute(stmt).first() is not None

    def category_of(self, person_id: str) -> Optional[Category]:
        stmt = select(PersonModel.category).where(PersonModel.id == person_id)
        category = self.session.execute(stmt).scalar_one_or_none()
        return Category(category) if category is not None else None


class EventRepository:
    """Read access to festival events."""

    def __init__(self, session: Session):
        self.session = session

    def base_price_of(self, event_id: str) -> Optional[Decimal]:
        """Return the event's base price, or None if the event does not exist."""
        stmt = select(EventModel.base_price).where(EventModel.id == event_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_all(self) -> list[Event]:
        stmt = select(EventModel).order_by(EventModel.date, EventModel.name)
        return [self._to_domain_entity(m) for m in self.session.execute(stmt).scalars()]

    def _to_domain_entity(self, model: EventModel) -> Event:
        return Event(
            id=model.id,
            name=model.name,
            date=model.date,
            venue=model.venue,
            base_price=model.base_price,
        )


class TariffRepository:
    """Read access to category tariffs."""

    def __init__(self, session: Session):
        self.session = session

    def tariff_for(self, category: Category) -> Optional[Decimal]:
        """Return the tariff for a category, or None when none is defined."""
        stmt = select(TariffModel.price).where(TariffModel.category == category.value)
        return self.session.execute(stmt).scalar_one_or_none()


class CardRepository:
    """Repository for card storage and lifecycle updates."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, card_id: str) -> Optional[Card]:
        model = self.session.get(CardModel, card_id)
        if not model:
            logger.debug(f"Card {card_id} not found")
            return None
        return self._to_domain_entity(model)

    def find_active_for_person(self, person_id: str) -> Optional[Card]:
        stmt = select(CardModel).where(
            CardModel.person_id == person_id,
            CardModel.state == CardState.ACTIVE.value,
        )
        model = self.session.execute(stmt).scalars().first()
        return self._to_domain_entity(model) if model else None

    def create(self, card: Card) -> None:
        """Persist a new card.

        Raises:
            IntegrityError: If the person already has an active card
        """
        self.session.add(
            CardModel(
                id=card.id,
                person_id=card.person_id,
                state=card.state.value,
                token=card.token,
                expiry_date=card.expiry_date,
                created_at=card.created_at,
            )
        )
        self.session.flush()

    def set_state(self, card_id: str, state: CardState) -> None:
        model = self.session.get(CardModel, card_id)
        if not model:
            raise ValueError(f"Card {card_id} not found")
        model.state = state.value
        self.session.flush()

    def list_expiring(self, until_date: str) -> list[Card]:
        """Active cards expiring on or before a date, soonest first."""
        stmt = (
            select(CardModel)
            .where(
                CardModel.state == CardState.ACTIVE.value,
                CardModel.expiry_date <= until_date,
            )
            .order_by(CardModel.expiry_date, CardModel.created_at)
        )
        return [self._to_domain_entity(m) for m in self.session.execute(stmt).scalars()]

    def count_by_state(self) -> dict[CardState, int]:
        """Number of cards per state; states with no cards map to zero."""
        stmt = select(CardModel.state, func.count(CardModel.id)).group_by(CardModel.state)
        counts = {state: 0 for state in CardState}
        for state, count in self.session.execute(stmt):
            counts[CardState(state)] = count
        return counts

    def _to_domain_entity(self, model: CardModel) -> Card:
        return Card(
            id=model.id,
            person_id=model.person_id,
            state=CardState(model.state),
            token=model.token,
            expiry_date=model.expiry_date,
            created_at=as_utc(model.created_at),
        )


class SaleRepository:
    """Repository for ticket sales."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, sale: Sale) -> None:
        self.session.add(
            SaleModel(
                id=sale.id,
                card_id=sale.card_id,
                event_id=sale.event_id,
                price_paid=sale.price_paid,
                register_id=sale.register_id,
                created_at=sale.created_at,
                annulled=sale.annulled,
            )
        )
        self.session.flush()

    def get(self, sale_id: str) -> Optional[Sale]:
        model = self.session.get(SaleModel, sale_id)
        if not model:
            return None
        return Sale(
            id=model.id,
            card_id=model.card_id,
            event_id=model.event_id,
            price_paid=model.price_paid,
            register_id=model.register_id,
            created_at=as_utc(model.created_at),
            annulled=bool(model.annulled),
        )

    def count_for(self, card_id: str, event_id: str) -> int:
        stmt = select(func.count(SaleModel.id)).where(
            SaleModel.card_id == card_id, SaleModel.event_id == event_id
        )
        return self.session.execute(stmt).scalar_one()

    def mark_annulled(self, sale_id: str) -> None:
        model = self.session.get(SaleModel, sale_id)
        if not model:
            raise ValueError(f"Sale {sale_id} not found")
        model.annulled = True
        self.session.flush()


class RedemptionRepository:
    """Repository for redemptions and their annulment sub-records."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, redemption: Redemption) -> None:
        """Persist a redemption.

        Raises:
            IntegrityError: If a valid redemption already exists for the
                same (card, event) pair
        """
        self.session.add(
            RedemptionModel(
                id=redemption.id,
                card_id=redemption.card_id,
                event_id=redemption.event_id,
                sale_id=redemption.sale_id,
                operator=redemption.operator,
                outcome=redemption.outcome.value,
                created_at=redemption.created_at,
                annulled=False,
            )
        )
        self.session.flush()

    def get(self, redemption_id: str) -> Optional[Redemption]:
        model = self.session.get(RedemptionModel, redemption_id)
        if not model:
            return None
        return self._to_domain_entity(model)

    def mark_annulled(self, redemption_id: str, annulment: Annulment) -> None:
        model = self.session.get(RedemptionModel, redemption_id)
        if not model:
            raise ValueError(f"Redemption {redemption_id} not found")
        model.annulled = True
        model.annulled_at = annulment.annulled_at
        model.annulled_by = annulment.operator
        model.annulment_reason = annulment.reason
        self.session.flush()

    def list_annullable(self, since: datetime, limit: int) -> list[Redemption]:
        """Valid redemptions created at or after ``since``, newest first."""
        stmt = (
            select(RedemptionModel)
            .where(
                RedemptionModel.outcome == RedemptionOutcome.OK.value,
                RedemptionModel.annulled.is_(False),
                RedemptionModel.created_at >= since,
            )
            .order_by(RedemptionModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_domain_entity(m) for m in self.session.execute(stmt).scalars()]

    def list_recent(
        self,
        card_id: str | None = None,
        event_id: str | None = None,
        operator: str | None = None,
        limit: int | None = None,
    ) -> list[Redemption]:
        stmt = select(RedemptionModel)
        if card_id:
            stmt = stmt.where(RedemptionModel.card_id == card_id)
        if event_id:
            stmt = stmt.where(RedemptionModel.event_id == event_id)
        if operator:
            stmt = stmt.where(RedemptionModel.operator.contains(operator))
        stmt = stmt.order_by(RedemptionModel.created_at.desc())
        if limit and limit > 0:
            stmt = stmt.limit(limit)
        return [self._to_domain_entity(m) for m in self.session.execute(stmt).scalars()]

    def _to_domain_entity(self, model: RedemptionModel) -> Redemption:
        annulment = None
        if model.annulled:
            annulment = Annulment(
                annulled_at=as_utc(model.annulled_at),
                operator=model.annulled_by,
                reason=model.annulment_reason,
            )
        return Redemption(
            id=model.id,
            card_id=model.card_id,
            event_id=model.event_id,
            operator=model.operator,
            outcome=RedemptionOutcome(model.outcome),
            created_at=as_utc(model.created_at),
            sale_id=model.sale_id,
            annulment=annulment,
        )


class RevocationRepository:
    """Append-only revocation audit trail."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, revocation: Revocation) -> None:
        self.session.add(
            RevocationModel(
                id=revocation.id,
                card_id=revocation.card_id,
                reason=revocation.reason,
                operator=revocation.operator,
                created_at=revocation.created_at,
            )
        )
        self.session.flush()

    def count(self) -> int:
        return self.session.execute(select(func.count(RevocationModel.id))).scalar_one()

    def list_for_card(self, card_id: str) -> list[Revocation]:
        stmt = (
            select(RevocationModel)
            .where(RevocationModel.card_id == card_id)
            .order_by(RevocationModel.created_at)
        )
        return [
            Revocation(
                id=m.id,
                card_id=m.card_id,
                reason=m.reason,
                operator=m.operator,
                created_at=as_utc(m.created_at),
            )
            for m in self.session.execute(stmt).scalars()
        ]


class ReportRepository:
    """Revenue aggregates. Annulled sales and redemptions never count."""

    def __init__(self, session: Session):
        self.session = session

    def daily(self, start: str | None = None, end: str | None = None) -> list[DailyReport]:
        """Per-day sale counts by category, revenue and annulments, newest day first."""
        sale_day = func.date(SaleModel.created_at)
        sales_stmt = (
            select(
                sale_day.label("day"),
                PersonModel.category,
                func.count(SaleModel.id),
                func.coalesce(func.sum(SaleModel.price_paid), 0),
            )
            .join(CardModel, CardModel.id == SaleModel.card_id)
            .join(PersonModel, PersonModel.id == CardModel.person_id)
            .where(SaleModel.annulled.is_(False))
            .group_by(sale_day, PersonModel.category)
        )
        redemption_day = func.date(RedemptionModel.created_at)
        annulled_stmt = (
            select(redemption_day.label("day"), func.count(RedemptionModel.id))
            .where(
                RedemptionModel.outcome == RedemptionOutcome.OK.value,
                RedemptionModel.annulled.is_(True),
            )
            .group_by(redemption_day)
        )
        if start:
            sales_stmt = sales_stmt.where(sale_day >= start)
            annulled_stmt = annulled_stmt.where(redemption_day >= start)
        if end:
            sales_stmt = sales_stmt.where(sale_day <= end)
            annulled_stmt = annulled_stmt.where(redemption_day <= end)

        counts: dict[str, dict[Category, int]] = defaultdict(dict)
        revenue: dict[str, Decimal] = defaultdict(Decimal)
        for day, category, count, total in self.session.execute(sales_stmt):
            counts[str(day)][Category(category)] = count
            revenue[str(day)] += Decimal(str(total))

        annulled = {str(day): count for day, count in self.session.execute(annulled_stmt)}

        days = sorted(set(counts) | set(annulled), reverse=True)
        return [
            DailyReport(
                day=day,
                sales_by_category=dict(counts.get(day, {})),
                revenue=revenue.get(day, Decimal("0")),
                annulled_redemptions=annulled.get(day, 0),
            )
            for day in days
        ]

    def per_event(self) -> list[EventReport]:
        """Per-event sales and revenue, most recent event first."""
        stmt = (
            select(
                EventModel.id,
                EventModel.name,
                EventModel.date,
                func.count(SaleModel.id),
                func.coalesce(func.sum(SaleModel.price_paid), 0),
            )
            .outerjoin(
                SaleModel,
                (SaleModel.event_id == EventModel.id) & SaleModel.annulled.is_(False),
            )
            .group_by(EventModel.id, EventModel.name, EventModel.date)
            .order_by(EventModel.date.desc())
        )
        return [
            EventReport(
                event_id=event_id,
                event_name=name,
                event_date=event_date,
                sales=count,
                revenue=Decimal(str(total)),
            )
            for event_id, name, event_date, count, total in self.session.execute(stmt)
        ]
