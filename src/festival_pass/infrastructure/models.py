"""SQLAlchemy ORM models for the box office store."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from festival_pass.infrastructure.database import Base

CATEGORY_VALUES = ("studente", "docente", "strumentista", "urbinate_u18_o70", "altro")
CARD_STATE_VALUES = ("active", "revoked")

Money = Numeric(10, 2, asdecimal=True)


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class Person(Base):
    """
    Registered card holder.

    Owned by the registration collaborator; the box office only reads it.
    """

    __tablename__ = "persons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, comment="Person UUID")
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(
        String(32), nullable=False, index=True, comment="Tariff category"
    )
    document_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(_in_list("category", CATEGORY_VALUES), name="ck_persons_category"),
    )


class Event(Base):
    """Festival event with its full (base) price."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, comment="Event UUID")
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False, comment="YYYY-MM-DD")
    venue: Mapped[str | None] = mapped_column(String(200), nullable=True)
    base_price: Mapped[Decimal] = mapped_column(Money, nullable=False)

    __table_args__ = (CheckConstraint("base_price >= 0", name="ck_events_base_price"),)


class Tariff(Base):
    """Discounted price for one category. One row per category."""

    __tablename__ = "tariffs"

    category: Mapped[str] = mapped_column(String(32), primary_key=True)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)

    __table_args__ = (
        CheckConstraint(_in_list("category", CATEGORY_VALUES), name="ck_tariffs_category"),
        CheckConstraint("price >= 0", name="ck_tariffs_price"),
    )


class Card(Base):
    """
    Signed credential bound to a person.

    A person may own many cards over time but at most one active card;
    the partial unique index enforces that in the store itself.
    """

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, comment="Card UUID")
    person_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("persons.id"), nullable=False, index=True
    )
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    token: Mapped[str] = mapped_column(Text, nullable=False, comment="Signed token text")
    expiry_date: Mapped[str] = mapped_column(String(10), nullable=False, comment="YYYY-MM-DD")
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(_in_list("state", CARD_STATE_VALUES), name="ck_cards_state"),
        Index(
            "ux_cards_one_active_per_person",
            "person_id",
            unique=True,
            sqlite_where=text("state = 'active'"),
            postgresql_where=text("state = 'active'"),
        ),
        Index("idx_cards_state_expiry", "state", "expiry_date"),
    )


class Sale(Base):
    """
    Ticket sale paired with one successful redemption.

    Never deleted; an annulled sale stays for audit and is left out of
    revenue figures.
    """

    __tablename__ = "sales"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    card_id: Mapped[str] = mapped_column(String(36), ForeignKey("cards.id"), nullable=False)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), nullable=False)
    price_paid: Mapped[Decimal] = mapped_column(Money, nullable=False)
    register_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    annulled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_sales_card_event", "card_id", "event_id"),
        Index("idx_sales_created_at", "created_at"),
    )


class Redemption(Base):
    """
    Use of a card against an event.

    The partial unique index allows at most one non-annulled 'ok' row per
    (card, event). It is the only duplicate guard: concurrent sales race on
    the insert and the loser gets an IntegrityError.
    """

    __tablename__ = "redemptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    card_id: Mapped[str] = mapped_column(String(36), ForeignKey("cards.id"), nullable=False)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), nullable=False)
    sale_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("sales.id"), nullable=True
    )
    operator: Mapped[str] = mapped_column(String(100), nullable=False)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False, default="ok")
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Annulment sub-record, empty until annulled
    annulled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    annulled_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    annulled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    annulment_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "ux_redemptions_ok_active",
            "card_id",
            "event_id",
            unique=True,
            sqlite_where=text("outcome = 'ok' AND NOT annulled"),
            postgresql_where=text("outcome = 'ok' AND NOT annulled"),
        ),
        Index("idx_redemptions_created_at", "created_at"),
    )


class Revocation(Base):
    """Append-only audit trail of card revocations."""

    __tablename__ = "revocations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    card_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cards.id"), nullable=False, index=True
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    operator: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
