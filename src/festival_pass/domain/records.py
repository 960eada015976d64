"""Domain records for the box office.

These are the typed shapes that repositories return. Every constructor
validates its fields so malformed rows are rejected at the boundary
instead of travelling through the services as loose dictionaries.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from festival_pass.domain.credential import is_valid_date_string


class Category(str, Enum):
    """Person categories. Tariffs are keyed on these values."""

    STUDENTE = "studente"
    DOCENTE = "docente"
    STRUMENTISTA = "strumentista"
    URBINATE_U18_O70 = "urbinate_u18_o70"
    ALTRO = "altro"


class CardState(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class RedemptionOutcome(str, Enum):
    """Outcome tag of a redemption attempt. Only OK rows count as spent."""

    OK = "ok"
    REJECTED = "rejected"


def _require(value: str, name: str) -> None:
    if not value or not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} cannot be empty")


def _require_money(amount: Decimal, name: str) -> None:
    if not isinstance(amount, Decimal):
        raise ValueError(f"{name} must be a Decimal")
    if amount < 0:
        raise ValueError(f"{name} cannot be negative")


@dataclass(frozen=True)
class Person:
    """Registered card holder (owned by the registration collaborator)."""

    id: str
    name: str
    category: Category
    document_verified: bool = False

    def __post_init__(self):
        _require(self.id, "id")
        _require(self.name, "name")
        if not isinstance(self.category, Category):
            raise ValueError(f"Unknown category: {self.category}")


@dataclass(frozen=True)
class Event:
    """Festival event, read-only to the core."""

    id: str
    name: str
    date: str
    venue: Optional[str]
    base_price: Decimal

    def __post_init__(self):
        _require(self.id, "id")
        _require(self.name, "name")
        if not is_valid_date_string(self.date):
            raise ValueError("date must be in YYYY-MM-DD format")
        _require_money(self.base_price, "base_price")


@dataclass(frozen=True)
class Card:
    """Signed credential bound to one person.

    Attributes:
        id: Card identifier (UUID string)
        person_id: Owning person
        state: Lifecycle state; REVOKED is terminal
        token: Signed token text printed on the card
        expiry_date: Expiry date as YYYY-MM-DD
        created_at: Issuance timestamp
    """

    id: str
    person_id: str
    state: CardState
    token: str
    expiry_date: str
    created_at: datetime

    def __post_init__(self):
        _require(self.id, "id")
        _require(self.person_id, "person_id")
        _require(self.token, "token")
        if not isinstance(self.state, CardState):
            raise ValueError(f"Unknown card state: {self.state}")
        if not is_valid_date_string(self.expiry_date):
            raise ValueError("expiry_date must be in YYYY-MM-DD format")

    @property
    def is_active(self) -> bool:
        return self.state is CardState.ACTIVE

    def is_expired(self, today: date) -> bool:
        return self.expiry_date < today.isoformat()


@dataclass(frozen=True)
class Sale:
    """Monetary record paired with exactly one successful redemption."""

    id: str
    card_id: str
    event_id: str
    price_paid: Decimal
    register_id: str
    created_at: datetime
    annulled: bool = False

    def __post_init__(self):
        _require(self.id, "id")
        _require(self.card_id, "card_id")
        _require(self.event_id, "event_id")
        _require(self.register_id, "register_id")
        _require_money(self.price_paid, "price_paid")


@dataclass(frozen=True)
class Annulment:
    """Who voided a redemption, when, and why."""

    annulled_at: datetime
    operator: str
    reason: str

    def __post_init__(self):
        _require(self.operator, "operator")
        _require(self.reason, "reason")


@dataclass(frozen=True)
class Redemption:
    """Use of a card against one event.

    At most one OK, non-annulled redemption exists per (card, event).
    """

    id: str
    card_id: str
    event_id: str
    operator: str
    outcome: RedemptionOutcome
    created_at: datetime
    sale_id: Optional[str] = None
    annulment: Optional[Annulment] = None

    def __post_init__(self):
        _require(self.id, "id")
        _require(self.card_id, "card_id")
        _require(self.event_id, "event_id")
        _require(self.operator, "operator")
        if not isinstance(self.outcome, RedemptionOutcome):
            raise ValueError(f"Unknown redemption outcome: {self.outcome}")

    @property
    def annulled(self) -> bool:
        return self.annulment is not None

    @property
    def is_valid(self) -> bool:
        """True while the redemption spends its (card, event) pair."""
        return self.outcome is RedemptionOutcome.OK and not self.annulled


@dataclass(frozen=True)
class Revocation:
    """Append-only audit row for one active -> revoked transition."""

    id: str
    card_id: str
    reason: str
    operator: str
    created_at: datetime

    def __post_init__(self):
        _require(self.id, "id")
        _require(self.card_id, "card_id")
        _require(self.reason, "reason")
        _require(self.operator, "operator")


@dataclass(frozen=True)
class CardEventStatus:
    """Whether a card holds a valid redemption for an event."""

    event_id: str
    event_name: str
    event_date: str
    redeemed: bool


@dataclass(frozen=True)
class CardOverview:
    card: Card
    person: Person
    events: tuple[CardEventStatus, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DailyReport:
    """Takings for one day. Annulled sales are excluded from revenue."""

    day: str
    sales_by_category: dict[Category, int]
    revenue: Decimal
    annulled_redemptions: int = 0

    @property
    def total_sales(self) -> int:
        return sum(self.sales_by_category.values())


@dataclass(frozen=True)
class EventReport:
    event_id: str
    event_name: str
    event_date: str
    sales: int
    revenue: Decimal

    @property
    def average_price(self) -> Optional[Decimal]:
        if not self.sales:
            return None
        return self.revenue / self.sales


@dataclass(frozen=True)
class CardStatistics:
    """Card counts for the operator dashboard.

    Attributes:
        active: Cards currently active
        revoked: Cards revoked, renewals included
        expiring_soon: Active cards expiring within the look-ahead window
        revocations: Rows in the revocation audit trail
    """

    active: int
    revoked: int
    expiring_soon: int
    revocations: int

    @property
    def total(self) -> int:
        return self.active + self.revoked
