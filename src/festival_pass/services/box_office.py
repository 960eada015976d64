"""Box office entry points.

``BoxOfficeService`` binds a session factory, a secret provider and the
settings, and opens one unit of work per call. It is the surface the
operator-facing layer (CLI, HTTP handlers) talks to; every method returns
a typed value or raises a ``FestivalPassError``.
"""

from datetime import date, datetime
from decimal import Decimal

from festival_pass.config import Settings, settings as default_settings
from festival_pass.domain.clock import to_utc
from festival_pass.domain.credential import CredentialSigner, VerifiedCredential
from festival_pass.domain.errors import FestivalPassError, to_error_payload
from festival_pass.domain.records import (
    Card,
    CardOverview,
    CardStatistics,
    DailyReport,
    EventReport,
    Redemption,
)
from festival_pass.infrastructure.database import SessionFactory, SessionLocal, unit_of_work
from festival_pass.infrastructure.repository import RedemptionRepository
from festival_pass.infrastructure.secrets import SecretProvider, SettingsSecretProvider
from festival_pass.logging_config import configure_logging, get_logger
from festival_pass.services import annulment, cards, pricing, reports, revocation, sales
from festival_pass.services.sales import SaleResult

logger = get_logger(__name__)


class BoxOfficeService:
    """Operator operations over the card and redemption store."""

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        secret_provider: SecretProvider | None = None,
        app_settings: Settings | None = None,
    ):
        self.settings = app_settings or default_settings
        self.session_factory = session_factory or SessionLocal
        self.secret_provider = secret_provider or SettingsSecretProvider(self.settings)
        self.signer = CredentialSigner(prefix=self.settings.card_prefix)
        configure_logging(self.settings.log_level, self.settings.log_json)
        logger.info("box_office_started", environment=self.settings.environment)

    def error_payload(self, error: FestivalPassError) -> dict:
        """Serialize an error for the operator surface.

        Internal detail is only included when ``expose_internal_errors`` is set.
        """
        return to_error_payload(error, expose_internal=self.settings.expose_internal_errors)

    # Credentials

    def verify_token(self, token: str, today: date | None = None) -> VerifiedCredential:
        return self.signer.verify(token, self.secret_provider.current_secret(), today=today)

    def check_token(self, token: str, today: date | None = None) -> Card:
        """Verify a scanned token and return its card if the card is usable."""
        credential = self.verify_token(token, today=today)
        return self.check_card(credential.card_id)

    # Card lifecycle

    def check_card(self, card_id: str) -> Card:
        with unit_of_work(self.session_factory, write=False) as session:
            return cards.check_validity(session, card_id)

    def issue_card(
        self,
        person_id: str,
        expiry_date: str | None = None,
        today: date | None = None,
    ) -> Card:
        with unit_of_work(self.session_factory) as session:
            return cards.issue(
                session,
                person_id,
                self.secret_provider.current_secret(),
                self.signer,
                expiry_date=expiry_date,
                today=today,
                validity_days=self.settings.default_card_validity_days,
            )

    def renew_card(
        self,
        card_id: str,
        operator: str,
        expiry_date: str | None = None,
        today: date | None = None,
    ) -> Card:
        with unit_of_work(self.session_factory) as session:
            return cards.renew(
                session,
                card_id,
                operator,
                self.secret_provider.current_secret(),
                self.signer,
                expiry_date=expiry_date,
                today=today,
                validity_days=self.settings.default_card_validity_days,
            )

    def revoke_card(
        self, card_id: str, reason: str, operator: str, now: datetime | None = None
    ) -> Card:
        with unit_of_work(self.session_factory) as session:
            return revocation.revoke(session, card_id, reason, operator, now=now)

    def list_expiring_cards(
        self, within_days: int | None = None, today: date | None = None
    ) -> list[Card]:
        days = within_days if within_days is not None else self.settings.expiring_soon_days
        with unit_of_work(self.session_factory, write=False) as session:
            return cards.list_expiring(session, days, today=today)

    def card_statistics(
        self, within_days: int | None = None, today: date | None = None
    ) -> CardStatistics:
        days = within_days if within_days is not None else self.settings.expiring_soon_days
        with unit_of_work(self.session_factory, write=False) as session:
            return cards.statistics(session, days, today=today)

    def card_overview(self, card_id: str) -> CardOverview:
        with unit_of_work(self.session_factory, write=False) as session:
            return cards.card_overview(session, card_id)

    # Sales

    def price(self, card_id: str, event_id: str) -> Decimal:
        with unit_of_work(self.session_factory, write=False) as session:
            return pricing.price(session, card_id, event_id)

    def sell(
        self,
        card_id: str,
        event_id: str,
        operator: str,
        register_id: str | None = None,
        now: datetime | None = None,
    ) -> SaleResult:
        with unit_of_work(self.session_factory) as session:
            return sales.sell(
                session,
                card_id,
                event_id,
                operator,
                register_id or self.settings.default_register_id,
                now=now,
            )

    def redeem_token(
        self,
        token: str,
        event_id: str,
        operator: str,
        register_id: str | None = None,
        now: datetime | None = None,
    ) -> SaleResult:
        """Verify a scanned token, then sell the event against its card."""
        today = to_utc(now).date() if now is not None else None
        credential = self.verify_token(token, today=today)
        return self.sell(credential.card_id, event_id, operator, register_id, now=now)

    # Annulment

    def annul_redemption(
        self,
        redemption_id: str,
        reason: str,
        operator: str,
        now: datetime | None = None,
    ) -> Redemption:
        with unit_of_work(self.session_factory) as session:
            return annulment.annul(
                session,
                redemption_id,
                reason,
                operator,
                now=now,
                window_days=self.settings.annulment_window_days,
            )

    def list_annullable(self, limit: int = 50, now: datetime | None = None) -> list[Redemption]:
        with unit_of_work(self.session_factory, write=False) as session:
            return annulment.list_annullable(
                session, limit, now=now, window_days=self.settings.annulment_window_days
            )

    def list_redemptions(
        self,
        card_id: str | None = None,
        event_id: str | None = None,
        operator: str | None = None,
        limit: int | None = None,
    ) -> list[Redemption]:
        with unit_of_work(self.session_factory, write=False) as session:
            return RedemptionRepository(session).list_recent(
                card_id=card_id, event_id=event_id, operator=operator, limit=limit
            )

    # Reports

    def daily_report(self, start: str | None = None, end: str | None = None) -> list[DailyReport]:
        with unit_of_work(self.session_factory, write=False) as session:
            return reports.daily_report(session, start, end)

    def event_report(self) -> list[EventReport]:
        with unit_of_work(self.session_factory, write=False) as session:
            return reports.event_report(session)
