"""Integration tests for card issuance, renewal and validity checks."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from sqlalchemy import func, select

from conftest import ALICE_ID, BRUNO_ID, CARLA_ID, CONCERT_ID
from festival_pass.domain.credential import CredentialSigner
from festival_pass.domain.errors import (
    ActiveCardExistsError,
    CardNotFoundError,
    CardRevokedError,
    FestivalPassError,
    InvalidInputError,
    PersonNotFoundError,
    SecretMissingError,
)
from festival_pass.domain.records import CardState
from festival_pass.infrastructure.database import unit_of_work
from festival_pass.infrastructure.models import Card as CardModel
from festival_pass.infrastructure.models import Revocation as RevocationModel
from festival_pass.infrastructure.secrets import StaticSecretProvider
from festival_pass.services import cards
from festival_pass.services.box_office import BoxOfficeService


@pytest.mark.integration
class TestIssue:
    """Tests for issuing cards."""

    def test_issue_card(self, box_office, secret):
        card = box_office.issue_card(ALICE_ID, expiry_date="2099-12-31")

        assert card.person_id == ALICE_ID
        assert card.state is CardState.ACTIVE
        assert card.expiry_date == "2099-12-31"
        assert card.token.startswith(f"UMA25|{card.id}|2099-12-31|")

        # Token printed on the card verifies back to the card
        verified = box_office.verify_token(card.token)
        assert verified.card_id == card.id

    def test_default_expiry(self, box_office):
        card = box_office.issue_card(ALICE_ID, today=date(2025, 6, 1))

        assert card.expiry_date == "2026-06-01"

    def test_unknown_person(self, box_office):
        with pytest.raises(PersonNotFoundError):
            box_office.issue_card("no-such-person", expiry_date="2099-12-31")

    def test_second_active_card_rejected(self, box_office, alice_card):
        with pytest.raises(ActiveCardExistsError) as exc_info:
            box_office.issue_card(ALICE_ID, expiry_date="2099-12-31")

        assert exc_info.value.person_id == ALICE_ID

    def test_issue_after_revocation(self, box_office, alice_card):
        """Revoking the active card frees the person for a new one."""
        box_office.revoke_card(alice_card.id, "lost", "op1")

        replacement = box_office.issue_card(ALICE_ID, expiry_date="2099-12-31")

        assert replacement.id != alice_card.id
        assert replacement.is_active

    def test_invalid_expiry_leaves_no_card(self, box_office, db_session):
        with pytest.raises(InvalidInputError):
            box_office.issue_card(ALICE_ID, expiry_date="31-12-2099")

        count = db_session.execute(select(func.count(CardModel.id))).scalar_one()
        assert count == 0

    def test_missing_secret(self, session_factory, test_settings, seeded):
        service = BoxOfficeService(
            session_factory=session_factory,
            secret_provider=StaticSecretProvider(None),
            app_settings=test_settings,
        )

        with pytest.raises(SecretMissingError):
            service.issue_card(ALICE_ID, expiry_date="2099-12-31")

    def test_concurrent_issuance_yields_one_active_card(self, box_office, db_session):
        """Racing issuances for the same person: exactly one wins."""

        def attempt(_):
            try:
                return box_office.issue_card(BRUNO_ID, expiry_date="2099-12-31")
            except FestivalPassError as e:
                return e

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(attempt, range(4)))

        issued = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(issued) == 1
        assert all(isinstance(f, ActiveCardExistsError) for f in failures)

        active = db_session.execute(
            select(func.count(CardModel.id)).where(
                CardModel.person_id == BRUNO_ID, CardModel.state == "active"
            )
        ).scalar_one()
        assert active == 1


@pytest.mark.integration
class TestCheckValidity:
    def test_active_card(self, box_office, alice_card):
        card = box_office.check_card(alice_card.id)

        assert card.id == alice_card.id
        assert card.token == alice_card.token

    def test_unknown_card(self, box_office):
        with pytest.raises(CardNotFoundError):
            box_office.check_card("missing")

    def test_revoked_card(self, box_office, alice_card):
        box_office.revoke_card(alice_card.id, "lost", "op1")

        with pytest.raises(CardRevokedError):
            box_office.check_card(alice_card.id)

    def test_check_token(self, box_office, alice_card):
        assert box_office.check_token(alice_card.token).id == alice_card.id


@pytest.mark.integration
class TestRenew:
    def test_renew_active_card(self, box_office, alice_card, db_session):
        renewed = box_office.renew_card(alice_card.id, "op1", expiry_date="2100-06-30")

        assert renewed.id != alice_card.id
        assert renewed.person_id == ALICE_ID
        assert renewed.expiry_date == "2100-06-30"

        with pytest.raises(CardRevokedError):
            box_office.check_card(alice_card.id)

        reasons = db_session.execute(
            select(RevocationModel.reason).where(RevocationModel.card_id == alice_card.id)
        ).scalars().all()
        assert reasons == ["renewal"]

    def test_renew_revoked_card(self, box_office, alice_card, db_session):
        box_office.revoke_card(alice_card.id, "lost", "op1")

        renewed = box_office.renew_card(alice_card.id, "op1")

        assert renewed.is_active
        # No second audit row for a card that was already revoked
        count = db_session.execute(
            select(func.count(RevocationModel.id)).where(RevocationModel.card_id == alice_card.id)
        ).scalar_one()
        assert count == 1

    def test_renew_unknown_card(self, box_office):
        with pytest.raises(CardNotFoundError):
            box_office.renew_card("missing", "op1")


@pytest.mark.integration
class TestExpiringAndOverview:
    def test_list_expiring(self, box_office):
        soon = box_office.issue_card(ALICE_ID, expiry_date="2025-07-10")
        box_office.issue_card(BRUNO_ID, expiry_date="2026-07-10")

        expiring = box_office.list_expiring_cards(within_days=30, today=date(2025, 7, 1))

        assert [c.id for c in expiring] == [soon.id]

    def test_revoked_cards_are_not_listed(self, box_office):
        card = box_office.issue_card(ALICE_ID, expiry_date="2025-07-10")
        box_office.revoke_card(card.id, "lost", "op1")

        assert box_office.list_expiring_cards(within_days=30, today=date(2025, 7, 1)) == []

    def test_card_overview(self, box_office, alice_card):
        box_office.sell(alice_card.id, CONCERT_ID, "op1")

        overview = box_office.card_overview(alice_card.id)

        assert overview.person.name == "Alice"
        redeemed = {status.event_name: status.redeemed for status in overview.events}
        assert redeemed == {"Concert": True, "Recital": False}

    def test_card_overview_ignores_annulled_redemptions(self, box_office, alice_card):
        sold = box_office.sell(alice_card.id, CONCERT_ID, "op1")
        box_office.annul_redemption(sold.redemption_id, "wrong event", "op2")

        overview = box_office.card_overview(alice_card.id)

        assert not any(status.redeemed for status in overview.events)


@pytest.mark.integration
class TestStatistics:
    def test_empty_store(self, box_office):
        stats = box_office.card_statistics(today=date(2025, 7, 1))

        assert (stats.active, stats.revoked, stats.total) == (0, 0, 0)
        assert stats.expiring_soon == 0
        assert stats.revocations == 0

    def test_counts_states_expiry_and_revocations(self, box_office):
        alice = box_office.issue_card(ALICE_ID, expiry_date="2025-07-10")
        carla = box_office.issue_card(CARLA_ID, expiry_date="2025-07-20")
        box_office.issue_card(BRUNO_ID, expiry_date="2026-07-10")
        box_office.revoke_card(carla.id, "lost", "op1")
        box_office.renew_card(alice.id, "op1", expiry_date="2025-07-15")

        stats = box_office.card_statistics(within_days=30, today=date(2025, 7, 1))

        assert stats.active == 2
        assert stats.revoked == 2
        assert stats.total == 4
        # Only the renewed card; Carla's revoked card is not counted
        assert stats.expiring_soon == 1
        # One explicit revocation plus the renewal audit row
        assert stats.revocations == 2

    def test_default_window_from_settings(self, box_office):
        box_office.issue_card(ALICE_ID, expiry_date="2025-07-25")
        box_office.issue_card(BRUNO_ID, expiry_date="2025-08-15")

        # expiring_soon_days defaults to 30
        assert box_office.card_statistics(today=date(2025, 7, 1)).expiring_soon == 1


@pytest.mark.integration
def test_issue_inside_caller_unit(session_factory, seeded, secret):
    """Service functions run inside a caller-owned unit of work."""
    with unit_of_work(session_factory) as session:
        card = cards.issue(session, ALICE_ID, secret, CredentialSigner(), expiry_date="2099-12-31")
        with pytest.raises(ActiveCardExistsError):
            cards.assert_issuable(session, ALICE_ID)

    with unit_of_work(session_factory, write=False) as session:
        assert cards.check_validity(session, card.id).id == card.id
