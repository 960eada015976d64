"""End-to-end box office flows through the service façade."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from conftest import ALICE_ID, CONCERT_ID
from festival_pass.domain.errors import (
    CardNotActiveError,
    CardRevokedError,
    DuplicateRedemptionError,
    FestivalPassError,
    InternalStoreError,
    SignatureInvalidError,
    to_error_payload,
)
from festival_pass.infrastructure.secrets import StaticSecretProvider
from festival_pass.services import BoxOfficeService


@pytest.mark.integration
def test_card_lifecycle(box_office):
    """Issue, scan, sell, annul, resell, revoke, replace."""
    t0 = datetime(2025, 7, 20, 19, 0, tzinfo=timezone.utc)

    card = box_office.issue_card(ALICE_ID, expiry_date="2099-12-31")

    sold = box_office.redeem_token(card.token, CONCERT_ID, "op1", now=t0)
    assert sold.price == Decimal("9.00")

    with pytest.raises(DuplicateRedemptionError):
        box_office.redeem_token(card.token, CONCERT_ID, "op1", now=t0 + timedelta(minutes=1))

    box_office.annul_redemption(sold.redemption_id, "scanned twice", "op2", now=t0 + timedelta(days=1))
    box_office.redeem_token(card.token, CONCERT_ID, "op1", now=t0 + timedelta(days=1, hours=1))

    box_office.revoke_card(card.id, "lost", "op1")
    with pytest.raises(CardRevokedError):
        box_office.redeem_token(card.token, CONCERT_ID, "op1")
    with pytest.raises(CardNotActiveError):
        box_office.revoke_card(card.id, "lost", "op1")

    replacement = box_office.issue_card(ALICE_ID, expiry_date="2099-12-31")
    assert box_office.check_token(replacement.token).id == replacement.id


@pytest.mark.integration
def test_forged_token_payload(box_office, alice_card):
    forged = alice_card.token[:-1] + ("A" if alice_card.token[-1] != "A" else "B")

    with pytest.raises(FestivalPassError) as exc_info:
        box_office.check_token(forged)

    assert isinstance(exc_info.value, SignatureInvalidError)
    assert to_error_payload(exc_info.value) == {
        "ok": False,
        "error": "SIGNATURE_INVALID",
        "message": "Card signature does not match",
    }


@pytest.mark.integration
def test_custom_prefix_from_settings(session_factory, seeded, secret, test_settings):
    service = BoxOfficeService(
        session_factory=session_factory,
        secret_provider=StaticSecretProvider(secret),
        app_settings=test_settings.model_copy(update={"card_prefix": "FEST26"}),
    )

    card = service.issue_card(ALICE_ID, expiry_date="2099-12-31")

    assert card.token.startswith("FEST26|")
    assert service.verify_token(card.token).card_id == card.id


def make_service(session_factory, secret, app_settings):
    return BoxOfficeService(
        session_factory=session_factory,
        secret_provider=StaticSecretProvider(secret),
        app_settings=app_settings,
    )


@pytest.mark.integration
def test_logging_configured_from_settings(session_factory, secret, test_settings):
    app_settings = test_settings.model_copy(update={"log_level": "DEBUG", "log_json": False})

    with patch("festival_pass.services.box_office.configure_logging") as configure:
        make_service(session_factory, secret, app_settings)

    configure.assert_called_once_with("DEBUG", False)


@pytest.mark.integration
def test_error_payload_hides_store_detail_by_default(session_factory, secret, test_settings):
    service = make_service(session_factory, secret, test_settings)

    payload = service.error_payload(InternalStoreError("database is malformed"))

    assert payload == {"ok": False, "error": "INTERNAL", "message": "Internal error"}


@pytest.mark.integration
def test_error_payload_exposes_store_detail_when_enabled(session_factory, secret, test_settings):
    service = make_service(
        session_factory,
        secret,
        test_settings.model_copy(update={"expose_internal_errors": True}),
    )

    payload = service.error_payload(InternalStoreError("database is malformed"))

    assert payload["detail"] == "database is malformed"
    assert payload["error"] == "INTERNAL"


@pytest.mark.integration
def test_redeem_token_checks_expiry_on_the_utc_date(box_office):
    """00:30 on the 1st at UTC+2 is still the 30th in UTC."""
    card = box_office.issue_card(ALICE_ID, expiry_date="2025-06-30")
    just_after_midnight = datetime(2025, 7, 1, 0, 30, tzinfo=timezone(timedelta(hours=2)))

    sold = box_office.redeem_token(card.token, CONCERT_ID, "op1", now=just_after_midnight)

    assert sold.price == Decimal("9.00")
