"""Signed card credentials using HMAC-SHA256.

A card token binds a card id to an expiry date so the box office can
detect forged or tampered cards without a database round-trip. The payload
is signed, not encrypted: anyone can read the card id and expiry date.

Token layout (ASCII, pipe separated, exactly four fields):

    <prefix>|<card_id>|<YYYY-MM-DD>|<signature>

where ``signature`` is the unpadded URL-safe base64 encoding of
HMAC-SHA256(key, "<card_id>|<YYYY-MM-DD>") and ``key`` is the hex decoded
signing secret.

Tokens are not single-use. Replays are stopped by the one-redemption-per
(card, event) constraint in the store.
"""

import base64
import hashlib
import hmac
import logging
import re
import secrets
from datetime import date, datetime, timezone
from typing import NamedTuple

from festival_pass.domain.errors import (
    CredentialExpiredError,
    CredentialFormatError,
    CredentialPrefixError,
    InvalidInputError,
    SecretMissingError,
    SignatureInvalidError,
)

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "UMA25"
FIELD_SEPARATOR = "|"
MIN_SECRET_BYTES = 16

_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_HEX_PATTERN = re.compile(r"[0-9a-fA-F]+")


class VerifiedCredential(NamedTuple):
    """Result of a successful token verification.

    Attributes:
        card_id: Card the token was issued for
        expiry_date: Expiry date as YYYY-MM-DD
    """

    card_id: str
    expiry_date: str


def is_valid_date_string(value: str) -> bool:
    """Check that a value has the YYYY-MM-DD shape."""
    return isinstance(value, str) and _DATE_PATTERN.fullmatch(value) is not None


def is_valid_secret(secret_hex: str | None) -> bool:
    """Check whether a signing secret is usable.

    A valid secret is an even-length hexadecimal string that decodes to at
    least 16 bytes.

    Args:
        secret_hex: Candidate secret

    Returns:
        True if the secret is well formed
    """
    if not secret_hex or not isinstance(secret_hex, str):
        return False
    if _HEX_PATTERN.fullmatch(secret_hex) is None:
        return False
    if len(secret_hex) % 2 != 0:
        return False
    return len(secret_hex) // 2 >= MIN_SECRET_BYTES


def generate_secret(length: int = 32) -> str:
    """Generate a new random signing secret.

    Args:
        length: Key length in bytes (default 32 = 256 bits)

    Returns:
        Hex encoded secret
    """
    if length < MIN_SECRET_BYTES:
        raise ValueError(f"Secret must be at least {MIN_SECRET_BYTES} bytes")
    return secrets.token_hex(length)


def decode_secret(secret_hex: str | None) -> bytes:
    """Decode a hex secret into raw key bytes.

    Raises:
        SecretMissingError: If no secret is configured
        InvalidInputError: If the secret is not hexadecimal
    """
    if not secret_hex:
        raise SecretMissingError()
    try:
        return bytes.fromhex(secret_hex)
    except ValueError as e:
        raise InvalidInputError("Signing secret must be hexadecimal") from e


def _base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def calculate_signature(card_id: str, expiry_date: str, key: bytes) -> str:
    """Compute the token signature for a card id and expiry date."""
    payload = f"{card_id}{FIELD_SEPARATOR}{expiry_date}".encode("utf-8")
    mac = hmac.new(key, payload, hashlib.sha256).digest()
    return _base64url(mac)


class CredentialSigner:
    """Generates and verifies signed card tokens.

    The signing secret is passed in on every call rather than held by the
    signer, so callers decide where keys come from.
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX):
        if not prefix or FIELD_SEPARATOR in prefix:
            raise ValueError("prefix must be non-empty and must not contain '|'")
        self.prefix = prefix

    def generate(self, card_id: str, expiry_date: str, secret: str | None) -> str:
        """Generate a signed token for a card.

        Args:
            card_id: Card identifier (non-empty, no '|')
            expiry_date: Expiry date in YYYY-MM-DD format
            secret: Hex encoded signing secret

        Returns:
            Token text suitable for printing as a QR code

        Raises:
            InvalidInputError: If card_id or expiry_date is malformed
            SecretMissingError: If no secret is configured
        """
        if not card_id or not isinstance(card_id, str) or FIELD_SEPARATOR in card_id:
            raise InvalidInputError("card_id must be a non-empty string without '|'")

        if not is_valid_date_string(expiry_date):
            raise InvalidInputError("expiry_date must be in YYYY-MM-DD format")
        try:
            date.fromisoformat(expiry_date)
        except ValueError as e:
            raise InvalidInputError(f"expiry_date is not a calendar date: {expiry_date}") from e

        key = decode_secret(secret)
        signature = calculate_signature(card_id, expiry_date, key)

        return FIELD_SEPARATOR.join([self.prefix, card_id, expiry_date, signature])

    def verify(
        self,
        token: str,
        secret: str | None,
        today: date | None = None,
    ) -> VerifiedCredential:
        """Verify a token's structure, signature and expiry.

        Checks run in a fixed order so the reported failure is deterministic:
        secret, field count, prefix, date format, signature, expiry.

        Args:
            token: Token text as scanned
            secret: Hex encoded signing secret
            today: Reference date for expiry (defaults to the current UTC date)

        Returns:
            VerifiedCredential with the card id and expiry date

        Raises:
            SecretMissingError: If no secret is configured
            CredentialFormatError: Wrong field count, empty card id or bad date
            CredentialPrefixError: Unknown prefix
            SignatureInvalidError: Signature does not match
            CredentialExpiredError: Expiry date is before today
        """
        if not secret:
            raise SecretMissingError()

        if not token or not isinstance(token, str):
            raise CredentialFormatError("Token is empty")

        parts = token.strip().split(FIELD_SEPARATOR)
        if len(parts) != 4:
            raise CredentialFormatError(f"Expected 4 fields, got {len(parts)}")

        prefix, card_id, expiry_date, signature = parts

        if prefix != self.prefix:
            raise CredentialPrefixError("Unknown card prefix")

        if not card_id:
            raise CredentialFormatError("Card id is empty")

        if not is_valid_date_string(expiry_date):
            raise CredentialFormatError("Expiry date must be YYYY-MM-DD")

        key = decode_secret(secret)
        expected = calculate_signature(card_id, expiry_date, key)

        if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
            logger.info("Rejected card token with invalid signature")
            raise SignatureInvalidError("Card signature does not match")

        # ISO dates compare lexically in chronological order
        reference = today or datetime.now(timezone.utc).date()
        if expiry_date < reference.isoformat():
            raise CredentialExpiredError(expiry_date)

        return VerifiedCredential(card_id=card_id, expiry_date=expiry_date)
