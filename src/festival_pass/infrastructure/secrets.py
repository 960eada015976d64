"""Signing secret providers.

Card tokens are signed with a symmetric key that is handed to the signer
on every call. Providers decide where that key comes from; nothing in the
domain layer reads configuration directly.
"""

import logging
from typing import Protocol

from festival_pass.config import Settings, settings as default_settings
from festival_pass.domain.credential import is_valid_secret

logger = logging.getLogger(__name__)


class SecretProvider(Protocol):
    def current_secret(self) -> str | None:
        """Return the hex encoded signing secret, or None if not configured."""
        ...


class SettingsSecretProvider:
    """Reads the signing secret from application settings.

    A malformed secret is reported once at construction so a bad deploy is
    visible in the logs; verification itself will still fail closed.
    """

    def __init__(self, app_settings: Settings | None = None) -> None:
        self._settings = app_settings or default_settings
        secret = self._settings.card_signing_secret
        if secret and not is_valid_secret(secret):
            logger.warning(
                "Configured card signing secret is not a hex string of at least 16 bytes"
            )

    def current_secret(self) -> str | None:
        return self._settings.card_signing_secret or None


class StaticSecretProvider:
    """Fixed secret, for tests and one-off scripts."""

    def __init__(self, secret: str | None) -> None:
        self._secret = secret

    def current_secret(self) -> str | None:
        return self._secret
