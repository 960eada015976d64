"""Package for festival pass issuance and box office redemption."""

__version__ = "0.1.0"
