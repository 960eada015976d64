"""Infrastructure layer exports."""

from festival_pass.infrastructure.repository import (
    CardRepository,
    EventRepository,
    PersonRepository,
    RedemptionRepository,
    ReportRepository,
    RevocationRepository,
    SaleRepository,
    TariffRepository,
)

__all__ = [
    "CardRepository",
    "EventRepository",
    "PersonRepository",
    "RedemptionRepository",
    "ReportRepository",
    "RevocationRepository",
    "SaleRepository",
    "TariffRepository",
]
