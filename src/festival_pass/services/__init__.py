"""Box office services: card lifecycle, pricing, sales, annulment and revocation.

Module-level functions take the session of an open unit of work. The
``BoxOfficeService`` façade opens the units itself.
"""

from festival_pass.services.box_office import BoxOfficeService
from festival_pass.services.sales import SaleResult

__all__ = ["BoxOfficeService", "SaleResult"]
