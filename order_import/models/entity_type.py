from __future__ import annotations

from enum import Enum

"""Enumerations shared by the import models.

Values are the wire strings used in ImportResult JSON, so they must not be
renamed.
"""


class ImportableEntityType(Enum):
    """Domain object an import batch targets.

    Only ORDER is implemented by the reconciler; COMPANY and PRODUCT appear as
    ``create-entity`` resolution targets.
    """
    ORDER = "order"
    COMPANY = "company"
    PRODUCT = "product"


class ErrorType(Enum):
    """Row error classification.

    - MISSING_ENTITY: company/product not in catalog (blocking, fixable)
    - INVALID_DATA: bad quantity/price/date, or infrastructure failure
    """
    MISSING_ENTITY = "missing-entity"
    INVALID_DATA = "invalid-data"


class OrderStatus(Enum):
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    PAID = "Paid"
    PENDING = "Pending"
