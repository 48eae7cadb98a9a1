from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .entity_type import ErrorType, ImportableEntityType

"""ImportRowError model.

Row-level problems are collected as data and returned to the caller; they are
never raised. ``row_index`` is the 0-based position in the caller's original
row list, or -1 for a failure that is not tied to a row (store outage).
"""

__all__ = [
    "EntityResolution",
    "ImportRowError",
    "SERVER_ERROR_ROW",
]

SERVER_ERROR_ROW = -1


@dataclass(frozen=True)
class EntityResolution:
    """Machine-actionable fix for a missing-entity error."""
    entity: ImportableEntityType  # COMPANY or PRODUCT
    suggested_data: Mapping[str, Any]
    type: str = "create-entity"

    @property
    def name(self) -> str:
        return str(self.suggested_data.get("name") or "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "entity": self.entity.value,
            "suggestedData": dict(self.suggested_data),
        }


@dataclass(frozen=True)
class ImportRowError:
    """One problem found while reconciling a row.

    Attributes:
        row_index: 0-based index in the original input (-1: not row specific)
        error_type: MISSING_ENTITY or INVALID_DATA
        error_message: Human readable description
        blocking: True prevents the whole batch from being written
        resolution: Suggested entity creation (missing-entity only)
        original_data: The raw row, for remediation tables
    """
    row_index: int
    error_type: ErrorType
    error_message: str
    blocking: bool
    resolution: EntityResolution | None = None
    original_data: Mapping[str, Any] | None = None

    @classmethod
    def missing_company(cls, row_index: int, name: str, row: Mapping[str, Any] | None = None) -> ImportRowError:
        return cls(
            row_index=row_index,
            error_type=ErrorType.MISSING_ENTITY,
            error_message=f"Could not find a valid company or branch named '{name}'.",
            blocking=True,
            resolution=EntityResolution(
                entity=ImportableEntityType.COMPANY,
                suggested_data={"name": name, "isBranch": False},
            ),
            original_data=row,
        )

    @classmethod
    def missing_product(
        cls, row_index: int, name: str, price: float, row: Mapping[str, Any] | None = None
    ) -> ImportRowError:
        return cls(
            row_index=row_index,
            error_type=ErrorType.MISSING_ENTITY,
            error_message=f"Product '{name}' not found.",
            blocking=True,
            resolution=EntityResolution(
                entity=ImportableEntityType.PRODUCT,
                suggested_data={"name": name, "price": price},
            ),
            original_data=row,
        )

    @classmethod
    def invalid_data(cls, row_index: int, message: str, row: Mapping[str, Any] | None = None) -> ImportRowError:
        return cls(
            row_index=row_index,
            error_type=ErrorType.INVALID_DATA,
            error_message=message,
            blocking=False,
            original_data=row,
        )

    @classmethod
    def unsupported_entity(cls, entity_type: object) -> ImportRowError:
        return cls(
            row_index=0,
            error_type=ErrorType.INVALID_DATA,
            error_message=f"Unsupported entity type '{entity_type}': only orders supported.",
            blocking=True,
        )

    @classmethod
    def server_error(cls, message: str) -> ImportRowError:
        return cls(
            row_index=SERVER_ERROR_ROW,
            error_type=ErrorType.INVALID_DATA,
            error_message=f"Server Error: {message}",
            blocking=True,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rowIndex": self.row_index,
            "errorType": self.error_type.value,
            "errorMessage": self.error_message,
            "blocking": self.blocking,
        }
        if self.resolution is not None:
            data["resolution"] = self.resolution.to_dict()
        if self.original_data is not None:
            data["originalData"] = dict(self.original_data)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)
