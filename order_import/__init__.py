"""Order import reconciler.

Turns spreadsheet rows into validated order records: deduplicates against
already imported rows, resolves companies / branches / products against the
catalog, computes line financials and writes the batch only when no blocking
error was found.
"""

from .models import ImportableEntityType, ImportResult, ImportRowError
from .services.entity_fixer import create_missing_entity, fix_all_missing_entities
from .services.reconciler import import_flow

__version__ = "0.1.0"

__all__ = [
    "ImportResult",
    "ImportRowError",
    "ImportableEntityType",
    "create_missing_entity",
    "fix_all_missing_entities",
    "import_flow",
]
