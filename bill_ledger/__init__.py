"""Public interface for the ``bill_ledger`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    ImportResult,
    build_smart_model,
    extract_records,
    import_bill,
    normalize_bill,
    preview_bill,
    summarize_categories,
)
from .config import MappingConfig, Settings, load_mapping_config
from .ctv import CanonicalTransaction
from .models import ConfigError, ParseError, RawRecord, UnknownPlatformError
from .persistence import LedgerWriter, MergeResult
from .resolvers import AutomaticResolver, InteractiveResolver

__all__ = [
    # API
    "build_smart_model",
    "extract_records",
    "import_bill",
    "normalize_bill",
    "preview_bill",
    "summarize_categories",
    "ImportResult",
    # Configuration
    "MappingConfig",
    "Settings",
    "load_mapping_config",
    # Models / types
    "CanonicalTransaction",
    "RawRecord",
    "LedgerWriter",
    "MergeResult",
    "AutomaticResolver",
    "InteractiveResolver",
    # Errors
    "ConfigError",
    "ParseError",
    "UnknownPlatformError",
]
