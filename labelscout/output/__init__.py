# labelscout/output/__init__.py
"""
Output slice: atomic JSON writes, entity-row upserts and audit entries.
"""

from .audit import build_audit_entry, diff_names
from .store import (
    atomic_write_json,
    load_json,
    merge_entity_rows,
    normalize_rows,
    previous_by_target,
)

__all__ = [
    "atomic_write_json",
    "build_audit_entry",
    "diff_names",
    "load_json",
    "merge_entity_rows",
    "normalize_rows",
    "previous_by_target",
]
