"""
Privileges package.

Defines the privilege value, its sanitizer/validator and the matching
engine used by the Privileges service.

Modules of interest:
- models: Tagged field values, Privilege and grant/role records.
- validation: sanitize/validate contract for raw input.
- engine: Wildcard-aware matching plus grant/revoke orchestration.
"""

from .engine import PrivilegeEngine, privilege_matches
from .models import ABSENT, ANY, WILDCARD, FieldKind, FieldValue, Privilege
from .validation import is_non_empty_string, sanitize, validate

__all__ = [
    "ABSENT",
    "ANY",
    "WILDCARD",
    "FieldKind",
    "FieldValue",
    "Privilege",
    "PrivilegeEngine",
    "privilege_matches",
    "is_non_empty_string",
    "sanitize",
    "validate",
]
