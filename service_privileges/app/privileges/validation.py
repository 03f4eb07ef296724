"""
Sanitation and validation of privilege input.

``sanitize`` normalizes a raw mapping into a canonical ``Privilege`` and
never fails. ``validate`` rejects malformed input and is the only place
where shape and content errors are raised. The wildcard token passes
validation as an ordinary string.
"""

from collections.abc import Mapping
from typing import Any, Union

from shared.errors import InvalidTypeError, InvalidSelectorError, ValidationError
from .models import PRIVILEGE_FIELDS, Privilege

PrivilegeInput = Union[Privilege, Mapping]


def is_non_empty_string(value: Any) -> bool:
    """Check if a value is a string with at least one non-whitespace character.

    >>> is_non_empty_string(" ")
    False
    >>> is_non_empty_string("read")
    True
    """
    return isinstance(value, str) and len(value.strip()) > 0


def validate_non_empty_string(field: str, value: Any, optional: bool = False) -> None:
    """Raise ``ValidationError`` unless ``value`` is a non-empty string.

    With ``optional`` set, ``None`` is accepted as well.
    """
    if optional and value is None:
        return
    if not is_non_empty_string(value):
        raise ValidationError(
            f'Expected "{field}" to be a non-empty string{", or None" if optional else ""}. '
            f'{type(value).__name__} with value {value!r} given',
            {"field": field}
        )


def validate_user_id(user_id: Any) -> None:
    """Raise ``InvalidTypeError`` if the user id is absent or not a string."""
    if not user_id or not isinstance(user_id, str):
        raise InvalidTypeError(
            f'Expected "user_id" to be a string, {type(user_id).__name__} given',
            {"field": "user_id"}
        )


def _raw_fields(candidate: PrivilegeInput) -> Mapping:
    if isinstance(candidate, Privilege):
        return candidate.to_dict()
    if isinstance(candidate, Mapping):
        return candidate
    raise InvalidTypeError(
        f"Expected privilege to be a mapping. {type(candidate).__name__} with value {candidate!r} given"
    )


def validate(candidate: PrivilegeInput) -> None:
    """Validate a privilege mapping (or an already built ``Privilege``)."""
    fields = _raw_fields(candidate)

    validate_non_empty_string("name", fields.get("name"))
    validate_non_empty_string("component", fields.get("component"), optional=True)
    validate_non_empty_string("group", fields.get("group"), optional=True)
    validate_non_empty_string("role", fields.get("role"), optional=True)


def sanitize(raw: PrivilegeInput) -> Privilege:
    """Build a canonical ``Privilege``; missing optional fields become absent.

    Keys other than name, component, group and role are dropped.
    """
    if isinstance(raw, Privilege):
        return raw
    return Privilege.from_values(
        raw.get("name"),
        component=raw.get("component"),
        group=raw.get("group"),
        role=raw.get("role")
    )


def validate_selector(selector: Any) -> None:
    """Only privilege fields may appear in a selector."""
    if not isinstance(selector, Mapping):
        raise InvalidTypeError(
            f"Expected selector to be a mapping, {type(selector).__name__} given"
        )
    unknown = sorted(str(key) for key in selector if key not in PRIVILEGE_FIELDS)
    if unknown:
        raise InvalidSelectorError(
            'Invalid selector. Only "name", "component", "group" and "role" are allowed',
            {"unknown_keys": unknown}
        )
