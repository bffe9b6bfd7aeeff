"""
Resident profile field rules.
Defines which fields a resident may ask to change and how requested values
are normalised before they are written to the resident record.
"""

from datetime import date, datetime
from typing import Any, Dict, Set, Tuple
from enum import Enum

from .errors import ValidationError


class FieldPermissionLevel(str, Enum):
    """Permission levels for resident profile fields."""
    EDITABLE = "editable"  # Resident may request a change
    READ_ONLY = "read_only"  # System-managed


# Fields a resident may request to change (always reviewed by an admin)
EDITABLE_FIELDS: Set[str] = {
    "firstName",
    "middleName",
    "lastName",
    "suffix",
    "email",
    "contactNumber",
    "birthdate",
    "birthplace",
    "gender",
    "civilStatus",
    "citizenship",
    "occupation",
    "address",
}

# System-managed fields
READ_ONLY_FIELDS: Set[str] = {
    "id",
    "uniqueId",
    "version",
    "householdId",
    "status",
    "createdAt",
    "updatedAt",
}

# Legacy or form-level names mapped onto the resident schema
FIELD_ALIASES: Dict[str, str] = {
    "phone": "contactNumber",
    "contact_number": "contactNumber",
    "birthDate": "birthdate",
}

ADDRESS_PARTS: Tuple[str, ...] = ("street", "barangay", "city", "province", "zipCode")


def get_field_permission(field_name: str) -> FieldPermissionLevel:
    """Get the permission level for a (possibly aliased) field."""
    canonical = FIELD_ALIASES.get(field_name, field_name)
    if canonical in EDITABLE_FIELDS:
        return FieldPermissionLevel.EDITABLE
    return FieldPermissionLevel.READ_ONLY


def apply_field_aliases(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rename aliased keys onto the resident schema.

    An explicit canonical key wins over its alias; the alias key is always
    removed so it is never persisted.
    """
    mapped = {}
    for field, value in changes.items():
        if field not in FIELD_ALIASES:
            mapped[field] = value
    for alias, canonical in FIELD_ALIASES.items():
        if alias not in changes:
            continue
        value = changes[alias]
        if canonical in mapped and not _is_blank(mapped[canonical]):
            continue
        if _is_blank(value):
            continue
        mapped[canonical] = value
    return mapped


def normalize_address(address: Any) -> Any:
    """
    Collapse an address object into the stored string form.

    Returns None when every part is blank so the caller drops the field
    instead of overwriting the stored address with nothing.
    """
    if isinstance(address, dict):
        parts = [
            str(address.get(part)).strip()
            for part in ADDRESS_PARTS
            if not _is_blank(address.get(part))
        ]
        if not parts:
            return None
        return ", ".join(parts)
    if isinstance(address, str):
        return address.strip() or None
    return address


def normalize_birthdate(value: Any) -> Any:
    """Coerce a birthdate to YYYY-MM-DD when it parses, else leave it as given."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10]).isoformat()
        except ValueError:
            return value
    return value


def normalize_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn requested changes into the field map written to the resident record.

    Applies alias mapping, address collapsing and birthdate formatting,
    strips strings and drops None, blank strings and empty structured
    fields so a blank never overwrites a stored value.
    """
    normalized: Dict[str, Any] = {}
    for field, value in apply_field_aliases(changes).items():
        if _is_blank(value):
            continue
        if field == "address":
            value = normalize_address(value)
            if value is None:
                continue
        elif field == "birthdate":
            value = normalize_birthdate(value)
        elif isinstance(value, str):
            value = value.strip()
        normalized[field] = value
    return normalized


def validate_requested_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate that every requested field may be changed by a resident.

    Returns:
        The alias-mapped changes

    Raises:
        ValidationError: If a read-only field is named or nothing remains
    """
    rejected = sorted(
        field for field in changes
        if get_field_permission(field) == FieldPermissionLevel.READ_ONLY
    )
    if rejected:
        raise ValidationError(
            f"Cannot modify read-only fields: {', '.join(rejected)}",
            {"fields": rejected}
        )

    mapped = apply_field_aliases(changes)
    if not normalize_changes(mapped):
        raise ValidationError("No valid fields to update")
    return mapped


def changed_fields(original: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Subset of normalised changes that differ from the original record."""
    normalized = normalize_changes(changes)
    return {
        field: value
        for field, value in normalized.items()
        if original.get(field) != value
    }


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, dict):
        return all(_is_blank(v) for v in value.values())
    return False
