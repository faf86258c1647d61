"""Input checks shared by every component. All raise ValidationError."""

from parley.errors import ValidationError


def require_text(value, field: str, max_length: int | None = None) -> str:
    """Return the stripped value; reject missing, non-string, blank or oversized input."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be {max_length} characters or less")
    return value.strip()


def require_id(value, field: str = "agent_id") -> str:
    return require_text(value, field)


def optional_text(value, field: str, max_length: int | None = None) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be {max_length} characters or less")
    return value.strip()


def require_choice(value, field: str, choices):
    """Coerce value into one of an Enum's members (or accept a member)."""
    try:
        return choices(value)
    except ValueError as e:
        allowed = ", ".join(c.value for c in choices)
        raise ValidationError(f"{field} must be one of: {allowed}") from e
