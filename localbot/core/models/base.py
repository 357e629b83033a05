"""Base Pydantic schemas and helpers for LocalBot models."""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ValidationError


class LocalBotBaseModel(BaseModel):
    """Base Pydantic model for all schemas with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )


class TimestampSchema(LocalBotBaseModel):
    """Schema with timestamp fields."""

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def generate_id(prefix: str = "") -> str:
    """Generate a prefixed UUID.

    Args:
        prefix: Optional prefix for the ID (e.g., "qa_", "cb_")

    Returns:
        Prefixed UUID string
    """
    uid = str(uuid.uuid4())
    return f"{prefix}{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def validate_identifier(value: str, field: str = "id") -> str:
    """Check an id that is also used as a file or directory name.

    Raises:
        ValidationError: If the id is empty, a relative path step, or holds a separator
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must not be empty.")
    if value in (".", "..") or any(sep in value for sep in ("/", "\\", "\x00")):
        raise ValidationError(f"{field} must not contain path separators: {value!r}")
    return value
