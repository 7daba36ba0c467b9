"""
Input normalization shared by the services.
"""
import uuid
from typing import Optional

from category_hierarchy.core.exceptions import ErrorReason, ValidationError
from category_hierarchy.models.category import CODE_MAX_LENGTH, NAME_MAX_LENGTH


def validate_id(value, field_name: str = "id") -> str:
    """UUID 형식 검사 후 저장 형식(소문자, 하이픈 포함)으로 반환"""
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, TypeError):
        raise ValidationError(f"invalid {field_name} format", reason=ErrorReason.INVALID_ID,
                              details={"field": field_name})


def clean_code(code: Optional[str]) -> str:
    code = (code or "").strip()
    if not code:
        raise ValidationError("category code is required", reason=ErrorReason.INVALID_CODE)
    if len(code) > CODE_MAX_LENGTH:
        raise ValidationError(f"category code must be at most {CODE_MAX_LENGTH} characters",
                              reason=ErrorReason.INVALID_CODE)
    return code


def clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("category name is required", reason=ErrorReason.INVALID_NAME)
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"category name must be at most {NAME_MAX_LENGTH} characters",
                              reason=ErrorReason.INVALID_NAME)
    return name
