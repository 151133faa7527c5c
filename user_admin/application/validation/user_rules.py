"""Field rules for user create/update payloads.

Each field maps to an ordered tuple of plain predicate rules. Evaluation
stops at the first failing rule of a field, so every field reports at most
one message per request.
"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass
import re

from email_validator import EmailNotValidError, validate_email

from ...db.models import UserStatus
from ..ports.avatar_storage import AvatarUpload
from ..ports.user_repo import UserRepository
from ..services.image_inspection import detect_image_format, mime_type_for
from ..services.phone_normalization import normalize_phone

PHONE_PATTERN = re.compile(r"^\+?[0-9\s\-()]+$")
DEFAULT_AVATAR_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")


@dataclass(frozen=True)
class RuleContext:
    user_repo: Optional[UserRepository] = None
    ignore_id: Optional[int] = None
    avatar_max_kb: int = 2048
    allowed_avatar_types: Tuple[str, ...] = DEFAULT_AVATAR_TYPES
    password_min_length: int = 6


@dataclass(frozen=True)
class Rule:
    check: Callable[[Any, RuleContext], bool]
    message: str


@dataclass(frozen=True)
class FieldRules:
    field: str
    rules: Tuple[Rule, ...]
    nullable: bool = False


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def present(value: Any, ctx: RuleContext) -> bool:
    return not is_blank(value)


def is_string(value: Any, ctx: RuleContext) -> bool:
    return isinstance(value, str)


def max_length(limit: int) -> Callable[[Any, RuleContext], bool]:
    def check(value: Any, ctx: RuleContext) -> bool:
        return len(value) <= limit
    return check


def valid_email(value: Any, ctx: RuleContext) -> bool:
    try:
        validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def email_available(value: Any, ctx: RuleContext) -> bool:
    if ctx.user_repo is None:
        return True
    return not ctx.user_repo.email_taken(value.strip(), ignore_id=ctx.ignore_id)


def valid_status(value: Any, ctx: RuleContext) -> bool:
    return value in {status.value for status in UserStatus}


def phone_format(value: Any, ctx: RuleContext) -> bool:
    return bool(PHONE_PATTERN.match(value.strip()))


def phone_length(value: Any, ctx: RuleContext) -> bool:
    normalized = normalize_phone(value)
    return normalized is None or len(normalized) <= 20


def is_image(value: Any, ctx: RuleContext) -> bool:
    return isinstance(value, AvatarUpload) and detect_image_format(value.data) is not None


def allowed_image_type(value: Any, ctx: RuleContext) -> bool:
    detected = mime_type_for(detect_image_format(value.data))
    declared = (value.content_type or "").lower()
    return detected in ctx.allowed_avatar_types and (not declared or declared in ctx.allowed_avatar_types)


def avatar_size(value: Any, ctx: RuleContext) -> bool:
    return value.size <= ctx.avatar_max_kb * 1024


def password_length(value: Any, ctx: RuleContext) -> bool:
    return len(value) >= ctx.password_min_length


FIRST_NAME_RULES = FieldRules("first_name", (
    Rule(present, "First name is required."),
    Rule(is_string, "First name must be a string."),
    Rule(max_length(100), "First name may not be greater than 100 characters."),
))

LAST_NAME_RULES = FieldRules("last_name", (
    Rule(present, "Last name is required."),
    Rule(is_string, "Last name must be a string."),
    Rule(max_length(100), "Last name may not be greater than 100 characters."),
))

EMAIL_RULES = FieldRules("email", (
    Rule(present, "Email is required."),
    Rule(is_string, "Please enter a valid email address."),
    Rule(max_length(255), "Email may not be greater than 255 characters."),
    Rule(valid_email, "Please enter a valid email address."),
    Rule(email_available, "This email is already in use."),
))

STATUS_RULES = FieldRules("status", (
    Rule(present, "Status is required."),
    Rule(is_string, "Please select a valid status."),
    Rule(valid_status, "Please select a valid status."),
))

PHONE_RULES = FieldRules("phone", (
    Rule(is_string, "Please enter a valid phone number."),
    Rule(phone_format, "Please enter a valid phone number."),
    Rule(phone_length, "Phone may not be greater than 20 characters."),
), nullable=True)

AVATAR_RULES = FieldRules("avatar", (
    Rule(is_image, "Avatar must be an image file."),
    Rule(allowed_image_type, "Avatar must be a JPEG, PNG, GIF, or WEBP image."),
    Rule(avatar_size, "Avatar may not be larger than 2MB."),
), nullable=True)

PASSWORD_RULES = FieldRules("password", (
    Rule(is_string, "Password must be a string."),
    Rule(password_length, "Password must be at least 6 characters."),
), nullable=True)

CREATE_USER_RULES: Tuple[FieldRules, ...] = (
    FIRST_NAME_RULES,
    LAST_NAME_RULES,
    EMAIL_RULES,
    STATUS_RULES,
    PHONE_RULES,
    AVATAR_RULES,
)

UPDATE_USER_RULES: Tuple[FieldRules, ...] = CREATE_USER_RULES + (PASSWORD_RULES,)


def validate(data: Mapping[str, Any], field_rules: Tuple[FieldRules, ...], ctx: RuleContext) -> Dict[str, List[str]]:
    """Run the rule table against a payload and return field-keyed messages."""
    errors: Dict[str, List[str]] = {}
    for field_spec in field_rules:
        value = data.get(field_spec.field)
        if field_spec.nullable and is_blank(value):
            continue
        for rule in field_spec.rules:
            if not rule.check(value, ctx):
                errors.setdefault(field_spec.field, []).append(rule.message)
                break
    return errors
