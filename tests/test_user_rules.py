import pytest

from conftest import make_image
from user_admin.application.ports.avatar_storage import AvatarUpload
from user_admin.application.validation.user_rules import (
    CREATE_USER_RULES,
    UPDATE_USER_RULES,
    RuleContext,
    validate,
)


class FakeUsers:
    def __init__(self, taken=()):
        self.taken = {email: user_id for user_id, email in taken}
        self.calls = []

    def email_taken(self, email, ignore_id=None):
        self.calls.append((email, ignore_id))
        owner = self.taken.get(email.lower())
        return owner is not None and owner != ignore_id


def payload(**overrides):
    data = {
        "first_name": "John",
        "last_name": "Doe",
        "email": "john@example.com",
        "phone": "+1 (234) 567-8900",
        "status": "active",
    }
    data.update(overrides)
    return data


def test_valid_payload_has_no_errors():
    assert validate(payload(), CREATE_USER_RULES, RuleContext(user_repo=FakeUsers())) == {}


def test_missing_required_fields():
    errors = validate({}, CREATE_USER_RULES, RuleContext())
    assert errors == {
        "first_name": ["First name is required."],
        "last_name": ["Last name is required."],
        "email": ["Email is required."],
        "status": ["Status is required."],
    }


def test_blank_strings_count_as_missing():
    errors = validate(payload(first_name="   "), CREATE_USER_RULES, RuleContext())
    assert errors == {"first_name": ["First name is required."]}


def test_only_first_failure_per_field_is_reported():
    errors = validate(payload(email=123), CREATE_USER_RULES, RuleContext())
    assert errors == {"email": ["Please enter a valid email address."]}


def test_name_length_limit():
    errors = validate(payload(last_name="x" * 101), CREATE_USER_RULES, RuleContext())
    assert errors == {"last_name": ["Last name may not be greater than 100 characters."]}


@pytest.mark.parametrize("email", ["not-an-email", "john@", "@example.com"])
def test_invalid_email(email):
    errors = validate(payload(email=email), CREATE_USER_RULES, RuleContext())
    assert errors == {"email": ["Please enter a valid email address."]}


def test_email_in_use_respects_ignore_id():
    users = FakeUsers(taken=[(7, "john@example.com")])
    errors = validate(payload(), CREATE_USER_RULES, RuleContext(user_repo=users))
    assert errors == {"email": ["This email is already in use."]}
    assert validate(payload(), UPDATE_USER_RULES, RuleContext(user_repo=users, ignore_id=7)) == {}


def test_unknown_status():
    errors = validate(payload(status="banned"), CREATE_USER_RULES, RuleContext())
    assert errors == {"status": ["Please select a valid status."]}


@pytest.mark.parametrize("phone", ["call me", "+1 234 abc", "12#34"])
def test_bad_phone_format(phone):
    errors = validate(payload(phone=phone), CREATE_USER_RULES, RuleContext())
    assert errors == {"phone": ["Please enter a valid phone number."]}


def test_phone_is_optional():
    assert validate(payload(phone=None), CREATE_USER_RULES, RuleContext()) == {}
    assert validate(payload(phone=""), CREATE_USER_RULES, RuleContext()) == {}


def test_phone_length_counts_normalized_digits():
    # 21 digits once formatting is stripped
    errors = validate(payload(phone="+1 (234) 567-8900 1234 5678 90"), CREATE_USER_RULES, RuleContext())
    assert errors == {"phone": ["Phone may not be greater than 20 characters."]}
    assert validate(payload(phone="(234) 567-8900 1234 5"), CREATE_USER_RULES, RuleContext()) == {}


def test_avatar_must_be_an_allowed_image():
    not_image = AvatarUpload("a.png", "image/png", b"plain text")
    errors = validate(payload(avatar=not_image), CREATE_USER_RULES, RuleContext())
    assert errors == {"avatar": ["Avatar must be an image file."]}

    bmp = AvatarUpload("a.bmp", "image/bmp", make_image("BMP"))
    errors = validate(payload(avatar=bmp), CREATE_USER_RULES, RuleContext())
    assert errors == {"avatar": ["Avatar must be a JPEG, PNG, GIF, or WEBP image."]}


def test_avatar_size_limit():
    png = AvatarUpload("a.png", "image/png", make_image("PNG", size=(200, 200)))
    errors = validate(payload(avatar=png), CREATE_USER_RULES, RuleContext(avatar_max_kb=0))
    assert errors == {"avatar": ["Avatar may not be larger than 2MB."]}
    assert validate(payload(avatar=png), CREATE_USER_RULES, RuleContext()) == {}


def test_avatar_string_is_rejected():
    errors = validate(payload(avatar="http://elsewhere/img.png"), CREATE_USER_RULES, RuleContext())
    assert errors == {"avatar": ["Avatar must be an image file."]}


def test_password_rules_apply_on_update_only():
    assert validate(payload(password="abc"), CREATE_USER_RULES, RuleContext()) == {}
    errors = validate(payload(password="abc"), UPDATE_USER_RULES, RuleContext())
    assert errors == {"password": ["Password must be at least 6 characters."]}
    assert validate(payload(password=""), UPDATE_USER_RULES, RuleContext()) == {}
    assert validate(payload(password="abcdef"), UPDATE_USER_RULES, RuleContext()) == {}


@pytest.mark.parametrize("status", [["active"], {"value": "active"}, 1])
def test_non_string_status(status):
    errors = validate(payload(status=status), CREATE_USER_RULES, RuleContext())
    assert errors == {"status": ["Please select a valid status."]}


def test_email_is_checked_after_trimming():
    assert validate(payload(email="  john@x.com "), CREATE_USER_RULES, RuleContext()) == {}


def test_dotted_phone_is_rejected():
    errors = validate(payload(phone="555.123.4567"), CREATE_USER_RULES, RuleContext())
    assert errors == {"phone": ["Please enter a valid phone number."]}
