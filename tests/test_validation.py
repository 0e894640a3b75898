import pytest

from form_builder.models.document import ValidationTiming
from form_builder.models.field import FormField
from form_builder.validation import should_display_error, validate_field, validate_values


def _field(field_type="text", **extra):
    return FormField.model_validate({"id": "f", "type": field_type, "label": "Answer", **extra})


def test_required_field_clears_once_filled():
    field = _field(required=True)

    assert validate_field(field, "") == "Answer is required"
    assert validate_field(field, None) == "Answer is required"
    assert validate_field(field, "x") is None


def test_custom_message_replaces_required_text():
    field = _field(validation={"required": True, "customMessage": "We need this"})

    assert validate_field(field, "") == "We need this"


def test_optional_blank_value_skips_every_other_rule():
    field = _field("email", validation={"minLength": 5})

    assert validate_field(field, "") is None


def test_format_checks_run_before_length():
    field = _field("email", validation={"minLength": 50})

    assert validate_field(field, "bad") == "Please enter a valid email address"
    assert validate_field(field, "me@example.com") == "Minimum length is 50 characters"


def test_phone_numbers_ignore_whitespace():
    field = _field("phone")

    assert validate_field(field, "+1 555 0100") is None
    assert validate_field(field, "call me") == "Please enter a valid phone number"


def test_length_and_pattern():
    field = _field(validation={"maxLength": 3, "pattern": "^[A-Z]+$", "customMessage": "Capitals only"})

    assert validate_field(field, "ABCD") == "Maximum length is 3 characters"
    assert validate_field(field, "abc") == "Capitals only"
    assert validate_field(field, "ABC") is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("abc", "Please enter a valid number"),
        (0, "Value must be at least 1"),
        ("11", "Value must be at most 10"),
        (5, None),
    ],
)
def test_numeric_bounds(value, expected):
    field = _field("number", validation={"min": 1, "max": 10})

    assert validate_field(field, value) == expected


def test_url_and_card_number_rules():
    url_field = _field(validation={"url": True})
    card_field = _field(validation={"creditCard": True})

    assert validate_field(url_field, "ftp://files") == "Please enter a valid URL"
    assert validate_field(url_field, "https://example.com/form") is None
    assert validate_field(card_field, "4242 4242 4242 4242") is None
    assert validate_field(card_field, "4242 4242 4242 4241") == "Please enter a valid card number"


def test_unchecked_required_switch_is_blank():
    assert validate_field(_field("switch", required=True), False) == "Answer is required"
    assert validate_field(_field("switch", required=True), True) is None


def test_display_blocks_never_fail():
    assert validate_field(_field("heading", required=True), None) is None


def test_required_override():
    assert validate_field(_field(), "", required=True) == "Answer is required"
    assert validate_field(_field(required=True), "", required=False) is None


def test_hidden_fields_are_skipped(contact_project):
    errors = validate_values(contact_project, {"contact-method": "Email"})

    assert errors == {"name": "Full Name is required", "email": "Email Address is required"}


def test_visible_conditional_field_is_validated(contact_project):
    values = {"name": "Ada", "email": "ada@example.com", "contact-method": "Phone"}

    assert validate_values(contact_project, values) == {"phone": "Phone Number is required"}

    values["phone"] = "+44 20 7946 0000"
    assert validate_values(contact_project, values) == {}


@pytest.mark.parametrize(
    ("timing", "changed", "blurred", "expected"),
    [
        (ValidationTiming.on_change, True, False, True),
        (ValidationTiming.on_blur, True, False, False),
        (ValidationTiming.on_blur, False, True, True),
        (ValidationTiming.on_submit, True, True, False),
    ],
)
def test_error_display_timing(timing, changed, blurred, expected):
    assert should_display_error(timing, changed=changed, blurred=blurred) is expected
    assert should_display_error(timing, submitted=True)


def test_required_wins_over_pattern_on_empty_value():
    field = _field(required=True, validation={"required": True, "pattern": "^[0-9]+$"})

    assert validate_field(field, "") == "Answer is required"
    assert validate_field(field, "abc") == "Invalid format"


def test_email_and_phone_flags_apply_to_plain_text_fields():
    email = _field(validation={"email": True})
    phone = _field(validation={"phone": True})

    assert validate_field(email, "not-an-email") == "Please enter a valid email address"
    assert validate_field(email, "a@b.co") is None
    assert validate_field(phone, "not-a-phone") == "Please enter a valid phone number"
    assert validate_field(phone, "+44 20 7946 0000") is None


def test_email_flag_is_checked_before_length():
    field = _field(validation={"email": True, "maxLength": 3})

    assert validate_field(field, "nope") == "Please enter a valid email address"
