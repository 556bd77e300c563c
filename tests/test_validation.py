"""Tests for input validation helpers."""
import pytest

from agrimarket.security.validation import (
    RateLimiter,
    sanitize_text,
    validate_email,
    validate_file_upload,
    validate_form_data,
    validate_input,
    validate_name,
    validate_phone,
    validate_price,
)


@pytest.mark.parametrize("email,expected", [
    ("farmer@example.com", True),
    ("no-at-sign.example.com", False),
    ("spaces in@example.com", False),
    ("a@" + "b" * 250 + ".com", False),
])
def test_validate_email(email, expected):
    assert validate_email(email) is expected


def test_validate_phone_and_name():
    assert validate_phone("0801 234 5678")
    assert validate_phone("+2348012345678")
    assert not validate_phone("12345")
    assert validate_name("Mary-Jane O'Neil")
    assert not validate_name("A")
    assert not validate_name("Robert1")


@pytest.mark.parametrize("price,expected", [
    ("12.50", True),
    ("1000000", True),
    ("1000000.01", False),
    ("0", False),
    ("3.999", False),
    ("-4", False),
    ("abc", False),
])
def test_validate_price(price, expected):
    assert validate_price(price) is expected


def test_sanitize_text_strips_markup_and_handlers():
    assert sanitize_text("<b>Maize</b>") == "bMaize/b"
    assert sanitize_text("javascript:alert(1)") == "alert(1)"
    assert sanitize_text('x onclick=steal()') == "x steal()"
    assert sanitize_text("  Lagos  ") == "Lagos"


def test_file_upload_allow_list_and_ceiling():
    assert validate_file_upload("image/png", 1024).valid
    assert validate_file_upload("application/pdf", 10).error == "Only JPEG, PNG, and WebP images are allowed"
    too_big = validate_file_upload("image/jpeg", 6 * 1024 * 1024)
    assert not too_big.valid
    assert too_big.error == "File size must be less than 5MB"


def test_validate_input_by_kind():
    assert validate_input("Passw0rdX", "password").valid
    assert not validate_input("short1A", "password").valid
    assert not validate_input("alllowercase1", "password").valid
    assert validate_input("whatever", "zipcode").error == "Invalid validation type"


def test_validate_form_data_flags_unsafe_fields():
    errors = validate_form_data({"name": "Ada", "bio": "<script>", "size": 3})
    assert errors == {"bio": "Invalid characters detected"}


def test_rate_limiter_blocks_sixth_attempt_in_window():
    now = [0.0]
    limiter = RateLimiter(clock=lambda: now[0])

    assert all(limiter.is_allowed("user-1") for _ in range(5))
    assert not limiter.is_allowed("user-1")
    assert limiter.is_allowed("user-2")

    now[0] = 61.0
    assert limiter.is_allowed("user-1")
