"""
Input validation and sanitization helpers.

Pure functions plus a small attempt counter for throttling sensitive
actions. Not every flow goes through these: the chat attachment path accepts
any image or PDF regardless of size unless the caller opts in.
"""

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]{10,15}$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']{2,50}$")
PRICE_PATTERN = re.compile(r"^\d+(\.\d{1,2})?$")

ALLOWED_UPLOAD_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5MB
MAX_PRICE = 1_000_000


@dataclass
class ValidationResult:
    """Outcome of a validation check."""
    valid: bool
    error: Optional[str] = None


def validate_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email)) and len(email) <= 254


def validate_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(phone))


def validate_name(name: str) -> bool:
    """Display names: 2-50 letters, spaces, hyphens and apostrophes."""
    return bool(NAME_PATTERN.match(name))


def sanitize_text(text: str) -> str:
    """Strip angle brackets, ``javascript:`` prefixes and inline event handlers."""
    text = re.sub(r"[<>]", "", text)
    text = re.sub(r"javascript:", "", text, flags=re.IGNORECASE)
    text = re.sub(r"on\w+=", "", text, flags=re.IGNORECASE)
    return text.strip()


def validate_file_upload(content_type: Optional[str], size: int) -> ValidationResult:
    """Check an uploaded image against the type allow-list and size ceiling."""
    if content_type not in ALLOWED_UPLOAD_TYPES:
        return ValidationResult(False, "Only JPEG, PNG, and WebP images are allowed")
    if size > MAX_UPLOAD_BYTES:
        return ValidationResult(False, "File size must be less than 5MB")
    return ValidationResult(True)


def validate_price(price: str) -> bool:
    """Decimal string with at most two places, within (0, 1_000_000]."""
    if not PRICE_PATTERN.match(price):
        return False
    value = float(price)
    return 0 < value <= MAX_PRICE


def _check_password(value: str) -> ValidationResult:
    if len(value) < 8:
        return ValidationResult(False, "Password must be at least 8 characters long")
    if not re.search(r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)", value):
        return ValidationResult(
            False,
            "Password must contain at least one uppercase letter, one lowercase letter, and one number",
        )
    return ValidationResult(True)


_INPUT_CHECKS: Dict[str, Callable[[str], ValidationResult]] = {
    "email": lambda v: ValidationResult(True) if validate_email(v)
    else ValidationResult(False, "Please enter a valid email address"),
    "password": _check_password,
    "name": lambda v: ValidationResult(True) if validate_name(v)
    else ValidationResult(
        False,
        "Name must be 2-50 characters and contain only letters, spaces, hyphens, and apostrophes",
    ),
    "phone": lambda v: ValidationResult(True) if validate_phone(v)
    else ValidationResult(False, "Please enter a valid phone number"),
}


def validate_input(value: str, kind: str) -> ValidationResult:
    """Validate a form value by kind: email, password, name or phone."""
    check = _INPUT_CHECKS.get(kind)
    if check is None:
        return ValidationResult(False, "Invalid validation type")
    return check(value)


def validate_form_data(data: Dict[str, Any]) -> Dict[str, str]:
    """Return field errors for string values that sanitization would alter."""
    errors: Dict[str, str] = {}
    for key, value in data.items():
        if isinstance(value, str) and sanitize_text(value) != value:
            errors[key] = "Invalid characters detected"
    return errors


class RateLimiter:
    """
    Per-key attempt counter.

    Keeps the timestamps of recent attempts per key and refuses new ones once
    ``max_attempts`` fall inside the trailing window.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.clock = clock
        self._attempts: Dict[str, List[float]] = {}

    def is_allowed(self, key: str) -> bool:
        now = self.clock()
        recent = [t for t in self._attempts.get(key, []) if now - t < self.window_seconds]

        if len(recent) >= self.max_attempts:
            self._attempts[key] = recent
            return False

        recent.append(now)
        self._attempts[key] = recent
        return True
