"""Field rules shared by the account form and the provisioning endpoint."""
from __future__ import annotations

import re

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value) is not None


def is_valid_password(value: str | None) -> bool:
    return value is not None and len(value) >= MIN_PASSWORD_LENGTH
