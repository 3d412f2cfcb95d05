"""
Access key generation for electronic fiscal documents.

Layout (48 digits + 1 check digit):
  issue date ddmmyyyy (8) | document type (2) | issuer tax id (13) |
  environment (1) | series (6) | sequential (9) | numeric code (8) | emission type (1)

Check digit: weighted modulo 11, weights 2..7 cycled left to right.
"""

import secrets
from datetime import date

ACCESS_KEY_LENGTH = 49
ACCESS_KEY_BODY_LENGTH = 48
CHECK_DIGIT_WEIGHTS = (2, 3, 4, 5, 6, 7)

_FIELD_WIDTHS = {
    "document_type": 2,
    "issuer_tax_id": 13,
    "environment": 1,
    "series": 6,
    "numeric_code": 8,
    "emission_type": 1,
}
SEQUENTIAL_WIDTH = 9


def compute_check_digit(digits: str) -> int:
    """
    Weighted modulo-11 check digit over a string of digits.
    11 maps to 0 and 10 maps to 1 so the result is always a single digit.
    """
    total = 0
    for index, char in enumerate(digits):
        total += int(char) * CHECK_DIGIT_WEIGHTS[index % len(CHECK_DIGIT_WEIGHTS)]
    check = 11 - (total % 11)
    if check == 11:
        return 0
    if check == 10:
        return 1
    return check


def generate_numeric_code() -> str:
    """Random 8-digit numeric code."""
    return f"{secrets.randbelow(10 ** 8):08d}"


def build_access_key_body(
    issue_date: date,
    document_type: str,
    issuer_tax_id: str,
    environment: str,
    series: str,
    sequential: int,
    numeric_code: str,
    emission_type: str,
) -> str:
    return "".join((
        issue_date.strftime("%d%m%Y"),
        document_type,
        issuer_tax_id,
        environment,
        series,
        f"{sequential:0{SEQUENTIAL_WIDTH}d}",
        numeric_code,
        emission_type,
    ))


def generate_access_key(
    issue_date: date,
    document_type: str,
    issuer_tax_id: str,
    environment: str,
    series: str,
    sequential: int,
    numeric_code: str,
    emission_type: str,
) -> str:
    """Return the 49-digit access key. Pure: same inputs give the same key."""
    body = build_access_key_body(
        issue_date, document_type, issuer_tax_id, environment,
        series, sequential, numeric_code, emission_type,
    )
    return body + str(compute_check_digit(body))


def validate_access_key_inputs(
    document_type: str,
    issuer_tax_id: str,
    environment: str,
    series: str,
    sequential: int,
    numeric_code: str,
    emission_type: str,
) -> None:
    """Raise ValueError if any component does not have its fixed numeric width."""
    fields = {
        "document_type": document_type,
        "issuer_tax_id": issuer_tax_id,
        "environment": environment,
        "series": series,
        "numeric_code": numeric_code,
        "emission_type": emission_type,
    }
    for name, value in fields.items():
        width = _FIELD_WIDTHS[name]
        if not isinstance(value, str) or len(value) != width or not value.isdigit():
            raise ValueError(f"{name} must be {width} digits, got {value!r}")
    if not isinstance(sequential, int) or sequential < 0 or sequential >= 10 ** SEQUENTIAL_WIDTH:
        raise ValueError(f"sequential must be between 0 and {10 ** SEQUENTIAL_WIDTH - 1}, got {sequential!r}")


def is_valid_access_key(key: str) -> bool:
    """True if key is 49 digits and its last digit matches the check digit."""
    if not isinstance(key, str) or len(key) != ACCESS_KEY_LENGTH or not key.isdigit():
        return False
    return compute_check_digit(key[:ACCESS_KEY_BODY_LENGTH]) == int(key[-1])
