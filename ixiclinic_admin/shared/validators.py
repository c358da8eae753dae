"""Shared validation utilities"""

import re
from typing import Optional

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase, stripped email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not re.match(EMAIL_PATTERN, email):
        raise ValueError("Invalid email format")
    return email


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """Accept international numbers: 7-15 digits with an optional leading +"""
    if not phone:
        return phone

    phone = phone.strip()
    digits = re.sub(r"\D", "", phone)
    if not 7 <= len(digits) <= 15:
        raise ValueError("Phone number must have between 7 and 15 digits")
    return phone


def validate_rnc_cedula(value: Optional[str]) -> Optional[str]:
    """Dominican tax id: RNC (9 digits) or cédula (11 digits), dashes allowed"""
    if not value:
        return value

    digits = re.sub(r"[\s-]", "", value)
    if not digits.isdigit() or len(digits) not in (9, 11):
        raise ValueError("RNC must have 9 digits and cédula 11 digits")
    return digits


def split_full_name(full_name: Optional[str]) -> tuple[str, str]:
    """'Ana María Pérez' -> ('Ana', 'María Pérez')"""
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])
