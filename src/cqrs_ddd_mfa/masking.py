"""Contact masking for anything shown outside the subsystem."""

from __future__ import annotations

from .domain import MfaMethod


def mask_phone(phone_number: str) -> str:
    """Mask a phone number, keeping the country prefix and last 4 digits.

    Example: ``+18452428261`` -> ``+1******8261``.
    """
    phone_number = phone_number.strip()
    if len(phone_number) <= 4:
        return "*" * len(phone_number)
    if len(phone_number) <= 7:
        return "*" * (len(phone_number) - 4) + phone_number[-4:]
    return f"{phone_number[:2]}{'*' * (len(phone_number) - 6)}{phone_number[-4:]}"


def mask_email(email: str) -> str:
    """Mask the local part of an email address.

    Example: ``jane.doe@example.com`` -> ``j*******@example.com``.
    """
    email = email.strip()
    local, sep, domain = email.rpartition("@")
    if not sep or not local:
        return "*" * len(email)
    return f"{local[0]}{'*' * max(len(local) - 1, 1)}@{domain}"


def mask_destination(method: MfaMethod, destination: str) -> str:
    if method is MfaMethod.SMS:
        return mask_phone(destination)
    if method is MfaMethod.EMAIL:
        return mask_email(destination)
    if method is MfaMethod.TOTP:
        raise ValueError("TOTP has no delivery destination")
    raise AssertionError(f"unhandled method {method!r}")


__all__: list[str] = ["mask_phone", "mask_email", "mask_destination"]
