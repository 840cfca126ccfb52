"""Secret generator.

Produces TOTP secrets, numeric challenge codes and backup-code sets from the
operating system CSPRNG. If the RNG cannot be read the generator raises
``EntropyUnavailableError``; it never degrades to a weaker source.
"""

from __future__ import annotations

import secrets
import string
from typing import TYPE_CHECKING, TypeVar

import pyotp

from .exceptions import EntropyUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")

# Characters used in backup codes (exclude ambiguous: 0, O, 1, I)
BACKUP_CODE_ALPHABET = string.ascii_uppercase.replace("O", "").replace(
    "I", ""
) + string.digits.replace("0", "").replace("1", "")

TOTP_SECRET_LENGTH = 32


def _draw(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except (OSError, NotImplementedError) as e:
        raise EntropyUnavailableError() from e


class SecretGenerator:
    """Cryptographically secure generator for MFA material."""

    def __init__(
        self,
        *,
        otp_length: int = 6,
        backup_code_length: int = 8,
    ) -> None:
        """Initialize the generator.

        Args:
            otp_length: Digits in a challenge code (default 6).
            backup_code_length: Characters in a backup code (default 8).
        """
        self.otp_length = otp_length
        self.backup_code_length = backup_code_length

    def new_totp_secret(self) -> str:
        """Generate a base32 TOTP secret suitable for QR provisioning."""
        return _draw(lambda: pyotp.random_base32(length=TOTP_SECRET_LENGTH))

    def new_otp_challenge(self) -> str:
        """Generate a zero-padded numeric challenge code."""
        code = _draw(lambda: secrets.randbelow(10**self.otp_length))
        return str(code).zfill(self.otp_length)

    def new_backup_code_set(self, n: int) -> list[str]:
        """Generate *n* unique formatted backup codes (e.g. ``ABCD-EFGH``)."""
        if n < 1:
            raise ValueError("n must be at least 1")
        codes: list[str] = []
        seen: set[str] = set()
        while len(codes) < n:
            code = self._format_code(_draw(self._generate_code))
            if code in seen:
                continue
            seen.add(code)
            codes.append(code)
        return codes

    def _generate_code(self) -> str:
        return "".join(
            secrets.choice(BACKUP_CODE_ALPHABET)
            for _ in range(self.backup_code_length)
        )

    def _format_code(self, code: str) -> str:
        """Format code with dashes for readability (groups of 4)."""
        return "-".join(code[i : i + 4] for i in range(0, len(code), 4))


def normalize_backup_code(code: str) -> str:
    """Normalize backup code input: strip whitespace, accept with or without dash."""
    raw = "".join(code.split()).replace("-", "").upper()
    return "-".join(raw[i : i + 4] for i in range(0, len(raw), 4))


__all__: list[str] = [
    "BACKUP_CODE_ALPHABET",
    "SecretGenerator",
    "normalize_backup_code",
]
