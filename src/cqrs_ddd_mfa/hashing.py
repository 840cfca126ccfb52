"""Code hashing utilities.

Backup codes are long-lived and stored with bcrypt. Challenge codes live
for minutes and are stored as SHA-256 digests compared in constant time.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import cast

import bcrypt


class CodeHasher:
    """bcrypt hasher for backup codes.

    Example:
        ```python
        hasher = CodeHasher(rounds=12)
        hashed = hasher.hash("ABCD-EFGH")
        assert hasher.verify(hashed, "ABCD-EFGH")
        ```
    """

    def __init__(self, *, rounds: int = 12) -> None:
        """Initialize the code hasher.

        Args:
            rounds: bcrypt rounds (cost factor, default 12).
        """
        self.rounds = rounds

    def hash(self, code: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(code.encode(), salt).decode()

    def verify(self, hashed_code: str, code: str) -> bool:
        try:
            return cast("bool", bcrypt.checkpw(code.encode(), hashed_code.encode()))
        except ValueError:
            # Invalid hash format or malformed hash
            return False


def challenge_digest(code: str) -> str:
    """SHA-256 hex digest of a challenge code."""
    return hashlib.sha256(code.encode()).hexdigest()


def digests_match(expected_digest: str, code: str) -> bool:
    """Constant-time comparison of *code* against a stored digest."""
    return hmac.compare_digest(expected_digest, challenge_digest(code))


__all__: list[str] = ["CodeHasher", "challenge_digest", "digests_match"]
