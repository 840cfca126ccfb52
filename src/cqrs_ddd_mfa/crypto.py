"""Encryption of TOTP secrets at rest.

``FernetSecretCipher`` implements ``ISecretCipher`` with Fernet symmetric
encryption (AES-128-CBC + HMAC-SHA256). Stores use it so that a dump of the
enrollment storage does not reveal usable TOTP secrets.
"""

from __future__ import annotations

import base64

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

KDF_ITERATIONS = 100_000


class FernetSecretCipher:
    """Fernet-based secret cipher.

    Example:
        ```python
        cipher = FernetSecretCipher(Fernet.generate_key())
        # or derive the key from a passphrase
        cipher = FernetSecretCipher.from_passphrase(
            settings.MFA_ENCRYPTION_KEY, salt=settings.MFA_ENCRYPTION_SALT
        )
        store = RedisEnrollmentStore(redis, cipher=cipher)
        ```
    """

    def __init__(self, key: bytes | str) -> None:
        """Initialize with a urlsafe base64-encoded 32-byte Fernet key."""
        self._fernet = Fernet(key)

    @classmethod
    def from_passphrase(
        cls,
        passphrase: str,
        *,
        salt: str,
        iterations: int = KDF_ITERATIONS,
    ) -> FernetSecretCipher:
        """Derive the Fernet key from a passphrase using PBKDF2-SHA256.

        Raises:
            ValueError: If the passphrase or salt is empty.
        """
        if not passphrase or not salt:
            raise ValueError("passphrase and salt are required")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode("utf-8"),
            iterations=iterations,
        )
        return cls(base64.urlsafe_b64encode(kdf.derive(passphrase.encode())))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a value produced by ``encrypt``.

        Raises:
            ValueError: If the token is malformed or was encrypted with a
                different key.
        """
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode("utf-8")
        except InvalidToken as e:
            raise ValueError("Secret could not be decrypted") from e


__all__: list[str] = ["FernetSecretCipher", "KDF_ITERATIONS"]
