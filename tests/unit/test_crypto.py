"""Tests for the Fernet secret cipher."""

from __future__ import annotations

import pytest
from cryptography.fernet import Fernet

from cqrs_ddd_mfa.crypto import FernetSecretCipher
from cqrs_ddd_mfa.ports import ISecretCipher


class TestFernetSecretCipher:
    def test_implements_port(self) -> None:
        assert isinstance(FernetSecretCipher(Fernet.generate_key()), ISecretCipher)

    def test_encrypt_decrypt(self) -> None:
        cipher = FernetSecretCipher(Fernet.generate_key())

        token = cipher.encrypt("JBSWY3DPEHPK3PXP")

        assert "JBSWY3DPEHPK3PXP" not in token
        assert cipher.decrypt(token) == "JBSWY3DPEHPK3PXP"

    def test_wrong_key(self) -> None:
        token = FernetSecretCipher(Fernet.generate_key()).encrypt("JBSWY3DPEHPK3PXP")

        with pytest.raises(ValueError, match="could not be decrypted"):
            FernetSecretCipher(Fernet.generate_key()).decrypt(token)

    def test_from_passphrase_is_deterministic(self) -> None:
        first = FernetSecretCipher.from_passphrase("passphrase", salt="salt")
        second = FernetSecretCipher.from_passphrase("passphrase", salt="salt")

        assert second.decrypt(first.encrypt("secret")) == "secret"

    def test_from_passphrase_requires_salt(self) -> None:
        with pytest.raises(ValueError):
            FernetSecretCipher.from_passphrase("passphrase", salt="")
