"""Tests for TOTP provisioning."""

from __future__ import annotations

import base64
from urllib.parse import parse_qs, urlparse

from cqrs_ddd_mfa.totp import build_totp_setup, format_manual_key, render_qr_svg

SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


class TestBuildTotpSetup:
    def test_provisioning_uri(self) -> None:
        setup = build_totp_setup(
            SECRET, account_name="jane@example.com", issuer="MyApp"
        )

        uri = urlparse(setup.qr_uri)
        params = parse_qs(uri.query)
        assert uri.scheme == "otpauth"
        assert uri.netloc == "totp"
        assert params["secret"] == [SECRET]
        assert params["issuer"] == ["MyApp"]
        assert setup.secret == SECRET

    def test_qr_code_is_svg_data_uri(self) -> None:
        setup = build_totp_setup(SECRET, account_name="user-123", issuer="MyApp")

        prefix = "data:image/svg+xml;base64,"
        assert setup.qr_code.startswith(prefix)
        svg = base64.b64decode(setup.qr_code[len(prefix) :])
        assert b"<svg" in svg


class TestFormatting:
    def test_manual_key_groups_of_four(self) -> None:
        assert format_manual_key("ABCDEFGHIJ") == "ABCD EFGH IJ"

    def test_manual_key_strips_padding(self) -> None:
        assert format_manual_key("ABCDEFGH==") == "ABCD EFGH"

    def test_render_qr_svg(self) -> None:
        assert render_qr_svg("hello").startswith("data:image/svg+xml;base64,")
