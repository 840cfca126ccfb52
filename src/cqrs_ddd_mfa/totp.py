"""TOTP provisioning material.

Builds what an authenticator app needs to enroll a secret: the otpauth://
URI, a QR code for it and a grouped key for manual entry.
"""

from __future__ import annotations

import base64
import io

import pyotp
import qrcode
import qrcode.image.svg

from .domain import TotpSetup


def format_manual_key(secret: str) -> str:
    """Format a base32 secret as space-separated groups of 4."""
    secret = secret.rstrip("=")
    return " ".join(secret[i : i + 4] for i in range(0, len(secret), 4))


def render_qr_svg(data: str) -> str:
    """Render *data* as a QR code and return it as an SVG data URI."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
        image_factory=qrcode.image.svg.SvgPathImage,
    )
    qr.add_data(data)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def build_totp_setup(
    secret: str,
    *,
    account_name: str,
    issuer: str,
    digits: int = 6,
    interval: int = 30,
) -> TotpSetup:
    """Build the provisioning data for *secret*.

    Args:
        secret: Base32 TOTP secret.
        account_name: Label shown in the authenticator app.
        issuer: Application name shown in the authenticator app.
        digits: Code length configured on the authenticator.
        interval: Time step configured on the authenticator.

    Returns:
        TotpSetup with the URI, the SVG QR code and the manual entry key.
    """
    totp = pyotp.TOTP(secret, digits=digits, interval=interval, issuer=issuer)
    qr_uri = totp.provisioning_uri(name=account_name, issuer_name=issuer)
    return TotpSetup(
        secret=secret,
        qr_uri=qr_uri,
        manual_key=format_manual_key(secret),
        qr_code=render_qr_svg(qr_uri),
    )


__all__: list[str] = ["build_totp_setup", "format_manual_key", "render_qr_svg"]
