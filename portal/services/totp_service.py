"""
TOTP two-factor authentication helpers (RFC 6238 via pyotp).
"""

import base64
import io
import logging
from typing import Dict

import pyotp
import qrcode

from portal.config import settings

logger = logging.getLogger(__name__)


class TOTPService:
    """Secret generation, provisioning QR codes and code verification."""

    # Accept the previous and next 30-second step to absorb clock drift
    VALID_WINDOW = 1

    def generate_secret(self) -> str:
        return pyotp.random_base32()

    def provisioning_uri(self, secret: str, account_email: str) -> str:
        return pyotp.TOTP(secret).provisioning_uri(
            name=account_email,
            issuer_name=settings.app_name
        )

    def qr_code_data_url(self, uri: str) -> str:
        """Render an otpauth:// URI as a PNG data URL."""
        image = qrcode.make(uri)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def create_enrollment(self, account_email: str) -> Dict[str, str]:
        """
        Create a fresh secret with its provisioning URI and QR code.

        Nothing is stored here; the secret is persisted only after the user
        proves possession with a valid code.
        """
        secret = self.generate_secret()
        uri = self.provisioning_uri(secret, account_email)
        logger.info(f"[2FA] Enrollment secret generated for {account_email}")
        return {
            "secret": secret,
            "otpauth_url": uri,
            "qr_code_url": self.qr_code_data_url(uri)
        }

    def verify_code(self, secret: str, code: str) -> bool:
        if not secret or not code:
            return False
        try:
            return pyotp.TOTP(secret).verify(code.strip(), valid_window=self.VALID_WINDOW)
        except (ValueError, TypeError) as e:
            # Malformed base32 secret
            logger.warning(f"[2FA] Code verification failed: {e}")
            return False


# Global TOTP service instance
totp_service = TOTPService()
