"""
Deriver Configuration — Region selection and the fake-secret override.

Reads settings from environment variables:
    FAKE_RPI_DERIVE_KEY_SECRET = <any string, development/test only>
    RPI_DERIVE_KEY_CUSTOMER_OTP = <1/true/yes to use the customer OTP rows>
    RPI_DERIVE_KEY_SALT = <optional HKDF salt>

Security Note:
    The fake secret replaces the hardware secret entirely. Never set it on
    a production device. It is held as a ``SecretStr`` and never logged.
"""
import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

from .models import OTPRegion
from .vcio import VCIO_PATH

logger = logging.getLogger("rpi_derive_key")

FAKE_SECRET_ENV = "FAKE_RPI_DERIVE_KEY_SECRET"
CUSTOMER_OTP_ENV = "RPI_DERIVE_KEY_CUSTOMER_OTP"
SALT_ENV = "RPI_DERIVE_KEY_SALT"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY


class DeriverConfig(BaseModel):
    """Validated configuration of a ``SecretStore``."""

    use_customer_otp: bool = False
    fake_secret: Optional[SecretStr] = None
    salt: Optional[bytes] = None
    vcio_path: str = Field(default=VCIO_PATH, min_length=1)

    @field_validator("salt", mode="before")
    @classmethod
    def encode_salt(cls, v):
        """Accept the salt as text, as given on the command line."""
        if isinstance(v, str):
            return v.encode("utf-8")
        return v

    @property
    def region(self) -> OTPRegion:
        """OTP region targeted by hardware backends."""
        if self.use_customer_otp:
            return OTPRegion.CUSTOMER
        return OTPRegion.PRIVATE_KEY

    @property
    def uses_fake_secret(self) -> bool:
        return self.fake_secret is not None

    def fake_seed(self) -> bytes:
        """Return the override value's bytes.

        Raises:
            RuntimeError: If no fake secret is configured.
        """
        if self.fake_secret is None:
            raise RuntimeError("No fake secret configured")
        return self.fake_secret.get_secret_value().encode("utf-8")

    @classmethod
    def from_env(
        cls,
        use_customer_otp: Optional[bool] = None,
        salt: Optional[str] = None,
    ) -> "DeriverConfig":
        """Create DeriverConfig by loading values from environment.

        Explicit arguments take precedence over the environment.

        Args:
            use_customer_otp: Region flag, ``None`` to read the environment.
            salt: HKDF salt, ``None`` to read the environment.

        Returns:
            Populated DeriverConfig instance.
        """
        if use_customer_otp is None:
            use_customer_otp = _env_flag(CUSTOMER_OTP_ENV)
        if salt is None:
            salt = os.environ.get(SALT_ENV)
        fake_secret = os.environ.get(FAKE_SECRET_ENV)
        if fake_secret is not None:
            logger.warning(
                "%s is set, using a fake device secret instead of OTP memory",
                FAKE_SECRET_ENV,
            )
        return cls(
            use_customer_otp=use_customer_otp,
            fake_secret=fake_secret,
            salt=salt,
        )
