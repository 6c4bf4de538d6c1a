"""
SecretStore — Lifecycle of the device secret and derivation entry points.

Provides the public API:
- ``init()`` — irreversibly program the selected OTP region, once
- ``status()`` / ``check()`` — read-only probes of the selected region
- ``derive()`` / ``derive_hex()`` / ``derive_uuid()`` — device-specific keys
- ``device_status()`` — diagnostic report of both OTP regions

The store is the only component that materializes a ``DeviceSecret``. The
secret is handed to the key deriver and wiped afterwards; it is never
returned to callers of the public API.

Security Note:
    Never log secret or key material. Only log regions, states and lengths.
"""
import secrets
import logging
from typing import Optional

from .backends import (
    CustomerOTPBackend,
    FakeBackend,
    HardwareSecretBackend,
    PrivateOTPBackend,
)
from .config import DeriverConfig
from .crypto import Info, derive, derive_hex, derive_uuid
from .exceptions import (
    BackendAlreadyInitialized,
    BackendUnsupported,
    HardwareUnsupported,
    NotInitialized,
    ReadFailure,
    WriteFailure,
)
from .models import DeviceStatus, InitOutcome, OTPRegion, RegionStatus
from .secret import SECRET_SIZE, DeviceSecret
from .vcio import is_raspberry_pi

logger = logging.getLogger("rpi_derive_key")


def select_backend(config: DeriverConfig) -> HardwareSecretBackend:
    """Pick the backend for ``config``.

    A configured fake secret wins over the region flag.
    """
    if config.uses_fake_secret:
        return FakeBackend(config.fake_seed())
    if config.use_customer_otp:
        return CustomerOTPBackend(config.vcio_path)
    return PrivateOTPBackend(config.vcio_path)


class SecretStore:
    """Single owner of the device secret.

    Exactly one backend is selected at construction and kept until
    ``close()``. Initializing one region and deriving from the other is not
    detected; use the same configuration for both.
    """

    def __init__(
        self,
        config: Optional[DeriverConfig] = None,
        backend: Optional[HardwareSecretBackend] = None,
    ):
        self.config = config or DeriverConfig.from_env()
        self._backend = backend or select_backend(self.config)
        logger.debug("Secret store using %r", self._backend)

    def __repr__(self) -> str:
        return f"<SecretStore {self.region_name}>"

    def __enter__(self) -> "SecretStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._backend.close()

    @property
    def region_name(self) -> str:
        if self._backend.region is None:
            return "fake"
        return self._backend.region.value

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> InitOutcome:
        """Initialize the device secret if it has not been initialized.

        Returns:
            ``INITIALIZED`` if this call programmed the secret,
            ``ALREADY_INITIALIZED`` if a secret was already present.

        Raises:
            HardwareUnsupported: If the selected region is unavailable.
            WriteFailure: If probing or programming the region failed.
        """
        try:
            status = self.status()
        except ReadFailure as err:
            raise WriteFailure(
                f"Unable to probe the {self.region_name} OTP region before "
                f"programming: {err}"
            ) from err
        if status is RegionStatus.INITIALIZED:
            logger.info("Device secret (%s) already initialized", self.region_name)
            return InitOutcome.ALREADY_INITIALIZED
        if status is RegionStatus.UNSUPPORTED:
            raise HardwareUnsupported(self.region_name)
        try:
            self._backend.initialize(secrets.token_bytes(SECRET_SIZE))
        except BackendAlreadyInitialized:
            logger.info(
                "Device secret (%s) was initialized concurrently", self.region_name
            )
            return InitOutcome.ALREADY_INITIALIZED
        except BackendUnsupported as err:
            raise HardwareUnsupported(self.region_name) from err
        logger.info("Device secret (%s) initialized", self.region_name)
        return InitOutcome.INITIALIZED

    def status(self) -> RegionStatus:
        """Probe the selected region without side effects."""
        return self._backend.probe()

    def check(self) -> bool:
        """True if the device secret has been initialized."""
        return self.status() is RegionStatus.INITIALIZED

    def secret_material(self) -> DeviceSecret:
        """Return the device secret for consumption by the key deriver.

        Raises:
            NotInitialized: If the region has not been initialized.
            HardwareUnsupported: If the selected region is unavailable.
            ReadFailure: If the secret cannot be read.
        """
        status = self.status()
        if status is RegionStatus.UNINITIALIZED:
            raise NotInitialized(self.region_name)
        if status is RegionStatus.UNSUPPORTED:
            raise HardwareUnsupported(self.region_name)
        secret = self._backend.read_secret()
        if secret.is_zero():
            # OTP rows cannot be cleared once programmed.
            raise ReadFailure(
                f"The {self.region_name} OTP region returned an empty secret"
            )
        return secret

    # ------------------------------------------------------------------
    # Key derivation
    # ------------------------------------------------------------------

    def derive(self, info: Info, length: int) -> bytes:
        """Derive a ``length``-byte key bound to ``info``.

        Raises:
            InvalidLength: If ``length`` cannot be produced.
            NotInitialized: If the device secret has not been initialized.
        """
        with self.secret_material() as secret:
            key = derive(secret, info, length, salt=self.config.salt)
        logger.debug("Derived %d byte key", length)
        return key

    def derive_hex(self, info: Info, length: int) -> str:
        """Derive a key and return it as lowercase hex."""
        with self.secret_material() as secret:
            return derive_hex(secret, info, length, salt=self.config.salt)

    def derive_uuid(self, info: Info) -> str:
        """Derive a version 4 UUID bound to ``info``."""
        with self.secret_material() as secret:
            return derive_uuid(secret, info, salt=self.config.salt)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def device_status(self) -> DeviceStatus:
        """Report the state of both OTP regions of the device.

        Regions not owned by this store are probed through short-lived
        backends. With a fake secret configured both regions are reported
        as they are in hardware.
        """
        regions: dict[OTPRegion, RegionStatus] = {}
        for region, backend_cls in (
            (OTPRegion.PRIVATE_KEY, PrivateOTPBackend),
            (OTPRegion.CUSTOMER, CustomerOTPBackend),
        ):
            if self._backend.region is region:
                regions[region] = self._backend.probe()
                continue
            backend = backend_cls(self.config.vcio_path)
            try:
                regions[region] = backend.probe()
            finally:
                backend.close()
        private_key = regions[OTPRegion.PRIVATE_KEY]
        customer_otp = regions[OTPRegion.CUSTOMER]
        return DeviceStatus(
            is_raspberry_pi=is_raspberry_pi(self.config.vcio_path),
            has_private_key=private_key is RegionStatus.INITIALIZED,
            has_customer_otp=customer_otp is RegionStatus.INITIALIZED,
            private_key=private_key,
            customer_otp=customer_otp,
        )
