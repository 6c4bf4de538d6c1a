"""
Exceptions raised by the secret store, its backends and the key deriver.

Every error carries a message suitable for showing to an operator; errors
that have an obvious remediation say so.
"""


class DeriveKeyError(Exception):
    """Base class for all rpi_derive_key errors."""


# ---------------------------------------------------------------------------
# Backend errors
# ---------------------------------------------------------------------------

class BackendError(DeriveKeyError):
    """Failure reported by a hardware (or fake) secret backend."""


class StoreError(DeriveKeyError):
    """Failure reported by the secret store."""


class BackendUnsupported(BackendError):
    """The OTP facility is not available on this firmware or SoC."""


class BackendAlreadyInitialized(BackendError):
    """The OTP region has already been programmed."""


class WriteFailure(BackendError, StoreError):
    """Programming the OTP region failed or could not be verified."""


class ReadFailure(BackendError, StoreError):
    """Secret material could not be read from the OTP region."""


class RegionInUse(BackendError):
    """Another backend in this process already owns the OTP region."""


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------

class HardwareUnsupported(StoreError):
    """The selected OTP region cannot be used on this device."""

    def __init__(self, region: str):
        self.region = region
        super().__init__(
            f"The {region} OTP region is not supported on this device. "
            "Retry with --customer-otp or update the firmware "
            "(rpi-eeprom-update / rpi-update)."
        )


class NotInitialized(StoreError):
    """A key was requested before the device secret was initialized."""

    def __init__(self, region: str):
        self.region = region
        super().__init__(
            f"The device-specific secret in the {region} OTP region has not "
            "been initialized. Run `rpi-derive-key init` first."
        )


# ---------------------------------------------------------------------------
# Derivation errors
# ---------------------------------------------------------------------------

class InvalidLength(DeriveKeyError, ValueError):
    """The requested key length cannot be produced."""
