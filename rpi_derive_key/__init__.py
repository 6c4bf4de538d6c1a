"""rpi-derive-key — Device-specific keys from Raspberry Pi OTP memory.

A random 256-bit secret is stored once in the OTP memory of the device.
Keys are derived from it with HKDF-SHA3-512, bound to a caller-chosen info
string, so the same device always yields the same key for the same info.

Security Note (Threat Model):
    The OTP memory is not a secure element. Anyone with root access or
    physical access to an unprotected boot medium can read the secret.
"""

from .version import __version__
from .config import DeriverConfig
from .models import DeviceStatus, InitOutcome, OTPRegion, RegionStatus
from .store import SecretStore
from .vcio import is_raspberry_pi, supports_private_key
from .exceptions import (
    DeriveKeyError,
    BackendError,
    StoreError,
    HardwareUnsupported,
    NotInitialized,
    WriteFailure,
    ReadFailure,
    InvalidLength,
)

__all__ = [
    "__version__",
    "DeriverConfig",
    "DeviceStatus",
    "InitOutcome",
    "OTPRegion",
    "RegionStatus",
    "SecretStore",
    "is_raspberry_pi",
    "supports_private_key",
    "DeriveKeyError",
    "BackendError",
    "StoreError",
    "HardwareUnsupported",
    "NotInitialized",
    "WriteFailure",
    "ReadFailure",
    "InvalidLength",
]
