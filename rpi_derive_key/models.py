"""
Value types shared by the secret store, its backends and the CLI.
"""
from enum import Enum

from pydantic import BaseModel


class OTPRegion(str, Enum):
    """OTP rows holding the device secret.

    Exactly one region is used per device. Nothing stops a caller from
    initializing one region and deriving from the other, so the region
    flag must be passed consistently to ``init`` and every derivation.
    """

    PRIVATE_KEY = "private-key"
    CUSTOMER = "customer"


class RegionStatus(str, Enum):
    """Lifecycle state of an OTP region.

    ``UNINITIALIZED`` may move to ``INITIALIZED`` exactly once.
    ``INITIALIZED`` and ``UNSUPPORTED`` never change.
    """

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    UNSUPPORTED = "unsupported"


class InitOutcome(str, Enum):
    """Successful result of ``SecretStore.init``."""

    INITIALIZED = "initialized"
    ALREADY_INITIALIZED = "already-initialized"


class DeviceStatus(BaseModel):
    """Diagnostic report for both OTP regions of the device."""

    is_raspberry_pi: bool
    has_private_key: bool
    has_customer_otp: bool
    private_key: RegionStatus
    customer_otp: RegionStatus
