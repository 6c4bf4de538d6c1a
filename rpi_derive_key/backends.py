"""
Secret Backends — Storage media for the device secret.

The set of backends is closed:
- ``PrivateOTPBackend``: the SoC private-key OTP rows (recent firmware)
- ``CustomerOTPBackend``: the customer-programmable OTP rows
- ``FakeBackend``: an in-memory secret for tests and development

OTP programming is irreversible. Backends never retry a write and refuse to
program rows that already hold a value.

Security Note:
    Never log secret material. Only log regions and states.
"""
import hmac
import hashlib
import logging
import threading
import weakref
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .exceptions import (
    BackendAlreadyInitialized,
    BackendUnsupported,
    ReadFailure,
    RegionInUse,
    WriteFailure,
)
from .models import OTPRegion, RegionStatus
from .secret import SECRET_SIZE, DeviceSecret
from .vcio import (
    TAG_GET_CUSTOMER_OTP,
    TAG_GET_PRIVATE_KEY,
    TAG_SET_CUSTOMER_OTP,
    TAG_SET_PRIVATE_KEY,
    VCIO_PATH,
    Vcio,
    VcioRequestError,
)

logger = logging.getLogger("rpi_derive_key")

VcioFactory = Callable[[str], Vcio]

# OTP regions currently owned by a hardware backend in this process.
_claimed_regions: set[OTPRegion] = set()
_claim_lock = threading.Lock()


def _release(region: OTPRegion) -> None:
    with _claim_lock:
        _claimed_regions.discard(region)


class HardwareSecretBackend(ABC):
    """Capability set shared by all secret backends."""

    region: Optional[OTPRegion] = None

    @abstractmethod
    def probe(self) -> RegionStatus:
        """Report the lifecycle state of the backing storage."""

    @abstractmethod
    def initialize(self, random_bytes: bytes) -> None:
        """Store ``random_bytes`` as the device secret, once.

        Raises:
            BackendUnsupported: If the storage is not available.
            BackendAlreadyInitialized: If a secret is already stored.
            WriteFailure: If programming or its verification fails.
        """

    @abstractmethod
    def read_secret(self) -> DeviceSecret:
        """Return the stored device secret.

        Raises:
            ReadFailure: If the secret cannot be retrieved.
        """

    def close(self) -> None:
        """Release the backend."""


# ---------------------------------------------------------------------------
# OTP backends
# ---------------------------------------------------------------------------

class _OTPBackend(HardwareSecretBackend):
    """Shared implementation of the OTP backends.

    Subclasses pick the region and its property tags. Only one OTP backend
    per region may be open in a process at a time.
    """

    region: OTPRegion
    read_tag: int
    write_tag: int

    def __init__(
        self,
        vcio_path: str = VCIO_PATH,
        vcio_factory: VcioFactory = Vcio.open,
    ):
        with _claim_lock:
            if self.region in _claimed_regions:
                raise RegionInUse(
                    f"The {self.region.value} OTP region is already in use "
                    "by another backend in this process"
                )
            _claimed_regions.add(self.region)
        self._path = vcio_path
        self._vcio_factory = vcio_factory
        # The claim is dropped on close() or when the backend is collected.
        self._finalizer = weakref.finalize(self, _release, self.region)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._path}>"

    def close(self) -> None:
        self._finalizer()

    def _open(self) -> Vcio:
        return self._vcio_factory(self._path)

    def probe(self) -> RegionStatus:
        try:
            with self._open() as vcio:
                value = vcio.request(self.read_tag)
        except FileNotFoundError:
            logger.debug("%s does not exist, not a Raspberry Pi", self._path)
            return RegionStatus.UNSUPPORTED
        except VcioRequestError as err:
            logger.debug("Firmware rejected %s OTP read: %s", self.region.value, err)
            return RegionStatus.UNSUPPORTED
        except OSError as err:
            raise ReadFailure(
                f"Unable to read the {self.region.value} OTP region: {err}"
            ) from err
        if any(value):
            status = RegionStatus.INITIALIZED
        else:
            status = RegionStatus.UNINITIALIZED
        logger.debug("%s OTP region is %s", self.region.value, status.value)
        return status

    def initialize(self, random_bytes: bytes) -> None:
        if len(random_bytes) != SECRET_SIZE:
            raise ValueError(
                f"Device secret must be exactly {SECRET_SIZE} bytes, "
                f"got {len(random_bytes)}"
            )
        region = self.region.value
        try:
            vcio = self._open()
        except FileNotFoundError as err:
            raise BackendUnsupported(f"Unable to open {self._path}: {err}") from err
        except OSError as err:
            raise WriteFailure(f"Unable to open {self._path}: {err}") from err
        try:
            with vcio, vcio.lock():
                # Re-check under the lock, another process may have won the race.
                try:
                    current = vcio.request(self.read_tag)
                except VcioRequestError as err:
                    raise BackendUnsupported(
                        f"The firmware does not support the {region} OTP region"
                    ) from err
                except OSError as err:
                    raise WriteFailure(
                        f"Unable to read the {region} OTP region before writing: {err}"
                    ) from err
                if any(current):
                    raise BackendAlreadyInitialized(
                        f"The {region} OTP region has already been programmed"
                    )
                logger.info("Programming the %s OTP region", region)
                try:
                    vcio.request(self.write_tag, random_bytes)
                    written = vcio.request(self.read_tag)
                except OSError as err:
                    raise WriteFailure(
                        f"Programming the {region} OTP region failed: {err}"
                    ) from err
                if not hmac.compare_digest(written, random_bytes):
                    raise WriteFailure(
                        f"Verification of the {region} OTP region failed, "
                        "the rows do not hold the written value"
                    )
        except OSError as err:
            raise WriteFailure(
                f"Unable to lock {self._path} for programming: {err}"
            ) from err
        logger.info("The %s OTP region has been programmed", region)

    def read_secret(self) -> DeviceSecret:
        try:
            with self._open() as vcio:
                return DeviceSecret(vcio.request(self.read_tag))
        except OSError as err:
            raise ReadFailure(
                f"Unable to read the {self.region.value} OTP region: {err}"
            ) from err


class PrivateOTPBackend(_OTPBackend):
    """Device-specific private key stored in OTP rows 56 to 63."""

    region = OTPRegion.PRIVATE_KEY
    read_tag = TAG_GET_PRIVATE_KEY
    write_tag = TAG_SET_PRIVATE_KEY


class CustomerOTPBackend(_OTPBackend):
    """Customer-programmable OTP values stored in rows 36 to 43."""

    region = OTPRegion.CUSTOMER
    read_tag = TAG_GET_CUSTOMER_OTP
    write_tag = TAG_SET_CUSTOMER_OTP


# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------

class FakeBackend(HardwareSecretBackend):
    """Secret derived from an override value instead of hardware.

    The secret is ``SHA3-256(seed)``. For development and tests only.
    """

    def __init__(self, seed: bytes):
        self._seed = seed

    def __repr__(self) -> str:
        return "<FakeBackend>"

    def probe(self) -> RegionStatus:
        return RegionStatus.INITIALIZED

    def initialize(self, random_bytes: bytes) -> None:
        logger.debug("Fake backend ignores initialization")

    def read_secret(self) -> DeviceSecret:
        return DeviceSecret(hashlib.sha3_256(self._seed).digest())
