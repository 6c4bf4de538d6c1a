"""
VCIO — Access to the VideoCore mailbox property interface via ``/dev/vcio``.

OTP rows are read and written by sending property requests to the firmware.
A request is a buffer of 16 native-endian 32-bit words::

    [size, code, tag, value_size, tag_code, row, count, v0 .. v7, end]

where ``v0 .. v7`` carry the 32 value bytes, each word big-endian. The
firmware answers in place and sets ``code`` to ``0x80000000`` on success.
"""
import os
import array
import fcntl
import struct
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger("rpi_derive_key")

VCIO_PATH = "/dev/vcio"

BUFFER_WORDS = 16
VALUE_SIZE = 32
VALUE_OFFSET = 7  # index of the first value word
ROW_COUNT = 8
RESPONSE_SUCCESS = 0x80000000

# Property tags for the OTP rows holding the device secret.
TAG_GET_CUSTOMER_OTP = 0x00030021  # rows 36 to 43
TAG_SET_CUSTOMER_OTP = 0x00038021
TAG_GET_PRIVATE_KEY = 0x00030081  # rows 56 to 63, needs recent firmware
TAG_SET_PRIVATE_KEY = 0x00038081


def _iowr(type_: int, nr: int, size: int) -> int:
    # Linux _IOC(_IOC_READ | _IOC_WRITE, type, nr, size)
    return (3 << 30) | (size << 16) | (type_ << 8) | nr


# The kernel computes the request code with the size of a `char *`.
IOCTL_PROPERTY = _iowr(100, 0, struct.calcsize("P"))


class VcioRequestError(OSError):
    """The firmware rejected a property request."""

    def __init__(self, tag: int, code: int):
        self.tag = tag
        self.code = code
        super().__init__(
            f"Request 0x{tag:08X} to VCIO property interface "
            f"unsuccessful (0x{code:08X})"
        )


def encode_request(tag: int, value: Optional[bytes] = None) -> list[int]:
    """Build the property request buffer for an OTP read or write.

    Args:
        tag: Property tag, see ``TAG_*``.
        value: 32 bytes to write, or ``None`` for a read.

    Returns:
        List of 16 unsigned 32-bit words.
    """
    buffer = [
        BUFFER_WORDS * 4,   # size of the buffer in bytes
        0,                  # process request
        tag,
        8 + VALUE_SIZE,     # size of the value buffer in bytes
        0,                  # tag request code
        0,                  # start at row 0
        ROW_COUNT,          # all 8 rows
        0, 0, 0, 0, 0, 0, 0, 0,
        0,                  # end tag
    ]
    if value is not None:
        if len(value) != VALUE_SIZE:
            raise ValueError(
                f"OTP value must be exactly {VALUE_SIZE} bytes, got {len(value)}"
            )
        words = struct.unpack(">8I", value)
        buffer[VALUE_OFFSET:VALUE_OFFSET + ROW_COUNT] = words
    return buffer


def decode_value(buffer: list[int]) -> bytes:
    """Extract the 32 value bytes from an answered request buffer."""
    return struct.pack(
        ">8I", *buffer[VALUE_OFFSET:VALUE_OFFSET + ROW_COUNT]
    )


class Vcio:
    """Handle to the VCIO device."""

    def __init__(self, fd: int, path: str = VCIO_PATH):
        self._fd = fd
        self.path = path

    @staticmethod
    def exists(path: str = VCIO_PATH) -> bool:
        """Check whether the VCIO device exists."""
        return os.path.exists(path)

    @classmethod
    def open(cls, path: str = VCIO_PATH) -> "Vcio":
        """Open a handle to the VCIO device.

        Raises:
            OSError: If the device cannot be opened.
        """
        fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
        return cls(fd, path)

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> "Vcio":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold an exclusive lock on the device.

        Serializes OTP programming across processes.
        """
        fcntl.flock(self._fd, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(self._fd, fcntl.LOCK_UN)

    def request(self, tag: int, value: Optional[bytes] = None) -> bytes:
        """Send an OTP property request and return the 32 value bytes.

        Raises:
            VcioRequestError: If the firmware rejects the request.
            OSError: If the ioctl fails.
        """
        buffer = array.array("I", encode_request(tag, value))
        fcntl.ioctl(self._fd, IOCTL_PROPERTY, buffer, True)
        if buffer[1] != RESPONSE_SUCCESS:
            raise VcioRequestError(tag, buffer[1])
        return decode_value(list(buffer))


def is_raspberry_pi(path: str = VCIO_PATH) -> bool:
    """Check whether the device is a Raspberry Pi (``/dev/vcio`` exists)."""
    return Vcio.exists(path)


def supports_private_key(path: str = VCIO_PATH) -> bool:
    """Check whether the firmware supports storing a private key."""
    try:
        with Vcio.open(path) as vcio:
            vcio.request(TAG_GET_PRIVATE_KEY)
    except OSError as err:
        logger.debug("Private key OTP not supported: %s", err)
        return False
    return True
