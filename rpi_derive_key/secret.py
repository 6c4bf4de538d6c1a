"""
Device Secret — Container confining the 256-bit root secret.

Security Note:
    A ``DeviceSecret`` has no readable ``repr``/``str``, cannot be pickled
    or hashed, and compares in constant time. The raw bytes are reachable
    only through ``_expose()``, whose sole caller is the key deriver.
    ``wipe()`` overwrites the buffer with zeros once it is no longer needed.
"""
import hmac

SECRET_SIZE = 32  # 256-bit device secret


class DeviceSecret:
    """The device-specific secret read from OTP memory."""

    __slots__ = ("_buffer",)

    def __init__(self, value: bytes):
        if len(value) != SECRET_SIZE:
            raise ValueError(
                f"Device secret must be exactly {SECRET_SIZE} bytes, "
                f"got {len(value)}"
            )
        self._buffer = bytearray(value)

    def __repr__(self) -> str:
        return "DeviceSecret(<redacted>)"

    __str__ = __repr__

    def __format__(self, format_spec: str) -> str:
        return repr(self)

    def __reduce__(self):
        raise TypeError("DeviceSecret cannot be serialized")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeviceSecret):
            return NotImplemented
        return hmac.compare_digest(bytes(self._buffer), bytes(other._buffer))

    __hash__ = None  # type: ignore[assignment]

    def __enter__(self) -> "DeviceSecret":
        return self

    def __exit__(self, *exc) -> None:
        self.wipe()

    def is_zero(self) -> bool:
        """True if every bit is unset, i.e. the OTP rows were never programmed."""
        return not any(self._buffer)

    def wipe(self) -> None:
        """Overwrite the secret with zeros."""
        for idx in range(len(self._buffer)):
            self._buffer[idx] = 0

    def _expose(self) -> bytes:
        return bytes(self._buffer)
