"""
Key Derivation — HKDF-SHA3-512 expansion of the device secret.

Every derived key is HKDF(secret, salt, info) truncated to the requested
length, with:
- hash: SHA3-512 (64-byte blocks, at most 255 blocks per derivation)
- salt: none unless the caller supplies one. Per RFC 5869 a missing salt is
  a string of 64 zero bytes, which is also what an empty salt amounts to.
  This convention is part of the derived-key contract: changing it changes
  every key of every device.
- info: caller-chosen context label separating independent keys

Security Note:
    Never log secrets or derived key material. Only log lengths.
"""
import uuid
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .exceptions import InvalidLength
from .secret import DeviceSecret

HASH_SIZE = 64  # SHA3-512 digest size
MAX_LENGTH = 255 * HASH_SIZE
UUID_LENGTH = 16

Info = Union[str, bytes]


def _info_bytes(info: Info) -> bytes:
    if isinstance(info, str):
        return info.encode("utf-8")
    return bytes(info)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive(
    secret: DeviceSecret,
    info: Info,
    length: int,
    salt: Optional[bytes] = None,
) -> bytes:
    """Derive ``length`` bytes bound to ``info`` from the device secret.

    Args:
        secret: Device secret used as input key material.
        info: Context label; ``str`` values are UTF-8 encoded.
        length: Number of bytes to derive (0 to 16320).
        salt: Optional HKDF salt. ``None`` means 64 zero bytes.

    Returns:
        Derived key bytes.

    Raises:
        InvalidLength: If ``length`` is negative or exceeds 255 SHA3-512 blocks.
    """
    if length < 0 or length > MAX_LENGTH:
        raise InvalidLength(
            f"Requested key length {length} is out of range "
            f"(0 to {MAX_LENGTH} bytes)"
        )
    if length == 0:
        return b""
    hkdf = HKDF(
        algorithm=hashes.SHA3_512(),
        length=length,
        salt=salt,
        info=_info_bytes(info),
    )
    return hkdf.derive(secret._expose())


def derive_hex(
    secret: DeviceSecret,
    info: Info,
    length: int,
    salt: Optional[bytes] = None,
) -> str:
    """Derive ``length`` bytes and return them as lowercase hex."""
    return derive(secret, info, length, salt=salt).hex()


def derive_uuid(
    secret: DeviceSecret,
    info: Info,
    salt: Optional[bytes] = None,
) -> str:
    """Derive a version 4 UUID bound to ``info``.

    The 16 derived bytes get the RFC 4122 version nibble (``4``) in byte 6
    and the variant bits (``10``) in byte 8.

    Returns:
        Canonical ``8-4-4-4-12`` hyphenated UUID string.
    """
    raw = bytearray(derive(secret, info, UUID_LENGTH, salt=salt))
    raw[6] = (raw[6] & 0x0F) | 0x40
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))
