"""Shared fixtures: an in-memory VideoCore mailbox with OTP rows."""
import errno
from contextlib import contextmanager
from typing import Optional

import pytest

from rpi_derive_key.backends import CustomerOTPBackend, PrivateOTPBackend
from rpi_derive_key.vcio import (
    TAG_GET_CUSTOMER_OTP,
    TAG_GET_PRIVATE_KEY,
    TAG_SET_CUSTOMER_OTP,
    TAG_SET_PRIVATE_KEY,
    VcioRequestError,
)

FAKE_SECRET_ENV = "FAKE_RPI_DERIVE_KEY_SECRET"

_READ_TAG = {
    TAG_GET_PRIVATE_KEY: TAG_GET_PRIVATE_KEY,
    TAG_SET_PRIVATE_KEY: TAG_GET_PRIVATE_KEY,
    TAG_GET_CUSTOMER_OTP: TAG_GET_CUSTOMER_OTP,
    TAG_SET_CUSTOMER_OTP: TAG_GET_CUSTOMER_OTP,
}


class FakeMailbox:
    """OTP rows behind the property interface.

    Programming only ever sets bits, like real OTP memory.
    """

    def __init__(self, private_key_supported: bool = True):
        self.private_key_supported = private_key_supported
        self.rows = {
            TAG_GET_PRIVATE_KEY: bytes(32),
            TAG_GET_CUSTOMER_OTP: bytes(32),
        }
        self.requests: list[int] = []
        self.lock_count = 0
        self.fail_reads = False
        self.fail_writes = False
        self.corrupt_writes = False
        # Simulates another process programming the rows while we wait for the lock.
        self.program_on_lock: Optional[bytes] = None

    def open(self, path: str) -> "FakeVcio":
        return FakeVcio(self)

    def program(self, tag: int, value: bytes) -> None:
        read_tag = _READ_TAG[tag]
        current = self.rows[read_tag]
        self.rows[read_tag] = bytes(a | b for a, b in zip(current, value))


class FakeVcio:
    def __init__(self, mailbox: FakeMailbox):
        self.mailbox = mailbox
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self.closed = True

    @contextmanager
    def lock(self):
        self.mailbox.lock_count += 1
        if self.mailbox.program_on_lock is not None:
            self.mailbox.program(TAG_SET_PRIVATE_KEY, self.mailbox.program_on_lock)
            self.mailbox.program_on_lock = None
        yield

    def request(self, tag: int, value: Optional[bytes] = None) -> bytes:
        mailbox = self.mailbox
        mailbox.requests.append(tag)
        read_tag = _READ_TAG[tag]
        if read_tag == TAG_GET_PRIVATE_KEY and not mailbox.private_key_supported:
            raise VcioRequestError(tag, 0x80000001)
        if value is None:
            if mailbox.fail_reads:
                raise OSError(errno.EIO, "Input/output error")
            return mailbox.rows[read_tag]
        if mailbox.fail_writes:
            raise OSError(errno.EIO, "Input/output error")
        if mailbox.corrupt_writes:
            value = bytes([value[0] ^ 0xFF]) + value[1:]
        mailbox.program(tag, value)
        return mailbox.rows[read_tag]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of the tests."""
    monkeypatch.delenv(FAKE_SECRET_ENV, raising=False)
    monkeypatch.delenv("RPI_DERIVE_KEY_CUSTOMER_OTP", raising=False)
    monkeypatch.delenv("RPI_DERIVE_KEY_SALT", raising=False)


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def private_backend(mailbox):
    backend = PrivateOTPBackend(vcio_factory=mailbox.open)
    yield backend
    backend.close()


@pytest.fixture
def customer_backend(mailbox):
    backend = CustomerOTPBackend(vcio_factory=mailbox.open)
    yield backend
    backend.close()


@pytest.fixture
def missing_vcio(tmp_path):
    """Path of a VCIO device that does not exist."""
    return str(tmp_path / "vcio")


@pytest.fixture
def old_firmware():
    """Mailbox of a firmware without private key support."""
    return FakeMailbox(private_key_supported=False)
