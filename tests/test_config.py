"""Tests for DeriverConfig."""
import pytest
from pydantic import ValidationError

from rpi_derive_key.config import (
    CUSTOMER_OTP_ENV,
    FAKE_SECRET_ENV,
    SALT_ENV,
    DeriverConfig,
)
from rpi_derive_key.models import OTPRegion
from rpi_derive_key.vcio import VCIO_PATH


class TestDeriverConfig:
    """Validation of explicit settings."""

    def test_defaults(self):
        config = DeriverConfig()
        assert config.use_customer_otp is False
        assert config.region is OTPRegion.PRIVATE_KEY
        assert config.fake_secret is None
        assert config.uses_fake_secret is False
        assert config.salt is None
        assert config.vcio_path == VCIO_PATH

    def test_customer_region(self):
        assert DeriverConfig(use_customer_otp=True).region is OTPRegion.CUSTOMER

    def test_salt_text_is_encoded(self):
        assert DeriverConfig(salt="fleet-a").salt == b"fleet-a"
        assert DeriverConfig(salt=b"\x00\x01").salt == b"\x00\x01"

    def test_fake_seed(self):
        config = DeriverConfig(fake_secret="debug")
        assert config.uses_fake_secret is True
        assert config.fake_seed() == b"debug"

    def test_fake_seed_without_secret(self):
        with pytest.raises(RuntimeError):
            DeriverConfig().fake_seed()

    def test_fake_secret_is_hidden(self):
        config = DeriverConfig(fake_secret="debug")
        assert "debug" not in repr(config)
        assert "debug" not in str(config.model_dump())

    def test_empty_vcio_path(self):
        with pytest.raises(ValidationError):
            DeriverConfig(vcio_path="")


class TestFromEnv:
    """Loading the configuration from environment variables."""

    def test_empty_environment(self):
        config = DeriverConfig.from_env()
        assert config.uses_fake_secret is False
        assert config.use_customer_otp is False
        assert config.salt is None

    def test_fake_secret(self, monkeypatch):
        monkeypatch.setenv(FAKE_SECRET_ENV, "debug")
        config = DeriverConfig.from_env()
        assert config.fake_seed() == b"debug"

    def test_empty_fake_secret(self, monkeypatch):
        monkeypatch.setenv(FAKE_SECRET_ENV, "")
        config = DeriverConfig.from_env()
        assert config.uses_fake_secret is True
        assert config.fake_seed() == b""

    def test_fake_secret_logs_warning(self, monkeypatch, caplog):
        monkeypatch.setenv(FAKE_SECRET_ENV, "debug")
        with caplog.at_level("WARNING", logger="rpi_derive_key"):
            DeriverConfig.from_env()
        assert FAKE_SECRET_ENV in caplog.text
        assert "debug" not in caplog.text.replace(FAKE_SECRET_ENV, "")

    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("true", True), ("YES", True), ("on", True),
        ("0", False), ("false", False), ("", False),
    ])
    def test_customer_otp(self, monkeypatch, value, expected):
        monkeypatch.setenv(CUSTOMER_OTP_ENV, value)
        assert DeriverConfig.from_env().use_customer_otp is expected

    def test_arguments_override_environment(self, monkeypatch):
        monkeypatch.setenv(CUSTOMER_OTP_ENV, "1")
        monkeypatch.setenv(SALT_ENV, "from-env")
        config = DeriverConfig.from_env(use_customer_otp=False, salt="from-arg")
        assert config.use_customer_otp is False
        assert config.salt == b"from-arg"

    def test_salt(self, monkeypatch):
        monkeypatch.setenv(SALT_ENV, "fleet-a")
        assert DeriverConfig.from_env().salt == b"fleet-a"
