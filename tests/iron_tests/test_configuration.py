"""
Configuration, exception and logging tests
"""

import json
import logging

import pytest

from iron.core import config
from iron.core.config import Config, ConfigurationError, _get_int
from iron.core.exceptions import (
    DerivationError,
    IronError,
    NetworkNotFoundError,
    PeerSendError,
    PersistenceError,
)
from iron.core.logging_config import setup_logging


class TestConfig:

    def test_defaults_exposed_on_config(self):
        assert Config.DERIVATION_PATH == config.DERIVATION_PATH
        assert Config.DB_PATH == config.DB_PATH
        assert config.DEFAULT_DERIVATION_PATH == "m/44'/60'/0'/0"

    def test_get_int_default(self, monkeypatch):
        monkeypatch.delenv("IRON_TEST_INT", raising=False)

        assert _get_int("IRON_TEST_INT", 3) == 3

    def test_get_int_from_env(self, monkeypatch):
        monkeypatch.setenv("IRON_TEST_INT", " 12 ")

        assert _get_int("IRON_TEST_INT", 3) == 12

    @pytest.mark.parametrize("value", ["abc", "1.5", "-1"])
    def test_get_int_invalid(self, monkeypatch, value):
        monkeypatch.setenv("IRON_TEST_INT", value)

        with pytest.raises(ConfigurationError) as excinfo:
            _get_int("IRON_TEST_INT", 0)
        assert excinfo.value.details["env_var"] == "IRON_TEST_INT"


class TestExceptions:

    @pytest.mark.parametrize(
        "exc_type",
        [NetworkNotFoundError, DerivationError, PersistenceError, PeerSendError, ConfigurationError],
    )
    def test_hierarchy(self, exc_type):
        assert issubclass(exc_type, IronError)

    def test_details_default(self):
        error = IronError("boom")

        assert error.message == "boom"
        assert error.details == {}
        assert error.recoverable is False

    def test_persistence_error_is_recoverable(self):
        assert PersistenceError("disk full").recoverable is True

    def test_network_not_found_fields(self):
        error = NetworkNotFoundError("missing", name="x", chain_id=7)

        assert error.name == "x"
        assert error.chain_id == 7


class TestLogging:

    def test_json_output(self, tmp_path):
        log_file = tmp_path / "logs" / "iron.json"
        logger = setup_logging(
            name="iron.test_logging",
            log_file=str(log_file),
            level="DEBUG",
            environment="test",
            enable_console=False,
        )

        logger.info("Network switched", extra={"network": "anvil"})
        for handler in logger.handlers:
            handler.flush()

        record = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert record["message"] == "Network switched"
        assert record["network"] == "anvil"
        assert record["environment"] == "test"
        assert record["service"] == "iron"
        assert record["source"]["function"] == "test_json_output"

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def test_setup_logging_replaces_handlers(self):
        setup_logging(name="iron", level="WARNING", environment="test")
        logger = setup_logging(name="iron", level="DEBUG", environment="test")

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
