"""Unit tests for structured logging setup."""

import pytest
import structlog
from structlog.testing import capture_logs

from festival_pass.logging_config import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_json_renderer():
    configure_logging(log_level="INFO", format_as_json=True)

    processors = structlog.get_config()["processors"]
    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert structlog.stdlib.add_logger_name in processors


def test_console_renderer():
    configure_logging(log_level="DEBUG", format_as_json=False)

    assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)


def test_events_carry_key_values():
    configure_logging(log_level="INFO", format_as_json=True)

    with capture_logs() as logs:
        get_logger("festival_pass.test").info("ticket_sold", card_id="c1", price="9.00")

    assert logs == [
        {"event": "ticket_sold", "card_id": "c1", "price": "9.00", "log_level": "info"}
    ]
