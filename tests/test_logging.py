import logging

import pytest
import structlog

from pollbot.logging import (
    get_logger,
    redact_token,
    redact_token_processor,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


class TestRedactToken:
    def test_redacts_bot_token(self) -> None:
        value = redact_token(
            "https://api.telegram.org/bot123456789:ABCdefGHI_jkl/sendMessage"
        )
        assert "123456789" not in value
        assert "bot[REDACTED]" in value

    def test_redacts_bare_token(self) -> None:
        value = redact_token("Token is 123456789:ABCDEFGHIJ_klmnop")
        assert "123456789" not in value
        assert "[REDACTED_TOKEN]" in value

    def test_no_token_unchanged(self) -> None:
        assert redact_token("This is a normal message") == "This is a normal message"


class TestRedactTokenProcessor:
    def test_redacts_event_and_fields(self) -> None:
        event_dict = {
            "event": "telegram.network_error",
            "error": "GET https://api.telegram.org/bot123:secretTOKEN/getMe failed",
            "payload": {"nested": ["123456789:ABCDEFGHIJ_klmnop"]},
            "status": 500,
        }

        result = redact_token_processor(None, "error", event_dict)

        assert "secretTOKEN" not in result["error"]
        assert result["payload"] == {"nested": ["[REDACTED_TOKEN]"]}
        assert result["status"] == 500
        assert result["event"] == "telegram.network_error"


class TestSetupLogging:
    def test_setup_debug_mode(self) -> None:
        setup_logging(debug=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_info_mode(self) -> None:
        setup_logging(debug=False)
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_logger_output_is_redacted(self, capsys) -> None:
        setup_logging(debug=False)
        logger = get_logger("pollbot.tests")

        logger.info("test.event", url="https://api.telegram.org/bot42:hunter2hunter2/x")

        out = capsys.readouterr().out
        assert "hunter2" not in out
        assert "test.event" in out
