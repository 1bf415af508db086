"""Tests for helpdesk_bot.utils."""

import pytest
from pymongo.errors import OperationFailure, PyMongoError, ServerSelectionTimeoutError

from helpdesk_bot.errors import StoreError
from helpdesk_bot.utils import (
    get_mongodb_error_message,
    make_excerpt,
    sanitize_slack_id,
    strip_html,
    strip_leading_mention,
)


def _store_error(cause):
    error = StoreError("operation failed")
    error.__cause__ = cause
    return error


class TestGetMongodbErrorMessage:
    def test_connection_failure(self) -> None:
        message = get_mongodb_error_message(ServerSelectionTimeoutError("no servers"), "count")
        assert "trouble connecting to the database" in message

    def test_classifies_wrapped_cause(self) -> None:
        message = get_mongodb_error_message(_store_error(OperationFailure("not authorized")), "count")
        assert message.startswith("A database operation failed.")

    def test_other_driver_error(self) -> None:
        message = get_mongodb_error_message(_store_error(PyMongoError("cursor killed")))
        assert message.startswith("A database error occurred.")

    def test_non_database_error(self) -> None:
        message = get_mongodb_error_message(RuntimeError("boom"))
        assert message.startswith("An unexpected error occurred")


class TestTextHelpers:
    def test_strip_leading_mention(self) -> None:
        assert strip_leading_mention("<@U123ABC>  printer offline") == "printer offline"

    def test_strip_html(self) -> None:
        assert strip_html("<p>Open <b>Settings</b></p>\n\n<br>now") == "Open Settings now"

    def test_make_excerpt(self) -> None:
        assert make_excerpt("<p>" + "a" * 200 + "</p>", 150) == "a" * 150 + "..."
        assert make_excerpt("<p></p>", 150, "placeholder") == "placeholder"


class TestSanitizeSlackId:
    def test_valid(self) -> None:
        assert sanitize_slack_id(" T123_ab ") == "T123_ab"

    @pytest.mark.parametrize("value", ["", "$ne", "T1;drop", None, 42])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            sanitize_slack_id(value)
