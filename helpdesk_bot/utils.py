import re

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_leading_mention(text: str) -> str:
    """
    Remove a leading Slack user mention like '<@U123ABC>' plus any following whitespace.
    This helps us reason about the actual user message length and content.
    """
    return re.sub(r"^<@[^>]+>\s*", "", text or "").strip()


def strip_html(text: str) -> str:
    """Remove markup tags and collapse runs of whitespace into single spaces."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", _HTML_TAG_RE.sub(" ", text)).strip()


def make_excerpt(content: str, max_length: int, placeholder: str = "") -> str:
    """Plain-text prefix of the content, suffixed with '...' when truncated."""
    cleaned = strip_html(content)
    if not cleaned:
        return placeholder
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length] + "..."


def make_word_excerpt(text: str, max_length: int) -> str:
    """
    Like make_excerpt, but prefer to cut at a word boundary when one is close
    to the limit (within the last third of it).
    """
    cleaned = strip_html(text)
    if len(cleaned) <= max_length:
        return cleaned

    truncated = cleaned[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 2 // 3:
        return truncated[:last_space] + "..."
    return truncated + "..."


def sanitize_slack_id(identifier: str | None, name: str = "identifier", allow_none: bool = False) -> str | None:
    """
    Sanitize and validate Slack IDs (team_id, channel_id, user_id).

    Slack IDs are typically uppercase alphanumeric strings, but we allow
    lowercase and common separators for robustness. Rejects MongoDB operators
    and special characters that could be used for injection.

    Raises:
        ValueError: If identifier is invalid or contains dangerous characters
    """
    if identifier is None:
        if allow_none:
            return None
        raise ValueError(f"{name} cannot be None")

    if not isinstance(identifier, str):
        raise ValueError(f"{name} must be a string, got {type(identifier).__name__}")

    identifier = identifier.strip()

    if not identifier:
        raise ValueError(f"{name} cannot be empty")

    if not re.match(r"^[A-Za-z0-9_-]+$", identifier):
        raise ValueError(
            f"{name} contains invalid characters. "
            f"Only alphanumeric characters, hyphens, and underscores are allowed: {identifier}"
        )

    MAX_ID_LENGTH = 256
    if len(identifier) > MAX_ID_LENGTH:
        raise ValueError(f"{name} is too long (max {MAX_ID_LENGTH} characters): {len(identifier)}")

    return identifier



def get_mongodb_error_message(error: Exception, operation_name: str = "operation") -> str:
    """
    Convert MongoDB errors to user-friendly messages.

    Args:
        error: The exception that occurred, either a driver error or a
            StoreError wrapping one
        operation_name: Name of the operation for logging context

    Returns:
        User-friendly error message string
    """
    from pymongo.errors import (
        ConnectionFailure,
        ServerSelectionTimeoutError,
        OperationFailure,
        PyMongoError,
    )
    from helpdesk_bot.logger import logger

    logger.error("MongoDB error in %s: %s", operation_name, error)

    # StoreError wraps the driver error; classify on the original cause
    cause = error.__cause__ if error.__cause__ is not None else error

    if isinstance(cause, (ConnectionFailure, ServerSelectionTimeoutError)):
        return (
            "I'm having trouble connecting to the database. "
            "Please try again in a moment."
        )
    elif isinstance(cause, OperationFailure):
        return (
            "A database operation failed. "
            "Please try again or contact support if the issue persists."
        )
    elif isinstance(cause, PyMongoError):
        return (
            "A database error occurred. "
            "Please try again in a moment."
        )
    else:
        return (
            "An unexpected error occurred while accessing the database. "
            "Please try again or contact support."
        )
