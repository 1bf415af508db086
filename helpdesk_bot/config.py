"""
Configuration and environment variable validation.
"""
import os
import sys

from helpdesk_bot.logger import logger


def _is_set(var_name: str) -> bool:
    value = os.getenv(var_name)
    return bool(value and value.strip())


def validate_environment_variables() -> None:
    """
    Validate all required environment variables at startup.
    Exits the application with a clear error message if any are missing.
    """
    required_vars = {
        "SLACK_BOT_TOKEN": "Slack bot token for authentication",
        "SLACK_SIGNING_SECRET": "Slack signing secret for request verification",
        "MONGO_URL": "MongoDB connection URL",
    }

    optional_vars = {
        "OPENAI_API_KEY": "OpenAI API key for keyword extraction and analysis (falls back to local rules)",
        "KB_API_TOKEN": "Knowledge base API token (sync is unavailable without it)",
        "KB_API_BASE_URL": "Knowledge base API endpoint",
        "ADMIN_USERNAME": "Admin API username",
        "ADMIN_PASSWORD": "Admin API password (admin endpoints are disabled without it)",
        "SYNC_INTERVAL_HOURS": "Hours between scheduled syncs (defaults to 24)",
        "PORT": "Server port (defaults to 3000 if not set)",
        "ENV": "Environment (prod/dev, defaults to dev if not set)",
    }

    missing_vars = []

    for var_name, description in required_vars.items():
        if not _is_set(var_name):
            missing_vars.append(f"  - {var_name}: {description}")
            logger.error("Missing required environment variable: %s", var_name)

    if missing_vars:
        error_message = (
            "Missing required environment variables:\n"
            + "\n".join(missing_vars)
            + "\n\nPlease set these variables before starting the application."
        )
        logger.critical(error_message)
        print(error_message, file=sys.stderr)
        sys.exit(1)

    # Log optional variables status
    for var_name, description in optional_vars.items():
        if not _is_set(var_name):
            logger.info("Optional environment variable not set: %s - %s", var_name, description)
        else:
            logger.debug("Environment variable set: %s", var_name)

    logger.info("Environment variable validation completed successfully")


def is_openai_configured() -> bool:
    return _is_set("OPENAI_API_KEY")


def is_kb_api_configured() -> bool:
    return _is_set("KB_API_TOKEN")


def is_mongo_configured() -> bool:
    return _is_set("MONGO_URL")


def is_slack_configured() -> bool:
    return _is_set("SLACK_BOT_TOKEN") and _is_set("SLACK_SIGNING_SECRET")


def get_service_status() -> dict:
    """Which external dependencies have credentials. Never touches the network."""
    return {
        "slack_bot": is_slack_configured(),
        "database": is_mongo_configured(),
        "kb_api": is_kb_api_configured(),
        "openai": is_openai_configured(),
    }
