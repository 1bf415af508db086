"""
Rate limiting.

RateLimiter is a sliding-window quota persisted in MongoDB, used to cap AI
analysis requests per Slack team. Throttle spaces out consecutive model calls
made by the keyword backfill.
"""
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pymongo.errors import PyMongoError

from helpdesk_bot.constants import (
    KEYWORD_BACKFILL_DELAY_SECONDS,
    RATE_LIMIT_OPENAI_MAX,
    RATE_LIMIT_OPENAI_WINDOW_SECONDS,
)
from helpdesk_bot.logger import logger
from helpdesk_bot.utils import sanitize_slack_id


def _as_aware(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return _as_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def _format_wait(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours > 0:
        wait_msg = f"{hours} hour{'s' if hours != 1 else ''}"
        if minutes > 0:
            wait_msg += f" and {minutes} minute{'s' if minutes != 1 else ''}"
        return wait_msg
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


class RateLimiter:
    """
    Rate limiter using sliding window algorithm with MongoDB storage.
    Tracks requests per organization (team_id). Fails open on database errors.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        operation_name: str = "default",
        collection_getter: Callable | None = None,
    ):
        """
        Args:
            max_requests: Maximum number of requests allowed in the window
            window_seconds: Time window in seconds
            operation_name: Name of the operation being rate limited
            collection_getter: Returns the pymongo collection holding the windows
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.operation_name = operation_name
        if collection_getter is None:
            from helpdesk_bot.db import get_rate_limits_collection
            collection_getter = get_rate_limits_collection
        self._collection_getter = collection_getter

    def _get_rate_limit_key(self, team_id: str) -> str:
        """Generate a unique key for rate limiting per organization."""
        return f"{self.operation_name}:{team_id}"

    def _valid_requests(self, doc: dict, window_start: datetime) -> list[datetime]:
        valid = []
        for req in doc.get("requests", []):
            req_dt = _as_aware(req)
            if req_dt is not None and req_dt >= window_start:
                valid.append(req_dt)
        return valid

    def is_allowed(self, team_id: str) -> tuple[bool, Optional[str]]:
        """
        Check if request is allowed under rate limit, and record it if so.

        Returns:
            Tuple of (is_allowed: bool, error_message: Optional[str])
        """
        try:
            team_id = sanitize_slack_id(team_id, "team_id")
            collection = self._collection_getter()

            key = self._get_rate_limit_key(team_id)
            now = datetime.now(timezone.utc)
            window_start = now - timedelta(seconds=self.window_seconds)

            rate_limit_doc = collection.find_one({"rate_limit_key": key})

            if not rate_limit_doc:
                collection.insert_one({
                    "rate_limit_key": key,
                    "team_id": team_id,
                    "requests": [now],
                    "created_at": now,
                    "updated_at": now,
                })
                return True, None

            valid_requests = self._valid_requests(rate_limit_doc, window_start)

            if len(valid_requests) >= self.max_requests:
                reset_time = min(valid_requests) + timedelta(seconds=self.window_seconds)
                time_until_reset = (reset_time - now).total_seconds()
                if time_until_reset > 0:
                    return False, (
                        f"You've reached the daily limit of {self.max_requests} AI requests. "
                        f"Please try again in {_format_wait(time_until_reset)}. "
                        f"(Limit resets daily)"
                    )

            valid_requests.append(now)
            collection.update_one(
                {"rate_limit_key": key},
                {"$set": {"requests": valid_requests, "updated_at": now}},
            )
            return True, None

        except PyMongoError as e:
            logger.exception("MongoDB error in rate limiter for team_id=%s: %s", team_id, e)
            return True, None
        except ValueError as e:
            logger.warning("Rejected rate limit key for team_id=%r: %s", team_id, e)
            return True, None
        except Exception as e:
            logger.exception("Unexpected error in rate limiter for team_id=%s: %s", team_id, e)
            return True, None

    def get_remaining_requests(self, team_id: str) -> int:
        try:
            team_id = sanitize_slack_id(team_id, "team_id")
            window_start = datetime.now(timezone.utc) - timedelta(seconds=self.window_seconds)

            doc = self._collection_getter().find_one({"rate_limit_key": self._get_rate_limit_key(team_id)})
            if not doc:
                return self.max_requests
            return max(0, self.max_requests - len(self._valid_requests(doc, window_start)))
        except Exception as e:
            logger.exception("Error getting remaining requests for team_id=%s: %s", team_id, e)
            return self.max_requests  # Fail open


class Throttle:
    """Enforces a minimum spacing between consecutive calls to wait()."""

    def __init__(
        self,
        min_interval_seconds: float = KEYWORD_BACKFILL_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            now = self._clock()
            if self._last_call is not None:
                remaining = self.min_interval_seconds - (now - self._last_call)
                if remaining > 0:
                    self._sleep(remaining)
                    now = self._clock()
            self._last_call = now


# Pre-configured rate limiter for AI analysis calls in the chat turn
openai_rate_limiter = RateLimiter(
    max_requests=RATE_LIMIT_OPENAI_MAX,
    window_seconds=RATE_LIMIT_OPENAI_WINDOW_SECONDS,
    operation_name="openai_api",
)
