from datetime import datetime, timezone
from typing import Callable

from helpdesk_bot.logger import logger
from helpdesk_bot.models import SearchResult


class InteractionLog:
    """Support interaction records for analytics, stored in MongoDB."""

    def __init__(self, collection_getter: Callable | None = None):
        if collection_getter is None:
            from helpdesk_bot.db import get_interactions_collection
            collection_getter = get_interactions_collection
        self._collection_getter = collection_getter

    def record(
        self,
        user_id: str,
        user_query: str,
        generated_keywords: list[str],
        found_articles: list[SearchResult],
        ai_response: dict,
        response_time_ms: int,
    ) -> None:
        """
        Store one chat turn. Analytics are non-critical, so failures are logged and swallowed.
        """
        try:
            self._collection_getter().insert_one({
                "user_id": user_id,
                "user_query": user_query,
                "generated_keywords": list(generated_keywords),
                "found_articles": [result.to_dict() for result in found_articles],
                "ai_response": ai_response,
                "response_time_ms": response_time_ms,
                "was_helpful": None,
                "created_at": datetime.now(timezone.utc),
            })
        except Exception as e:
            logger.exception("Failed to store support interaction for user_id=%s: %s", user_id, e)

    def recent(self, limit: int = 20) -> list[dict]:
        cursor = (
            self._collection_getter()
            .find({}, {"_id": 0})
            .sort("created_at", -1)
            .limit(limit)
        )
        return list(cursor)
