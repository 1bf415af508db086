"""
Client for the upstream knowledge base API.

Pulls every article page by page and normalizes the upstream records into
RawArticle objects. A failing page stops the loop but keeps what was already
gathered; deciding whether a partial pull is good enough is up to the caller.
"""
import os
from datetime import datetime
from typing import Any

import requests

from helpdesk_bot.constants import (
    KB_API_BASE_URL,
    KB_API_MAX_PAGES,
    KB_API_PAGE_SIZE,
    KB_API_TIMEOUT_SECONDS,
    KB_ARTICLE_URL_TEMPLATE,
    KB_PLACEHOLDER_TITLE,
    KB_STATUS_PUBLISHED,
)
from helpdesk_bot.errors import ConfigError, UpstreamError
from helpdesk_bot.logger import logger
from helpdesk_bot.models import RawArticle


def process_tags(tags: Any) -> list[str]:
    """Comma-separated string or array -> trimmed, de-duplicated list in original order."""
    if not tags:
        return []
    if isinstance(tags, str):
        candidates = tags.split(",")
    elif isinstance(tags, (list, tuple)):
        candidates = [str(tag) for tag in tags if tag is not None]
    else:
        return []

    result = []
    for tag in candidates:
        tag = tag.strip()
        if tag and tag not in result:
            result.append(tag)
    return result


def parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Ignoring unparseable timestamp: %r", value)
    return None


def parse_status(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_items(items: list, article_url_template: str = KB_ARTICLE_URL_TEMPLATE) -> list[RawArticle]:
    """
    Map upstream items onto RawArticle. Records without an id, without
    content, or carrying only the placeholder title are dropped.
    """
    articles = []
    for item in items or []:
        if not isinstance(item, dict):
            continue

        kb_id = item.get("KBID")
        article_id = str(kb_id).strip() if kb_id is not None else ""
        title = item.get("KBProduct") or KB_PLACEHOLDER_TITLE
        content = item.get("KBContext") or ""

        if not article_id or not content or title == KB_PLACEHOLDER_TITLE:
            continue

        articles.append(
            RawArticle(
                id=article_id,
                title=title,
                content=content,
                url=article_url_template.format(article_id=article_id),
                category=item.get("KBCategory") or "",
                tags=process_tags(item.get("KBKeywords")),
                last_updated=parse_timestamp(item.get("KBLastUpdate")),
                is_private=item.get("KBIsPrivate") is True,
                status=parse_status(item.get("KBStatus")),
            )
        )
    return articles


def is_quality_article(article: RawArticle) -> bool:
    return (
        not article.is_private
        and article.status == KB_STATUS_PUBLISHED
        and bool(article.content and article.content.strip())
    )


def filter_quality(articles: list[RawArticle]) -> list[RawArticle]:
    """Keep only public, published articles with non-blank content."""
    return [article for article in articles if is_quality_article(article)]


class KnowledgeBaseClient:
    def __init__(
        self,
        api_token: str | None = None,
        base_url: str = KB_API_BASE_URL,
        article_url_template: str = KB_ARTICLE_URL_TEMPLATE,
        page_size: int = KB_API_PAGE_SIZE,
        max_pages: int = KB_API_MAX_PAGES,
        timeout: float = KB_API_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.api_token = api_token if api_token is not None else os.getenv("KB_API_TOKEN")
        self.base_url = base_url
        self.article_url_template = article_url_template
        self.page_size = page_size
        self.max_pages = max_pages
        self.timeout = timeout
        self.session = session or requests.Session()
        # False when the last fetch_all stopped early on a failed page
        self.last_fetch_complete = True

    def is_configured(self) -> bool:
        return bool(self.api_token and self.api_token.strip())

    def fetch_page(self, page: int) -> tuple[list, int | None]:
        """
        Fetch one page. Returns (items, total_pages); total_pages is None when
        the upstream does not report it.

        Raises:
            UpstreamError: on transport failure, non-2xx status or a malformed body
        """
        try:
            response = self.session.get(
                self.base_url,
                params={"itemsInPage": self.page_size, "page": page},
                headers={"X-API-KEY": self.api_token, "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"Request for page {page} failed: {e}", page=page) from e

        if not response.ok:
            raise UpstreamError(
                f"Knowledge base API error: {response.status_code} - {response.reason}",
                page=page,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"Page {page} is not valid JSON", page=page) from e

        if not isinstance(data, dict):
            raise UpstreamError(f"Page {page} is not a JSON object", page=page)

        items = data.get("items") or []
        if not isinstance(items, list):
            raise UpstreamError(f"Page {page} has a non-list items field", page=page)

        total_pages = data.get("totalPages")
        return items, total_pages if isinstance(total_pages, int) else None

    def fetch_all(self) -> list[RawArticle]:
        """
        Page through the whole upstream set.

        Raises:
            ConfigError: if no API token is configured
        """
        if not self.is_configured():
            raise ConfigError("Knowledge base API token is not configured")

        articles: list[RawArticle] = []
        self.last_fetch_complete = True
        for page in range(1, self.max_pages + 1):
            try:
                items, total_pages = self.fetch_page(page)
            except UpstreamError as e:
                logger.error("Error fetching knowledge base page %s: %s", page, e)
                self.last_fetch_complete = False
                break

            if not items:
                break

            page_articles = parse_items(items, self.article_url_template)
            articles.extend(page_articles)
            logger.debug("Fetched page %s: %s articles", page, len(page_articles))

            if total_pages is not None and page >= total_pages:
                break
        else:
            logger.warning("Reached maximum page limit (%s), stopping fetch", self.max_pages)

        return articles

    def fetch_quality_articles(self) -> list[RawArticle]:
        articles = self.fetch_all()
        quality = filter_quality(articles)
        logger.info(
            "Fetched %s articles from knowledge base API, %s pass the quality filter",
            len(articles),
            len(quality),
        )
        return quality
