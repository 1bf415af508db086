"""Shared fixtures and test doubles."""

from datetime import datetime, timezone

import pytest

from helpdesk_bot.errors import ModelError
from helpdesk_bot.kb_client import filter_quality
from helpdesk_bot.keywords import BasicKeywordExtractor
from helpdesk_bot.models import Article, RawArticle
from helpdesk_bot.rate_limiter import Throttle
from helpdesk_bot.store import InMemoryArticleStore


class FakeSource:
    """Upstream stand-in: serves a fixed raw article list through the real quality filter."""

    def __init__(self, articles=None, error=None):
        self.articles = list(articles or [])
        self.error = error
        self.last_fetch_complete = True
        self.calls = 0

    def fetch_quality_articles(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return filter_quality(self.articles)


class FakeChatModel:
    """ChatModel stand-in returning canned JSON payloads, or raising ModelError."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def complete_json(self, messages, max_tokens, temperature=0.1, timeout=None):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        if not self.responses:
            raise ModelError("no canned response left")
        return self.responses.pop(0)


def raw(
    article_id,
    title="Title",
    content="Some content",
    tags=None,
    is_private=False,
    status=2,
    last_updated=None,
):
    return RawArticle(
        id=article_id,
        title=title,
        content=content,
        url=f"https://kb.example.com/article/{article_id}",
        tags=list(tags or []),
        is_private=is_private,
        status=status,
        last_updated=last_updated,
    )


def article(
    article_id,
    title="Title",
    content="Some content",
    search_keywords=None,
    last_updated=None,
    is_active=True,
):
    return Article(
        article_id=article_id,
        title=title,
        content=content,
        url=f"https://kb.example.com/article/{article_id}",
        search_keywords=search_keywords,
        last_updated=last_updated,
        is_active=is_active,
    )


@pytest.fixture
def make_raw():
    return raw


@pytest.fixture
def make_article():
    return article


@pytest.fixture
def store():
    return InMemoryArticleStore()


@pytest.fixture
def no_wait_throttle():
    return Throttle(min_interval_seconds=0, sleep=lambda seconds: None)


@pytest.fixture
def basic_extractor():
    return BasicKeywordExtractor()


@pytest.fixture
def fake_source_cls():
    return FakeSource


@pytest.fixture
def fake_model_cls():
    return FakeChatModel


@pytest.fixture
def jan():
    return lambda day: datetime(2024, 1, day, tzinfo=timezone.utc)
