"""Data models for the knowledge base pipeline."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from helpdesk_bot.constants import KB_STATUS_PUBLISHED


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RawArticle:
    """Article normalized from one upstream API item, before it reaches the store."""
    id: str
    title: str
    content: str
    url: str
    category: str = ""
    tags: list[str] = field(default_factory=list)
    last_updated: Optional[datetime] = None
    is_private: bool = False
    status: int = 0


@dataclass
class Article:
    """Knowledge base article as held in the store."""
    article_id: str
    title: str
    content: str
    url: str
    tags: list[str] = field(default_factory=list)
    search_keywords: Optional[list[str]] = None
    last_updated: Optional[datetime] = None
    is_active: bool = True
    is_private: bool = False
    status: int = KB_STATUS_PUBLISHED
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_raw(cls, raw: RawArticle) -> "Article":
        return cls(
            article_id=raw.id,
            title=raw.title,
            content=raw.content,
            url=raw.url,
            tags=list(raw.tags),
            search_keywords=[],
            last_updated=raw.last_updated,
            is_private=raw.is_private,
            status=raw.status,
        )

    @classmethod
    def from_document(cls, doc: dict) -> "Article":
        return cls(
            article_id=str(doc["article_id"]),
            title=doc.get("title") or "",
            content=doc.get("content") or "",
            url=doc.get("url") or "",
            tags=list(doc.get("tags") or []),
            search_keywords=(
                list(doc["search_keywords"]) if doc.get("search_keywords") is not None else None
            ),
            last_updated=doc.get("last_updated"),
            is_active=doc.get("is_active", True),
            is_private=doc.get("is_private", False),
            status=doc.get("status", KB_STATUS_PUBLISHED),
            created_at=doc.get("created_at") or utcnow(),
        )

    def to_document(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SyncStats:
    """Summary of one synchronization run."""
    last_sync_time: datetime
    articles_checked: int = 0
    articles_added: int = 0
    articles_updated: int = 0
    keywords_generated: int = 0
    total_articles: int = 0
    errors: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "lastSyncTime": self.last_sync_time.isoformat(),
            "articlesChecked": self.articles_checked,
            "articlesAdded": self.articles_added,
            "articlesUpdated": self.articles_updated,
            "keywordsGenerated": self.keywords_generated,
            "totalArticles": self.total_articles,
            "errors": list(self.errors),
        }


@dataclass
class SearchKeywords:
    """Intent extracted from one user query."""
    primary: list[str] = field(default_factory=list)
    secondary: list[str] = field(default_factory=list)
    context: str = ""

    def all_terms(self) -> list[str]:
        return [*self.primary, *self.secondary]

    def is_empty(self) -> bool:
        return not self.primary and not self.secondary


@dataclass
class ScoredArticle:
    article: Article
    score: float


@dataclass
class SearchResult:
    """Plain search hit handed to the chat turn and the admin surface."""
    article_id: str
    title: str
    url: str
    excerpt: str
    score: float
    last_updated: Optional[datetime] = None
    search_keywords: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_updated"] = self.last_updated.isoformat() if self.last_updated else None
        return data
