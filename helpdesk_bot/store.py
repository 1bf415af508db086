"""
Article storage.

ArticleStore is the repository the synchronizer writes through and the
search engine reads from. InMemoryArticleStore backs tests and local runs;
MongoArticleStore backs production.
"""
import copy
import re
import threading
from abc import ABC, abstractmethod
from typing import Iterable

from pymongo.errors import DuplicateKeyError, PyMongoError

from helpdesk_bot.errors import StoreError
from helpdesk_bot.logger import logger
from helpdesk_bot.models import Article

SEARCHABLE_FIELDS = ("title", "content", "search_keywords")

# Fields a sync-driven update may touch. search_keywords is deliberately absent.
UPDATABLE_FIELDS = {
    "title",
    "content",
    "url",
    "tags",
    "last_updated",
    "is_active",
    "is_private",
    "status",
}


def _check_fields(fields: Iterable[str], allowed: Iterable[str]) -> None:
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Unsupported article fields: {sorted(unknown)}")


class ArticleStore(ABC):
    """Repository of knowledge base articles keyed by external article id."""

    @abstractmethod
    def get(self, article_id: str) -> Article | None:
        ...

    @abstractmethod
    def list_ids(self) -> set[str]:
        ...

    @abstractmethod
    def all(self) -> list[Article]:
        ...

    @abstractmethod
    def count(self, active_only: bool = False) -> int:
        ...

    @abstractmethod
    def insert(self, article: Article) -> None:
        ...

    @abstractmethod
    def update(self, article_id: str, fields: dict) -> None:
        """Partial update of the given fields. Never touches search_keywords."""

    @abstractmethod
    def set_keywords(self, article_id: str, keywords: list[str] | None) -> None:
        ...

    @abstractmethod
    def delete(self, article_id: str) -> None:
        ...

    @abstractmethod
    def find_missing_keywords(self) -> list[Article]:
        ...

    @abstractmethod
    def find_matching(
        self,
        terms: list[str],
        fields: tuple[str, ...] = ("title", "content"),
        active_only: bool = True,
    ) -> list[Article]:
        """Articles where any of the fields contains any term, case-insensitively."""

    def clear_keywords(self) -> int:
        """Reset every keyword list so the next backfill regenerates them."""
        cleared = 0
        for article_id in self.list_ids():
            self.set_keywords(article_id, [])
            cleared += 1
        return cleared


def _field_text(article: Article, field_name: str) -> str:
    value = getattr(article, field_name)
    if field_name == "search_keywords":
        return " ".join(value or [])
    return value or ""


class InMemoryArticleStore(ArticleStore):
    """Dict-backed store. Rows are copied in and out so readers never see partial writes."""

    def __init__(self, articles: Iterable[Article] = ()):
        self._rows: dict[str, Article] = {}
        self._lock = threading.Lock()
        for article in articles:
            self.insert(article)

    def get(self, article_id):
        with self._lock:
            row = self._rows.get(article_id)
            return copy.deepcopy(row) if row else None

    def list_ids(self):
        with self._lock:
            return set(self._rows)

    def all(self):
        with self._lock:
            return [copy.deepcopy(row) for row in self._rows.values()]

    def count(self, active_only=False):
        with self._lock:
            if active_only:
                return sum(1 for row in self._rows.values() if row.is_active)
            return len(self._rows)

    def insert(self, article):
        with self._lock:
            if article.article_id in self._rows:
                raise StoreError(f"Article {article.article_id} already exists")
            self._rows[article.article_id] = copy.deepcopy(article)

    def update(self, article_id, fields):
        _check_fields(fields, UPDATABLE_FIELDS)
        with self._lock:
            row = self._rows.get(article_id)
            if row is None:
                raise StoreError(f"Article {article_id} not found")
            updated = copy.deepcopy(row)
            for name, value in fields.items():
                setattr(updated, name, copy.deepcopy(value))
            self._rows[article_id] = updated

    def set_keywords(self, article_id, keywords):
        with self._lock:
            row = self._rows.get(article_id)
            if row is None:
                raise StoreError(f"Article {article_id} not found")
            updated = copy.deepcopy(row)
            updated.search_keywords = list(keywords) if keywords is not None else None
            self._rows[article_id] = updated

    def delete(self, article_id):
        with self._lock:
            self._rows.pop(article_id, None)

    def find_missing_keywords(self):
        with self._lock:
            return [copy.deepcopy(row) for row in self._rows.values() if not row.search_keywords]

    def find_matching(self, terms, fields=("title", "content"), active_only=True):
        _check_fields(fields, SEARCHABLE_FIELDS)
        needles = [term.lower() for term in terms if term and term.strip()]
        if not needles:
            return []

        with self._lock:
            rows = [copy.deepcopy(row) for row in self._rows.values()]

        matches = []
        for row in rows:
            if active_only and not row.is_active:
                continue
            haystacks = [_field_text(row, name).lower() for name in fields]
            if any(needle in haystack for needle in needles for haystack in haystacks):
                matches.append(row)
        return matches


class MongoArticleStore(ArticleStore):
    """
    Store over a pymongo collection of article documents.

    Every driver error is re-raised as StoreError with the original as
    __cause__, so callers only need to know about one exception type.
    """

    def __init__(self, collection):
        self.collection = collection

    def _run(self, operation_name: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DuplicateKeyError as e:
            raise StoreError(f"{operation_name} failed: duplicate article id") from e
        except PyMongoError as e:
            logger.error("MongoDB error in %s: %s", operation_name, e)
            raise StoreError(f"{operation_name} failed: {e}") from e

    def get(self, article_id):
        doc = self._run("get", self.collection.find_one, {"article_id": article_id})
        return Article.from_document(doc) if doc else None

    def list_ids(self):
        cursor = self._run("list_ids", self.collection.find, {}, {"article_id": 1, "_id": 0})
        return {doc["article_id"] for doc in self._run("list_ids", list, cursor)}

    def all(self):
        cursor = self._run("all", self.collection.find, {})
        return [Article.from_document(doc) for doc in self._run("all", list, cursor)]

    def count(self, active_only=False):
        query = {"is_active": True} if active_only else {}
        return self._run("count", self.collection.count_documents, query)

    def insert(self, article):
        self._run("insert", self.collection.insert_one, article.to_document())

    def update(self, article_id, fields):
        _check_fields(fields, UPDATABLE_FIELDS)
        result = self._run(
            "update",
            self.collection.update_one,
            {"article_id": article_id},
            {"$set": dict(fields)},
        )
        if result.matched_count == 0:
            raise StoreError(f"Article {article_id} not found")

    def set_keywords(self, article_id, keywords):
        result = self._run(
            "set_keywords",
            self.collection.update_one,
            {"article_id": article_id},
            {"$set": {"search_keywords": list(keywords) if keywords is not None else None}},
        )
        if result.matched_count == 0:
            raise StoreError(f"Article {article_id} not found")

    def delete(self, article_id):
        self._run("delete", self.collection.delete_one, {"article_id": article_id})

    def find_missing_keywords(self):
        query = {
            "$or": [
                {"search_keywords": None},
                {"search_keywords": {"$exists": False}},
                {"search_keywords": {"$size": 0}},
            ]
        }
        cursor = self._run("find_missing_keywords", self.collection.find, query)
        return [Article.from_document(doc) for doc in self._run("find_missing_keywords", list, cursor)]

    def find_matching(self, terms, fields=("title", "content"), active_only=True):
        _check_fields(fields, SEARCHABLE_FIELDS)
        needles = [term for term in terms if term and term.strip()]
        if not needles:
            return []

        conditions = [
            {name: {"$regex": re.escape(needle), "$options": "i"}}
            for needle in needles
            for name in fields
        ]
        query = {"$or": conditions}
        if active_only:
            query = {"$and": [query, {"is_active": True}]}

        cursor = self._run("find_matching", self.collection.find, query)
        return [Article.from_document(doc) for doc in self._run("find_matching", list, cursor)]

    def clear_keywords(self):
        result = self._run(
            "clear_keywords",
            self.collection.update_many,
            {},
            {"$set": {"search_keywords": []}},
        )
        return result.modified_count
