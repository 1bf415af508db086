"""
Knowledge base search.

search() is the broad keyword-tier path used by the admin/test surface;
search_strict() is the floor-filtered token path used by the live chat turn.
Finding nothing is a normal outcome: both return an empty list rather than
raising.
"""
from helpdesk_bot.constants import (
    CHAT_MIN_RELEVANCE_SCORE,
    CHAT_SEARCH_LIMIT,
    KEYWORD_SEARCH_LIMIT,
    SEARCH_EXCERPT_LENGTH,
)
from helpdesk_bot.errors import StoreError
from helpdesk_bot.keywords import KeywordExtractor
from helpdesk_bot.logger import logger
from helpdesk_bot.models import ScoredArticle, SearchKeywords, SearchResult
from helpdesk_bot.scoring import (
    keyword_tier_score,
    rank,
    strict_term_score,
    tokenize_message,
)
from helpdesk_bot.store import ArticleStore
from helpdesk_bot.utils import make_excerpt

EXCERPT_PLACEHOLDER = "Click to view the full article for detailed instructions."


def to_results(scored: list[ScoredArticle]) -> list[SearchResult]:
    return [
        SearchResult(
            article_id=item.article.article_id,
            title=item.article.title,
            url=item.article.url,
            excerpt=make_excerpt(item.article.content, SEARCH_EXCERPT_LENGTH, EXCERPT_PLACEHOLDER),
            score=item.score,
            last_updated=item.article.last_updated,
            search_keywords=list(item.article.search_keywords or []),
        )
        for item in scored
    ]


class IntelligentSearchEngine:
    def __init__(self, store: ArticleStore, extractor: KeywordExtractor):
        self.store = store
        self.extractor = extractor

    def extract_keywords(self, query: str) -> SearchKeywords:
        return self.extractor.extract_for_query(query)

    def search(
        self,
        query: str,
        limit: int = KEYWORD_SEARCH_LIMIT,
        keywords: SearchKeywords | None = None,
    ) -> list[ScoredArticle]:
        if keywords is None:
            keywords = self.extract_keywords(query)

        if keywords.is_empty():
            logger.info("No search keywords extracted from %r", query)
            return []

        store_failed = False
        try:
            candidates = self.store.find_matching(keywords.all_terms(), fields=("title", "content"))
        except StoreError as e:
            logger.error("Keyword search failed for %r, retrying with a single keyword: %s", query, e)
            candidates = []
            store_failed = True

        if not candidates:
            candidates = self._single_keyword_retry(query, keywords, store_failed)

        matched = (ScoredArticle(article, keyword_tier_score(keywords, article)) for article in candidates)
        scored = rank((s for s in matched if s.score > 0), limit=limit)
        logger.info(
            "Keyword search for %r found %s articles using primary=%s secondary=%s",
            query,
            len(scored),
            keywords.primary,
            keywords.secondary,
        )
        return scored

    def _single_keyword_retry(self, query: str, keywords: SearchKeywords, store_failed: bool) -> list:
        # The raw first word of the query is only a stand-in when the keyword query itself failed
        if keywords.primary:
            fallback_term = keywords.primary[0]
        elif store_failed:
            words = (query or "").split()
            fallback_term = words[0] if words else ""
        else:
            return []

        if not fallback_term.strip():
            return []

        try:
            return self.store.find_matching([fallback_term], fields=("title", "content"))
        except StoreError as e:
            logger.error("Single keyword search failed for %r: %s", query, e)
            return []

    def search_strict(
        self,
        message: str,
        limit: int = CHAT_SEARCH_LIMIT,
        min_score: float = CHAT_MIN_RELEVANCE_SCORE,
    ) -> list[ScoredArticle]:
        terms = tokenize_message(message)
        if not terms:
            logger.debug("No search terms in message, skipping article search")
            return []

        logger.debug("Searching for terms %s from message %r", terms, message)
        try:
            candidates = self.store.find_matching(
                terms, fields=("title", "content", "search_keywords")
            )
        except StoreError as e:
            logger.error("Knowledge base search failed: %s", e)
            return []

        scored = rank(
            (ScoredArticle(article, strict_term_score(terms, article)) for article in candidates),
            limit=limit,
            min_score=min_score,
        )
        logger.info(
            "Strict search for %r kept %s of %s candidates: %s",
            message,
            len(scored),
            len(candidates),
            [(s.article.title, s.score) for s in scored],
        )
        return scored
