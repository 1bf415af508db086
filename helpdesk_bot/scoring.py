"""
Relevance scoring for knowledge base search.

Pure functions of (keywords, article) -> score, with no storage or model
access. Two scorers back the two search paths:

- keyword_tier_score: broad search over model-extracted keywords. The
  article gets the weight of the highest-priority rule it satisfies:
  primary keyword in title (10 - rank), primary keyword in content
  (7 - rank), secondary keyword in title (3 - rank), secondary keyword in
  content (2 - rank). Weights never drop below 1.
- strict_term_score: live chat search over the raw message tokens. Finding
  every term in the title or in the keyword list is worth far more than a
  partial hit.
"""
import re
from datetime import datetime
from typing import Iterable

from helpdesk_bot.models import Article, ScoredArticle, SearchKeywords

CHAT_STOP_WORDS = {
    "how", "to", "can", "my", "the", "and", "for", "with", "are", "is", "do",
    "does", "will", "what", "when", "where", "why", "help", "me", "i", "you",
    "a", "an",
}

_TOKEN_SPLIT_RE = re.compile(r"[^\w'-]+")

PRIMARY_TITLE_BASE = 10
PRIMARY_CONTENT_BASE = 7
SECONDARY_TITLE_BASE = 3
SECONDARY_CONTENT_BASE = 2
MIN_TIER_WEIGHT = 1

ALL_TERMS_IN_TITLE_BONUS = 50
ALL_TERMS_IN_KEYWORDS_BONUS = 40
TERM_IN_TITLE_POINTS = 10
TERM_IN_KEYWORDS_POINTS = 5


def tokenize_message(text: str) -> list[str]:
    """Lowercase terms of the message, minus stop-words and terms of two characters or fewer."""
    terms = []
    for token in _TOKEN_SPLIT_RE.split((text or "").lower()):
        token = token.strip("'-")
        if len(token) > 2 and token not in CHAT_STOP_WORDS and token not in terms:
            terms.append(token)
    return terms


def _weight(base: int, rank: int) -> int:
    return max(base - rank, MIN_TIER_WEIGHT)


def keyword_tier_score(keywords: SearchKeywords, article: Article) -> float:
    title = (article.title or "").lower()
    content = (article.content or "").lower()
    primary = [k.lower() for k in keywords.primary if k]
    secondary = [k.lower() for k in keywords.secondary if k]

    tiers = (
        (primary, title, PRIMARY_TITLE_BASE),
        (primary, content, PRIMARY_CONTENT_BASE),
        (secondary, title, SECONDARY_TITLE_BASE),
        (secondary, content, SECONDARY_CONTENT_BASE),
    )
    for terms, text, base in tiers:
        for rank, term in enumerate(terms):
            if term in text:
                return _weight(base, rank)
    return 0


def strict_term_score(terms: list[str], article: Article) -> float:
    if not terms:
        return 0

    title = (article.title or "").lower()
    keyword_text = " ".join(article.search_keywords or []).lower()

    score = 0
    if all(term in title for term in terms):
        score += ALL_TERMS_IN_TITLE_BONUS
    if keyword_text and all(term in keyword_text for term in terms):
        score += ALL_TERMS_IN_KEYWORDS_BONUS
    for term in terms:
        if term in title:
            score += TERM_IN_TITLE_POINTS
        if term in keyword_text:
            score += TERM_IN_KEYWORDS_POINTS
    return score


def _recency(value: datetime | None) -> float:
    if value is None:
        return float("-inf")
    return value.timestamp()


def rank(scored: Iterable[ScoredArticle], limit: int, min_score: float | None = None) -> list[ScoredArticle]:
    """Highest score first, ties broken by most recent update; optional floor; top `limit`."""
    candidates = [s for s in scored if min_score is None or s.score >= min_score]
    candidates.sort(key=lambda s: (s.score, _recency(s.article.last_updated)), reverse=True)
    return candidates[:limit]
