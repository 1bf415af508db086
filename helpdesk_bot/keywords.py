"""
Search keyword extraction for articles and user queries.

KeywordExtractor has two implementations: BasicKeywordExtractor works from
the text alone, OpenAIKeywordExtractor asks the model and falls back to the
basic one whenever the model is unavailable or its answer is unusable.
"""
import re
from abc import ABC, abstractmethod
from typing import Any

from helpdesk_bot.config import is_openai_configured
from helpdesk_bot.constants import (
    MAX_ARTICLE_KEYWORDS,
    MAX_FALLBACK_TITLE_KEYWORDS,
    MAX_KEYWORD_CONTENT_CHARS,
    MAX_KEYWORD_LENGTH,
    MIN_KEYWORD_LENGTH,
    OPENAI_KEYWORD_MAX_TOKENS,
    OPENAI_KEYWORD_TEMPERATURE,
    OPENAI_KEYWORD_TIMEOUT_SECONDS,
)
from helpdesk_bot.errors import ModelError
from helpdesk_bot.llm import ChatModel
from helpdesk_bot.logger import logger
from helpdesk_bot.models import SearchKeywords
from helpdesk_bot.utils import strip_html

GENERIC_TERMS = (
    "it support", "troubleshooting", "help", "guide", "instructions",
    "setup", "configuration", "support", "documentation", "manual",
    "tutorial", "how to", "steps", "process", "procedure",
    "overview", "introduction", "basics", "getting started",
)

QUERY_STOP_WORDS = {
    "how", "do", "i", "can", "to", "the", "a", "an", "is", "are", "was", "were",
    "my", "me", "you", "your", "it", "this", "that", "with", "for", "on", "at",
    "by", "from", "of", "in", "and", "or", "but",
}

_NON_WORD_RE = re.compile(r"[^\w\s]")

ARTICLE_SYSTEM_PROMPT = """You are an expert at extracting specific, actionable search keywords from IT support documentation.

REQUIREMENTS:
- Extract 5-7 highly specific keywords that users would search for
- Focus on: software names, specific problems, technical processes, company names, system names
- Avoid generic words like: "support", "help", "guide", "instructions", "troubleshooting", "setup", "configuration"
- Include specific technical terms, product names, and action-oriented phrases
- Use phrases when they're more specific than single words (e.g., "password reset" vs just "password")
- Ensure keywords are directly related to the actual content, not generic IT terms

Return a JSON object with a "keywords" array containing only the most relevant, specific search terms."""

QUERY_PROMPT_TEMPLATE = """Extract the most relevant search keywords from this IT support question. Focus on technical terms, software names, and core concepts that would appear in knowledge base articles.
Avoid generic support vocabulary such as "help", "support", "setup" or "troubleshooting".

User Question: "{query}"

Provide keywords in JSON format:
{{
  "primary": ["main technical terms", "software names", "key actions"],
  "secondary": ["related terms", "synonyms", "common variations"],
  "context": "brief description of what the user is trying to accomplish"
}}

Examples:
- "How do I reset my password?" -> primary: ["password", "reset", "change"], secondary: ["login", "account", "credentials"]
- "Excel won't open files" -> primary: ["excel", "open", "files"], secondary: ["microsoft", "spreadsheet", "documents"]
- "VPN connection keeps dropping" -> primary: ["vpn", "connection", "disconnect"], secondary: ["network", "remote", "access"]"""


def split_words(text: str) -> list[str]:
    """Lowercase, punctuation to spaces, words longer than two characters."""
    cleaned = _NON_WORD_RE.sub(" ", (text or "").lower())
    return [word for word in cleaned.split() if len(word) > 2]


def is_generic_keyword(keyword: str) -> bool:
    return any(term in keyword or keyword in term for term in GENERIC_TERMS)


def clean_article_keywords(keywords: Any) -> list[str]:
    """Normalize model output: lowercase, length bounds, no generic terms, at most seven."""
    if not isinstance(keywords, list):
        return []

    cleaned = []
    for keyword in keywords:
        keyword = str(keyword).strip().lower()
        if not MIN_KEYWORD_LENGTH <= len(keyword) <= MAX_KEYWORD_LENGTH:
            continue
        if is_generic_keyword(keyword) or keyword in cleaned:
            continue
        cleaned.append(keyword)
    return cleaned[:MAX_ARTICLE_KEYWORDS]


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip().lower() for item in value if str(item).strip()]


class KeywordExtractor(ABC):
    @abstractmethod
    def extract_for_article(self, title: str, content: str) -> list[str]:
        """Between one and seven lowercase search keywords for an article."""

    @abstractmethod
    def extract_for_query(self, query: str) -> SearchKeywords:
        ...


class BasicKeywordExtractor(KeywordExtractor):
    """Deterministic extraction from the text itself. Never raises."""

    def extract_for_article(self, title, content):
        keywords = split_words(title)[:MAX_FALLBACK_TITLE_KEYWORDS]
        if not keywords:
            # Title too short to say anything; use the opening words of the body instead
            keywords = split_words(strip_html(content))[:MAX_FALLBACK_TITLE_KEYWORDS]
        return keywords

    def extract_for_query(self, query):
        words = [word for word in split_words(query) if word not in QUERY_STOP_WORDS]
        return SearchKeywords(
            primary=words[:3],
            secondary=words[3:6],
            context=f"User asking about: {query}",
        )


class OpenAIKeywordExtractor(KeywordExtractor):
    def __init__(self, model: ChatModel, fallback: KeywordExtractor | None = None):
        self.model = model
        self.fallback = fallback or BasicKeywordExtractor()

    def extract_for_article(self, title, content):
        clean_content = strip_html(content)
        text_to_analyze = f"Title: {title}\n\nContent: {clean_content[:MAX_KEYWORD_CONTENT_CHARS]}"

        messages = [
            {"role": "system", "content": ARTICLE_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    "Extract specific search keywords from this IT support article. "
                    "Focus on what users would actually search for to find this specific "
                    f"information:\n\n{text_to_analyze}"
                ),
            },
        ]
        try:
            result = self.model.complete_json(
                messages,
                max_tokens=OPENAI_KEYWORD_MAX_TOKENS,
                temperature=OPENAI_KEYWORD_TEMPERATURE,
                timeout=OPENAI_KEYWORD_TIMEOUT_SECONDS,
            )
        except ModelError as e:
            logger.warning("Keyword generation failed for %r, using title keywords: %s", title, e)
            return self.fallback.extract_for_article(title, content)

        keywords = clean_article_keywords(result.get("keywords") or result.get("searchKeywords") or [])
        if not keywords:
            logger.info("Model keywords for %r were all filtered out, using title keywords", title)
            return self.fallback.extract_for_article(title, content)
        return keywords

    def extract_for_query(self, query):
        messages = [{"role": "user", "content": QUERY_PROMPT_TEMPLATE.format(query=query)}]
        try:
            result = self.model.complete_json(
                messages,
                max_tokens=OPENAI_KEYWORD_MAX_TOKENS,
                temperature=OPENAI_KEYWORD_TEMPERATURE,
                timeout=OPENAI_KEYWORD_TIMEOUT_SECONDS,
            )
        except ModelError as e:
            logger.warning("Query keyword extraction failed, using local tokens: %s", e)
            return self.fallback.extract_for_query(query)

        keywords = SearchKeywords(
            primary=_string_list(result.get("primary")),
            secondary=_string_list(result.get("secondary")),
            context=str(result.get("context") or ""),
        )
        if keywords.is_empty():
            return self.fallback.extract_for_query(query)
        return keywords


def get_keyword_extractor() -> KeywordExtractor:
    """Model-backed extractor when OpenAI is configured, the basic one otherwise."""
    if is_openai_configured():
        return OpenAIKeywordExtractor(ChatModel.from_env())
    logger.info("OpenAI is not configured; keyword extraction uses local rules only")
    return BasicKeywordExtractor()
