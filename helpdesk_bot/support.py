"""
Chat turn handling: commands, knowledge base lookup, AI analysis and the
plain-text reply sent back to the chat client.
"""
import time
from dataclasses import dataclass, field

from helpdesk_bot.analyst import (
    AIAnalyst,
    KnowledgeBaseInsight,
    TechnicalAnalysis,
    build_insights,
    confidence_score,
    simplify_text,
)
from helpdesk_bot.config import get_service_status
from helpdesk_bot.constants import (
    HELPDESK_TICKET_URL,
    MAX_MESSAGE_LENGTH,
    MIN_MESSAGE_LENGTH,
)
from helpdesk_bot.errors import StoreError
from helpdesk_bot.interactions import InteractionLog
from helpdesk_bot.logger import logger
from helpdesk_bot.models import SearchResult
from helpdesk_bot.rate_limiter import RateLimiter
from helpdesk_bot.scoring import tokenize_message
from helpdesk_bot.search import IntelligentSearchEngine, to_results
from helpdesk_bot.store import ArticleStore
from helpdesk_bot.utils import get_mongodb_error_message

GREETINGS = {"hello", "hi", "hey", "start"}
HELP_COMMANDS = {"help", "?"}


@dataclass
class SupportResponse:
    query: str
    analysis: TechnicalAnalysis
    articles: list[SearchResult] = field(default_factory=list)
    insights: list[KnowledgeBaseInsight] = field(default_factory=list)
    processing_time_ms: int = 0
    confidence: int = 0


def get_welcome() -> str:
    return (
        "Hi! I'm your IT helpdesk assistant. I can help with common issues like "
        "printers, email or a slow computer, and point you to the right "
        "knowledge base articles.\n\n"
        "Describe your problem in your own words, for example:\n"
        "- My printer isn't responding\n"
        "- I'm not receiving emails\n"
        "- I can't join a Teams meeting\n\n"
        f"You can always submit a helpdesk ticket: {HELPDESK_TICKET_URL}"
    )


def get_help() -> str:
    logger.debug("Help")
    return """
    *Available commands:*
    `help` - show this help message
    `status` - check bot status
    Or simply describe your IT issue for assistance.

    *Example questions:*
    - My email is not working
    - I can't connect to wifi
    - Outlook keeps crashing
    - How do I reset my password
    """


def get_status(
    store: ArticleStore,
    rate_limiter: RateLimiter | None = None,
    team_id: str | None = None,
) -> str:
    services = get_service_status()
    try:
        article_count = store.count(active_only=True)
        kb_line = f"Knowledge Base: {article_count} articles available"
    except Exception as e:
        kb_line = f"Knowledge Base: unavailable. {get_mongodb_error_message(e, 'get_status')}"

    ai_line = "AI Analysis: available" if services["openai"] else "AI Analysis: basic mode (OpenAI not configured)"
    lines = ["*Bot Status: Online*", f"- {kb_line}", f"- {ai_line}"]
    if rate_limiter is not None and team_id:
        remaining = rate_limiter.get_remaining_requests(team_id)
        lines.append(f"- AI requests left today: {remaining} of {rate_limiter.max_requests}")
    return "\n".join(lines)


def get_error_reply(error: Exception) -> str:
    """Chat text for a turn that failed unexpectedly."""
    if isinstance(error, StoreError):
        return get_mongodb_error_message(error, "support request")
    return (
        "Something went wrong while looking into your issue. "
        "Please try again or submit a helpdesk ticket if the issue persists."
    )


def format_response(response: SupportResponse) -> str:
    """Render a support response as chat text: articles first, then diagnosis and steps."""
    analysis = response.analysis
    lines = [
        "*IT Support Response*",
        f"{analysis.severity.upper()} Priority - Est. {analysis.estimated_resolution_time}",
        "",
    ]

    if response.insights:
        lines.append("*Knowledge Base*")
        for insight in response.insights:
            lines.append(f"- <{insight.article_url}|{insight.article_title}>")
            if insight.key_finding:
                lines.append(f"  {insight.key_finding}")
        lines.append("")

    lines.append("*What's happening:*")
    lines.append(simplify_text(analysis.issue_diagnosis))

    if analysis.immediate_actions:
        lines.append("")
        lines.append("*Try these steps:*")
        for index, action in enumerate(analysis.immediate_actions[:3], start=1):
            lines.append(f"{index}. *{action.step}*")
            if action.description:
                lines.append(f"   {simplify_text(action.description)}")

    lines.append("")
    lines.append(f"Still stuck? Submit a helpdesk ticket: {HELPDESK_TICKET_URL}")
    return "\n".join(lines)


class SupportAssistant:
    def __init__(
        self,
        store: ArticleStore,
        search_engine: IntelligentSearchEngine,
        analyst: AIAnalyst,
        interactions: InteractionLog | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        self.store = store
        self.search_engine = search_engine
        self.analyst = analyst
        self.interactions = interactions
        self.rate_limiter = rate_limiter

    def answer(self, query: str) -> SupportResponse:
        """Strict knowledge base search plus AI analysis, as plain data."""
        started = time.monotonic()

        results = to_results(self.search_engine.search_strict(query))
        if not results:
            logger.info("No relevant articles found for %r", query)

        analysis = self.analyst.generate_technical_analysis(query, results)
        insights = build_insights(results)

        return SupportResponse(
            query=query,
            analysis=analysis,
            articles=results,
            insights=insights,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            confidence=confidence_score(analysis, insights),
        )

    def handle_message(self, text: str, user_id: str, team_id: str | None = None) -> str:
        message = (text or "").strip()
        command = message.lower()

        if command in GREETINGS:
            return get_welcome()
        if command in HELP_COMMANDS:
            return get_help()
        if command == "status":
            return get_status(self.store, self.rate_limiter, team_id)

        if len(message) < MIN_MESSAGE_LENGTH:
            return "Could you describe your issue in a bit more detail?"
        if len(message) > MAX_MESSAGE_LENGTH:
            return (
                f"Your message is too long ({len(message)} characters). "
                f"Please shorten it to under {MAX_MESSAGE_LENGTH} characters."
            )

        if self.rate_limiter is not None and team_id:
            is_allowed, error_msg = self.rate_limiter.is_allowed(team_id)
            if not is_allowed:
                return error_msg

        response = self.answer(message)

        if self.interactions is not None:
            self.interactions.record(
                user_id=user_id,
                user_query=message,
                generated_keywords=tokenize_message(message),
                found_articles=response.articles,
                ai_response=response.analysis.to_dict(),
                response_time_ms=response.processing_time_ms,
            )

        return format_response(response)
