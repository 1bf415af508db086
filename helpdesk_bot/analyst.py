"""
AI technical analysis for a support request.

The model is asked for a diagnosis and a short list of actions, grounded in
whichever knowledge base articles the search returned. If the model is not
configured or its answer is unusable, a generic analysis pointing the user at
the articles and the helpdesk is returned instead.
"""
import re
from dataclasses import asdict, dataclass, field

from helpdesk_bot.constants import (
    INSIGHT_EXCERPT_LENGTH,
    OPENAI_ANALYSIS_MAX_TOKENS,
    OPENAI_ANALYSIS_TEMPERATURE,
)
from helpdesk_bot.errors import ModelError
from helpdesk_bot.llm import ChatModel
from helpdesk_bot.logger import logger
from helpdesk_bot.models import SearchResult
from helpdesk_bot.utils import make_word_excerpt, strip_html

SEVERITIES = ("low", "medium", "high", "critical")
DIFFICULTIES = ("easy", "medium", "advanced")

SIMPLER_WORDS = (
    ("authentication", "login"),
    ("authorization", "permission"),
    ("configuration", "settings"),
    ("initialize", "start up"),
    ("terminate", "close"),
    ("execute", "run"),
    ("directory", "folder"),
    ("repository", "storage"),
    ("protocol", "method"),
    ("interface", "screen"),
    ("implement", "set up"),
    ("functionality", "feature"),
    ("troubleshoot", "fix"),
    ("diagnostic", "check"),
)

ANALYSIS_PROMPT_TEMPLATE = """As a senior IT support specialist, analyze this technical issue and provide comprehensive guidance.

User Issue: "{query}"

Available Knowledge Base Context:
{articles_context}

Provide a detailed technical analysis in JSON format with the following structure:
{{
  "issueDiagnosis": "Expert-level technical assessment of the problem",
  "immediateActions": [
    {{
      "step": "Step name",
      "description": "Detailed instructions with specific commands/actions",
      "expectedOutcome": "What should happen after this step",
      "verificationMethod": "How to confirm the step worked",
      "difficulty": "easy|medium|advanced"
    }}
  ],
  "expertRecommendations": ["Professional best practices and preventive measures"],
  "severity": "low|medium|high|critical",
  "estimatedResolutionTime": "Realistic time estimate",
  "followUpQuestions": ["Questions to ask user for more context if needed"]
}}"""


@dataclass
class ActionItem:
    step: str
    description: str
    expected_outcome: str = ""
    verification_method: str = ""
    difficulty: str = "easy"


@dataclass
class TechnicalAnalysis:
    issue_diagnosis: str
    immediate_actions: list[ActionItem] = field(default_factory=list)
    expert_recommendations: list[str] = field(default_factory=list)
    severity: str = "medium"
    estimated_resolution_time: str = "Unknown"
    follow_up_questions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class KnowledgeBaseInsight:
    article_title: str
    article_url: str
    key_finding: str
    solution: str
    relevance_score: float
    last_updated: object = None


def simplify_text(text: str) -> str:
    """Swap IT jargon for everyday words."""
    for word, replacement in SIMPLER_WORDS:
        text = re.sub(word, replacement, text or "", flags=re.IGNORECASE)
    return text


def _text(value, default: str = "") -> str:
    return str(value).strip() if value is not None and str(value).strip() else default


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def parse_analysis(data: dict) -> TechnicalAnalysis:
    """Build a TechnicalAnalysis from the model's JSON, defaulting whatever is missing."""
    actions = []
    for item in data.get("immediateActions") or []:
        if not isinstance(item, dict):
            continue
        step = _text(item.get("step"))
        if not step:
            continue
        difficulty = _text(item.get("difficulty"), "easy").lower()
        actions.append(
            ActionItem(
                step=step,
                description=_text(item.get("description")),
                expected_outcome=_text(item.get("expectedOutcome")),
                verification_method=_text(item.get("verificationMethod")),
                difficulty=difficulty if difficulty in DIFFICULTIES else "easy",
            )
        )

    severity = _text(data.get("severity"), "medium").lower()
    diagnosis = _text(data.get("issueDiagnosis"))
    if not diagnosis:
        raise ModelError("Analysis is missing a diagnosis")

    return TechnicalAnalysis(
        issue_diagnosis=diagnosis,
        immediate_actions=actions,
        expert_recommendations=_string_list(data.get("expertRecommendations")),
        severity=severity if severity in SEVERITIES else "medium",
        estimated_resolution_time=_text(data.get("estimatedResolutionTime"), "Unknown"),
        follow_up_questions=_string_list(data.get("followUpQuestions")),
    )


def fallback_analysis(query: str, results: list[SearchResult]) -> TechnicalAnalysis:
    if results:
        diagnosis = (
            f"I couldn't run a full analysis right now, but I found {len(results)} "
            "knowledge base article(s) that look related to your issue."
        )
        actions = [
            ActionItem(
                step=f"Review: {result.title}",
                description=f"Open {result.url} and follow the instructions in the article.",
            )
            for result in results[:3]
        ]
    else:
        diagnosis = (
            "I couldn't analyze this issue automatically and found no matching "
            "knowledge base articles."
        )
        actions = [
            ActionItem(
                step="Submit a helpdesk ticket",
                description="Describe the problem, what you were doing, and any error messages you saw.",
            )
        ]
    return TechnicalAnalysis(
        issue_diagnosis=diagnosis,
        immediate_actions=actions,
        severity="medium",
        estimated_resolution_time="Unknown",
    )


class AIAnalyst:
    def __init__(self, model: ChatModel | None = None):
        self.model = model

    def generate_technical_analysis(self, query: str, results: list[SearchResult]) -> TechnicalAnalysis:
        if self.model is None:
            return fallback_analysis(query, results)

        if results:
            articles_context = "\n---\n".join(
                f"Title: {r.title or 'Untitled'}\nContent: {r.excerpt}\nURL: {r.url or 'No URL'}"
                for r in results
            )
        else:
            articles_context = "No relevant articles found in knowledge base."

        prompt = ANALYSIS_PROMPT_TEMPLATE.format(query=query, articles_context=articles_context)
        try:
            data = self.model.complete_json(
                [{"role": "user", "content": prompt}],
                max_tokens=OPENAI_ANALYSIS_MAX_TOKENS,
                temperature=OPENAI_ANALYSIS_TEMPERATURE,
            )
            return parse_analysis(data)
        except ModelError as e:
            logger.warning("Technical analysis failed, using fallback: %s", e)
            return fallback_analysis(query, results)


def build_insights(results: list[SearchResult], limit: int = 3) -> list[KnowledgeBaseInsight]:
    insights = []
    for result in results[:limit]:
        title = result.title or "Knowledge Base Article"
        insights.append(
            KnowledgeBaseInsight(
                article_title=title,
                article_url=result.url or "#",
                key_finding=make_word_excerpt(strip_html(result.excerpt), INSIGHT_EXCERPT_LENGTH)
                or "Relevant information found",
                solution=f"See full article: {title}",
                relevance_score=result.score,
                last_updated=result.last_updated,
            )
        )
    return sorted(insights, key=lambda insight: insight.relevance_score, reverse=True)


def confidence_score(analysis: TechnicalAnalysis, insights: list[KnowledgeBaseInsight]) -> int:
    """0-100 confidence from how complete the analysis is and how relevant the articles were."""
    score = 0.0
    if analysis.immediate_actions:
        score += 30
    if analysis.expert_recommendations:
        score += 20
    if len(analysis.issue_diagnosis) > 50:
        score += 20

    if insights:
        avg_relevance = sum(insight.relevance_score for insight in insights) / len(insights)
        score += min(avg_relevance * 0.3, 30)

    return min(round(score), 100)
