"""Tests for helpdesk_bot.analyst."""

import pytest

from helpdesk_bot.analyst import (
    AIAnalyst,
    TechnicalAnalysis,
    build_insights,
    confidence_score,
    fallback_analysis,
    parse_analysis,
    simplify_text,
)
from helpdesk_bot.errors import ModelError
from helpdesk_bot.models import SearchResult

MODEL_ANALYSIS = {
    "issueDiagnosis": "The VPN client loses its tunnel when the laptop switches between wifi access points.",
    "immediateActions": [
        {
            "step": "Restart the VPN client",
            "description": "Quit the client and open it again",
            "expectedOutcome": "Client reconnects",
            "verificationMethod": "Status shows connected",
            "difficulty": "EASY",
        },
        {"step": "", "description": "ignored"},
        "not an object",
    ],
    "expertRecommendations": ["Prefer a wired connection for long calls"],
    "severity": "High",
    "estimatedResolutionTime": "10 minutes",
    "followUpQuestions": ["Which VPN client version?"],
}


def _result(article_id="1", score=20.0, excerpt="Reconnect the Cisco client"):
    return SearchResult(
        article_id=article_id,
        title=f"Article {article_id}",
        url=f"https://kb.example.com/article/{article_id}",
        excerpt=excerpt,
        score=score,
    )


class TestParseAnalysis:
    def test_maps_model_fields(self) -> None:
        analysis = parse_analysis(MODEL_ANALYSIS)

        assert analysis.severity == "high"
        assert analysis.estimated_resolution_time == "10 minutes"
        assert [a.step for a in analysis.immediate_actions] == ["Restart the VPN client"]
        assert analysis.immediate_actions[0].difficulty == "easy"
        assert analysis.immediate_actions[0].expected_outcome == "Client reconnects"
        assert analysis.follow_up_questions == ["Which VPN client version?"]

    def test_unknown_severity_defaults_to_medium(self) -> None:
        analysis = parse_analysis({"issueDiagnosis": "Printer driver mismatch", "severity": "urgent"})

        assert analysis.severity == "medium"
        assert analysis.immediate_actions == []
        assert analysis.estimated_resolution_time == "Unknown"

    def test_missing_diagnosis_is_an_error(self) -> None:
        with pytest.raises(ModelError):
            parse_analysis({"severity": "low"})


class TestFallbackAnalysis:
    def test_points_at_found_articles(self) -> None:
        analysis = fallback_analysis("vpn", [_result("1"), _result("2")])

        assert "2 knowledge base article(s)" in analysis.issue_diagnosis
        assert [a.step for a in analysis.immediate_actions] == ["Review: Article 1", "Review: Article 2"]

    def test_without_articles_suggests_ticket(self) -> None:
        analysis = fallback_analysis("vpn", [])

        assert analysis.immediate_actions[0].step == "Submit a helpdesk ticket"


class TestAIAnalyst:
    def test_uses_model_answer(self, fake_model_cls) -> None:
        model = fake_model_cls([MODEL_ANALYSIS])

        analysis = AIAnalyst(model).generate_technical_analysis("vpn drops", [_result()])

        assert analysis.severity == "high"
        prompt = model.calls[0][0]["content"]
        assert '"vpn drops"' in prompt
        assert "Reconnect the Cisco client" in prompt

    def test_prompt_without_articles(self, fake_model_cls) -> None:
        model = fake_model_cls([MODEL_ANALYSIS])

        AIAnalyst(model).generate_technical_analysis("vpn drops", [])

        assert "No relevant articles found" in model.calls[0][0]["content"]

    def test_falls_back_on_model_error(self, fake_model_cls) -> None:
        analysis = AIAnalyst(fake_model_cls(error=ModelError("timeout"))).generate_technical_analysis("vpn", [])

        assert analysis.immediate_actions[0].step == "Submit a helpdesk ticket"

    def test_falls_back_on_unusable_answer(self, fake_model_cls) -> None:
        analysis = AIAnalyst(fake_model_cls([{"severity": "low"}])).generate_technical_analysis("vpn", [_result()])

        assert analysis.immediate_actions[0].step == "Review: Article 1"

    def test_without_model(self) -> None:
        analysis = AIAnalyst(None).generate_technical_analysis("vpn", [])
        assert isinstance(analysis, TechnicalAnalysis)


class TestInsights:
    def test_sorted_by_relevance_and_limited(self) -> None:
        results = [_result("1", 10), _result("2", 60), _result("3", 30), _result("4", 90)]

        insights = build_insights(results)

        assert [i.article_title for i in insights] == ["Article 2", "Article 3", "Article 1"]
        assert insights[0].solution == "See full article: Article 2"

    def test_key_finding_cut_at_word_boundary(self) -> None:
        excerpt = "word " * 40

        insight = build_insights([_result(excerpt=excerpt)])[0]

        assert insight.key_finding.endswith("word...")
        assert len(insight.key_finding) <= 123


class TestConfidenceScore:
    def test_complete_analysis_with_relevant_articles(self) -> None:
        analysis = parse_analysis(MODEL_ANALYSIS)
        insights = build_insights([_result(score=100)])

        assert confidence_score(analysis, insights) == 100

    def test_fallback_analysis(self) -> None:
        results = [_result(score=20)]
        analysis = fallback_analysis("vpn", results)

        # 30 for actions + 20 for a long diagnosis + 20 * 0.3
        assert confidence_score(analysis, build_insights(results)) == 56

    def test_empty(self) -> None:
        assert confidence_score(TechnicalAnalysis(issue_diagnosis="short"), []) == 0


def test_simplify_text() -> None:
    assert simplify_text("Check the Authentication configuration") == "Check the login settings"
