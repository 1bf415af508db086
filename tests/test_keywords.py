"""Tests for helpdesk_bot.keywords."""

from unittest.mock import patch

from helpdesk_bot.errors import ModelError
from helpdesk_bot.keywords import (
    BasicKeywordExtractor,
    OpenAIKeywordExtractor,
    clean_article_keywords,
    get_keyword_extractor,
    split_words,
)


class TestHelpers:
    def test_split_words(self) -> None:
        assert split_words("Can't open Outlook, again!") == ["can", "open", "outlook", "again"]

    def test_clean_article_keywords_filters_generic_and_bounds(self) -> None:
        keywords = [
            "Password Reset",
            "help",
            "troubleshooting",
            "ab",
            "x" * 50,
            "password reset",
            "active directory",
        ]
        assert clean_article_keywords(keywords) == ["password reset", "active directory"]

    def test_clean_article_keywords_caps_at_seven(self) -> None:
        keywords = [f"term{n}" for n in range(10)]
        assert len(clean_article_keywords(keywords)) == 7

    def test_clean_article_keywords_rejects_non_list(self) -> None:
        assert clean_article_keywords("vpn") == []


class TestBasicKeywordExtractor:
    def test_article_keywords_from_title(self, basic_extractor) -> None:
        keywords = basic_extractor.extract_for_article("Password Reset Guide", "<p>Body</p>")
        assert keywords == ["password", "reset", "guide"]

    def test_article_keywords_capped(self, basic_extractor) -> None:
        keywords = basic_extractor.extract_for_article("Outlook Calendar Sharing With External Users", "")
        assert keywords == ["outlook", "calendar", "sharing", "with"]

    def test_article_keywords_fall_back_to_content(self, basic_extractor) -> None:
        keywords = basic_extractor.extract_for_article("IT", "<b>Printer</b> toner replacement")
        assert keywords == ["printer", "toner", "replacement"]

    def test_query_keywords(self, basic_extractor) -> None:
        keywords = basic_extractor.extract_for_query("How do I reset my VPN password on the laptop?")

        assert keywords.primary == ["reset", "vpn", "password"]
        assert keywords.secondary == ["laptop"]
        assert keywords.context.startswith("User asking about:")


class TestOpenAIKeywordExtractor:
    def test_article_keywords_from_model(self, fake_model_cls) -> None:
        model = fake_model_cls([{"keywords": ["Cisco AnyConnect", "vpn disconnect", "support"]}])

        keywords = OpenAIKeywordExtractor(model).extract_for_article("VPN", "<p>Cisco client</p>")

        assert keywords == ["cisco anyconnect", "vpn disconnect"]
        user_prompt = model.calls[0][1]["content"]
        assert "<p>" not in user_prompt

    def test_article_keywords_accept_alternate_key(self, fake_model_cls) -> None:
        model = fake_model_cls([{"searchKeywords": ["mfa enrollment"]}])
        assert OpenAIKeywordExtractor(model).extract_for_article("MFA", "x") == ["mfa enrollment"]

    def test_article_content_is_truncated(self, fake_model_cls) -> None:
        model = fake_model_cls([{"keywords": ["vpn client"]}])

        OpenAIKeywordExtractor(model).extract_for_article("VPN", "z" * 5000)

        assert model.calls[0][1]["content"].count("z") == 2000

    def test_article_falls_back_on_model_error(self, fake_model_cls) -> None:
        model = fake_model_cls(error=ModelError("timeout"))

        keywords = OpenAIKeywordExtractor(model).extract_for_article("Password Reset Guide", "x")

        assert keywords == ["password", "reset", "guide"]

    def test_article_falls_back_when_everything_filtered(self, fake_model_cls) -> None:
        model = fake_model_cls([{"keywords": ["help", "support"]}])

        keywords = OpenAIKeywordExtractor(model).extract_for_article("Printer Jams", "x")

        assert keywords == ["printer", "jams"]

    def test_query_keywords_from_model(self, fake_model_cls) -> None:
        model = fake_model_cls([
            {"primary": ["VPN", "disconnect"], "secondary": "network", "context": "VPN drops"}
        ])

        keywords = OpenAIKeywordExtractor(model).extract_for_query("VPN keeps dropping")

        assert keywords.primary == ["vpn", "disconnect"]
        assert keywords.secondary == ["network"]
        assert keywords.context == "VPN drops"
        assert '"VPN keeps dropping"' in model.calls[0][0]["content"]

    def test_query_falls_back_on_model_error(self, fake_model_cls) -> None:
        model = fake_model_cls(error=ModelError("boom"))

        keywords = OpenAIKeywordExtractor(model).extract_for_query("printer offline")

        assert keywords.primary == ["printer", "offline"]

    def test_query_falls_back_on_empty_answer(self, fake_model_cls) -> None:
        model = fake_model_cls([{"primary": [], "secondary": [], "context": ""}])

        keywords = OpenAIKeywordExtractor(model).extract_for_query("outlook crash")

        assert keywords.primary == ["outlook", "crash"]


class TestGetKeywordExtractor:
    def test_basic_without_api_key(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            assert isinstance(get_keyword_extractor(), BasicKeywordExtractor)

    def test_model_backed_with_api_key(self) -> None:
        with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test"}, clear=True):
            assert isinstance(get_keyword_extractor(), OpenAIKeywordExtractor)
