"""Tests for helpdesk_bot.kb_client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from helpdesk_bot.errors import ConfigError, UpstreamError
from helpdesk_bot.kb_client import (
    KnowledgeBaseClient,
    filter_quality,
    parse_items,
    parse_timestamp,
    process_tags,
)


def _item(kb_id, title="VPN setup", content="<p>Body</p>", **extra):
    item = {"KBID": kb_id, "KBProduct": title, "KBContext": content, "KBStatus": "2"}
    item.update(extra)
    return item


def _response(items=None, status_code=200, payload=None):
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.reason = "OK" if response.ok else "Server Error"
    response.json.return_value = payload if payload is not None else {"items": items or []}
    return response


def _client(responses, **kwargs):
    session = MagicMock()
    session.get.side_effect = responses
    return KnowledgeBaseClient(api_token="token", session=session, **kwargs), session


class TestProcessTags:
    def test_comma_separated_string(self) -> None:
        assert process_tags("vpn, wifi ,, network") == ["vpn", "wifi", "network"]

    def test_array(self) -> None:
        assert process_tags([" vpn", "wifi", 42]) == ["vpn", "wifi", "42"]

    def test_deduplicates_preserving_order(self) -> None:
        assert process_tags("vpn,wifi,vpn") == ["vpn", "wifi"]

    def test_missing_or_unsupported(self) -> None:
        assert process_tags(None) == []
        assert process_tags("") == []
        assert process_tags({"a": 1}) == []


class TestParseTimestamp:
    def test_iso_with_z(self) -> None:
        assert parse_timestamp("2024-03-01T10:00:00Z") == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_invalid_is_none(self) -> None:
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None


class TestParseItems:
    def test_maps_fields(self) -> None:
        items = [_item(7, KBKeywords="vpn,remote", KBIsPrivate=False, KBLastUpdate="2024-01-02T00:00:00Z")]

        result = parse_items(items, "https://kb.example.com/a/{article_id}")

        assert len(result) == 1
        article = result[0]
        assert article.id == "7"
        assert article.title == "VPN setup"
        assert article.content == "<p>Body</p>"
        assert article.url == "https://kb.example.com/a/7"
        assert article.tags == ["vpn", "remote"]
        assert article.status == 2
        assert article.is_private is False
        assert article.last_updated == datetime(2024, 1, 2, tzinfo=timezone.utc)

    def test_drops_missing_id_content_or_placeholder_title(self) -> None:
        items = [
            {"KBProduct": "No id", "KBContext": "x"},
            _item(1, content=""),
            _item(2, title=None),
            _item(3, title="Knowledge Base Article"),
            "not a dict",
            _item(4),
        ]

        result = parse_items(items)

        assert [a.id for a in result] == ["4"]

    def test_only_literal_true_is_private(self) -> None:
        result = parse_items([_item(1, KBIsPrivate="true"), _item(2, KBIsPrivate=True)])
        assert [a.is_private for a in result] == [False, True]

    def test_bad_status_is_zero(self) -> None:
        result = parse_items([_item(1, KBStatus="draft")])
        assert result[0].status == 0


class TestFilterQuality:
    def test_keeps_only_public_published_with_content(self, make_raw) -> None:
        articles = [
            make_raw("ok"),
            make_raw("private", is_private=True),
            make_raw("draft", status=1),
            make_raw("blank", content="   "),
        ]
        assert [a.id for a in filter_quality(articles)] == ["ok"]


class TestFetchAll:
    def test_pages_until_empty(self) -> None:
        client, session = _client([
            _response([_item(1)]),
            _response([_item(2), _item(3)]),
            _response([]),
        ])

        result = client.fetch_all()

        assert [a.id for a in result] == ["1", "2", "3"]
        assert session.get.call_count == 3
        assert client.last_fetch_complete is True
        _, kwargs = session.get.call_args_list[1]
        assert kwargs["params"] == {"itemsInPage": 50, "page": 2}
        assert kwargs["headers"]["X-API-KEY"] == "token"

    def test_stops_at_reported_total_pages(self) -> None:
        client, session = _client([
            _response(payload={"items": [_item(1)], "totalPages": 1}),
        ])

        result = client.fetch_all()

        assert len(result) == 1
        assert session.get.call_count == 1

    def test_page_ceiling_is_a_soft_stop(self) -> None:
        client, session = _client([_response([_item(n)]) for n in range(1, 10)], max_pages=3)

        result = client.fetch_all()

        assert [a.id for a in result] == ["1", "2", "3"]
        assert session.get.call_count == 3
        assert client.last_fetch_complete is True

    def test_http_error_returns_partial_results(self) -> None:
        client, _ = _client([_response([_item(1)]), _response(status_code=500)])

        result = client.fetch_all()

        assert [a.id for a in result] == ["1"]
        assert client.last_fetch_complete is False

    def test_transport_error_returns_partial_results(self) -> None:
        client, _ = _client([_response([_item(1)]), requests.exceptions.ConnectionError("reset")])

        result = client.fetch_all()

        assert [a.id for a in result] == ["1"]
        assert client.last_fetch_complete is False

    def test_malformed_page_stops_loop(self) -> None:
        client, _ = _client([_response(payload={"items": "nope"})])

        assert client.fetch_all() == []
        assert client.last_fetch_complete is False

    def test_missing_token_raises_config_error(self) -> None:
        session = MagicMock()
        client = KnowledgeBaseClient(api_token="", session=session)

        with pytest.raises(ConfigError):
            client.fetch_all()
        session.get.assert_not_called()
        assert client.is_configured() is False

    def test_fetch_page_non_json_raises(self) -> None:
        response = _response()
        response.json.side_effect = ValueError("bad json")
        client, _ = _client([response])

        with pytest.raises(UpstreamError) as exc_info:
            client.fetch_page(1)
        assert exc_info.value.page == 1


class TestFetchQualityArticles:
    def test_applies_quality_filter(self) -> None:
        client, _ = _client([
            _response([_item(1), _item(2, KBIsPrivate=True), _item(3, KBStatus=1)]),
            _response([]),
        ])

        result = client.fetch_quality_articles()

        assert [a.id for a in result] == ["1"]
