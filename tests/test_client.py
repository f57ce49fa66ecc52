from unittest.mock import Mock, patch

import pytest
import requests

from notion_vault_sync.core.client import NotionClient
from notion_vault_sync.exceptions import (
    AuthenticationError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RemoteAPIError,
)

from conftest import DATABASE_ID, rich


def _response(status=200, body=None, headers=None, text=""):
    response = Mock()
    response.status_code = status
    response.headers = headers or {}
    response.reason = "Reason"
    response.text = text
    if body is None:
        response.content = b""
        response.json.side_effect = ValueError("no json")
    else:
        response.content = b"{...}"
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def client(mock_config, session):
    client = NotionClient(mock_config)
    client._get_session = Mock(return_value=session)
    return client


# Session setup
def test_session_headers(mock_config):
    """Test that the session carries auth and version headers."""
    client = NotionClient(mock_config)
    headers = client.session.headers
    assert headers["Authorization"] == f"Bearer {mock_config.token}"
    assert headers["Notion-Version"] == "2022-06-28"


def test_session_is_reused_per_thread(mock_config):
    client = NotionClient(mock_config)
    assert client.session is client.session


def test_base_url_trailing_slash_stripped(mock_config):
    mock_config.base_url = "https://api.notion.test/v1/"
    client = NotionClient(mock_config)
    assert client.base_url == "https://api.notion.test/v1"


# Transport
class TestRequest:
    def test_returns_json_body(self, client, session):
        session.request.return_value = _response(body={"ok": True})
        assert client._request("GET", "/users/me") == {"ok": True}
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://api.notion.test/v1/users/me")
        assert kwargs["timeout"] == (10, 5.0)

    def test_empty_body_returns_empty_dict(self, client, session):
        session.request.return_value = _response(body=None)
        assert client._request("DELETE", "/blocks/b1") == {}

    @patch("notion_vault_sync.core.client.time.sleep")
    def test_rate_limit_retried_with_retry_after(self, mock_sleep, client, session):
        """Test that HTTP 429 is retried after the Retry-After interval."""
        session.request.side_effect = [
            _response(429, {"message": "slow down"}, {"Retry-After": "3"}),
            _response(body={"ok": True}),
        ]
        assert client._request("GET", "/x") == {"ok": True}
        mock_sleep.assert_called_once_with(3.0)

    @patch("notion_vault_sync.core.client.time.sleep")
    def test_rate_limit_gives_up_after_max_retries(
        self, mock_sleep, client, session
    ):
        session.request.return_value = _response(429, {"message": "slow"})
        with pytest.raises(RateLimitError) as exc_info:
            client._request("GET", "/x")
        # max_retries=2 in mock_config: one first try plus two retries
        assert session.request.call_count == 3
        assert mock_sleep.call_count == 2
        assert exc_info.value.category == "rate_limited"

    @patch("notion_vault_sync.core.client.time.sleep")
    def test_retry_after_without_header_backs_off(
        self, mock_sleep, client, session
    ):
        session.request.side_effect = [
            _response(429, {}),
            _response(429, {}),
            _response(body={}),
        ]
        client._request("GET", "/x")
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.parametrize(
        "status,error_cls,category",
        [
            (401, AuthenticationError, "invalid_token"),
            (403, PermissionDeniedError, "permission_denied"),
            (404, NotFoundError, "not_found"),
            (500, RemoteAPIError, "server_error"),
        ],
    )
    def test_error_categories(self, client, session, status, error_cls, category):
        session.request.return_value = _response(status, {"message": "boom"})
        with pytest.raises(error_cls) as exc_info:
            client._request("GET", "/x")
        assert exc_info.value.category == category
        assert exc_info.value.status_code == status
        assert "boom" in str(exc_info.value)

    def test_connection_error_is_network_error(self, client, session):
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(NetworkError):
            client._request("GET", "/x")

    def test_timeout_is_network_error(self, client, session):
        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(NetworkError) as exc_info:
            client._request("GET", "/x")
        assert exc_info.value.category == "network"

    def test_non_json_body_is_malformed(self, client, session):
        response = _response(200, None)
        response.content = b"<html>"
        session.request.return_value = response
        with pytest.raises(MalformedResponseError):
            client._request("GET", "/x")


# Databases
class TestQueryDatabase:
    def test_follows_pagination(self, client, session):
        session.request.side_effect = [
            _response(
                body={
                    "results": [{"id": "p1"}, {"id": "p2"}],
                    "has_more": True,
                    "next_cursor": "c1",
                }
            ),
            _response(body={"results": [{"id": "p3"}], "has_more": False}),
        ]
        pages = client.query_database("0123-4567-89ab")
        assert [p["id"] for p in pages] == ["p1", "p2", "p3"]

        first, second = session.request.call_args_list
        assert first.args[1].endswith("/databases/0123456789ab/query")
        assert first.kwargs["json"] == {"page_size": 2}
        assert second.kwargs["json"] == {"page_size": 2, "start_cursor": "c1"}

    def test_get_record_schema(self, client, session):
        session.request.return_value = _response(
            body={
                "properties": {
                    "Name": {"type": "title"},
                    "Tags": {"type": "multi_select"},
                }
            }
        )
        assert client.get_record_schema(DATABASE_ID) == {
            "Name": "title",
            "Tags": "multi_select",
        }

    def test_list_databases(self, client, session):
        session.request.return_value = _response(
            body={
                "results": [
                    {"id": "d1", "title": rich("Books"), "url": "https://n/d1"},
                    {"id": "d2", "title": []},
                ],
                "has_more": False,
            }
        )
        databases = client.list_databases()
        assert [(d.id, d.title) for d in databases] == [
            ("d1", "Books"),
            ("d2", "Untitled"),
        ]
        payload = session.request.call_args.kwargs["json"]
        assert payload["filter"] == {"property": "object", "value": "database"}

    def test_validate_database_returns_title(self, client, session):
        session.request.return_value = _response(body={"title": rich("Books")})
        assert client.validate_database(DATABASE_ID) == "Books"

    def test_validate_database_without_title(self, client, session):
        session.request.return_value = _response(body={"title": []})
        assert client.validate_database(DATABASE_ID) == "Unknown"


# Blocks
class TestBlocks:
    def test_nested_list_children_fetched(self, client, session):
        """Test that list items with children get them attached."""
        parent = {
            "id": "b1",
            "type": "bulleted_list_item",
            "has_children": True,
            "bulleted_list_item": {"rich_text": rich("parent")},
        }
        child = {
            "id": "b2",
            "type": "bulleted_list_item",
            "has_children": False,
            "bulleted_list_item": {"rich_text": rich("child")},
        }
        session.request.side_effect = [
            _response(body={"results": [parent], "has_more": False}),
            _response(body={"results": [child], "has_more": False}),
        ]
        blocks = client.list_block_children("page")
        assert blocks[0]["children"] == [child]

    def test_non_list_children_not_fetched(self, client, session):
        column = {"id": "b1", "type": "column_list", "has_children": True}
        session.request.return_value = _response(
            body={"results": [column], "has_more": False}
        )
        client.list_block_children("page")
        assert session.request.call_count == 1

    def test_append_chunks_children(self, client, session):
        session.request.return_value = _response(body={})
        children = [{"type": "divider", "divider": {}}] * 250
        client.append_block_children("page", children)
        sizes = [len(c.kwargs["json"]["children"]) for c in session.request.call_args_list]
        assert sizes == [100, 100, 50]

    def test_get_page_markdown(self, client, session):
        session.request.return_value = _response(
            body={
                "results": [
                    {
                        "id": "b1",
                        "type": "heading_1",
                        "heading_1": {"rich_text": rich("Title")},
                    },
                    {
                        "id": "b2",
                        "type": "paragraph",
                        "paragraph": {"rich_text": rich("Body")},
                    },
                ],
                "has_more": False,
            }
        )
        assert client.get_page_markdown("page") == "# Title\n\nBody"


# Records
class TestRecords:
    def test_list_collection_records(self, client):
        client.query_database = Mock(
            return_value=[
                {
                    "id": "p1",
                    "properties": {"Name": {"type": "title", "title": rich("A")}},
                    "last_edited_time": "2026-01-01T00:00:00.000Z",
                }
            ]
        )
        client.get_page_markdown = Mock(return_value="Body")
        records = client.list_collection_records(DATABASE_ID)
        assert len(records) == 1
        assert records[0].id == "p1"
        assert records[0].content == "Body"
        assert records[0].last_modified == "2026-01-01T00:00:00.000Z"

    def test_body_failure_yields_empty_content(self, client):
        """Test that one unreadable page body does not fail the snapshot."""
        client.query_database = Mock(return_value=[{"id": "p1"}, {"id": "p2"}])
        client.get_page_markdown = Mock(
            side_effect=[NotFoundError("gone", 404), "Second"]
        )
        records = client.list_collection_records(DATABASE_ID)
        assert [r.content for r in records] == ["", "Second"]

    def test_resolve_record_title(self, client, session):
        session.request.return_value = _response(
            body={"properties": {"Name": {"type": "title", "title": rich("Dune")}}}
        )
        assert client.resolve_record_title("p1") == "Dune"

    def test_resolve_record_title_untitled(self, client, session):
        session.request.return_value = _response(
            body={"properties": {"Name": {"type": "title", "title": []}}}
        )
        assert client.resolve_record_title("p1") == "Untitled"

    def test_resolve_record_title_missing_page(self, client, session):
        session.request.return_value = _response(404, {"message": "nope"})
        assert client.resolve_record_title("p1") is None

    def test_create_record(self, client, session):
        session.request.return_value = _response(body={"id": "new-page"})
        new_id = client.create_record(
            DATABASE_ID, {"Name": {"title": rich("Dune")}}, "Hello"
        )
        assert new_id == "new-page"
        payload = session.request.call_args.kwargs["json"]
        assert payload["parent"] == {"database_id": DATABASE_ID}
        assert payload["children"][0]["type"] == "paragraph"

    def test_create_record_appends_overflow_children(self, client, session):
        session.request.return_value = _response(body={"id": "new-page"})
        body = "\n\n".join(f"Paragraph {i}" for i in range(130))
        client.create_record(DATABASE_ID, {}, body)
        calls = session.request.call_args_list
        assert len(calls[0].kwargs["json"]["children"]) == 100
        assert calls[1].args[0] == "PATCH"
        assert calls[1].args[1].endswith("/blocks/new-page/children")
        assert len(calls[1].kwargs["json"]["children"]) == 30

    def test_create_record_without_id_is_malformed(self, client, session):
        session.request.return_value = _response(body={"object": "page"})
        with pytest.raises(MalformedResponseError):
            client.create_record(DATABASE_ID, {}, "")

    def test_update_record_properties_only(self, client, session):
        session.request.return_value = _response(body={})
        client.update_record("p1", {"Rating": {"number": 5}})
        session.request.assert_called_once()
        assert session.request.call_args.args[0] == "PATCH"

    def test_update_record_replaces_body(self, client, session):
        """Test that a non-empty body deletes old blocks before appending."""
        session.request.side_effect = [
            _response(body={}),
            _response(
                body={
                    "results": [{"id": "old1", "type": "paragraph"}],
                    "has_more": False,
                }
            ),
            _response(body={}),
            _response(body={}),
        ]
        client.update_record("p1", {}, "New body")
        methods = [c.args[0] for c in session.request.call_args_list]
        assert methods == ["PATCH", "GET", "DELETE", "PATCH"]
        assert session.request.call_args_list[2].args[1].endswith("/blocks/old1")

    def test_validate_token(self, client, session):
        session.request.return_value = _response(body={"results": []})
        assert client.validate_token() == "Token valid. Connected to Notion API."

    def test_validate_token_rejected(self, client, session):
        session.request.return_value = _response(401, {"message": "bad token"})
        with pytest.raises(AuthenticationError):
            client.validate_token()


@pytest.mark.live
def test_live_validate_token():
    """Test the token against the real Notion API."""
    import os

    from notion_vault_sync.config import load_config

    if not os.getenv("NOTION_TOKEN"):
        pytest.skip("NOTION_TOKEN not set")
    client = NotionClient(load_config())
    assert "Token valid" in client.validate_token()
