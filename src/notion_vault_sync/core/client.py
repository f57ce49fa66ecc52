import logging
import threading
import time
from typing import Any, Protocol

import requests

from ..config import Config
from ..converters import blocks_to_markdown, markdown_to_blocks, rich_text_plain
from ..exceptions import (
    AuthenticationError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RemoteAPIError,
)
from ..validators import normalize_database_id
from .models import DatabaseInfo, RemoteRecord

logger = logging.getLogger(__name__)

# Notion accepts at most this many children per create/append request.
MAX_CHILDREN_PER_REQUEST = 100

# Block types whose nested children are fetched and rendered.
_NESTED_BLOCK_TYPES = frozenset(
    {"bulleted_list_item", "numbered_list_item", "to_do", "toggle"}
)

_MAX_RETRY_WAIT = 60.0


class RemoteClient(Protocol):
    """Operations the sync engine needs from the remote database service."""

    def list_collection_records(
        self, collection_id: str
    ) -> list[RemoteRecord]:
        """Return every record of a collection with its body, pages hidden."""
        ...  # pragma: no cover

    def get_record_schema(self, collection_id: str) -> dict[str, str]:
        """Return property name to property type for a collection."""
        ...  # pragma: no cover

    def resolve_record_title(self, record_id: str) -> str | None:
        """Return the display title of a record, or ``None`` if not found."""
        ...  # pragma: no cover

    def create_record(
        self,
        collection_id: str,
        properties: dict[str, Any],
        body: str,
    ) -> str:
        """Create a record and return its new id."""
        ...  # pragma: no cover

    def update_record(
        self,
        record_id: str,
        properties: dict[str, Any],
        body: str | None = None,
    ) -> None:
        """Update a record's properties, replacing its body when non-empty."""
        ...  # pragma: no cover


def _title_from_properties(properties: dict[str, Any]) -> str:
    for value in properties.values():
        if isinstance(value, dict) and value.get("type") == "title":
            title = rich_text_plain(value.get("title"))
            if title:
                return title
    return ""


class NotionClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = config.base_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """Session bound to the current thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.token}",
                "Notion-Version": self.config.api_version,
                "Content-Type": "application/json",
            }
        )
        return session

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Send one API request and return the decoded JSON body.

        Rate-limited responses (HTTP 429) are retried up to
        ``config.max_retries`` times, waiting for the ``Retry-After``
        interval between attempts.

        Raises:
            RemoteAPIError: (or a subclass) describing the failure category.
        """
        url = f"{self.base_url}{endpoint}"
        session = self._get_session()

        attempt = 0
        while True:
            try:
                response = session.request(
                    method,
                    url,
                    json=payload,
                    params=params,
                    timeout=(10, self.config.timeout),
                )
            except (requests.ConnectionError, requests.Timeout) as exc:
                raise NetworkError(
                    f"Cannot connect to Notion API: {exc}"
                ) from exc
            except requests.RequestException as exc:
                raise NetworkError(f"Request to Notion failed: {exc}") from exc

            if response.status_code == 429 and attempt < self.config.max_retries:
                wait = self._retry_after(response, attempt)
                logger.warning(
                    "Rate limited on %s %s, retrying in %.1fs (attempt %d/%d)",
                    method,
                    endpoint,
                    wait,
                    attempt + 1,
                    self.config.max_retries,
                )
                time.sleep(wait)
                attempt += 1
                continue

            if response.status_code >= 400:
                raise self._error_for(response, attempt)

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise MalformedResponseError(
                    f"Notion returned a non-JSON response for {method} {endpoint}",
                    response.status_code,
                ) from exc

    @staticmethod
    def _retry_after(response: requests.Response, attempt: int) -> float:
        header = response.headers.get("Retry-After")
        try:
            wait = float(header) if header is not None else float(2**attempt)
        except ValueError:
            wait = float(2**attempt)
        return min(max(wait, 0.0), _MAX_RETRY_WAIT)

    def _error_for(
        self, response: requests.Response, attempt: int
    ) -> RemoteAPIError:
        status = response.status_code
        try:
            body = response.json()
            detail = (
                body.get("message") if isinstance(body, dict) else None
            ) or response.text
        except ValueError:
            detail = response.text
        detail = (detail or response.reason or "").strip()

        match status:
            case 401:
                return AuthenticationError(
                    f"Invalid token - check your API key ({detail})", status
                )
            case 403:
                return PermissionDeniedError(
                    f"Token lacks required permissions ({detail})", status
                )
            case 404:
                return NotFoundError(f"Not found: {detail}", status)
            case 429:
                return RateLimitError(
                    "Rate limit exceeded - try again later",
                    status,
                    retry_after=self._retry_after(response, attempt),
                )
            case _:
                return RemoteAPIError(
                    f"Notion API error {status}: {detail}", status
                )

    # ------------------------------------------------------------------
    # Databases
    # ------------------------------------------------------------------

    def query_database(self, database_id: str) -> list[dict[str, Any]]:
        """
        Return every page of a database, following pagination cursors.
        """
        database_id = normalize_database_id(database_id)
        pages: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            payload: dict[str, Any] = {"page_size": self.config.page_size}
            if cursor:
                payload["start_cursor"] = cursor
            data = self._request(
                "POST", f"/databases/{database_id}/query", payload
            )
            pages.extend(data.get("results") or [])
            if not data.get("has_more") or not data.get("next_cursor"):
                break
            cursor = data["next_cursor"]
        logger.debug(
            "Fetched %d pages from database %s", len(pages), database_id
        )
        return pages

    def get_database(self, database_id: str) -> dict[str, Any]:
        """
        Get the database object (title and property schema).
        """
        return self._request(
            "GET", f"/databases/{normalize_database_id(database_id)}"
        )

    def get_record_schema(self, collection_id: str) -> dict[str, str]:
        """
        Map each database property name to its Notion type.
        """
        properties = self.get_database(collection_id).get("properties") or {}
        return {
            name: prop.get("type", "unknown")
            for name, prop in properties.items()
        }

    def list_databases(self) -> list[DatabaseInfo]:
        """
        List databases shared with the integration.
        """
        databases: list[DatabaseInfo] = []
        cursor: str | None = None
        while True:
            payload: dict[str, Any] = {
                "filter": {"property": "object", "value": "database"},
                "page_size": self.config.page_size,
            }
            if cursor:
                payload["start_cursor"] = cursor
            data = self._request("POST", "/search", payload)
            for item in data.get("results") or []:
                databases.append(
                    DatabaseInfo(
                        id=item["id"],
                        title=rich_text_plain(item.get("title")) or "Untitled",
                        url=item.get("url"),
                    )
                )
            if not data.get("has_more") or not data.get("next_cursor"):
                break
            cursor = data["next_cursor"]
        return databases

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def list_block_children(
        self, block_id: str, recursive: bool = True
    ) -> list[dict[str, Any]]:
        """
        Return the child blocks of a page or block, following pagination.

        With ``recursive`` set, list-like blocks that have children get them
        attached under a ``children`` key.
        """
        blocks: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": self.config.page_size}
            if cursor:
                params["start_cursor"] = cursor
            data = self._request(
                "GET", f"/blocks/{block_id}/children", params=params
            )
            blocks.extend(data.get("results") or [])
            if not data.get("has_more") or not data.get("next_cursor"):
                break
            cursor = data["next_cursor"]

        if recursive:
            for block in blocks:
                if (
                    block.get("has_children")
                    and block.get("type") in _NESTED_BLOCK_TYPES
                ):
                    block["children"] = self.list_block_children(block["id"])
        return blocks

    def append_block_children(
        self, block_id: str, children: list[dict[str, Any]]
    ) -> None:
        """
        Append blocks to a page, 100 blocks per request.
        """
        for start in range(0, len(children), MAX_CHILDREN_PER_REQUEST):
            self._request(
                "PATCH",
                f"/blocks/{block_id}/children",
                {"children": children[start : start + MAX_CHILDREN_PER_REQUEST]},
            )

    def get_page_markdown(self, page_id: str) -> str:
        """
        Fetch a page body and render it as Markdown.
        """
        return blocks_to_markdown(self.list_block_children(page_id))

    # ------------------------------------------------------------------
    # Records (pages)
    # ------------------------------------------------------------------

    def list_collection_records(
        self, collection_id: str
    ) -> list[RemoteRecord]:
        """
        Return a snapshot of every page in a database, bodies included.

        A failure fetching one page body yields an empty body for that page
        instead of failing the whole snapshot.
        """
        records: list[RemoteRecord] = []
        for page in self.query_database(collection_id):
            page_id = page["id"]
            try:
                content = self.get_page_markdown(page_id)
            except RemoteAPIError as exc:
                logger.warning(
                    "Failed to fetch content for page %s: %s", page_id, exc
                )
                content = ""
            records.append(
                RemoteRecord(
                    id=page_id,
                    properties=page.get("properties") or {},
                    content=content,
                    last_modified=page.get("last_edited_time") or "",
                )
            )
        return records

    def resolve_record_title(self, record_id: str) -> str | None:
        """
        Return a page's title, ``"Untitled"`` when it has none, or ``None``
        when the page does not exist or is not shared with the integration.
        """
        try:
            page = self._request("GET", f"/pages/{record_id}")
        except NotFoundError:
            return None
        return _title_from_properties(page.get("properties") or {}) or "Untitled"

    def create_record(
        self,
        collection_id: str,
        properties: dict[str, Any],
        body: str,
    ) -> str:
        """
        Create a page in a database and return its id.
        """
        children = markdown_to_blocks(body)
        data = self._request(
            "POST",
            "/pages",
            {
                "parent": {
                    "database_id": normalize_database_id(collection_id)
                },
                "properties": properties,
                "children": children[:MAX_CHILDREN_PER_REQUEST],
            },
        )
        page_id = data.get("id")
        if not page_id:
            raise MalformedResponseError(
                "Notion did not return an id for the created page"
            )
        if len(children) > MAX_CHILDREN_PER_REQUEST:
            self.append_block_children(
                page_id, children[MAX_CHILDREN_PER_REQUEST:]
            )
        return page_id

    def update_record(
        self,
        record_id: str,
        properties: dict[str, Any],
        body: str | None = None,
    ) -> None:
        """
        Update page properties; when ``body`` is non-empty, replace the
        page content with it.
        """
        self._request("PATCH", f"/pages/{record_id}", {"properties": properties})

        if not body:
            return

        for block in self.list_block_children(record_id, recursive=False):
            self._request("DELETE", f"/blocks/{block['id']}")

        children = markdown_to_blocks(body)
        if children:
            self.append_block_children(record_id, children)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_token(self) -> str:
        """
        Validate the integration token with a minimal search request.

        Returns:
            Human-readable confirmation message.

        Raises:
            RemoteAPIError: If the token is rejected or Notion is unreachable.
        """
        self._request("POST", "/search", {"page_size": 1})
        return "Token valid. Connected to Notion API."

    def validate_database(self, database_id: str) -> str:
        """
        Check that a database exists and is shared with the integration.

        Returns:
            The database title (``"Unknown"`` when it has none).
        """
        database = self.get_database(database_id)
        return rich_text_plain(database.get("title")) or "Unknown"
