"""Error response builders for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention.
"""

import mcp.types as types

from ...exceptions import RemoteAPIError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, invalid_token, permission_denied,
            rate_limited, validation_error, configuration_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Sync config 'x' not found", "Use notion_sync_status to list configs.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Notion API errors
# ---------------------------------------------------------------------------

_CORRECTIVE_ACTIONS: dict[str, str] = {
    "invalid_token": "Check NOTION_TOKEN; create a new integration token if it was revoked.",
    "permission_denied": "Share the database with the integration in Notion (Connections menu).",
    "not_found": "Use notion_list_databases to find databases shared with the integration.",
    "rate_limited": "Wait a minute, then retry.",
    "network": "Check network connectivity to api.notion.com and retry.",
    "malformed_response": "Retry later; Notion returned an unexpected response.",
    "server_error": "Retry later or check https://status.notion.so.",
}


def translate_remote_error(error: RemoteAPIError) -> types.CallToolResult:
    """Translate a Notion API error into a structured error response.

    The error's ``category`` selects the corrective action.
    """
    category = error.category
    action = _CORRECTIVE_ACTIONS.get(category, _CORRECTIVE_ACTIONS["server_error"])
    return build_error_response(category, str(error), action)
