"""
Input validation functions for notion-vault-sync.

Provides validation for front-matter keys, Notion database ids and vault
folder paths so configuration mistakes are reported before any request is
made or any file is written.
"""

import re

# Characters that would make a front-matter line ambiguous when it starts
# a key: YAML indicators and quotes.
_FORBIDDEN_KEY_PREFIXES = ("-", "#", "[", "{", "'", '"', "!", "&", "*", "|", ">")

_HEX_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{32}$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Front-matter key")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_frontmatter_key(key: str) -> tuple[bool, str]:
    """
    Validate a key used in a document's front-matter block.

    Args:
        key: The front-matter key to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot contain ':' (the key/value separator)
        - Cannot contain line breaks
        - Cannot start with a YAML indicator or quote character
    """
    if not key or not key.strip():
        return (
            False,
            format_validation_error("Front-matter key", "cannot be empty"),
        )

    if ":" in key:
        return (
            False,
            format_validation_error("Front-matter key", "cannot contain ':'"),
        )

    if "\n" in key or "\r" in key:
        return (
            False,
            format_validation_error(
                "Front-matter key", "cannot contain line breaks"
            ),
        )

    if key.startswith(_FORBIDDEN_KEY_PREFIXES):
        return (
            False,
            format_validation_error(
                "Front-matter key",
                f"cannot start with '{key[0]}'",
            ),
        )

    return (True, "")


def normalize_database_id(database_id: str) -> str:
    """Strip dashes and whitespace from a Notion database id.

    Notion accepts both the dashed UUID form and the 32-character form
    copied from a database URL.
    """
    return re.sub(r"[-\s]", "", database_id)


def validate_database_id(database_id: str) -> tuple[bool, str]:
    """
    Validate a Notion database id.

    Args:
        database_id: Database id, dashed or not

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not database_id or not database_id.strip():
        return (
            False,
            format_validation_error("Database ID", "cannot be empty"),
        )

    if not _HEX_ID_PATTERN.match(normalize_database_id(database_id)):
        return (
            False,
            format_validation_error(
                "Database ID",
                "must be 32 hexadecimal characters (dashes optional)",
            ),
        )

    return (True, "")


def validate_folder_path(folder: str) -> tuple[bool, str]:
    """
    Validate a vault-relative folder path.

    Args:
        folder: Folder path relative to the vault root

    Returns:
        Tuple of (is_valid, error_message).

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot be absolute
        - Cannot contain '..' segments (path traversal protection)
    """
    if not folder or not folder.strip():
        return (
            False,
            format_validation_error("Folder", "cannot be empty"),
        )

    if folder.startswith("/"):
        return (
            False,
            format_validation_error(
                "Folder", "must be relative to the vault root"
            ),
        )

    if ".." in folder.replace("\\", "/").split("/"):
        return (
            False,
            format_validation_error("Folder", "cannot contain '..'"),
        )

    return (True, "")
