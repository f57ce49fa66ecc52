"""Connection configuration for the Notion API client.

Reads Notion connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    NOTION_TOKEN: Notion integration token (required)
    NOTION_BASE_URL: API base URL (optional, default: https://api.notion.com/v1)
    NOTION_TIMEOUT: Read timeout in seconds (optional, default: 60)
    NOTION_MAX_RETRIES: Retries for rate-limited requests (optional, default: 3)
    NOTION_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# Notion integration tokens are long opaque strings; anything shorter than
# this is a copy/paste mistake.
MIN_TOKEN_LENGTH = 10


@dataclass
class Config:
    token: str
    base_url: str = "https://api.notion.com/v1"
    api_version: str = "2022-06-28"
    timeout: float = 60.0
    max_retries: int = 3
    page_size: int = 100
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the token is missing or too short, or the base URL
            is malformed.
    """
    config.token = config.token.strip()

    if not config.token:
        raise ValueError(
            "Notion token cannot be empty. Set NOTION_TOKEN environment variable."
        )

    if len(config.token) < MIN_TOKEN_LENGTH:
        raise ValueError(
            "Notion token appears to be too short. Copy the full integration secret."
        )

    config.base_url = config.base_url.strip()
    if not config.base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid Notion base URL '{config.base_url}': must start with http:// or https://"
        )
    if not urlparse(config.base_url).hostname:
        raise ValueError(
            f"Invalid Notion base URL '{config.base_url}': URL must include a hostname"
        )
    config.base_url = config.base_url.removesuffix("/")

    if config.base_url.startswith("http://"):
        logger.warning(
            "WARNING: Notion base URL is not HTTPS. Use only for testing."
        )


def get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    token: str | None = None,
    base_url: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override Notion token (takes precedence over env var and YAML).
        base_url: Override API base URL.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from YAML config file ``notion``
            section. Used as fallback when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the token is missing after checking all sources, or a
            numeric env var is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_token = token or os.getenv("NOTION_TOKEN") or fb.get("token")
    if not final_token:
        raise ValueError(
            "Notion token not found. Set NOTION_TOKEN environment variable, "
            "pass --token CLI argument, or add 'token' to the notion section of config.yml."
        )

    final_base_url = (
        base_url
        or os.getenv("NOTION_BASE_URL")
        or fb.get("base_url")
        or "https://api.notion.com/v1"
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("NOTION_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    timeout_raw = os.getenv("NOTION_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = float(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid NOTION_TIMEOUT '{timeout_raw}': must be a positive number of seconds"
            ) from None
        if final_timeout <= 0:
            raise ValueError(
                f"Invalid NOTION_TIMEOUT '{timeout_raw}': must be a positive number of seconds"
            )
    else:
        final_timeout = float(fb.get("timeout", 60.0))

    retries_raw = os.getenv("NOTION_MAX_RETRIES")
    if retries_raw is not None:
        try:
            final_retries = int(retries_raw)
        except ValueError:
            raise ValueError(
                f"Invalid NOTION_MAX_RETRIES '{retries_raw}': must be a number between 0 and 10"
            ) from None
        if not (0 <= final_retries <= 10):
            raise ValueError(
                f"Invalid NOTION_MAX_RETRIES '{retries_raw}': must be a number between 0 and 10"
            )
    else:
        final_retries = int(fb.get("max_retries", 3))

    config = Config(
        token=final_token,
        base_url=final_base_url,
        api_version=fb.get("api_version") or "2022-06-28",
        timeout=final_timeout,
        max_retries=final_retries,
        page_size=int(fb.get("page_size", 100)),
        debug=final_debug,
    )

    validate_config(config)

    return config
