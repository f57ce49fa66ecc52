"""Change detection for linked Notion page / vault document pairs.

Only mapped fields take part in the property comparison. Values are
normalized before comparing so that representation differences between the
two sides (list order, ``1.0`` vs ``1``, surrounding whitespace) are not
reported as changes.
"""

from __future__ import annotations

import logging
from typing import Any

from notion_vault_sync.config_schema import FieldMapping
from notion_vault_sync.core.models import RemoteRecord
from notion_vault_sync.sync.models import ChangeSet, LocalDocument
from notion_vault_sync.sync.properties import PropertyCodec

logger = logging.getLogger(__name__)


def normalize_value(value: Any) -> str:
    """Canonical string form of a front-matter value for comparison."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple, set)):
        return ",".join(sorted(normalize_value(v) for v in value))
    return str(value).strip()


def normalize_content(text: str | None) -> str:
    """Body text with CRLF line endings folded and outer whitespace trimmed."""
    return (text or "").replace("\r\n", "\n").strip()


class ChangeDetector:
    """Compare a Notion page with its linked vault document.

    Args:
        codec: Property codec used to convert the page's properties.
        mappings: Field mappings of the configuration.
    """

    def __init__(self, codec: PropertyCodec, mappings: list[FieldMapping]) -> None:
        self._codec = codec
        self._mappings = mappings

    def has_property_changes(
        self, record: RemoteRecord, document: LocalDocument
    ) -> bool:
        remote_values = self._codec.to_local(record.properties, self._mappings)
        for mapping in self._mappings:
            key = mapping.local_property
            remote = normalize_value(remote_values.get(key))
            local = normalize_value(document.frontmatter.get(key))
            if remote != local:
                logger.debug(
                    "Property %s differs for %s: %r != %r",
                    key,
                    document.path,
                    remote,
                    local,
                )
                return True
        return False

    def has_content_changes(
        self, record: RemoteRecord, document: LocalDocument
    ) -> bool:
        return normalize_content(record.content) != normalize_content(
            document.content
        )

    def detect(self, record: RemoteRecord, document: LocalDocument) -> ChangeSet:
        return ChangeSet(
            property_changes=self.has_property_changes(record, document),
            content_changes=self.has_content_changes(record, document),
        )
