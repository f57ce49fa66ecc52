"""Property codec: Notion property values <-> front-matter values.

``PropertyCodec.to_local`` turns the properties of a Notion page into a
front-matter map, either for every property (no field mappings: keys are
derived from property names) or only for the mapped ones.
``PropertyCodec.to_remote`` builds the Notion property payloads for a page
update or create from a front-matter map and the field mappings.

Relation properties are rendered as the titles of the related pages,
looked up one at a time through the injected title resolver.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Callable

from notion_vault_sync.config_schema import FieldMapping, FieldType
from notion_vault_sync.converters import plain_rich_text, rich_text_plain
from notion_vault_sync.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TitleResolver = Callable[[str], "str | None"]

CONVERSION_ERROR = "[conversion error]"
_TRUTHY = ("true", "1", "yes", "on")


class UnsupportedPropertyType(Exception):
    """Raised internally for Notion property types without a conversion."""


def auto_key(property_name: str) -> str:
    """Front-matter key for a property when no mappings are configured."""
    return re.sub(r"\s+", "_", property_name.lower())


class PropertyCodec:
    """Convert between Notion properties and front-matter values.

    Args:
        title_resolver: Callable returning the title of a page id, or
            ``None`` if the page cannot be found. Used for relations.
    """

    def __init__(self, title_resolver: TitleResolver | None = None) -> None:
        self._title_resolver = title_resolver

    # ------------------------------------------------------------------
    # Remote -> local
    # ------------------------------------------------------------------

    def to_local(
        self,
        properties: dict[str, Any],
        mappings: list[FieldMapping],
    ) -> dict[str, Any]:
        """Build front-matter values from a page's properties.

        Args:
            properties: Notion property payloads keyed by property name.
            mappings: Field mappings; empty means auto-convert everything.

        Returns:
            Front-matter map (insertion-ordered).
        """
        if not mappings:
            return self._auto_convert(properties)

        frontmatter: dict[str, Any] = {}
        for mapping in mappings:
            prop = properties.get(mapping.remote_property)
            if not isinstance(prop, dict):
                continue
            try:
                value = self.convert_value(prop)
            except UnsupportedPropertyType:
                logger.warning(
                    "Unsupported property type: %s for %s",
                    prop.get("type"),
                    mapping.remote_property,
                )
                continue
            except Exception as exc:
                logger.error(
                    "Error converting property %s: %s",
                    mapping.remote_property,
                    exc,
                )
                continue
            if value is not None:
                frontmatter[mapping.local_property] = value
        return frontmatter

    def _auto_convert(self, properties: dict[str, Any]) -> dict[str, Any]:
        frontmatter: dict[str, Any] = {}
        for name, prop in properties.items():
            if not isinstance(prop, dict):
                continue
            key = auto_key(name)
            try:
                value = self.convert_value(prop)
            except UnsupportedPropertyType:
                logger.warning(
                    "Unsupported property type: %s for %s",
                    prop.get("type"),
                    name,
                )
                value = f"[{prop.get('type')}]"
            except Exception as exc:
                logger.error("Error auto-converting property %s: %s", name, exc)
                value = CONVERSION_ERROR
            frontmatter[key] = "" if value is None else value
        return frontmatter

    def convert_value(self, prop: dict[str, Any]) -> Any:
        """Extract the front-matter value of one Notion property payload.

        Raises:
            UnsupportedPropertyType: For property types without a rule.
        """
        prop_type = prop.get("type")
        payload = prop.get(prop_type) if prop_type else None

        match prop_type:
            case "title" | "rich_text":
                return rich_text_plain(payload)
            case "number" | "checkbox" | "url" | "email" | "phone_number":
                return payload
            case "created_time" | "last_edited_time":
                return payload
            case "date":
                return (payload or {}).get("start")
            case "select":
                return (payload or {}).get("name")
            case "multi_select":
                return [option.get("name") for option in payload or []]
            case "status":
                return (payload or {}).get("name") or "Not started"
            case "relation":
                return self._relation_text(payload or [])
            case "created_by" | "last_edited_by":
                return (payload or {}).get("name") or "Unknown user"
            case "formula":
                return self._formula_value(payload or {})
            case "rollup":
                return self._rollup_value(payload or {})
            case "people":
                names = [p.get("name") or "" for p in payload or []]
                return ", ".join(n for n in names if n) or "No people"
            case "files":
                count = len(payload or [])
                return f"{count} files" if count else "No files"
            case _:
                raise UnsupportedPropertyType(prop_type)

    @staticmethod
    def _formula_value(formula: dict[str, Any]) -> Any:
        match formula.get("type"):
            case "string" | "number" | "boolean":
                return formula.get(formula["type"])
            case "date":
                return (formula.get("date") or {}).get("start")
            case _:
                return "Formula result"

    @staticmethod
    def _rollup_value(rollup: dict[str, Any]) -> Any:
        match rollup.get("type"):
            case "array":
                return f"{len(rollup.get('array') or [])} items"
            case "number":
                return rollup.get("number")
            case _:
                return "Rollup result"

    def _relation_text(self, relations: list[dict[str, Any]]) -> str:
        titles: list[str] = []
        for relation in relations:
            related_id = relation.get("id")
            if not related_id:
                continue
            if self._title_resolver is None:
                titles.append("Untitled")
                continue
            try:
                title = self._title_resolver(related_id)
            except Exception as exc:
                logger.error(
                    "Failed to get page title for relation %s: %s",
                    related_id,
                    exc,
                )
                titles.append("Unknown")
                continue
            titles.append(title or "Untitled")
        return ", ".join(titles)

    # ------------------------------------------------------------------
    # Local -> remote
    # ------------------------------------------------------------------

    def to_remote(
        self,
        frontmatter: dict[str, Any],
        mappings: list[FieldMapping],
        schema: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Build Notion property payloads from front-matter values.

        Args:
            frontmatter: The document's front-matter map.
            mappings: Field mappings; must not be empty.
            schema: Optional property name to Notion type map. When given,
                text fields aimed at title, select, url, email or phone
                properties use that property's payload shape.

        Returns:
            Property payloads keyed by Notion property name.

        Raises:
            ConfigurationError: If *mappings* is empty.
        """
        if not mappings:
            raise ConfigurationError(
                "Cannot sync from the vault to Notion without field mappings",
                field="field_mappings",
            )

        properties: dict[str, Any] = {}
        for mapping in mappings:
            value = frontmatter.get(mapping.local_property)
            if value is None:
                continue
            remote_type = (schema or {}).get(mapping.remote_property)
            try:
                payload = self._remote_payload(mapping.type, value, remote_type)
            except Exception as exc:
                logger.error(
                    "Error converting front-matter %s: %s",
                    mapping.local_property,
                    exc,
                )
                continue
            if payload is not None:
                properties[mapping.remote_property] = payload
        return properties

    def _remote_payload(
        self, field_type: str, value: Any, remote_type: str | None
    ) -> dict[str, Any] | None:
        match field_type:
            case FieldType.TEXT.value:
                return self._text_payload(_as_text(value), remote_type)
            case FieldType.LIST.value:
                values = value if isinstance(value, (list, tuple)) else [value]
                names = [_as_text(v) for v in values]
                return {
                    "multi_select": [{"name": n} for n in names if n.strip()]
                }
            case FieldType.NUMBER.value:
                number = _as_number(value)
                return None if number is None else {"number": number}
            case FieldType.DATE.value | FieldType.DATE_TIME.value:
                if isinstance(value, (date, datetime)):
                    start = value.isoformat()
                else:
                    start = _as_text(value).strip()
                return {"date": {"start": start}} if start else None
            case FieldType.CHECKBOX.value:
                if isinstance(value, str):
                    return {"checkbox": value.strip().lower() in _TRUTHY}
                return {"checkbox": bool(value)}
            case _:
                logger.warning("Unsupported mapping type: %s", field_type)
                return None

    @staticmethod
    def _text_payload(text: str, remote_type: str | None) -> dict[str, Any]:
        match remote_type:
            case "title":
                return {"title": plain_rich_text(text)}
            case "select":
                return {"select": {"name": text} if text.strip() else None}
            case "url" | "email" | "phone_number":
                return {remote_type: text or None}
            case _:
                return {"rich_text": plain_rich_text(text)}


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(_as_text(v) for v in value)
    return str(value)


def _as_number(value: Any) -> int | float | None:
    """Numeric value, or ``None`` when *value* is not a valid number."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value if value == value else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        if number != number or number in (float("inf"), float("-inf")):
            return None
        if number.is_integer() and "." not in text and "e" not in text.lower():
            return int(number)
        return number
    return None


# ------------------------------------------------------------------
# Mapping suggestions
# ------------------------------------------------------------------

_SUGGESTED_FIELD_TYPES: dict[str, str] = {
    "multi_select": FieldType.LIST.value,
    "number": FieldType.NUMBER.value,
    "checkbox": FieldType.CHECKBOX.value,
    "date": FieldType.DATE.value,
    "created_time": FieldType.DATE_TIME.value,
    "last_edited_time": FieldType.DATE_TIME.value,
}


def suggest_local_property(property_name: str) -> str:
    """Front-matter key suggested for a Notion property name."""
    key = re.sub(r"\s+", "_", property_name.strip().lower())
    key = re.sub(r"\W", "", key)
    return key[:30] or "property"


def field_type_for(notion_type: str) -> str:
    """Mapping type suggested for a Notion property type."""
    return _SUGGESTED_FIELD_TYPES.get(notion_type, FieldType.TEXT.value)
