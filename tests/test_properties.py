"""Tests for the Notion property codec."""

import pytest

from notion_vault_sync.config_schema import FieldMapping
from notion_vault_sync.exceptions import ConfigurationError
from notion_vault_sync.sync.properties import (
    CONVERSION_ERROR,
    PropertyCodec,
    UnsupportedPropertyType,
    auto_key,
    field_type_for,
    suggest_local_property,
)

from conftest import text_prop, title_prop


def _mapping(remote, local, type_="text"):
    return FieldMapping(remote_property=remote, local_property=local, type=type_)


@pytest.fixture
def codec():
    return PropertyCodec()


class TestConvertValue:
    @pytest.mark.parametrize(
        "prop,expected",
        [
            (title_prop("Dune"), "Dune"),
            (text_prop("A note"), "A note"),
            ({"type": "number", "number": 4.5}, 4.5),
            ({"type": "checkbox", "checkbox": True}, True),
            ({"type": "url", "url": "https://x.test"}, "https://x.test"),
            ({"type": "email", "email": "a@b.test"}, "a@b.test"),
            ({"type": "phone_number", "phone_number": "123"}, "123"),
            ({"type": "date", "date": {"start": "2026-01-02"}}, "2026-01-02"),
            ({"type": "date", "date": None}, None),
            ({"type": "select", "select": {"name": "Done"}}, "Done"),
            ({"type": "select", "select": None}, None),
            (
                {
                    "type": "multi_select",
                    "multi_select": [{"name": "a"}, {"name": "b"}],
                },
                ["a", "b"],
            ),
            ({"type": "status", "status": {"name": "Doing"}}, "Doing"),
            ({"type": "status", "status": None}, "Not started"),
            (
                {"type": "created_time", "created_time": "2026-01-01T00:00:00Z"},
                "2026-01-01T00:00:00Z",
            ),
            ({"type": "created_by", "created_by": {"name": "Ann"}}, "Ann"),
            ({"type": "last_edited_by", "last_edited_by": {}}, "Unknown user"),
            (
                {"type": "people", "people": [{"name": "Ann"}, {"name": "Bo"}]},
                "Ann, Bo",
            ),
            ({"type": "people", "people": []}, "No people"),
            ({"type": "files", "files": [{}, {}]}, "2 files"),
            ({"type": "files", "files": []}, "No files"),
        ],
    )
    def test_property_types(self, codec, prop, expected):
        assert codec.convert_value(prop) == expected

    @pytest.mark.parametrize(
        "formula,expected",
        [
            ({"type": "string", "string": "x"}, "x"),
            ({"type": "number", "number": 3}, 3),
            ({"type": "boolean", "boolean": False}, False),
            ({"type": "date", "date": {"start": "2026-03-01"}}, "2026-03-01"),
            ({"type": "other"}, "Formula result"),
        ],
    )
    def test_formula(self, codec, formula, expected):
        assert codec.convert_value({"type": "formula", "formula": formula}) == expected

    @pytest.mark.parametrize(
        "rollup,expected",
        [
            ({"type": "array", "array": [{}, {}, {}]}, "3 items"),
            ({"type": "number", "number": 7}, 7),
            ({"type": "date"}, "Rollup result"),
        ],
    )
    def test_rollup(self, codec, rollup, expected):
        assert codec.convert_value({"type": "rollup", "rollup": rollup}) == expected

    def test_unsupported_type_raises(self, codec):
        with pytest.raises(UnsupportedPropertyType):
            codec.convert_value({"type": "button", "button": {}})


class TestRelations:
    def test_titles_resolved(self):
        titles = {"r1": "Dune", "r2": None}
        codec = PropertyCodec(title_resolver=titles.get)
        prop = {"type": "relation", "relation": [{"id": "r1"}, {"id": "r2"}]}
        assert codec.convert_value(prop) == "Dune, Untitled"

    def test_lookup_failure_is_unknown(self):
        def resolver(record_id):
            raise RuntimeError("network down")

        codec = PropertyCodec(title_resolver=resolver)
        prop = {"type": "relation", "relation": [{"id": "r1"}]}
        assert codec.convert_value(prop) == "Unknown"

    def test_empty_relation(self, codec):
        assert codec.convert_value({"type": "relation", "relation": []}) == ""


class TestToLocal:
    def test_auto_convert_all_properties(self, codec):
        properties = {
            "Name": title_prop("Dune"),
            "Page Count": {"type": "number", "number": 412},
            "Due": {"type": "date", "date": None},
            "Action": {"type": "button", "button": {}},
        }
        assert codec.to_local(properties, []) == {
            "name": "Dune",
            "page_count": 412,
            "due": "",
            "action": "[button]",
        }

    def test_auto_convert_conversion_error(self, codec):
        properties = {"Tags": {"type": "multi_select", "multi_select": "bad"}}
        assert codec.to_local(properties, []) == {"tags": CONVERSION_ERROR}

    def test_mapped_properties_only(self, codec):
        properties = {
            "Name": title_prop("Dune"),
            "Tags": {"type": "multi_select", "multi_select": [{"name": "sf"}]},
            "Ignored": text_prop("nope"),
        }
        mappings = [_mapping("Name", "title"), _mapping("Tags", "tags", "list")]
        assert codec.to_local(properties, mappings) == {
            "title": "Dune",
            "tags": ["sf"],
        }

    def test_mapped_missing_and_unsupported_skipped(self, codec):
        properties = {"Action": {"type": "button", "button": {}}}
        mappings = [_mapping("Missing", "missing"), _mapping("Action", "action")]
        assert codec.to_local(properties, mappings) == {}

    def test_mapped_empty_value_omitted(self, codec):
        properties = {"Status": {"type": "select", "select": None}}
        assert codec.to_local(properties, [_mapping("Status", "status")]) == {}


class TestToRemote:
    def test_requires_mappings(self, codec):
        with pytest.raises(ConfigurationError) as exc_info:
            codec.to_remote({"title": "x"}, [])
        assert exc_info.value.field == "field_mappings"

    def test_payload_per_type(self, codec):
        frontmatter = {
            "title": "Dune",
            "tags": ["sf", " ", "classic"],
            "rating": "4.5",
            "read": "yes",
            "due": "2026-01-02",
        }
        mappings = [
            _mapping("Notes", "title"),
            _mapping("Tags", "tags", "list"),
            _mapping("Rating", "rating", "number"),
            _mapping("Read", "read", "checkbox"),
            _mapping("Due", "due", "date"),
        ]
        properties = codec.to_remote(frontmatter, mappings)
        assert properties["Notes"] == {"rich_text": [{"type": "text", "text": {"content": "Dune"}}]}
        assert properties["Tags"] == {"multi_select": [{"name": "sf"}, {"name": "classic"}]}
        assert properties["Rating"] == {"number": 4.5}
        assert properties["Read"] == {"checkbox": True}
        assert properties["Due"] == {"date": {"start": "2026-01-02"}}

    def test_missing_and_invalid_values_skipped(self, codec):
        mappings = [
            _mapping("Rating", "rating", "number"),
            _mapping("Due", "due", "date"),
            _mapping("Other", "other"),
        ]
        properties = codec.to_remote({"rating": "lots", "due": ""}, mappings)
        assert properties == {}

    def test_integer_number_stays_int(self, codec):
        mappings = [_mapping("Pages", "pages", "number")]
        assert codec.to_remote({"pages": "412"}, mappings) == {"Pages": {"number": 412}}

    def test_unknown_mapping_type_skipped(self, codec):
        mappings = [_mapping("Blob", "blob", "binary")]
        assert codec.to_remote({"blob": "x"}, mappings) == {}

    def test_schema_shapes_text_payloads(self, codec):
        """Test that the schema picks title/select/url payload shapes."""
        mappings = [
            _mapping("Name", "title"),
            _mapping("Status", "status"),
            _mapping("Link", "link"),
        ]
        schema = {"Name": "title", "Status": "select", "Link": "url"}
        properties = codec.to_remote(
            {"title": "Dune", "status": "Done", "link": ""}, mappings, schema
        )
        assert properties["Name"] == {"title": [{"type": "text", "text": {"content": "Dune"}}]}
        assert properties["Status"] == {"select": {"name": "Done"}}
        assert properties["Link"] == {"url": None}

    def test_long_text_chunked(self, codec):
        mappings = [_mapping("Notes", "notes")]
        properties = codec.to_remote({"notes": "x" * 4500}, mappings)
        chunks = properties["Notes"]["rich_text"]
        assert [len(c["text"]["content"]) for c in chunks] == [2000, 2000, 500]


class TestSuggestions:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Name", "name"),
            ("Page Count", "page_count"),
            ("Due (date)", "due_date"),
            ("!!!", "property"),
            ("A" * 40, "a" * 30),
        ],
    )
    def test_suggest_local_property(self, name, expected):
        assert suggest_local_property(name) == expected

    @pytest.mark.parametrize(
        "notion_type,expected",
        [
            ("multi_select", "list"),
            ("number", "number"),
            ("checkbox", "checkbox"),
            ("date", "date"),
            ("last_edited_time", "date-time"),
            ("relation", "text"),
        ],
    )
    def test_field_type_for(self, notion_type, expected):
        assert field_type_for(notion_type) == expected

    def test_auto_key(self):
        assert auto_key("Due  Date") == "due_date"