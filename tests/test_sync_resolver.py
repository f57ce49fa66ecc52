"""Tests for change detection and conflict resolution policies."""

import pytest

from notion_vault_sync.config_schema import FieldMapping
from notion_vault_sync.sync.detector import (
    ChangeDetector,
    normalize_content,
    normalize_value,
)
from notion_vault_sync.sync.models import ChangeSet, ConflictOutcome, LocalDocument
from notion_vault_sync.sync.properties import PropertyCodec
from notion_vault_sync.sync.resolver import (
    ManualResolver,
    NewerWinsResolver,
    NotionWinsResolver,
    ObsidianWinsResolver,
    create_resolver,
    parse_remote_timestamp,
)

from conftest import make_record

# 2026-01-01T00:00:00Z in epoch milliseconds
JAN_1_MS = 1767225600000

CHANGED = ChangeSet(property_changes=True)
UNCHANGED = ChangeSet()


def _document(**kwargs):
    defaults = {"path": "Reading/Dune.md", "remote_id": "p1"}
    defaults.update(kwargs)
    return LocalDocument(**defaults)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class TestNormalize:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            (True, "true"),
            (1.0, "1"),
            (1, "1"),
            ("  padded ", "padded"),
            (["b", "a"], "a,b"),
        ],
    )
    def test_normalize_value(self, value, expected):
        assert normalize_value(value) == expected

    def test_normalize_content(self):
        assert normalize_content("a\r\nb\n\n") == "a\nb"
        assert normalize_content(None) == ""


class TestChangeDetector:
    @pytest.fixture
    def detector(self):
        mappings = [
            FieldMapping(remote_property="Name", local_property="title"),
            FieldMapping(remote_property="Tags", local_property="tags", type="list"),
        ]
        return ChangeDetector(PropertyCodec(), mappings)

    def _record(self, content="Body", tags=("a", "b")):
        return make_record(
            "p1",
            title="Dune",
            content=content,
            Tags={
                "type": "multi_select",
                "multi_select": [{"name": t} for t in tags],
            },
        )

    def test_no_changes(self, detector):
        document = _document(
            frontmatter={"title": "Dune", "tags": ["b", "a"], "extra": 1},
            content="Body\n",
        )
        changes = detector.detect(self._record(), document)
        assert not changes.has_changes

    def test_property_change(self, detector):
        document = _document(
            frontmatter={"title": "Dune (2nd ed.)", "tags": ["a", "b"]},
            content="Body",
        )
        changes = detector.detect(self._record(), document)
        assert changes.property_changes
        assert not changes.content_changes

    def test_content_change(self, detector):
        document = _document(
            frontmatter={"title": "Dune", "tags": ["a", "b"]}, content="Edited"
        )
        changes = detector.detect(self._record(), document)
        assert changes.content_changes
        assert not changes.property_changes

    def test_unmapped_keys_ignored(self, detector):
        document = _document(
            frontmatter={"title": "Dune", "tags": ["a", "b"], "notionId": "zzz"},
            content="Body",
        )
        assert not detector.has_property_changes(self._record(), document)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestParseRemoteTimestamp:
    def test_zulu(self):
        assert parse_remote_timestamp("2026-01-01T00:00:00.000Z") == JAN_1_MS

    def test_offset(self):
        assert parse_remote_timestamp("2026-01-01T01:00:00+01:00") == JAN_1_MS

    @pytest.mark.parametrize("value", ["", "yesterday"])
    def test_unparseable_is_zero(self, value):
        assert parse_remote_timestamp(value) == 0


class TestResolvers:
    @pytest.mark.parametrize(
        "resolver",
        [
            NotionWinsResolver(),
            ObsidianWinsResolver(),
            NewerWinsResolver(),
            ManualResolver(),
        ],
    )
    def test_unchanged_pair_is_no_change(self, resolver):
        outcome = resolver.resolve(make_record("p1"), _document(), UNCHANGED)
        assert outcome == ConflictOutcome.NO_CHANGE

    def test_notion_wins(self):
        outcome = NotionWinsResolver().resolve(
            make_record("p1"), _document(last_modified=JAN_1_MS * 2), CHANGED
        )
        assert outcome == ConflictOutcome.NOTION_WINS

    def test_obsidian_wins(self):
        outcome = ObsidianWinsResolver().resolve(
            make_record("p1"), _document(last_modified=0), CHANGED
        )
        assert outcome == ConflictOutcome.OBSIDIAN_WINS

    def test_newer_wins_local_newer(self):
        outcome = NewerWinsResolver().resolve(
            make_record("p1"), _document(last_modified=JAN_1_MS + 1), CHANGED
        )
        assert outcome == ConflictOutcome.OBSIDIAN_WINS

    def test_newer_wins_remote_newer(self):
        outcome = NewerWinsResolver().resolve(
            make_record("p1"), _document(last_modified=JAN_1_MS - 1), CHANGED
        )
        assert outcome == ConflictOutcome.NOTION_WINS

    def test_newer_wins_tie_goes_to_notion(self):
        outcome = NewerWinsResolver().resolve(
            make_record("p1"), _document(last_modified=JAN_1_MS), CHANGED
        )
        assert outcome == ConflictOutcome.NOTION_WINS

    def test_newer_wins_is_deterministic(self):
        resolver = NewerWinsResolver()
        args = (make_record("p1"), _document(last_modified=JAN_1_MS + 5), CHANGED)
        assert resolver.resolve(*args) == resolver.resolve(*args)

    def test_manual_reports_conflict(self):
        outcome = ManualResolver().resolve(make_record("p1"), _document(), CHANGED)
        assert outcome == ConflictOutcome.CONFLICT


class TestCreateResolver:
    @pytest.mark.parametrize(
        "policy,cls",
        [
            ("notion-wins", NotionWinsResolver),
            ("obsidian-wins", ObsidianWinsResolver),
            ("newer-wins", NewerWinsResolver),
            ("manual", ManualResolver),
            ("remote-wins", NotionWinsResolver),
            ("Local-Wins", ObsidianWinsResolver),
        ],
    )
    def test_policies(self, policy, cls):
        assert isinstance(create_resolver(policy), cls)

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match="Unknown conflict resolution"):
            create_resolver("coin-flip")
