"""Tests for the filesystem vault store."""

import pytest

from notion_vault_sync.vault import DocumentHandle, EntryKind, VaultStore


def _touch(vault, rel_path, text=""):
    path = vault.root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestListDocuments:
    def test_recursive_markdown_only(self, vault):
        _touch(vault, "Reading/b.md")
        _touch(vault, "Reading/a.md")
        _touch(vault, "Reading/sub/c.md")
        _touch(vault, "Reading/image.png")
        _touch(vault, "Other/d.md")

        paths = [h.path for h in vault.list_documents("Reading")]
        assert paths == ["Reading/a.md", "Reading/b.md", "Reading/sub/c.md"]

    def test_hidden_entries_skipped(self, vault):
        _touch(vault, "Reading/.trash/old.md")
        _touch(vault, "Reading/.hidden.md")
        _touch(vault, "Reading/visible.md")
        assert [h.path for h in vault.list_documents("Reading")] == [
            "Reading/visible.md"
        ]

    def test_missing_folder(self, vault):
        assert vault.list_documents("Nowhere") == []

    def test_handles_carry_mtime(self, vault):
        path = _touch(vault, "Reading/a.md")
        (handle,) = vault.list_documents("Reading")
        assert handle.mtime == int(path.stat().st_mtime * 1000)


class TestReadWrite:
    def test_read_and_write(self, vault):
        _touch(vault, "Reading/a.md", "old")
        handle = DocumentHandle(path="Reading/a.md")
        vault.write_document(handle, "new ✓")
        assert vault.read_document(handle) == "new ✓"

    def test_create_document(self, vault):
        handle = vault.create_document("Reading/new/a.md", "text")
        assert handle.path == "Reading/new/a.md"
        assert handle.mtime > 0
        assert (vault.root / "Reading/new/a.md").read_text() == "text"

    def test_create_existing_raises(self, vault):
        _touch(vault, "Reading/a.md", "keep")
        with pytest.raises(FileExistsError):
            vault.create_document("Reading/a.md", "replace")
        assert (vault.root / "Reading/a.md").read_text() == "keep"

    def test_ensure_folder(self, vault):
        vault.ensure_folder("A/B")
        vault.ensure_folder("A/B")
        assert (vault.root / "A/B").is_dir()


class TestEntries:
    def test_get_entry(self, vault):
        _touch(vault, "Reading/a.md")
        assert vault.get_entry("Reading") == EntryKind.FOLDER
        assert vault.get_entry("Reading/a.md") == EntryKind.FILE
        assert vault.get_entry("Reading/b.md") is None

    def test_get_document(self, vault):
        _touch(vault, "Reading/a.md")
        assert vault.get_document("Reading/a.md").path == "Reading/a.md"
        assert vault.get_document("Reading") is None

    @pytest.mark.parametrize("path", ["../outside.md", "Reading/../../x.md"])
    def test_paths_outside_vault_rejected(self, vault, path):
        with pytest.raises(ValueError, match="outside the vault"):
            vault.get_entry(path)

    def test_root_expands_user(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert VaultStore("~/vault").root == (tmp_path / "vault").resolve()
