"""Local document store for the Markdown vault.

- ``LocalStore``: protocol the sync engine talks to.
- ``VaultStore``: filesystem implementation rooted at a vault directory.
- ``DocumentHandle``: a document path plus its modification time.

All paths crossing this interface are vault-relative POSIX strings.
``VaultStore`` refuses any path that resolves outside the vault root.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from .file_handler import read_file_with_encoding, write_file

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"


class EntryKind(str, Enum):
    """What a vault path points at."""

    FILE = "file"
    FOLDER = "folder"


@dataclass(frozen=True, slots=True)
class DocumentHandle:
    """A vault document.

    Attributes:
        path: Vault-relative POSIX path, e.g. ``"Reading/Dune.md"``.
        mtime: Modification time in epoch milliseconds.
    """

    path: str
    mtime: int = 0


class LocalStore(Protocol):
    """Operations the sync engine needs from the local document store."""

    def list_documents(self, folder: str) -> list[DocumentHandle]:
        """Every Markdown document under *folder*, recursively."""
        ...  # pragma: no cover

    def read_document(self, handle: DocumentHandle) -> str:
        """Full text of a document."""
        ...  # pragma: no cover

    def write_document(self, handle: DocumentHandle, text: str) -> None:
        """Overwrite an existing document."""
        ...  # pragma: no cover

    def create_document(self, path: str, text: str) -> DocumentHandle:
        """Create a new document; fails if *path* already exists."""
        ...  # pragma: no cover

    def ensure_folder(self, path: str) -> None:
        """Create *path* and its parents when missing."""
        ...  # pragma: no cover

    def get_entry(self, path: str) -> EntryKind | None:
        """File, folder, or ``None`` when nothing exists at *path*."""
        ...  # pragma: no cover

    def get_document(self, path: str) -> DocumentHandle | None:
        """Handle for the document at *path*, or ``None`` when it is not a file."""
        ...  # pragma: no cover


class VaultStore:
    """Filesystem-backed ``LocalStore``.

    Args:
        root: Vault root directory.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _resolve(self, rel_path: str) -> Path:
        resolved = (self.root / rel_path).resolve()
        if not resolved.is_relative_to(self.root):
            raise ValueError(
                f"Path is outside the vault: {rel_path} not under {self.root}"
            )
        return resolved

    def _handle(self, abs_path: Path) -> DocumentHandle:
        return DocumentHandle(
            path=abs_path.relative_to(self.root).as_posix(),
            mtime=int(abs_path.stat().st_mtime * 1000),
        )

    # ------------------------------------------------------------------
    # LocalStore
    # ------------------------------------------------------------------

    def list_documents(self, folder: str) -> list[DocumentHandle]:
        """List Markdown documents under *folder*, skipping hidden entries.

        A missing folder yields an empty list.
        """
        base = self._resolve(folder)
        if not base.is_dir():
            return []
        handles: list[DocumentHandle] = []
        for path in sorted(base.rglob(f"*{DOCUMENT_SUFFIX}")):
            if not path.is_file():
                continue
            if any(part.startswith(".") for part in path.relative_to(base).parts):
                continue
            handles.append(self._handle(path))
        return handles

    def read_document(self, handle: DocumentHandle) -> str:
        content, _ = read_file_with_encoding(self._resolve(handle.path))
        return content

    def write_document(self, handle: DocumentHandle, text: str) -> None:
        write_file(self._resolve(handle.path), text)

    def create_document(self, path: str, text: str) -> DocumentHandle:
        target = self._resolve(path)
        if target.exists():
            raise FileExistsError(f"Document already exists: {path}")
        write_file(target, text)
        logger.debug("Created document %s", path)
        return self._handle(target)

    def ensure_folder(self, path: str) -> None:
        target = self._resolve(path)
        if not target.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            logger.info("Created folder %s", path)

    def get_entry(self, path: str) -> EntryKind | None:
        target = self._resolve(path)
        if target.is_file():
            return EntryKind.FILE
        if target.is_dir():
            return EntryKind.FOLDER
        return None

    def get_document(self, path: str) -> DocumentHandle | None:
        """Handle for an existing document at *path*, else ``None``."""
        target = self._resolve(path)
        if not target.is_file():
            return None
        return self._handle(target)
