"""Scratchpad tab collection.

This module provides:
- TabCollection: Local mutators over the tab DocumentStore (new, close,
  edit, rename, reorder, open/save files) that report to the SyncEngine
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from padsync.client.documents import TabDocument
from padsync.client.sync.types import NotFoundError, PadSyncError
from padsync.core.types import DocumentKind

if TYPE_CHECKING:
    from padsync.client.state import LocalSyncState
    from padsync.client.store import DocumentStore
    from padsync.client.sync.engine import SyncEngine

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"
MAX_AUTO_NAME_LENGTH = 30
SELECTED_TAB_KEY = "selected_tab"

WELCOME_NAME = "Welcome to padsync"
WELCOME_CONTENT = """\
# Welcome to padsync

A tiny, fast scratchpad that follows you across devices.

Here's what you can do:

- [x] Install padsync
- [ ] Write notes, ideas, code snippets
- [ ] Browse clipboard history from your other machines
- [ ] Sync tabs across devices
- [ ] Open a file to edit it without syncing it

Happy writing! Close this tab whenever you're ready to start.
"""


class NotTextFileError(PadSyncError):
    """The file does not decode as UTF-8 text."""


def auto_name(content: str) -> str:
    """Derive a tab name from the first line of its content."""
    first_line = content.splitlines()[0] if content else ""
    trimmed = first_line.strip()
    return trimmed[:MAX_AUTO_NAME_LENGTH] if trimmed else UNTITLED


class TabCollection:
    """Tab operations used by the editor surface and the CLI.

    Every mutation goes to the store first and is then reported to the
    engine, which schedules the debounced save and push.
    """

    def __init__(
        self,
        store: DocumentStore,
        engine: SyncEngine,
        state: LocalSyncState | None = None,
    ) -> None:
        """Initialize the collection.

        Args:
            store: Tab document store.
            engine: Sync engine to report changes to.
            state: Where the selected tab is remembered across runs.
        """
        if store.kind != DocumentKind.TAB:
            raise ValueError(f"Expected a tab store, got {store.kind.value}")
        self._store = store
        self._engine = engine
        self._state = state
        self._selected_id: str | None = state.get(SELECTED_TAB_KEY) if state else None

    @property
    def store(self) -> DocumentStore:
        return self._store

    def tabs(self) -> list[TabDocument]:
        """All tabs in display order."""
        return [doc for doc in self._store.list() if isinstance(doc, TabDocument)]

    def get(self, tab_id: str) -> TabDocument:
        """Get a tab by id.

        Raises:
            NotFoundError: If no tab has this id.
        """
        document = self._store.get(tab_id)
        if not isinstance(document, TabDocument):
            raise NotFoundError(f"No tab with id {tab_id}")
        return document

    def find_by_prefix(self, prefix: str) -> TabDocument:
        """Find a tab by a unique id prefix (case-insensitive).

        Raises:
            NotFoundError: If no tab or more than one tab matches.
        """
        prefix = prefix.upper()
        matches = [tab for tab in self.tabs() if tab.id.startswith(prefix)]
        if len(matches) != 1:
            raise NotFoundError(
                f"{len(matches)} tabs match '{prefix}'" if matches else f"No tab matches '{prefix}'"
            )
        return matches[0]

    # === Selection ===

    @property
    def selected_id(self) -> str | None:
        """Id of the selected tab, falling back to the first tab."""
        if self._selected_id and self._store.contains(self._selected_id):
            return self._selected_id
        tabs = self._store.list()
        return tabs[0].id if tabs else None

    def selected(self) -> TabDocument | None:
        """The selected tab, if any."""
        selected_id = self.selected_id
        if selected_id is None:
            return None
        document = self._store.find(selected_id)
        return document if isinstance(document, TabDocument) else None

    def select(self, tab_id: str | None) -> None:
        self._selected_id = tab_id
        if self._state is None:
            return
        if tab_id is None:
            self._state.delete(SELECTED_TAB_KEY)
        else:
            self._state.set(SELECTED_TAB_KEY, tab_id)

    def ensure_tab(self, first_launch: bool = False) -> None:
        """Make sure at least one tab exists after a restore."""
        if len(self._store):
            return
        if first_launch:
            self.add_welcome_tab()
            logger.info("First launch, created welcome tab")
        else:
            self.add_new_tab()

    # === Tab operations ===

    def add_new_tab(self, content: str = "") -> TabDocument:
        """Append an empty (or pre-filled) scratch tab and select it."""
        tab = TabDocument()
        if content:
            tab.content = content
            tab.name = auto_name(content)
        self._store.upsert(tab)
        self.select(tab.id)
        self._engine.record_changed(tab.id, DocumentKind.TAB)
        return tab

    def add_welcome_tab(self) -> TabDocument:
        """Append the welcome tab. It is not pushed until edited."""
        tab = TabDocument(name=WELCOME_NAME, content=WELCOME_CONTENT, language="markdown")
        self._store.upsert(tab)
        self.select(tab.id)
        return tab

    def close_tab(self, tab_id: str) -> None:
        """Close a tab; closing the last tab opens a fresh one.

        Closing an unknown id is a no-op.
        """
        try:
            index = self._store.index_of(tab_id)
            removed = self._store.remove(tab_id)
        except NotFoundError:
            logger.debug("close_tab: no tab %s", tab_id)
            return

        self._engine.record_deleted(tab_id, DocumentKind.TAB, removed)

        remaining = self._store.list()
        if not remaining:
            self.add_new_tab()
        elif self._selected_id in (tab_id, None):
            self.select(remaining[min(index, len(remaining) - 1)].id)

    def update_content(self, tab_id: str, content: str) -> None:
        """Replace a tab's content.

        Marks the tab dirty and bumps its modification time; scratch tabs
        are renamed from their first line. Identical content is a no-op.
        """
        tab = self._store.find(tab_id)
        if not isinstance(tab, TabDocument) or tab.content == content:
            return

        updated = replace(tab, content=content, is_dirty=True, modified_at=time.time())
        if updated.file_path is None:
            updated.name = auto_name(content)
        self._store.upsert(updated)
        self._engine.record_changed(tab_id, DocumentKind.TAB)

    def update_language(self, tab_id: str, language: str) -> None:
        """Set a tab's language explicitly, locking it against detection."""
        tab = self._store.find(tab_id)
        if not isinstance(tab, TabDocument):
            return
        self._store.upsert(
            replace(tab, language=language, language_locked=True, modified_at=time.time())
        )
        self._engine.record_changed(tab_id, DocumentKind.TAB)

    def update_cursor_position(self, tab_id: str, position: int) -> None:
        """Remember the caret offset (local only, not a content change)."""
        tab = self._store.find(tab_id)
        if isinstance(tab, TabDocument):
            self._store.upsert(replace(tab, cursor_position=position))

    def rename_tab(self, tab_id: str, name: str) -> None:
        tab = self._store.find(tab_id)
        if not isinstance(tab, TabDocument):
            return
        self._store.upsert(replace(tab, name=name, modified_at=time.time()))
        self._engine.record_changed(tab_id, DocumentKind.TAB)

    def move_tab(self, source_index: int, destination_index: int) -> bool:
        """Reorder tabs. Order is local and not synced."""
        return self._store.move(source_index, destination_index)

    # === File operations ===

    def open_file(self, path: Path | str) -> TabDocument:
        """Open a text file in a file-bound tab (never synced).

        Re-opening a file that is already open selects its tab.

        Raises:
            OSError: If the file cannot be read.
            NotTextFileError: If the file is not UTF-8 text.
        """
        resolved = str(Path(path).expanduser().resolve())
        for tab in self.tabs():
            if tab.file_path == resolved:
                self.select(tab.id)
                return tab

        data = Path(resolved).read_bytes()
        name = Path(resolved).name
        try:
            content = data.decode("utf-8")
        except UnicodeDecodeError:
            raise NotTextFileError(
                f'"{name}" doesn\'t appear to be a text file'
            ) from None

        tab = TabDocument(
            name=name,
            content=content,
            language=language_from_extension(name),
            file_path=resolved,
            language_locked=True,
        )
        self._store.upsert(tab)
        self.select(tab.id)
        return tab

    def save_file(self, tab_id: str) -> bool:
        """Write a bound tab back to its file.

        Returns:
            False when the tab has no file binding (caller should save-as)
            or the write failed.
        """
        tab = self._store.find(tab_id)
        if not isinstance(tab, TabDocument) or tab.file_path is None:
            return False
        try:
            Path(tab.file_path).write_text(tab.content, encoding="utf-8")
        except OSError as e:
            logger.error("Failed to save file %s: %s", tab.file_path, e)
            return False
        self._store.upsert(replace(tab, is_dirty=False))
        return True

    def save_file_as(self, tab_id: str, path: Path | str) -> bool:
        """Write a tab to a new file and bind it there.

        A scratch tab saved this way stops syncing; other devices keep
        their copy as an ordinary scratch tab.
        """
        tab = self._store.find(tab_id)
        if not isinstance(tab, TabDocument):
            return False
        target = Path(path).expanduser().resolve()
        try:
            target.write_text(tab.content, encoding="utf-8")
        except OSError as e:
            logger.error("Failed to save file %s: %s", target, e)
            return False
        self._store.upsert(
            replace(
                tab,
                file_path=str(target),
                name=target.name,
                is_dirty=False,
                language=language_from_extension(target.name, tab.language),
                language_locked=True,
            )
        )
        return True


_EXTENSION_LANGUAGES = {
    ".c": "c",
    ".cpp": "cpp",
    ".css": "css",
    ".go": "go",
    ".html": "html",
    ".java": "java",
    ".js": "javascript",
    ".json": "json",
    ".md": "markdown",
    ".py": "python",
    ".rb": "ruby",
    ".rs": "rust",
    ".sh": "bash",
    ".sql": "sql",
    ".swift": "swift",
    ".toml": "toml",
    ".ts": "typescript",
    ".txt": "plain",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def language_from_extension(name: str, default: str = "plain") -> str:
    """Language tag for a file name, by extension."""
    return _EXTENSION_LANGUAGES.get(Path(name).suffix.lower(), default)
