"""Document model and JSON codec.

This module provides:
- Document: Base class of synchronized documents
- TabDocument: A scratchpad tab (text, name, language)
- ClipboardEntry: A captured clipboard item
- encode_documents / decode_documents: Collection codec (remote or local form)
- encode_ids / decode_ids: Tombstone set codec

Wire format:
    Collections are JSON arrays of objects with camelCase keys. The remote
    form carries only fields that other devices need; the local form adds
    device-specific fields (file binding, dirty flag, cursor).
"""

from __future__ import annotations

import json
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar

from padsync.client.sync.types import DecodeError
from padsync.core.types import DocumentKind


def new_id() -> str:
    """Generate a globally unique document id."""
    return str(uuid.uuid4()).upper()


class Document(ABC):
    """Base class for synchronized documents.

    Subclasses are dataclasses with an ``id`` field and a notion of
    last modification time used as the sole conflict-resolution signal.
    """

    kind: ClassVar[DocumentKind]
    id: str

    @property
    @abstractmethod
    def last_modified(self) -> float:
        """Timestamp compared by last-writer-wins."""

    @property
    def is_syncable(self) -> bool:
        """Only documents not bound to an external file participate in sync."""
        return True

    @abstractmethod
    def content_key(self) -> str:
        """Value used for content-equality dedupe."""

    @abstractmethod
    def to_remote(self) -> dict[str, Any]:
        """Fields shared with other devices."""

    @abstractmethod
    def to_local(self) -> dict[str, Any]:
        """Fields persisted in the local snapshot."""

    @classmethod
    @abstractmethod
    def from_remote(cls, data: dict[str, Any]) -> Document:
        """Build a document from its remote form."""

    @classmethod
    @abstractmethod
    def from_local(cls, data: dict[str, Any]) -> Document:
        """Build a document from its local form."""

    @abstractmethod
    def with_remote_content(self, other: Document) -> Document:
        """Return a copy carrying other's synced content, keeping our identity."""


@dataclass
class TabDocument(Document):
    """A scratchpad tab.

    Attributes:
        id: Unique, immutable identifier.
        name: Display name (auto-derived from the first line for scratch tabs).
        content: Text content.
        language: Syntax language tag.
        file_path: External file binding; bound tabs are never synced.
        language_locked: Language was chosen explicitly and must not be re-detected.
        is_dirty: Content differs from what was last saved to the bound file.
        cursor_position: Caret offset (local only).
        modified_at: Timestamp of the last content mutation.
    """

    kind: ClassVar[DocumentKind] = DocumentKind.TAB

    id: str = field(default_factory=new_id)
    name: str = "Untitled"
    content: str = ""
    language: str = "plain"
    file_path: str | None = None
    language_locked: bool = False
    is_dirty: bool = False
    cursor_position: int = 0
    modified_at: float = field(default_factory=time.time)

    @property
    def last_modified(self) -> float:
        return self.modified_at

    @property
    def is_syncable(self) -> bool:
        return self.file_path is None

    @property
    def has_unsaved_changes(self) -> bool:
        """Bound tabs report the dirty flag; scratch tabs any non-blank content."""
        if self.file_path is not None:
            return self.is_dirty
        return bool(self.content.strip())

    def content_key(self) -> str:
        return self.content

    def to_remote(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "content": self.content,
            "language": self.language,
            "languageLocked": self.language_locked,
            "lastModified": self.modified_at,
        }

    def to_local(self) -> dict[str, Any]:
        data = self.to_remote()
        data["filePath"] = self.file_path
        data["isDirty"] = self.is_dirty
        data["cursorPosition"] = self.cursor_position
        return data

    @classmethod
    def from_remote(cls, data: dict[str, Any]) -> TabDocument:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            content=str(data["content"]),
            language=str(data["language"]),
            language_locked=bool(data.get("languageLocked", False)),
            # Remote tabs with content have never been saved on this device
            is_dirty=bool(data["content"]),
            modified_at=float(data.get("lastModified", 0.0)),
        )

    @classmethod
    def from_local(cls, data: dict[str, Any]) -> TabDocument:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            content=str(data["content"]),
            language=str(data["language"]),
            file_path=data.get("filePath"),
            language_locked=bool(data["languageLocked"]),
            is_dirty=bool(data.get("isDirty", False)),
            cursor_position=int(data.get("cursorPosition", 0)),
            modified_at=float(data.get("lastModified", 0.0)),
        )

    def with_remote_content(self, other: Document) -> TabDocument:
        if not isinstance(other, TabDocument):
            raise TypeError(f"Cannot merge {type(other).__name__} into a tab")
        return replace(
            self,
            name=other.name,
            content=other.content,
            language=other.language,
            language_locked=other.language_locked,
            modified_at=other.modified_at,
        )


@dataclass
class ClipboardEntry(Document):
    """A captured clipboard item. Entries are immutable once captured."""

    kind: ClassVar[DocumentKind] = DocumentKind.CLIPBOARD

    text: str = ""
    id: str = field(default_factory=new_id)
    timestamp: float = field(default_factory=time.time)

    @property
    def last_modified(self) -> float:
        return self.timestamp

    def content_key(self) -> str:
        return self.text

    def to_remote(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "timestamp": self.timestamp}

    def to_local(self) -> dict[str, Any]:
        return self.to_remote()

    @classmethod
    def from_remote(cls, data: dict[str, Any]) -> ClipboardEntry:
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            timestamp=float(data["timestamp"]),
        )

    @classmethod
    def from_local(cls, data: dict[str, Any]) -> ClipboardEntry:
        return cls.from_remote(data)

    def with_remote_content(self, other: Document) -> ClipboardEntry:
        if not isinstance(other, ClipboardEntry):
            raise TypeError(f"Cannot merge {type(other).__name__} into a clipboard entry")
        return replace(self, text=other.text, timestamp=other.timestamp)


DOCUMENT_TYPES: dict[DocumentKind, type[Document]] = {
    DocumentKind.TAB: TabDocument,
    DocumentKind.CLIPBOARD: ClipboardEntry,
}


def document_type(kind: DocumentKind) -> type[Document]:
    """Get the document class for a collection kind."""
    return DOCUMENT_TYPES[kind]


# === Codec ===


def encode_documents(documents: Iterable[Document], *, local: bool = False) -> bytes:
    """Serialize a collection to JSON.

    Args:
        documents: Documents to encode, in order.
        local: Use the local form (includes device-only fields).

    Returns:
        UTF-8 encoded JSON array.
    """
    payload = [doc.to_local() if local else doc.to_remote() for doc in documents]
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def decode_documents(
    kind: DocumentKind,
    data: bytes | str,
    *,
    local: bool = False,
) -> list[Document]:
    """Deserialize a collection produced by encode_documents.

    Raises:
        DecodeError: If the payload is not a JSON array of valid documents.
    """
    cls = document_type(kind)
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Invalid {kind.value} payload: {e}") from e
    if not isinstance(raw, list):
        raise DecodeError(f"Expected a JSON array for {kind.value}, got {type(raw).__name__}")
    try:
        if local:
            return [cls.from_local(item) for item in raw]
        return [cls.from_remote(item) for item in raw]
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed {kind.value} document: {e}") from e


def encode_ids(ids: Iterable[str]) -> bytes:
    """Serialize a tombstone set as a sorted JSON array of strings."""
    return json.dumps(sorted(ids)).encode("utf-8")


def decode_ids(data: bytes | str) -> frozenset[str]:
    """Deserialize a tombstone set.

    Raises:
        DecodeError: If the payload is not a JSON array of strings.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Invalid tombstone payload: {e}") from e
    if not isinstance(raw, list) or not all(isinstance(i, str) for i in raw):
        raise DecodeError("Tombstone payload must be a JSON array of strings")
    return frozenset(raw)
