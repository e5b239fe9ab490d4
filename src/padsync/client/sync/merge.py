"""Merge engine: reconcile local and remote collections.

Pure business logic with no I/O. Given the local collection, a remote
snapshot and the tombstone set, produce the next local collection and
what still needs pushing.

Rules (applied in order):
| Situation                                  | Outcome                      |
|--------------------------------------------|------------------------------|
| id tombstoned (local or remote tombstone)  | remove locally, skip remote  |
| remote id absent locally                   | insert                       |
| remote id absent, same content (dedupe)    | skip remote                  |
| local.last_modified >= remote.last_modified| keep local (local wins ties) |
| local.last_modified <  remote.last_modified| overwrite content, keep id   |
| local id absent remotely                   | keep local, pending push     |
| local id absent, same content remotely     | keep local, nothing to push  |

Documents bound to an external file are never touched.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from collections.abc import Set as AbstractSet

from padsync.client.documents import Document
from padsync.client.sync.types import MergeResult


def merge_documents(
    local: Sequence[Document],
    remote: Iterable[Document],
    tombstones: AbstractSet[str],
    *,
    dedupe_content: bool = False,
    sort_recent_first: bool = False,
    max_count: int | None = None,
) -> MergeResult[Document]:
    """Merge a remote snapshot into the local collection.

    Args:
        local: Current local collection, in collection order.
        remote: Remote documents (full snapshot or incremental changes).
        tombstones: Union of local and remote tombstones.
        dedupe_content: Also skip remote inserts whose content already
            exists locally (clipboard).
        sort_recent_first: Re-sort by last_modified descending after merge.
        max_count: Keep at most this many documents (after sorting).

    Returns:
        MergeResult with the new collection and partitioned changed ids.
    """
    result: MergeResult[Document] = MergeResult(documents=[])

    # 1. Tombstones always remove, regardless of timestamps
    merged: dict[str, Document] = {}
    for doc in local:
        if doc.is_syncable and doc.id in tombstones:
            result.removed.append(doc.id)
            continue
        merged[doc.id] = doc

    existing_content = {doc.content_key() for doc in merged.values()}
    remote_ids: set[str] = set()
    remote_modified: dict[str, float] = {}
    # Content already held remotely under a duplicate id
    remote_content: set[str] = set()

    # 2. Fold in remote documents
    for incoming in remote:
        if incoming.id in tombstones or incoming.id in remote_ids:
            continue
        remote_ids.add(incoming.id)
        remote_modified[incoming.id] = incoming.last_modified

        current = merged.get(incoming.id)
        if current is None:
            if dedupe_content and incoming.content_key() in existing_content:
                remote_content.add(incoming.content_key())
                continue
            merged[incoming.id] = incoming
            existing_content.add(incoming.content_key())
            result.inserted.append(incoming.id)
        elif not current.is_syncable:
            continue
        elif current.last_modified >= incoming.last_modified:
            continue
        else:
            merged[incoming.id] = current.with_remote_content(incoming)
            result.updated.append(incoming.id)

    # 3. Local documents the remote copy lacks or trails on
    for doc in merged.values():
        if not doc.is_syncable:
            continue
        if doc.id not in remote_ids:
            if doc.content_key() not in remote_content:
                result.pending_push.append(doc.id)
        elif doc.last_modified > remote_modified[doc.id]:
            result.pending_push.append(doc.id)

    documents = list(merged.values())
    if sort_recent_first:
        documents.sort(key=lambda d: d.last_modified, reverse=True)
    if max_count is not None and len(documents) > max_count:
        dropped = {d.id for d in documents[max_count:]}
        inserted_now = set(result.inserted)
        documents = documents[:max_count]
        result.inserted = [i for i in result.inserted if i not in dropped]
        result.updated = [i for i in result.updated if i not in dropped]
        result.pending_push = [i for i in result.pending_push if i not in dropped]
        result.removed.extend(i for i in dropped if i not in inserted_now)

    result.documents = documents
    return result


def merge_tombstones(
    local: AbstractSet[str],
    remote: AbstractSet[str],
) -> frozenset[str]:
    """Union of two tombstone sets. Tombstones are never revoked by a merge."""
    return frozenset(local) | frozenset(remote)


def cap_recent(documents: Iterable[Document], limit: int | None) -> list[Document]:
    """Most recent documents first, at most limit of them."""
    ordered = sorted(documents, key=lambda d: d.last_modified, reverse=True)
    if limit is None:
        return ordered
    return ordered[:limit]
