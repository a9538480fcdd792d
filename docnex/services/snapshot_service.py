"""Snapshot service: append-only document history with restore.

A snapshot is a JSON copy of a document's blocks stored on a
``document_history`` row. Every snapshot write prunes the document's
history down to ``settings.snapshot_retention`` entries in the same
transaction, so the cap holds even when callers never clean up.

Restore replaces the document's blocks with the snapshot content:

1. the current blocks are saved as a ``restore`` safety snapshot,
2. all current blocks are deleted,
3. snapshot rows are re-inserted with fresh ids, parents before
   children at every depth, parent pointers remapped old id -> new id.

All three steps share one transaction; any failure rolls the document
back to its pre-restore state.
"""

import logging
import uuid
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import EmptySnapshotError, ValidationError
from ..models import DocumentBlock, DocumentHistory
from ..repositories import BlockRepository, DocumentRepository, HistoryRepository
from ..schemas.history import SNAPSHOT_ACTIONS

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = ("id", "title", "content", "order_index", "parent_block_id", "block_type", "tags")

BlockLike = Union[DocumentBlock, dict]


def serialize_block(block: BlockLike) -> dict:
    """Copy the restorable fields of a block (ORM row or dict)."""
    if isinstance(block, dict):
        data = {key: block.get(key) for key in SNAPSHOT_FIELDS}
        deleted = bool(block.get("is_deleted"))
    else:
        data = {key: getattr(block, key) for key in SNAPSHOT_FIELDS}
        deleted = bool(block.is_deleted)
    data["tags"] = list(data["tags"] or [])
    if deleted:
        data["is_deleted"] = True
    return data


def order_for_restore(snapshot: List[dict]) -> List[dict]:
    """Order snapshot rows so that every parent precedes its descendants.

    Rows whose parent is absent from the snapshot are roots. Within one
    level the snapshot's own order is kept. Rows caught in a parent cycle
    are appended at the end and will be restored as roots.
    """
    known_ids = {row.get("id") for row in snapshot if row.get("id")}
    children: dict = defaultdict(list)
    roots: List[dict] = []

    for row in snapshot:
        parent_id = row.get("parent_block_id")
        if parent_id and parent_id in known_ids and parent_id != row.get("id"):
            children[parent_id].append(row)
        else:
            roots.append(row)

    ordered: List[dict] = []
    visited: set = set()
    queue = deque(roots)
    while queue:
        row = queue.popleft()
        if id(row) in visited:
            continue
        visited.add(id(row))
        ordered.append(row)
        queue.extend(children.get(row.get("id"), []))

    ordered.extend({**row, "parent_block_id": None} for row in snapshot if id(row) not in visited)
    return ordered


def build_restore_rows(snapshot: List[dict], document_id: str) -> List[dict]:
    """Turn snapshot rows into insertable block rows with remapped ids."""
    id_map: dict = {}
    rows: List[dict] = []

    for position, item in enumerate(order_for_restore(snapshot)):
        new_id = str(uuid.uuid4())
        old_parent = item.get("parent_block_id")
        rows.append({
            "id": new_id,
            "document_id": document_id,
            "parent_block_id": id_map.get(old_parent) if old_parent else None,
            "title": item.get("title") or "Untitled",
            "content": item.get("content") or "",
            "order_index": item.get("order_index", position),
            "block_type": item.get("block_type") or "section",
            "tags": list(item.get("tags") or []),
            "is_deleted": bool(item.get("is_deleted", False)),
        })
        if item.get("id"):
            id_map[item["id"]] = new_id

    return rows


def should_create_snapshot(
    last_snapshot_time: Optional[datetime],
    interval_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> bool:
    """True when no snapshot exists yet or the auto-save interval has elapsed."""
    if last_snapshot_time is None:
        return True
    if interval_seconds is None:
        interval_seconds = settings.auto_snapshot_interval_seconds
    now = now or datetime.now(timezone.utc)
    if last_snapshot_time.tzinfo is None:
        last_snapshot_time = last_snapshot_time.replace(tzinfo=timezone.utc)
    return now - last_snapshot_time >= timedelta(seconds=interval_seconds)


def snapshot_description(action_type: str, context: Optional[dict] = None) -> str:
    """Default user-facing description for a snapshot."""
    context = context or {}
    if action_type == "auto_save":
        return "Auto-guardado periódico"
    if action_type == "pre_delete":
        return f"Antes de eliminar {context.get('count') or 1} bloque(s)"
    if action_type == "pre_merge":
        return f"Antes de fusionar {context.get('count') or 2} bloques"
    if action_type == "pre_migration":
        return "Backup antes de migración de base de datos"
    if action_type == "manual":
        return context.get("description") or "Snapshot manual"
    return "Snapshot del sistema"


def _check_action(action_type: str) -> None:
    if action_type not in SNAPSHOT_ACTIONS:
        raise ValidationError(
            f"Invalid snapshot action. Must be one of: {list(SNAPSHOT_ACTIONS)}",
            field="action_type",
        )


class SnapshotService:
    """Creates, lists, prunes and restores document snapshots."""

    def __init__(self, db: Session):
        self.db = db
        self.doc_repo = DocumentRepository(db)
        self.block_repo = BlockRepository(db)
        self.history_repo = HistoryRepository(db)

    def create_snapshot(
        self,
        document_id: str,
        description: Optional[str],
        blocks: Iterable[BlockLike],
        action_type: str = "manual",
        commit: bool = True,
    ) -> DocumentHistory:
        """Store *blocks* as a restorable snapshot and enforce retention."""
        _check_action(action_type)
        self.doc_repo.get_by_id(document_id)

        snapshot = [serialize_block(block) for block in blocks]
        entry = self.history_repo.create(
            document_id=document_id,
            action_type=action_type,
            description=description or snapshot_description(action_type, {"count": len(snapshot)}),
            snapshot=snapshot,
            metadata={
                "block_count": len(snapshot),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
        pruned = self.history_repo.prune(document_id, settings.snapshot_retention)

        if commit:
            self.db.commit()
            self.db.refresh(entry)

        logger.info(
            "Snapshot created",
            extra={
                "document_id": document_id,
                "history_id": entry.id,
                "action_type": action_type,
                "block_count": len(snapshot),
                "pruned": pruned,
            },
        )
        return entry

    def snapshot_document(
        self,
        document_id: str,
        action_type: str = "manual",
        description: Optional[str] = None,
        include_deleted: bool = False,
        commit: bool = True,
    ) -> Optional[DocumentHistory]:
        """Snapshot the document's current blocks. Returns None when it has none."""
        _check_action(action_type)
        self.doc_repo.get_by_id(document_id)
        blocks = self.block_repo.get_by_document(document_id, include_deleted=include_deleted)
        if not blocks and action_type != "manual":
            return None
        return self.create_snapshot(document_id, description, blocks, action_type, commit=commit)

    def auto_snapshot(self, document_id: str, commit: bool = True) -> Optional[DocumentHistory]:
        """Write an ``auto_save`` snapshot if the interval since the last one has elapsed."""
        latest = self.history_repo.get_latest_snapshot(document_id)
        if not should_create_snapshot(latest.created_at if latest else None):
            return None
        return self.snapshot_document(document_id, "auto_save", commit=commit)

    def log_action(
        self,
        document_id: str,
        action_type: str,
        description: str,
        metadata: Optional[dict] = None,
        commit: bool = True,
    ) -> DocumentHistory:
        """Record an action that has nothing to restore (e.g. ``import_merge``)."""
        entry = self.history_repo.create(
            document_id=document_id,
            action_type=action_type,
            description=description,
            snapshot=None,
            metadata=metadata,
        )
        self.history_repo.prune(document_id, settings.snapshot_retention)
        if commit:
            self.db.commit()
        return entry

    def list_history(self, document_id: str, skip: int = 0, limit: int = 100) -> List[DocumentHistory]:
        self.doc_repo.get_by_id(document_id)
        return self.history_repo.get_by_document(document_id, skip=skip, limit=limit)

    def get_history(self, history_id: int) -> DocumentHistory:
        return self.history_repo.get_by_id(history_id)

    def restore_from_history(self, history_id: int) -> dict[str, Any]:
        """Replace a document's blocks with the content of a history entry.

        Raises:
            SnapshotNotFoundError: The entry does not exist.
            EmptySnapshotError: The entry is a log-only row.
        """
        entry = self.history_repo.get_by_id(history_id)
        if entry.snapshot is None:
            raise EmptySnapshotError(str(history_id))

        # Copy before pruning can delete the entry we are restoring from.
        document_id = entry.document_id
        snapshot = list(entry.snapshot)
        restored_date = entry.created_at.strftime("%d/%m/%Y") if entry.created_at else "desconocida"

        try:
            safety = None
            current = self.block_repo.get_by_document(document_id, include_deleted=True)
            if current:
                safety = self.create_snapshot(
                    document_id,
                    f"Snapshot de seguridad antes de restaurar versión del {restored_date}.",
                    current,
                    action_type="restore",
                    commit=False,
                )

            self.block_repo.delete_all_for_document(document_id)
            rows = build_restore_rows(snapshot, document_id)
            self.block_repo.bulk_insert(rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(
                "Restore failed, document left unchanged",
                extra={"document_id": document_id, "history_id": history_id},
            )
            raise

        logger.info(
            "Document restored from history",
            extra={
                "document_id": document_id,
                "history_id": history_id,
                "block_count": len(snapshot),
                "safety_snapshot_id": safety.id if safety else None,
            },
        )
        return {
            "success": True,
            "count": len(snapshot),
            "safety_snapshot_id": safety.id if safety else None,
        }
