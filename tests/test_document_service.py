"""Tests for DocumentService: documents, block trees and block edits."""

from types import SimpleNamespace

import pytest

from docnex.exceptions import BlockNotFoundError, DocumentNotFoundError, HierarchyError, ValidationError
from docnex.models import DocumentBlock, DocumentHistory
from docnex.schemas.block import BlockCreate, BlockUpdate
from docnex.schemas.document import DocumentCreate, DocumentUpdate
from docnex.services.document_service import DocumentService, build_tree


@pytest.fixture()
def service(db):
    return DocumentService(db)


@pytest.fixture()
def document(service):
    return service.create_document(DocumentCreate(title="Decreto 12/2025", project_id="proj-1"))


def _block(service, document_id, title, parent=None, **kwargs):
    return service.create_block(
        document_id, BlockCreate(title=title, content=kwargs.pop("content", title), parent_block_id=parent, **kwargs)
    )


class TestBuildTree:

    def test_nests_children_in_order(self):
        blocks = [
            SimpleNamespace(id="b", title="B", content="", block_type="section", order_index=2, tags=[], parent_block_id="a"),
            SimpleNamespace(id="a", title="A", content="", block_type="section", order_index=0, tags=[], parent_block_id=None),
            SimpleNamespace(id="c", title="C", content="", block_type="section", order_index=1, tags=None, parent_block_id="a"),
        ]
        roots = build_tree(blocks)
        assert [r.id for r in roots] == ["a"]
        assert [c.id for c in roots[0].children] == ["c", "b"]

    def test_orphans_become_roots(self):
        blocks = [
            SimpleNamespace(id="x", title="X", content="", block_type="section", order_index=0, tags=[], parent_block_id="deleted"),
        ]
        assert [r.id for r in build_tree(blocks)] == ["x"]


class TestDocuments:

    def test_create_and_list_with_block_count(self, service, document):
        _block(service, document.id, "Uno")
        _block(service, document.id, "Dos")
        listed = service.list_documents(project_id="proj-1")
        assert len(listed) == 1
        assert listed[0]["block_count"] == 2
        assert service.list_documents(project_id="other") == []

    def test_update_document_strips_title(self, service, document):
        updated = service.update_document(document.id, DocumentUpdate(title="  Nuevo  ", status="final"))
        assert updated.title == "Nuevo"
        assert updated.status == "final"
        assert updated.category == "main"

    def test_delete_document_cascades(self, db, service, document):
        _block(service, document.id, "Uno")
        service.snapshots.snapshot_document(document.id)
        service.delete_document(document.id)
        assert service.get_document(document.id) is None
        assert db.query(DocumentBlock).count() == 0
        assert db.query(DocumentHistory).count() == 0

    def test_missing_document_raises(self, service):
        with pytest.raises(DocumentNotFoundError):
            service.require_document("nope")

    def test_duplicate_keeps_tree_with_new_ids(self, service, document):
        parent = _block(service, document.id, "TÍTULO I")
        child = _block(service, document.id, "Artículo 1.", parent=parent.id)
        deleted = _block(service, document.id, "Borrado")
        service.delete_blocks(document.id, [deleted.id])

        copy = service.duplicate_document(document.id)
        assert copy.title == "Decreto 12/2025 (Copy)"
        assert copy.project_id == "proj-1"

        blocks = service.list_blocks(copy.id)
        assert [b.title for b in blocks] == ["TÍTULO I", "Artículo 1."]
        assert {b.id for b in blocks}.isdisjoint({parent.id, child.id})
        copied_parent, copied_child = blocks
        assert copied_child.parent_block_id == copied_parent.id

    def test_duplicate_with_custom_title(self, service, document):
        assert service.duplicate_document(document.id, new_title="Copia").title == "Copia"


class TestBlocks:

    def test_blocks_are_appended_in_order(self, service, document):
        first = _block(service, document.id, "Uno")
        second = _block(service, document.id, "Dos")
        assert (first.order_index, second.order_index) == (0, 1)

    def test_tags_extracted_when_not_given(self, service, document):
        block = _block(service, document.id, "API", content="Conexión con la API de Supabase y PostgreSQL.")
        assert "Supabase" in block.tags
        explicit = _block(service, document.id, "Sin tags", content="Texto con Supabase.", tags=[])
        assert explicit.tags == []

    def test_parent_from_other_document_rejected(self, service, document):
        other = service.create_document(DocumentCreate(title="Otro"))
        foreign = _block(service, other.id, "Ajeno")
        with pytest.raises(HierarchyError):
            _block(service, document.id, "Hijo", parent=foreign.id)

    def test_update_block_writes_auto_save_once_per_interval(self, db, service, document):
        block = _block(service, document.id, "Uno", content="v1")
        service.update_block(block.id, BlockUpdate(content="v2"))
        service.update_block(block.id, BlockUpdate(content="v3", tags=["nuevo"]))

        history = db.query(DocumentHistory).filter_by(document_id=document.id).all()
        assert [h.action_type for h in history] == ["auto_save"]
        # The auto-save captured the content before the first edit
        assert history[0].snapshot[0]["content"] == "v1"

        refreshed = service.get_block(block.id)
        assert refreshed.content == "v3"
        assert refreshed.tags == ["nuevo"]

    def test_move_block_reparents(self, service, document):
        parent = _block(service, document.id, "TÍTULO I")
        child = _block(service, document.id, "Artículo 1.")
        moved = service.move_block(child.id, parent.id, order_index=7)
        assert moved.parent_block_id == parent.id
        assert moved.order_index == 7
        assert service.move_block(child.id, None).parent_block_id is None

    def test_move_block_under_itself_rejected(self, service, document):
        block = _block(service, document.id, "Uno")
        with pytest.raises(HierarchyError):
            service.move_block(block.id, block.id)

    def test_move_block_under_descendant_rejected(self, service, document):
        top = _block(service, document.id, "TÍTULO I")
        middle = _block(service, document.id, "CAPÍTULO I", parent=top.id)
        leaf = _block(service, document.id, "Artículo 1.", parent=middle.id)
        with pytest.raises(HierarchyError) as exc_info:
            service.move_block(top.id, leaf.id)
        assert "cycle" in exc_info.value.message

    def test_reorder_blocks(self, service, document):
        a = _block(service, document.id, "A")
        b = _block(service, document.id, "B")
        c = _block(service, document.id, "C")
        ordered = service.reorder_blocks(document.id, [c.id, a.id, b.id])
        assert [blk.title for blk in ordered] == ["C", "A", "B"]

    def test_reorder_rejects_duplicates_and_foreign_ids(self, service, document):
        a = _block(service, document.id, "A")
        with pytest.raises(ValidationError):
            service.reorder_blocks(document.id, [a.id, a.id])
        with pytest.raises(ValidationError):
            service.reorder_blocks(document.id, [a.id, "unknown"])

    def test_soft_delete_takes_pre_delete_snapshot(self, db, service, document):
        a = _block(service, document.id, "A")
        b = _block(service, document.id, "B")

        result = service.delete_blocks(document.id, [a.id])
        assert result["deleted"] == 1

        entry = db.get(DocumentHistory, result["snapshot_id"])
        assert entry.action_type == "pre_delete"
        assert entry.description == "Antes de eliminar 1 bloque(s)"
        assert len(entry.snapshot) == 2

        assert [blk.id for blk in service.list_blocks(document.id)] == [b.id]
        assert len(service.list_blocks(document.id, include_deleted=True)) == 2

    def test_hard_delete_detaches_children(self, service, document):
        parent = _block(service, document.id, "TÍTULO I")
        child = _block(service, document.id, "Artículo 1.", parent=parent.id)
        service.delete_blocks(document.id, [parent.id], soft=False)

        with pytest.raises(BlockNotFoundError):
            service.get_block(parent.id)
        assert service.get_block(child.id).parent_block_id is None

    def test_delete_of_foreign_blocks_is_a_no_op(self, service, document):
        other = service.create_document(DocumentCreate(title="Otro"))
        foreign = _block(service, other.id, "Ajeno")
        assert service.delete_blocks(document.id, [foreign.id]) == {"deleted": 0, "snapshot_id": None}
