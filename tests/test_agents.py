"""Tests for the librarian, relational, consolidation and auditor agents.

Agents get a mocked GeminiClient whose ``complete`` / ``complete_json``
replies are scripted per test.
"""

from unittest.mock import MagicMock

import pytest

from docnex.ai.agents import (
    MAX_LIBRARIAN_ITERATIONS,
    AuditorAgent,
    ConsolidationAgent,
    LibrarianAgent,
    RelationalAgent,
    contribution_percentages,
    merged_title,
    preorder,
)
from docnex.ai.llm_client import GeminiClient
from docnex.exceptions import AIConfigError, AISecurityError, AIServiceError, AIValidationError
from docnex.schemas.ai import ProvenanceBlock
from docnex.schemas.imports import AIBlock
from docnex.services.librarian_service import CognitiveMemoryService, LibrarianService

PROPOSAL = {
    "blocks": [
        {
            "title": "TITULO I",
            "content": "TÍTULO I. Disposiciones generales",
            "children": [
                {
                    "title": "CAPITULO 1",
                    "content": "CAPÍTULO I. Objeto",
                    "children": [{"title": "ARTICULO 1", "content": "Artículo 1. La ley regula..."}],
                }
            ],
        }
    ]
}


@pytest.fixture()
def llm():
    client = MagicMock(spec=GeminiClient)
    client.prepare_input.side_effect = lambda text: text
    return client


def _sources(*titles):
    return [
        ProvenanceBlock(id=f"b{i}", title=title, content=f"contenido {i}", source_doc=f"Doc {i}")
        for i, title in enumerate(titles)
    ]


class TestPreorder:

    def test_reading_order(self):
        tree = [
            AIBlock(title="A", children=[AIBlock(title="A1"), AIBlock(title="A2")]),
            AIBlock(title="B"),
        ]
        assert [b.title for b in preorder(tree)] == ["A", "A1", "A2", "B"]

    def test_depth_is_capped(self):
        tree = [AIBlock(title="1", children=[AIBlock(title="2", children=[
            AIBlock(title="3", children=[AIBlock(title="4")])
        ])])]
        assert [b.title for b in preorder(tree)] == ["1", "2", "3"]
        assert [b.title for b in preorder(tree, max_depth=1)] == ["1"]


class TestLibrarianAgent:

    def test_approved_on_first_proposal(self, llm):
        llm.complete_json.return_value = PROPOSAL
        llm.complete.return_value = "APROBADO"

        run = LibrarianAgent(llm).structure_document("TÍTULO I ...")

        assert run.iterations == 1
        assert run.approved is True
        assert run.blocks[0].title == "TITULO I"
        assert run.blocks[0].children[0].children[0].title == "ARTICULO 1"

    def test_rejection_feeds_back_into_next_proposal(self, llm):
        llm.complete_json.return_value = PROPOSAL
        llm.complete.side_effect = ["Los bloques son demasiado grandes", "APROBADO"]

        run = LibrarianAgent(llm).structure_document("texto", criteria="- Separa artículos")

        assert run.iterations == 2
        assert run.approved is True
        first_prompt = llm.complete_json.call_args_list[0].args[0]
        second_prompt = llm.complete_json.call_args_list[1].args[0]
        assert "- Separa artículos" in first_prompt
        assert "FEEDBACK CRÍTICO ANTERIOR: Los bloques son demasiado grandes" in second_prompt

    def test_accepts_after_two_rejections(self, llm):
        llm.complete_json.return_value = PROPOSAL
        llm.complete.return_value = "La jerarquía está rota"

        run = LibrarianAgent(llm).structure_document("texto")

        assert run.iterations == 3
        assert run.approved is False
        assert run.blocks[0].title == "TITULO I"

    def test_unparseable_reply_counts_as_iteration(self, llm):
        llm.complete_json.side_effect = [AIValidationError("no JSON"), PROPOSAL]
        llm.complete.return_value = "APROBADO"

        run = LibrarianAgent(llm).structure_document("texto")

        assert run.iterations == 2
        assert run.approved is True

    def test_gives_up_after_max_iterations(self, llm):
        llm.complete_json.return_value = {"blocks": []}

        run = LibrarianAgent(llm).structure_document("texto")

        assert run.iterations == MAX_LIBRARIAN_ITERATIONS
        assert run.blocks == []
        llm.complete.assert_not_called()

    def test_configuration_error_propagates(self, llm):
        llm.complete_json.side_effect = AIConfigError("missing key")
        with pytest.raises(AIConfigError):
            LibrarianAgent(llm).structure_document("texto")


class TestLearnFromFeedback:

    def test_returns_rule(self, llm):
        llm.complete.return_value = "  Separa cada artículo en su propio bloque.  "
        proposed = [AIBlock(title="TITULO I", children=[AIBlock(title="ARTICULO 1")])]
        accepted = [AIBlock(title="TITULO I")]

        rule = LibrarianAgent(llm).learn_from_feedback(proposed, accepted)

        assert rule == "Separa cada artículo en su propio bloque."
        prompt = llm.complete.call_args.args[0]
        assert "- TITULO I\n- ARTICULO 1" in prompt

    def test_no_changes(self, llm):
        llm.complete.return_value = "SIN CAMBIOS"
        assert LibrarianAgent(llm).learn_from_feedback([AIBlock(title="A")], [AIBlock(title="A")]) is None

    def test_service_failure_returns_none(self, llm):
        llm.complete.side_effect = AIServiceError("down")
        assert LibrarianAgent(llm).learn_from_feedback([], []) is None

    def test_security_error_propagates(self, llm):
        llm.complete.side_effect = AISecurityError("blocked")
        with pytest.raises(AISecurityError):
            LibrarianAgent(llm).learn_from_feedback([], [])


class TestRelationalAgent:

    def test_needs_two_blocks(self, llm):
        assert RelationalAgent(llm).discover_links([AIBlock(title="solo")]) == []
        llm.complete_json.assert_not_called()

    def test_filters_invalid_links(self, llm):
        llm.complete_json.return_value = {
            "links": [
                {"source_index": 0, "target_index": 1, "type": "cita", "reason": "remite al artículo"},
                {"source_index": 1, "target_index": 1, "type": "cita"},
                {"source_index": 0, "target_index": 5, "type": "amplía"},
                {"source_index": 0, "target_index": 1, "type": "inventado"},
                {"target_index": 1},
            ]
        }
        blocks = [AIBlock(title="Artículo 1"), AIBlock(title="Artículo 2")]

        links = RelationalAgent(llm).discover_links(blocks, context="Ley de vivienda")

        assert len(links) == 1
        assert links[0].type == "cita"
        assert links[0].reason == "remite al artículo"
        assert "Ley de vivienda" in llm.complete_json.call_args.args[0]

    def test_failure_returns_empty(self, llm):
        llm.complete_json.side_effect = AIValidationError("no JSON")
        assert RelationalAgent(llm).discover_links([AIBlock(title="a"), AIBlock(title="b")]) == []


class TestConsolidationHelpers:

    def test_merged_title(self):
        assert merged_title(_sources("Objeto")) == "Objeto"
        assert merged_title(_sources("Objeto", "Objeto")) == "Objeto"
        assert merged_title(_sources("Objeto", "Ámbito")) == "Objeto / Ámbito"
        assert merged_title(_sources("A", "B", "C", "D")) == "Síntesis de 4 fuentes"

    def test_contribution_follows_ranking(self):
        blocks = _sources("A", "B", "C")
        assert contribution_percentages(blocks, [2, 0]) == {"b0": 40, "b1": 0, "b2": 60}

    def test_contribution_without_ranking_is_even(self):
        blocks = _sources("A", "B", "C")
        assert contribution_percentages(blocks, []) == {"b0": 33, "b1": 33, "b2": 33}
        assert contribution_percentages(blocks, [7, -1]) == {"b0": 33, "b1": 33, "b2": 33}


ANALYSIS = {
    "duplicates": [{"block_ids": [0, 1], "similarity": 0.92, "action": "keep_best"}],
    "conflicts": [
        {"block_ids": [1, 2], "issue": "Plazos distintos", "resolution": "requires_human_review"},
        {"block_ids": [0, 2], "issue": "Redacción", "resolution": "auto_resolve", "suggested_fix": "Texto unificado"},
    ],
    "quality_ranking": [1, 0, 2],
    "merge_proposal": {
        "strategy": "fusión",
        "rationale": "Se combinan las definiciones",
        "merged_content": "Texto fusionado",
        "citations": ["Doc 0", "Doc 1"],
        "confidence": 0.8,
    },
}


class TestConsolidationAgent:

    def test_merge(self, llm):
        llm.complete_json.return_value = ANALYSIS
        merged = ConsolidationAgent(llm).merge(_sources("Objeto", "Objeto", "Ámbito"))

        assert merged.title == "Objeto / Ámbito"
        assert merged.content == "Texto fusionado"
        assert merged.citations == ["Doc 0", "Doc 1"]
        assert merged.source_block_ids == ["b0", "b1", "b2"]
        assert merged.contribution_percentages == {"b0": 33, "b1": 50, "b2": 17}

    def test_merge_returns_none_when_analysis_fails(self, llm):
        llm.complete_json.return_value = {"duplicates": []}
        assert ConsolidationAgent(llm).merge(_sources("A", "B")) is None

    def test_duplicates(self, llm):
        llm.complete_json.return_value = ANALYSIS
        groups = ConsolidationAgent(llm).detect_duplicates(_sources("A", "B", "C"))
        assert groups[0].block_ids == [0, 1]
        assert groups[0].action == "keep_best"

    def test_resolve_conflicts(self, llm):
        llm.complete_json.return_value = ANALYSIS
        resolutions = ConsolidationAgent(llm).resolve_conflicts(_sources("A", "B", "C"))

        assert [r.conflict_id for r in resolutions] == ["1-2", "0-2"]
        assert resolutions[0].resolution_type == "manual"
        assert resolutions[1].resolution_type == "ai_suggestion"
        assert resolutions[1].resolved_content == "Texto unificado"

    def test_outline_replaces_short_ids_and_renumbers(self, llm):
        long_id = "3f1e8a52-6b7c-4d2e-9f10-1a2b3c4d5e6f"
        llm.complete_json.return_value = {
            "title": "Síntesis",
            "sections": [
                {"id": "s1", "title": "Definiciones", "suggested_block_ids": ["b0"], "order": 7},
                {"id": long_id, "title": "Plazos", "order": 3},
                "no es una sección",
            ],
        }
        outline = ConsolidationAgent(llm).propose_outline(_sources("A", "B"), "Guía práctica")

        assert outline.title == "Síntesis"
        assert [s.order for s in outline.sections] == [0, 1]
        assert outline.sections[0].id != "s1"
        assert len(outline.sections[0].id) == 36
        assert outline.sections[1].id == long_id
        assert "Guía práctica" in llm.complete_json.call_args.args[0]


class TestAuditorAgent:

    def test_drops_malformed_findings(self, llm):
        llm.complete_json.return_value = [
            {"type": "gap", "severity": "high", "message": "Falta el régimen sancionador", "affectedBlocks": ["b1"]},
            {"type": "opinion", "message": "No me gusta"},
            {"severity": "low"},
        ]
        findings = AuditorAgent(llm).run_audit("contenido", _sources("A", "B"), "Coherencia legal")

        assert len(findings) == 1
        assert findings[0].affected_blocks == ["b1"]
        assert llm.complete_json.call_args.kwargs["kind"] == "array"
        assert "Coherencia legal" in llm.complete_json.call_args.args[0]

    def test_failure_returns_empty(self, llm):
        llm.complete_json.side_effect = AIServiceError("down")
        assert AuditorAgent(llm).run_audit("contenido") == []


class TestCognitiveMemory:

    def test_rules_accumulate(self, db):
        memory = CognitiveMemoryService(db)
        assert memory.get_criteria() == ""

        assert memory.append_rule("Separa artículos") == "- Separa artículos"
        assert memory.append_rule("Agrupa disposiciones") == "- Separa artículos\n- Agrupa disposiciones"

        stored = memory.repo.get("division_preferences")
        assert stored.confidence_score == pytest.approx(0.7)
        assert memory.get_criteria() == "- Separa artículos\n- Agrupa disposiciones"


class TestLibrarianService:

    def test_uses_learned_criteria_and_preorder_links(self, db, llm):
        CognitiveMemoryService(db).append_rule("Separa artículos")
        llm.complete_json.side_effect = [
            PROPOSAL,
            {"links": [{"source_index": 0, "target_index": 2, "type": "requiere", "reason": "desarrolla"}]},
        ]
        llm.complete.return_value = "APROBADO"

        result = LibrarianService(db, client=llm).structure_with_librarian("TÍTULO I ...")

        assert result["iterations"] == 1
        assert result["criteria_used"] == "- Separa artículos"
        assert "- Separa artículos" in llm.complete_json.call_args_list[0].args[0]
        link_prompt = llm.complete_json.call_args_list[1].args[0]
        assert "[ID:2] Título: ARTICULO 1" in link_prompt
        assert result["links"][0].target_index == 2

    def test_links_can_be_skipped(self, db, llm):
        llm.complete_json.return_value = PROPOSAL
        llm.complete.return_value = "APROBADO"

        result = LibrarianService(db, client=llm).structure_with_librarian("texto", discover_links=False)

        assert result["links"] == []
        assert llm.complete_json.call_count == 1

    def test_learn_stores_rule(self, db, llm):
        llm.complete.return_value = "Usa un bloque por artículo"
        result = LibrarianService(db, client=llm).learn([AIBlock(title="A")], [AIBlock(title="B")])
        assert result == {"rule": "Usa un bloque por artículo", "memory": "- Usa un bloque por artículo"}

    def test_learn_without_rule_keeps_memory(self, db, llm):
        llm.complete.return_value = "SIN CAMBIOS"
        result = LibrarianService(db, client=llm).learn([AIBlock(title="A")], [AIBlock(title="A")])
        assert result == {"rule": None, "memory": None}
