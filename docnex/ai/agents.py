"""Prompt-driven agents built on GeminiClient.

Each agent owns its prompt templates and validates the model's JSON with
the pydantic models in ``schemas.ai``. Agents that feed optional UI
features degrade to empty results; configuration and security errors
always propagate.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import AIConfigError, AIError, AISecurityError, AIValidationError
from ..schemas.ai import (
    AgentLink,
    AuditFinding,
    ConflictResolution,
    ConsolidationAnalysis,
    DuplicateGroup,
    LibrarianProposal,
    MergedBlock,
    OutlineProposal,
    ProvenanceBlock,
)
from ..schemas.imports import AIBlock
from .llm_client import GeminiClient

logger = logging.getLogger(__name__)

LIBRARIAN_MAX_CHARS = 30000
MAX_LIBRARIAN_ITERATIONS = 4
APPROVAL_KEYWORD = "APROBADO"
MAX_TREE_DEPTH = 3

_FATAL_ERRORS = (AIConfigError, AISecurityError)


def preorder(blocks: Sequence[AIBlock], max_depth: int = MAX_TREE_DEPTH) -> List[AIBlock]:
    """Flatten a block tree in reading order, down to *max_depth* levels.

    Positions in the returned list are the indexes used by semantic links
    and by batch import.
    """
    flat: List[AIBlock] = []

    def visit(items: Sequence[AIBlock], depth: int) -> None:
        for item in items:
            flat.append(item)
            if item.children and depth + 1 < max_depth:
                visit(item.children, depth + 1)

    visit(blocks, 0)
    return flat


# ---------------------------------------------------------------------------
# Librarian
# ---------------------------------------------------------------------------

LIBRARIAN_PROMPT = """Actúa como un Bibliotecario y Arquitecto de Información experto en NORMATIVA OFICIAL.
Divide el siguiente texto en bloques lógicos con una JERARQUÍA DE 3 NIVELES:

- NIVEL 0: TÍTULOS ("TITULO I", "TITULO PRELIMINAR"...)
- NIVEL 1: CAPÍTULOS dentro de un TÍTULO, como children
- NIVEL 2: ARTÍCULOS dentro de un CAPÍTULO, como children

Los títulos de bloque deben ser CORTOS (máximo 20 caracteres), solo el identificador
("TITULO I", "CAPITULO 3", "ARTICULO 14"). El encabezado completo y el texto van en "content".

## CRITERIOS DE DIVISIÓN APRENDIDOS:
{criteria}

## TEXTO A PROCESAR:
{text}

## FORMATO DE RESPUESTA (JSON):
{{"blocks": [{{"title": "TITULO I", "content": "...", "children": [{{"title": "CAPITULO 1", "content": "...", "children": [{{"title": "ARTICULO 1", "content": "...", "children": []}}]}}]}}]}}

Responde SOLO con el JSON válido."""

NO_CRITERIA = "No hay criterios previos. Usa tu mejor juicio profesional para detectar la estructura legal."

CRITIQUE_PROMPT = """Actúa como un Redactor Jefe revisando la propuesta de división de un Bibliotecario.
¿La división es coherente? ¿Se han perdido fragmentos de texto? ¿La jerarquía tiene sentido?

PROPUESTA:
{titles}

Si la propuesta tiene sentido, responde "APROBADO".
Si hay errores (bloques demasiado grandes, jerarquía rota), describe brevemente por qué."""

LEARN_PROMPT = """Actúa como un Analista de Procesos Cognitivos.
Propuse una estructura documental a un usuario y la modificó antes de aceptarla.

TÍTULOS PROPUESTOS:
{proposed}

TÍTULOS ACEPTADOS:
{accepted}

Deduce UNA regla técnica breve (una frase) que explique la preferencia del usuario para
futuras divisiones. Si no hay diferencias relevantes, responde "SIN CAMBIOS"."""


@dataclass
class LibrarianRun:
    blocks: List[AIBlock] = field(default_factory=list)
    iterations: int = 0
    approved: bool = False


class LibrarianAgent:
    """Splits documents into a TÍTULO / CAPÍTULO / ARTÍCULO tree."""

    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client or GeminiClient()

    def structure_document(self, text: str, criteria: str = "") -> LibrarianRun:
        """Run the propose / critique loop.

        The critic approves with APROBADO; after more than two iterations
        the latest proposal is accepted anyway. A reply that cannot be
        parsed counts as an iteration.
        """
        clean = self.client.prepare_input(text)[:LIBRARIAN_MAX_CHARS]
        run = LibrarianRun()
        current_criteria = criteria or ""

        while run.iterations < MAX_LIBRARIAN_ITERATIONS:
            run.iterations += 1
            try:
                run.blocks = self._propose(clean, current_criteria)
            except (AIValidationError, PydanticValidationError) as exc:
                logger.warning("Librarian proposal unparseable", extra={"iteration": run.iterations, "error": str(exc)})
                run.blocks = []
                continue
            if not run.blocks:
                continue

            feedback = self._critique(run.blocks)
            if APPROVAL_KEYWORD in feedback or run.iterations > 2:
                run.approved = APPROVAL_KEYWORD in feedback
                break
            logger.info("Librarian proposal rejected", extra={"iteration": run.iterations})
            current_criteria = f"{current_criteria}\n\nFEEDBACK CRÍTICO ANTERIOR: {feedback}"

        logger.info(
            "Librarian finished",
            extra={"iterations": run.iterations, "root_blocks": len(run.blocks), "approved": run.approved},
        )
        return run

    def _propose(self, text: str, criteria: str) -> List[AIBlock]:
        prompt = LIBRARIAN_PROMPT.format(criteria=criteria.strip() or NO_CRITERIA, text=text)
        return LibrarianProposal.model_validate(self.client.complete_json(prompt)).blocks

    def _critique(self, blocks: List[AIBlock]) -> str:
        titles = json.dumps([block.title for block in blocks], ensure_ascii=False, indent=2)
        return self.client.complete(CRITIQUE_PROMPT.format(titles=titles))

    def learn_from_feedback(self, proposed: Sequence[AIBlock], accepted: Sequence[AIBlock]) -> Optional[str]:
        """Short rule explaining the user's edits, or None."""
        prompt = LEARN_PROMPT.format(
            proposed="\n".join(f"- {block.title}" for block in preorder(proposed)),
            accepted="\n".join(f"- {block.title}" for block in preorder(accepted)),
        )
        try:
            rule = self.client.complete(prompt, temperature=0.2).strip()
        except _FATAL_ERRORS:
            raise
        except AIError as exc:
            logger.warning("Learning from feedback failed: %s", exc)
            return None
        if not rule or "SIN CAMBIOS" in rule.upper():
            return None
        return rule


# ---------------------------------------------------------------------------
# Relational
# ---------------------------------------------------------------------------

RELATIONAL_PROMPT = """Eres un analista jurídico. Encuentra relaciones semánticas entre los bloques de un documento.

CONTEXTO DEL DOCUMENTO:
{context}

BLOQUES:
{blocks}

Tipos de relación permitidos: "contradice", "amplía", "requiere", "cita".
Devuelve SOLO un JSON: {{"links": [{{"source_index": 0, "target_index": 2, "type": "cita", "reason": "breve motivo"}}]}}
Si no hay relaciones claras, devuelve {{"links": []}}."""


class RelationalAgent:
    """Proposes typed links between blocks, by position in the list."""

    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client or GeminiClient()

    def discover_links(self, blocks: Sequence[AIBlock], context: str = "") -> List[AgentLink]:
        if len(blocks) < 2:
            return []
        summary = "\n\n".join(
            f"[ID:{index}] Título: {block.title}\nContenido: {block.content[:300]}..."
            for index, block in enumerate(blocks)
        )
        prompt = RELATIONAL_PROMPT.format(context=context[:1000] or "Sin contexto adicional.", blocks=summary)
        try:
            data = self.client.complete_json(prompt)
        except _FATAL_ERRORS:
            raise
        except AIError as exc:
            logger.warning("Link discovery failed: %s", exc)
            return []

        links: List[AgentLink] = []
        for raw in data.get("links", []) or []:
            try:
                link = AgentLink.model_validate(raw)
            except PydanticValidationError:
                logger.debug("Dropping malformed link", extra={"link": raw})
                continue
            if link.source_index == link.target_index:
                continue
            if 0 <= link.source_index < len(blocks) and 0 <= link.target_index < len(blocks):
                links.append(link)
        return links


# ---------------------------------------------------------------------------
# Consolidation
# ---------------------------------------------------------------------------

CONSOLIDATION_PROMPT = """Eres un editor experto en síntesis documental.
Analiza {count} bloques procedentes de distintas fuentes.

BLOQUES:
{blocks}

TAREAS:
1. Detecta duplicados (block_ids son los índices [n]).
2. Detecta conflictos entre bloques.
3. Ordena los bloques por calidad, del mejor al peor (quality_ranking).
4. Propón una fusión con citas de las fuentes.

Devuelve SOLO un JSON:
{{"duplicates": [{{"block_ids": [0, 1], "similarity": 0.9, "action": "keep_best", "rationale": "..."}}],
 "conflicts": [{{"block_ids": [1, 2], "issue": "...", "resolution": "requires_human_review", "suggested_fix": "..."}}],
 "quality_ranking": [0, 2, 1],
 "merge_proposal": {{"strategy": "...", "rationale": "...", "merged_content": "...", "citations": ["..."], "confidence": 0.8}}}}"""

OUTLINE_PROMPT = """You are an expert editor and research architect.
Create a structured outline for a consolidated document based on {count} source blocks.

INPUT BLOCKS:
{blocks}

USER CONTEXT:
{context}

Group related blocks into a logical flow of sections, each with a title, a description
and the IDs of its source blocks.

OUTPUT FORMAT (JSON ONLY):
{{"title": "Proposed Document Title", "description": "Brief overview",
 "sections": [{{"id": "uuid", "title": "Section", "description": "...", "suggested_block_ids": ["block-id"], "order": 1}}]}}"""


def merged_title(blocks: Sequence[ProvenanceBlock]) -> str:
    titles = list(dict.fromkeys(block.title for block in blocks))
    if len(titles) == 1:
        return titles[0]
    if len(titles) <= 3:
        return " / ".join(titles)
    return f"Síntesis de {len(blocks)} fuentes"


def contribution_percentages(blocks: Sequence[ProvenanceBlock], ranking: Sequence[int]) -> dict:
    """Share of each source block, weighted by its place in *ranking*.

    The best ranked block weighs ``len(blocks)``, the next one less, and
    unranked blocks nothing. Without a ranking every block weighs the same.
    """
    valid = [index for index in dict.fromkeys(ranking) if 0 <= index < len(blocks)]
    if valid:
        weights = {index: len(blocks) - position for position, index in enumerate(valid)}
    else:
        weights = {index: 1 for index in range(len(blocks))}
    total = sum(weights.values())
    return {
        block.id: round(weights.get(index, 0) / total * 100) if total else 0
        for index, block in enumerate(blocks)
    }


class ConsolidationAgent:
    """Duplicate and conflict detection, merging and outlines over sources."""

    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client or GeminiClient()

    def analyze(self, blocks: Sequence[ProvenanceBlock]) -> Optional[ConsolidationAnalysis]:
        listing = "\n---\n".join(
            f"[{index}] FROM: {block.source_doc or 'desconocido'}\n"
            f"TITLE: {block.title}\nTAGS: {', '.join(block.tags) or '-'}\n"
            f"CONTENT: {block.content[:800]}"
            for index, block in enumerate(blocks)
        )
        prompt = CONSOLIDATION_PROMPT.format(count=len(blocks), blocks=listing)
        try:
            return ConsolidationAnalysis.model_validate(self.client.complete_json(prompt))
        except _FATAL_ERRORS:
            raise
        except (AIError, PydanticValidationError) as exc:
            logger.warning("Consolidation analysis failed: %s", exc)
            return None

    def merge(self, blocks: Sequence[ProvenanceBlock]) -> Optional[MergedBlock]:
        analysis = self.analyze(blocks)
        if analysis is None:
            return None
        proposal = analysis.merge_proposal
        return MergedBlock(
            title=merged_title(blocks),
            content=proposal.merged_content,
            citations=proposal.citations,
            source_block_ids=[block.id for block in blocks],
            contribution_percentages=contribution_percentages(blocks, analysis.quality_ranking),
        )

    def detect_duplicates(self, blocks: Sequence[ProvenanceBlock]) -> List[DuplicateGroup]:
        analysis = self.analyze(blocks)
        return analysis.duplicates if analysis else []

    def resolve_conflicts(self, blocks: Sequence[ProvenanceBlock]) -> List[ConflictResolution]:
        analysis = self.analyze(blocks)
        if analysis is None:
            return []
        return [
            ConflictResolution(
                conflict_id="-".join(str(i) for i in conflict.block_ids),
                resolution_type="ai_suggestion" if conflict.resolution == "auto_resolve" else "manual",
                resolved_content=conflict.suggested_fix or "",
                rationale=conflict.issue,
            )
            for conflict in analysis.conflicts
        ]

    def propose_outline(
        self, blocks: Sequence[ProvenanceBlock], user_context: Optional[str] = None
    ) -> Optional[OutlineProposal]:
        listing = "\n---\n".join(
            f"[Block {index}] (ID: {block.id})\nTITLE: {block.title}\nCONTENT: {block.content[:500]}..."
            for index, block in enumerate(blocks)
        )
        prompt = OUTLINE_PROMPT.format(
            count=len(blocks),
            blocks=listing,
            context=user_context or "Objective: comprehensive synthesis",
        )
        try:
            data = self.client.complete_json(prompt)
            sections = data.get("sections") or []
            data["sections"] = [
                {
                    **section,
                    "id": section.get("id") if len(str(section.get("id") or "")) > 10 else str(uuid.uuid4()),
                    "order": index,
                }
                for index, section in enumerate(sections)
                if isinstance(section, dict)
            ]
            return OutlineProposal.model_validate(data)
        except _FATAL_ERRORS:
            raise
        except (AIError, PydanticValidationError) as exc:
            logger.warning("Outline proposal failed: %s", exc)
            return None


# ---------------------------------------------------------------------------
# Auditor
# ---------------------------------------------------------------------------

AUDIT_PROMPT = """Eres un auditor de calidad documental.
OBJETIVO DE LA REVISIÓN: {objective}

DOCUMENTO:
{content}

BLOQUES:
{blocks}

Busca contradicciones, lagunas, redundancias y errores lógicos.
Devuelve SOLO un array JSON:
[{{"type": "contradiction|gap|redundancy|logic_error", "severity": "high|medium|low",
  "message": "...", "affectedBlocks": ["id"], "suggestion": "..."}}]
Si no encuentras problemas, devuelve []."""


class AuditorAgent:
    """Reviews a document against an objective."""

    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client or GeminiClient()

    def run_audit(
        self, content: str, blocks: Sequence[ProvenanceBlock] = (), objective: str = ""
    ) -> List[AuditFinding]:
        clean = self.client.prepare_input(content)
        prompt = AUDIT_PROMPT.format(
            objective=objective or "Revisión general de coherencia",
            content=clean[:10000],
            blocks="\n".join(f"[{block.id}] {block.title}" for block in blocks) or "-",
        )
        try:
            raw = self.client.complete_json(prompt, kind="array", temperature=0.2)
        except _FATAL_ERRORS:
            raise
        except AIError as exc:
            logger.warning("Audit failed: %s", exc)
            return []

        findings: List[AuditFinding] = []
        for item in raw:
            try:
                findings.append(AuditFinding.model_validate(item))
            except PydanticValidationError:
                logger.debug("Dropping malformed finding", extra={"finding": item})
        return findings
