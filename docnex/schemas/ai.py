"""Schemas for the AI endpoints and for validating model output."""

from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Optional, List, Literal

from .imports import AIBlock, AILink

LINK_TYPES = ("contradice", "amplía", "requiere", "cita")
ANALYSIS_KINDS = ("summary", "key_points", "structure")
TRANSFORM_INSTRUCTIONS = ("simplify", "expand", "tone_professional", "grammar")


class AIContext(BaseModel):
    """Persona traits appended to every prompt of a request."""
    role: Optional[str] = None
    tone: Optional[str] = None
    objective: Optional[str] = None
    custom_instructions: Optional[str] = None

    def render(self) -> str:
        if not any((self.role, self.tone, self.objective, self.custom_instructions)):
            return ""
        return (
            "\n\nGLOBAL AI CONTEXT (STRICTLY FOLLOW THESE TRAITS):\n"
            f"- ROLE: {self.role or 'Asistente experto'}\n"
            f"- TONE: {self.tone or 'Profesional'}\n"
            f"- OBJECTIVE: {self.objective or 'Ayudar al usuario'}\n"
            f"- CUSTOM INSTRUCTIONS: {self.custom_instructions or 'Ninguna'}\n"
        )


# ---------------------------------------------------------------------------
# Model output
# ---------------------------------------------------------------------------

class SplitBlock(BaseModel):
    title: str = "Sin título"
    content: str = ""
    target: str = "active_version"


class DeepAnalysisStructure(BaseModel):
    hierarchy: List[str] = []
    pattern: str = ""


class DeepAnalysisRecommendation(BaseModel):
    strategy: str
    reasoning: str = ""
    instructions: str = ""


class DeepAnalysis(BaseModel):
    summary: str
    topic: str
    structure: DeepAnalysisStructure
    tags: List[str] = []
    recommendation: DeepAnalysisRecommendation


class EditProposal(BaseModel):
    thought_process: str = Field("", validation_alias=AliasChoices("thought_process", "thoughtProcess"))
    new_text: str = Field(..., validation_alias=AliasChoices("new_text", "newText"))
    diff_html: str = Field("", validation_alias=AliasChoices("diff_html", "diffHtml"))


class LibrarianProposal(BaseModel):
    blocks: List[AIBlock] = []


class AgentLink(AILink):
    type: Literal["contradice", "amplía", "requiere", "cita"] = "cita"


class AuditFinding(BaseModel):
    type: Literal["contradiction", "gap", "redundancy", "logic_error"]
    severity: Literal["high", "medium", "low"] = "medium"
    message: str
    affected_blocks: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("affected_blocks", "affectedBlocks")
    )
    suggestion: Optional[str] = None


class DuplicateGroup(BaseModel):
    block_ids: List[int]
    similarity: float = Field(..., ge=0, le=1)
    action: Literal["keep_first", "keep_best", "merge_all"]
    rationale: Optional[str] = None


class Conflict(BaseModel):
    block_ids: List[int]
    issue: str
    resolution: Literal["auto_resolve", "requires_human_review"]
    suggested_fix: Optional[str] = None


class MergeProposal(BaseModel):
    strategy: str
    rationale: str
    merged_content: str
    citations: List[str] = []
    confidence: Optional[float] = Field(None, ge=0, le=1)


class ConsolidationAnalysis(BaseModel):
    duplicates: List[DuplicateGroup] = []
    conflicts: List[Conflict] = []
    quality_ranking: List[int] = []
    merge_proposal: MergeProposal


class MergedBlock(BaseModel):
    title: str
    content: str
    citations: List[str] = []
    source_block_ids: List[str] = []
    contribution_percentages: dict = Field(default_factory=dict)


class ConflictResolution(BaseModel):
    conflict_id: str
    resolution_type: Literal["ai_suggestion", "manual"]
    resolved_content: str = ""
    rationale: str = ""


class OutlineSection(BaseModel):
    id: str = ""
    title: str
    description: str = ""
    suggested_block_ids: List[str] = []
    order: int = 0


class OutlineProposal(BaseModel):
    title: str
    description: str = ""
    sections: List[OutlineSection] = []


# ---------------------------------------------------------------------------
# Requests / responses
# ---------------------------------------------------------------------------

class AIRequest(BaseModel):
    context: Optional[AIContext] = None


class SplitDocumentRequest(AIRequest):
    text: str = Field(..., min_length=1)
    instructions: Optional[str] = None


class ChatRequest(AIRequest):
    message: str = Field(..., min_length=1)
    document_preview: Optional[str] = None
    current_strategy: Optional[str] = None
    user_instructions: Optional[str] = None


class ChatResponse(BaseModel):
    reply: str


class AnalyzeRequest(AIRequest):
    text: str = Field(..., min_length=1)
    kind: Literal["summary", "key_points", "structure"] = "summary"


class AnalyzeResponse(BaseModel):
    result: str


class TextRequest(AIRequest):
    text: str = Field(..., min_length=1)


class TransformRequest(AIRequest):
    text: str = Field(..., min_length=1)
    instruction: str

    @field_validator('instruction')
    @classmethod
    def validate_instruction(cls, v: str) -> str:
        if v not in TRANSFORM_INSTRUCTIONS:
            raise ValueError(f"Invalid instruction. Must be one of: {list(TRANSFORM_INSTRUCTIONS)}")
        return v


class TransformResponse(BaseModel):
    text: str


class EditProposalRequest(AIRequest):
    text: str = Field(..., min_length=1)
    instruction: str = Field(..., min_length=1)


class LibrarianRequest(BaseModel):
    text: str = Field(..., min_length=1)
    discover_links: bool = True


class LibrarianResponse(BaseModel):
    blocks: List[AIBlock] = []
    links: List[AgentLink] = []
    iterations: int = 0
    criteria_used: str = ""


class LearnRequest(BaseModel):
    proposed: List[AIBlock]
    accepted: List[AIBlock]


class LearnResponse(BaseModel):
    rule: Optional[str] = None
    memory: Optional[str] = None


class LinkDiscoveryRequest(BaseModel):
    blocks: List[AIBlock] = Field(..., min_length=2)
    context: str = ""


class LinkDiscoveryResponse(BaseModel):
    links: List[AgentLink] = []


class ProvenanceBlock(BaseModel):
    id: str
    title: str
    content: str = ""
    source_doc: str = ""
    source_doc_id: Optional[str] = None
    tags: List[str] = []


class ConsolidateRequest(BaseModel):
    blocks: List[ProvenanceBlock] = Field(..., min_length=1)
    user_context: Optional[str] = None


class AuditRequest(BaseModel):
    content: str = Field(..., min_length=1)
    objective: str = "Revisión general de coherencia"
    blocks: List[ProvenanceBlock] = []


class AuditResponse(BaseModel):
    findings: List[AuditFinding] = []
