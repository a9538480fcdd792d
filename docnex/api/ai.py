"""AI endpoints.

Every route requires a configured provider; without one the router's
dependency answers 500 ``AI_CONFIG_ERROR`` before any work is done.
Blocked input surfaces as 403 ``AI_SECURITY_ERROR``.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ..ai.agents import AuditorAgent, ConsolidationAgent, RelationalAgent
from ..ai.llm_client import GeminiClient
from ..database import get_db
from ..exceptions import AIConfigError, AIServiceError
from ..schemas.ai import (
    AIContext,
    AnalyzeRequest,
    AnalyzeResponse,
    AuditRequest,
    AuditResponse,
    ChatRequest,
    ChatResponse,
    ConflictResolution,
    ConsolidateRequest,
    ConsolidationAnalysis,
    DeepAnalysis,
    DuplicateGroup,
    EditProposal,
    EditProposalRequest,
    LearnRequest,
    LearnResponse,
    LibrarianRequest,
    LibrarianResponse,
    LinkDiscoveryRequest,
    LinkDiscoveryResponse,
    MergedBlock,
    OutlineProposal,
    SplitBlock,
    SplitDocumentRequest,
    TextRequest,
    TransformRequest,
    TransformResponse,
)
from ..services.librarian_service import LibrarianService


def require_ai_configured() -> None:
    if not GeminiClient.is_configured():
        raise AIConfigError("AI is not configured. Set AI_API_KEY (or GEMINI_API_KEY) and AI_MODEL.")


def _client(context: Optional[AIContext] = None) -> GeminiClient:
    return GeminiClient(context=context)


router = APIRouter(prefix="/api/ai", tags=["ai"], dependencies=[Depends(require_ai_configured)])


@router.post("/split", response_model=List[SplitBlock])
def split_document(body: SplitDocumentRequest):
    """Model-driven split; a single "Documento Completo" block on failure."""
    return _client(body.context).split_document(body.text, body.instructions)


@router.post("/chat", response_model=ChatResponse)
def chat(body: ChatRequest):
    reply = _client(body.context).chat(
        body.message,
        document_preview=body.document_preview,
        current_strategy=body.current_strategy,
        user_instructions=body.user_instructions,
    )
    return {"reply": reply}


@router.post("/analyze", response_model=AnalyzeResponse)
def analyze(body: AnalyzeRequest):
    return {"result": _client(body.context).analyze_text(body.text, body.kind)}


@router.post("/deep-analysis", response_model=DeepAnalysis)
def deep_analysis(body: TextRequest):
    result = _client(body.context).analyze_document_deeply(body.text)
    if result is None:
        raise AIServiceError("Deep analysis is not available right now")
    return result


@router.post("/transform", response_model=TransformResponse)
def transform(body: TransformRequest):
    return {"text": _client(body.context).transform_text(body.text, body.instruction)}


@router.post("/edit-proposal", response_model=EditProposal)
def edit_proposal(body: EditProposalRequest):
    return _client(body.context).generate_edit_proposal(body.text, body.instruction)


@router.post("/librarian", response_model=LibrarianResponse)
def librarian(body: LibrarianRequest, db: Session = Depends(get_db)):
    """Librarian tree using the learned criteria, plus discovered links."""
    return LibrarianService(db).structure_with_librarian(body.text, discover_links=body.discover_links)


@router.post("/learn", response_model=LearnResponse)
def learn(body: LearnRequest, db: Session = Depends(get_db)):
    """Learn a division rule from the user's edits to a proposal."""
    return LibrarianService(db).learn(body.proposed, body.accepted)


@router.post("/links", response_model=LinkDiscoveryResponse)
def discover_links(body: LinkDiscoveryRequest):
    return {"links": RelationalAgent(_client()).discover_links(body.blocks, body.context)}


@router.post("/consolidate/analyze", response_model=ConsolidationAnalysis)
def consolidate_analyze(body: ConsolidateRequest):
    analysis = ConsolidationAgent(_client()).analyze(body.blocks)
    if analysis is None:
        raise AIServiceError("Consolidation analysis is not available right now")
    return analysis


@router.post("/consolidate/merge", response_model=MergedBlock)
def consolidate_merge(body: ConsolidateRequest):
    merged = ConsolidationAgent(_client()).merge(body.blocks)
    if merged is None:
        raise AIServiceError("Merge is not available right now")
    return merged


@router.post("/consolidate/duplicates", response_model=List[DuplicateGroup])
def consolidate_duplicates(body: ConsolidateRequest):
    return ConsolidationAgent(_client()).detect_duplicates(body.blocks)


@router.post("/consolidate/conflicts", response_model=List[ConflictResolution])
def consolidate_conflicts(body: ConsolidateRequest):
    return ConsolidationAgent(_client()).resolve_conflicts(body.blocks)


@router.post("/outline", response_model=OutlineProposal)
def outline(body: ConsolidateRequest):
    proposal = ConsolidationAgent(_client()).propose_outline(body.blocks, body.user_context)
    if proposal is None:
        raise AIServiceError("Outline proposal is not available right now")
    return proposal


@router.post("/audit", response_model=AuditResponse)
def audit(body: AuditRequest):
    findings = AuditorAgent(_client()).run_audit(body.content, body.blocks, body.objective)
    return {"findings": findings}
