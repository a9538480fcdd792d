"""Librarian pipeline and the memory of learned division rules."""

import logging
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ..ai.agents import LibrarianAgent, RelationalAgent, preorder
from ..ai.llm_client import GeminiClient
from ..repositories import MemoryRepository
from ..schemas.imports import AIBlock

logger = logging.getLogger(__name__)

DIVISION_PREFERENCES_KEY = "division_preferences"
CONFIDENCE_STEP = 0.1
RELATIONAL_CONTEXT_CHARS = 1000


class CognitiveMemoryService:
    """Stores the rules the librarian learns from user corrections."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MemoryRepository(db)

    def get_criteria(self, key: str = DIVISION_PREFERENCES_KEY) -> str:
        memory = self.repo.get(key)
        return memory.memory_value if memory else ""

    def append_rule(self, rule: str, key: str = DIVISION_PREFERENCES_KEY) -> str:
        """Add *rule* as a new ``- rule`` line and raise the confidence."""
        memory = self.repo.get(key)
        existing = memory.memory_value if memory else ""
        value = f"{existing}\n- {rule}" if existing else f"- {rule}"
        confidence = min(1.0, (memory.confidence_score if memory else 0.5) + CONFIDENCE_STEP)
        self.repo.upsert(key, value, confidence)
        self.db.commit()
        logger.info("Learned division rule", extra={"memory_key": key, "confidence": confidence})
        return value


class LibrarianService:
    def __init__(self, db: Session, client: Optional[GeminiClient] = None):
        self.db = db
        self.client = client or GeminiClient()
        self.memory = CognitiveMemoryService(db)
        self.librarian = LibrarianAgent(self.client)
        self.relational = RelationalAgent(self.client)

    def structure_with_librarian(self, text: str, discover_links: bool = True) -> dict:
        """Learned criteria, librarian tree, then links between its blocks.

        Link indexes are positions in the pre-order flattening of the
        returned tree, which is the order batch import inserts blocks in.
        """
        criteria = self.memory.get_criteria()
        run = self.librarian.structure_document(text, criteria)

        links = []
        flat = preorder(run.blocks)
        if discover_links and len(flat) > 1:
            links = self.relational.discover_links(flat, context=text[:RELATIONAL_CONTEXT_CHARS])

        return {
            "blocks": run.blocks,
            "links": links,
            "iterations": run.iterations,
            "criteria_used": criteria,
        }

    def learn(self, proposed: Sequence[AIBlock], accepted: Sequence[AIBlock]) -> dict:
        rule = self.librarian.learn_from_feedback(proposed, accepted)
        if not rule:
            return {"rule": None, "memory": self.memory.get_criteria() or None}
        return {"rule": rule, "memory": self.memory.append_rule(rule)}
