"""Cognitive memory repository."""

from typing import Optional

from ..models import CognitiveMemory


class MemoryRepository:
    """Key/value access to ai_cognitive_memory."""

    def __init__(self, db):
        self.db = db

    def get(self, key: str) -> Optional[CognitiveMemory]:
        return self.db.query(CognitiveMemory).filter(CognitiveMemory.memory_key == key).first()

    def upsert(self, key: str, value: str, confidence: float) -> CognitiveMemory:
        memory = self.get(key)
        if memory is None:
            memory = CognitiveMemory(memory_key=key)
            self.db.add(memory)
        memory.memory_value = value
        memory.confidence_score = confidence
        self.db.flush()
        return memory
