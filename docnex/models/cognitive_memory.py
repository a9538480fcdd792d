"""Learned preferences for the AI agents."""

from sqlalchemy import Column, Float, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from ..database import Base


class CognitiveMemory(Base):
    __tablename__ = "ai_cognitive_memory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    memory_key = Column(String(100), nullable=False, unique=True)
    memory_value = Column(Text, nullable=False, default="")
    confidence_score = Column(Float, nullable=False, default=0.5)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
