"""Shared test fixtures for the DOCNEX test suite.

Tests run against a throwaway SQLite file (override with
TEST_DATABASE_URL to use PostgreSQL). Tables are created by the app on
import and emptied before each test.

AI is disabled by default; tests that need it patch the settings and
``litellm.completion``.
"""

import os
import tempfile

# Test database and AI settings must be in place before any app imports.
_DEFAULT_DB = os.path.join(tempfile.gettempdir(), "docnex_test.db")
if "TEST_DATABASE_URL" not in os.environ and os.path.exists(_DEFAULT_DB):
    os.remove(_DEFAULT_DB)
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", f"sqlite:///{_DEFAULT_DB}")
os.environ["AI_API_KEY"] = ""
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("GOOGLE_GENERATIVE_AI_API_KEY", None)
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"

from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from fastapi.testclient import TestClient

from docnex.ai import circuit_breaker
from docnex.database import get_db, SessionLocal
from docnex.main import app
from docnex.middleware.request_context import _ai_rate_buckets, _rate_buckets

# Children first so foreign keys never block the delete.
_CLEAN_TABLES = [
    "semantic_links", "document_history", "document_blocks", "documents", "ai_cognitive_memory",
]


@pytest.fixture(autouse=True)
def _clean_tables():
    """Empty every data table before each test."""
    db = SessionLocal()
    try:
        db.execute(text("UPDATE document_blocks SET parent_block_id = NULL"))
        for table in _CLEAN_TABLES:
            db.execute(text(f"DELETE FROM {table}"))
        db.commit()
    finally:
        db.close()
    circuit_breaker.reset_all()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    """FastAPI TestClient with the DB dependency overridden to use the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    _rate_buckets.clear()
    _ai_rate_buckets.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_document(title: str = "Ley de Prueba", **overrides) -> dict:
    """Factory for document creation payloads."""
    payload = {
        "title": title,
        "project_id": None,
        "category": "main",
        "status": "draft",
    }
    payload.update(overrides)
    return payload


def make_block(title: str = "Artículo 1. Objeto.", content: str = "La presente ley regula...", **overrides) -> dict:
    """Factory for block creation payloads."""
    payload = {"title": title, "content": content}
    payload.update(overrides)
    return payload


def llm_response(content: str) -> MagicMock:
    """Object shaped like a LiteLLM completion response."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


SAMPLE_LEGAL_HTML = """
<html><body>
<p>LEY 5/2025, de 3 de marzo, de Vivienda.</p>
<p>EXPOSICIÓN DE MOTIVOS</p>
<p>TÍTULO PRELIMINAR</p>
<p>Disposiciones generales</p>
<p>Artículo 1. Objeto.</p>
<p>La presente ley regula el derecho a la vivienda.</p>
<p>TÍTULO I</p>
<p>CAPÍTULO I</p>
<p>Del parque público</p>
<p>Artículo 2. Definiciones.</p>
<p>A efectos de esta ley se entiende por vivienda...</p>
<p>Artículo 3. Ámbito.</p>
<p>CAPÍTULO II</p>
<p>Artículo 4. Registro.</p>
<p>Disposición Final Primera. Entrada en vigor.</p>
<p>La presente ley entrará en vigor al día siguiente.</p>
</body></html>
"""
