"""DOCNEX AI: hierarchical documents with snapshot history and AI structuring."""

__version__ = "1.0.0"
