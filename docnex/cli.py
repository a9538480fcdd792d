"""Command-line tools for legal ingestion and hierarchy repair.

Both commands work directly against the configured database, through
the same services the API uses.
"""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .core.config import settings
from .core.logging_config import setup_logging
from .database import SessionLocal, init_db
from .exceptions import DocnexException
from .services import HierarchyRepairService, IngestionService

logger = logging.getLogger("docnex.cli")


def _setup() -> None:
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    init_db()


def ingest_main(argv: Optional[List[str]] = None) -> int:
    """Entry point of ``docnex-ingest``."""
    parser = argparse.ArgumentParser(
        description="Replace a document's blocks with a BOE/BOJA legal HTML page",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s 0d6c2f8e-... ley_5_2025.html
  %(prog)s 0d6c2f8e-... decreto.html --start-marker "TÍTULO PRELIMINAR" --title "Decreto 12/2025"
        """,
    )
    parser.add_argument("document_id", help="Target document id (must exist)")
    parser.add_argument("html_file", type=Path, help="HTML file to ingest")
    parser.add_argument("--start-marker", default=None, help="Ignore every line before this exact text")
    parser.add_argument("--title", default=None, help="Rename the document after ingestion")
    args = parser.parse_args(argv)

    _setup()
    if not args.html_file.is_file():
        logger.error("HTML file not found: %s", args.html_file)
        return 2

    db = SessionLocal()
    try:
        result = IngestionService(db).ingest_html(
            args.document_id,
            args.html_file.read_bytes(),
            start_marker=args.start_marker,
            title=args.title,
        )
    except DocnexException as e:
        logger.error("Ingestion failed: %s", e.message, extra={"error_code": e.error_code.value})
        return 1
    finally:
        db.close()

    print(
        f"Ingested {result['block_count']} blocks into {result['document_id']}: "
        f"{result['titles']} títulos, {result['chapters']} capítulos, {result['articles']} artículos"
    )
    return 0


def repair_main(argv: Optional[List[str]] = None) -> int:
    """Entry point of ``docnex-repair``."""
    parser = argparse.ArgumentParser(
        description="Rebuild the TÍTULO / CAPÍTULO / ARTÍCULO hierarchy of a document from its titles",
    )
    parser.add_argument("document_id", help="Document to repair")
    parser.add_argument("--dry-run", action="store_true", help="Report the changes without applying them")
    parser.add_argument(
        "--cleanup-titles",
        action="store_true",
        help="Fix TÍTÍTULO / CAPÍTÍTULO typos before repairing",
    )
    args = parser.parse_args(argv)

    _setup()
    db = SessionLocal()
    try:
        service = HierarchyRepairService(db)
        if args.cleanup_titles and not args.dry_run:
            fixed = service.cleanup_titles(args.document_id)
            print(f"Fixed {fixed} titles")
        report = service.repair(args.document_id, dry_run=args.dry_run)
    except DocnexException as e:
        logger.error("Repair failed: %s", e.message, extra={"error_code": e.error_code.value})
        return 1
    finally:
        db.close()

    for change in report["changes"]:
        print(f"  {change['title'][:60]!r}: {change['old_parent_id']} -> {change['new_parent_id']}")
    verb = "Would update" if report["dry_run"] else "Updated"
    print(f"{verb} {len(report['changes'])} of {report['examined']} blocks")
    return 0

