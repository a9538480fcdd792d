"""Parsing of Spanish legal texts (BOE/BOJA HTML) into a block tree.

The tree has three levels:

    TÍTULO / Disposición ...      level 0
        CAPÍTULO ...              level 1
            Artículo N. ...       level 2

Lines that are not headings are content of the innermost open node.
Text before the first heading goes into a root "Preámbulo" node.
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup

from .text_analysis import decode_html_entities

PREAMBLE_TITLE = "Preámbulo"

LEVEL_BLOCK_TYPES = ("titulo", "capitulo", "articulo")

_TITLE_RE = re.compile(
    r"^(T[ÍI]TULO|Disposici[óo]n (Adicional|Transitoria|Derogatoria|Final))", re.IGNORECASE
)
_CHAPTER_RE = re.compile(r"^CAP[ÍI]TULO", re.IGNORECASE)
_ARTICLE_RE = re.compile(r"^Art[íi]culo \d+\.", re.IGNORECASE)

_TYPO_FIXES = (
    (re.compile(r"T[ÍI]T[ÍI]TULO", re.IGNORECASE), "TÍTULO"),
    (re.compile(r"CAP[ÍI]T[ÍI]TULO", re.IGNORECASE), "CAPÍTULO"),
)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class LegalNode:
    title: str
    level: int
    content: List[str] = field(default_factory=list)
    children: List["LegalNode"] = field(default_factory=list)


def decode_html_bytes(raw: bytes) -> str:
    """Decode a downloaded page: UTF-8 when valid, Latin-1 otherwise."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def repair_heading_typos(text: str) -> str:
    """Fix doubled syllables left by bad conversions (TÍTÍTULO, CAPITITULO)."""
    for pattern, replacement in _TYPO_FIXES:
        text = pattern.sub(replacement, text)
    return text


def extract_paragraphs(html: str) -> List[str]:
    """Text of every <p> element, cleaned and without empty lines."""
    soup = BeautifulSoup(html, "html.parser")
    lines = []
    for paragraph in soup.find_all("p"):
        text = paragraph.get_text().replace("\xa0", " ")
        text = _WHITESPACE_RE.sub(" ", decode_html_entities(text)).strip()
        if text:
            lines.append(text)
    return lines


def parse_legal_lines(lines: Iterable[str], start_marker: Optional[str] = None) -> List[LegalNode]:
    """Build the TÍTULO / CAPÍTULO / Artículo tree from cleaned lines."""
    lines = [line.strip() for line in lines]
    if start_marker:
        try:
            lines = lines[lines.index(start_marker.strip()):]
        except ValueError:
            pass

    roots: List[LegalNode] = []
    current_title: Optional[LegalNode] = None
    current_chapter: Optional[LegalNode] = None
    target: Optional[LegalNode] = None

    for line in lines:
        if not line:
            continue
        line = repair_heading_typos(line)

        if _TITLE_RE.match(line):
            current_title = LegalNode(title=line, level=0)
            roots.append(current_title)
            current_chapter = None
            target = current_title
        elif _CHAPTER_RE.match(line) and current_title is not None:
            current_chapter = LegalNode(title=line, level=1)
            current_title.children.append(current_chapter)
            target = current_chapter
        elif _ARTICLE_RE.match(line):
            article = LegalNode(title=line, level=2)
            if current_chapter is not None:
                current_chapter.children.append(article)
            elif current_title is not None:
                current_title.children.append(article)
            else:
                article.level = 0
                roots.append(article)
            target = article
        elif target is not None:
            target.content.append(line)
        else:
            target = LegalNode(title=PREAMBLE_TITLE, level=0, content=[line])
            roots.append(target)

    return roots


def flatten_tree(roots: List[LegalNode], document_id: str) -> List[dict]:
    """Pre-order block rows with fresh ids and consecutive order_index."""
    rows: List[dict] = []

    def visit(node: LegalNode, parent_id: Optional[str]) -> None:
        block_id = str(uuid.uuid4())
        rows.append({
            "id": block_id,
            "document_id": document_id,
            "parent_block_id": parent_id,
            "title": node.title,
            "content": "\n\n".join(node.content),
            "block_type": LEVEL_BLOCK_TYPES[min(node.level, 2)],
            "order_index": len(rows),
            "tags": [],
        })
        for child in node.children:
            visit(child, block_id)

    for root in roots:
        visit(root, None)
    return rows
