"""Deterministic splitters that turn raw text into importable items.

All splitters return ``SplitItem`` trees that ImportService can insert
directly. None of them talk to the model.
"""

import re
import uuid
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from ..exceptions import ValidationError

INTRO_TITLE_HTML = "Introducción / Portada"
INTRO_TITLE = "Contenido Inicial / Portada"


@dataclass
class SplitItem:
    title: str
    content: str
    target: str = "active_version"
    level: Optional[int] = None
    children: List["SplitItem"] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return asdict(self)


def split_by_header(text: str, level: int) -> List[SplitItem]:
    """Split on markdown headings of exactly *level* hashes, or on <hN> tags for HTML."""
    if text.strip().startswith("<"):
        return _split_html_by_header(text, level)
    return split_by_pattern(text, rf"^#{{{level}}}\s+(.+)", level)


def _split_html_by_header(html: str, level: int) -> List[SplitItem]:
    header_re = re.compile(rf"<h{level}[^>]*>(.*?)</h{level}>", re.IGNORECASE | re.DOTALL)
    matches = list(header_re.finditer(html))
    items: List[SplitItem] = []

    if matches and matches[0].start() > 0:
        items.append(SplitItem(
            title=INTRO_TITLE_HTML,
            content=html[:matches[0].start()].strip(),
            level=level,
        ))

    for i, match in enumerate(matches):
        title = re.sub(r"<[^>]+>", "", match.group(1)).strip()
        end = matches[i + 1].start() if i + 1 < len(matches) else len(html)
        items.append(SplitItem(
            title=title or "Sin Título",
            content=html[match.end():end].strip(),
            level=level,
        ))

    return items


def split_by_pattern(text: str, pattern: str, level: Optional[int] = None) -> List[SplitItem]:
    """Start a new item at every line matching *pattern*.

    The title is the first capture group, or the whole match when the
    pattern has none.
    """
    regex = re.compile(pattern)
    items: List[SplitItem] = []
    current_title = ""
    current_content: List[str] = []

    for line in text.split("\n"):
        match = regex.search(line)
        if match:
            if current_title or current_content:
                items.append(SplitItem(
                    title=current_title or (INTRO_TITLE if not items else "Sin Título"),
                    content="\n".join(current_content).strip(),
                    level=level,
                ))
            current_title = (match.group(1) if regex.groups and match.group(1) else match.group(0)).strip()
            current_content = []
        else:
            current_content.append(line)

    if current_title or current_content:
        items.append(SplitItem(
            title=current_title or "Untitled",
            content="\n".join(current_content).strip(),
            level=level,
        ))

    return items


def build_hierarchy(lines: List[str], parent_pattern: str, child_pattern: str) -> List[SplitItem]:
    """Two-level tree: parent lines open roots, child lines nest under the last root.

    Children seen before any parent are kept as roots. Text before the
    first heading becomes an introductory root item.
    """
    parent_re = re.compile(parent_pattern)
    child_re = re.compile(child_pattern)

    roots: List[SplitItem] = []
    current_parent: Optional[SplitItem] = None
    current_title = ""
    current_content: List[str] = []
    current_kind: Optional[str] = None

    def flush() -> None:
        nonlocal current_parent
        if not current_title and not current_content:
            return
        item = SplitItem(title=current_title or "Untitled", content="\n".join(current_content).strip())
        if current_kind == "parent":
            roots.append(item)
            current_parent = item
        elif current_kind == "child" and current_parent is not None:
            current_parent.children.append(item)
        else:
            roots.append(item)

    for line in lines:
        parent_match = parent_re.search(line)
        child_match = None if parent_match else child_re.search(line)
        match = parent_match or child_match
        if not match:
            current_content.append(line)
            continue

        if current_parent is None and not current_title and current_content:
            current_kind = None
            current_title = INTRO_TITLE
        flush()
        current_kind = "parent" if parent_match else "child"
        current_title = match.group(1) if match.re.groups and match.group(1) else match.group(0)
        current_content = []

    flush()
    return roots


def split_by_index(text: str, index_text: str) -> List[SplitItem]:
    """Split *text* at the headings listed in *index_text*, one per line.

    Each heading is searched case-insensitively at the start of a line,
    after the previous match. Headings that are not found are skipped.
    """
    titles = [line.strip() for line in index_text.split("\n") if line.strip()]
    found: List[tuple] = []
    last_pos = 0

    for title in titles:
        regex = re.compile(rf"^{re.escape(title)}", re.IGNORECASE | re.MULTILINE)
        match = regex.search(text, last_pos)
        if match:
            found.append((title, match.start()))
            last_pos = match.end()

    items: List[SplitItem] = []
    for i, (title, position) in enumerate(found):
        start = position + len(title)
        end = found[i + 1][1] if i + 1 < len(found) else len(text)
        items.append(SplitItem(title=title, content=text[start:end].strip(), level=1))
    return items


_NUMBERED_LINE_RE = re.compile(r"^(\d+)[.)]\s+(.+)")


def split_by_smart_numbering(text: str) -> List[SplitItem]:
    """Split on the longest 1, 2, 3... chain of numbered lines.

    Nested lists that restart at 1 are ignored: for every line numbered 1
    a chain is built greedily forward, and the longest chain wins.
    """
    lines = text.split("\n")
    numbered = []
    for idx, line in enumerate(lines):
        match = _NUMBERED_LINE_RE.match(line)
        if match:
            numbered.append((idx, int(match.group(1)), line))

    if len(numbered) < 2:
        return []

    best: list = []
    for start_pos, (_, num, _) in enumerate(numbered):
        if num != 1:
            continue
        chain = [numbered[start_pos]]
        expected = 2
        for candidate in numbered[start_pos + 1:]:
            if candidate[1] == expected:
                chain.append(candidate)
                expected += 1
        if len(chain) > len(best):
            best = chain

    items: List[SplitItem] = []
    for i, (line_idx, _, line) in enumerate(best):
        end = best[i + 1][0] if i + 1 < len(best) else len(lines)
        items.append(SplitItem(
            title=line,
            content="\n".join(lines[line_idx + 1:end]).strip(),
            level=1,
        ))
    return items


def split_by_paragraphs(text: str) -> List[SplitItem]:
    """One item per blank-line separated paragraph."""
    items = []
    for index, paragraph in enumerate(re.split(r"\n\s*\n", text)):
        content = paragraph.strip()
        if content:
            items.append(SplitItem(title=f"Tema {index + 1}: {paragraph[:30]}...", content=content))
    return items


def split_text(
    text: str,
    strategy: str,
    level: int = 1,
    pattern: Optional[str] = None,
    index_text: Optional[str] = None,
    parent_pattern: Optional[str] = None,
    child_pattern: Optional[str] = None,
) -> List[SplitItem]:
    """Run the splitter named by *strategy* with its options."""
    if strategy == "header":
        return split_by_header(text, level)
    if strategy == "pattern":
        if not pattern:
            raise ValidationError("The pattern strategy needs a pattern", field="pattern")
        return split_by_pattern(text, _compile_checked(pattern, "pattern").pattern, level)
    if strategy == "index":
        if not index_text:
            raise ValidationError("The index strategy needs index_text", field="index_text")
        return split_by_index(text, index_text)
    if strategy == "smart":
        return split_by_smart_numbering(text)
    if strategy == "paragraphs":
        return split_by_paragraphs(text)
    if strategy == "hierarchy":
        if not (parent_pattern and child_pattern):
            raise ValidationError(
                "The hierarchy strategy needs parent_pattern and child_pattern", field="parent_pattern"
            )
        _compile_checked(parent_pattern, "parent_pattern")
        _compile_checked(child_pattern, "child_pattern")
        return build_hierarchy(text.split("\n"), parent_pattern, child_pattern)
    raise ValidationError(f"Unknown split strategy: {strategy}", field="strategy")


# User patterns run without a timeout; SplitRequest caps pattern and text length.
def _compile_checked(pattern: str, field_name: str) -> "re.Pattern":
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValidationError(f"Invalid regular expression: {exc}", field=field_name) from exc
