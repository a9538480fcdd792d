"""Text heuristics shared by import, ingestion and the quality endpoint.

Everything here is pure: functions look only at the string they are
given, never at the database or at other blocks.
"""

import re
from dataclasses import dataclass, field, asdict

# Spanish stop words ignored by the keyword extractor.
STOP_WORDS = frozenset("""
    el la los las un una unos unas y e o u
    a ante bajo cabe con contra de desde durante en entre hacia hasta mediante
    para por según sin so sobre tras versus vía
    que quien donde como cuando cual cuyo
    este esta estos estas ese esa esos esas aquel aquella aquellos aquellas
    esto eso aquello
    mi tu su mis tus sus nuestro nuestra
    me te se nos os le les lo
    ser es soy eres somos son fue fueron era eramos
    estar estoy estamos estan
    haber he has ha hemos han hay
    tener tengo tienes tiene tenemos tienen
    hacer hago haces hace hacemos hacen
    ir voy vas va vamos van
    pero mas sino aunque porque pues
    si no tambien tampoco muy menos
    todo nada algo algun alguno alguna ningun ninguno ninguna
    otro otra otros otras
""".split())

TECHNICAL_TERMS = (
    "React", "Next.js", "Supabase", "SQL", "Database", "Component", "API",
    "Frontend", "Backend", "Typescript", "Javascript", "Node.js", "HTML", "CSS",
    "Tailwind", "PostgreSQL", "Auth", "Storage", "Realtime", "Vector",
    "Embedding", "Semantic", "AI", "LLM",
)

_PROPER_NOUN_RE = re.compile(r"\b[A-ZÁÉÍÓÚÑ][a-záéíóúñ]+\b")
_QUOTED_RE = re.compile(r'"([^"]+)"')
_PUNCTUATION_RE = re.compile(r"[.,;:()]")
_SENTENCE_END = (".", "?", "!")


def _starts_sentence(content: str, position: int) -> bool:
    before = content[:position].rstrip()
    return not before or before.endswith(_SENTENCE_END)


def extract_keywords(content: str) -> list[str]:
    """Heuristic tags for a block.

    Collects, in this order: capitalised words that do not open a
    sentence, quoted phrases of 3 to 29 characters, and known technical
    terms. Stop words and words of two letters or fewer are skipped;
    duplicates are dropped ignoring case.
    """
    if not content:
        return []

    keywords: list[str] = []
    seen: set[str] = set()

    def add(word: str) -> None:
        key = word.lower()
        if key not in seen:
            seen.add(key)
            keywords.append(word)

    for match in _PROPER_NOUN_RE.finditer(content):
        if _starts_sentence(content, match.start()):
            continue
        clean = _PUNCTUATION_RE.sub("", match.group(0).lower())
        if clean not in STOP_WORDS and len(clean) > 2:
            add(match.group(0))

    for match in _QUOTED_RE.finditer(content):
        phrase = match.group(1)
        if 2 < len(phrase) < 30:
            if _PUNCTUATION_RE.sub("", phrase).lower() not in STOP_WORDS:
                add(phrase)

    for term in TECHNICAL_TERMS:
        if re.search(rf"(?<!\w){re.escape(term)}(?!\w)", content, re.IGNORECASE):
            add(term)

    return keywords


# ---------------------------------------------------------------------------
# Quality score
# ---------------------------------------------------------------------------

PLATINUM_THRESHOLD = 90
GOLD_THRESHOLD = 75
SILVER_THRESHOLD = 50

# 500 words counts as a complete section.
TARGET_WORD_COUNT = 500
# Five citations per thousand words scores full marks.
TARGET_CITATIONS_PER_1000 = 5
TARGET_HEADERS = 3

_CITATION_RE = re.compile(r"\[\d+\]|\(\w+ et al\., \d{4}\)|\(\w+, \d{4}\)")
_HEADER_RE = re.compile(r"^#{1,6}\s", re.MULTILINE)


@dataclass
class QualityMetrics:
    score: int
    level: str
    breakdown: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def quality_level(score: int) -> str:
    if score >= PLATINUM_THRESHOLD:
        return "platinum"
    if score >= GOLD_THRESHOLD:
        return "gold"
    if score >= SILVER_THRESHOLD:
        return "silver"
    return "bronze"


def calculate_quality_score(content: str) -> QualityMetrics:
    """Score a text from 0 to 100 on length, citations and structure.

    Weights: completeness 40%, citation density 30%, formatting 30%.
    """
    words = content.split() if content else []
    word_count = len(words)

    completeness = min(100.0, word_count / TARGET_WORD_COUNT * 100)

    citations = len(_CITATION_RE.findall(content or ""))
    density = citations / word_count * 1000 if word_count else 0.0
    citation_density = min(100.0, density / TARGET_CITATIONS_PER_1000 * 100)

    headers = len(_HEADER_RE.findall(content or ""))
    formatting = min(100.0, headers / TARGET_HEADERS * 100)

    raw = completeness * 0.4 + citation_density * 0.3 + formatting * 0.3
    score = int(round(min(100.0, max(0.0, raw))))

    return QualityMetrics(
        score=score,
        level=quality_level(score),
        breakdown={
            "completeness": completeness,
            "citation_density": citation_density,
            "formatting": formatting,
            "word_count": word_count,
        },
    )


# ---------------------------------------------------------------------------
# HTML entities
# ---------------------------------------------------------------------------

_ENTITIES = {
    "aacute": "á", "eacute": "é", "iacute": "í", "oacute": "ó", "uacute": "ú",
    "Aacute": "Á", "Eacute": "É", "Iacute": "Í", "Oacute": "Ó", "Uacute": "Ú",
    "ntilde": "ñ", "Ntilde": "Ñ", "uuml": "ü", "Uuml": "Ü",
    "quot": '"', "amp": "&", "lt": "<", "gt": ">", "apos": "'", "nbsp": " ",
    "deg": "°", "bull": "•", "iquest": "¿", "iexcl": "¡", "ordm": "º", "ordf": "ª",
    "laquo": "«", "raquo": "»",
}

_ENTITY_RE = re.compile(r"&(#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")


def decode_html_entities(text: str) -> str:
    """Decode the entities that show up in BOE/BOJA pages.

    Unknown named entities are left untouched.
    """
    if not text:
        return ""

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name.startswith("#"):
            try:
                code = int(name[2:], 16) if name[1] in "xX" else int(name[1:])
                return chr(code)
            except (ValueError, OverflowError):
                return match.group(0)
        return _ENTITIES.get(name, match.group(0))

    return _ENTITY_RE.sub(replace, text)
