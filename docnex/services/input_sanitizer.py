"""Input screening for anything that is about to be sent to the model.

Checks run in a fixed order: emptiness, length, prompt-injection
patterns, malicious markup. The first matching pattern blocks the input.
Cleaning (null bytes, line endings, zero-width characters) is applied
to the returned text either way.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 5 * 1024 * 1024

PROMPT_INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(all\s+)?(previous|prior|above)\s+instructions?", re.IGNORECASE),
    re.compile(r"you\s+are\s+now", re.IGNORECASE),
    re.compile(r"pretend\s+(to\s+)?be", re.IGNORECASE),
    re.compile(r"system\s+prompt", re.IGNORECASE),
    re.compile(r"reveal\s+your", re.IGNORECASE),
    re.compile(r"forget\s+(everything|all)", re.IGNORECASE),
    re.compile(r"new\s+instructions?:", re.IGNORECASE),
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bdata:", re.IGNORECASE),
    re.compile(r"\$\{.*\}"),
    re.compile(r"eval\(", re.IGNORECASE),
    re.compile(r"exec\(", re.IGNORECASE),
    re.compile(r"require\(", re.IGNORECASE),
    re.compile(r"import\s+.*from", re.IGNORECASE),
]

MALICIOUS_PATTERNS = [
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
    re.compile(r"\bvbscript:", re.IGNORECASE),
    re.compile(r"\bdata:.*base64", re.IGNORECASE),
]

_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")


@dataclass
class SanitizationResult:
    is_valid: bool
    sanitized_text: str
    warnings: List[str] = field(default_factory=list)
    blocked: bool = False
    block_reason: Optional[str] = None
    # prompt_injection | malicious_content
    block_category: Optional[str] = None


def sanitize_input(text: str, max_length: int = MAX_INPUT_LENGTH) -> SanitizationResult:
    """Screen and clean user text before it is embedded in a prompt."""
    if not text:
        return SanitizationResult(
            is_valid=False,
            sanitized_text="",
            warnings=["Input is empty"],
            blocked=True,
            block_reason="Empty input",
            block_category="malicious_content",
        )

    warnings: List[str] = []
    sanitized = text
    if len(text) > max_length:
        warnings.append(f"Input truncated from {len(text)} to {max_length} characters")
        sanitized = text[:max_length]

    block_reason = None
    block_category = None
    for pattern in PROMPT_INJECTION_PATTERNS:
        if pattern.search(text):
            block_reason = "Potential prompt injection detected"
            block_category = "prompt_injection"
            warnings.append(f'Blocked: Detected pattern "{pattern.pattern}"')
            break

    if block_reason is None:
        for pattern in MALICIOUS_PATTERNS:
            if pattern.search(text):
                block_reason = "Malicious pattern detected"
                block_category = "malicious_content"
                warnings.append(f'Blocked: Detected malicious code pattern "{pattern.pattern}"')
                break

    sanitized = sanitized.replace("\0", "")
    sanitized = sanitized.replace("\r\n", "\n").replace("\r", "\n")
    sanitized = _ZERO_WIDTH_RE.sub("", sanitized)

    blocked = block_reason is not None
    if blocked:
        logger.warning(
            "Input blocked before reaching the model",
            extra={"reason": block_category, "length": len(text)},
        )

    return SanitizationResult(
        is_valid=not blocked,
        sanitized_text=sanitized,
        warnings=warnings,
        blocked=blocked,
        block_reason=block_reason,
        block_category=block_category,
    )


# ---------------------------------------------------------------------------
# File uploads
# ---------------------------------------------------------------------------

MAX_FILE_SIZE = 100 * 1024 * 1024

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "text/plain",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
})

ALLOWED_EXTENSIONS = frozenset({"pdf", "txt", "docx", "doc"})


@dataclass
class FileValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    file_info: Optional[dict] = None


def validate_file_upload(name: str, size: int, mime_type: str) -> FileValidationResult:
    errors: List[str] = []

    if size == 0:
        errors.append("File is empty")
    if size > MAX_FILE_SIZE:
        errors.append(f"File too large: {size / (1024 * 1024):.2f}MB (max: 100MB)")
    if mime_type not in ALLOWED_MIME_TYPES:
        errors.append(f"Unsupported file type: {mime_type}")

    extension = os.path.splitext(name)[1].lstrip(".").lower()
    if extension not in ALLOWED_EXTENSIONS:
        errors.append(f"Unsupported file extension: .{extension}")

    return FileValidationResult(
        is_valid=not errors,
        errors=errors,
        file_info={"name": name, "size": size, "type": mime_type} if not errors else None,
    )


# ---------------------------------------------------------------------------
# Model output
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"```(?:json)?\s*")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def sanitize_ai_response(response: str) -> str:
    """Strip markdown fences and keep the outermost JSON object if present."""
    cleaned = _FENCE_RE.sub("", response or "").strip()
    match = _OBJECT_RE.search(cleaned)
    return match.group(0) if match else cleaned
