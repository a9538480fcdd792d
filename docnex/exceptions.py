"""Custom exception hierarchy for DOCNEX.

Domain errors and AI errors share one base class so the API layer can
render every failure with the same ``{"error", "message", "details"}``
envelope.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Document errors
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    BLOCK_NOT_FOUND = "BLOCK_NOT_FOUND"
    LINK_NOT_FOUND = "LINK_NOT_FOUND"
    INVALID_HIERARCHY = "INVALID_HIERARCHY"

    # History errors
    SNAPSHOT_NOT_FOUND = "SNAPSHOT_NOT_FOUND"
    SNAPSHOT_EMPTY = "SNAPSHOT_EMPTY"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Rate limiting
    RATE_LIMITED = "RATE_LIMITED"

    # AI errors
    AI_VALIDATION_ERROR = "AI_VALIDATION_ERROR"
    AI_RATE_LIMIT_ERROR = "AI_RATE_LIMIT_ERROR"
    AI_TIMEOUT_ERROR = "AI_TIMEOUT_ERROR"
    AI_SECURITY_ERROR = "AI_SECURITY_ERROR"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
    AI_CONFIG_ERROR = "AI_CONFIG_ERROR"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DocnexException(Exception):
    """
    Base exception for all DOCNEX errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class DocumentNotFoundError(DocnexException):
    """Document not found in database."""

    def __init__(self, document_id: str):
        super().__init__(
            f"Document not found: {document_id}",
            ErrorCode.DOCUMENT_NOT_FOUND,
            status_code=404,
            details={"document_id": document_id}
        )


class BlockNotFoundError(DocnexException):
    """Block not found in database."""

    def __init__(self, block_id: str):
        super().__init__(
            f"Block not found: {block_id}",
            ErrorCode.BLOCK_NOT_FOUND,
            status_code=404,
            details={"block_id": block_id}
        )


class LinkNotFoundError(DocnexException):
    """Semantic link not found in database."""

    def __init__(self, link_id: str):
        super().__init__(
            f"Semantic link not found: {link_id}",
            ErrorCode.LINK_NOT_FOUND,
            status_code=404,
            details={"link_id": link_id}
        )


class SnapshotNotFoundError(DocnexException):
    """History entry not found in database."""

    def __init__(self, history_id: str):
        super().__init__(
            f"History entry not found: {history_id}",
            ErrorCode.SNAPSHOT_NOT_FOUND,
            status_code=404,
            details={"history_id": history_id}
        )


class EmptySnapshotError(DocnexException):
    """History entry carries no snapshot to restore."""

    def __init__(self, history_id: str):
        super().__init__(
            f"History entry has no snapshot to restore: {history_id}",
            ErrorCode.SNAPSHOT_EMPTY,
            status_code=400,
            details={"history_id": history_id}
        )


class ValidationError(DocnexException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class HierarchyError(DocnexException):
    """Requested parent/child change would break the block tree."""

    def __init__(self, block_id: str, parent_id: Optional[str], reason: str):
        super().__init__(
            f"Invalid parent for block {block_id}: {reason}",
            ErrorCode.INVALID_HIERARCHY,
            status_code=400,
            details={"block_id": block_id, "parent_block_id": parent_id}
        )


class DatabaseError(DocnexException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )


# ---------------------------------------------------------------------------
# AI errors
# ---------------------------------------------------------------------------

class AIError(DocnexException):
    """Base class for failures talking to the language model."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.AI_SERVICE_ERROR,
        status_code: int = 500,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, status_code=status_code, details=details)
        self.retryable = retryable


class AIValidationError(AIError):
    """The model input or output failed validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(
            message,
            ErrorCode.AI_VALIDATION_ERROR,
            status_code=400,
            details={"validation_errors": self.validation_errors},
        )


class AIRateLimitError(AIError):
    """The provider rejected the call for quota or rate reasons."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(
            message,
            ErrorCode.AI_RATE_LIMIT_ERROR,
            status_code=429,
            retryable=True,
            details={"retry_after": retry_after} if retry_after is not None else {},
        )


class AITimeoutError(AIError):
    """The completion call did not finish in time."""

    def __init__(self, message: str = "AI request timed out"):
        super().__init__(
            message,
            ErrorCode.AI_TIMEOUT_ERROR,
            status_code=408,
            retryable=True,
        )


class AISecurityError(AIError):
    """Input was blocked before reaching the model."""

    def __init__(self, message: str, reason: str = "malicious_content"):
        self.reason = reason
        super().__init__(
            message,
            ErrorCode.AI_SECURITY_ERROR,
            status_code=403,
            details={"reason": reason},
        )


class AIServiceError(AIError):
    """The provider failed or returned something unusable."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {"original_error": str(original_error)} if original_error else {}
        super().__init__(
            message,
            ErrorCode.AI_SERVICE_ERROR,
            status_code=503,
            retryable=True,
            details=details,
        )


class AIConfigError(AIError):
    """AI is not configured (missing model or API key)."""

    def __init__(self, message: str = "AI provider is not configured"):
        super().__init__(
            message,
            ErrorCode.AI_CONFIG_ERROR,
            status_code=500,
        )


def categorize_error(error: Exception) -> AIError:
    """Map an arbitrary exception from the AI stack to an ``AIError``."""
    if isinstance(error, AIError):
        return error

    message = str(error) or error.__class__.__name__
    lowered = message.lower()

    if "timeout" in lowered or "timed out" in lowered:
        return AITimeoutError(message)
    if "rate limit" in lowered or "quota" in lowered or "429" in lowered:
        return AIRateLimitError(message, retry_after=60)
    if "api key" in lowered or "api_key" in lowered or "unauthorized" in lowered:
        return AIConfigError(message)
    if "validation" in lowered or "invalid" in lowered:
        return AIValidationError(message)
    return AIServiceError(message, original_error=error)


def is_retryable_error(error: Exception) -> bool:
    """True when the failure is transient and the call may be repeated."""
    if isinstance(error, AIError):
        return error.retryable
    return categorize_error(error).retryable


_USER_MESSAGES = {
    ErrorCode.AI_VALIDATION_ERROR: "Los datos proporcionados no son válidos. Por favor, revisa tu entrada.",
    ErrorCode.AI_RATE_LIMIT_ERROR: "Has alcanzado el límite de solicitudes. Por favor, espera {retry_after} segundos.",
    ErrorCode.AI_TIMEOUT_ERROR: "La solicitud tardó demasiado. Por favor, intenta con un documento más pequeño.",
    ErrorCode.AI_SECURITY_ERROR: "Tu solicitud fue bloqueada por razones de seguridad.",
    ErrorCode.AI_SERVICE_ERROR: "El servicio de IA no está disponible temporalmente. Por favor, intenta más tarde.",
    ErrorCode.AI_CONFIG_ERROR: "Error de configuración del servicio. Contacta al administrador.",
}


def user_friendly_message(error: Exception) -> str:
    """Spanish message suitable for showing to an end user."""
    ai_error = categorize_error(error)
    template = _USER_MESSAGES.get(ai_error.error_code, "Ocurrió un error inesperado. Por favor, intenta de nuevo.")
    if ai_error.error_code == ErrorCode.AI_RATE_LIMIT_ERROR:
        retry_after = getattr(ai_error, "retry_after", None)
        return template.format(retry_after=int(retry_after) if retry_after else 60)
    return template
