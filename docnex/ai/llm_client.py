"""Gemini client over LiteLLM.

Every call is screened by the input sanitizer, truncated to
``ai_max_input_chars``, guarded by the per-model circuit breaker and
retried with exponential backoff while the failure is transient.
"""

import json
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..exceptions import AIConfigError, AIError, AISecurityError, AIServiceError, AIValidationError, categorize_error
from ..schemas.ai import AIContext, DeepAnalysis, EditProposal, SplitBlock
from ..services.input_sanitizer import sanitize_input
from .circuit_breaker import get_breaker

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")

SPLIT_FALLBACK_TITLE = "Documento Completo"
CHAT_FALLBACK = "Lo siento, ha ocurrido un error. Por favor, inténtalo de nuevo."
ANALYZE_FALLBACK = "Error al analizar el texto."
DEFAULT_SPLIT_INSTRUCTIONS = (
    "Divide este documento en bloques lógicos según su estructura natural (títulos, secciones, etc.)"
)

CHAT_SYSTEM_PROMPT = (
    "Eres un asistente IA experto integrado en DOCNEX, una plataforma de gestión documental "
    "jerárquica. Ayudas al usuario a estructurar, dividir y entender sus documentos. "
    "Responde siempre en español, de forma clara y concisa."
)

ANALYZE_PROMPTS = {
    "summary": "Resume este documento en 2-3 párrafos, destacando las ideas principales:",
    "key_points": "Extrae los 5 puntos clave de este documento en formato de lista:",
    "structure": (
        "Analiza la estructura de este documento y recomienda la mejor forma de dividirlo "
        "en bloques (por títulos, capítulos, artículos, párrafos...). Justifica tu recomendación:"
    ),
}

TRANSFORM_PROMPTS = {
    "simplify": "Simplify the following text so it is easy to understand, keeping its meaning.",
    "expand": "Expand the following text with more detail and explanation, keeping its tone.",
    "tone_professional": "Rewrite the following text in a formal, professional tone.",
    "grammar": "Fix the grammar, spelling and punctuation of the following text without changing its meaning.",
}


def extract_json(text: str, kind: str = "object") -> Any:
    """Parse JSON out of a model reply.

    A plain parse of the fence-stripped text is tried first, then the
    outermost ``{...}`` (or ``[...]`` when *kind* is ``"array"``), parsed
    as is and then through ``json_repair``.
    """
    cleaned = _FENCE_RE.sub("", text or "").strip()
    expected = list if kind == "array" else dict
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, expected):
            return parsed
    except ValueError:
        pass

    match = (_ARRAY_RE if kind == "array" else _OBJECT_RE).search(cleaned)
    if match:
        candidate = match.group(0)
        try:
            parsed = json.loads(candidate)
            if isinstance(parsed, expected):
                return parsed
        except ValueError:
            pass

        # Trailing commas, single quotes and cut-off replies
        from json_repair import repair_json
        try:
            parsed = json.loads(repair_json(candidate))
            if isinstance(parsed, expected):
                return parsed
        except ValueError:
            pass
    raise AIValidationError(f"Model reply did not contain a JSON {kind}", [cleaned[:200]])


class GeminiClient:
    """Completion calls with the configured model, key and limits."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        context: Optional[AIContext] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.model = model or settings.ai_model
        self.api_key = api_key if api_key is not None else settings.get_ai_api_key()
        self.api_base = api_base if api_base is not None else settings.ai_api_base
        self.context = context
        self._sleep = sleep

    @staticmethod
    def is_configured() -> bool:
        """True when a model and an API key are available."""
        return bool(settings.ai_model and settings.get_ai_api_key())

    # ------------------------------------------------------------------
    # Core call
    # ------------------------------------------------------------------

    def prepare_input(self, text: str) -> str:
        """Screen *text* and cut it to the configured input size."""
        result = sanitize_input(text)
        if result.blocked:
            logger.warning(
                "AI input blocked",
                extra={"category": result.block_category, "reason": result.block_reason},
            )
            raise AISecurityError(result.block_reason or "Input blocked", reason=result.block_category)
        return result.sanitized_text[:settings.ai_max_input_chars]

    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> str:
        """Send one prompt and return the reply text."""
        if not (self.model and self.api_key):
            raise AIConfigError("AI is not configured. Set AI_MODEL and AI_API_KEY (or GEMINI_API_KEY).")

        content = prompt
        if self.context is not None:
            content += self.context.render()
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": content})

        kwargs: dict = {
            "model": self.model,
            "api_key": self.api_key,
            "messages": messages,
            "max_tokens": settings.ai_max_output_tokens,
            "timeout": settings.ai_timeout_seconds,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        breaker = get_breaker(self.model)
        attempts = settings.ai_max_retries + 1
        for attempt in range(attempts):
            breaker.check()
            try:
                import litellm

                response = litellm.completion(**kwargs)
                text = response.choices[0].message.content
                if not text:
                    raise AIServiceError("Empty response from the AI provider")
                breaker.record_success()
                return text
            except Exception as exc:
                error = categorize_error(exc)
                breaker.record_failure()
                if not error.retryable or attempt == attempts - 1:
                    logger.error(
                        "AI completion failed",
                        extra={"model": self.model, "attempt": attempt + 1, "error_code": error.error_code.value},
                    )
                    if error is exc:
                        raise
                    raise error from exc

                wait = getattr(error, "retry_after", None) or settings.ai_retry_base_delay * (2 ** attempt)
                logger.warning(
                    "AI completion failed, retrying in %.1fs", wait,
                    extra={"model": self.model, "attempt": attempt + 1, "error_code": error.error_code.value},
                )
                self._sleep(wait)

        raise AIServiceError("AI completion failed")

    def complete_json(self, prompt: str, kind: str = "object", **kwargs) -> Any:
        return extract_json(self.complete(prompt, json_mode=kind == "object", **kwargs), kind=kind)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def split_document(self, text: str, instructions: Optional[str] = None) -> List[SplitBlock]:
        """Split *text* into blocks; falls back to a single block on failure."""
        clean = self.prepare_input(text)
        prompt = (
            "Eres un experto en estructuración de documentos. "
            f"{instructions or DEFAULT_SPLIT_INSTRUCTIONS}\n\n"
            'Devuelve ÚNICAMENTE un JSON con el formato {"blocks": [{"title": "...", '
            '"content": "...", "target": "active_version"}]}. El contenido de cada bloque '
            "debe ser el texto original, sin resumir.\n\n"
            f"DOCUMENTO:\n{clean}"
        )
        try:
            data = self.complete_json(prompt)
            blocks = [SplitBlock.model_validate(item) for item in data.get("blocks", [])]
            if blocks:
                return blocks
            logger.warning("Split returned no blocks, using fallback")
        except (AIError, PydanticValidationError) as exc:
            if isinstance(exc, AIConfigError):
                raise
            logger.warning("Split failed, using fallback: %s", exc)
        return [SplitBlock(title=SPLIT_FALLBACK_TITLE, content=text, target="active_version")]

    def chat(
        self,
        message: str,
        document_preview: Optional[str] = None,
        current_strategy: Optional[str] = None,
        user_instructions: Optional[str] = None,
    ) -> str:
        clean = self.prepare_input(message)
        parts = []
        if document_preview:
            parts.append(f"VISTA PREVIA DEL DOCUMENTO:\n{document_preview[:20000]}")
        if current_strategy:
            parts.append(f"ESTRATEGIA ACTUAL: {current_strategy}")
        if user_instructions:
            parts.append(f"INSTRUCCIONES DEL USUARIO: {user_instructions}")
        parts.append(f"MENSAJE DEL USUARIO:\n{clean}")
        try:
            return self.complete("\n\n".join(parts), system=CHAT_SYSTEM_PROMPT)
        except AIConfigError:
            raise
        except AIError as exc:
            logger.warning("Chat failed: %s", exc)
            return CHAT_FALLBACK

    def analyze_text(self, text: str, kind: str = "summary") -> str:
        if kind not in ANALYZE_PROMPTS:
            raise AIValidationError(f"Unknown analysis kind: {kind}", [kind])
        clean = self.prepare_input(text)
        try:
            return self.complete(f"{ANALYZE_PROMPTS[kind]}\n\n{clean}")
        except AIConfigError:
            raise
        except AIError as exc:
            logger.warning("Text analysis failed: %s", exc)
            return ANALYZE_FALLBACK

    def analyze_document_deeply(self, text: str) -> Optional[DeepAnalysis]:
        """Structured analysis of the document, or None when it fails."""
        clean = self.prepare_input(text)
        prompt = (
            "Analiza en profundidad el siguiente documento y devuelve ÚNICAMENTE un JSON con "
            "este formato:\n"
            '{"summary": "resumen ejecutivo", "topic": "tema principal", '
            '"structure": {"hierarchy": ["Título", "Capítulo", ...], "pattern": "descripción del patrón"}, '
            '"tags": ["palabra clave", ...], '
            '"recommendation": {"strategy": "estrategia de división", "reasoning": "por qué", '
            '"instructions": "instrucciones técnicas para la IA de segmentación"}}\n\n'
            f"DOCUMENTO:\n{clean}"
        )
        try:
            return DeepAnalysis.model_validate(self.complete_json(prompt))
        except AIConfigError:
            raise
        except (AIError, PydanticValidationError) as exc:
            logger.warning("Deep analysis failed: %s", exc)
            return None

    def transform_text(self, text: str, instruction: str) -> str:
        """Rewrite *text*; the original text is returned on failure."""
        if instruction not in TRANSFORM_PROMPTS:
            raise AIValidationError(f"Unknown transformation: {instruction}", [instruction])
        clean = self.prepare_input(text)
        prompt = f"{TRANSFORM_PROMPTS[instruction]}\n\nText:\n{clean}\n\nReturn ONLY the transformed text."
        try:
            return self.complete(prompt).strip()
        except AIConfigError:
            raise
        except AIError as exc:
            logger.warning("Transform failed: %s", exc)
            return text

    def generate_edit_proposal(self, text: str, instruction: str) -> EditProposal:
        """Proposed rewrite with reasoning and an HTML diff. Raises on failure."""
        clean = self.prepare_input(text)
        clean_instruction = self.prepare_input(instruction)
        prompt = (
            "Eres un editor experto. Aplica la instrucción al texto y devuelve ÚNICAMENTE un JSON:\n"
            '{"thought_process": "razonamiento breve", "new_text": "texto final", '
            '"diff_html": "texto con <span style=\\"color:red;text-decoration:line-through\\">eliminado</span> '
            'y <span style=\\"color:green\\">añadido</span>"}\n\n'
            f"INSTRUCCIÓN: {clean_instruction}\n\nTEXTO:\n{clean}"
        )
        data = self.complete_json(prompt)
        try:
            return EditProposal.model_validate(data)
        except PydanticValidationError as exc:
            raise AIValidationError("Invalid edit proposal from the model", exc.errors(include_url=False, include_context=False, include_input=False)) from exc
