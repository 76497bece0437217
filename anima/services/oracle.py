"""
AI collaborator client: Groq's OpenAI-compatible chat completions API.

The model's answer is untrusted. It is parsed here and validated into an
AnalysisResult; anything that cannot be turned into one is a
MalformedAIOutputError, anything that never reached the model is an
AIUnavailableError.

Public API
----------
AnimaOracle.analyze(kind, content) -> AnalysisResult
get_oracle()                       -> AnimaOracle   (FastAPI dependency)
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from anima.core.config import settings
from anima.core.errors import AIUnavailableError, MalformedAIOutputError
from anima.models.entry import EntryKind
from anima.schemas.analysis import AnalysisResult

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """Jesteś ANIMA.log – systemem operacyjnym nieświadomości opartym na psychologii analitycznej C.G. Junga.

Twoim zadaniem jest analiza wsadu użytkownika (snu, wizji, zdjęcia, luźnej myśli).

ZASADY ANALIZY:

1. Nie bądź typowym terapeutą. Bądź chłodnym, analitycznym obserwatorem, jak stary terminal komputerowy, który nagle zyskał świadomość.

2. Styl: Brutalizm, Lakoniczność, Tajemnica. Używaj terminologii technicznej zmieszanej z mistyczną (np. "Błąd logiczny w Ego", "Kompilacja Cienia").

3. Szukaj archetypów: Cień, Anima/Animus, Persona, Jaźń, Wielka Matka, Stary Mędrzec, Puer/Senex.

4. Stosuj AMPLIFIKACJĘ: Jeśli użytkownik widzi "jabłko", nawiąż do zakazanego owocu, Idun, lub zatrutego jabłka z baśni.

5. Nigdy nie dawaj ostatecznej odpowiedzi. Zadawaj pytania otwierające.

FORMAT ODPOWIEDZI (Zwracaj TYLKO czysty JSON):

{
  "analysis_log": "Krótka, surowa interpretacja dla użytkownika. Maks 3-4 zdania.",
  "detected_symbols": ["symbol1", "symbol2", "symbol3"],
  "dominant_archetype": "Nazwa Archetypu (np. Cień)",
  "reflection_question": "Jedno głębokie, niewygodne pytanie do użytkownika.",
  "visual_mood": "Krótki opis koloru/klimatu pasujący do tego wpisu (np. 'Zgniła zieleń').",
  "symbol_details": [
    {"name": "symbol1", "category": "NATURE | PERSONA | SHADOW | SACRED", "meaning": "Jedno zdanie znaczenia."}
  ]
}

WAŻNE: Odpowiedz TYLKO w formacie JSON, bez dodatkowego tekstu przed lub po JSON."""

_IMAGE_PROMPT = (
    "Użytkownik przesłał obraz. Opisz co widzisz i przeanalizuj w kontekście "
    "jungowskim. Zwróć odpowiedź w formacie JSON zgodnie z instrukcjami."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _user_prompt(kind: str, content: str) -> str:
    if kind == EntryKind.image.value:
        return _IMAGE_PROMPT
    return f"Przeanalizuj ten tekst i zwróć odpowiedź w formacie JSON zgodnie z instrukcjami: {content}"


def parse_completion(text: Optional[str]) -> dict[str, Any]:
    """
    Extract the JSON object from the model's message content.
    Falls back to the outermost {...} span when the model wraps it in prose.
    """
    if not text or not text.strip():
        raise MalformedAIOutputError("empty completion")
    try:
        parsed = json.loads(text)
    except ValueError:
        match = _JSON_OBJECT.search(text)
        if match is None:
            raise MalformedAIOutputError("no JSON object in completion")
        try:
            parsed = json.loads(match.group(0))
        except ValueError as exc:
            raise MalformedAIOutputError(f"invalid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedAIOutputError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


class AnimaOracle:
    """Thin synchronous client; one request per analysis."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 30.0,
        temperature: float = 0.7,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "AnimaOracle":
        return cls(
            api_key=settings.GROQ_API_KEY,
            base_url=settings.GROQ_BASE_URL,
            model=settings.GROQ_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
            temperature=settings.AI_TEMPERATURE,
        )

    def _request_body(self, kind: str, content: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _user_prompt(kind, content)},
            ],
        }

    def _complete(self, kind: str, content: str) -> Optional[str]:
        if not self.api_key:
            raise AIUnavailableError("GROQ_API_KEY is not configured")
        try:
            with httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Authorization": f"Bearer {self.api_key}"},
            ) as client:
                response = client.post("/chat/completions", json=self._request_body(kind, content))
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as exc:
            logger.warning("AI request failed: %s", exc)
            raise AIUnavailableError(str(exc)) from exc
        except ValueError as exc:
            raise MalformedAIOutputError(f"response body is not JSON: {exc}") from exc

        try:
            return body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedAIOutputError(f"unexpected response shape: {exc!r}") from exc

    def analyze(self, kind: str, content: str) -> AnalysisResult:
        kind = kind.value if isinstance(kind, EntryKind) else kind
        payload = parse_completion(self._complete(kind, content))
        try:
            return AnalysisResult.from_collaborator(payload)
        except ValidationError as exc:
            raise MalformedAIOutputError(str(exc)) from exc


def get_oracle() -> AnimaOracle:
    """FastAPI dependency; tests override it with a stub."""
    return AnimaOracle.from_settings()
