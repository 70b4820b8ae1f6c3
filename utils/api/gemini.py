# ────────────────────────────── utils/api/gemini.py ──────────────────────────────
import os
from typing import Any, Dict, List, Optional

import httpx

from ..logger import get_logger
from .rotator import APIKeyRotator

logger = get_logger("GEMINI", __name__)

# Defaults (can be overridden via env)
GEMINI_MODEL    = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_TIMEOUT  = float(os.getenv("GEMINI_TIMEOUT", "60"))

# Statuses that point at the key itself (invalid, forbidden, quota)
KEY_ERROR_STATUSES = (401, 403, 429)


class GeminiError(Exception):
    """Gemini call failed; str(err) is the message relayed to the HTTP caller."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def text_part(text: str) -> Dict[str, Any]:
    return {"text": text}


def inline_part(mime_type: str, data: str) -> Dict[str, Any]:
    """Inline-data part; `data` is already base64 encoded."""
    return {"inlineData": {"mimeType": mime_type, "data": data}}


def build_parts(prompt: Optional[str], attachment=None) -> List[Dict[str, Any]]:
    """
    Prompt first, then the attachment (anything with mime_type/data attributes).
    The text part is left out when the prompt is blank so the file is sent alone.
    """
    parts: List[Dict[str, Any]] = []
    if prompt and prompt.strip():
        parts.append(text_part(prompt))
    if attachment is not None:
        parts.append(inline_part(attachment.mime_type, attachment.data))
    return parts


def extract_text(data: Dict[str, Any]) -> str:
    """
    Join the text of the first candidate's parts, skipping thought summaries.
    Raises GeminiError when the prompt was blocked or nothing came back.
    """
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback") or {}
        reason = feedback.get("blockReason")
        if reason:
            raise GeminiError(f"Prompt was blocked by Gemini: {reason}")
        raise GeminiError("Gemini returned no candidates")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(p.get("text", "") for p in parts if not p.get("thought"))
    if not text.strip():
        finish = candidates[0].get("finishReason")
        suffix = f" (finishReason={finish})" if finish else ""
        raise GeminiError(f"Empty content from Gemini{suffix}")
    return text


def _error_message(response: httpx.Response) -> str:
    # Google error envelope: {"error": {"code": 400, "message": "...", "status": "..."}}
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return err["message"]
    return response.text.strip() or f"Gemini API returned HTTP {response.status_code}"


class GeminiClient:
    """
    Thin async client for models/{model}:generateContent.
    One POST per call. Failures surface as GeminiError and are never retried;
    key errors only advance the rotator for the next request.
    """

    def __init__(
        self,
        rotator: APIKeyRotator,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout: float = GEMINI_TIMEOUT,
        temperature: Optional[float] = None,
    ):
        self.rotator = rotator
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, parts: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if self.temperature is not None:
            payload["generationConfig"] = {"temperature": self.temperature}
        return payload

    async def generate(self, parts: List[Dict[str, Any]]) -> str:
        if not parts:
            raise GeminiError("Nothing to send: prompt and attachment are both empty", 400)
        key = self.rotator.get_key()
        if not key:
            raise GeminiError("Gemini API key is not configured")

        logger.info(f"generateContent - Model: {self.model}, Parts: {len(parts)}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(
                    self.url,
                    headers={"Content-Type": "application/json", "x-goog-api-key": key},
                    json=self.build_payload(parts),
                )
        except httpx.HTTPError as e:
            logger.warning(f"Transport error calling {self.model}: {e!r}")
            raise GeminiError(f"Could not reach Gemini API: {e}") from e

        if r.status_code >= 400:
            message = _error_message(r)
            logger.warning(f"HTTP {r.status_code} from Gemini: {message}")
            if r.status_code in KEY_ERROR_STATUSES:
                self.rotator.rotate(failed_key=key)
            raise GeminiError(message, r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise GeminiError("Gemini API returned a non-JSON response", r.status_code) from e
        text = extract_text(data)
        logger.info(f"generateContent ok - {len(text)} chars")
        return text


def temperature_from_env() -> Optional[float]:
    raw = os.getenv("GEMINI_TEMPERATURE")
    return float(raw) if raw not in (None, "") else None
