import json
import logging
import os
from typing import Any, Optional, Sequence

import requests
from dotenv import load_dotenv

from ..config import DEFAULT_GEMINI_MODEL
from ..errors import InsightGenerationError
from ..models.participant import Participant
from .base import INSIGHT_FIELDS, Insight

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

PROMPT_TEMPLATE = (
    "Analise este grupo de amigos e seus status: {participants}. "
    "Crie um resumo criativo e uma recomendação divertida para o evento."
)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {field: {"type": "STRING"} for field in INSIGHT_FIELDS},
    "required": list(INSIGHT_FIELDS),
}


def summarize_participants(participants: Sequence[Participant]) -> str:
    """Serialize the group for the prompt. Drawn names are never included."""
    summary = [
        {"nome": p.name, "jaSorteou": p.has_secret_assigned} for p in participants
    ]
    return json.dumps(summary, ensure_ascii=False)


class GeminiInsightClient:
    """Insight generator backed by the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        key = api_key or os.getenv("GEMINI_API_KEY")
        if not key:
            raise ValueError("Environment variable 'GEMINI_API_KEY' is not set")

        self.api_key = key
        self.model = model or os.getenv("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    # -------- headers --------
    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

    # -------- core request --------
    def _generate_content(self, prompt: str) -> dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        r = self.session.post(url, headers=self.headers, json=body, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    @staticmethod
    def _extract_text(response: dict[str, Any]) -> str:
        try:
            parts = response["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as exc:
            raise InsightGenerationError("Response does not contain any candidate") from exc
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise InsightGenerationError("Candidate has no text content")
        return text.strip()

    # -------- API callers --------
    def request_insight(self, participants: Sequence[Participant]) -> Insight:
        """Ask the model for an insight and validate the answer.

        Raises
        ------
        requests.RequestException
            On transport errors or non-2xx answers.
        InsightGenerationError
            If the answer is not a JSON object with the three string fields.
        """
        prompt = PROMPT_TEMPLATE.format(participants=summarize_participants(participants))
        response = self._generate_content(prompt)
        text = self._extract_text(response)
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise InsightGenerationError(f"Model answer is not valid JSON: {exc}") from exc
        return Insight.from_payload(payload)

    def generate_insight(self, participants: Sequence[Participant]) -> Optional[Insight]:
        try:
            return self.request_insight(participants)
        except Exception as exc:
            # Never log the request; it carries the API key header.
            logger.error(f"Gemini insight generation failed: {exc}")
            return None
