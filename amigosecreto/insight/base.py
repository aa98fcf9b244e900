"""Capability interface of the optional insight generator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence

from ..errors import InsightGenerationError
from ..models.participant import Participant

INSIGHT_FIELDS = ("summary", "funnyFact", "recommendation")


@dataclass(frozen=True)
class Insight:
    """Narrative commentary about the group; purely decorative."""

    summary: str
    funny_fact: str
    recommendation: str

    @classmethod
    def from_payload(cls, payload: object) -> "Insight":
        """Validate a decoded service payload.

        Raises
        ------
        InsightGenerationError
            If the payload is not an object or a field is missing or not a string.
        """
        if not isinstance(payload, Mapping):
            raise InsightGenerationError(f"Expected a JSON object, got {type(payload).__name__}")
        for field in INSIGHT_FIELDS:
            if not isinstance(payload.get(field), str):
                raise InsightGenerationError(f"Field '{field}' is missing or not a string")
        return cls(
            summary=payload["summary"],
            funny_fact=payload["funnyFact"],
            recommendation=payload["recommendation"],
        )


class InsightGenerator(Protocol):
    def generate_insight(self, participants: Sequence[Participant]) -> Optional[Insight]:
        """Return an insight for ``participants`` or ``None``; never raises."""
        ...


class NullInsightGenerator:
    """Generator used when no API credential is configured."""

    def generate_insight(self, participants: Sequence[Participant]) -> Optional[Insight]:
        return None


__all__ = ["INSIGHT_FIELDS", "Insight", "InsightGenerator", "NullInsightGenerator"]
