"""Optional narrative commentary about the participant group."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Insight, InsightGenerator, NullInsightGenerator
from .gemini import GeminiInsightClient

if TYPE_CHECKING:
    from ..config import Settings


def build_insight_generator(settings: "Settings") -> InsightGenerator:
    """Return a Gemini client when a key is configured, otherwise a no-op generator."""
    if not settings.insights_enabled:
        return NullInsightGenerator()
    return GeminiInsightClient(api_key=settings.gemini_api_key, model=settings.gemini_model)


__all__ = [
    "GeminiInsightClient",
    "Insight",
    "InsightGenerator",
    "NullInsightGenerator",
    "build_insight_generator",
]
