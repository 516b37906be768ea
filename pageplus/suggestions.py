"""Starter prompts for the page the user is looking at."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, ValidationError

from pageplus.config import ResponseLanguage
from pageplus.protocols.providers import AiProvider
from pageplus.providers.base import LANGUAGE_NAMES, extract_json_object

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3


class PageSuggestion(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    prompt: str = Field(min_length=1)


class PageSuggestionsResponse(BaseModel):
    suggestions: list[PageSuggestion] = Field(min_length=1)


GENERIC_PAGE_SUGGESTIONS: dict[str, tuple[PageSuggestion, ...]] = {
    "en": (
        PageSuggestion(
            title="Summarize this page",
            description="Get a clear overview of the page’s purpose, audience, and key points.",
            prompt=(
                "Provide a concise summary with: purpose, audience, 5 bullet highlights, "
                "and a one-sentence TL;DR."
            ),
        ),
        PageSuggestion(
            title="Key takeaways",
            description="See the most important facts, dates, numbers, and calls to action.",
            prompt=(
                "List the top 5–7 takeaways with brief notes on why they matter. "
                "Include any deadlines, prices, or requirements."
            ),
        ),
        PageSuggestion(
            title="Explain in simple terms",
            description="Turn jargon into plain language and define acronyms.",
            prompt=(
                "Rewrite the page’s main points in simple language. Define acronyms and terms. "
                "Provide 3–5 short bullets."
            ),
        ),
    ),
    "es": (
        PageSuggestion(
            title="Resumir esta página",
            description="Obtén una visión clara del propósito, público y puntos clave de la página.",
            prompt=(
                "Proporciona un resumen conciso que incluya: propósito, público, "
                "5 puntos destacados y una frase final (TL;DR)."
            ),
        ),
        PageSuggestion(
            title="Puntos clave",
            description="Consulta los hechos, fechas, cifras y llamados a la acción más importantes.",
            prompt=(
                "Enumera los 5–7 puntos más importantes con una breve explicación de por qué son "
                "relevantes. Incluye plazos, precios o requisitos si los hay."
            ),
        ),
        PageSuggestion(
            title="Explicar en términos simples",
            description="Convierte el lenguaje técnico en lenguaje claro y define los acrónimos.",
            prompt=(
                "Reescribe los puntos principales de la página en lenguaje sencillo. "
                "Define los acrónimos y términos. Proporciona de 3 a 5 viñetas cortas."
            ),
        ),
    ),
    "ja": (
        PageSuggestion(
            title="このページを要約する",
            description="ページの目的、対象読者、重要なポイントを明確に把握します。",
            prompt="次の内容を含む簡潔な要約を作成してください：目的、対象読者、5つの重要ポイント、そして1文のまとめ（TL;DR）。",
        ),
        PageSuggestion(
            title="重要なポイント",
            description="最も重要な事実、日付、数値、行動項目を確認します。",
            prompt="最も重要な5～7項目を挙げ、それぞれの重要性を簡単に説明してください。締め切り、価格、要件などがあれば含めてください。",
        ),
        PageSuggestion(
            title="わかりやすく説明する",
            description="専門用語をやさしい言葉に言い換え、略語を定義します。",
            prompt="ページの主な内容を簡単な言葉で書き直してください。略語や専門用語を定義し、3〜5個の短い箇条書きを示してください。",
        ),
    ),
}


def fallback_suggestions(language: ResponseLanguage | str) -> PageSuggestionsResponse:
    entries = GENERIC_PAGE_SUGGESTIONS.get(language, GENERIC_PAGE_SUGGESTIONS["en"])
    return PageSuggestionsResponse(suggestions=list(entries))


def build_suggestions_prompt(url: str, content: str, language: ResponseLanguage | str) -> str:
    language_name = LANGUAGE_NAMES.get(language, LANGUAGE_NAMES["en"])
    return (
        "You are an expert browser assistant. "
        f"You are assisting a user who is currently on the page {url}.\n\n"
        f"Page Content: {content}\n\n"
        "Based on this page content, provide 2-3 suggestions that the user may want to know about "
        "the page. Each suggestion should be practical and helpful for understanding the page content.\n\n"
        "I want the response in the format:\n\n"
        "{\n"
        "    suggestions: [\n"
        "        {\n"
        "            title: string,\n"
        "            description: string,\n"
        "            prompt: string,\n"
        "        }\n"
        "    ]\n"
        "}\n\n"
        "title, description and prompt string values must all be in the language: "
        f"{language_name} ({str(language).upper()}).\n\n"
        "where title and description will be displayed to the user and prompt will be the actual "
        "prompt that the system will use along with the page context to execute this suggestion."
    )


def parse_suggestions(text: str) -> PageSuggestionsResponse:
    """Validate a model answer; raises ``ValueError`` when it is unusable."""
    payload = extract_json_object(text)
    parsed = PageSuggestionsResponse.model_validate(payload)
    return PageSuggestionsResponse(suggestions=parsed.suggestions[:MAX_SUGGESTIONS])


async def generate_page_suggestions(
    provider: AiProvider,
    url: str,
    content: str,
    language: ResponseLanguage | str = "en",
) -> PageSuggestionsResponse:
    try:
        if not provider.session.is_active:
            await provider.initialize_session()
        answer = await provider.execute_prompt(build_suggestions_prompt(url, content, language), [])
        return parse_suggestions(answer)
    except (ValueError, ValidationError) as exc:
        logger.warning("unusable page suggestions for %s: %s", url, exc)
    except Exception:
        logger.error("failed to generate page suggestions for %s", url, exc_info=True)
    return fallback_suggestions(language)


__all__ = [
    "GENERIC_PAGE_SUGGESTIONS",
    "PageSuggestion",
    "PageSuggestionsResponse",
    "build_suggestions_prompt",
    "fallback_suggestions",
    "generate_page_suggestions",
    "parse_suggestions",
]
