"""
pr_desk.services.ai

AI-assisted PR operations (trend analysis, ideas, headlines, press releases).

Responsibilities:
- Build the prompts from validated request data.
- Call the LLM client and check the reply has the expected shape.
"""

from __future__ import annotations

from typing import Any

from pr_desk.errors import ExternalServiceError
from pr_desk.upstream.openai_http import OpenAIClient

_JSON_ONLY = "Respond with ONLY valid JSON. No explanations, no markdown."

HEADLINE_STYLES: dict[str, str] = {
    "the-sun": "punchy, sensational tabloid headlines with bold claims",
    "bbc-news": "authoritative, factual headlines focused on key facts",
    "guardian": "thoughtful, analytical headlines with context",
    "telegraph": "traditional, conservative headlines focused on business and politics",
    "daily-mail": "dramatic, emotional headlines focused on reader impact",
    "financial-times": "business-focused headlines emphasising economic impact and data",
    "buzzfeed": "social-media-friendly headlines with numbers and hooks",
    "mixed": "a variety of styles from tabloid to broadsheet",
}


def _client_context(client: dict[str, Any] | None) -> str:
    if not client:
        return ""
    return (
        f"Client: {client.get('name')} ({client.get('industry') or 'general'}). "
        f"Tone of voice: {client.get('toneOfVoice') or 'professional'}. "
        f"Business focus: {client.get('spheres') or 'general business'}."
    )


def _require_list(value: Any, what: str) -> list[Any]:
    if isinstance(value, dict) and isinstance(value.get(what), list):
        return value[what]
    if isinstance(value, list):
        return value
    raise ExternalServiceError(f"LLM reply for {what} is not a list")


class AiService:
    def __init__(self, llm: OpenAIClient) -> None:
        self._llm = llm

    async def analyze_trends(self, *, keyword: str, articles: list[dict[str, Any]]) -> list[Any]:
        articles_text = "\n\n".join(
            f"Title: {a.get('title')}\nDescription: {a.get('description')}\n"
            f"Published: {a.get('publishedAt')}"
            for a in articles
        )
        prompt = (
            f'Analyze the following news articles related to "{keyword}" and identify '
            "3-5 emerging trends supported by the articles. For each trend give "
            '"title", "description", "impact" and "relevanceScore" (1-10).\n\n'
            f"Articles:\n{articles_text}\n\nReturn a JSON array."
        )
        reply = await self._llm.complete_json(
            system=f"You are a market research analyst. {_JSON_ONLY}", prompt=prompt
        )
        return _require_list(reply, "trends")

    async def generate_ideas(self, *, context: str, campaign_type: str) -> list[Any]:
        prompt = (
            "Generate 5 creative ideas for a Digital PR campaign based on this context: "
            f"{context}. The campaign type is: {campaign_type}. Return a JSON array of "
            'objects with "headline" and "summary".'
        )
        reply = await self._llm.complete_json(
            system=f"You are a Digital PR strategist. {_JSON_ONLY}",
            prompt=prompt,
            max_tokens=1000,
            temperature=1.0,
        )
        return _require_list(reply, "ideas")

    async def generate_headlines(
        self,
        *,
        story_angle: str,
        headline_style: str,
        client: dict[str, Any] | None,
    ) -> list[dict[str, Any]]:
        style = HEADLINE_STYLES.get(headline_style, HEADLINE_STYLES["mixed"])
        prompt = (
            f'Generate 8 compelling headlines for this story angle: "{story_angle}".\n'
            f"Style focus: {style}.\n{_client_context(client)}\n"
            'Return a JSON object with a "headlines" array; each item has "text", '
            '"style", "strength" (7.0-9.5) and "appeal".'
        )
        reply = await self._llm.complete_json(
            system=f"You are a tabloid and broadsheet sub-editor. {_JSON_ONLY}", prompt=prompt
        )
        headlines = _require_list(reply, "headlines")
        return [
            {**h, "id": i + 1} if isinstance(h, dict) else {"id": i + 1, "text": str(h)}
            for i, h in enumerate(headlines)
        ]

    async def generate_press_release(
        self,
        *,
        headline: str,
        summary: str,
        campaign_type: str | None,
        sources: list[str],
        client: dict[str, Any] | None,
        current_date: str,
    ) -> str:
        sources_text = "\n".join(f"- {s}" for s in sources) or "- none provided"
        prompt = (
            "Write a full-length (400-600 words) professional press release suitable "
            f"for media distribution.\n\nCURRENT DATE: {current_date}\n"
            f"Headline: {headline}\nSummary: {summary}\n"
            f"Campaign type: {campaign_type or 'general'}\n{_client_context(client)}\n"
            f"Sources:\n{sources_text}"
        )
        return await self._llm.complete(
            system="You are a senior Digital PR copywriter.",
            prompt=prompt,
            max_tokens=3000,
        )
