"""
pr_desk.api.routers.ai

AI-assisted endpoints and the news search proxy.

Responsibilities:
- Apply the `ai` rate-limit tier (IP then user) to every LLM-backed endpoint.
- Validate request bodies before any provider call is made.
- Delegate prompt building to `services.ai` and provider I/O to `upstream`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx
from fastapi import APIRouter, Depends, Request
from pydantic import ConfigDict, Field

from pr_desk.api.deps import rate_limited, settings_dep
from pr_desk.auth.deps import get_principal
from pr_desk.auth.models import Principal
from pr_desk.observability.logging import get_logger
from pr_desk.security.rate_limit import Tier
from pr_desk.security.validation import ApiModel, sanitize
from pr_desk.services.ai import AiService
from pr_desk.settings import Settings
from pr_desk.upstream.news_http import DEFAULT_COUNTRY, NewsClient
from pr_desk.upstream.openai_http import OpenAIClient

log = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["ai"])


def http_client(request: Request) -> httpx.AsyncClient:
    # One pooled client per app, opened/closed by the lifespan in `api.app`.
    return request.app.state.http  # type: ignore[no-any-return]


def ai_service(
    settings: Settings = Depends(settings_dep),
    http: httpx.AsyncClient = Depends(http_client),
) -> AiService:
    return AiService(OpenAIClient(settings=settings, http=http))


def news_client(
    settings: Settings = Depends(settings_dep),
    http: httpx.AsyncClient = Depends(http_client),
) -> NewsClient:
    return NewsClient(settings=settings, http=http)


class FetchNewsRequest(ApiModel):
    keyword: str = Field(min_length=1, max_length=200)
    country: str = Field(default=DEFAULT_COUNTRY, max_length=10)


class Article(ApiModel):
    # Articles round-trip from the news endpoint; unknown keys are dropped.
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    published_at: str | None = Field(default=None, max_length=100)
    url: str | None = Field(default=None, max_length=2000)


class AnalyzeTrendsRequest(ApiModel):
    keyword: str = Field(min_length=1, max_length=200)
    articles: list[Article] = Field(min_length=1, max_length=50)


class GenerateIdeasRequest(ApiModel):
    context: str = Field(min_length=1, max_length=10000)
    campaign_type: str = Field(min_length=1, max_length=100)


class ClientData(ApiModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1, max_length=200)
    industry: str | None = Field(default=None, max_length=200)
    tone_of_voice: str | None = Field(default=None, max_length=1000)
    spheres: str | None = Field(default=None, max_length=1000)


class GenerateHeadlinesRequest(ApiModel):
    story_angle: str = Field(min_length=1, max_length=2000)
    headline_style: str = Field(default="mixed", max_length=50)
    client_data: ClientData | None = None


class GeneratePressReleaseRequest(ApiModel):
    headline: str = Field(min_length=1, max_length=500)
    summary: str = Field(min_length=1, max_length=5000)
    campaign_type: str | None = Field(default=None, max_length=100)
    sources: list[str] = Field(default_factory=list, max_length=50)
    client_data: ClientData | None = None
    current_date: str | None = Field(default=None, max_length=50)


def _client_dict(client: ClientData | None) -> dict[str, Any] | None:
    return None if client is None else client.model_dump(by_alias=True)


@router.post("/fetch-news", dependencies=rate_limited(Tier.read))
async def fetch_news(
    body: FetchNewsRequest,
    principal: Principal = Depends(get_principal),
    news: NewsClient = Depends(news_client),
) -> dict[str, Any]:
    articles = await news.search(keyword=body.keyword, country=body.country.lower())
    log.info("news_fetched", keyword=body.keyword, count=len(articles))
    return {"articles": articles, "totalArticles": len(articles)}


@router.post("/analyze-trends", dependencies=rate_limited(Tier.ai))
async def analyze_trends(
    body: AnalyzeTrendsRequest,
    principal: Principal = Depends(get_principal),
    ai: AiService = Depends(ai_service),
) -> dict[str, Any]:
    trends = await ai.analyze_trends(
        keyword=body.keyword,
        articles=[a.model_dump(by_alias=True) for a in body.articles],
    )
    return {"trends": sanitize(trends)}


@router.post("/generate-ideas", dependencies=rate_limited(Tier.ai))
async def generate_ideas(
    body: GenerateIdeasRequest,
    principal: Principal = Depends(get_principal),
    ai: AiService = Depends(ai_service),
) -> dict[str, Any]:
    ideas = await ai.generate_ideas(context=body.context, campaign_type=body.campaign_type)
    return {"ideas": sanitize(ideas)}


@router.post("/generate-headlines", dependencies=rate_limited(Tier.ai))
async def generate_headlines(
    body: GenerateHeadlinesRequest,
    principal: Principal = Depends(get_principal),
    ai: AiService = Depends(ai_service),
) -> dict[str, Any]:
    headlines = await ai.generate_headlines(
        story_angle=body.story_angle,
        headline_style=body.headline_style,
        client=_client_dict(body.client_data),
    )
    return {
        "headlines": sanitize(headlines),
        "storyAngle": body.story_angle,
        "style": body.headline_style,
    }


@router.post("/generate-press-release", dependencies=rate_limited(Tier.ai))
async def generate_press_release(
    body: GeneratePressReleaseRequest,
    principal: Principal = Depends(get_principal),
    ai: AiService = Depends(ai_service),
) -> dict[str, Any]:
    current_date = body.current_date or datetime.now(tz=UTC).strftime("%d %B %Y")
    press_release = await ai.generate_press_release(
        headline=body.headline,
        summary=body.summary,
        campaign_type=body.campaign_type,
        sources=body.sources,
        client=_client_dict(body.client_data),
        current_date=current_date,
    )
    return {"pressRelease": press_release}


# --- Module Notes -----------------------------------------------------------
# Model replies are untrusted JSON too: they are sanitized before being returned,
# since the UI may save them back as activity content.
