from __future__ import annotations

from typing import Any

import httpx

from pr_desk.errors import ConfigurationError, ExternalServiceError
from pr_desk.settings import Settings

SUPPORTED_COUNTRIES = ("au", "us", "gb")
DEFAULT_COUNTRY = "au"


class NewsClient:
    """
    GNews search client; returns articles normalized to the shape the UI expects.
    """

    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    async def search(self, *, keyword: str, country: str = DEFAULT_COUNTRY, limit: int = 10):
        if not self._settings.gnews_api_key:
            raise ConfigurationError("gnews_api_key is not configured")
        if country not in SUPPORTED_COUNTRIES:
            country = DEFAULT_COUNTRY

        try:
            r = await self._http.get(
                f"{self._settings.gnews_base_url.rstrip('/')}/search",
                params={
                    "q": keyword,
                    "lang": "en",
                    "country": country,
                    "max": limit,
                    "apikey": self._settings.gnews_api_key,
                },
                timeout=self._settings.outbound_timeout_seconds,
            )
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPError as e:
            # The exception text carries the request URL, which includes the key.
            raise ExternalServiceError(f"news API call failed: {type(e).__name__}") from None
        except ValueError:
            raise ExternalServiceError("news API returned a non-JSON body") from None

        articles = data.get("articles") if isinstance(data, dict) else None
        if not isinstance(articles, list):
            raise ExternalServiceError("unexpected news API response shape")
        return [_normalize(a) for a in articles if isinstance(a, dict)]


def _normalize(article: dict[str, Any]) -> dict[str, Any]:
    return {
        "title": article.get("title"),
        "description": article.get("description"),
        "publishedAt": article.get("publishedAt"),
        "source": {"name": (article.get("source") or {}).get("name")},
        "url": article.get("url"),
        "image": article.get("image"),
    }
