"""
pr_desk.upstream.openai_http

Chat-completions client used by the AI endpoints.

Responsibilities:
- Call the provider's chat completions API with an explicit timeout.
- Extract a JSON document from the model reply (raw, fenced, or embedded).
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx

from pr_desk.errors import ConfigurationError, ExternalServiceError
from pr_desk.observability.logging import get_logger
from pr_desk.settings import Settings

log = get_logger(__name__)

_FENCED = re.compile(r"```(?:json)?\s*([\[{][\s\S]*?[\]}])\s*```")
_EMBEDDED = re.compile(r"([\[{][\s\S]*[\]}])")


def extract_json(text: str) -> Any:
    """
    Parse a model reply that should be JSON but may be wrapped in prose or fences.
    """

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    for pattern in (_FENCED, _EMBEDDED):
        match = pattern.search(text)
        if match is None:
            continue
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
    raise ExternalServiceError("model reply did not contain valid JSON")


class OpenAIClient:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    def _authz(self) -> dict[str, str]:
        # Fail closed before any network I/O when the key is missing.
        if not self._settings.openai_api_key:
            raise ConfigurationError("openai_api_key is not configured")
        return {"Authorization": f"Bearer {self._settings.openai_api_key}"}

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        max_tokens: int = 1500,
        temperature: float = 0.7,
        model: str | None = None,
    ) -> str:
        headers = self._authz()
        try:
            r = await self._http.post(
                f"{self._settings.openai_base_url.rstrip('/')}/chat/completions",
                headers=headers,
                json={
                    "model": model or self._settings.openai_model,
                    "messages": [
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                },
                timeout=self._settings.outbound_timeout_seconds,
            )
            r.raise_for_status()
            body = r.json()
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"LLM API call failed: {e}") from e
        except ValueError as e:
            # 200 with a non-JSON body, e.g. an HTML page from a gateway.
            raise ExternalServiceError(f"LLM API returned a non-JSON body: {e}") from e

        try:
            return str(body["choices"][0]["message"]["content"])
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"unexpected LLM API response shape: {e}") from e

    async def complete_json(self, *, system: str, prompt: str, **kwargs: Any) -> Any:
        text = await self.complete(system=system, prompt=prompt, **kwargs)
        log.debug("llm_reply", chars=len(text))
        return extract_json(text)
