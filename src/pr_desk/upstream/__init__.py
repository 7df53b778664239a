"""
pr_desk.upstream

HTTP client boundary for third-party providers (LLM, news search).

Responsibilities:
- Keep provider URLs, credentials and timeouts out of routers/services.
- Translate provider failures into `ExternalServiceError`.
"""

# Package marker.
