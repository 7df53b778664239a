"""
pr_desk.api

API package for the PR Desk service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring and error normalization.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Routers stay thin: pipeline dependencies + access checks + repository calls.
