"""
pr_desk.api.__main__

Entrypoint for running the FastAPI application via `python -m pr_desk.api`.

Responsibilities:
- Load settings.
- Create the app.
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from pr_desk.api.app import create_app
from pr_desk.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
