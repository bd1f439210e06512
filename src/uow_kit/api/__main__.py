"""
uow_kit.api.__main__

Entrypoint for running the blog API via `python -m uow_kit.api`.

Responsibilities:
- Load settings.
- Create the app.
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from uow_kit.api.app import create_app
from uow_kit.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
