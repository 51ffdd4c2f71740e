"""
Memora Hub - Main entry point.

    uvicorn memora.main:app --reload
or
    memora-api
"""

from __future__ import annotations

import uvicorn

from memora.api.app import create_app
from memora.config import get_settings

app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "memora.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug and not settings.is_production,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
