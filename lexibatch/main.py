"""ASGI entrypoint for the translation job API."""

import uvicorn

from lexibatch.core.app import create_app
from lexibatch.core.config import get_settings

app = create_app()


def run() -> None:
    """Serve the API with uvicorn (`lexibatch-api`)."""
    settings = get_settings()
    uvicorn.run(
        "lexibatch.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
