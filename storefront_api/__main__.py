"""Entry point for python -m storefront_api."""

import uvicorn

from .api import app
from .config import settings


def main() -> None:
    """Run the storefront API server."""
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=int(settings.shutdown_drain_seconds),
    )


if __name__ == "__main__":
    main()
