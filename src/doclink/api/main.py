"""doclink API entry point.

``doclink.api.main:app`` is the ASGI application for uvicorn; ``run()`` is
the ``doclink-api`` console script.
"""

import logging

from doclink.api import create_app

logger = logging.getLogger(__name__)

app = create_app()


def run() -> None:
    """Configure logging and serve the API with uvicorn."""
    import uvicorn

    from doclink.core.settings import get_settings

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info("Starting doclink API on %s:%d", settings.api_host, settings.api_port)

    uvicorn.run(
        "doclink.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
