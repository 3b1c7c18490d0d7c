"""
FastAPI Production Application

Main entry point for the Resale Books API.
"""

from resalebooks.config import get_settings
from resalebooks.serving.api import create_api_app

settings = get_settings()

app = create_api_app()


def run() -> None:
    """Console entry point: serve ``app`` with uvicorn."""
    import uvicorn

    uvicorn.run(
        "resalebooks.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.monitoring.log_level.lower(),
    )


if __name__ == "__main__":
    run()
