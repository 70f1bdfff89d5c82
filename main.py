"""
Entry point for the learner-insights API server.

    uvicorn main:app --port 8100
    python main.py

The same server is available as `insights serve`.
"""
import uvicorn

from config import get_settings
from src.api.main import app

__all__ = ["app"]


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "src.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
