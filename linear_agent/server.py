"""Entry point for running the webhook service with uvicorn."""

import logging

import uvicorn

from .config import load_settings


def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info(
        "Starting %s on port %s", settings.agent_name, settings.port
    )
    uvicorn.run(
        "linear_agent.webapp:app",
        host="0.0.0.0",  # noqa: S104
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
