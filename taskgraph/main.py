"""
Task Graph Service - REST API for task dependencies and hierarchy.

Main entry point. All initialization logic is in app/factory.py.
"""
import logging

import uvicorn

from taskgraph import config
from taskgraph.app.factory import create_app

logger = logging.getLogger(__name__)

app = create_app()


def main() -> None:
    """Run the service with uvicorn."""
    server_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=config.SERVICE_PORT,
        log_level=config.LOG_LEVEL.lower(),
        access_log=True,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
    server = uvicorn.Server(server_config)
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()
