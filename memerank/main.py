"""Application entry point for the meme recommendation API server."""

import sys

import uvicorn

from memerank.utils.config import config, settings
from memerank.utils.environment import check_environment
from memerank.utils.exceptions import ConfigurationError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)


def main() -> None:
    """Start the uvicorn server with configuration from config.yaml.

    Exits with status 1 before binding if the environment is invalid.
    """
    try:
        check_environment(settings)
    except ConfigurationError as e:
        logger.error("Configuration error: %s %s", e.message, e.details)
        sys.exit(1)

    uvicorn.run(
        "memerank.api.app:app",
        host=config["api"]["host"],
        port=int(config["api"]["port"]),
        reload=False,
    )


if __name__ == "__main__":
    main()
