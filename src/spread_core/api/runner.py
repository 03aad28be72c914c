#!/usr/bin/env python3
"""FastAPI server runner."""

import uvicorn
import structlog

from spread_core.api.app import app, config
from spread_core.logging.setup import setup_logging

logger = structlog.get_logger()


def main(host: str = "0.0.0.0", port: int = 8000):
    """Serve the settlement API. Config comes from $SPREAD_CONFIG and SPREAD_* overrides."""
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    logger.info(
        "settlement_api_starting",
        host=host,
        port=port,
        grading_enabled=config.grading.enabled,
    )
    # log_config=None keeps uvicorn on the structlog handler
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
