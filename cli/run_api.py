#!/usr/bin/env python3
"""
Script to run the cookie preference service.

Usage:
    python -m cli.run_api
"""

import logging
import sys

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from core.config import init_config

try:
    config = init_config()

    logging.basicConfig(
        level=getattr(logging, config.monitoring.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger = logging.getLogger(__name__)
    logger.info("Configuration initialized successfully")

except Exception as e:
    print(f"Failed to initialize configuration: {e}")
    print("\nCheck the PREFERENCE_STORE_*, API_* and CONSENT_* environment variables")
    print("or the values in your .env file.")
    sys.exit(1)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting preference service on {config.api.host}:{config.api.port}")

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=config.api.host,
        port=config.api.port,
        reload=config.api.reload,
        workers=1 if config.api.reload else config.api.workers,
        log_level=config.monitoring.log_level.lower()
    )
