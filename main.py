"""
Content cache entry point.

Serves cached upstream collections, the image proxy, cache administration
and the upstream webhook.
"""

import sys

import uvicorn
from loguru import logger

from contentcache.app import create_app
from contentcache.settings import global_settings


def main() -> None:
    """Main function"""
    logger.remove()
    logger.add(sys.stderr, level=global_settings.log_level.upper())

    logger.info("Starting content cache server...")
    app = create_app()
    uvicorn.run(app, host=global_settings.host, port=global_settings.port)


if __name__ == "__main__":
    main()
