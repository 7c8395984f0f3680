"""Точка входа для запуска воркера рассылки новостей."""
import asyncio
import sys

from schoolbot.broadcast_worker import main
from schoolbot.utils.logger import setup_logging, get_logger

logger = get_logger(__name__)


if __name__ == "__main__":
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("broadcast_worker_interrupted")
        sys.exit(0)
