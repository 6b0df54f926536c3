from __future__ import annotations

import asyncio
import logging

from layered_config import LayeredConfigLoader
from layered_config.logging import init_logging
from layered_config.models import ConfigLoadRequest


async def main() -> None:
    config = await LayeredConfigLoader().load(ConfigLoadRequest(file_path="examples/application.yaml"))
    init_logging(config.logging)

    logger = logging.getLogger("smoke")
    logger.info("Config loaded server=%s:%s", config.server.host, config.server.port)
    logger.info("Redis mode=%s cluster=%s", config.redis.mode.value, config.redis.is_cluster())
    logger.info("Logging level=%s", config.logging.level.value)


if __name__ == "__main__":
    asyncio.run(main())
