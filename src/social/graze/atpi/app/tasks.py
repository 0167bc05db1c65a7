import asyncio
import logging
from typing import NoReturn

from aiohttp import web

from social.graze.atpi.app.config import HealthGaugeAppKey, MetricsClientAppKey

logger = logging.getLogger(__name__)

HEALTH_TICK_INTERVAL = 30


async def tick_health_task(app: web.Application) -> NoReturn:
    """
    Tick the health gauge every 30 seconds, reducing the error count by 1 each time and reporting what remains.
    """

    logger.info("Starting health gauge task")

    health_gauge = app[HealthGaugeAppKey]
    metrics_client = app[MetricsClientAppKey]
    while True:
        value = await health_gauge.tick()
        metrics_client.gauge("atpi.health.gauge", value)
        await asyncio.sleep(HEALTH_TICK_INTERVAL)
