from aiohttp import web

from social.graze.atpi.app.config import HealthGaugeAppKey


async def handle_internal_ready(request: web.Request):
    snapshot = await request.app[HealthGaugeAppKey].snapshot()
    return web.json_response(
        snapshot.model_dump(), status=200 if snapshot.healthy else 503
    )


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)
