import json
import logging
from time import time

from aiohttp import web
import sentry_sdk

from social.graze.atpi.app.config import (
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ModePreferenceAppKey,
    ResolverAppKey,
)
from social.graze.atpi.resolve.errors import (
    AtpiError,
    InvalidUrlFormat,
    RecordFetchError,
    ResolutionTimeout,
)
from social.graze.atpi.resolve.resolver import ResolutionMode

logger = logging.getLogger(__name__)


def error_status(error: AtpiError) -> int:
    """Pick the HTTP status used to report a resolution failure."""
    if isinstance(error, InvalidUrlFormat):
        return 400
    elif isinstance(error, ResolutionTimeout):
        return 504
    elif isinstance(error, RecordFetchError) and error.status in (400, 404):
        return 404
    elif isinstance(error, RecordFetchError) and error.status in (401, 403):
        return 403
    return 502


def error_response(error: AtpiError) -> web.Response:
    return web.json_response(
        {"error": error.reason, "error_type": type(error).__name__},
        status=error_status(error),
    )


async def handle_resolve(request: web.Request) -> web.Response:
    url = request.query.get("url", None)
    if url is None or len(url) == 0:
        return web.json_response({"error": "Missing url parameter"}, status=400)

    mode = request.app[ModePreferenceAppKey].resolve_mode(request.query.get("mode"))
    resolver = request.app[ResolverAppKey]
    metrics_client = request.app[MetricsClientAppKey]

    try:
        data = await resolver.resolve(url, mode)
    except AtpiError as e:
        logger.info("Resolution of %s in %s mode failed: %s", url, mode.value, e.reason)
        metrics_client.increment(
            "atpi.api.resolve.error", 1, tag_dict={"error": type(e).__name__}
        )
        return error_response(e)
    except Exception as e:
        logger.exception("Unexpected error resolving %s", url)
        sentry_sdk.capture_exception(e)
        await request.app[HealthGaugeAppKey].record_error(e)
        raise web.HTTPInternalServerError(
            body=json.dumps(
                {"error": "Internal Server Error", "error_type": type(e).__name__}
            ),
            content_type="application/json",
        )

    return web.json_response({"data": data, "mode": mode.value, "timestamp": int(time() * 1000)})


async def handle_get_mode(request: web.Request) -> web.Response:
    return web.json_response({"mode": request.app[ModePreferenceAppKey].get().value})


async def handle_set_mode(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return web.json_response({"error": "Invalid JSON body"}, status=400)

    value = body.get("mode") if isinstance(body, dict) else None
    try:
        mode = ResolutionMode(value)
    except ValueError:
        return web.json_response(
            {"error": f"Unknown mode: {value}", "modes": [m.value for m in ResolutionMode]},
            status=400,
        )

    request.app[ModePreferenceAppKey].set(mode)
    return web.json_response({"mode": mode.value})


async def handle_clear_caches(request: web.Request) -> web.Response:
    request.app[ResolverAppKey].clear_caches()
    request.app[MetricsClientAppKey].increment("atpi.api.clear_caches", 1)
    return web.Response(status=204)
