import asyncio
import contextlib
import logging
from time import time
from typing import Callable, Optional

import aiohttp
from aiohttp import web
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from social.graze.atpi.app.config import (
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ModePreferenceAppKey,
    ResolverAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    TickHealthTaskAppKey,
)
from social.graze.atpi.app.cors import cors_middleware
from social.graze.atpi.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
)
from social.graze.atpi.app.handlers.resolve import (
    handle_clear_caches,
    handle_get_mode,
    handle_resolve,
    handle_set_mode,
)
from social.graze.atpi.app.tasks import tick_health_task
from social.graze.atpi.metrics import (
    MetricsClient,
    TelegrafCompatibilityClient,
    create_metrics_client,
)
from social.graze.atpi.model.health import HealthGauge
from social.graze.atpi.model.preference import ModeListener, ModePreference
from social.graze.atpi.resolve.resolver import (
    AtpiResolver,
    ResolutionMode,
    create_resolver,
)

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[aiohttp.ClientSession, Settings, MetricsClient], AtpiResolver]


def resolver_from_settings(
    session: aiohttp.ClientSession, settings: Settings, metrics_client: MetricsClient
) -> AtpiResolver:
    return create_resolver(
        session,
        plc_hostname=settings.plc_hostname,
        remote_base_url=settings.remote_base_url,
        dns_timeout=settings.dns_timeout,
        wellknown_timeout=settings.wellknown_timeout,
        xrpc_timeout=settings.xrpc_timeout,
        request_timeout=settings.request_timeout,
        resolve_timeout=settings.resolve_timeout,
        cache_ttl=settings.cache_ttl,
        cache_max_entries=settings.cache_max_entries,
        direct_xrpc_suffixes=settings.direct_xrpc_suffixes,
        metrics=metrics_client,
    )


def record_mode_change(metrics_client: MetricsClient) -> ModeListener:
    def on_mode_change(mode: ResolutionMode) -> None:
        metrics_client.increment("atpi.mode.changed", 1, tag_dict={"mode": mode.value})

    return on_mode_change


def make_background_tasks(resolver_factory: ResolverFactory):
    async def background_tasks(app):
        logger.info("Starting up")
        settings: Settings = app[SettingsAppKey]

        trace_config = aiohttp.TraceConfig()

        if settings.debug:

            async def on_request_start(
                session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
            ):
                logging.info("Starting request: %s %s", params.method, params.url)

            async def on_request_end(
                session, trace_config_ctx, params: aiohttp.TraceRequestEndParams
            ):
                logging.info(
                    "Ending request: %s %s %s",
                    params.method,
                    params.url,
                    params.response.status,
                )

            trace_config.on_request_start.append(on_request_start)
            trace_config.on_request_end.append(on_request_end)

        app[SessionAppKey] = aiohttp.ClientSession(trace_configs=[trace_config])

        metrics_client = create_metrics_client(
            settings.metrics_backend,
            host=settings.statsd_host,
            port=settings.statsd_port,
            debug=settings.debug,
        )
        if isinstance(metrics_client, TelegrafCompatibilityClient):
            await metrics_client.connect()
        app[MetricsClientAppKey] = metrics_client
        app[ModePreferenceAppKey].subscribe(record_mode_change(metrics_client))

        app[ResolverAppKey] = resolver_factory(
            app[SessionAppKey], settings, metrics_client
        )

        logger.info("Startup complete")

        app[TickHealthTaskAppKey] = asyncio.create_task(tick_health_task(app))

        yield

        logger.info("Shutting down background tasks")

        app[TickHealthTaskAppKey].cancel()

        with contextlib.suppress(asyncio.exceptions.CancelledError):
            await app[TickHealthTaskAppKey]

        await app[SessionAppKey].close()
        await app[MetricsClientAppKey].close()

    return background_tasks


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        await request.app[HealthGaugeAppKey].record_error(e)
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    request_path = request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            "atpi.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "atpi.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "atpi.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


async def start_web_server(
    settings: Optional[Settings] = None,
    resolver_factory: ResolverFactory = resolver_from_settings,
):

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=False,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(
        middlewares=[cors_middleware, statsd_middleware, sentry_middleware]
    )

    app[SettingsAppKey] = settings
    app[HealthGaugeAppKey] = HealthGauge()
    app[ModePreferenceAppKey] = ModePreference(settings.default_mode)

    app.add_routes([web.get("/resolve", handle_resolve)])

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
            web.get("/internal/api/mode", handle_get_mode),
            web.post("/internal/api/mode", handle_set_mode),
            web.post("/internal/api/clear_caches", handle_clear_caches),
        ]
    )

    app.cleanup_ctx.append(make_background_tasks(resolver_factory))

    return app
