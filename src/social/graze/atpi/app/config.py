"""
Configuration Module for the ATPI Service

This module defines the configuration system for the ATPI web service, using Pydantic for settings validation and
dependency injection through AppKeys.

The configuration follows these principles:
1. Environment-based configuration with sensible defaults
2. Strong validation and typing through Pydantic
3. Dependency injection pattern using aiohttp's app context
4. Configuration is read once at startup and threaded into components at construction

The Settings class is the central configuration point. The only value that can change while the service runs is
the resolution mode preference, which lives in its own ModePreference cell rather than in Settings.

Key configuration areas include:
- Service networking and CORS
- Resolution endpoints, timeouts and caching
- Monitoring and error reporting
"""

import asyncio
from typing import Annotated, Final, List, Optional
import logging
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode
from aiohttp import web
from aiohttp import ClientSession

from social.graze.atpi.metrics import MetricsClient
from social.graze.atpi.model.health import HealthGauge
from social.graze.atpi.model.preference import ModePreference
from social.graze.atpi.resolve.resolver import AtpiResolver, ResolutionMode


logger = logging.getLogger(__name__)


def split_comma_list(v) -> List[str]:
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return list(v)


class Settings(BaseSettings):
    """
    Application settings for the ATPI service.

    Values are loaded from environment variables, with defaults suitable for running locally. Timeouts are in
    seconds.
    """

    debug: bool = False
    """
    Enable debug mode for verbose logging, HTTP client tracing and localhost CORS.
    Set with DEBUG=true environment variable.
    """

    http_port: int = Field(alias="port", default=5100)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    allowed_origins: Annotated[List[str], NoDecode] = ["https://atpi.at"]
    """
    Origins allowed to call the service from a browser, comma-separated.
    Browser extension origins (chrome-extension://...) go here.
    Set with ALLOWED_ORIGINS environment variable.
    """

    plc_hostname: str = "plc.directory"
    """
    Hostname for the PLC directory service for DID resolution.
    Set with PLC_HOSTNAME environment variable.
    """

    remote_base_url: str = "https://atpi.at"
    """
    Base URL of the remote ATPI aggregation service used by remote and auto modes.
    Set with REMOTE_BASE_URL environment variable.
    """

    default_mode: ResolutionMode = ResolutionMode.local
    """
    Resolution mode used when a request does not name one, until changed at runtime.
    Set with DEFAULT_MODE environment variable (local, remote or auto).
    """

    dns_timeout: float = 3.0
    """Per-provider timeout for DNS-over-HTTPS queries."""

    wellknown_timeout: float = 3.0
    """Timeout for the HTTPS well-known handle lookup."""

    xrpc_timeout: float = 5.0
    """Per-host timeout for directory (XRPC) handle lookups."""

    request_timeout: float = 10.0
    """Timeout for DID directory lookups, record fetches and remote resolution."""

    resolve_timeout: float = 30.0
    """Upper bound for a whole local resolution, across every step and fallback."""

    cache_ttl: float = 300.0
    """Lifetime of cached handle and DID resolutions (5 minutes)."""

    cache_max_entries: int = 1000
    """Entry ceiling of each resolution cache before the oldest 20% are evicted."""

    direct_xrpc_suffixes: Annotated[List[str], NoDecode] = [".bsky.social"]
    """
    Handle suffixes resolved through the directory only, skipping DNS and well-known lookups.
    Set with DIRECT_XRPC_SUFFIXES environment variable as comma-separated values; empty disables it.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    metrics_backend: str = "telegraf"
    """
    Metrics backend, 'telegraf' or 'none'.
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    @field_validator("allowed_origins", "direct_xrpc_suffixes", mode="before")
    @classmethod
    def decode_comma_list(cls, v) -> List[str]:
        """
        Accept either a list or a comma-separated string.

        Raises:
            ValueError: If the input is neither a string nor an iterable of strings
        """
        if isinstance(v, (str, list, tuple)):
            return split_comma_list(v)
        raise ValueError("value must be a list or a comma-separated string")


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

ResolverAppKey: Final = web.AppKey("resolver", AtpiResolver)
"""AppKey for accessing the AT-URL resolver and its caches"""

ModePreferenceAppKey: Final = web.AppKey("mode_preference", ModePreference)
"""AppKey for accessing the live resolution mode preference"""

HealthGaugeAppKey: Final = web.AppKey("health_gauge", HealthGauge)
"""AppKey for accessing the health monitoring gauge"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for the metrics client"""

TickHealthTaskAppKey: Final = web.AppKey("tick_health_task", asyncio.Task[None])
"""AppKey for the background task that monitors service health"""
