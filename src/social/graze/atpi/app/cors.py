from typing import Dict, Iterable, Optional
from urllib.parse import urlparse

from aiohttp import web

from social.graze.atpi.app.config import SettingsAppKey

EXTENSION_SCHEMES = {"chrome-extension", "moz-extension"}

ALLOWED_DEBUG_HOSTS = {
    "localhost",
    "127.0.0.1",
}


def get_cors_headers(
    origin_value: Optional[str], allowed_origins: Iterable[str], debug: bool
) -> Dict[str, str]:
    """Return appropriate CORS headers based on the request origin."""
    headers = {
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": (
            "Keep-Alive, User-Agent, X-Requested-With, "
            "If-Modified-Since, Cache-Control, Content-Type"
        ),
        "Vary": "Origin",
    }

    if not origin_value:
        return headers

    parsed = urlparse(origin_value)
    if parsed.scheme in EXTENSION_SCHEMES:
        base = origin_value.rstrip("/")
    elif parsed.scheme and parsed.hostname:
        base = f"{parsed.scheme}://{parsed.hostname}"
    else:
        base = origin_value

    if base in set(allowed_origins):
        headers["Access-Control-Allow-Origin"] = origin_value
    elif debug and parsed.hostname in ALLOWED_DEBUG_HOSTS:
        headers["Access-Control-Allow-Origin"] = origin_value

    return headers


@web.middleware
async def cors_middleware(request: web.Request, handler):
    settings = request.app[SettingsAppKey]
    headers = get_cors_headers(
        request.headers.get("Origin"), settings.allowed_origins, settings.debug
    )

    if request.method == "OPTIONS":
        return web.Response(status=204, headers=headers)

    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(headers)
        raise
    response.headers.update(headers)
    return response
