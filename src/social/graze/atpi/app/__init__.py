"""
ATPI Application Layer

This package implements the web service in front of the resolution engine, using the aiohttp framework. The
browser extension's background process calls it instead of embedding the engine itself.

Key Components:
- cli.py: Entry point for running the application
- server.py: Web server configuration, middleware and startup/shutdown
- config.py: Configuration management using Pydantic settings
- handlers/: Request handlers for resolution and internal endpoints
- tasks.py: Background task keeping the health gauge decaying
- cors.py: CORS handling for browser and extension origins

The application uses several middleware layers:
- CORS middleware for cross-origin and extension requests
- Statsd middleware for metrics collection
- Sentry middleware for error reporting

It provides the following endpoints:
- GET /resolve?url=at://...&mode=local|remote|auto
- GET and POST /internal/api/mode for the resolution mode preference
- POST /internal/api/clear_caches to drop all cached resolutions
- GET /internal/alive and /internal/ready health checks
"""
