"""
Service State

This package holds the small pieces of in-process state owned by the ATPI web service. Nothing here is persisted:
the service keeps no on-disk store and everything is rebuilt at startup from settings.

Key Models:
- health.py: Health gauge backing the readiness endpoint
- preference.py: The resolution mode preference used when a request does not name a mode
"""
