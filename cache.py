from __future__ import annotations

from flask_caching import Cache

# Shared Cache instance. Initialized in app factory via cache.init_app(app, config=...).
# NullCache in development so edited example files show up on the next render.
cache: Cache = Cache()
