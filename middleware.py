"""Ordered request pipeline for the prototype server.

The chain is plain data: a tuple of named stages, composed once from the
runtime configuration and installed on the Flask app in list order. Each
stage may carry

* ``setup``  - called with the app at install time (wrap wsgi_app, set the
  session interface, register blueprints)
* ``before`` - a ``before_request`` hook; returning a response stops the
  request there
* ``after``  - an ``after_request`` hook
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, NamedTuple, Optional, Tuple

from flask import Flask, Response, redirect, request
from werkzeug.middleware.proxy_fix import ProxyFix

from errors import AuthenticationFailure
from sessions import CacheSessionInterface, make_session_store
from settings import RuntimeConfig
from utils.auth import basic_auth, handle_auth_failure

log = logging.getLogger(__name__)

ROBOTS_ALLOW = "User-agent: *\nAllow: /"
ROBOTS_DISALLOW = "User-agent: *\nDisallow: /"


class Stage(NamedTuple):
    name: str
    before: Optional[Callable] = None
    after: Optional[Callable] = None
    setup: Optional[Callable[[Flask], None]] = None


class MiddlewareChain:
    def __init__(self, stages: Iterable[Stage]):
        self.stages: Tuple[Stage, ...] = tuple(stages)

    def names(self) -> list[str]:
        return [s.name for s in self.stages]

    def __iter__(self):
        return iter(self.stages)

    def __len__(self) -> int:
        return len(self.stages)

    def __contains__(self, name: object) -> bool:
        return name in self.names()

    def install(self, app: Flask) -> Flask:
        app.register_error_handler(AuthenticationFailure, handle_auth_failure)
        for stage in self.stages:
            if stage.setup:
                stage.setup(app)
            if stage.before:
                app.before_request(stage.before)
            if stage.after:
                app.after_request(stage.after)
        app.config["MIDDLEWARE_STAGES"] = self.names()
        log.debug("Installed middleware: %s", " -> ".join(self.names()))
        return app


# ----------------- Stages -----------------

def _trust_proxy(app: Flask) -> None:
    # One hop (Heroku-style router) so X-Forwarded-Proto marks TLS requests secure
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)


def _redirect_to_https():
    if request.is_secure:
        return None
    url = request.url.replace("http://", "https://", 1)
    return redirect(url, code=302)


def _robots(body: str) -> Callable:
    def serve_robots():
        if request.path == "/robots.txt" and request.method in ("GET", "HEAD"):
            return Response(body, mimetype="text/plain")
        return None
    return serve_robots


def _noindex_header(response: Response) -> Response:
    # Stops pages being indexed even if indexed pages link to them
    response.headers["X-Robots-Tag"] = "noindex"
    return response


def force_https_stage() -> Stage:
    return Stage("force_https", before=_redirect_to_https, setup=_trust_proxy)


def basic_auth_stage(config: RuntimeConfig) -> Stage:
    return Stage("basic_auth", before=basic_auth(config.username, config.password))


def indexing_stage(allow: bool) -> Stage:
    if allow:
        return Stage("allow_indexing", before=_robots(ROBOTS_ALLOW))
    return Stage("prevent_indexing", before=_robots(ROBOTS_DISALLOW), after=_noindex_header)


def session_stage(store=None, cookie_name: Optional[str] = None) -> Stage:
    interface = CacheSessionInterface(store if store is not None else make_session_store(), cookie_name)

    def setup(app: Flask) -> None:
        app.session_interface = interface

    return Stage("session", setup=setup)


def compose(config: RuntimeConfig, session_store=None, extra: Iterable[Stage] = ()) -> MiddlewareChain:
    """Build the ordered middleware chain for ``config``.

    HTTPS redirect comes before auth so credentials are never requested
    over plain http. ``extra`` stages (static mounts, views) are appended
    last so the policies above apply to them too.
    """
    stages = []
    deployed = config.is_deployed

    if deployed and config.force_https:
        stages.append(force_https_stage())

    if deployed and config.require_auth:
        stages.append(basic_auth_stage(config))

    stages.append(indexing_stage(allow=deployed and not config.require_auth))
    stages.append(session_stage(session_store))
    stages.extend(extra)
    return MiddlewareChain(stages)
