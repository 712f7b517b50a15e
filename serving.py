from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass
from http.cookiejar import DefaultCookiePolicy
from typing import Iterable, Optional
from urllib.parse import quote

import requests
from flask import Flask
from livereload import Server
from werkzeug.serving import BaseWSGIServer, get_sockaddr, make_server, select_address_family
from werkzeug.wrappers import Request, Response

from errors import BindError, ConfigurationError
from settings import RuntimeConfig

log = logging.getLogger(__name__)

DIRECT = "direct"
PROXIED = "proxied"

DEFAULT_HOST = "0.0.0.0"
PROXY_PORT_OFFSET = 50
WATCH_PATTERNS = ("public/**/*.*", "app/views/**/*.*")

# Headers that describe a single connection and must not be forwarded
HOP_BY_HOP = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


@dataclass(frozen=True)
class ServeBinding:
    mode: str
    port: Optional[int] = None
    app_port: Optional[int] = None
    public_port: Optional[int] = None

    @property
    def url_port(self) -> int:
        return self.port if self.mode == DIRECT else self.public_port


def select_binding(config: RuntimeConfig, resolved_port: int) -> ServeBinding:
    """Direct listen when deployed or live reload is off, proxied otherwise."""
    if config.is_deployed or not config.live_reload_enabled:
        return ServeBinding(DIRECT, port=resolved_port)

    app_port = resolved_port - PROXY_PORT_OFFSET
    if app_port <= 0:
        raise ConfigurationError(
            f"Port {resolved_port} leaves no room for the app port "
            f"({resolved_port} - {PROXY_PORT_OFFSET} = {app_port}); use a higher PORT "
            f"or set USE_BROWSER_SYNC=false"
        )
    return ServeBinding(PROXIED, app_port=app_port, public_port=resolved_port)


class ReverseProxy:
    """WSGI app forwarding every request to the app server on ``target``.

    Accept-Encoding is dropped on the way in so HTML comes back plain and
    the live-reload script can be injected into it.
    """

    def __init__(self, target: str, timeout: float = 30, session: Optional[requests.Session] = None):
        self.target = target.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()
        # Browser cookies pass through as headers; the proxy itself must not keep any
        self.http.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        self.http.trust_env = False

    def _upstream_url(self, req: Request) -> str:
        path = quote(req.path, safe="/;:@&=+$,!~*'()")
        qs = req.query_string.decode("latin-1")
        return f"{self.target}{path}?{qs}" if qs else f"{self.target}{path}"

    def __call__(self, environ, start_response):
        req = Request(environ)
        headers = {
            k: v for k, v in req.headers.items()
            if k.lower() not in HOP_BY_HOP and k.lower() not in ("accept-encoding", "content-length")
        }
        try:
            upstream = self.http.request(
                req.method,
                self._upstream_url(req),
                headers=headers,
                data=req.get_data(),
                allow_redirects=False,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.error("Proxy request to %s failed: %s", self.target, e)
            resp = Response(f"Upstream app unavailable: {e}", status=502, mimetype="text/plain")
            return resp(environ, start_response)

        resp = Response(upstream.content, status=upstream.status_code)
        resp.headers.clear()
        for k, v in upstream.raw.headers.iteritems():
            if k.lower() in HOP_BY_HOP or k.lower() in ("content-encoding", "content-length"):
                continue
            resp.headers.add(k, v)
        resp.headers["Content-Length"] = str(len(upstream.content))
        return resp(environ, start_response)


def make_app_server(app: Flask, host: str, port: int) -> BaseWSGIServer:
    """Bind ``port`` and wrap it in a threaded werkzeug server.

    The socket is bound here rather than by werkzeug, which exits the
    process on a bind failure instead of raising.
    """
    sock = socket.socket(select_address_family(host, port), socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind(get_sockaddr(host, port, sock.family))
        sock.listen(128)
    except OSError as e:
        sock.close()
        raise BindError(port, e) from e
    try:
        # werkzeug dups the descriptor
        return make_server(host, port, app, threaded=True, fd=sock.fileno())
    finally:
        sock.close()


def proxy_target(host: str, port: int) -> str:
    """URL of the app server as seen from the proxy in the same process."""
    if host in ("", "0.0.0.0"):
        host = "127.0.0.1"
    elif host == "::":
        host = "::1"
    if ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}"


def make_live_reload_server(target_port: int, host: str = DEFAULT_HOST, patterns: Iterable[str] = WATCH_PATTERNS) -> Server:
    server = Server(ReverseProxy(proxy_target(host, target_port)))
    for pattern in patterns:
        server.watch(pattern)
    return server


def announce(port: int) -> str:
    url = f"http://localhost:{port}"
    print(f"Listening on port {port} url: {url}")
    return url


def start_app_thread(server: BaseWSGIServer) -> threading.Thread:
    thread = threading.Thread(target=server.serve_forever, name="app-server", daemon=True)
    thread.start()
    return thread


def serve(app: Flask, binding: ServeBinding, host: str = DEFAULT_HOST) -> None:
    """Bind according to ``binding`` and block serving requests."""
    if binding.mode == DIRECT:
        server = make_app_server(app, host, binding.port)
        announce(binding.port)
        try:
            server.serve_forever()
        finally:
            server.server_close()
        return

    app_server = make_app_server(app, host, binding.app_port)
    start_app_thread(app_server)
    log.info("App listening internally on %d, proxied from %d", binding.app_port, binding.public_port)

    live = make_live_reload_server(binding.app_port, host=host)
    announce(binding.public_port)
    try:
        # debug=False keeps tornado from restarting the process on .py edits
        live.serve(port=binding.public_port, host=host, debug=False, open_url_delay=None)
    except OSError as e:
        raise BindError(binding.public_port, e) from e
    finally:
        app_server.shutdown()
        app_server.server_close()
