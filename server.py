from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from flask import Flask
from flask_compress import Compress
from jinja2 import FileSystemLoader

from blueprints.assets import make_assets_blueprint, static_mounts
from blueprints.pages import pages_bp
from cache import cache
from errors import PrototypeError
from middleware import Stage, compose
from ports import resolve_port
from serving import DEFAULT_HOST, select_binding, serve
from settings import ROOT_DIR, RuntimeConfig, ensure_env_file, load_environment, resolve_config
from utils import file_helper, filters

log = logging.getLogger(__name__)

DEPENDENCY_DIR = "node_modules"
SESSION_COOKIE_NAME = "prototype-kit"


def template_dirs(root: Path) -> list[Path]:
    """Template search path. Vendor kits are only added when installed."""
    dirs = [
        root / "node_modules" / "govuk-frontend",
        root / "node_modules" / "@ministryofjustice" / "frontend",
    ]
    dirs = [d for d in dirs if d.is_dir()]
    return dirs + [root / "app" / "views", root / "app" / "components"]


def create_app(config: Optional[RuntimeConfig] = None, root: Path | str | None = None, session_store=None) -> Flask:
    root = Path(root) if root is not None else ROOT_DIR
    if config is None:
        # Load .env if present
        load_environment(root)
        config = resolve_config()

    app = Flask(__name__, static_folder=None, root_path=str(root))
    app.secret_key = os.getenv("SESSION_SECRET", "prototype-kit")
    app.config.update(
        RUNTIME_CONFIG=config,
        PROJECT_ROOT=str(root),
        TEMPLATE_DIRS=[str(d) for d in template_dirs(root)],
        SESSION_COOKIE_NAME=SESSION_COOKIE_NAME,
        SESSION_COOKIE_SECURE=config.is_deployed and config.force_https,
        TEMPLATES_AUTO_RELOAD=not config.is_deployed,
        COMPRESS_MIMETYPES=["text/html", "text/css", "text/plain", "application/javascript", "application/json", "image/svg+xml"],
        COMPRESS_MIN_SIZE=int(os.getenv("COMPRESS_MIN_SIZE", "500")),
    )
    app.jinja_loader = FileSystemLoader(app.config["TEMPLATE_DIRS"])
    app.jinja_env.autoescape = True

    # Cache config; the code-snippet helpers stay uncached while developing
    cache_config = {
        "CACHE_TYPE": os.getenv("CACHE_TYPE", "SimpleCache" if config.is_deployed else "NullCache"),
        "CACHE_DEFAULT_TIMEOUT": int(os.getenv("CACHE_DEFAULT_TIMEOUT", "300")),
    }
    cache.init_app(app, config=cache_config)
    Compress(app)

    file_helper.register(app)
    filters.register(app)

    mounts = static_mounts(root)

    def mount_static(app: Flask) -> None:
        app.register_blueprint(make_assets_blueprint(mounts))

    def mount_views(app: Flask) -> None:
        app.register_blueprint(pages_bp)

    chain = compose(
        config,
        session_store=session_store,
        extra=[Stage("static", setup=mount_static), Stage("views", setup=mount_views)],
    )
    chain.install(app)
    app.logger.info(f"Environment {config.environment_name}: {' -> '.join(chain.names())}")
    return app


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the component kit prototype.")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Interface to bind (default: all)")
    parser.add_argument("--root", type=Path, default=ROOT_DIR, help="Project root with app/ and public/")
    args = parser.parse_args(argv)

    configure_logging()
    root: Path = args.root

    if not (root / DEPENDENCY_DIR).is_dir():
        print("ERROR: Node module folder missing. Try running `npm install`", file=sys.stderr)
        return 0

    # Run before anything else so variables from .env are visible
    load_environment(root)
    try:
        config = resolve_config()
        port = asyncio.run(resolve_port(config.requested_port, host=args.host))
        app = create_app(config, root)
        binding = select_binding(config, port)
        ensure_env_file(root)
        serve(app, binding, host=args.host)
    except PrototypeError as e:
        log.error("Startup failed: %s", e)
        return 1
    except KeyboardInterrupt:
        print("\nShutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
