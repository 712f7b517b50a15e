from __future__ import annotations

import logging
from pathlib import Path

from flask import current_app, render_template
from jinja2 import TemplateNotFound

from cache import cache

log = logging.getLogger(__name__)


def _safe_path(base: Path, rel: str) -> Path | None:
    """Resolve ``rel`` under ``base``; None if it escapes or doesn't exist."""
    try:
        p = (base / rel.lstrip("/")).resolve()
        p.relative_to(base.resolve())
    except (ValueError, OSError):
        return None
    return p if p.is_file() else None


def _read(base: Path, rel: str) -> str:
    p = _safe_path(base, rel)
    if p is None:
        log.warning("Example file not found: %s (under %s)", rel, base)
        return ""
    return p.read_text(encoding="utf-8").strip()


def _root_dir() -> Path:
    return Path(current_app.config["PROJECT_ROOT"])


@cache.memoize(timeout=300)
def get_template_code(path: str) -> str:
    """Jinja source of an example template, as written."""
    for base in current_app.config["TEMPLATE_DIRS"]:
        if _safe_path(Path(base), path):
            return _read(Path(base), path)
    log.warning("Example template not found: %s", path)
    return ""


@cache.memoize(timeout=300)
def get_html_code(path: str) -> str:
    """Rendered HTML of an example template. Broken templates raise."""
    try:
        return render_template(path.lstrip("/")).strip()
    except TemplateNotFound as e:
        current_app.logger.error(f"Example template not found: {path} ({e})")
        return ""


@cache.memoize(timeout=300)
def get_css_code(path: str) -> str:
    return _read(_root_dir(), path)


@cache.memoize(timeout=300)
def get_js_code(path: str) -> str:
    return _read(_root_dir(), path)


def register(app) -> None:
    app.jinja_env.globals.update(
        getTemplateCode=get_template_code,
        getHtmlCode=get_html_code,
        getCssCode=get_css_code,
        getJsCode=get_js_code,
    )
