from __future__ import annotations

from pathlib import Path
from typing import Iterable

from flask import Blueprint, abort, send_from_directory
from werkzeug.exceptions import NotFound
from werkzeug.security import safe_join


def static_mounts(root: Path) -> list[tuple[str, list[Path]]]:
    """URL prefix -> directories searched in order (first hit wins)."""
    modules = root / "node_modules"
    return [
        ("/public", [root / "public"]),
        ("/assets", [
            modules / "govuk-frontend" / "govuk" / "assets",
            modules / "@ministryofjustice" / "frontend" / "moj" / "assets",
        ]),
        ("/node_modules/govuk-frontend", [modules / "govuk-frontend"]),
        ("/node_modules/moj-frontend", [modules / "@ministryofjustice" / "frontend"]),
    ]


def make_assets_blueprint(mounts: Iterable[tuple[str, list[Path]]], max_age: int | None = None) -> Blueprint:
    bp = Blueprint("assets", __name__)

    def _view(dirs: list[Path]):
        def serve_file(filename: str):
            for d in dirs:
                if not d.is_dir():
                    continue
                joined = safe_join(str(d), filename)
                if joined is None:
                    abort(404)
                if Path(joined).is_file():
                    try:
                        return send_from_directory(d, filename, max_age=max_age)
                    except NotFound:
                        continue
            abort(404)
        return serve_file

    for i, (prefix, dirs) in enumerate(mounts):
        bp.add_url_rule(
            f"{prefix.rstrip('/')}/<path:filename>",
            endpoint=f"mount_{i}",
            view_func=_view(list(dirs)),
        )
    return bp
