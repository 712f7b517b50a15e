from __future__ import annotations

from flask import Blueprint, abort, current_app, redirect, render_template, request, session
from jinja2 import TemplateNotFound

pages_bp = Blueprint("pages", __name__)


def _candidates(path: str) -> list[str]:
    path = path.strip("/")
    if not path:
        return ["index.html"]
    if path.endswith(".html"):
        return [path]
    return [f"{path}.html", f"{path}/index.html"]


def _render_first(names: list[str], **context):
    for name in names:
        try:
            return render_template(name, **context)
        except TemplateNotFound as e:
            # A missing include inside an existing page is a real error
            if e.name != name:
                raise
            continue
    return None


def _store_answers() -> None:
    data = dict(session.get("data", {}))
    for key in request.form:
        values = request.form.getlist(key)
        data[key] = values if len(values) > 1 else values[0]
    session["data"] = data


@pages_bp.app_context_processor
def inject_data():
    # Answers posted by earlier pages, so prototypes can play them back
    return dict(data=session.get("data", {}))


@pages_bp.route("/")
def index():
    return render_template("index.html")


@pages_bp.route("/<path:path>", methods=["GET", "POST"])
def auto_route(path: str):
    """Render ``<path>.html`` or ``<path>/index.html`` from the views."""
    if "/_" in f"/{path}" or ".." in path.split("/"):
        abort(404)

    if request.method == "POST":
        _store_answers()
        current_app.logger.debug(f"Stored answers for /{path}: {list(request.form)}")
        # Go to ?next= when given, otherwise render the page the form posted to
        nxt = request.args.get("next")
        if nxt and nxt.startswith("/") and not nxt.startswith("//"):
            return redirect(nxt)

    html = _render_first(_candidates(path))
    if html is None:
        abort(404)
    return html
