"""Recovery page rendering (Jinja2)."""

from __future__ import annotations

from pathlib import Path

import jinja2
from starlette.requests import Request

from rescue.config import Settings
from rescue.schemas.rescue import DebugLogView, ExtensionEntry, ExtensionListing, FlashMessage
from rescue.services.session_flags import FLAG_LOG

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(TEMPLATES_DIR),
    autoescape=True,
    undefined=jinja2.StrictUndefined,
)


def rename_url(request: Request, entry: ExtensionEntry) -> str:
    url = request.url.remove_query_params(["msg", "error"])
    return str(
        url.include_query_params(
            action="rename",
            kind=entry.kind.value,
            target=entry.name,
            new_name=entry.toggled_name,
        )
    )


def render_rescue_page(
    request: Request,
    *,
    settings: Settings,
    listings: list[ExtensionListing],
    flags: dict[str, bool],
    flash: FlashMessage | None,
    debug_view: DebugLogView | None,
) -> str:
    base_url = request.url.remove_query_params(["msg", "error"])
    return _env.get_template("rescue.html.j2").render(
        listings=listings,
        flags=flags,
        flash=flash,
        debug_view=debug_view,
        log_toggle_url=str(base_url.include_query_params(**{settings.toggle_param: FLAG_LOG})),
        rename_url=lambda entry: rename_url(request, entry),
        home_url=settings.home_url,
        admin_url=settings.admin_url,
    )
