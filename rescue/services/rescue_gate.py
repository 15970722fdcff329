"""Rescue gate — decides, per request, whether rescue mode takes over.

Every request is authenticated on its own by comparing the ``rescue_key``
query parameter with the stored secret. No match means the host app
handles the request as if this module didn't exist.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response

from rescue.config import Settings
from rescue.schemas.rescue import ErrorKind, ExtensionKind, FlashMessage, GateState, RenameResult
from rescue.services.audit_log import AuditLog
from rescue.services.debug_log import DebugLogCapture, DebugLogReader
from rescue.services.extensions import RenameEngine, parse_kind
from rescue.services.rescue_page import render_rescue_page
from rescue.services.secret_store import SecretStore
from rescue.services.session_flags import FLAG_LOG, KNOWN_FLAGS, SessionFlagCodec, sanitize_flag_name

logger = logging.getLogger(__name__)

RENAME_PARAMS = ("action", "kind", "target", "new_name")
FLASH_PARAMS = ("msg", "error")

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, max-age=0, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Robots-Tag": "noindex, nofollow",
}


@dataclass
class RescueContext:
    """Everything the gate needs, built once per process and injected."""

    settings: Settings
    secret_store: SecretStore
    audit_log: AuditLog
    rename_engine: RenameEngine
    flags: SessionFlagCodec
    debug_reader: DebugLogReader
    debug_capture: DebugLogCapture = field(repr=False)


def build_context(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> RescueContext:
    audit_log = AuditLog(settings.audit_log_file)
    return RescueContext(
        settings=settings,
        secret_store=SecretStore(
            session_factory,
            encryption_key=settings.encryption_key,
            secret_length=settings.secret_length,
        ),
        audit_log=audit_log,
        rename_engine=RenameEngine(settings.plugin_root, settings.theme_root, audit_log),
        flags=SessionFlagCodec(
            cookie_prefix=settings.cookie_prefix,
            ttl_seconds=settings.flag_ttl_seconds,
            per_name=settings.flag_token_per_name,
        ),
        debug_reader=DebugLogReader(settings.debug_log_file, settings.debug_log_max_bytes),
        debug_capture=DebugLogCapture(settings.debug_log_file),
    )


def secrets_match(candidate: str, secret: str) -> bool:
    return hmac.compare_digest(candidate.encode(), secret.encode())


def remote_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def flash_from_query(request: Request) -> FlashMessage | None:
    if error := request.query_params.get("error"):
        return FlashMessage(level="error", text=error)
    if msg := request.query_params.get("msg"):
        return FlashMessage(level="success", text=msg)
    return None


class RescueGate:
    def __init__(self, context: RescueContext) -> None:
        self.context = context

    async def evaluate(self, request: Request) -> tuple[GateState, str | None]:
        """Classify the request; returns the matched secret for non-bypass states."""
        candidate = request.query_params.get(self.context.settings.param_name)
        if candidate is None:
            return GateState.BYPASS, None

        secret = await self.context.secret_store.get()
        if not secret or not secrets_match(candidate, secret):
            logger.debug("Rescue key rejected for %s", remote_address(request))
            return GateState.BYPASS, None

        if self.context.settings.toggle_param in request.query_params:
            return GateState.TOGGLING, secret
        return GateState.SERVING, secret

    async def handle(self, request: Request) -> Response | None:
        """Response that ends the request, or ``None`` to hand it to the host."""
        state, secret = await self.evaluate(request)
        if state == GateState.BYPASS or secret is None:
            return None
        if state == GateState.TOGGLING:
            return self.toggle_flag(request, secret)

        params = request.query_params
        if params.get("action") == "rename" and "target" in params and "new_name" in params:
            result = self.rename(request)
            return self.flash_redirect(request, result)
        return self.serve(request, secret)

    def toggle_flag(self, request: Request, secret: str) -> Response:
        settings = self.context.settings
        flag = sanitize_flag_name(request.query_params.get(settings.toggle_param))
        url = request.url.remove_query_params(settings.toggle_param)
        response = RedirectResponse(str(url), status_code=302, headers=NO_STORE_HEADERS)
        if flag not in KNOWN_FLAGS:
            return response

        codec = self.context.flags
        cookie = codec.cookie_name(flag)
        value = codec.toggled_value(secret, flag, request.cookies.get(cookie))
        response.set_cookie(
            cookie,
            value,
            max_age=codec.ttl_seconds,
            path="/",
            httponly=True,
            samesite="lax",
        )
        logger.info("Debug flag %r %s", flag, "enabled" if value else "disabled")
        return response

    def rename(self, request: Request) -> RenameResult:
        params = request.query_params
        kind = parse_kind(params.get("kind"))
        if kind is None:
            return RenameResult(
                success=False, error=ErrorKind.INVALID_REQUEST, message="Unknown extension type."
            )
        try:
            return self.context.rename_engine.toggle(
                kind, params["target"], params["new_name"], remote_address(request)
            )
        except Exception:
            logger.exception("Unexpected failure while renaming %s", params["target"])
            return RenameResult(
                success=False, error=ErrorKind.IO_FAILURE, message="Rename failed unexpectedly."
            )

    def flash_redirect(self, request: Request, result: RenameResult) -> Response:
        url = request.url.remove_query_params([*RENAME_PARAMS, *FLASH_PARAMS])
        if result.success:
            url = url.include_query_params(msg=result.message)
        else:
            url = url.include_query_params(error=result.message)
        return RedirectResponse(str(url), status_code=302, headers=NO_STORE_HEADERS)

    def serve(self, request: Request, secret: str) -> Response:
        ctx = self.context
        flags = ctx.flags.flags_from_cookies(secret, request.cookies)
        debug_view = ctx.debug_reader.tail() if flags.get(FLAG_LOG) else None
        html = render_rescue_page(
            request,
            settings=ctx.settings,
            listings=[ctx.rename_engine.list_extensions(kind) for kind in ExtensionKind],
            flags=flags,
            flash=flash_from_query(request),
            debug_view=debug_view,
        )
        return HTMLResponse(html, headers=NO_STORE_HEADERS)

    async def debug_capture_requested(self, request: Request) -> bool:
        """True when the request holds a valid "log" flag cookie."""
        ctx = self.context
        presented = request.cookies.get(ctx.flags.cookie_name(FLAG_LOG))
        if not presented:
            return False
        secret = await ctx.secret_store.get()
        return ctx.flags.is_set(secret, FLAG_LOG, presented)
