"""Admin endpoints for the rescue secret and the audit log.

Hosts with their own admin authentication should override ``require_admin``
via ``app.dependency_overrides``.
"""

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from rescue.schemas.admin import RescueUrlResponse, SecretUpdate
from rescue.schemas.rescue import AuditEntry, ErrorKind
from rescue.services.audit_log import LOG_LIMIT_CHOICES
from rescue.services.rescue_gate import RescueContext
from rescue.services.secret_store import InvalidSecretError, build_rescue_url

logger = logging.getLogger(__name__)

router = APIRouter()


def get_context(request: Request) -> RescueContext:
    return request.app.state.rescue


async def require_admin(
    authorization: str | None = Header(default=None),
    ctx: RescueContext = Depends(get_context),
) -> None:
    expected = ctx.settings.admin_token
    if not expected:
        raise HTTPException(status_code=403, detail="Admin API disabled")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail=ErrorKind.UNAUTHENTICATED.value)


def _rescue_url(ctx: RescueContext, secret: str) -> RescueUrlResponse:
    return RescueUrlResponse(
        rescue_url=build_rescue_url(ctx.settings.home_url, ctx.settings.param_name, secret)
    )


@router.get("/url", response_model=RescueUrlResponse, dependencies=[Depends(require_admin)])
async def get_rescue_url(ctx: RescueContext = Depends(get_context)):
    secret = await ctx.secret_store.get()
    if not secret:
        raise HTTPException(status_code=503, detail=ErrorKind.STORAGE_UNAVAILABLE.value)
    return _rescue_url(ctx, secret)


@router.put("/secret", response_model=RescueUrlResponse, dependencies=[Depends(require_admin)])
async def set_secret(body: SecretUpdate, ctx: RescueContext = Depends(get_context)):
    try:
        secret = await ctx.secret_store.set(body.secret)
    except InvalidSecretError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _rescue_url(ctx, secret)


@router.post("/secret/rotate", response_model=RescueUrlResponse, dependencies=[Depends(require_admin)])
async def rotate_secret(ctx: RescueContext = Depends(get_context)):
    return _rescue_url(ctx, await ctx.secret_store.rotate())


@router.get("/logs", response_model=list[AuditEntry], dependencies=[Depends(require_admin)])
async def list_logs(
    limit: int = Query(10, description="One of 10, 25, 50, 100"),
    ctx: RescueContext = Depends(get_context),
):
    if limit not in LOG_LIMIT_CHOICES:
        raise HTTPException(status_code=422, detail=f"limit must be one of {LOG_LIMIT_CHOICES}")
    return ctx.audit_log.read(limit)


@router.delete("/logs", status_code=204, dependencies=[Depends(require_admin)])
async def clear_logs(ctx: RescueContext = Depends(get_context)):
    ctx.audit_log.clear()
