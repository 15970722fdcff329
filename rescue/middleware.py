"""ASGI binding for the rescue gate."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from rescue.services.debug_log import debug_capture_enabled
from rescue.services.rescue_gate import RescueContext, RescueGate

logger = logging.getLogger(__name__)


class RescueMiddleware(BaseHTTPMiddleware):
    """Runs the gate before any host route; falls through on bypass."""

    def __init__(self, app: ASGIApp, context: RescueContext) -> None:
        super().__init__(app)
        self.gate = RescueGate(context)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            response = await self.gate.handle(request)
        except Exception:
            # rescue must never take the host down with it
            logger.exception("Rescue gate failed; handing request to the host")
            response = None
        if response is not None:
            return response

        try:
            capture = await self.gate.debug_capture_requested(request)
        except Exception:
            logger.exception("Could not evaluate debug flag cookie")
            capture = False

        token = debug_capture_enabled.set(capture)
        try:
            return await call_next(request)
        except Exception:
            if capture:
                logger.exception("Unhandled error in %s %s", request.method, request.url.path)
            raise
        finally:
            debug_capture_enabled.reset(token)


def install_rescue(app: FastAPI, context: RescueContext) -> None:
    """Attach the gate to a host app. Add it last so it runs first."""
    app.state.rescue = context
    app.add_middleware(RescueMiddleware, context=context)
