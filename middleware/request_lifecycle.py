"""
Request lifecycle middleware for the WorkHub notification service.
Generates request IDs, populates logging context variables, and logs request/response details.
"""

import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from logging_config import get_logger, request_id_var, tenant_id_var, user_id_var
from jose import jwt, JWTError
from config import config

logger = get_logger("middleware")

SECRET_KEY = config.SECRET_KEY
ALGORITHM = config.ALGORITHM


def _extract_user_from_token(request: Request) -> tuple[str, str]:
    """Best-effort user_id and tenant_id from the bearer token, for log context only."""
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return "-", "-"

    try:
        payload = jwt.decode(auth_header[7:], SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return "-", "-"
    return payload.get("sub") or "-", payload.get("tenant_id") or "-"


class RequestLifecycleMiddleware(BaseHTTPMiddleware):
    """Adds request tracing and lifecycle logging; turns unhandled errors into a 500 with the request id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = uuid.uuid4().hex[:8]
        request_id_var.set(req_id)

        user_id, tenant_id = _extract_user_from_token(request)
        user_id_var.set(user_id)
        tenant_id_var.set(tenant_id)

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        logger.debug(
            f"→ {method} {path}",
            extra={"data": {"query": str(request.query_params) if request.query_params else None}}
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 1)
            logger.error(
                f"✖ {method} {path} UNHANDLED ERROR ({duration_ms}ms): {exc}",
                exc_info=True,
                extra={"data": {"duration_ms": duration_ms, "error": str(exc)}}
            )
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error", "request_id": req_id},
                headers={"X-Request-ID": req_id}
            )

        duration_ms = round((time.perf_counter() - start_time) * 1000, 1)
        log_fn = logger.info if response.status_code < 400 else logger.warning
        log_fn(
            f"← {method} {path} {response.status_code} ({duration_ms}ms)",
            extra={"data": {"status": response.status_code, "duration_ms": duration_ms}}
        )

        response.headers["X-Request-ID"] = req_id
        return response
