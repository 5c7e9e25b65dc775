"""Request context middleware for logging."""
import asyncio
import json
import time
import uuid
from contextvars import ContextVar
from typing import Any
from typing import Callable
from typing import Optional

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from ccas_api.monitoring.logger import log_request_info

# Context variables to store request-specific data
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
client_ip_ctx: ContextVar[str] = ContextVar("client_ip", default="")
user_identity_ctx: ContextVar[str] = ContextVar("user_identity", default="")
request_path_ctx: ContextVar[str] = ContextVar("request_path", default="")

# Maximum size for request body logging (attachments are uploaded as base64 JSON)
MAX_BODY_LOG_SIZE = 10000  # 10KB limit

# Request body keys that are never written to the log
REDACTED_BODY_KEYS = {"content", "fileContent", "file_content"}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to capture and log request context information."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        """
        Capture request context and add to logging.

        Captures:
        - Request ID (from X-Request-ID header or generated)
        - Client IP (forwarded headers or direct)
        - Caller identity (X-User-Email / X-User-Role set by the auth provider)
        - Request path and method
        - Request body (for POST/PUT/PATCH/DELETE)
        """
        request_id = request.headers.get("X-Request-ID") or self._generate_request_id()
        request_id_ctx.set(request_id)

        client_ip = self._get_client_ip(request)
        client_ip_ctx.set(client_ip)

        user_identity = self._get_user_identity(request)
        user_identity_ctx.set(user_identity)

        request_path = f"{request.method} {request.url.path}"
        request_path_ctx.set(request_path)

        # Stored early so error handlers can include it in their log entries
        request.state.request_body = None
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            request.state.request_body = await self._get_request_body(request)

        with logger.contextualize(
            request_id=request_id,
            client_ip=client_ip,
            user_identity=user_identity,
            request_path=request_path,
        ):
            log_request_info(request)

            start_time = time.time()
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            response.headers["X-Request-ID"] = request_id

            logger.info(
                f"{request.method} {request.url.path} - {response.status_code}",
                event_type="http_request",
                http_method=request.method,
                url_path=str(request.url.path),
                url_query=str(request.query_params) if request.query_params else None,
                content_type=request.headers.get("Content-Type"),
                status_code=response.status_code,
                http_status=response.status_code,
                response_time_ms=round(duration_ms, 2),
                response_content_type=response.headers.get("content-type"),
            )

            return response

    async def _get_request_body(self, request: Request) -> Optional[dict]:
        """
        Read and cache the request body with a timeout to prevent hanging.

        Returns:
            Parsed JSON body (with file content redacted), a preview for non-JSON bodies,
            or None if the body is empty or unreadable
        """
        try:
            body = await asyncio.wait_for(request.body(), timeout=2.0)
        except asyncio.TimeoutError:
            return {"_error": "Request body read timeout (>2s)"}
        except RuntimeError:
            return None

        if not body:
            return None

        content_type = request.headers.get("Content-Type", "")
        if "application/json" not in content_type.lower():
            # Multipart uploads and other payloads are summarised, never logged verbatim
            return {"_size": len(body), "_content_type": content_type}

        if len(body) > MAX_BODY_LOG_SIZE:
            try:
                parsed = json.loads(body)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return {"_truncated": True, "_size": len(body)}
            if isinstance(parsed, dict):
                return self._redact(parsed)
            return {"_truncated": True, "_size": len(body)}

        try:
            parsed = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return {"_error": "Failed to parse request body", "_error_detail": str(e)}

        return self._redact(parsed) if isinstance(parsed, dict) else parsed

    def _redact(self, body: dict) -> dict:
        """Replace file content fields with their size."""
        redacted = {}
        for key, value in body.items():
            if key in REDACTED_BODY_KEYS and isinstance(value, str):
                redacted[key] = f"<{len(value)} chars>"
            else:
                redacted[key] = value
        return redacted

    def _get_client_ip(self, request: Request) -> str:
        """
        Get real client IP address.

        Reverse proxies (Azure Web App, nginx) put the original client address in
        X-Forwarded-For; the first entry is the client.
        """
        client_ip = request.headers.get("X-Azure-ClientIP")
        if client_ip:
            return client_ip

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"

    def _get_user_identity(self, request: Request) -> str:
        """
        Get caller identity from the headers set by the authentication provider.

        Returns "email (role)", "email" or "anonymous".
        """
        email = request.headers.get("X-User-Email", "").strip()
        role = request.headers.get("X-User-Role", "").strip()
        if email and role:
            return f"{email} ({role})"
        if email:
            return email
        return "anonymous"

    def _generate_request_id(self) -> str:
        """Generate a unique request ID."""
        return str(uuid.uuid4())


def get_request_context() -> dict:
    """
    Get current request context for logging.

    Returns:
        Dictionary with request context variables
    """
    return {
        "request_id": request_id_ctx.get(),
        "client_ip": client_ip_ctx.get(),
        "user_identity": user_identity_ctx.get(),
        "request_path": request_path_ctx.get(),
    }
