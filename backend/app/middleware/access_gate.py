"""
RouteLog Backend - Access Gate Middleware
===========================================

What:  Rejects every request that lacks a valid bearer token carrying the
       required permission scope, before any route handler runs.
How:   Verifies the JWT with PyJWT (key, algorithm, and audience/issuer when
       configured), then looks for the required scope in the token claims.
When:  Innermost custom middleware: after request ID and access logging,
       so rejections are correlated and logged like any other response.

Responses:
    401 unauthorized        missing/malformed header, bad signature, expired token
    403 insufficient_scope  valid token without the required scope

Scope claims accepted:
    "scope": "openid full_access"        (space-delimited string, OAuth2)
    "scp" / "permissions": ["full_access"] (list form used by some IdPs)

Excluded paths: /health and the API docs. CORS preflight (OPTIONS) requests
pass through so the browser can read the CORS headers.
"""

import logging
from typing import Any, Dict, Optional, Set

import jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class AccessDenied(Exception):
    """Internal signal carrying the status and error code for a rejection."""

    def __init__(self, status_code: int, error: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message


def extract_bearer_token(authorization: Optional[str]) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise AccessDenied(401, "unauthorized", "Missing Authorization header.")

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise AccessDenied(401, "unauthorized", "Invalid Authorization header format.")

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise AccessDenied(401, "unauthorized", "Authorization must be: Bearer <token>.")
    return token


def decode_token(token: str) -> Dict[str, Any]:
    if not settings.auth_secret:
        # Fail closed: without a key nothing can be verified
        logger.error("AUTH_SECRET is not configured; rejecting request")
        raise AccessDenied(401, "unauthorized", "Token verification is not configured.")

    options = {"verify_aud": bool(settings.auth_audience)}
    try:
        return jwt.decode(
            token,
            settings.auth_secret,
            algorithms=[settings.auth_algorithm],
            audience=settings.auth_audience or None,
            issuer=settings.auth_issuer or None,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise AccessDenied(401, "unauthorized", "Access token has expired.")
    except jwt.InvalidTokenError as e:
        logger.info("Rejected bearer token: %s", type(e).__name__)
        raise AccessDenied(401, "unauthorized", "Invalid access token.")


def token_scopes(claims: Dict[str, Any]) -> Set[str]:
    scopes: Set[str] = set()
    scope_claim = claims.get("scope")
    if isinstance(scope_claim, str):
        scopes.update(scope_claim.split())
    for list_claim in ("scp", "permissions"):
        value = claims.get(list_claim)
        if isinstance(value, (list, tuple)):
            scopes.update(str(item) for item in value)
        elif isinstance(value, str):
            scopes.update(value.split())
    return scopes


def require_scope(claims: Dict[str, Any], scope: str) -> None:
    if scope not in token_scopes(claims):
        raise AccessDenied(
            403, "insufficient_scope", f"Token is missing the required '{scope}' scope."
        )


class AccessGateMiddleware(BaseHTTPMiddleware):
    """Bearer token + scope check applied to every non-excluded request."""

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        try:
            token = extract_bearer_token(request.headers.get("Authorization"))
            claims = decode_token(token)
            require_scope(claims, settings.auth_required_scope)
        except AccessDenied as denied:
            rid = request_id_var.get("")
            logger.warning(
                "[%s] Access denied for %s %s: %s",
                rid, request.method, request.url.path, denied.error,
            )
            headers = {}
            if denied.status_code == 401:
                headers["WWW-Authenticate"] = "Bearer"
            return JSONResponse(
                status_code=denied.status_code,
                content={
                    "error": denied.error,
                    "message": denied.message,
                    "request_id": rid,
                },
                headers=headers,
            )

        request.state.token_claims = claims
        return await call_next(request)
