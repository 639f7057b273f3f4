"""
Content API — JWT Authentication Middleware
Validates the Supabase Bearer token on /admin and /users routes; returns 401 on failure.
"""
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from infinite_flow.core.security import JWTError, decode_token

# Everything else (health, metrics, docs, /auth, /webhooks) is public
PROTECTED_PREFIXES = ("/admin", "/users")


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """
    Attaches decoded claims to request.state.user on success.
    Role checks happen in the route dependencies.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        if not any(path == p or path.startswith(p + "/") for p in PROTECTED_PREFIXES):
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return JSONResponse(
                status_code=401,
                content={"detail": "Missing or invalid Authorization header. Expected: Bearer <token>"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        token = auth_header.split(" ", 1)[1]
        try:
            request.state.user = decode_token(token, request.app.state.settings)
        except JWTError as exc:
            return JSONResponse(
                status_code=401,
                content={"detail": f"Invalid or expired JWT: {str(exc)}"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        return await call_next(request)
