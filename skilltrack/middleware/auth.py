from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# Onboarding creates the user and hands back the first token
PUBLIC_API_ROUTES = {
    ("POST", "/api/profile"),
}

DOCS_PREFIXES = ("/docs", "/openapi", "/redoc")


def _is_public(method: str, path: str) -> bool:
    if method == "OPTIONS":
        # CORS preflight never carries credentials
        return True
    if not path.startswith("/api/") or path.startswith(DOCS_PREFIXES):
        return True
    return (method, path.rstrip("/")) in PUBLIC_API_ROUTES


class AuthMiddleware(BaseHTTPMiddleware):
    """Turns away /api/ requests with no Bearer header.

    Token validity is checked by get_current_user in the route itself.
    """

    async def dispatch(self, request: Request, call_next):
        if _is_public(request.method, request.url.path):
            return await call_next(request)

        if request.headers.get("Authorization", "").lower().startswith("bearer "):
            return await call_next(request)

        return JSONResponse(status_code=401, content={"detail": "Not authenticated"})
