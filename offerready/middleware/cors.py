"""
CORS Middleware - Cross-Origin Resource Sharing configuration.

The web client calls the API from the browser with a Supabase bearer token,
so preflights must allow `authorization` plus the headers supabase-js sends
(`x-client-info`, `apikey`).

Configuration:
- CORS_ALLOWED_ORIGINS=["*"] allows any origin. Credentials are never
  allowed together with a wildcard.
- Otherwise only listed origins are echoed back.
- Per-path-prefix method lists narrow what a preflight advertises, e.g.
  billing endpoints answer `POST, OPTIONS` only.

Usage:
    app.add_middleware(
        CORSMiddleware,
        allowed_origins=settings.CORS_ALLOWED_ORIGINS,
        path_methods={"/billing": ["POST", "OPTIONS"]},
    )
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from offerready.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

WILDCARD = "*"


class CORSMiddleware(BaseHTTPMiddleware):
    """
    CORS (Cross-Origin Resource Sharing) middleware.

    Handles preflight OPTIONS requests and adds CORS headers to responses.
    """

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allow_credentials: bool = False,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        path_methods: dict[str, list[str]] | None = None,
        max_age: int = 600,
    ):
        """
        Initialize CORS middleware.

        Args:
            app: ASGI application
            allowed_origins: Allowed origins; "*" allows any
            allow_credentials: Whether to allow credentials (ignored for "*")
            allow_methods: Allowed HTTP methods (default: common methods)
            allow_headers: Allowed request headers
            path_methods: Path prefix -> methods advertised for that prefix;
                the first matching prefix wins
            max_age: How long (seconds) to cache preflight responses
        """
        super().__init__(app)
        self.allowed_origins = allowed_origins or []
        self.allow_any_origin = WILDCARD in self.allowed_origins
        self.allow_credentials = allow_credentials and not self.allow_any_origin
        self.allow_methods = allow_methods or [
            "GET",
            "POST",
            "PATCH",
            "DELETE",
            "OPTIONS",
        ]
        self.allow_headers = allow_headers or [
            "authorization",
            "x-client-info",
            "apikey",
            "content-type",
            "stripe-signature",
            "x-request-id",
        ]
        self.path_methods = path_methods or {}
        self.max_age = max_age

        logger.info(
            "CORS middleware initialized",
            allowed_origins=self.allowed_origins,
            allow_credentials=self.allow_credentials,
        )

    def _allow_origin_value(self, origin: str | None) -> str | None:
        if self.allow_any_origin:
            return WILDCARD
        if origin and origin in self.allowed_origins:
            return origin
        return None

    def _methods_for(self, path: str) -> list[str]:
        for prefix, methods in self.path_methods.items():
            if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
                return methods
        return self.allow_methods

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        allow_origin = self._allow_origin_value(origin)

        # Preflight
        if request.method == "OPTIONS":
            if allow_origin:
                return self._preflight_response(allow_origin, self._methods_for(request.url.path))
            logger.warning(
                "CORS preflight rejected - origin not allowed",
                origin=origin,
                allowed_origins=self.allowed_origins,
            )
            return Response(status_code=403, content="Origin not allowed")

        response = await call_next(request)

        if allow_origin:
            response.headers["Access-Control-Allow-Origin"] = allow_origin
            if self.allow_credentials:
                response.headers["Access-Control-Allow-Credentials"] = "true"
        elif origin:
            logger.warning(
                "CORS request from disallowed origin",
                origin=origin,
                path=request.url.path,
                allowed_origins=self.allowed_origins,
            )

        return response

    def _preflight_response(self, allow_origin: str, methods: list[str]) -> Response:
        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": ", ".join(methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": str(self.max_age),
        }

        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"

        logger.debug("CORS preflight request handled", origin=allow_origin, methods=methods)

        return Response(status_code=204, headers=headers)
