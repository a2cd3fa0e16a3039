"""Permissive CORS handling.

Every response, including error responses, carries the CORS headers, and
every OPTIONS request is answered with 200 and an empty body before
routing. Starlette's CORSMiddleware answers unknown preflights with 400,
which browsers calling this API from any origin cannot use.
"""

from fastapi import FastAPI, Request
from fastapi.responses import Response

ALLOW_HEADERS = "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token"
ALLOW_METHODS = "GET,POST,PUT,DELETE,OPTIONS"


def build_cors_headers(allowed_origins: list[str], request_origin: str = "") -> dict[str, str]:
    if not allowed_origins or "*" in allowed_origins:
        origin = "*"
    elif request_origin in allowed_origins:
        origin = request_origin
    else:
        origin = allowed_origins[0]

    headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Allow-Methods": ALLOW_METHODS,
    }
    if origin != "*":
        headers["Vary"] = "Origin"
    return headers


def cors_headers_for(request: Request) -> dict[str, str]:
    allowed_origins = getattr(request.app.state, "allowed_origins", ["*"])
    return build_cors_headers(allowed_origins, request.headers.get("origin", ""))


def register_cors(app: FastAPI, allowed_origins: list[str]) -> None:
    """Install the CORS middleware on the app."""
    app.state.allowed_origins = allowed_origins

    @app.middleware("http")
    async def cors_middleware(request: Request, call_next):
        headers = cors_headers_for(request)
        if request.method == "OPTIONS":
            return Response(status_code=200, content=b"", headers=headers)

        response = await call_next(request)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response
