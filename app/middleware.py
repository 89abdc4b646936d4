import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# Any local dev server, whatever its port
LOCALHOST_ORIGIN_REGEX = r"^http://localhost:\d+$"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "X-DNS-Prefetch-Control": "off",
}


class PayloadTooLargeError(HTTPException):
    def __init__(self):
        super().__init__(status_code=413, detail="Request body too large")


class BodySizeLimitMiddleware:
    """
    Rejects request bodies over `max_body_bytes` with a 413.

    A declared Content-Length is checked before the app runs. Bodies without
    one (chunked uploads) are counted as they are received, and the read fails
    with PayloadTooLargeError as soon as the running total passes the limit.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                response = JSONResponse(status_code=400, content={"error": "Invalid Content-Length header"})
                await response(scope, receive, send)
                return
            if size > self.max_body_bytes:
                logger.warning(f"Rejected {size} byte body on {scope['path']}")
                error = PayloadTooLargeError()
                response = JSONResponse(status_code=error.status_code, content={"error": error.detail})
                await response(scope, receive, send)
                return

        received = 0

        async def receive_limited() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    logger.warning(f"Rejected body over {self.max_body_bytes} bytes on {scope['path']}")
                    raise PayloadTooLargeError()
            return message

        await self.app(scope, receive_limited, send)


def register_middleware(app: FastAPI, allowed_origins: list[str], max_body_bytes: int) -> None:
    """Cross-cutting policies applied to every request, static assets included."""

    # Requests without an Origin header are not CORS requests and always pass.
    # Disallowed origins get no Access-Control-* headers, so browsers reject them.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_origin_regex=LOCALHOST_ORIGIN_REGEX,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )

    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=max_body_bytes)

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response
