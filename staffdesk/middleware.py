from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import FastAPI, Request, Response

    from staffdesk.config import Settings

# Responses under these prefixes depend on the acting user and must not be cached.
_PER_USER_PREFIXES = (
    "/users",
    "/leave-requests",
    "/purchase-requests",
    "/balances",
    "/dashboard",
    "/payslips",
)


async def _disable_caching(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    response = await call_next(request)
    if request.url.path.startswith(_PER_USER_PREFIXES):
        response.headers["Cache-Control"] = "no-store, no-cache, max-age=0, must-revalidate"
        response.headers.add_vary_header("X-User-Id")
    return response


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """CORS for the portal frontend, plus no-store headers on per-user routes."""
    app.middleware("http")(_disable_caching)
    app.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Content-Type", "X-User-Id"],
    )
