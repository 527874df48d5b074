from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI

    from leave_grant.config import Settings


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware.

    Content-Disposition is exposed so browsers can read the template filename.
    """
    app.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
