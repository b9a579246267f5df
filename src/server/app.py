"""FastAPI application bootstrap."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import (
    register_auth_routes,
    register_reminder_routes,
    register_timeslot_routes,
    register_todo_routes,
    register_view_routes,
)
from .schemas import HealthResponse


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Todo List API", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    register_auth_routes(app)
    register_todo_routes(app)
    register_timeslot_routes(app)
    register_view_routes(app)
    register_reminder_routes(app)

    return app


app = create_app()
