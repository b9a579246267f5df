"""Sign-up, login and logout endpoints."""

from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, HTTPException

from src.sync.accounts import AccountError

from ..dependencies import get_day_expansion, load_session, require_user, serialize_user
from ..schemas import CredentialsRequest, UserResponse

logger = logging.getLogger(__name__)


def register_auth_routes(app: FastAPI) -> None:
    """Register account endpoints."""

    @app.post("/api/auth/signup", response_model=UserResponse)
    async def signup(request: CredentialsRequest) -> UserResponse:
        """Create an account and sign in to it."""
        session = await load_session()
        try:
            user = await asyncio.to_thread(session.sign_up, request.email, request.password)
        except AccountError as exc:
            logger.warning("Sign-up rejected: %s", exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return serialize_user(user)

    @app.post("/api/auth/login", response_model=UserResponse)
    async def login(request: CredentialsRequest) -> UserResponse:
        """Sign in with email and password."""
        session = await load_session()
        try:
            user = await asyncio.to_thread(
                session.sign_in, request.email, request.password, request.remember
            )
        except AccountError as exc:
            logger.warning("Login rejected: %s", exc)
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        return serialize_user(user)

    @app.post("/api/auth/logout")
    async def logout() -> dict:
        """Sign out and stop syncing."""
        session = await load_session()
        await asyncio.to_thread(session.logout)
        get_day_expansion().expanded.clear()
        return {"logged_out": True}

    @app.get("/api/auth/me", response_model=UserResponse)
    async def me() -> UserResponse:
        """Return the signed-in account."""
        return serialize_user(require_user(await load_session()))
