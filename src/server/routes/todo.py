"""Todo endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

from fastapi import FastAPI, HTTPException, Query

from ..dependencies import load_session, require_loaded, require_user, serialize_todo
from ..schemas import TodoCreateRequest, TodoResponse, TodoUpdateRequest

logger = logging.getLogger(__name__)


def register_todo_routes(app: FastAPI) -> None:
    """Register todo CRUD endpoints."""

    @app.get("/api/todos", response_model=List[TodoResponse])
    async def list_todos(
        view: str = Query(default="all", pattern="^(all|simple|calendar|time)$"),
    ) -> List[TodoResponse]:
        """List todos, optionally restricted to one section."""
        session = await load_session()
        require_user(session)
        items = sorted(session.view(view), key=lambda item: item.id)
        return [serialize_todo(item) for item in items]

    @app.post("/api/todos", response_model=TodoResponse)
    async def create_todo(request: TodoCreateRequest) -> TodoResponse:
        """Create a new todo."""
        session = await load_session()
        require_loaded(session)
        if not request.title.strip():
            raise HTTPException(status_code=422, detail="Title must not be blank")
        if request.time_slot_id is not None and session.registry.get(request.time_slot_id) is None:
            raise HTTPException(status_code=404, detail="Time slot not found")
        try:
            todo = await asyncio.to_thread(
                session.add_todo,
                request.title,
                request.date,
                request.time_slot_id,
            )
        except Exception as exc:
            logger.exception("Failed to create todo: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create todo") from exc
        if todo is None:
            raise HTTPException(status_code=400, detail="Todo was not created")
        return serialize_todo(todo)

    @app.get("/api/todos/{todo_id}", response_model=TodoResponse)
    async def get_todo(todo_id: int) -> TodoResponse:
        """Fetch one todo."""
        session = await load_session()
        require_user(session)
        todo = session.get_todo(todo_id)
        if todo is None:
            raise HTTPException(status_code=404, detail="Todo not found")
        return serialize_todo(todo)

    @app.patch("/api/todos/{todo_id}", response_model=TodoResponse)
    async def update_todo(todo_id: int, request: TodoUpdateRequest) -> TodoResponse:
        """Mark a todo completed or not completed."""
        session = await load_session()
        require_loaded(session)
        todo = await asyncio.to_thread(session.set_completed, todo_id, request.is_completed)
        if todo is None:
            raise HTTPException(status_code=404, detail="Todo not found")
        return serialize_todo(todo)

    @app.delete("/api/todos/{todo_id}")
    async def delete_todo(todo_id: int) -> Dict[str, bool]:
        """Delete a todo and cancel its reminder."""
        session = await load_session()
        require_loaded(session)
        deleted = await asyncio.to_thread(session.delete_todo, todo_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="Todo not found")
        return {"deleted": True}
