"""Time slot endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

from fastapi import FastAPI, HTTPException

from ..dependencies import load_session, require_user, serialize_time_slot
from ..schemas import TimeSlotCreateRequest, TimeSlotModel

logger = logging.getLogger(__name__)


def register_timeslot_routes(app: FastAPI) -> None:
    """Register time slot endpoints."""

    @app.get("/api/timeslots", response_model=List[TimeSlotModel])
    async def list_time_slots() -> List[TimeSlotModel]:
        session = await load_session()
        require_user(session)
        return [serialize_time_slot(slot) for slot in session.time_slots()]

    @app.post("/api/timeslots", response_model=TimeSlotModel)
    async def create_time_slot(request: TimeSlotCreateRequest) -> TimeSlotModel:
        session = await load_session()
        require_user(session)
        try:
            slot = await asyncio.to_thread(
                session.add_time_slot,
                request.start_time,
                request.end_time,
                request.display_name,
            )
        except Exception as exc:
            logger.exception("Failed to create time slot: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create time slot") from exc
        return serialize_time_slot(slot)

    @app.delete("/api/timeslots/{slot_id}")
    async def delete_time_slot(slot_id: int) -> Dict[str, bool]:
        """Remove a slot; todos that embedded it are left unchanged."""
        session = await load_session()
        require_user(session)
        removed = await asyncio.to_thread(session.remove_time_slot, slot_id)
        if not removed:
            logger.info("Time slot %s not found for deletion", slot_id)
            raise HTTPException(status_code=404, detail="Time slot not found")
        return {"deleted": True}
