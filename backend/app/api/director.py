"""
FastAPI endpoints for running director sessions.
A session owns one DirectorState; every call mutates it under the session lock.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backend.app.config import DEFAULT_SEED, resolve_config_path, resolve_library_dir
from backend.app.director.engine import NarrativeDirector
from backend.app.director.errors import SnapshotError, StoryletLookupError
from backend.app.director.persistence import DirectorSnapshot, from_snapshot, to_snapshot
from backend.app.director.settings import load_director_config
from backend.app.director.state import DirectorState
from backend.app.models.director import QueuedEvent, QueueSource, StepResult
from backend.app.models.world import MemoryFact, WorldSnapshot
from backend.app.world.memory_log import MemoryLog
from backend.app.world.storylet_loader import load_storylet_library

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/director", tags=["director"])


@dataclass
class DirectorSession:
    state: DirectorState
    lock: threading.Lock = field(default_factory=threading.Lock)


_SESSIONS: dict[str, DirectorSession] = {}


@lru_cache(maxsize=1)
def get_director() -> NarrativeDirector:
    """Build the process-wide director from the configured data paths."""
    config = load_director_config(resolve_config_path())
    library = load_storylet_library(resolve_library_dir())
    return NarrativeDirector(config, library)


def reset_sessions() -> None:
    _SESSIONS.clear()


class CreateSessionRequest(BaseModel):
    seed: Optional[int] = None


class SessionResponse(BaseModel):
    session_id: str
    seed: int
    tick: int
    heat: float
    queue_size: int


class StepRequest(BaseModel):
    world: WorldSnapshot = Field(default_factory=WorldSnapshot)
    memory: List[MemoryFact] = Field(default_factory=list)


class ScheduleRequest(BaseModel):
    storylet_key: int
    delay_ticks: int = 0
    source: QueueSource = QueueSource.SCHEDULED
    max_wait_ticks: Optional[int] = None
    priority: int = 0
    forced: bool = False


class ScheduleResponse(BaseModel):
    queued: QueuedEvent
    evicted: List[int] = Field(default_factory=list)


class AdvanceMilestoneRequest(BaseModel):
    amount: float = Field(ge=0, allow_inf_nan=False)


def _get_session(session_id: str) -> DirectorSession:
    session = _SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return session


def _session_response(session_id: str, state: DirectorState) -> SessionResponse:
    return SessionResponse(
        session_id=session_id,
        seed=state.seed,
        tick=state.tick,
        heat=state.heat,
        queue_size=len(state.queue),
    )


@router.post("/sessions", response_model=SessionResponse)
def create_session(body: CreateSessionRequest, director: NarrativeDirector = Depends(get_director)):
    """Start a new director session from a seed."""
    seed = DEFAULT_SEED if body.seed is None else body.seed
    session_id = uuid.uuid4().hex
    state = director.new_state(seed=seed)
    _SESSIONS[session_id] = DirectorSession(state=state)
    logger.info("Created director session %s (seed=%d)", session_id, seed)
    return _session_response(session_id, state)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str):
    session = _get_session(session_id)
    return _session_response(session_id, session.state)


@router.post("/sessions/{session_id}/step", response_model=StepResult)
def step_session(session_id: str, body: StepRequest, director: NarrativeDirector = Depends(get_director)):
    """Advance the session by one tick."""
    session = _get_session(session_id)
    memory = MemoryLog(body.memory)
    with session.lock:
        return director.step(session.state, body.world, memory)


@router.post("/sessions/{session_id}/schedule", response_model=ScheduleResponse)
def schedule_storylet(session_id: str, body: ScheduleRequest, director: NarrativeDirector = Depends(get_director)):
    session = _get_session(session_id)
    with session.lock:
        try:
            event, evicted = director.schedule(
                session.state,
                body.storylet_key,
                delay_ticks=body.delay_ticks,
                source=body.source,
                max_wait_ticks=body.max_wait_ticks,
                priority=body.priority,
                forced=body.forced,
            )
        except StoryletLookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
    return ScheduleResponse(queued=event, evicted=[e.storylet_key for e in evicted])


@router.delete("/sessions/{session_id}/queue/{sequence}", response_model=QueuedEvent)
def cancel_queued(session_id: str, sequence: int):
    """Drop a pending queue entry by its sequence number."""
    session = _get_session(session_id)
    with session.lock:
        event = session.state.queue.remove(sequence)
    if event is None:
        raise HTTPException(status_code=404, detail=f"No queued entry with sequence {sequence}")
    return event


@router.post("/sessions/{session_id}/milestones/{milestone_id}/advance", response_model=List[QueuedEvent])
def advance_milestone(
    session_id: str,
    milestone_id: str,
    body: AdvanceMilestoneRequest,
    director: NarrativeDirector = Depends(get_director),
):
    session = _get_session(session_id)
    with session.lock:
        if milestone_id not in session.state.milestones:
            raise HTTPException(status_code=404, detail=f"Milestone '{milestone_id}' not found")
        return director.advance_milestone(session.state, milestone_id, body.amount)


@router.post("/sessions/{session_id}/outcomes/{storylet_key}", response_model=List[QueuedEvent])
def apply_outcome(session_id: str, storylet_key: int, director: NarrativeDirector = Depends(get_director)):
    """Report that a fired storylet's outcome was applied; returns milestone events it queued."""
    session = _get_session(session_id)
    with session.lock:
        try:
            return director.apply_storylet_outcome(session.state, storylet_key)
        except StoryletLookupError as e:
            raise HTTPException(status_code=404, detail=str(e))

@router.post("/sessions/{session_id}/pressures/{pressure_id}/resolve")
def resolve_pressure(session_id: str, pressure_id: str, director: NarrativeDirector = Depends(get_director)):
    session = _get_session(session_id)
    with session.lock:
        if pressure_id not in session.state.pressures:
            raise HTTPException(status_code=404, detail=f"Pressure '{pressure_id}' not found")
        director.resolve_pressure(session.state, pressure_id)
    return {"pressure_id": pressure_id, "resolved": True}


@router.get("/sessions/{session_id}/snapshot", response_model=DirectorSnapshot)
def get_snapshot(session_id: str):
    session = _get_session(session_id)
    with session.lock:
        return to_snapshot(session.state)


@router.put("/sessions/{session_id}/snapshot", response_model=Dict[str, Any])
def restore_snapshot(
    session_id: str,
    snapshot: DirectorSnapshot,
    director: NarrativeDirector = Depends(get_director),
):
    """Replace (or create) a session's state from a snapshot."""
    warnings: list[str] = []
    try:
        state = from_snapshot(snapshot, director.config, diagnostics=warnings)
    except SnapshotError as e:
        raise HTTPException(status_code=422, detail=str(e))
    fresh = DirectorSession(state=state)
    session = _SESSIONS.setdefault(session_id, fresh)
    if session is not fresh:
        # Swap under the existing lock so an in-flight step finishes on the old state.
        with session.lock:
            session.state = state
    logger.info("Restored director session %s at tick %d", session_id, state.tick)
    return {"session": _session_response(session_id, state).model_dump(), "warnings": warnings}


@router.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    _get_session(session_id)
    del _SESSIONS[session_id]
    return {"session_id": session_id, "deleted": True}
