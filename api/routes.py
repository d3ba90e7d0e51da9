"""
REST + websocket endpoints for gesture sessions.
"""
import asyncio
import time
from typing import Dict
from fastapi import APIRouter, Body, HTTPException
from fastapi import WebSocket, WebSocketDisconnect
import logging

from gestures.config import ConfigStore, Settings
from gestures.emitter import BackgroundSink, BroadcastHub, EventEmitter, LogFileSink
from gestures.errors import InvalidConfig
from gestures.models import FrameResult, GestureRecord, LandmarkFrame, SessionStatus
from gestures.session import GestureSession


router = APIRouter()
settings = Settings()
logger = logging.getLogger(__name__)

config_store = ConfigStore(settings)
event_log = LogFileSink(settings.EVENTS_LOG)
hub = BroadcastHub()
emitter = EventEmitter([BackgroundSink(event_log, name="events-log"), hub])
# records posted by clients are written off the event loop as well
client_log = BackgroundSink(lambda record: event_log.write(record, source="client"), name="client-log")
sessions: Dict[str, GestureSession] = {}

# camelCase names used by browser clients
_CONFIG_ALIASES = {
    "earThreshold": "EAR_THRESHOLD",
    "marThreshold": "MAR_THRESHOLD",
    "smoothingWindow": "SMOOTHING_WINDOW",
    "debounceFrames": "DEBOUNCE_FRAMES",
}


def _get_session(session_id: str) -> GestureSession:
    sess = sessions.get(session_id)
    if sess is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return sess


@router.post("/sessions")
async def create_session():
    sess = GestureSession(config=config_store, emitter=emitter)
    sessions[sess.session_id] = sess
    logger.debug(f"[api] session created id={sess.session_id}")
    return {"session_id": sess.session_id}


@router.get("/sessions/{session_id}", response_model=SessionStatus)
async def session_status(session_id: str):
    return _get_session(session_id).status()


@router.delete("/sessions/{session_id}")
def end_session(session_id: str):
    sess = _get_session(session_id)
    sess.close()
    sessions.pop(session_id, None)
    logger.debug(f"[api] session ended id={session_id}")
    return {"status": "ended"}


@router.post("/sessions/{session_id}/frames", response_model=FrameResult)
def submit_frame(session_id: str, frame: LandmarkFrame):
    """
    Run one landmark frame through the session.

    Returns the per-frame snapshot; skipped frames come back with status
    "missing_landmarks" or "dropped" instead of an error.
    """
    return _get_session(session_id).process(frame)


@router.get("/config")
async def get_config():
    return config_store.get().model_dump()


@router.patch("/config")
async def update_config(changes: dict = Body(...)):
    """
    Apply a partial runtime config update; takes effect from the next frame.

    Keys may be the Settings field names or the camelCase aliases
    (earThreshold, marThreshold, smoothingWindow, debounceFrames).
    """
    mapped = {_CONFIG_ALIASES.get(k, k): v for k, v in changes.items()}
    try:
        new = config_store.update(**mapped)
    except InvalidConfig as e:
        raise HTTPException(status_code=422, detail=str(e))
    return new.model_dump()


@router.post("/gesture")
async def log_gesture(record: GestureRecord):
    """
    Accept a gesture record produced elsewhere (e.g. a browser client), append it
    to the events log and re-broadcast it to websocket listeners.
    """
    data = record.model_dump(exclude_none=True)
    data.setdefault("timestamp", int(time.time() * 1000))
    client_log(data)
    hub.publish(data)
    return {"status": "logged"}


async def _forward(ws: WebSocket, q: asyncio.Queue) -> None:
    while True:
        record = await q.get()
        await ws.send_json(record)


async def _until_disconnect(ws: WebSocket) -> None:
    # incoming messages are ignored
    while True:
        msg = await ws.receive()
        if msg["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/events")
async def events_stream(ws: WebSocket):
    # subscribe before accepting so nothing published after the handshake is missed
    q = hub.subscribe()
    try:
        await ws.accept()
        tasks = {asyncio.create_task(_forward(ws, q)), asyncio.create_task(_until_disconnect(ws))}
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for t in pending:
            t.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for t in done:
            exc = t.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc
    finally:
        hub.unsubscribe(q)
        logger.debug("[api] websocket subscriber removed")
