"""
Real-time API endpoints for the LiveCoach hub.

The websocket endpoint hands each socket to the SessionHub stored on
``app.state.hub``; the HTTP endpoints expose presence, server-initiated
broadcast and the ephemeral histories.
"""

import time
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from ..exceptions import StoreUnavailable
from ..logging.logging_config import get_logger
from ..persistence.ephemeral_store import chat_history_key, heart_rate_key
from ..realtime.envelope import build_event
from ..realtime.room_ids import personal_room_id
from ..realtime.session_hub import SessionHub

logger = get_logger(__name__)

realtime_router = APIRouter(prefix="/api/realtime", tags=["realtime"])

SERVICE_UNAVAILABLE_CLOSE_CODE = 1013

FEATURES = [
    "session-rooms",
    "challenge-rooms",
    "chat-history",
    "heart-rate-streaming",
    "heart-rate-alerts",
    "form-feedback",
    "live-workout-sharing",
    "post-like-notifications",
]


class BroadcastRequest(BaseModel):
    """Server-initiated broadcast; no user ids means every connection."""

    model_config = ConfigDict(populate_by_name=True)

    data: dict[str, Any] = Field(default_factory=dict)
    user_ids: list[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]] = Field(
        default_factory=list, alias="userIds"
    )


def _get_hub(state: Any) -> SessionHub:
    hub = getattr(state, "hub", None)
    if hub is None:
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")
    return hub


def extract_websocket_token(websocket: WebSocket) -> tuple[str | None, str | None]:
    """
    Find the bearer token of a websocket handshake.

    The ``Sec-WebSocket-Protocol: bearer, <token>`` form wins over the
    ``token`` query parameter.

    Returns:
        (token, subprotocol to echo on accept)
    """
    token = websocket.query_params.get("token")
    subprotocol = None
    header = websocket.headers.get("sec-websocket-protocol")
    if header:
        parts = [p.strip() for p in header.split(",") if p.strip()]
        lowered = [p.lower() for p in parts]
        if "bearer" in lowered:
            subprotocol = parts[lowered.index("bearer")]
            others = [p for p in parts if p.lower() != "bearer"]
            if others:
                token = others[0]
        elif parts and token is None:
            token = parts[-1]
            subprotocol = parts[-1]
    return token, subprotocol


@realtime_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for live coaching sessions."""
    hub = getattr(websocket.app.state, "hub", None)
    if hub is None:
        await websocket.accept()
        await websocket.send_json(build_event("error", {"message": "Service temporarily unavailable"}))
        await websocket.close(code=SERVICE_UNAVAILABLE_CLOSE_CODE)
        return

    token, subprotocol = extract_websocket_token(websocket)
    await hub.serve(websocket, token, subprotocol=subprotocol)


@realtime_router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Service status and live counters."""
    hub = _get_hub(request.app.state)
    store = hub.router.store
    ping = getattr(store, "ping", None)
    store_ok = await ping() if ping is not None else True

    return {
        "status": "healthy" if store_ok else "degraded",
        "store": "up" if store_ok else "down",
        "features": FEATURES,
        **hub.statistics(),
        "timestamp": time.time(),
    }


@realtime_router.get("/connected-users")
async def connected_users(request: Request) -> dict[str, Any]:
    hub = _get_hub(request.app.state)
    users = sorted(hub.directory.connected_user_ids())
    return {"users": users, "count": len(users)}


@realtime_router.post("/broadcast")
async def broadcast(body: BroadcastRequest, request: Request) -> dict[str, Any]:
    """Send a ``broadcast`` event to the listed users, or to everyone."""
    hub = _get_hub(request.app.state)
    directory = hub.directory

    delivered = 0
    failed = 0
    if body.user_ids:
        for user_id in dict.fromkeys(body.user_ids):
            room_id = personal_room_id(user_id)
            result = await directory.broadcast(room_id, build_event("broadcast", body.data, room_id=room_id))
            delivered += len(result.delivered)
            failed += len(result.failed)
    else:
        result = await directory.broadcast_all(build_event("broadcast", body.data))
        delivered, failed = len(result.delivered), len(result.failed)

    logger.info("Server broadcast sent", targets=len(body.user_ids) or "all", delivered=delivered, failed=failed)
    return {"delivered": delivered, "failed": failed}


@realtime_router.get("/sessions/{session_id}/chat")
async def chat_history(
    session_id: str, request: Request, since: float | None = Query(default=None, description="Epoch seconds")
) -> dict[str, Any]:
    hub = _get_hub(request.app.state)
    try:
        messages = await hub.router.store.list_since(chat_history_key(session_id), since)
    except StoreUnavailable as e:
        logger.error("Chat history unavailable", session_id=session_id, error=e.message)
        raise HTTPException(status_code=503, detail="Chat history temporarily unavailable") from e
    return {"sessionId": session_id, "messages": messages, "count": len(messages)}


@realtime_router.get("/users/{user_id}/heart-rate")
async def heart_rate_history(user_id: str, request: Request) -> dict[str, Any]:
    hub = _get_hub(request.app.state)
    try:
        samples = await hub.router.store.list_since(heart_rate_key(user_id))
    except StoreUnavailable as e:
        logger.error("Heart-rate history unavailable", user_id=user_id, error=e.message)
        raise HTTPException(status_code=503, detail="Heart-rate history temporarily unavailable") from e
    return {"userId": user_id, "samples": samples, "count": len(samples)}
