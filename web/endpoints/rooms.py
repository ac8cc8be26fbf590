"""Room REST and WebSocket endpoints."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel
from pydantic import ValidationError as PayloadValidationError

from debate_room.core import RoomEngine
from debate_room.exceptions import InvalidPayloadError, RoomNotFoundError, ValidationError
from debate_room.models import PolicyEntry
from web.room_requests import (
    EndTurnRequest,
    InboundEvent,
    JoinRoomRequest,
    LeaveRoomRequest,
    RequestMotionRequest,
    SendMessageRequest,
    SpeakerRequest,
    StartConversationRequest,
    SubmitMotionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")
ws_router = APIRouter()


def get_room_engine() -> RoomEngine:
    """Get the global room engine."""
    # Import here to avoid circular imports
    from web import api

    if api.room_engine is None:
        raise HTTPException(status_code=503, detail="Room engine is not running")
    return api.room_engine


@router.get("/rooms")
async def list_rooms():
    """List active rooms."""
    engine = get_room_engine()
    return {"rooms": engine.list_rooms()}


@router.get("/rooms/{room_id}")
async def get_room(room_id: str):
    """Current state of one room."""
    engine = get_room_engine()
    try:
        return await engine.snapshot(room_id)
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")


@router.get("/rooms/{room_id}/messages")
async def get_room_messages(room_id: str):
    """Message history of one room, oldest first."""
    engine = get_room_engine()
    try:
        return {"roomId": room_id, "messages": engine.history(room_id)}
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")


@dataclass
class RoomSession:
    """What one WebSocket connection has joined."""

    websocket: WebSocket
    room_id: str | None = None
    username: str | None = None


class RoomEventDispatcher:
    """Maps inbound event names to engine operations for one connection."""

    def __init__(self, engine: RoomEngine, session: RoomSession):
        self.engine = engine
        self.session = session
        self._routes: dict[str, tuple[type[BaseModel], Callable[[Any], Awaitable[None]]]] = {
            "join-room": (JoinRoomRequest, self.join_room),
            "start-conversation": (StartConversationRequest, self.start_conversation),
            "send-message": (SendMessageRequest, self.send_message),
            "end-turn": (EndTurnRequest, self.end_turn),
            "request-motion": (RequestMotionRequest, self.request_motion),
            "submit-motion": (SubmitMotionRequest, self.submit_motion),
            "leave-room": (LeaveRoomRequest, self.leave_room),
        }

    async def dispatch(self, frame: str | bytes) -> None:
        try:
            inbound = InboundEvent.model_validate_json(frame)
            route = self._routes.get(inbound.event)
            if route is None:
                raise InvalidPayloadError(f"Unknown event '{inbound.event}'")
            request_model, handler = route
            request = request_model.model_validate(inbound.payload)
        except PayloadValidationError as e:
            raise InvalidPayloadError(f"Invalid payload: {e.error_count()} error(s)") from e
        await handler(request)

    async def join_room(self, request: JoinRoomRequest) -> None:
        if self.session.room_id is not None:
            await self.disconnect()

        policy = None
        tolerance_level = request.tolerance_level
        if request.policy is not None:
            entries = [
                PolicyEntry(name=entry.name, prompt=entry.prompt, category=entry.category)
                for entry in request.policy.entries
            ]
            policy = self.engine.build_policy(
                entries,
                topic=request.policy.topic,
                turn_duration_seconds=request.policy.turn_duration_seconds,
                total_duration_seconds=request.policy.total_duration_seconds,
                motion_prompt=request.policy.motion_prompt,
            )
            if tolerance_level is None:
                tolerance_level = request.policy.tolerance_level

        await self.engine.join(
            request.room_id,
            self.session.websocket,
            request.username,
            policy=policy,
            tolerance_level=tolerance_level,
        )
        self.session.room_id = request.room_id
        self.session.username = request.username

    async def start_conversation(self, request: StartConversationRequest) -> None:
        await self.engine.start(request.room_id, self._speaker(request))

    async def send_message(self, request: SendMessageRequest) -> None:
        await self.engine.send_message(request.room_id, self._speaker(request), request.body)

    async def end_turn(self, request: EndTurnRequest) -> None:
        await self.engine.end_turn(request.room_id, self._speaker(request))

    async def request_motion(self, request: RequestMotionRequest) -> None:
        await self.engine.request_motion(
            request.room_id, self._speaker(request), request.verdict_ref
        )

    async def submit_motion(self, request: SubmitMotionRequest) -> None:
        await self.engine.submit_clarification(
            request.room_id, self._speaker(request), request.verdict_ref, request.clarification
        )

    async def leave_room(self, request: LeaveRoomRequest) -> None:
        await self.engine.leave(request.room_id, self.session.websocket)
        if self.session.room_id == request.room_id:
            self.session.room_id = None
            self.session.username = None

    async def disconnect(self) -> None:
        """Leave the joined room, if any, when the connection goes away."""
        room_id = self.session.room_id
        if room_id is None:
            return
        self.session.room_id = None
        self.session.username = None
        try:
            await self.engine.leave(room_id, self.session.websocket)
        except RoomNotFoundError:
            logger.debug(f"Room {room_id} already gone on disconnect")

    def _speaker(self, request: SpeakerRequest) -> str:
        # A connection may only act as the participant it joined as
        if self.session.room_id is not None and self.session.room_id != request.room_id:
            raise InvalidPayloadError("roomId does not match this connection")
        if self.session.username is not None and self.session.username != request.username:
            raise InvalidPayloadError("username does not match this connection")
        return request.username


@ws_router.websocket("/ws/rooms")
async def room_websocket(websocket: WebSocket):
    """WebSocket endpoint carrying every room event for one client."""
    await websocket.accept()
    engine = get_room_engine()
    dispatcher = RoomEventDispatcher(engine, RoomSession(websocket=websocket))

    try:
        while True:
            frame = await websocket.receive_text()
            try:
                await dispatcher.dispatch(frame)
            except ValidationError as e:
                logger.debug(f"Rejected request: {e.code}: {e.message}")
                await websocket.send_json({"event": "error", "payload": e.to_payload()})
    except WebSocketDisconnect:
        logger.debug("Room WebSocket disconnected")
    finally:
        await dispatcher.disconnect()
