"""Inbound WebSocket payloads."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class RoomRequest(BaseModel):
    """Common shape of every room-scoped request."""

    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId", min_length=1)

    @field_validator("room_id")
    @classmethod
    def validate_room_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("roomId must not be blank")
        return v


class SpeakerRequest(RoomRequest):
    username: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("username must not be blank")
        return v


class PolicyEntryRequest(BaseModel):
    name: str
    prompt: str = ""
    category: str | None = None


class RoomPolicyRequest(BaseModel):
    """Moderation policy sent by the room creator."""

    model_config = ConfigDict(populate_by_name=True)

    entries: list[PolicyEntryRequest] = Field(default_factory=list)
    topic: str = ""
    tolerance_level: int | None = Field(default=None, alias="toleranceLevel")
    turn_duration_seconds: float | None = Field(default=None, alias="turnDurationSeconds", gt=0)
    total_duration_seconds: float | None = Field(default=None, alias="totalDurationSeconds", gt=0)
    motion_prompt: str | None = Field(default=None, alias="motionPrompt")

    @field_validator("motion_prompt")
    @classmethod
    def validate_motion_prompt(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("motionPrompt must not be blank")
        return v


class JoinRoomRequest(SpeakerRequest):
    policy: RoomPolicyRequest | None = None
    tolerance_level: int | None = Field(default=None, alias="toleranceLevel")


class StartConversationRequest(SpeakerRequest):
    pass


class SendMessageRequest(SpeakerRequest):
    body: str = Field(..., min_length=1, validation_alias=AliasChoices("body", "message"))


class EndTurnRequest(SpeakerRequest):
    pass


class RequestMotionRequest(SpeakerRequest):
    verdict_ref: int = Field(..., alias="verdictRef")


class SubmitMotionRequest(RequestMotionRequest):
    clarification: str = Field(..., min_length=1)


class LeaveRoomRequest(RoomRequest):
    pass


class InboundEvent(BaseModel):
    """Envelope of every client frame."""

    event: str
    payload: dict[str, Any] = Field(default_factory=dict)
