"""Pydantic request/response models for API endpoints."""

from typing import Literal

from pydantic import BaseModel, Field

from pocket_chat.models import ChatMessage, Partner, Song


class ChatBody(BaseModel):
    partner: Partner
    message: str


class CallBody(BaseModel):
    partner: Partner
    message: str
    call_messages: list[ChatMessage] = Field(default_factory=list)
    initiator: Literal["user", "partner"] = "user"


class ListenTogetherBody(BaseModel):
    partner: Partner
    message: str
    listen_messages: list[ChatMessage] = Field(default_factory=list)
    song: Song | None = None


class ModelsBody(BaseModel):
    api_url: str | None = None
    api_key: str = ""


class ReplyResponse(BaseModel):
    reply: str
