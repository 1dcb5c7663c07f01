"""Reply endpoints: direct chat, voice/video calls, listening together."""

import logging
from typing import Literal

from fastapi import APIRouter, HTTPException, Request

from pocket_chat.errors import ConfigurationError, LLMError
from pocket_chat.prompts import PromptError

from .models import CallBody, ChatBody, ListenTogetherBody, ReplyResponse

logger = logging.getLogger(__name__)

router = APIRouter()


async def _run(coro) -> ReplyResponse:
    try:
        return ReplyResponse(reply=await coro)
    except ConfigurationError as e:
        raise HTTPException(400, str(e))
    except PromptError as e:
        raise HTTPException(400, str(e))
    except LLMError as e:
        logger.info("reply failed: %s", e)
        raise HTTPException(502, str(e))


@router.post("/chat", response_model=ReplyResponse)
async def chat(body: ChatBody, request: Request):
    """One reply from the partner for a direct chat message."""
    pipeline = request.app.state.pipeline
    return await _run(pipeline.reply(body.partner, body.message))


@router.post("/calls/{kind}", response_model=ReplyResponse)
async def call(kind: Literal["voice", "video"], body: CallBody, request: Request):
    """One partner turn inside a voice or video call."""
    pipeline = request.app.state.pipeline
    return await _run(pipeline.call_reply(
        body.partner, body.message,
        kind=kind, call_messages=body.call_messages, initiator=body.initiator,
    ))


@router.post("/listen-together", response_model=ReplyResponse)
async def listen_together(body: ListenTogetherBody, request: Request):
    """One partner turn while listening to a song together."""
    pipeline = request.app.state.pipeline
    return await _run(pipeline.listen_together_reply(
        body.partner, body.message,
        listen_messages=body.listen_messages, song=body.song,
    ))
