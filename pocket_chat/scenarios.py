"""Scenario variants: voice call, video call, listening together.

Each scenario reuses the composer with every optional feature turned off
(no stickers, music sharing or call tags inside a call) and appends a
scenario block under a "[Current scene: ...]" header. Calls send the full
conversation window; listening together sends only the last 10 log entries.

Message layout:

    [system, ...history, scene-start marker, ...session messages, user]
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from pocket_chat.composer import (
    HostChat,
    build_system_prompt,
    conversation_window,
    is_summary_marker,
    to_chat_messages,
)
from pocket_chat.models import ChatMessage, FeatureToggles, Partner, Settings, Song
from pocket_chat.prompts import (
    DEFAULT_VIDEO_CALL_PROMPT,
    DEFAULT_VIDEO_CALL_PROMPT_PARTNER,
    DEFAULT_VOICE_CALL_PROMPT,
    DEFAULT_VOICE_CALL_PROMPT_PARTNER,
    LISTEN_TOGETHER_PROMPT,
    UNKNOWN_ARTIST,
    UNKNOWN_SONG,
    build_context,
    render_prompt,
)

CallKind = Literal["voice", "video"]
Initiator = Literal["user", "partner"]

LISTEN_TOGETHER_TAIL = 10
LISTEN_TOGETHER_TEMPERATURE = 0.9
LISTEN_TOGETHER_MAX_TOKENS = 1024

_SCENE_TITLES = {"voice": "voice call", "video": "video call"}


def call_prompt(settings: Settings, kind: CallKind, initiator: Initiator) -> str:
    """Settings override for the call scenario, or the built-in prompt."""
    if kind == "video":
        if initiator == "partner":
            return settings.video_call_prompt_partner or DEFAULT_VIDEO_CALL_PROMPT_PARTNER
        return settings.video_call_prompt or DEFAULT_VIDEO_CALL_PROMPT
    if initiator == "partner":
        return settings.voice_call_prompt_partner or DEFAULT_VOICE_CALL_PROMPT_PARTNER
    return settings.voice_call_prompt or DEFAULT_VOICE_CALL_PROMPT


def call_start_message(kind: CallKind, initiator: Initiator) -> dict[str, str]:
    title = _SCENE_TITLES[kind]
    if initiator == "partner":
        return {"role": "assistant", "content": f"[You started a {title}; the user picked up]"}
    return {"role": "user", "content": f"[The user started a {title}; you picked up]"}


def _scenario_system_prompt(
    partner: Partner,
    settings: Settings,
    scene: str,
    block: str,
    host_chat: HostChat | None,
) -> str:
    base = build_system_prompt(partner, settings, FeatureToggles.none(), host_chat)
    return f"{base}\n\n[Current scene: {scene}]\n{block}"


def _session_messages(messages: Sequence[ChatMessage]) -> list[dict[str, str]]:
    return [
        {"role": "user" if m.role == "user" else "assistant", "content": m.content}
        for m in messages
    ]


def build_call_messages(
    partner: Partner,
    user_message: str,
    settings: Settings,
    kind: CallKind = "voice",
    call_messages: Sequence[ChatMessage] = (),
    initiator: Initiator = "user",
    host_chat: HostChat | None = None,
) -> list[dict[str, str]]:
    """Messages for one turn of a voice or video call."""
    block = render_prompt(
        call_prompt(settings, kind, initiator),
        build_context(partner.character.name or partner.name),
    )
    system = _scenario_system_prompt(partner, settings, _SCENE_TITLES[kind], block, host_chat)

    messages = [{"role": "system", "content": system}]
    messages.extend(to_chat_messages(conversation_window(partner.chat_history)))
    messages.append(call_start_message(kind, initiator))
    messages.extend(_session_messages(call_messages))
    messages.append({"role": "user", "content": user_message})
    return messages


def build_listen_together_messages(
    partner: Partner,
    user_message: str,
    settings: Settings,
    listen_messages: Sequence[ChatMessage] = (),
    song: Song | None = None,
    host_chat: HostChat | None = None,
) -> list[dict[str, str]]:
    """Messages for one turn of a listening-together session."""
    name = (song.name if song else "") or UNKNOWN_SONG
    artist = (song.artist if song else "") or UNKNOWN_ARTIST
    block = render_prompt(
        LISTEN_TOGETHER_PROMPT,
        build_context(partner.character.name or partner.name, name, artist),
    )
    system = _scenario_system_prompt(partner, settings, "listening together", block, host_chat)

    recent = [m for m in partner.chat_history[-LISTEN_TOGETHER_TAIL:] if not is_summary_marker(m)]

    messages = [{"role": "system", "content": system}]
    messages.extend(to_chat_messages(recent))
    messages.append({
        "role": "user",
        "content": f"[The user invited you to listen together: \"{name}\" - {artist}]",
    })
    messages.extend(_session_messages(listen_messages))
    messages.append({"role": "user", "content": user_message})
    return messages
