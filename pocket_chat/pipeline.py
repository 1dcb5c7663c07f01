"""Chat pipeline — the entry point every conversational feature calls.

Each call:
  1. Re-reads settings (they may change between calls).
  2. Resolves the endpoint for the partner; a missing URL or model fails here.
  3. Builds the message list (direct chat, call or listening together).
  4. Sends it through ChatCompletionClient, which waits on the endpoint's
     cooldown gate and retries transient failures.

All executors created here share one CooldownRegistry, so a rate limit hit
by a voice call also slows down chat and co-listening against the same
provider.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import httpx

from pocket_chat.composer import HostChat, build_messages
from pocket_chat.cooldown import CooldownRegistry
from pocket_chat.errors import LLMError
from pocket_chat.executor import RequestExecutor, RetryObserver, RetryPolicy
from pocket_chat.llm import (
    ApiEndpointConfig,
    ChatCompletionClient,
    require_model,
    require_url,
    resolve_endpoint,
)
from pocket_chat.models import ChatMessage, Partner, Settings, Song
from pocket_chat.scenarios import (
    LISTEN_TOGETHER_MAX_TOKENS,
    LISTEN_TOGETHER_TEMPERATURE,
    CallKind,
    Initiator,
    build_call_messages,
    build_listen_together_messages,
)

logger = logging.getLogger(__name__)

SettingsProvider = Callable[[], Settings]


@dataclass
class ConnectionCheck:
    success: bool
    message: str
    models: list[str] = field(default_factory=list)


class ChatPipeline:
    """Composes prompts and sends them with retries and shared cooldowns.

    Args:
        settings:  Callable returning the current Settings.
        host_chat: Optional accessor for the host application's chat.
        cooldowns: Registry shared by every call this pipeline makes.
        client:    Optional shared httpx.AsyncClient.
        timeout:   HTTP timeout in seconds.
        executor:  Prebuilt executor; replaces cooldowns, client and timeout.
    """

    def __init__(
        self,
        settings: SettingsProvider,
        host_chat: HostChat | None = None,
        cooldowns: CooldownRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
        executor: RequestExecutor | None = None,
    ) -> None:
        self._settings = settings
        self._host_chat = host_chat
        self._executor = executor or RequestExecutor(
            cooldowns=cooldowns, client=client, timeout=timeout,
        )

    @property
    def cooldowns(self) -> CooldownRegistry:
        return self._executor.cooldowns

    def _client(self, endpoint: ApiEndpointConfig, settings: Settings) -> ChatCompletionClient:
        policy = RetryPolicy(max_retries=settings.max_retries)
        return ChatCompletionClient(endpoint, self._executor, policy)

    def _prepare(self, partner: Partner) -> tuple[Settings, ChatCompletionClient]:
        settings = self._settings()
        endpoint = resolve_endpoint(settings, partner)
        require_url(endpoint)
        require_model(endpoint)
        return settings, self._client(endpoint, settings)

    async def reply(
        self,
        partner: Partner,
        user_message: str,
        on_retry: RetryObserver | None = None,
    ) -> str:
        """Direct chat: one reply from the partner."""
        settings, client = self._prepare(partner)
        messages = build_messages(partner, user_message, settings, self._host_chat)
        logger.info("chat partner=%s messages=%d", partner.id or partner.name, len(messages))
        return await client.complete(
            messages,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            on_retry=on_retry,
        )

    async def call_reply(
        self,
        partner: Partner,
        user_message: str,
        kind: CallKind = "voice",
        call_messages: Sequence[ChatMessage] = (),
        initiator: Initiator = "user",
        on_retry: RetryObserver | None = None,
    ) -> str:
        settings, client = self._prepare(partner)
        messages = build_call_messages(
            partner, user_message, settings,
            kind=kind, call_messages=call_messages, initiator=initiator,
            host_chat=self._host_chat,
        )
        logger.info("%s call partner=%s initiator=%s", kind, partner.id or partner.name, initiator)
        return await client.complete(
            messages,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            on_retry=on_retry,
        )

    async def voice_call_reply(
        self,
        partner: Partner,
        user_message: str,
        call_messages: Sequence[ChatMessage] = (),
        initiator: Initiator = "user",
        on_retry: RetryObserver | None = None,
    ) -> str:
        return await self.call_reply(partner, user_message, "voice", call_messages, initiator, on_retry)

    async def video_call_reply(
        self,
        partner: Partner,
        user_message: str,
        call_messages: Sequence[ChatMessage] = (),
        initiator: Initiator = "user",
        on_retry: RetryObserver | None = None,
    ) -> str:
        return await self.call_reply(partner, user_message, "video", call_messages, initiator, on_retry)

    async def listen_together_reply(
        self,
        partner: Partner,
        user_message: str,
        listen_messages: Sequence[ChatMessage] = (),
        song: Song | None = None,
        on_retry: RetryObserver | None = None,
    ) -> str:
        settings, client = self._prepare(partner)
        messages = build_listen_together_messages(
            partner, user_message, settings,
            listen_messages=listen_messages, song=song, host_chat=self._host_chat,
        )
        return await client.complete(
            messages,
            temperature=LISTEN_TOGETHER_TEMPERATURE,
            max_tokens=LISTEN_TOGETHER_MAX_TOKENS,
            on_retry=on_retry,
        )

    async def list_models(self, api_url: str | None = None, api_key: str | None = None) -> list[str]:
        """Model ids from the given endpoint, or from the global settings."""
        settings = self._settings()
        if api_url is None:
            endpoint = resolve_endpoint(settings)
        else:
            endpoint = ApiEndpointConfig(url=api_url, api_key=api_key or "")
        return await self._client(endpoint, settings).list_models()

    async def check_connection(self) -> ConnectionCheck:
        """Try the global endpoint's /models and report the outcome."""
        settings = self._settings()
        if not settings.api_url:
            return ConnectionCheck(False, "API URL is not configured — set it in Settings")
        try:
            models = await self.list_models()
        except LLMError as e:
            return ConnectionCheck(False, f"Connection failed: {e}")
        return ConnectionCheck(True, "Connected", models)
