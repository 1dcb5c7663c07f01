"""Core domain models.

The composer, the pipeline and the settings store all operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

Role = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    """A single entry in a partner's chat log."""

    role: Role
    content: str = ""
    is_marker: bool = False    # summary checkpoint sentinel
    is_recalled: bool = False  # message was withdrawn after sending


class LorebookEntry(BaseModel):
    """One knowledge snippet. `disable` mirrors the character-card field."""

    content: str = ""
    enabled: bool = True
    disable: bool = False

    @property
    def active(self) -> bool:
        return self.enabled and not self.disable and bool(self.content)


class Lorebook(BaseModel):
    """A named collection of entries, either global or tied to one partner."""

    name: str = ""
    enabled: bool = True
    from_character: bool = False
    character_id: str = ""
    character_name: str = ""
    entries: list[LorebookEntry] = Field(default_factory=list)


class CharacterBook(BaseModel):
    entries: list[LorebookEntry] = Field(default_factory=list)


class CharacterSheet(BaseModel):
    """Card fields of the partner. Accepts the card's `mes_example` key."""

    name: str = ""
    description: str = ""
    personality: str = ""
    scenario: str = ""
    example_dialogue: str = Field(
        default="",
        validation_alias=AliasChoices("example_dialogue", "mes_example"),
    )
    character_book: CharacterBook | None = None


class Partner(BaseModel):
    """The AI-driven conversation counterpart."""

    id: str = ""
    name: str = ""
    character: CharacterSheet = Field(default_factory=CharacterSheet)
    chat_history: list[ChatMessage] = Field(default_factory=list)
    use_custom_api: bool = False
    custom_api_url: str = ""
    custom_api_key: str = ""
    custom_model: str = ""
    custom_sandbox_preamble: bool | None = None  # None → follow global setting


class Persona(BaseModel):
    """A user-persona block injected into every system prompt when enabled."""

    name: str = ""
    content: str = ""
    enabled: bool = True


class Sticker(BaseModel):
    name: str = ""
    url: str = ""


class Song(BaseModel):
    name: str = ""
    artist: str = ""


class HostChatMessage(BaseModel):
    """A message from the host application's own running conversation."""

    text: str = ""
    is_user: bool = False
    name: str = ""


class FeatureToggles(BaseModel):
    """Optional prompt sections. Calls and co-listening turn all of them off."""

    stickers: bool = True
    music_share: bool = True
    call_requests: bool = True

    @classmethod
    def none(cls) -> FeatureToggles:
        return cls(stickers=False, music_share=False, call_requests=False)


class Settings(BaseModel):
    """Global settings, re-read on every call."""

    api_url: str = ""
    api_key: str = ""
    selected_model: str = ""
    temperature: float = 1.0
    max_tokens: int = 8196
    max_retries: int = 3

    sandbox_preamble_enabled: bool = False
    sandbox_preamble_custom: str = ""

    context_enabled: bool = False
    context_level: int = 5
    context_tags: list[str] = Field(default_factory=list)

    user_personas: list[Persona] = Field(default_factory=list)
    selected_lorebooks: list[Lorebook] = Field(default_factory=list)

    stickers: list[Sticker] = Field(default_factory=list)
    user_stickers_enabled: bool = True
    meme_stickers_enabled: bool = False
    meme_stickers: list[str] = Field(default_factory=list)  # empty → built-in list

    # Scenario prompt overrides; blank → built-in prompt
    voice_call_prompt: str = ""
    voice_call_prompt_partner: str = ""
    video_call_prompt: str = ""
    video_call_prompt_partner: str = ""

    def usable_stickers(self) -> list[Sticker]:
        return [s for s in self.stickers if s.url.strip()]
