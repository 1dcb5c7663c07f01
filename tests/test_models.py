"""Tests for pocket_chat.models."""

import pytest
from pydantic import ValidationError

from pocket_chat.models import (
    CharacterSheet,
    ChatMessage,
    FeatureToggles,
    LorebookEntry,
    Partner,
    Settings,
    Sticker,
)


class TestChatMessage:
    def test_defaults(self) -> None:
        m = ChatMessage(role="user", content="hi")
        assert m.is_marker is False
        assert m.is_recalled is False

    def test_invalid_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChatMessage(role="narrator", content="x")


class TestCharacterSheet:
    def test_card_key_alias(self) -> None:
        sheet = CharacterSheet.model_validate({"name": "Mia", "mes_example": "<START>hi"})
        assert sheet.example_dialogue == "<START>hi"

    def test_field_name_accepted(self) -> None:
        sheet = CharacterSheet.model_validate({"example_dialogue": "hello"})
        assert sheet.example_dialogue == "hello"

    def test_embedded_book_parsed(self) -> None:
        sheet = CharacterSheet.model_validate({
            "character_book": {"entries": [{"content": "a"}, {"content": "b", "disable": True}]},
        })
        assert [e.active for e in sheet.character_book.entries] == [True, False]


class TestLorebookEntry:
    def test_string_false_disables(self) -> None:
        assert LorebookEntry(content="x", enabled="false").active is False

    def test_empty_content_inactive(self) -> None:
        assert LorebookEntry(content="").active is False


class TestPartner:
    def test_sandbox_override_defaults_to_none(self) -> None:
        assert Partner().custom_sandbox_preamble is None

    def test_roundtrip(self) -> None:
        p = Partner(
            id="c1", name="Mia",
            chat_history=[ChatMessage(role="assistant", content="hey")],
            use_custom_api=True, custom_model="m",
        )
        assert Partner.model_validate(p.model_dump()) == p


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings()
        assert s.temperature == 1.0
        assert s.max_tokens == 8196
        assert s.max_retries == 3
        assert s.context_level == 5
        assert s.user_stickers_enabled is True

    def test_usable_stickers_need_url(self) -> None:
        s = Settings(stickers=[Sticker(name="a", url=""), Sticker(name="b", url="https://x/b.png")])
        assert [st.name for st in s.usable_stickers()] == ["b"]


def test_feature_toggles_none():
    assert FeatureToggles.none() == FeatureToggles(stickers=False, music_share=False, call_requests=False)
    assert FeatureToggles().stickers is True
