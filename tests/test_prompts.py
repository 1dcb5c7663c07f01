"""Tests for Handlebars prompt rendering: template compilation, context building,
and the built-in scenario templates."""

import pytest

from pocket_chat.prompts import (
    DEFAULT_VOICE_CALL_PROMPT,
    LISTEN_TOGETHER_PROMPT,
    PromptError,
    build_context,
    render_prompt,
)


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    result = render_prompt("Hello {{char.name}}!", {"char": {"name": "Mia"}})
    assert result == "Hello Mia!"


def test_render_if_conditional():
    tpl = "{{#if show}}yes{{else}}no{{/if}}"
    assert render_prompt(tpl, {"show": True}) == "yes"
    assert render_prompt(tpl, {"show": False}) == "no"


def test_render_missing_variable():
    assert render_prompt("Hello {{name}}!", {}) == "Hello !"


def test_render_triple_stash_not_escaped():
    assert render_prompt("{{{song_name}}}", {"song_name": "Rock & Roll"}) == "Rock & Roll"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── build_context ────────────────────────────────────────────


def test_build_context_without_song():
    ctx = build_context("Mia")
    assert ctx == {"char": {"name": "Mia"}}


def test_build_context_song_defaults():
    ctx = build_context("Mia", song_name="", song_artist=None)
    assert ctx["song_name"] == "Unknown song"
    assert ctx["song_artist"] == "Unknown artist"
    assert ctx["song"] == {"name": "Unknown song", "artist": "Unknown artist"}


# ── built-in templates ───────────────────────────────────────


def test_listen_together_substitutes_song():
    text = render_prompt(LISTEN_TOGETHER_PROMPT, build_context("Mia", "Sunny Day", "Jay Chou"))
    assert "Now playing: Sunny Day - Jay Chou" in text
    assert "{{" not in text
    assert "[switch-song:song title]" in text


def test_voice_call_prompt_renders_unchanged():
    assert render_prompt(DEFAULT_VOICE_CALL_PROMPT, build_context("Mia")) == DEFAULT_VOICE_CALL_PROMPT
