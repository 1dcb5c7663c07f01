"""Side-channel tag grammar, version 1.

A model reply is a sequence of segments joined by SEGMENT_DELIMITER. A
segment is either plain text, plain text prefixed by a reply tag, or exactly
one standalone action tag:

    reply     := segment ( "|||" segment )*
    segment   := [ "[reply:" keyword "]" ] text | tag
    tag       := "[" name [ ":" arg ( ":" arg )* ] "]"

The prompt composer documents these tags to the model from this table, and
downstream parsers read replies with find_tags() / split_segments(), so the
vocabulary lives in one place.
"""

from __future__ import annotations

from dataclasses import dataclass

GRAMMAR_VERSION = 1
SEGMENT_DELIMITER = "|||"


@dataclass(frozen=True)
class Tag:
    name: str
    params: tuple[str, ...] = ()
    optional: int = 0        # how many trailing params may be omitted
    standalone: bool = True  # must be a segment on its own

    def syntax(self) -> str:
        return format_tag(self.name, *self.params)


STICKER = Tag("sticker", ("name or number",))
VOICE = Tag("voice", ("spoken words",))
PHOTO = Tag("photo", ("photo description",))
SHARE_MUSIC = Tag("share-music", ("title - artist",))
VOICE_CALL = Tag("voice-call")
VIDEO_CALL = Tag("video-call")
POST = Tag("post", ("post text",))
IMAGE = Tag("image", ("image description",), standalone=False)  # only inside post
BLOCK = Tag("block")
UNBLOCK = Tag("unblock")
RED_ENVELOPE = Tag("red-envelope", ("amount", "greeting"), optional=1)
TRANSFER = Tag("transfer", ("amount", "note"), optional=1)
REPLY = Tag("reply", ("keyword",), standalone=False)
SWITCH_SONG = Tag("switch-song", ("song title",))

TAGS: dict[str, Tag] = {
    t.name: t
    for t in (
        STICKER, VOICE, PHOTO, SHARE_MUSIC, VOICE_CALL, VIDEO_CALL, POST, IMAGE,
        BLOCK, UNBLOCK, RED_ENVELOPE, TRANSFER, REPLY, SWITCH_SONG,
    )
}


@dataclass(frozen=True)
class TagMatch:
    name: str
    args: tuple[str, ...]
    start: int
    end: int


def format_tag(name: str, *args: str) -> str:
    """format_tag("transfer", "20", "milk tea") → "[transfer:20:milk tea]"."""
    if not args:
        return f"[{name}]"
    return f"[{name}:{':'.join(args)}]"


def split_segments(text: str) -> list[str]:
    """Split a reply on the delimiter, dropping blank segments."""
    return [s.strip() for s in (text or "").split(SEGMENT_DELIMITER) if s.strip()]


def _closing_bracket(text: str, start: int) -> int:
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "[":
            depth += 1
        elif text[i] == "]":
            depth -= 1
            if depth == 0:
                return i
    return -1


def find_tags(text: str) -> list[TagMatch]:
    """Return the known top-level tags in text, in order.

    Brackets nest, so "[post:sunny day [image:selfie]]" is one post tag
    whose argument still contains the image tag.
    """
    found: list[TagMatch] = []
    pos = 0
    while True:
        start = text.find("[", pos)
        if start < 0:
            return found
        end = _closing_bracket(text, start)
        if end < 0:
            return found
        inner = text[start + 1:end]
        name, sep, rest = inner.partition(":")
        tag = TAGS.get(name.strip())
        if tag is None:
            pos = start + 1
            continue
        if not sep:
            args: tuple[str, ...] = ()
        elif len(tag.params) > 1:
            args = tuple(rest.split(":", len(tag.params) - 1))
        else:
            args = (rest,)
        found.append(TagMatch(tag.name, args, start, end + 1))
        pos = end + 1
