from __future__ import annotations

import pytest

from voxcord.core.config.constants import (
    CALL_REJECTED_MESSAGE,
    UNSUPPORTED_INVITE_MESSAGE,
    UNSUPPORTED_MEDIA_MESSAGE,
)
from voxcord.core.exceptions import MediaProcessingError, TransientProviderError
from voxcord.core.models import (
    AnalysisKind,
    ConversationContext,
    ImagePart,
    MessageKind,
    Role,
    TextPart,
)
from voxcord.logic.normalizer import (
    HistoryNormalizer,
    ImageMode,
    is_clear_command,
    rejection_reply_for,
    to_data_url,
)

from ._fakes import make_message

DIRECT = ConversationContext(conversation_id="chat-1")
GROUP = ConversationContext(conversation_id="group-1", is_group=True)


def _texts(turns) -> list[str]:
    return [turn.text for turn in turns]


@pytest.mark.asyncio
async def test_newest_first_input_becomes_chronological_turns(analyzer) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [
        make_message("3", "third"),
        make_message("2", "second", from_bot=True),
        make_message("1", "first"),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["first", "second", "third"]
    assert [turn.role for turn in turns] == [Role.USER, Role.ASSISTANT, Role.USER]


@pytest.mark.asyncio
async def test_clear_marker_drops_everything_before_it(analyzer) -> None:
    normalizer = HistoryNormalizer(analyzer)
    # Chronological order A, /clear, B, C delivered newest first.
    history = [
        make_message("4", "C"),
        make_message("3", "B"),
        make_message("2", "/clear"),
        make_message("1", "A"),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["B", "C"]


@pytest.mark.asyncio
async def test_clear_reminders_is_not_a_clear_marker(analyzer) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [make_message("2", "/clear_reminders"), make_message("1", "A")]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["A", "/clear_reminders"]


def test_is_clear_command() -> None:
    assert is_clear_command("/clear")
    assert is_clear_command("  /CLEAR please")
    assert not is_clear_command("/clear_reminders")
    assert not is_clear_command("please /clear")
    assert not is_clear_command(None)


@pytest.mark.asyncio
async def test_unsupported_kinds_are_skipped(analyzer) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [
        make_message("3", "after"),
        make_message("2", kind=MessageKind.VIDEO, data=b"video"),
        make_message("1", kind=MessageKind.LOCATION),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["after"]


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (MessageKind.CALL, CALL_REJECTED_MESSAGE),
        (MessageKind.GROUP_INVITE, UNSUPPORTED_INVITE_MESSAGE),
        (MessageKind.VIDEO, UNSUPPORTED_MEDIA_MESSAGE),
        (MessageKind.LOCATION, UNSUPPORTED_MEDIA_MESSAGE),
        (MessageKind.TEXT, None),
        (MessageKind.VOICE, None),
    ],
)
def test_rejection_reply_for(kind: MessageKind, expected: str | None) -> None:
    assert rejection_reply_for(make_message("1", kind=kind)) == expected


@pytest.mark.asyncio
async def test_voice_message_is_transcribed_with_caption(analyzer, transcriber) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [
        make_message("1", "listen", kind=MessageKind.VOICE, data=b"ogg-bytes"),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["hello there listen"]
    assert transcriber.calls == [b"ogg-bytes"]


@pytest.mark.asyncio
async def test_identical_voice_messages_reuse_cached_transcript(
    analyzer,
    transcriber,
    media_cache,
) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [
        make_message("2", kind=MessageKind.VOICE, data=b"same"),
        make_message("1", kind=MessageKind.AUDIO, data=b"same"),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["hello there", "hello there"]
    assert len(transcriber.calls) == 1
    assert len(media_cache) == 1


@pytest.mark.asyncio
async def test_image_is_described_in_describe_mode(analyzer, describer) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [
        make_message(
            "1",
            "what is this?",
            kind=MessageKind.IMAGE,
            data=b"png",
            mime_type="image/png",
        ),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["[Image: a cat on a sofa] what is this?"]
    assert describer.calls == [to_data_url(b"png", "image/png")]


@pytest.mark.asyncio
async def test_image_is_passed_through_in_native_mode(analyzer, describer) -> None:
    normalizer = HistoryNormalizer(analyzer, image_mode=ImageMode.NATIVE)
    history = [
        make_message(
            "1",
            "caption",
            kind=MessageKind.STICKER,
            data=b"gif",
            mime_type="image/gif",
        ),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert turns[0].content == [
        ImagePart(to_data_url(b"gif", "image/gif")),
        TextPart("caption"),
    ]
    assert describer.calls == []


@pytest.mark.asyncio
async def test_pdf_document_text_is_extracted(analyzer) -> None:
    async def _extract(data: bytes) -> str:
        return f"text of {len(data)} bytes"

    normalizer = HistoryNormalizer(analyzer, pdf_extractor=_extract)
    history = [
        make_message(
            "1",
            "summarize",
            kind=MessageKind.DOCUMENT,
            data=b"%PDF",
            filename="report.pdf",
        ),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["[PDF: text of 4 bytes] summarize"]


@pytest.mark.asyncio
async def test_other_document_is_labelled_by_filename(analyzer) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [
        make_message(
            "1",
            kind=MessageKind.DOCUMENT,
            data=b"zip",
            mime_type="application/zip",
            filename="archive.zip",
        ),
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["[Document: archive.zip]"]


@pytest.mark.asyncio
async def test_failed_media_is_skipped_without_affecting_others(
    analyzer,
    transcriber,
    media_cache,
) -> None:
    transcriber.error = TransientProviderError("stt down", provider="groq")
    normalizer = HistoryNormalizer(analyzer)
    history = [
        make_message("3", "still here"),
        make_message("2", kind=MessageKind.VOICE, data=b"voice"),
        make_message("1", kind=MessageKind.IMAGE),  # no media to load
    ]

    turns = await normalizer.normalize(history, DIRECT)

    assert _texts(turns) == ["still here"]
    assert media_cache.lookup(b"voice", AnalysisKind.TRANSCRIPTION) is None


@pytest.mark.asyncio
async def test_group_turns_are_prefixed_with_author(analyzer) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [
        make_message("2", "hi bot", author_name="Bob"),
        make_message("1", "hello", author_name="", author_id="user-9"),
    ]

    turns = await normalizer.normalize(history, GROUP)

    assert turns[0].content == [TextPart("[user-9]"), TextPart("hello")]
    assert turns[1].content == [TextPart("[Bob]"), TextPart("hi bot")]


@pytest.mark.asyncio
async def test_empty_messages_produce_no_turn(analyzer) -> None:
    normalizer = HistoryNormalizer(analyzer)
    history = [make_message("2", "   "), make_message("1", "", from_bot=True)]

    assert await normalizer.normalize(history, DIRECT) == []


@pytest.mark.asyncio
async def test_load_media_without_loader_raises() -> None:
    with pytest.raises(MediaProcessingError):
        await make_message("1", kind=MessageKind.VOICE).load_media()


def test_to_data_url_defaults_non_image_mime() -> None:
    assert to_data_url(b"x", "application/octet-stream").startswith(
        "data:image/png;base64,",
    )
    assert to_data_url(b"x", "image/jpeg; charset=binary").startswith(
        "data:image/jpeg;base64,",
    )
