from __future__ import annotations

import json

import pytest

from voxcord.core.config.constants import (
    CALL_REJECTED_MESSAGE,
    CLEARED_MESSAGE,
    PROCESSING_ERROR_MESSAGE,
    REMINDERS_CLEARED_MESSAGE,
    UNSUPPORTED_MEDIA_MESSAGE,
)
from voxcord.core.models import AnalysisKind, MessageKind, Role
from voxcord.logic.fallbacks import RoundRobinFallbackSelector
from voxcord.logic.guard import ConversationAdmissionGuard
from voxcord.logic.normalizer import HistoryNormalizer
from voxcord.logic.orchestrator import OrchestratorSettings, ToolCallOrchestrator
from voxcord.logic.pipeline import MessagePipeline, PipelineSettings
from voxcord.logic.prompts import CONSENT_NOTICE
from voxcord.logic.tools import ToolExecutor
from voxcord.services.cache import cache_key
from voxcord.services.llm.types import InferenceResponse

from ._fakes import (
    FakeConversation,
    FakeDB,
    FakeInferenceClient,
    FakeSearchClient,
    FakeSleep,
    make_message,
    tool_call_reply,
)

MODEL = "groq/primary"
VOICE_NOTE = b"OggS voice note bytes"


class _CountingReminders:
    def __init__(self) -> None:
        self.cleared: list[str] = []

    def clear(self, user_id: str) -> int:
        self.cleared.append(user_id)
        return 2


def _pipeline(
    client: FakeInferenceClient,
    analyzer,
    clock,
    *,
    db: FakeDB | None = None,
    reminders: _CountingReminders | None = None,
    require_consent: bool = False,
    enable_table_tool: bool = False,
) -> MessagePipeline:
    tools = ToolExecutor(
        FakeSearchClient(),
        enable_table_tool=enable_table_tool,
        render_table=lambda _headers, _rows, _title: b"PNG",
        sleep=FakeSleep(),
    )
    return MessagePipeline(
        guard=ConversationAdmissionGuard(clock=clock, sleep=FakeSleep()),
        normalizer=HistoryNormalizer(analyzer),
        orchestrator=ToolCallOrchestrator(
            client,
            tools,
            OrchestratorSettings(primary_model=MODEL),
            selector=RoundRobinFallbackSelector(),
            system_prompt="be helpful",
        ),
        db=db,
        reminders=reminders,
        settings=PipelineSettings(require_consent=require_consent),
    )


@pytest.mark.asyncio
async def test_text_question_gets_single_model_answer(analyzer, clock) -> None:
    client = FakeInferenceClient({MODEL: [InferenceResponse(content="It is 5.")]})
    conversation = FakeConversation()
    message = make_message("m1", "What's 2+3?")

    admitted = await _pipeline(client, analyzer, clock).handle(message, conversation)

    assert admitted is True
    assert conversation.sent_texts == ["It is 5."]
    assert len(client.requests) == 1
    assert client.requests[0].turns[-1].text == "What's 2+3?"
    assert conversation.presences[0].stopped


@pytest.mark.asyncio
async def test_repeated_voice_note_is_transcribed_once(
    analyzer,
    clock,
    media_cache,
    transcriber,
) -> None:
    client = FakeInferenceClient({MODEL: [InferenceResponse(content="Hi!")]})
    older = make_message("m1", kind=MessageKind.VOICE, data=VOICE_NOTE)
    newest = make_message("m2", kind=MessageKind.VOICE, data=VOICE_NOTE)
    conversation = FakeConversation(history=[newest, older])

    await _pipeline(client, analyzer, clock).handle(newest, conversation)

    assert transcriber.calls == [VOICE_NOTE]
    assert cache_key(AnalysisKind.TRANSCRIPTION, VOICE_NOTE) in media_cache
    turns = client.requests[0].turns
    assert [turn.text for turn in turns] == ["hello there", "hello there"]


@pytest.mark.asyncio
async def test_group_message_without_mention_is_ignored(analyzer, clock) -> None:
    client = FakeInferenceClient({MODEL: [InferenceResponse(content="x")]})
    db = FakeDB()
    conversation = FakeConversation(is_group=True)

    admitted = await _pipeline(client, analyzer, clock, db=db).handle(
        make_message("m1", "hello all"),
        conversation,
    )

    assert admitted is False
    assert conversation.sent_texts == []
    assert client.requests == []
    assert db.usage == []


@pytest.mark.asyncio
async def test_group_mention_is_answered_with_author_prefix(analyzer, clock) -> None:
    client = FakeInferenceClient({MODEL: [InferenceResponse(content="Hey Alice")]})
    conversation = FakeConversation(is_group=True)

    await _pipeline(client, analyzer, clock).handle(
        make_message("m1", "hi bot", mentions_bot=True),
        conversation,
    )

    assert conversation.sent_texts == ["Hey Alice"]
    assert client.requests[0].turns[-1].text == "[Alice] hi bot"


@pytest.mark.asyncio
async def test_own_messages_are_ignored(analyzer, clock) -> None:
    client = FakeInferenceClient()
    conversation = FakeConversation()

    admitted = await _pipeline(client, analyzer, clock).handle(
        make_message("m1", "earlier answer", from_bot=True),
        conversation,
    )

    assert admitted is False
    assert conversation.presences == []


@pytest.mark.parametrize(
    ("kind", "reply"),
    [
        (MessageKind.CALL, CALL_REJECTED_MESSAGE),
        (MessageKind.VIDEO, UNSUPPORTED_MEDIA_MESSAGE),
    ],
)
@pytest.mark.asyncio
async def test_rejected_kinds_get_fixed_reply(analyzer, clock, kind, reply) -> None:
    client = FakeInferenceClient()
    conversation = FakeConversation()

    await _pipeline(client, analyzer, clock).handle(
        make_message("m1", kind=kind),
        conversation,
    )

    assert conversation.sent_texts == [reply]
    assert client.requests == []


@pytest.mark.asyncio
async def test_clear_command_confirms_without_model_call(analyzer, clock) -> None:
    client = FakeInferenceClient()
    conversation = FakeConversation()

    await _pipeline(client, analyzer, clock).handle(
        make_message("m1", "/clear"),
        conversation,
    )

    assert conversation.cleared == 1
    assert conversation.sent_texts == [CLEARED_MESSAGE]
    assert client.requests == []


@pytest.mark.asyncio
async def test_turns_before_clear_marker_are_not_sent(analyzer, clock) -> None:
    client = FakeInferenceClient({MODEL: [InferenceResponse(content="ok")]})
    newest = make_message("m3", "new topic")
    history = [
        newest,
        make_message("m2", "/clear"),
        make_message("m1", "old topic"),
    ]
    conversation = FakeConversation(history=history)

    await _pipeline(client, analyzer, clock).handle(newest, conversation)

    assert [turn.text for turn in client.requests[0].turns] == ["new topic"]


@pytest.mark.asyncio
async def test_clear_reminders_command(analyzer, clock) -> None:
    reminders = _CountingReminders()
    conversation = FakeConversation()

    await _pipeline(
        FakeInferenceClient(),
        analyzer,
        clock,
        reminders=reminders,
    ).handle(make_message("m1", "/clear_reminders"), conversation)

    assert reminders.cleared == ["user-1"]
    assert conversation.sent_texts == [REMINDERS_CLEARED_MESSAGE]
    assert conversation.cleared == 0


@pytest.mark.asyncio
async def test_first_message_gets_consent_notice(analyzer, clock) -> None:
    client = FakeInferenceClient({MODEL: [InferenceResponse(content="answer")]})
    db = FakeDB()
    pipeline = _pipeline(client, analyzer, clock, db=db, require_consent=True)
    conversation = FakeConversation()

    await pipeline.handle(make_message("m1", "hello"), conversation)
    clock.advance(60)
    await pipeline.handle(make_message("m2", "hello again"), conversation)

    assert conversation.sent_texts == [CONSENT_NOTICE, "answer"]
    assert db.consented == {"user-1"}
    assert len(client.requests) == 1


@pytest.mark.asyncio
async def test_provider_failure_sends_single_error_reply(analyzer, clock) -> None:
    client = FakeInferenceClient()
    conversation = FakeConversation()

    admitted = await _pipeline(client, analyzer, clock).handle(
        make_message("m1", "hi"),
        conversation,
    )

    assert admitted is True
    assert conversation.sent_texts == [PROCESSING_ERROR_MESSAGE]
    assert conversation.presences[0].stopped


@pytest.mark.asyncio
async def test_table_attachment_is_sent_before_answer(analyzer, clock) -> None:
    client = FakeInferenceClient(
        {
            MODEL: [
                tool_call_reply(
                    "create_table",
                    json.dumps({"headers": ["a"], "rows": [["1"]]}),
                ),
                InferenceResponse(content="Table above"),
            ],
        },
    )
    conversation = FakeConversation()

    await _pipeline(client, analyzer, clock, enable_table_tool=True).handle(
        make_message("m1", "make a table"),
        conversation,
    )

    assert conversation.sent_attachments == [(b"PNG", "table.png")]
    assert conversation.sent_texts == ["Table above"]
    assert client.requests[1].turns[-1].role == Role.TOOL


@pytest.mark.asyncio
async def test_usage_is_recorded_per_region_and_kind(analyzer, clock) -> None:
    client = FakeInferenceClient({MODEL: [InferenceResponse(content="ok")]})
    db = FakeDB()
    pipeline = _pipeline(client, analyzer, clock, db=db)

    await pipeline.handle(make_message("m1", "hi"), FakeConversation(region="de"))
    await pipeline.handle(
        make_message("m2", kind=MessageKind.VOICE, data=VOICE_NOTE),
        FakeConversation(conversation_id="chat-2", region=None),
    )

    assert db.usage == [("de", "message"), (None, "audio")]


@pytest.mark.asyncio
async def test_follow_up_within_quiet_period_is_dropped(analyzer, clock) -> None:
    client = FakeInferenceClient({MODEL: [InferenceResponse(content="ok")]})
    pipeline = _pipeline(client, analyzer, clock)
    conversation = FakeConversation()

    assert await pipeline.handle(make_message("m1", "one"), conversation) is True
    clock.advance(5)
    assert await pipeline.handle(make_message("m2", "two"), conversation) is False
    clock.advance(30)
    assert await pipeline.handle(make_message("m3", "three"), conversation) is True

    assert conversation.sent_texts == ["ok", "ok"]
