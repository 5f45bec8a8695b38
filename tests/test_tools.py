from __future__ import annotations

import json
from dataclasses import dataclass, field

import pytest

from voxcord.core.config.constants import TABLE_CREATED_MESSAGE
from voxcord.core.exceptions import (
    InvalidDurationError,
    MalformedToolRequestError,
    UnsupportedToolError,
)
from voxcord.core.models import ConversationContext, Role, ToolCall
from voxcord.logic.tools import ToolExecutor, decode_arguments

from ._fakes import FakeSearchClient, FakeSleep

CONTEXT = ConversationContext(conversation_id="chat-1", author_id="user-1")


@dataclass(slots=True)
class _FakeReminders:
    added: list[tuple[str, str, str, str]] = field(default_factory=list)

    def add(self, conversation_id: str, user_id: str, message: str, duration: str) -> str:
        if duration == "soon":
            raise InvalidDurationError(duration)
        self.added.append((conversation_id, user_id, message, duration))
        return f"Reminder set for {duration}"


def _call(name: str, arguments: object, call_id: str = "c1") -> ToolCall:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return ToolCall(id=call_id, name=name, arguments=raw)


def test_schemas_follow_enabled_tools() -> None:
    names = [
        schema["function"]["name"]
        for schema in ToolExecutor(
            FakeSearchClient(),
            reminders=_FakeReminders(),
            enable_table_tool=True,
        ).schemas()
    ]

    assert names == ["web_search", "create_table", "set_reminder"]
    assert [s["function"]["name"] for s in ToolExecutor(FakeSearchClient()).schemas()] == [
        "web_search",
    ]


@pytest.mark.asyncio
async def test_multiple_queries_are_staggered_and_reported_together() -> None:
    search = FakeSearchClient()
    sleep = FakeSleep()
    executor = ToolExecutor(search, sleep=sleep, stagger_seconds=1.0)

    outcome = await executor.execute(
        [_call("web_search", {"query": "a", "queries": ["b", "a", "c"], "country": "DE"})],
    )

    assert sorted(query for query, _ in search.queries) == ["a", "b", "c"]
    assert {country for _, country in search.queries} == {"DE"}
    assert sorted(sleep.delays) == [1.0, 2.0]
    payload = json.loads(outcome.results[0].text)
    assert [item["query"] for item in payload] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_results_are_paired_with_calls_in_order() -> None:
    executor = ToolExecutor(FakeSearchClient(), sleep=FakeSleep())

    outcome = await executor.execute(
        [
            _call("web_search", {"query": "first"}, call_id="c1"),
            _call("web_search", {"query": "second"}, call_id="c2"),
        ],
    )

    assert [turn.tool_call_id for turn in outcome.results] == ["c1", "c2"]
    assert all(turn.role == Role.TOOL for turn in outcome.results)


@pytest.mark.asyncio
async def test_unknown_tool_fails_before_anything_runs() -> None:
    search = FakeSearchClient()
    executor = ToolExecutor(search, sleep=FakeSleep())

    with pytest.raises(UnsupportedToolError, match="create_table"):
        await executor.execute(
            [
                _call("web_search", {"query": "a"}),
                _call("create_table", {"headers": ["a"], "rows": []}),
            ],
        )

    assert search.queries == []


@pytest.mark.parametrize(
    "arguments",
    ["{not json", "[1, 2]", {}, {"query": "   "}],
)
@pytest.mark.asyncio
async def test_malformed_search_arguments_are_rejected(arguments: object) -> None:
    executor = ToolExecutor(FakeSearchClient(), sleep=FakeSleep())

    with pytest.raises(MalformedToolRequestError):
        await executor.execute([_call("web_search", arguments)])


def test_decode_arguments_treats_blank_as_empty_object() -> None:
    assert decode_arguments(ToolCall(id="c", name="web_search", arguments="  ")) == {}


@pytest.mark.asyncio
async def test_create_table_returns_confirmation_and_artifact() -> None:
    rendered: list[tuple] = []

    def _render(headers, rows, title) -> bytes:
        rendered.append((headers, rows, title))
        return b"PNG"

    executor = ToolExecutor(FakeSearchClient(), enable_table_tool=True, render_table=_render)

    outcome = await executor.execute(
        [_call("create_table", {"headers": ["h"], "rows": [[1, "x"]], "title": "T"})],
    )

    assert outcome.artifact == b"PNG"
    assert outcome.results[0].text == TABLE_CREATED_MESSAGE
    assert rendered == [(["h"], [["1", "x"]], "T")]


@pytest.mark.asyncio
async def test_create_table_requires_headers() -> None:
    executor = ToolExecutor(FakeSearchClient(), enable_table_tool=True)

    with pytest.raises(MalformedToolRequestError, match="headers"):
        await executor.execute([_call("create_table", {"rows": []})])


@pytest.mark.asyncio
async def test_set_reminder_uses_conversation_and_author() -> None:
    reminders = _FakeReminders()
    executor = ToolExecutor(FakeSearchClient(), reminders=reminders)

    outcome = await executor.execute(
        [_call("set_reminder", {"message": " stretch ", "duration": "2h"})],
        CONTEXT,
    )

    assert reminders.added == [("chat-1", "user-1", "stretch", "2h")]
    assert outcome.results[0].text == "Reminder set for 2h"


@pytest.mark.asyncio
async def test_set_reminder_with_bad_duration_is_malformed() -> None:
    executor = ToolExecutor(FakeSearchClient(), reminders=_FakeReminders())

    with pytest.raises(MalformedToolRequestError, match="Invalid duration"):
        await executor.execute(
            [_call("set_reminder", {"message": "x", "duration": "soon"})],
            CONTEXT,
        )


@pytest.mark.asyncio
async def test_set_reminder_is_unsupported_when_disabled() -> None:
    executor = ToolExecutor(FakeSearchClient())

    with pytest.raises(UnsupportedToolError):
        await executor.execute(
            [_call("set_reminder", {"message": "x", "duration": "1d"})],
            CONTEXT,
        )
