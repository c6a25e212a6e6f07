"""Unit tests for the engine module."""

import asyncio
from unittest.mock import Mock

import pytest
from concierge.engine import Agentic, Engine
from concierge.errors import (
    CompletionError,
    EmptyResponseError,
    ProviderError,
    TooManyToolCallsError,
)
from concierge.models import USER_ROLE, Conversation
from concierge.observers import Observer
from concierge.tools import Tool, ToolRegistry


class StubTool(Tool):
    """Returns a fixed answer, or runs ``action`` when one is given."""

    def __init__(self, name, answer="", action=None):
        self.name = name
        self.description = f"stub {name}"
        self.answer = answer
        self.action = action
        self.calls = []

    async def execute(self, raw_args):
        self.calls.append(raw_args)
        if self.action is not None:
            return await self.action()
        return self.answer


class RecordingObserver(Observer):
    def __init__(self):
        self.completions = []

    def completion_finished(self, operation, round_index, duration, error=None):
        self.completions.append((operation, round_index, type(error).__name__ if error else None))


def conversation(text="What is the weather like in Barcelona?"):
    convo = Conversation(id="c1")
    convo.add_message(USER_ROLE, text)
    return convo


def registry_of(*tools):
    registry = ToolRegistry()
    for tool in tools:
        registry.register(tool)
    return lambda conversation: registry


def tool_messages(call):
    return [m for m in call["messages"] if m["role"] == "tool"]


class TestEngineBase:
    def test_engine_is_abstract(self):
        """Engine cannot be instantiated directly."""
        with pytest.raises(TypeError, match="abstract"):
            Engine()

    def test_engine_binding(self):
        engine = Agentic()
        assert engine.app is None

        app = Mock()
        engine.app = app
        assert engine.app is app

    @pytest.mark.asyncio
    async def test_unbound_engine_refuses_to_run(self):
        with pytest.raises(RuntimeError, match="not bound"):
            await Agentic().run([], ToolRegistry())

    def test_default_round_cap(self):
        assert Agentic().max_turns == Agentic.MAX_AGENTIC_TURNS == 15

    @pytest.mark.parametrize("cap", [0, -3])
    def test_non_positive_cap_uses_default(self, cap):
        assert Agentic(max_turns=cap).max_turns == Agentic.MAX_AGENTIC_TURNS


class TestAgenticLoop:
    @pytest.mark.asyncio
    async def test_plain_answer_in_one_round(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls([fake_llm_cls.text("Hello there")])
        assistant = assistant_factory(llm, registry_factory=registry_of())

        assert await assistant.reply(conversation("hi")) == "Hello there"
        assert len(llm.calls) == 1
        assert llm.calls[0]["model"] == "gpt-4.1"

    @pytest.mark.asyncio
    async def test_null_content_becomes_empty_reply(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls([fake_llm_cls.text(None)])
        assistant = assistant_factory(llm, registry_factory=registry_of())

        assert await assistant.reply(conversation("hi")) == ""

    @pytest.mark.asyncio
    async def test_weather_round_trip(self, assistant_factory, fake_llm_cls):
        """One tool round, then a final answer built from the tool output."""
        weather = StubTool("get_weather", answer="Barcelona: 25°C, Sunny.")
        llm = fake_llm_cls(
            [
                fake_llm_cls.tool_round(("call_1", "get_weather", '{"location": "Barcelona"}')),
                fake_llm_cls.text("It's sunny, 25°C."),
            ]
        )
        assistant = assistant_factory(llm, registry_factory=registry_of(weather))

        reply = await assistant.reply(conversation())

        assert reply == "It's sunny, 25°C."
        assert len(llm.calls) == 2
        assert weather.calls == ['{"location": "Barcelona"}']

        second = llm.calls[1]["messages"]
        assert second[-2]["role"] == "assistant"
        assert second[-2]["tool_calls"][0]["id"] == "call_1"
        assert second[-1] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": "Barcelona: 25°C, Sunny.",
        }

    @pytest.mark.asyncio
    async def test_tool_definitions_are_offered(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls([fake_llm_cls.text("ok")])
        assistant = assistant_factory(
            llm, registry_factory=registry_of(StubTool("get_today_date"))
        )

        await assistant.reply(conversation("hi"))

        names = [t["function"]["name"] for t in llm.calls[0]["tools"]]
        assert names == ["get_today_date"]

    @pytest.mark.asyncio
    async def test_round_cap(self, assistant_factory, fake_llm_cls):
        today = StubTool("get_today_date", answer="2025-10-18T10:00:00+02:00")
        llm = fake_llm_cls(
            repeat=fake_llm_cls.tool_round(("call", "get_today_date", "{}"))
        )
        assistant = assistant_factory(llm, registry_factory=registry_of(today))

        with pytest.raises(TooManyToolCallsError) as exc_info:
            await assistant.reply(conversation())

        assert str(exc_info.value) == "too many tool calls, unable to generate reply"
        assert len(llm.calls) == 15
        assert len(today.calls) == 15

    @pytest.mark.asyncio
    async def test_custom_round_cap(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls(repeat=fake_llm_cls.tool_round(("call", "noop", "{}")))
        assistant = assistant_factory(
            llm, engine=Agentic(max_turns=2), registry_factory=registry_of(StubTool("noop"))
        )

        with pytest.raises(TooManyToolCallsError):
            await assistant.reply(conversation())

        assert assistant.engine.app is assistant
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_answer_on_last_allowed_round(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls(
            [fake_llm_cls.tool_round(("call", "noop", "{}")), fake_llm_cls.text("done")]
        )
        assistant = assistant_factory(
            llm, engine=Agentic(max_turns=2), registry_factory=registry_of(StubTool("noop"))
        )

        assert await assistant.reply(conversation()) == "done"


class TestToolFailures:
    @pytest.mark.asyncio
    async def test_unknown_tool_is_reported_to_the_model(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls(
            [
                fake_llm_cls.tool_round(("call_1", "teleport", "{}")),
                fake_llm_cls.text("I can't do that."),
            ]
        )
        assistant = assistant_factory(llm, registry_factory=registry_of())

        assert await assistant.reply(conversation()) == "I can't do that."
        assert tool_messages(llm.calls[1])[0]["content"] == "unknown tool: teleport"

    @pytest.mark.asyncio
    async def test_tool_error_text_is_reported(self, assistant_factory, fake_llm_cls):
        async def fail():
            raise ProviderError("weather lookup", "api error: status 503")

        llm = fake_llm_cls(
            [
                fake_llm_cls.tool_round(("call_1", "get_weather", "{}")),
                fake_llm_cls.text("The weather service is down."),
            ]
        )
        assistant = assistant_factory(
            llm, registry_factory=registry_of(StubTool("get_weather", action=fail))
        )

        await assistant.reply(conversation())

        assert tool_messages(llm.calls[1])[0]["content"] == (
            "weather lookup failed: api error: status 503"
        )

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_reported(self, assistant_factory, fake_llm_cls):
        async def crash():
            raise RuntimeError()

        llm = fake_llm_cls(
            [fake_llm_cls.tool_round(("call_1", "crash", "{}")), fake_llm_cls.text("ok")]
        )
        assistant = assistant_factory(
            llm, registry_factory=registry_of(StubTool("crash", action=crash))
        )

        await assistant.reply(conversation())

        assert tool_messages(llm.calls[1])[0]["content"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_one_failure_does_not_drop_siblings(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls(
            [
                fake_llm_cls.tool_round(
                    ("call_1", "missing", "{}"), ("call_2", "get_today_date", "{}")
                ),
                fake_llm_cls.text("ok"),
            ]
        )
        assistant = assistant_factory(
            llm,
            registry_factory=registry_of(StubTool("get_today_date", answer="2025-10-18")),
        )

        await assistant.reply(conversation())

        assert [m["content"] for m in tool_messages(llm.calls[1])] == [
            "unknown tool: missing",
            "2025-10-18",
        ]


class TestConcurrentDispatch:
    @pytest.mark.asyncio
    async def test_results_keep_request_order(self, assistant_factory, fake_llm_cls):
        """The slow tool only finishes once the fast one has run."""
        fast_done = asyncio.Event()

        async def slow():
            await asyncio.wait_for(fast_done.wait(), timeout=1)
            return "slow"

        async def fast():
            fast_done.set()
            return "fast"

        llm = fake_llm_cls(
            [
                fake_llm_cls.tool_round(("a", "slow", "{}"), ("b", "fast", "{}")),
                fake_llm_cls.text("ok"),
            ]
        )
        assistant = assistant_factory(
            llm,
            registry_factory=registry_of(
                StubTool("slow", action=slow), StubTool("fast", action=fast)
            ),
        )

        await assistant.reply(conversation())

        messages = tool_messages(llm.calls[1])
        assert [(m["tool_call_id"], m["content"]) for m in messages] == [
            ("a", "slow"),
            ("b", "fast"),
        ]

    @pytest.mark.asyncio
    async def test_concurrent_replies_are_isolated(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls(repeat=fake_llm_cls.text("same"))
        assistant = assistant_factory(llm, registry_factory=registry_of())

        replies = await asyncio.gather(
            *(assistant.reply(conversation(f"q{i}")) for i in range(5))
        )

        assert replies == ["same"] * 5
        seen = sorted(call["messages"][-1]["content"] for call in llm.calls)
        assert seen == [f"q{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_cancel_during_dispatch_aborts_the_round(self, assistant_factory, fake_llm_cls):
        started, finished = [], []
        both_started = asyncio.Event()

        def sleeper(name):
            async def action():
                started.append(name)
                if len(started) == 2:
                    both_started.set()
                await asyncio.sleep(10)
                finished.append(name)
                return name

            return action

        llm = fake_llm_cls(
            repeat=fake_llm_cls.tool_round(("call_a", "a", "{}"), ("call_b", "b", "{}"))
        )
        assistant = assistant_factory(
            llm,
            registry_factory=registry_of(
                StubTool("a", action=sleeper("a")), StubTool("b", action=sleeper("b"))
            ),
        )

        task = asyncio.create_task(assistant.reply(conversation()))
        await asyncio.wait_for(both_started.wait(), timeout=1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert sorted(started) == ["a", "b"]
        assert finished == []
        assert len(llm.calls) == 1


class TestCompletionFailures:
    @pytest.mark.asyncio
    async def test_completion_error(self, assistant_factory, fake_llm_cls):
        observer = RecordingObserver()
        llm = fake_llm_cls([RuntimeError("rate limited")])
        assistant = assistant_factory(llm, registry_factory=registry_of(), observer=observer)

        with pytest.raises(CompletionError, match="completion failed: rate limited"):
            await assistant.reply(conversation())

        assert observer.completions == [("reply", 0, "RuntimeError")]

    @pytest.mark.asyncio
    async def test_no_choices(self, assistant_factory, fake_llm_cls):
        llm = fake_llm_cls([fake_llm_cls.no_choices()])
        assistant = assistant_factory(llm, registry_factory=registry_of())

        with pytest.raises(EmptyResponseError):
            await assistant.reply(conversation())

    @pytest.mark.asyncio
    async def test_failure_after_tool_round(self, assistant_factory, fake_llm_cls):
        observer = RecordingObserver()
        llm = fake_llm_cls(
            [fake_llm_cls.tool_round(("c", "noop", "{}")), ConnectionError("reset")]
        )
        assistant = assistant_factory(
            llm, registry_factory=registry_of(StubTool("noop")), observer=observer
        )

        with pytest.raises(CompletionError):
            await assistant.reply(conversation())

        assert observer.completions == [("reply", 0, None), ("reply", 1, "ConnectionError")]


class TestEngineHooks:
    @pytest.mark.asyncio
    async def test_hooks_are_called_in_order(self, assistant_factory, fake_llm_cls):
        events = []

        class TrackedEngine(Agentic):
            def _before_llm_call(self, transcript):
                events.append(("before", len(transcript)))

            def _after_llm_call(self, response):
                events.append(("after", response["content"]))

        llm = fake_llm_cls(
            [fake_llm_cls.tool_round(("c", "noop", "{}")), fake_llm_cls.text("done")]
        )
        assistant = assistant_factory(
            llm, engine=TrackedEngine(), registry_factory=registry_of(StubTool("noop"))
        )

        await assistant.reply(conversation())

        assert events == [
            ("before", 2),
            ("after", None),
            ("before", 4),
            ("after", "done"),
        ]
