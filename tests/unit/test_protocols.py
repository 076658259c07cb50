"""
Unit tests for the per-agent event normalizers.
"""

import json

import pytest

from agentrelay.adapters import CodexStreamParser, GeminiStreamParser, QwenStreamParser
from agentrelay.events import (
    ErrorEvent,
    InvocationResult,
    InvocationStarted,
    MessageComplete,
    MessageDelta,
    RawEvent,
    RunCompleted,
    SessionStarted,
    TokenUsage,
)
from agentrelay.state import RunState


def feed_lines(parser, *objects):
    text = "".join(json.dumps(obj) + "\n" for obj in objects)
    return parser.feed(text)


class TestCodexProtocol:
    """Tests for `codex exec --json` output."""

    def test_thread_started(self):
        events = feed_lines(CodexStreamParser(), {"type": "thread.started", "thread_id": "th_9"})
        assert events == [SessionStarted(session_id="th_9")]

    def test_turn_started_and_reasoning_emit_nothing(self):
        events = feed_lines(
            CodexStreamParser(),
            {"type": "turn.started"},
            {"type": "item.completed", "item": {"id": "r1", "type": "reasoning", "text": "hmm"}},
        )
        assert events == []

    def test_agent_message_lifecycle(self):
        events = feed_lines(
            CodexStreamParser(),
            {"type": "item.started", "item": {"id": "m", "type": "agent_message", "text": "Wor"}},
            {"type": "item.updated", "item": {"id": "m", "type": "agent_message", "text": "Working"}},
            {"type": "item.completed", "item": {"id": "m", "type": "agent_message", "text": "Working."}},
        )
        assert events == [
            MessageDelta(text="Wor"),
            MessageDelta(text="Working"),
            MessageComplete(text="Working."),
        ]

    def test_command_execution_started(self):
        events = feed_lines(CodexStreamParser(), {
            "type": "item.started",
            "item": {"id": "c1", "type": "command_execution", "command": "pytest -q",
                     "status": "in_progress"},
        })
        assert events == [InvocationStarted(
            id="c1", name="shell", input={"command": "pytest -q"}, command="pytest -q",
        )]

    def test_command_execution_completed(self):
        events = feed_lines(CodexStreamParser(), {
            "type": "item.completed",
            "item": {"id": "c1", "type": "command_execution", "command": "ls",
                     "aggregated_output": "a\nb\n", "exit_code": 0, "status": "completed"},
        })
        assert events == [InvocationResult(
            id="c1", is_error=False, exit_code=0, output="a\nb\n", name="shell", command="ls",
        )]

    @pytest.mark.parametrize("exit_code,status,is_error", [
        (0, "completed", False),
        (1, "completed", True),
        (None, "failed", True),
        (None, "declined", True),
        (None, "completed", False),
    ])
    def test_command_error_flag(self, exit_code, status, is_error):
        item = {"id": "c", "type": "command_execution", "command": "x", "status": status}
        if exit_code is not None:
            item["exit_code"] = exit_code
        (event,) = feed_lines(CodexStreamParser(), {"type": "item.completed", "item": item})
        assert event.is_error is is_error

    def test_command_without_id_uses_command_text(self):
        (event,) = feed_lines(CodexStreamParser(), {
            "type": "item.started", "item": {"type": "command_execution", "command": "make"},
        })
        assert event.id == "make"

    def test_flat_item_is_treated_as_completed(self):
        events = feed_lines(
            CodexStreamParser(),
            {"type": "agent_message", "text": "Hello"},
            {"type": "command_execution", "id": "c", "command": "ls", "exit_code": 2},
        )
        assert events[0] == MessageComplete(text="Hello")
        assert isinstance(events[1], InvocationResult)
        assert events[1].exit_code == 2
        assert events[1].is_error is True

    def test_turn_completed_usage(self):
        (event,) = feed_lines(CodexStreamParser(), {
            "type": "turn.completed",
            "usage": {"input_tokens": 100, "cached_input_tokens": 20, "output_tokens": 7},
        })
        assert event == RunCompleted(usage=TokenUsage(100, 7, 107))

    def test_errors(self):
        events = feed_lines(
            CodexStreamParser(),
            {"type": "error", "message": "stream disconnected"},
            {"type": "turn.failed", "error": {"message": "rate limited"}},
            {"type": "turn.failed"},
        )
        assert events == [
            ErrorEvent(message="stream disconnected"),
            ErrorEvent(message="rate limited"),
            ErrorEvent(message="codex turn failed"),
        ]

    def test_error_without_message_keeps_payload(self):
        (event,) = feed_lines(CodexStreamParser(), {"type": "error", "code": 503})
        assert isinstance(event, ErrorEvent)
        assert json.loads(event.message) == {"type": "error", "code": 503}

    def test_item_envelope_without_item_is_raw(self):
        (event,) = feed_lines(CodexStreamParser(), {"type": "item.started", "item": "oops"})
        assert isinstance(event, RawEvent)

    def test_unknown_item_type_is_raw(self):
        (event,) = feed_lines(CodexStreamParser(), {
            "type": "item.completed", "item": {"id": "f", "type": "file_change"},
        })
        assert isinstance(event, RawEvent)
        assert "file_change" in event.text


class TestGeminiProtocol:
    """Tests for `gemini --output-format stream-json` output."""

    def test_init(self):
        events = feed_lines(GeminiStreamParser(), {
            "type": "init", "session_id": "s-1", "model": "gemini-2.5-pro",
        })
        assert events == [SessionStarted(session_id="s-1", model="gemini-2.5-pro")]

    def test_deltas_accumulate(self):
        events = feed_lines(
            GeminiStreamParser(),
            {"type": "message", "role": "assistant", "content": "Hel", "delta": True},
            {"type": "message", "role": "assistant", "content": "lo", "delta": True},
            {"type": "message", "role": "assistant", "content": "!", "delta": True},
        )
        assert events == [
            MessageDelta(text="Hel"),
            MessageDelta(text="Hello"),
            MessageDelta(text="Hello!"),
        ]

    def test_complete_message_resets_accumulation(self):
        parser = GeminiStreamParser()
        feed_lines(parser, {"type": "message", "role": "assistant", "content": "draft", "delta": True})

        events = feed_lines(
            parser,
            {"type": "message", "role": "assistant", "content": "Final"},
            {"type": "message", "role": "assistant", "content": " more", "delta": True},
        )
        assert events == [MessageComplete(text="Final"), MessageDelta(text="Final more")]

    def test_user_message_is_raw(self):
        (event,) = feed_lines(GeminiStreamParser(), {
            "type": "message", "role": "user", "content": "the prompt",
        })
        assert isinstance(event, RawEvent)

    def test_tool_lifecycle(self):
        events = feed_lines(
            GeminiStreamParser(),
            {"type": "tool_use", "tool_name": "read_file", "tool_id": "t1",
             "parameters": {"path": "a.py"}},
            {"type": "tool_result", "tool_id": "t1", "status": "success", "output": "ok"},
            {"type": "tool_result", "tool_id": "t2", "status": "error"},
        )
        assert events == [
            InvocationStarted(id="t1", name="read_file", input={"path": "a.py"}),
            InvocationResult(id="t1", is_error=False, output="ok"),
            InvocationResult(id="t2", is_error=True),
        ]

    def test_tool_use_without_id_gets_distinct_ids(self):
        """Id-less tool calls stay separate and results close them in order."""
        events = feed_lines(
            GeminiStreamParser(),
            {"type": "tool_use", "tool_name": "read_file", "parameters": {"path": "a"}},
            {"type": "tool_use", "tool_name": "read_file", "parameters": {"path": "b"}},
            {"type": "tool_use", "tool_id": "t9", "tool_name": "glob"},
            {"type": "tool_result", "status": "success", "output": "A"},
            {"type": "tool_result", "status": "error"},
        )

        first, second, named, result_a, result_b = events
        assert first.id != second.id
        assert first.id and second.id
        assert named.id == "t9"
        assert result_a.id == first.id
        assert result_b.id == second.id
        assert result_b.is_error is True

    def test_id_less_tool_calls_are_all_recorded(self):
        state = RunState.create()
        for event in feed_lines(
            GeminiStreamParser(),
            *({"type": "tool_use", "tool_name": "shell"} for _ in range(3)),
        ):
            state.start_invocation(event.id, event.name, event.input)
        assert len(state.invocations) == 3

    def test_result_success_usage(self):
        (event,) = feed_lines(GeminiStreamParser(), {
            "type": "result", "status": "success",
            "stats": {"input_tokens": 50, "output_tokens": 10, "total_tokens": 60},
        })
        assert event == RunCompleted(usage=TokenUsage(50, 10, 60))

    def test_result_error(self):
        events = feed_lines(
            GeminiStreamParser(),
            {"type": "result", "status": "error", "error": {"message": "quota exceeded"}},
            {"type": "error", "message": "boom"},
            {"type": "error"},
        )
        assert events == [
            ErrorEvent(message="quota exceeded"),
            ErrorEvent(message="boom"),
            ErrorEvent(message="Unknown error"),
        ]


class TestQwenProtocol:
    """Tests for `qwen --output-format stream-json` output."""

    def test_system(self):
        (event,) = feed_lines(QwenStreamParser(), {
            "type": "system", "subtype": "init", "session_id": "q1", "model": "qwen3-coder",
        })
        assert event == SessionStarted(session_id="q1", model="qwen3-coder")

    def test_partial_assistant_is_delta(self):
        (event,) = feed_lines(QwenStreamParser(), {
            "type": "assistant",
            "message": {"content": [{"type": "text", "text": "Par"}, {"type": "text", "text": "tial"}],
                        "stop_reason": None},
        })
        assert event == MessageDelta(text="Partial")

    def test_final_assistant_with_tool_calls(self):
        (event,) = feed_lines(QwenStreamParser(), {
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "text", "text": "Running tests"},
                    {"type": "tool_use", "id": "tu1", "name": "run_shell_command",
                     "input": {"command": "pytest"}},
                ],
                "stop_reason": "tool_use",
            },
        })
        assert event == MessageComplete(
            text="Running tests",
            tool_calls=(InvocationStarted(id="tu1", name="run_shell_command",
                                          input={"command": "pytest"}),),
        )

    def test_partial_with_tool_calls_is_complete(self):
        (event,) = feed_lines(QwenStreamParser(), {
            "type": "assistant",
            "message": {"content": [
                {"type": "text", "text": "x"},
                {"type": "tool_use", "id": "t", "name": "ls", "input": {}},
            ], "stop_reason": None},
        })
        assert isinstance(event, MessageComplete)
        assert len(event.tool_calls) == 1

    def test_assistant_without_message(self):
        (event,) = feed_lines(QwenStreamParser(), {"type": "assistant"})
        assert event == MessageComplete(text="")

    def test_user_tool_result(self):
        events = feed_lines(
            QwenStreamParser(),
            {"type": "user", "message": {"content": [
                {"type": "tool_result", "tool_use_id": "tu1", "content": "passed"},
            ]}},
            {"type": "user", "message": {"content": [
                {"type": "tool_result", "tool_use_id": "tu2", "is_error": True,
                 "content": [{"type": "text", "text": "fail"}]},
            ]}},
        )
        assert events[0] == InvocationResult(id="tu1", is_error=False, output="passed")
        assert events[1].id == "tu2"
        assert events[1].is_error is True
        assert json.loads(events[1].output) == [{"type": "text", "text": "fail"}]

    def test_user_without_tool_result_is_raw(self):
        (event,) = feed_lines(QwenStreamParser(), {
            "type": "user", "message": {"content": [{"type": "text", "text": "hi"}]},
        })
        assert isinstance(event, RawEvent)

    def test_result(self):
        events = feed_lines(
            QwenStreamParser(),
            {"type": "result", "result": "All done", "usage": {"input_tokens": 3,
                                                               "output_tokens": 4}},
            {"type": "result", "is_error": True, "result": "crashed"},
            {"type": "result", "is_error": True},
        )
        assert events == [
            RunCompleted(usage=TokenUsage(3, 4, 7), text="All done"),
            ErrorEvent(message="crashed"),
            ErrorEvent(message="qwen reported an error"),
        ]


class TestTokenUsage:
    def test_missing_usage(self):
        assert TokenUsage.from_dict(None) is None
        assert TokenUsage.from_dict("12") is None

    def test_bools_are_not_counts(self):
        usage = TokenUsage.from_dict({"input_tokens": True, "output_tokens": 2})
        assert usage == TokenUsage(None, 2, 2)

    def test_explicit_total_is_kept(self):
        usage = TokenUsage.from_dict({"input_tokens": 1, "output_tokens": 2, "total_tokens": 10})
        assert usage.total_tokens == 10
        assert usage.to_dict() == {"input_tokens": 1, "output_tokens": 2, "total_tokens": 10}

    def test_empty_mapping(self):
        assert TokenUsage.from_dict({}) == TokenUsage()
