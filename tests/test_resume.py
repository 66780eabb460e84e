"""Tests for resolving answers to a suspended workflow."""

import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from aptoswap.workflows.resume import (
    HumanAnswer,
    ResumeChannel,
    decode_human_content,
    decode_human_kwargs,
    decode_tool_call_args,
    decode_tool_content,
    interrupt_payload,
    parse_answer,
)


class TestParseAnswer:
    """Tests for normalizing resume values."""

    def test_accept_with_index(self):
        answer = parse_answer({"type": "accept", "args": {"selected_pool_index": 1}})

        assert answer.accepted
        assert answer.selected_pool_index == 1

    def test_camel_case_index(self):
        answer = parse_answer({"type": "accept", "args": {"selectedPoolIndex": 3}})

        assert answer.selected_pool_index == 3

    def test_args_as_json_string(self):
        answer = parse_answer({"type": "accept", "args": json.dumps({"selected_pool_index": 2})})

        assert answer.selected_pool_index == 2

    @pytest.mark.parametrize("response_type", ["ignore", "response", "edit"])
    def test_non_accept_is_cancel(self, response_type):
        answer = parse_answer({"type": response_type, "args": {"selected_pool_index": 0}})

        assert answer.cancelled

    def test_list_uses_first_item(self):
        answer = parse_answer([{"type": "ignore"}, {"type": "accept", "args": {"selected_pool_index": 0}}])

        assert answer.cancelled

    def test_bare_index(self):
        assert parse_answer(4).selected_pool_index == 4
        assert parse_answer("4").selected_pool_index == 4

    def test_cancelled_flag(self):
        assert parse_answer({"cancelled": True}).cancelled
        answer = parse_answer({"cancelled": False, "selected_pool_index": 1})
        assert answer.accepted
        assert answer.selected_pool_index == 1

    @pytest.mark.parametrize("value", [None, "hello", {}, {"foo": 1}, [], True])
    def test_no_answer(self, value):
        assert parse_answer(value) is None

    def test_source_is_recorded(self):
        assert parse_answer(1, source="tool_call").source == "tool_call"


class TestLegacyDecoders:
    def test_human_content(self):
        answer = decode_human_content(HumanMessage(content='{"selected_pool_index": 1}'))

        assert answer.selected_pool_index == 1
        assert answer.source == "human_content"

    def test_human_plain_text_is_ignored(self):
        assert decode_human_content(HumanMessage(content="pick the first one")) is None

    def test_human_kwargs(self):
        message = HumanMessage(
            content="",
            additional_kwargs={"interrupt_response": {"type": "accept", "args": {"selected_pool_index": 2}}},
        )

        assert decode_human_kwargs(message).selected_pool_index == 2

    def test_tool_call_args(self):
        message = AIMessage(
            content="",
            tool_calls=[{"name": "select_pool", "args": {"selected_pool_index": 0}, "id": "call-1"}],
        )

        assert decode_tool_call_args(message).selected_pool_index == 0

    def test_tool_content(self):
        message = ToolMessage(content='{"type": "ignore"}', tool_call_id="call-1")

        assert decode_tool_content(message).cancelled

    def test_decoders_ignore_other_message_types(self):
        message = AIMessage(content='{"selected_pool_index": 1}')

        assert decode_human_content(message) is None
        assert decode_tool_content(message) is None


class TestResumeChannel:
    """Tests for answer priority."""

    def test_configured_index_wins(self):
        channel = ResumeChannel(enable_legacy=True)
        config = {
            "configurable": {
                "selected_pool_index": 0,
                "interrupt_response": {"type": "accept", "args": {"selected_pool_index": 1}},
            }
        }
        messages = [HumanMessage(content='{"selected_pool_index": 2}')]

        answer = channel.resolve({}, config, messages)

        assert answer == HumanAnswer(accepted=True, selected_pool_index=0, source="configurable")

    def test_configured_camel_case_index(self):
        channel = ResumeChannel(enable_legacy=False)

        answer = channel.resolve({}, {"configurable": {"selectedPoolIndex": 1}})

        assert answer == HumanAnswer(accepted=True, selected_pool_index=1, source="configurable")

    def test_configured_response_beats_messages(self):
        channel = ResumeChannel(enable_legacy=True)
        config = {"configurable": {"response": {"type": "accept", "args": {"selected_pool_index": 1}}}}
        messages = [HumanMessage(content='{"selected_pool_index": 2}')]

        answer = channel.resolve({}, config, messages)

        assert answer.selected_pool_index == 1
        assert answer.source == "response"

    def test_only_latest_message_is_decoded(self):
        channel = ResumeChannel(enable_legacy=True)
        messages = [
            HumanMessage(content='{"selected_pool_index": 2}'),
            AIMessage(content="Here are the pools"),
        ]

        assert channel.from_messages(messages) is None

    def test_disabled_legacy_decoders(self):
        channel = ResumeChannel(enable_legacy=False)

        assert channel.decoders == []
        assert channel.from_messages([HumanMessage(content='{"selected_pool_index": 2}')]) is None

    def test_custom_decoders(self):
        channel = ResumeChannel(decoders=[decode_tool_content], enable_legacy=True)

        assert channel.from_messages([HumanMessage(content='{"selected_pool_index": 2}')]) is None
        assert channel.from_messages([ToolMessage(content="1", tool_call_id="c")]) is None
        answer = channel.from_messages([ToolMessage(content='{"selected_pool_index": 1}', tool_call_id="c")])
        assert answer.selected_pool_index == 1


def test_interrupt_payload():
    payload = interrupt_payload("Select Pool", {"pools": []}, "Pick one")

    assert payload["action_request"] == {"action": "Select Pool", "args": {"pools": []}}
    assert payload["description"] == "Pick one"
    assert payload["config"]["allow_accept"] and payload["config"]["allow_ignore"]
    assert not payload["config"]["allow_edit"]
