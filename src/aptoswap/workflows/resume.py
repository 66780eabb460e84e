"""Resolving the human answer at a suspension point.

A workflow that needs a decision asks the ResumeChannel, which looks for an
answer in priority order:

1. the explicit ``configurable.selected_pool_index`` resume parameter
2. a structured answer in ``configurable.interrupt_response`` or
   ``configurable.response``
3. legacy decoders over the latest conversation message (JSON human
   content, human additional_kwargs, AI tool-call args, tool content)
4. a new LangGraph interrupt, answered with ``Command(resume=...)``

Every source is normalized into a HumanAnswer so nodes never see the
transport format.
"""

import json
import logging
from typing import Any, Callable, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langgraph.types import interrupt
from pydantic import BaseModel

from aptoswap.config import get_settings

logger = logging.getLogger(__name__)

ACCEPT = "accept"
INDEX_KEYS = ("selected_pool_index", "selectedPoolIndex")
RESPONSE_KEYS = ("interrupt_response", "response")


class HumanAnswer(BaseModel):
    """Normalized answer to a suspension."""

    accepted: bool
    selected_pool_index: Any = None
    source: str = "interrupt"

    @property
    def cancelled(self) -> bool:
        return not self.accepted


def _loads(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _index(data: dict) -> Any:
    for key in INDEX_KEYS:
        if key in data:
            return data[key]
    return None


def parse_answer(value: Any, source: str = "interrupt") -> Optional[HumanAnswer]:
    """Normalize a resume value into a HumanAnswer.

    Understands a HumanResponse ({"type": "accept" | "ignore", "args": ...}),
    a list of them (the first wins), {"cancelled", "selected_pool_index"},
    a bare integer index, and JSON strings of any of these. Returns None when
    the value carries no answer.
    """
    value = _loads(value)
    if isinstance(value, list):
        value = _loads(value[0]) if value else None

    if isinstance(value, int) and not isinstance(value, bool):
        return HumanAnswer(accepted=True, selected_pool_index=value, source=source)
    if not isinstance(value, dict):
        return None

    if "type" in value:
        if value["type"] != ACCEPT:
            return HumanAnswer(accepted=False, source=source)
        args = _loads(value.get("args"))
        index = _index(args) if isinstance(args, dict) else None
        return HumanAnswer(accepted=True, selected_pool_index=index, source=source)

    if value.get("cancelled"):
        return HumanAnswer(accepted=False, source=source)
    if "cancelled" in value or any(key in value for key in INDEX_KEYS):
        return HumanAnswer(accepted=True, selected_pool_index=_index(value), source=source)
    return None


# ======================
# Legacy message decoders
# ======================

MessageDecoder = Callable[[BaseMessage], Optional[HumanAnswer]]


def _decode_dict(value: Any, source: str) -> Optional[HumanAnswer]:
    value = _loads(value)
    return parse_answer(value, source) if isinstance(value, dict) else None


def decode_human_content(message: BaseMessage) -> Optional[HumanAnswer]:
    if isinstance(message, HumanMessage) and isinstance(message.content, str):
        return _decode_dict(message.content, "human_content")
    return None


def decode_human_kwargs(message: BaseMessage) -> Optional[HumanAnswer]:
    if not isinstance(message, HumanMessage):
        return None
    kwargs = message.additional_kwargs or {}
    for key in RESPONSE_KEYS:
        if key in kwargs:
            return _decode_dict(kwargs[key], "human_kwargs")
    return _decode_dict(kwargs, "human_kwargs")


def decode_tool_call_args(message: BaseMessage) -> Optional[HumanAnswer]:
    if not isinstance(message, AIMessage):
        return None
    for call in message.tool_calls:
        answer = _decode_dict(call.get("args"), "tool_call")
        if answer:
            return answer
    return None


def decode_tool_content(message: BaseMessage) -> Optional[HumanAnswer]:
    if isinstance(message, ToolMessage) and isinstance(message.content, str):
        return _decode_dict(message.content, "tool_content")
    return None


LEGACY_DECODERS: list[MessageDecoder] = [
    decode_human_content,
    decode_human_kwargs,
    decode_tool_call_args,
    decode_tool_content,
]


class ResumeChannel:
    """Single entry point for answers to a suspension."""

    def __init__(
        self,
        decoders: Optional[list[MessageDecoder]] = None,
        enable_legacy: Optional[bool] = None,
    ):
        if enable_legacy is None:
            enable_legacy = get_settings().enable_legacy_resume_decoders
        self.decoders = (list(LEGACY_DECODERS) if decoders is None else decoders) if enable_legacy else []

    def from_config(self, config: Optional[RunnableConfig]) -> Optional[HumanAnswer]:
        configurable = (config or {}).get("configurable") or {}

        index = _index(configurable)
        if index is not None:
            return HumanAnswer(accepted=True, selected_pool_index=index, source="configurable")

        for key in RESPONSE_KEYS:
            if configurable.get(key) is not None:
                answer = parse_answer(configurable[key], source=key)
                if answer:
                    return answer
        return None

    def from_messages(self, messages: Sequence[BaseMessage]) -> Optional[HumanAnswer]:
        """Decode the latest message with the legacy decoders."""
        if not self.decoders or not messages:
            return None
        latest = messages[-1]
        for decoder in self.decoders:
            answer = decoder(latest)
            if answer:
                return answer
        return None

    def ask(self, payload: dict) -> HumanAnswer:
        """Suspend the graph until the host resumes it.

        A resume value that is not an answer counts as a cancellation.
        """
        value = interrupt(payload)
        answer = parse_answer(value)
        if answer is None:
            logger.warning(f"Unrecognized resume value {value!r}, treating as cancellation")
            return HumanAnswer(accepted=False)
        return answer

    def resolve(
        self,
        payload: dict,
        config: Optional[RunnableConfig] = None,
        messages: Sequence[BaseMessage] = (),
    ) -> HumanAnswer:
        """Answer from config or messages if present, else suspend and ask."""
        answer = self.from_config(config) or self.from_messages(messages)
        if answer:
            logger.info(f"Resolved answer from {answer.source} without suspending")
            return answer
        return self.ask(payload)


def interrupt_payload(action: str, args: dict, description: str) -> dict:
    """Agent-inbox style interrupt: accept or ignore only."""
    return {
        "action_request": {"action": action, "args": args},
        "description": description,
        "config": {
            "allow_ignore": True,
            "allow_accept": True,
            "allow_edit": False,
            "allow_respond": False,
        },
    }
