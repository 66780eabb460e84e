"""Drives compiled workflow graphs on behalf of the HTTP API.

One thread id per workflow run. The runner starts a thread, resumes it with
the host's answer, and maps LangGraph state snapshots to WorkflowResponse.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Optional

from langgraph.types import Command
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class WorkflowStatus(str, Enum):
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"
    ERROR = "error"
    RUNNING = "running"


class WorkflowResponse(BaseModel):
    """Thread status returned by every workflow endpoint."""

    thread_id: str = Field(..., description="Workflow thread id")
    status: WorkflowStatus = Field(..., description="interrupted, completed or error")
    phase: Optional[str] = Field(None, description="Current workflow phase")
    interrupt: Optional[dict[str, Any]] = Field(None, description="Pending human-interaction payload")
    result: Optional[dict[str, Any]] = Field(None, description="Result event once terminal")


class ThreadNotFoundError(Exception):
    """No checkpoint exists for the thread id."""


class ThreadNotSuspendedError(Exception):
    """Resume requested for a thread that is not waiting on an answer."""


class WorkflowRunner:
    """Runs one kind of workflow graph.

    Args:
        graph: Compiled graph with a checkpointer
        state_key: Key of the workflow state object in the graph state
        state_model: Pydantic model of that state object
    """

    def __init__(self, graph, state_key: str, state_model: type[BaseModel]):
        self.graph = graph
        self.state_key = state_key
        self.state_model = state_model

    @staticmethod
    def _config(thread_id: str, user_id: str) -> dict:
        return {"configurable": {"thread_id": thread_id, "user_id": user_id}}

    async def start(self, state: BaseModel, user_id: str, thread_id: Optional[str] = None) -> WorkflowResponse:
        thread_id = thread_id or str(uuid.uuid4())
        logger.info(f"Starting {self.state_key} thread {thread_id} for user {user_id}")
        await self.graph.ainvoke(
            {"messages": [], self.state_key: state},
            self._config(thread_id, user_id),
        )
        return await self.status(thread_id)

    async def resume(self, thread_id: str, user_id: str, answer: Any) -> WorkflowResponse:
        """Answer the pending interrupt of a suspended thread.

        Raises:
            ThreadNotFoundError: Unknown thread
            ThreadNotSuspendedError: Thread has no pending interrupt
        """
        snapshot = await self._snapshot(thread_id)
        if not self._interrupts(snapshot):
            raise ThreadNotSuspendedError(f"Thread {thread_id} is not waiting for an answer")

        logger.info(f"Resuming {self.state_key} thread {thread_id}")
        await self.graph.ainvoke(Command(resume=answer), self._config(thread_id, user_id))
        return await self.status(thread_id)

    async def status(self, thread_id: str) -> WorkflowResponse:
        snapshot = await self._snapshot(thread_id)
        state = self._workflow_state(snapshot)
        phase = state.phase.value if state is not None else None

        interrupts = self._interrupts(snapshot)
        if interrupts:
            return WorkflowResponse(
                thread_id=thread_id,
                status=WorkflowStatus.INTERRUPTED,
                phase=phase,
                interrupt=interrupts[0],
            )

        event = state.to_event() if state is not None and state.is_terminal else None
        if event is None:
            status = WorkflowStatus.RUNNING
        elif event.get("success"):
            status = WorkflowStatus.COMPLETED
        else:
            status = WorkflowStatus.ERROR
        return WorkflowResponse(thread_id=thread_id, status=status, phase=phase, result=event)

    async def _snapshot(self, thread_id: str):
        snapshot = await self.graph.aget_state({"configurable": {"thread_id": thread_id}})
        if not snapshot.values:
            raise ThreadNotFoundError(f"Unknown thread {thread_id}")
        return snapshot

    def _workflow_state(self, snapshot):
        value = snapshot.values.get(self.state_key)
        if isinstance(value, dict):
            return self.state_model.model_validate(value)
        return value

    @staticmethod
    def _interrupts(snapshot) -> list[Any]:
        return [interrupt.value for task in snapshot.tasks for interrupt in task.interrupts]
