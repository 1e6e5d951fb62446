"""Multi-turn tool-calling loop between a chat model and an MCP server."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Iterator, Sequence, TYPE_CHECKING

from docbridge.mcp.integration.errors import ToolDispatchError
from docbridge.mcp.integration.schema import (
    ToolCallRequest,
    extract_tool_text,
    resolve_tool_call,
    to_function_schema,
)

if TYPE_CHECKING:
    from docbridge.mcp.integration.llm_adapter import LLMInterface
    from docbridge.mcp.integration.registry import Tool

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You can call tools when helpful. Keep outputs concise."
DEFAULT_MAX_ITERATIONS = 10
NO_RESPONSE_TEXT = "No response."
NO_TEXT_GENERATED = "No text generated."

ROLES = ("system", "user", "assistant", "tool")

# Dispatches one tool call: (tool name, arguments) -> tools/call result
CallTool = Callable[[str, dict[str, Any]], Awaitable[Any]]


class LoopState(Enum):
    """
    States of one orchestration run.

        AWAITING_MODEL -> DISPATCHING_TOOLS -> AWAITING_MODEL -> ... -> DONE
    """

    AWAITING_MODEL = auto()
    DISPATCHING_TOOLS = auto()
    DONE = auto()

    def __str__(self) -> str:
        return self.name


class Conversation:
    """
    Append-only message history.

    Every tool message must answer a call id issued by an earlier assistant
    message, and each issued id is answered at most once.
    """

    def __init__(self) -> None:
        self._messages: list[dict[str, Any]] = []
        self._issued: list[str] = []
        self._answered: set[str] = set()

    @classmethod
    def seed(cls, system_prompt: str, query: str) -> "Conversation":
        conversation = cls()
        conversation.append({"role": "system", "content": system_prompt})
        conversation.append({"role": "user", "content": query})
        return conversation

    def append(self, message: dict[str, Any]) -> None:
        """
        Add a message.

        Raises:
            ValueError: On an unknown role or a tool message that does not
                answer an outstanding call.
        """
        role = message.get("role")
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")

        if role == "tool":
            call_id = message.get("tool_call_id")
            if call_id not in self._issued:
                raise ValueError(f"Tool result for unknown call id: {call_id!r}")
            if call_id in self._answered:
                raise ValueError(f"Tool call {call_id!r} already has a result")
            self._answered.add(call_id)
        elif role == "assistant":
            for call in message.get("tool_calls") or []:
                call_id = call.get("id")
                if not call_id or call_id in self._issued:
                    raise ValueError(f"Assistant issued invalid call id: {call_id!r}")
                self._issued.append(call_id)

        self._messages.append(message)

    @property
    def issued_call_ids(self) -> list[str]:
        return list(self._issued)

    def pending_call_ids(self) -> list[str]:
        """Issued call ids that have no result yet, in issue order."""
        return [call_id for call_id in self._issued if call_id not in self._answered]

    def to_list(self) -> list[dict[str, Any]]:
        return list(self._messages)

    @property
    def last(self) -> dict[str, Any] | None:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._messages)


@dataclass(frozen=True)
class ToolCallResult:
    """Output of one dispatched tool call."""

    call_id: str
    output_text: str

    def to_message(self) -> dict[str, Any]:
        return {"role": "tool", "tool_call_id": self.call_id, "content": self.output_text}


@dataclass
class OrchestrationResult:
    """Outcome of one orchestration run."""

    content: str
    conversation: Conversation
    iterations: int
    state: LoopState = LoopState.DONE
    stop_reason: str = "final_answer"
    """``final_answer``, ``no_response`` or ``max_iterations``."""

    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_results: list[ToolCallResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content}


class ToolOrchestrator:
    """
    Drives the model/tool loop for a single query.

    Each model turn either requests tool calls, which are dispatched in
    order with one tool message appended per call before the next turn, or
    carries the final answer. A failed dispatch becomes an error string in
    the tool message rather than aborting the batch.
    """

    def __init__(
        self,
        llm: "LLMInterface",
        call_tool: CallTool,
        model: str,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_iterations: int | None = DEFAULT_MAX_ITERATIONS,
    ):
        """
        Args:
            llm: Chat-completion client.
            call_tool: Coroutine that dispatches one tool call.
            model: Model identifier for every turn.
            system_prompt: First message of each conversation.
            max_iterations: Cap on model requests per run; None is unbounded.
        """
        if max_iterations is not None and max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.llm = llm
        self.call_tool = call_tool
        self.model = model
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self._state = LoopState.DONE

    @property
    def state(self) -> LoopState:
        """State of the most recent run."""
        return self._state

    async def run(
        self,
        query: str,
        tools: Sequence["Tool | dict[str, Any]"] = (),
    ) -> OrchestrationResult:
        """
        Answer a query, calling tools as the model asks.

        Raises:
            Exception: Whatever the LLM client raises; tool failures do not
                propagate.
        """
        conversation = Conversation.seed(self.system_prompt, query)
        functions = [to_function_schema(tool) for tool in tools]
        dispatched: list[ToolCallRequest] = []
        results: list[ToolCallResult] = []
        iterations = 0
        self._state = LoopState.AWAITING_MODEL

        while True:
            if self.max_iterations is not None and iterations >= self.max_iterations:
                logger.warning(f"Giving up after {iterations} model turns")
                return self._finish(
                    f"Stopped after {iterations} model turns without a final answer.",
                    conversation, iterations, "max_iterations", dispatched, results,
                )

            iterations += 1
            logger.debug(f"Model turn {iterations} with {len(conversation)} messages")
            response = await self.llm.chat_completion(
                model=self.model,
                messages=conversation.to_list(),
                tools=functions or None,
                tool_choice="auto" if functions else None,
            )

            message = _first_message(response)
            if message is None:
                return self._finish(
                    NO_RESPONSE_TEXT, conversation, iterations, "no_response", dispatched, results
                )

            raw_calls = message.get("tool_calls") or []
            if not raw_calls:
                content = message.get("content") or NO_TEXT_GENERATED
                conversation.append({"role": "assistant", "content": content})
                return self._finish(
                    content, conversation, iterations, "final_answer", dispatched, results
                )

            self._state = LoopState.DISPATCHING_TOOLS
            requests, recorded = self._record_calls(
                raw_calls, iterations, set(conversation.issued_call_ids)
            )
            conversation.append({
                "role": "assistant",
                "content": message.get("content") or "",
                "tool_calls": recorded,
            })

            for request in requests:
                outcome = await self._dispatch(request)
                conversation.append(outcome.to_message())
                dispatched.append(request)
                results.append(outcome)

            self._state = LoopState.AWAITING_MODEL

    def _record_calls(
        self,
        raw_calls: list[Any],
        iteration: int,
        taken: set[str],
    ) -> tuple[list[ToolCallRequest], list[dict[str, Any]]]:
        """Resolve the calls of one turn, giving each a unique call id."""
        requests: list[ToolCallRequest] = []
        recorded: list[dict[str, Any]] = []
        for index, raw in enumerate(raw_calls):
            if hasattr(raw, "model_dump"):
                raw = raw.model_dump()
            request = resolve_tool_call(raw)
            if not request.call_id or request.call_id in taken:
                request = dataclasses.replace(
                    request, call_id=f"call_{iteration}_{index}"
                )
            taken.add(request.call_id)
            requests.append(request)

            payload = dict(raw) if isinstance(raw, dict) else {}
            payload["id"] = request.call_id
            recorded.append(payload)

        return requests, recorded

    async def _dispatch(self, request: ToolCallRequest) -> ToolCallResult:
        logger.info(f"Calling tool {request.tool_name}")
        try:
            result = await self.call_tool(request.tool_name, request.arguments)
        except Exception as e:
            error = ToolDispatchError(request.tool_name, str(e) or type(e).__name__, cause=e)
            logger.warning(f"Tool call failed: {error.as_result_text()}")
            return ToolCallResult(request.call_id, error.as_result_text())
        return ToolCallResult(request.call_id, extract_tool_text(result))

    def _finish(
        self,
        content: str,
        conversation: Conversation,
        iterations: int,
        stop_reason: str,
        dispatched: list[ToolCallRequest],
        results: list[ToolCallResult],
    ) -> OrchestrationResult:
        self._state = LoopState.DONE
        logger.info(f"Query finished after {iterations} model turns ({stop_reason})")
        return OrchestrationResult(
            content=content,
            conversation=conversation,
            iterations=iterations,
            state=self._state,
            stop_reason=stop_reason,
            tool_calls=dispatched,
            tool_results=results,
        )


def _first_message(response: Any) -> dict[str, Any] | None:
    if hasattr(response, "model_dump"):
        response = response.model_dump()
    if not isinstance(response, dict):
        return None
    choices = response.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    return message if isinstance(message, dict) else None
