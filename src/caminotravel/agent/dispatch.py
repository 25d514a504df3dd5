import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List

from ..errors import ToolLoopLimitError
from ..models import AssistantReply, DispatchResult, ToolCallRequest
from .tools import ToolSpec, get_tool_catalog

logger = logging.getLogger(__name__)

ChatModel = Callable[[List[Dict[str, Any]], List[Dict[str, Any]]], Awaitable[AssistantReply]]


def success_payload(content: str) -> Dict[str, Any] | None:
    """Return the parsed tool result if it is a JSON object with success == true."""
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return None
    if isinstance(data, dict) and data.get("success") is True:
        return data
    return None


def _error_result(message: str) -> str:
    return json.dumps({"error": message})


class ToolDispatcher:
    """Runs the ask-model / execute-tools loop until the model answers in plain text.

    Each round sends the whole working history and the tool catalog to the
    model. When the reply requests tools, the assistant message and exactly
    one tool message per request are appended before the next round. Tool
    failures of any kind become ``{"error": ...}`` results; model failures
    propagate.
    """

    def __init__(
        self,
        model: ChatModel,
        tools: Dict[str, ToolSpec],
        max_iterations: int = 25,
        model_timeout: float | None = None,
        tool_timeout: float | None = None,
    ) -> None:
        self._model = model
        self._tools = tools
        self._catalog = get_tool_catalog(tools)
        self._max_iterations = max_iterations
        self._model_timeout = model_timeout
        self._tool_timeout = tool_timeout

    @property
    def catalog(self) -> List[Dict[str, Any]]:
        return self._catalog

    async def execute_tool(self, call: ToolCallRequest) -> str:
        """Execute one tool call and return the text of its result.

        Never raises for tool-level problems: unknown names, malformed
        arguments, handler exceptions and timeouts all come back as an
        error-shaped JSON string.
        """
        spec = self._tools.get(call.name)
        if spec is None:
            logger.warning("Model requested unknown tool %s", call.name)
            return _error_result(f"Unknown function: {call.name}")

        logger.info("Executing tool: %s", call.name)
        try:
            arguments = json.loads(call.arguments) if call.arguments else {}
            result = await asyncio.wait_for(spec(arguments), timeout=self._tool_timeout)
        except json.JSONDecodeError as e:
            logger.error("Invalid tool arguments for %s: %s", call.name, e)
            return _error_result(f"Invalid arguments: {e}")
        except asyncio.TimeoutError:
            logger.error("Tool %s timed out after %ss", call.name, self._tool_timeout)
            return _error_result(f"Tool {call.name} timed out after {self._tool_timeout}s")
        except Exception as e:
            logger.exception("Error executing tool %s: %s", call.name, e)
            return _error_result(str(e) or e.__class__.__name__)

        content = result.get("content") if isinstance(result, dict) else None
        if isinstance(content, list) and content and isinstance(content[0], dict):
            text = content[0].get("text")
            if isinstance(text, str) and text:
                return text
        return json.dumps(result, default=str)

    async def run(self, messages: List[Dict[str, Any]]) -> DispatchResult:
        """Run the loop over a copy of messages.

        Returns:
            DispatchResult: Final text, the first ``success: true`` tool
                payload (if any) and the working transcript.

        Raises:
            ToolLoopLimitError: If max_iterations rounds pass without a plain answer.
            asyncio.TimeoutError: If a model call exceeds model_timeout.
        """
        history = list(messages)
        structured: Dict[str, Any] | None = None
        tool_calls_count = 0

        for round_number in range(1, self._max_iterations + 1):
            reply = await asyncio.wait_for(
                self._model(history, self._catalog), timeout=self._model_timeout
            )
            if not reply.tool_calls:
                return DispatchResult(
                    text=reply.content,
                    structured_result=structured,
                    messages=history,
                    rounds=round_number,
                    tool_calls_count=tool_calls_count,
                )

            history.append(reply.to_message())
            logger.info(
                "Round %d: model requested %s",
                round_number,
                ", ".join(tc.name for tc in reply.tool_calls),
            )
            # Calls in one batch are independent; results keep request order.
            results = await asyncio.gather(
                *(self.execute_tool(tc) for tc in reply.tool_calls)
            )
            for call, content in zip(reply.tool_calls, results):
                history.append({"role": "tool", "tool_call_id": call.id, "content": content})
                tool_calls_count += 1
                if structured is None:
                    structured = success_payload(content)

        raise ToolLoopLimitError(self._max_iterations)
