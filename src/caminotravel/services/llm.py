import logging
from typing import Any, Dict, List

from openai import AsyncOpenAI, BadRequestError

from ..errors import ContextOverflowError, is_context_overflow
from ..models import AssistantReply, ToolCallRequest
from ..settings import get_settings

logger = logging.getLogger(__name__)


class OpenAIChatModel:
    """Model-invocation collaborator backed by the OpenAI Chat Completions API.

    Instances are awaitable callables: ``await model(messages, tools)``.
    Provider rejections caused by an oversized input are re-raised as
    ContextOverflowError; everything else propagates unchanged.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.0,
        api_key: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        """Return the OpenAI client, creating it on first use."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    async def __call__(
        self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]
    ) -> AssistantReply:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"

        try:
            completion = await self.client.chat.completions.create(**request)
        except BadRequestError as e:
            if is_context_overflow(e):
                raise ContextOverflowError(str(e)) from e
            raise

        message = completion.choices[0].message
        tool_calls = [
            ToolCallRequest(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "",
            )
            for tc in (message.tool_calls or [])
            if tc.type == "function"
        ]
        logger.debug(
            "Model %s replied with %d tool calls", self.model, len(tool_calls)
        )
        return AssistantReply(content=message.content or "", tool_calls=tool_calls)


def get_chat_model() -> OpenAIChatModel:
    """Build the chat model collaborator from settings."""
    settings = get_settings()
    return OpenAIChatModel(
        model=settings.model,
        temperature=settings.temperature,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
    )
