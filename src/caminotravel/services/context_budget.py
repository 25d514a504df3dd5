"""Keeps a session's message history within the model's input capacity.

Three passes run over the messages after the system message, always in this
order:

1. oversized tool results are compacted (summarized or cut);
2. the history is capped to the most recent ``2 * max_turns`` messages;
3. the oldest pairs are evicted until the estimated token count fits.

Token counts are estimated at four characters per token plus a fixed
per-message overhead.
"""

import json
import logging
import math
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

MAX_CONTEXT_TOKENS = 100_000
MAX_TOOL_RESULT_CHARS = 8_000
MAX_SESSION_TURNS = 10

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 10
SUMMARY_RESULT_COUNT = 3
TRUNCATION_MARKER = "\n... [truncated]"

_RESULT_FIELDS = ("resultId", "hotelCode", "roomName", "totalPrice", "refundable")


class ResultListPayload(BaseModel):
    """A successful tool payload carrying a list of results."""

    model_config = ConfigDict(extra="allow")

    success: bool
    results: List[Any]
    searchId: Any = None
    resultsCount: Any = None


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_messages_tokens(messages: List[Dict[str, Any]]) -> int:
    """Estimate the token count of a chat message list."""
    total = 0
    for msg in messages:
        content = msg.get("content")
        if isinstance(content, str):
            total += estimate_tokens(content)
        elif isinstance(content, list):
            for part in content:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    total += estimate_tokens(part["text"])
        total += MESSAGE_OVERHEAD_TOKENS
    return total


def _summarize_result(result: Any) -> Any:
    if not isinstance(result, dict):
        return result
    summary = {key: result[key] for key in _RESULT_FIELDS if key in result}
    hotel = result.get("hotel")
    if isinstance(hotel, dict):
        location = hotel.get("location") if isinstance(hotel.get("location"), dict) else {}
        summary["hotel"] = {
            "name": hotel.get("name"),
            "stars": hotel.get("stars"),
            "city": location.get("city"),
        }
    return summary


def _summarize_payload(payload: ResultListPayload) -> str:
    count = payload.resultsCount
    if not isinstance(count, int) or isinstance(count, bool):
        count = len(payload.results)
    summarized: Dict[str, Any] = {"success": True}
    if payload.searchId is not None:
        summarized["searchId"] = payload.searchId
    summarized["resultsCount"] = count
    summarized["results"] = [
        _summarize_result(r) for r in payload.results[:SUMMARY_RESULT_COUNT]
    ]
    if count > SUMMARY_RESULT_COUNT:
        summarized["note"] = f"Showing {SUMMARY_RESULT_COUNT} of {count} results"
    return json.dumps(summarized, indent=2, default=str)


def compact_tool_result(content: str, max_chars: int = MAX_TOOL_RESULT_CHARS) -> str:
    """Shrink a tool result that exceeds max_chars.

    A successful result list is summarized to its first few entries; anything
    else is cut to max_chars including the truncation marker. The output is
    never longer than max_chars, so compacted content is left alone on later
    passes.
    """
    if len(content) <= max_chars:
        return content

    try:
        payload = ResultListPayload.model_validate(json.loads(content))
    except (json.JSONDecodeError, ValidationError, TypeError, ValueError):
        payload = None

    if payload is not None and payload.success:
        summarized = _summarize_payload(payload)
        if len(summarized) <= max_chars:
            return summarized

    keep = max(max_chars - len(TRUNCATION_MARKER), 0)
    return (content[:keep] + TRUNCATION_MARKER)[:max_chars]


def truncate_session_messages(
    messages: List[Dict[str, Any]],
    *,
    max_context_tokens: int = MAX_CONTEXT_TOKENS,
    max_tool_result_chars: int = MAX_TOOL_RESULT_CHARS,
    max_turns: int = MAX_SESSION_TURNS,
) -> List[Dict[str, Any]]:
    """Return a copy of messages trimmed to the context budget.

    The system message (first element) is always kept. Eviction stops when
    the estimate fits or when only two non-system messages remain.
    """
    if len(messages) <= 1:
        return list(messages)

    system_message = messages[0]
    conversation = []
    for msg in messages[1:]:
        content = msg.get("content")
        if msg.get("role") == "tool" and isinstance(content, str):
            compacted = compact_tool_result(content, max_tool_result_chars)
            if compacted is not content:
                msg = {**msg, "content": compacted}
        conversation.append(msg)

    max_messages = max_turns * 2
    if len(conversation) > max_messages:
        conversation = conversation[-max_messages:]

    tokens = estimate_messages_tokens([system_message, *conversation])
    dropped = 0
    while tokens > max_context_tokens and len(conversation) > 2:
        conversation = conversation[2:]
        dropped += 2
        tokens = estimate_messages_tokens([system_message, *conversation])

    if dropped:
        logger.info(
            "Evicted %d messages to fit context budget (~%d tokens remaining)",
            dropped,
            tokens,
        )
    return [system_message, *conversation]
