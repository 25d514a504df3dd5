import json

import pytest

from caminotravel.services.context_budget import (
    TRUNCATION_MARKER,
    compact_tool_result,
    estimate_messages_tokens,
    truncate_session_messages,
)

SYSTEM = {"role": "system", "content": "sys"}


def _turns(n: int, size: int = 10) -> list[dict]:
    """n alternating user/assistant messages with distinguishable content."""
    return [
        {"role": "user" if i % 2 == 0 else "assistant", "content": f"{i:04d}" + "x" * (size - 4)}
        for i in range(n)
    ]


def _result_list_payload(count: int) -> str:
    return json.dumps(
        {
            "success": True,
            "searchId": "search-1",
            "resultsCount": count,
            "results": [
                {
                    "resultId": i,
                    "roomName": "Double Room",
                    "hotel": {"name": "Hotel Sol", "stars": 4, "location": {"city": "Madrid"}},
                    "description": "x" * 300,
                }
                for i in range(count)
            ],
        }
    )


def test_estimate_messages_tokens_adds_overhead() -> None:
    """Four characters per token, rounded up, plus 10 per message."""
    assert estimate_messages_tokens([{"role": "user", "content": "x" * 200}]) == 60
    assert estimate_messages_tokens([SYSTEM]) == 11
    assert estimate_messages_tokens([{"role": "assistant", "content": None}]) == 10


def test_compact_short_result_unchanged() -> None:
    """Results within the ceiling are returned as-is."""
    content = json.dumps({"success": True, "results": [1, 2, 3, 4, 5]})
    assert compact_tool_result(content) == content


def test_compact_plain_text_is_cut_to_ceiling() -> None:
    """Non-JSON results are truncated to the ceiling including the marker."""
    out = compact_tool_result("a" * 9000)
    assert len(out) == 8000
    assert out.endswith(TRUNCATION_MARKER)


def test_compact_result_list_is_summarized() -> None:
    """A successful result list keeps three summarized entries and a count note."""
    out = compact_tool_result(_result_list_payload(50))
    data = json.loads(out)
    assert data["success"] is True
    assert data["searchId"] == "search-1"
    assert data["resultsCount"] == 50
    assert len(data["results"]) == 3
    assert data["results"][0] == {
        "resultId": 0,
        "roomName": "Double Room",
        "hotel": {"name": "Hotel Sol", "stars": 4, "city": "Madrid"},
    }
    assert data["note"] == "Showing 3 of 50 results"


def test_compact_failed_result_list_is_truncated() -> None:
    """success: false payloads are not summarized."""
    payload = json.loads(_result_list_payload(50))
    payload["success"] = False
    out = compact_tool_result(json.dumps(payload))
    assert out.endswith(TRUNCATION_MARKER)
    assert len(out) == 8000


def test_compact_result_list_with_numeric_search_id() -> None:
    """The REST API decides the id's type; a number is still summarized."""
    payload = json.loads(_result_list_payload(40))
    payload["searchId"] = 12345
    out = compact_tool_result(json.dumps(payload))
    data = json.loads(out)
    assert data["searchId"] == 12345
    assert data["resultsCount"] == 40
    assert len(data["results"]) == 3


def test_compact_result_list_counts_results_when_count_is_not_a_number() -> None:
    payload = json.loads(_result_list_payload(40))
    payload["resultsCount"] = "forty"
    data = json.loads(compact_tool_result(json.dumps(payload)))
    assert data["resultsCount"] == 40
    assert data["note"] == "Showing 3 of 40 results"


@pytest.mark.parametrize("max_chars", [0, 5, len(TRUNCATION_MARKER) - 1])
def test_compact_ceiling_below_marker_length(max_chars: int) -> None:
    """Ceilings shorter than the marker still bound the output."""
    out = compact_tool_result("z" * 20, max_chars)
    assert len(out) <= max_chars


@pytest.mark.parametrize(
    "content",
    [
        "",
        "short",
        "b" * 8000,
        "c" * 8001,
        "d" * 50_000,
        _result_list_payload(2),
        _result_list_payload(40),
        json.dumps({"success": True, "results": ["y" * 9000]}),
        json.dumps([1] * 5000),
    ],
)
def test_compaction_never_grows_content(content: str) -> None:
    """Compacted content is never longer than the original."""
    assert len(compact_tool_result(content)) <= len(content)


def test_truncate_keeps_system_message_first() -> None:
    """The system message survives every pass."""
    messages = [SYSTEM, *_turns(30, size=200)]
    out = truncate_session_messages(messages, max_context_tokens=100)
    assert out[0] is SYSTEM
    assert len(out) > 1


def test_truncate_only_system_message() -> None:
    assert truncate_session_messages([SYSTEM]) == [SYSTEM]
    assert truncate_session_messages([]) == []


def test_truncate_caps_message_count() -> None:
    """More than 2 * max_turns messages keeps only the most recent ones."""
    messages = [SYSTEM, *_turns(25)]
    out = truncate_session_messages(messages)
    assert len(out) == 21
    assert out[1]["content"].startswith("0005")
    assert out[-1]["content"].startswith("0024")


def test_truncate_evicts_oldest_pairs_until_within_budget() -> None:
    """Eviction drops two messages at a time and stops once the estimate fits."""
    messages = [SYSTEM, *_turns(6, size=200)]  # 11 + 6 * 60 = 371 tokens
    out = truncate_session_messages(messages, max_context_tokens=300)
    assert len(out) == 5
    assert out[1]["content"].startswith("0002")
    assert estimate_messages_tokens(out) <= 300


def test_truncate_stops_at_minimal_pair() -> None:
    """When the budget cannot be met, the last two messages remain."""
    messages = [SYSTEM, *_turns(6, size=200)]
    out = truncate_session_messages(messages, max_context_tokens=100)
    assert [m["content"][:4] for m in out[1:]] == ["0004", "0005"]
    assert estimate_messages_tokens(out) > 100


def test_truncate_single_message_never_emptied() -> None:
    messages = [SYSTEM, {"role": "user", "content": "z" * 10_000}]
    out = truncate_session_messages(messages, max_context_tokens=10)
    assert out == messages


def test_truncate_compacts_tool_messages() -> None:
    """Oversized tool messages are compacted without touching other messages."""
    tool_msg = {"role": "tool", "tool_call_id": "call-1", "content": "t" * 9000}
    user_msg = {"role": "user", "content": "u" * 9000}
    out = truncate_session_messages([SYSTEM, user_msg, tool_msg])
    assert out[1] is user_msg
    assert out[2]["tool_call_id"] == "call-1"
    assert len(out[2]["content"]) == 8000
    assert len(tool_msg["content"]) == 9000


def test_truncate_is_idempotent() -> None:
    """Applying the budget twice gives the same result as applying it once."""
    messages = [
        SYSTEM,
        *_turns(8, size=400),
        *_turns(16, size=300),
        {"role": "tool", "tool_call_id": "c", "content": _result_list_payload(60)},
        *_turns(3, size=100),
    ]
    once = truncate_session_messages(messages, max_context_tokens=1000)
    twice = truncate_session_messages(once, max_context_tokens=1000)
    assert twice == once
    assert any(m.get("tool_call_id") == "c" for m in once)
