"""Failure types raised by the orchestration engine and its collaborators."""

_OVERFLOW_MARKERS = (
    "maximum context length",
    "context_length_exceeded",
    "too many tokens",
)


class ContextOverflowError(RuntimeError):
    """The model rejected the request because the input exceeded its context window."""


class ToolLoopLimitError(RuntimeError):
    """The dispatch loop ran out of model rounds without a final answer."""

    def __init__(self, max_iterations: int) -> None:
        super().__init__(
            f"Model did not produce a final answer within {max_iterations} rounds"
        )
        self.max_iterations = max_iterations


def is_context_overflow(exc: BaseException) -> bool:
    """Return True if exc reports that the model input was too large."""
    if isinstance(exc, ContextOverflowError):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _OVERFLOW_MARKERS)
