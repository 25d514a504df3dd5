import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest


_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))


class ScriptedModel:
    """Chat model stub: returns (or raises) the scripted steps in order.

    The last step repeats once the script is exhausted. Every call records a
    copy of the messages it was given.
    """

    def __init__(self, *steps: Any) -> None:
        self.steps = list(steps)
        self.calls: List[List[Dict[str, Any]]] = []
        self.catalogs: List[List[Dict[str, Any]]] = []

    async def __call__(self, messages, tools):
        self.calls.append([dict(m) for m in messages])
        self.catalogs.append(tools)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, BaseException):
            raise step
        return step


@pytest.fixture
def scripted_model():
    """Factory for ScriptedModel stubs."""
    return ScriptedModel
