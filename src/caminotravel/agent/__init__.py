"""Agent package for the Camino travel assistant.

This package exposes a service-style interface for the agent while keeping
implementation details (tools, prompt, dispatch loop) organized in separate
modules.
"""

from .agent import (
    TravelAgentService,
    build_agent_service,
    get_agent_service,
)
from .dispatch import ToolDispatcher
from .tools import ToolSpec, build_tool_registry

__all__ = [
    "ToolDispatcher",
    "ToolSpec",
    "TravelAgentService",
    "build_agent_service",
    "build_tool_registry",
    "get_agent_service",
]
