"""Agent runtime: hook bus, message pipeline, actions."""

from aya.agent.hooks import HookBus, HookKind
from aya.agent.runtime import AgentRuntime, create_runtime

__all__ = ["AgentRuntime", "HookBus", "HookKind", "create_runtime"]
