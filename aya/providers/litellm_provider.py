"""LiteLLM-backed reply generator.

Renders the conversation state into a message-handler prompt, asks the model
for a JSON object ``{"text": ..., "action": ...}`` and parses it leniently
with json_repair.

On timeout or error the call is retried once with the next model in the
fallback list; if that fails too, the error propagates to the pipeline.
"""

from __future__ import annotations

import asyncio
from typing import Any, TYPE_CHECKING

import json_repair
import litellm
from litellm import acompletion
from loguru import logger

from aya.agent.actions import ActionKind
from aya.providers.base import GeneratedContent

if TYPE_CHECKING:
    from aya.agent.state import ConversationState
    from aya.config.schema import LLMConfig
    from aya.memory.models import Memory

# Timeout for a single LLM call
LLM_CALL_TIMEOUT: float = 45.0

SYSTEM_PROMPT = """You are {agent_name}, chatting in a public crypto community room.
Stay in character. Keep replies short and conversational.

Reply with a single JSON object and nothing else:
{{"text": "<your reply, empty to stay silent>", "action": "<one of {actions}>"}}
Use "NONE" unless the conversation clearly calls for another action."""

MESSAGE_TEMPLATE = """# Knowledge
{knowledge}

# Things you remember
{memories}

# Conversation so far
{conversation}

# Task
Write {agent_name}'s next reply to the last message."""


class LiteLLMGenerator:
    """Generator using LiteLLM for multi-provider support."""

    def __init__(
        self,
        model: str = "openai/gpt-4o-mini",
        api_key: str | None = None,
        api_base: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        timeout: float = LLM_CALL_TIMEOUT,
        fallback_models: list[str] | None = None,
        actions: list[str] | None = None,
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._timeout = timeout
        self._fallback_models = list(fallback_models or [])
        self._actions = actions or [k.value for k in ActionKind]

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers
        litellm.drop_params = True

    @classmethod
    def from_config(cls, config: "LLMConfig", **kwargs: Any) -> LiteLLMGenerator:
        return cls(
            model=config.model,
            api_key=config.api_key,
            api_base=config.api_base,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
            fallback_models=config.fallback_models,
            **kwargs,
        )

    # ── Prompt ────────────────────────────────────────────────────────

    def build_messages(
        self, state: "ConversationState", memory: "Memory",
    ) -> list[dict[str, str]]:
        names = state.values.get("names") or {}
        system = SYSTEM_PROMPT.format(
            agent_name=state.agent_name,
            actions=", ".join(self._actions),
        )
        user = MESSAGE_TEMPLATE.format(
            agent_name=state.agent_name,
            knowledge=state.format_knowledge() or "(none)",
            memories=state.format_memories() or "(none)",
            conversation=state.format_recent_messages(names) or memory.text,
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

    # ── Generation ────────────────────────────────────────────────────

    async def generate(
        self, state: "ConversationState", memory: "Memory",
    ) -> GeneratedContent:
        messages = self.build_messages(state, memory)
        models = [self.model] + [m for m in self._fallback_models if m != self.model]

        last_error: Exception | None = None
        for model in models[:2]:
            try:
                raw = await self._complete(model, messages)
                return self.parse(raw)
            except asyncio.TimeoutError as e:
                logger.warning(f"LLM timeout after {self._timeout}s on {model}")
                last_error = e
            except Exception as e:
                logger.warning(f"LLM error on {model}: {e}")
                last_error = e

        if last_error is None:
            raise RuntimeError("No model configured for generation")
        raise last_error

    async def _complete(self, model: str, messages: list[dict[str, str]]) -> str:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max(1, self.max_tokens),
            "temperature": self.temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        response = await asyncio.wait_for(acompletion(**kwargs), timeout=self._timeout)
        content = response.choices[0].message.content
        return content or ""

    @staticmethod
    def parse(raw: str) -> GeneratedContent:
        """Parse model output into GeneratedContent.

        Non-JSON output is taken as the reply text with no action.
        """
        raw = (raw or "").strip()
        if not raw:
            return GeneratedContent(text="")
        if raw.startswith("```"):
            raw = raw.strip("`").strip()
            if raw.lower().startswith("json"):
                raw = raw[4:].strip()
        parsed = json_repair.loads(raw)
        if isinstance(parsed, list):
            parsed = next((p for p in parsed if isinstance(p, dict)), None)
        if not isinstance(parsed, dict) or "text" not in parsed:
            return GeneratedContent(text=raw)
        content = GeneratedContent.from_dict(parsed)
        if content.action and content.action.strip().upper() == ActionKind.NONE.value:
            content.action = None
        return content
