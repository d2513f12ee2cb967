"""Passive evaluators run over memories as the pipeline produces them.

Evaluators observe; they cannot stop the pipeline. A failing evaluator is
logged and the next one still runs.
"""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING, runtime_checkable

from loguru import logger

if TYPE_CHECKING:
    from aya.agent.state import ConversationState
    from aya.memory.models import Memory


@runtime_checkable
class Evaluator(Protocol):
    @property
    def name(self) -> str:
        ...

    async def evaluate(
        self, memory: "Memory", state: "ConversationState", did_respond: bool
    ) -> None:
        ...


async def run_evaluators(
    evaluators: list[Evaluator],
    memory: "Memory",
    state: "ConversationState",
    did_respond: bool = False,
) -> int:
    """Run every evaluator; returns how many completed without error."""
    ok = 0
    for evaluator in evaluators:
        try:
            await evaluator.evaluate(memory, state, did_respond)
            ok += 1
        except Exception as e:
            logger.exception(
                f"Evaluator '{getattr(evaluator, 'name', evaluator)}' failed on "
                f"memory {memory.id}: {e}"
            )
    return ok
