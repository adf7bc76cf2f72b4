"""
PlanExecutor: runs a plan's actions concurrently through the ToolRegistry.

Every action is dispatched at once and awaited with settle-all semantics:
one action failing never cancels or blocks a sibling. Outcomes are
positionally aligned with the input actions.
"""

import asyncio
import time
from typing import List, Sequence

from .errors import ToolExecutionError, UnknownToolError
from .models.schemas import Action, ActionOutcome
from .tools import ToolRegistry
from .utils.logger import get_logger


logger = get_logger(__name__)


def _error_message(error: BaseException) -> str:
    if isinstance(error, ToolExecutionError):
        return str(error.cause) or type(error.cause).__name__
    return str(error) or type(error).__name__


class PlanExecutor:
    """Executes lists of Actions against a ToolRegistry."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def execute(self, actions: Sequence[Action]) -> List[ActionOutcome]:
        """
        Run every action concurrently.

        Args:
            actions: Actions to run; may be empty

        Returns:
            One ActionOutcome per action, same length and order as *actions*
        """
        if not actions:
            return []

        t0 = time.monotonic()
        settled = await asyncio.gather(
            *(self.registry.invoke(action.tool, dict(action.parameters)) for action in actions),
            return_exceptions=True,
        )

        outcomes: List[ActionOutcome] = []
        for action, result in zip(actions, settled):
            if isinstance(result, BaseException):
                if isinstance(result, (UnknownToolError, ToolExecutionError)):
                    logger.warning(f"[PlanExecutor] {action.tool} failed: {result}")
                else:
                    # cancellation or anything raised outside an executor
                    logger.error(f"[PlanExecutor] {action.tool} aborted: {type(result).__name__}: {result}")
                outcomes.append(ActionOutcome(
                    tool=action.tool,
                    parameters=dict(action.parameters),
                    success=False,
                    error=_error_message(result),
                ))
            else:
                outcomes.append(ActionOutcome(
                    tool=action.tool,
                    parameters=dict(action.parameters),
                    success=True,
                    result=result,
                ))

        failed = sum(1 for o in outcomes if not o.success)
        logger.info(
            f"[PlanExecutor] {len(outcomes)} action(s) settled in {time.monotonic() - t0:.2f}s "
            f"| {len(outcomes) - failed} ok | {failed} failed"
        )
        return outcomes
