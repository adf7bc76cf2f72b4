"""
Tools package for webtailor.

Exposes the ToolRegistry that maps tool names to parameter contracts and
async executors. The PlanExecutor and ReplayController dispatch through it.

Execution contract:
  Every executor is ``async def fn(params: dict) -> dict``. The dict it
  returns is the tool output; a ``css`` string key marks output that can be
  frozen into a replayable ``applyCSS`` action.

  The registry is a pure dispatch table: no retries and no parameter
  validation. Executors validate their own parameters and raise on failure.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..document import Document
from ..errors import ToolExecutionError, UnknownToolError
from ..page_context import PageContextCache
from ..styles import StyleManager
from ..utils.logger import get_logger

logger = get_logger(__name__)


ToolExecutor = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class ToolDefinition:
    """A registered tool: name, parameter schema (name -> type string), executor."""
    name: str
    parameters: Dict[str, str]
    execute: ToolExecutor
    description: str = ""


@dataclass
class ToolContext:
    """
    Collaborators shared by the built-in tools of one document session.

    ``llm`` is anything exposing ``async generate(prompt) -> str``.
    """
    document: Document
    styles: StyleManager
    llm: Any
    page_context: PageContextCache


# ============================================================================
# Tool Registry
# ============================================================================

class ToolRegistry:
    """
    Central registry mapping tool names -> ToolDefinition.

    Contract:
      - invoke() on an unknown name raises UnknownToolError
      - an exception inside the executor is re-raised as ToolExecutionError
        with the original exception kept as ``cause``
    """

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}

    def register(
        self,
        name: str,
        schema: Dict[str, str],
        executor: ToolExecutor,
        description: str = "",
    ) -> ToolDefinition:
        """Register (or replace) a tool under *name*."""
        definition = ToolDefinition(name=name, parameters=dict(schema), execute=executor, description=description)
        self._tools[name] = definition
        logger.debug(f"[ToolRegistry] Registered tool: {name!r}")
        return definition

    def register_all(self, tools: Dict[str, ToolDefinition]) -> None:
        """Register every definition produced by a ``make_*_tools`` factory."""
        for name, tool in tools.items():
            self.register(name, tool.parameters, tool.execute, tool.description)

    def get(self, name: str) -> Optional[ToolDefinition]:
        """Look up a tool by name, returning None if not found."""
        return self._tools.get(name)

    def available(self) -> List[str]:
        """List all registered tool names."""
        return sorted(self._tools.keys())

    def describe(self) -> str:
        """Prompt-ready listing of every tool and its parameters."""
        return "\n".join(
            f"- {tool.name}: {tool.description}\n  Parameters: {json.dumps(tool.parameters)}"
            for tool in self._tools.values()
        )

    async def invoke(self, name: str, parameters: Optional[Dict[str, Any]] = None) -> Any:
        """
        Dispatch a tool call by name.

        Args:
            name:       Registered tool name (e.g. "applyCSS")
            parameters: Parameter mapping handed to the executor unchanged

        Returns:
            The executor's output

        Raises:
            UnknownToolError:   name not registered
            ToolExecutionError: executor raised
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.error(f"[ToolRegistry] Unknown tool: {name!r} (available: {', '.join(self.available())})")
            raise UnknownToolError(name)

        params = parameters or {}
        logger.info(f"[TOOL] Executing: {name} | params={json.dumps(params, default=str)[:200]}")
        try:
            result = await tool.execute(params)
        except Exception as e:
            logger.error(f"[TOOL RESULT] {name} raised {type(e).__name__}: {e}")
            raise ToolExecutionError(name, e) from e

        logger.info(f"[TOOL RESULT] {name} -> success | result={str(result)[:120]!r}")
        return result
