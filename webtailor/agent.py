"""
CustomizationAgent: the per-document command surface.

Wires the ToolRegistry, PlanExecutor, CacheTransform, RuleStore,
ReplayController, MutationWatch and PageContextCache together for one
document and exposes the host operations:

  execute_tool(name, params)
  execute_natural_language_command(command)
  apply_existing_rules()
  reset_customizations()

Initialization state machine:

  UNINITIALIZED -> LOADING_RULES -> (APPLYING_EXISTING_RULES ->) OBSERVING

OBSERVING is terminal. Later replays come from MutationWatch or an explicit
apply_existing_rules() call and do not change the state.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .cache_transform import derive_storage_plan
from .document import Document
from .errors import GenerationServiceError, WebTailorError
from .executor import PlanExecutor
from .models.schemas import CommandResult, HostResponse, PageContextSnapshot, Rule
from .mutation_watch import MutationWatch
from .origin import origin_key
from .page_context import PageContextCache, build_snapshot
from .planner import CommandPlanner
from .replay import ReplayController, ReplayReport
from .rule_store import RuleStore, SettingsStore
from .styles import StyleManager
from .tools import ToolContext, ToolRegistry
from .tools.selection import make_selection_tools
from .tools.styling import make_style_tools
from .tools.text import make_text_tools
from .utils.logger import get_logger


logger = get_logger(__name__)


PERSIST_KEYWORDS = (
    "always", "permanently", "every time", "on this site",
    "remember", "save", "keep", "default", "for this website",
)

NO_ACTIONS_MESSAGE = "AI could not determine any actions for this command."
NO_PROMPT_MESSAGE = "No changes applied as no prompt was provided."
MISSING_KEY_MESSAGE = "AI API key not configured. Please set it in the extension options."


class AgentState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING_RULES = "loading_rules"
    APPLYING_EXISTING_RULES = "applying_existing_rules"
    OBSERVING = "observing"


def should_persist_rule(command: str) -> bool:
    """True if the command asks for the customization to stick on this site."""
    text = (command or "").lower()
    return any(keyword in text for keyword in PERSIST_KEYWORDS)


def compose_prompt(local_prompt: Optional[str], global_prompt: Optional[str]) -> str:
    """
    Combine the stored global prompt with a local request.

    A local request distinct from the global prompt is appended to it;
    otherwise the global prompt alone is used.
    """
    local = (local_prompt or "").strip()
    glob = (global_prompt or "").strip()
    if local and local != glob:
        return f"{glob}\n\n{local}" if glob else local
    return glob


class CustomizationAgent:
    """Customization core bound to one document."""

    def __init__(
        self,
        document: Document,
        store: RuleStore,
        llm,
        settings_store: Optional[SettingsStore] = None,
        context_ttl: Optional[float] = None,
        debounce: Optional[float] = None,
        max_age_days: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            document:       the live document to customize
            store:          per-origin rule storage
            llm:            generation client exposing ``async generate(prompt)``
            settings_store: where the API key and global prompt live (optional)
            context_ttl:    page context cache lifetime in seconds
            debounce:       mutation debounce window in seconds
            max_age_days:   replay staleness horizon
            clock:          epoch-seconds clock used for rule timestamps and replay
        """
        self.document = document
        self.store = store
        self.llm = llm
        self.settings_store = settings_store
        self._clock = clock

        self.styles = StyleManager(document)
        self.page_context = PageContextCache(self._build_snapshot, ttl=context_ttl)

        self.registry = ToolRegistry()
        ctx = ToolContext(document=document, styles=self.styles, llm=llm, page_context=self.page_context)
        self.registry.register_all(make_style_tools(ctx))
        self.registry.register_all(make_text_tools(ctx))
        self.registry.register_all(make_selection_tools(ctx))

        self.executor = PlanExecutor(self.registry)
        self.planner = CommandPlanner(llm, self.registry)
        self.replay = ReplayController(store, self.executor, max_age_days=max_age_days, clock=clock)
        self.watch = MutationWatch(document, self._on_document_settled, debounce=debounce)

        self.state = AgentState.UNINITIALIZED
        self._init_lock = asyncio.Lock()

    @property
    def origin(self) -> str:
        return origin_key(self.document.url)

    @property
    def initialized(self) -> bool:
        return self.state == AgentState.OBSERVING

    async def _build_snapshot(self) -> PageContextSnapshot:
        return await build_snapshot(self.document, self.styles.applied_keys)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load rules, replay the ones for this origin, then start observing. Idempotent."""
        async with self._init_lock:
            if self.state != AgentState.UNINITIALIZED:
                return

            self.state = AgentState.LOADING_RULES
            if not self.store.loaded:
                await self.store.load_all()

            origin = self.origin
            if self.store.has_rules(origin):
                self.state = AgentState.APPLYING_EXISTING_RULES
                logger.info(f"[Agent] Rules found for {origin}; applying")
                await self.replay.apply_effective_rules(origin)

            await self.document.attach()
            self.watch.start()
            self.state = AgentState.OBSERVING
            logger.info(f"[Agent] Initialized for {origin}")

    async def close(self) -> None:
        self.watch.stop()

    # ------------------------------------------------------------------
    # Command surface
    # ------------------------------------------------------------------

    async def execute_tool(self, name: str, parameters: Optional[Dict[str, Any]] = None) -> Any:
        """Run one tool directly. Raises UnknownToolError / ToolExecutionError."""
        return await self.registry.invoke(name, parameters or {})

    async def execute_natural_language_command(self, command: str) -> CommandResult:
        """
        Plan, execute and (if requested) persist one command.

        Returns:
            CommandResult with the executed plan and its outcomes

        Raises:
            GenerationServiceError: if no API key is configured
        """
        if not getattr(self.llm, "configured", True):
            raise GenerationServiceError(MISSING_KEY_MESSAGE)

        logger.info(f"[Agent] Command: {command!r}")
        snapshot = await self.page_context.get()
        plan = await self.planner.plan(command, snapshot)
        if not plan.actions:
            logger.warning("[Agent] Execution plan has no actions")
            return CommandResult(execution_plan=plan, results=[], message=NO_ACTIONS_MESSAGE)

        outcomes = await self.executor.execute(plan.actions)

        persisted = False
        if any(o.success for o in outcomes) and should_persist_rule(command):
            rule = Rule(
                command=command,
                execution_plan=derive_storage_plan(plan, outcomes),
                results=outcomes,
                timestamp=self._clock(),
            )
            await self.store.save(self.origin, rule)
            persisted = True

        return CommandResult(execution_plan=plan, results=outcomes, persisted=persisted)

    async def apply_existing_rules(self) -> ReplayReport:
        return await self.replay.apply_effective_rules(self.origin)

    async def reapply_rules(self) -> ReplayReport:
        """Replay after dropping the cached page context."""
        self.page_context.invalidate()
        return await self.apply_existing_rules()

    async def reset_customizations(self) -> None:
        """Remove injected styles and rewritten text, and forget this origin's rules."""
        origin = self.origin
        await self.styles.reset()
        restored = await self.document.restore_text()
        await self.store.clear(origin)
        self.page_context.invalidate()
        logger.info(f"[Agent] Reset {origin}: styles cleared, {restored} text element(s) restored")

    async def get_page_context(self) -> PageContextSnapshot:
        return await self.page_context.get()

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.llm.set_api_key(api_key)

    # ------------------------------------------------------------------
    # Prompt composition
    # ------------------------------------------------------------------

    async def process_customization(self, local_prompt: Optional[str] = None) -> HostResponse:
        """
        Combine the stored global prompt with *local_prompt* and run it as a command.

        Never raises: failures come back as ``HostResponse(success=False)``.
        """
        stored: Dict[str, str] = {}
        if self.settings_store is not None:
            stored = await self.settings_store.load()

        if not getattr(self.llm, "configured", True):
            if stored.get("apiKey"):
                self.set_api_key(stored["apiKey"])
            else:
                return HostResponse(success=False, error="API Key not configured.")

        prompt = compose_prompt(local_prompt, stored.get("globalPromptText"))
        if not prompt:
            logger.info("[Agent] No effective prompt; nothing to do")
            return HostResponse(success=True, result={"explanation": NO_PROMPT_MESSAGE})

        try:
            outcome = await self.execute_natural_language_command(prompt)
        except WebTailorError as e:
            logger.error(f"[Agent] Customization failed: {e}")
            return HostResponse(success=False, error=str(e))

        failures = [o.error or "Unknown error during tool execution" for o in outcome.results if not o.success]
        if failures:
            return HostResponse(success=False, error=f"One or more tools failed to execute: {'; '.join(failures)}")

        return HostResponse(success=True, result={
            "explanation": outcome.message or outcome.execution_plan.reasoning or "Changes applied successfully!",
            "persisted": outcome.persisted,
        })

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _on_document_settled(self) -> None:
        if self.store.has_rules(self.origin):
            await self.reapply_rules()
        else:
            self.page_context.invalidate()
