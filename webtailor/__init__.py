"""
webtailor: natural-language page customization with a per-origin rule cache
and replay engine.
"""

__version__ = "1.0.0"

from .agent import CustomizationAgent, AgentState, compose_prompt, should_persist_rule
from .cache_transform import derive_storage_plan
from .document import Document, SoupDocument, PlaywrightDocument
from .executor import PlanExecutor
from .llm_client import LLMClient
from .mutation_watch import MutationWatch, is_significant
from .origin import origin_key
from .planner import CommandPlanner
from .replay import ReplayController, effective_rules
from .rule_store import JsonFileStore, MemoryStore, RuleStore, SettingsStore
from .tools import ToolRegistry
from .utils.logger import get_logger

__all__ = [
    "CustomizationAgent",
    "AgentState",
    "compose_prompt",
    "should_persist_rule",
    "derive_storage_plan",
    "Document",
    "SoupDocument",
    "PlaywrightDocument",
    "PlanExecutor",
    "LLMClient",
    "MutationWatch",
    "is_significant",
    "origin_key",
    "CommandPlanner",
    "ReplayController",
    "effective_rules",
    "JsonFileStore",
    "MemoryStore",
    "RuleStore",
    "SettingsStore",
    "ToolRegistry",
    "get_logger",
]
